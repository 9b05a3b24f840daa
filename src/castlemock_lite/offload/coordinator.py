"""
CastleMock Lite Offload Coordinator

Runs match and import work either on a background worker thread or, when
the worker is disabled or fails to start, synchronously in the caller's
thread. Both implementations return a ``concurrent.futures.Future`` that
resolves to the same result types, so callers cannot tell which one ran.

The worker owns a private copy of the catalog. Nothing is shared with it:
every message in either direction is serialized to JSON, and the catalog
copy is refreshed by a SYNC_DATA message after each store mutation.

Message protocol:
    -> {"type": "SYNC_DATA", "payload": <catalog>}
    -> {"type": "FIND_MATCH" | "PARSE_SWAGGER" | "PING", "id": ..., "payload": ...}
    <- {"type": "MATCH_RESULT" | "PARSE_RESULT" | "PONG" | "ERROR", "id": ..., "payload": ...}
"""

import json
import logging
import queue
import threading
import uuid
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..catalog.models import Catalog, ImportResult, MatchResult
from ..errors import OffloadError, OffloadTimeoutError
from ..importer.openapi import parse_openapi
from ..mock.matcher import find_match

logger = logging.getLogger("castlemock.offload")


class OffloadTask(str, Enum):
    FIND_MATCH = "FIND_MATCH"
    PARSE_SWAGGER = "PARSE_SWAGGER"


RESULT_TYPES = {
    OffloadTask.FIND_MATCH: 'MATCH_RESULT',
    OffloadTask.PARSE_SWAGGER: 'PARSE_RESULT',
}


def execute_task(catalog: Catalog, task: OffloadTask, payload: Dict[str, Any]) -> Any:
    """
    Run one task against a catalog snapshot.

    Args:
        catalog: Catalog snapshot
        task: Task to run
        payload: FIND_MATCH takes projectId, method, path, requestBody,
            requestHeaders; PARSE_SWAGGER takes projectId, swaggerJson

    Returns:
        MatchResult or None for FIND_MATCH, ImportResult for PARSE_SWAGGER
    """
    if task == OffloadTask.FIND_MATCH:
        return find_match(
            catalog,
            payload['projectId'],
            payload['method'],
            payload['path'],
            payload.get('requestBody'),
            payload.get('requestHeaders'),
        )
    if task == OffloadTask.PARSE_SWAGGER:
        return parse_openapi(payload['projectId'], payload['swaggerJson'])
    raise ValueError(f"Unknown task: {task}")


def encode_result(task: OffloadTask, result: Any) -> Optional[Dict[str, Any]]:
    return result.to_dict() if result is not None else None


def decode_result(task: Optional[OffloadTask], data: Any) -> Any:
    if task == OffloadTask.FIND_MATCH:
        return MatchResult.from_dict(data) if data is not None else None
    if task == OffloadTask.PARSE_SWAGGER:
        return ImportResult.from_dict(data or {})
    return data


class OffloadCoordinator:
    """Common contract for in-process and worker-backed execution."""

    def run(self, task: OffloadTask, payload: Dict[str, Any]) -> Future:
        """
        Schedule a task.

        Returns:
            Future resolving to the task result. It fails with OffloadError
            if the task raised, or OffloadTimeoutError if the worker did not
            answer in time.
        """
        raise NotImplementedError

    def sync(self, catalog: Catalog):
        """Replace the catalog snapshot tasks run against."""
        raise NotImplementedError

    def attach(self, store) -> Callable[[], None]:
        """
        Keep this coordinator's snapshot in step with a CatalogStore.

        Returns:
            Callable that detaches from the store
        """
        self.sync(store.snapshot())
        return store.subscribe(lambda: self.sync(store.snapshot()))

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class InProcessCoordinator(OffloadCoordinator):
    """Executes tasks synchronously and returns completed futures."""

    def __init__(self):
        self._catalog_data: Dict[str, Any] = Catalog().to_dict()

    def sync(self, catalog: Catalog):
        self._catalog_data = catalog.to_dict()

    def run(self, task: OffloadTask, payload: Dict[str, Any]) -> Future:
        future: Future = Future()
        try:
            task = OffloadTask(task)
            catalog = Catalog.from_dict(json.loads(json.dumps(self._catalog_data)))
            future.set_result(execute_task(catalog, task, json.loads(json.dumps(payload))))
        except Exception as e:
            logger.exception(f"In-process {task} failed")
            future.set_exception(OffloadError(str(e)))
        return future


def _worker_main(inbox: queue.Queue, post: Callable[[str], None]):
    """Background loop: private catalog copy, one message at a time."""
    state = Catalog()

    while True:
        message = json.loads(inbox.get())
        message_type = message.get('type')
        correlation_id = message.get('id')
        payload = message.get('payload')

        if message_type == 'STOP':
            break

        try:
            if message_type == 'SYNC_DATA':
                state = Catalog.from_dict(payload)
            elif message_type == 'PING':
                post(json.dumps({'type': 'PONG', 'id': correlation_id, 'payload': None}))
            else:
                task = OffloadTask(message_type)
                result = execute_task(state, task, payload)
                post(json.dumps({
                    'type': RESULT_TYPES[task],
                    'id': correlation_id,
                    'payload': encode_result(task, result),
                }))
        except Exception as e:
            logger.exception(f"Worker error handling {message_type}")
            post(json.dumps({'type': 'ERROR', 'id': correlation_id, 'payload': str(e)}))


class WorkerCoordinator(OffloadCoordinator):
    """
    Runs tasks on a background thread.

    Each request gets a correlation id and a one-shot callback. A timer
    fails the future after ``timeout`` seconds and drops the callback; a
    reply arriving after that is ignored.

    Example:
        with WorkerCoordinator(timeout=5.0) as coordinator:
            coordinator.start()
            coordinator.attach(store)
            result = coordinator.run(OffloadTask.FIND_MATCH, payload).result()
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self.logger = logging.getLogger("castlemock.offload")
        self._inbox: queue.Queue = queue.Queue()
        self._callbacks: Dict[str, Tuple[Future, Optional[OffloadTask], threading.Timer]] = {}
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    def start(self):
        """
        Start the worker thread and wait for it to answer a ping.

        Raises:
            OffloadError: If the worker does not come up
        """
        try:
            self._thread = threading.Thread(
                target=_worker_main,
                args=(self._inbox, self._on_message),
                name="castlemock-offload",
                daemon=True,
            )
            self._thread.start()
        except RuntimeError as e:
            raise OffloadError(f"Could not start background worker: {e}") from e

        try:
            self._request('PING', None, None).result()
        except OffloadError:
            self.close()
            raise
        self.logger.debug("Background worker started")

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def sync(self, catalog: Catalog):
        if self._closed:
            return
        self._inbox.put(json.dumps({'type': 'SYNC_DATA', 'payload': catalog.to_dict()}))

    def run(self, task: OffloadTask, payload: Dict[str, Any]) -> Future:
        task = OffloadTask(task)
        return self._request(task.value, payload, task)

    def _request(self, message_type: str, payload: Any, task: Optional[OffloadTask]) -> Future:
        future: Future = Future()
        if self._closed:
            future.set_exception(OffloadError("Background worker is closed"))
            return future

        correlation_id = uuid.uuid4().hex
        try:
            message = json.dumps({'type': message_type, 'id': correlation_id, 'payload': payload})
        except (TypeError, ValueError) as e:
            future.set_exception(OffloadError(f"Payload is not serializable: {e}"))
            return future

        timer = threading.Timer(self.timeout, self._expire, args=(correlation_id,))
        timer.daemon = True
        with self._lock:
            self._callbacks[correlation_id] = (future, task, timer)
        timer.start()
        self._inbox.put(message)
        return future

    def _on_message(self, raw: str):
        """Deliver a worker reply to its waiting future."""
        message = json.loads(raw)
        correlation_id = message.get('id')

        with self._lock:
            entry = self._callbacks.pop(correlation_id, None)
        if entry is None:
            self.logger.debug(f"Ignoring orphaned {message.get('type')} reply {correlation_id}")
            return

        future, task, timer = entry
        timer.cancel()
        if message.get('type') == 'ERROR':
            future.set_exception(OffloadError(str(message.get('payload'))))
            return
        try:
            future.set_result(decode_result(task, message.get('payload')))
        except (KeyError, TypeError, ValueError) as e:
            future.set_exception(OffloadError(f"Malformed worker reply: {e}"))

    def _expire(self, correlation_id: str):
        with self._lock:
            entry = self._callbacks.pop(correlation_id, None)
        if entry is None:
            return
        future, task, _ = entry
        self.logger.warning(f"Background {task.value if task else 'PING'} timed out after {self.timeout}s")
        future.set_exception(OffloadTimeoutError(f"Background task timed out after {self.timeout}s"))

    def close(self):
        """Stop the worker and fail any pending futures."""
        if self._closed:
            return
        self._closed = True
        self._inbox.put(json.dumps({'type': 'STOP'}))
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.timeout)

        with self._lock:
            pending = list(self._callbacks.values())
            self._callbacks.clear()
        for future, _, timer in pending:
            timer.cancel()
            future.set_exception(OffloadError("Background worker closed"))


def create_coordinator(config) -> OffloadCoordinator:
    """
    Build the coordinator for a configuration.

    The worker-backed implementation is used when ``offload_enabled`` is set
    and the worker starts; otherwise tasks run in-process. A failed start is
    logged and never surfaced to the caller.

    Args:
        config: CastleConfig

    Returns:
        OffloadCoordinator
    """
    if not config.offload_enabled:
        return InProcessCoordinator()

    worker = WorkerCoordinator(timeout=config.offload_timeout)
    try:
        worker.start()
    except OffloadError as e:
        logger.warning(f"Background worker unavailable, running in-process: {e}")
        return InProcessCoordinator()
    return worker
