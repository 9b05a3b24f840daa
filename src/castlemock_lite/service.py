"""
CastleMock Lite Mock Service

The "send request" front end over the match engine: runs matching through
the offload coordinator, applies the response's configured latency, emits a
request log entry and keeps simple metrics.

Features:
- 503 replies for stopped or missing projects, 404 for unknown endpoints
- Fixed and random response latency
- Request log history and metrics
- OpenAPI import through the coordinator
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .catalog.models import LogEntry, MatchResult, Project, Response
from .catalog.store import CatalogStore
from .common import generate_id, now_ms, safe_json_parse
from .config import CastleConfig
from .importer.openapi import project_fields_from_openapi
from .importer.resolver import resolve_endpoint_docs
from .offload.coordinator import InProcessCoordinator, OffloadCoordinator, OffloadTask

STOPPED_BODY = json.dumps({"error": "Server stopped"})
NOT_FOUND_BODY = json.dumps({"error": "Not Found"})
SYSTEM_ERROR_NAME = "System Error"
DEFAULT_RANDOM_DELAY_MAX = 1000


@dataclass
class MockMetrics:
    """Track mock request metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    rejected_requests: int = 0  # project stopped or missing
    fallback_responses: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'rejected_requests': self.rejected_requests,
            'fallback_responses': self.fallback_responses,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'start_time': self.start_time
        }


@dataclass
class MockReply:
    """What a simulated request receives."""

    status_code: int
    headers: Dict[str, str]
    body: str
    matched_strategy: Optional[str] = None
    response_name: Optional[str] = None
    latency_ms: int = 0

    @property
    def matched(self) -> bool:
        return self.matched_strategy is not None

    def json(self) -> Any:
        """Body parsed as JSON, or the raw text if it isn't JSON."""
        return safe_json_parse(self.body, default=self.body)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'statusCode': self.status_code,
            'headers': dict(self.headers),
            'body': self.body,
            'matchedStrategy': self.matched_strategy,
            'responseName': self.response_name,
            'latencyMs': self.latency_ms,
        }


def compute_delay(response: Response, rng: Optional[random.Random] = None) -> int:
    """
    Latency in milliseconds for a response.

    Fixed mode uses ``delay``. Random mode draws uniformly from
    ``[delay_min, max(delay_min, delay_max)]``, with 0 and 1000 standing in
    for unset bounds.
    """
    if response.delay_mode == 'random':
        low = response.delay_min or 0
        high = max(low, response.delay_max or DEFAULT_RANDOM_DELAY_MAX)
        return (rng or random).randint(low, high)
    return max(0, response.delay or 0)


class MockService:
    """
    Resolve simulated requests against a catalog store.

    Example:
        store = CatalogStore(JsonFileStorage('catalog.json'))
        service = MockService(store, create_coordinator(config), config)

        reply = service.send(project.id, 'GET', '/pets')
        print(reply.status_code, reply.json())
        service.close()
    """

    def __init__(
        self,
        store: CatalogStore,
        coordinator: Optional[OffloadCoordinator] = None,
        config: Optional[CastleConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize mock service.

        Args:
            store: Catalog store to serve from
            coordinator: Offload coordinator (in-process if None)
            config: Optional CastleConfig
            sleep: Sleep function used to simulate latency
            rng: Random source for random latency
        """
        self.logger = logging.getLogger("castlemock.mock")
        self.store = store
        self.config = config or CastleConfig()
        self.coordinator = coordinator or InProcessCoordinator()
        self.metrics = MockMetrics()
        self.logs: List[LogEntry] = []
        self._sleep = sleep
        self._rng = rng

        self._detach = self.coordinator.attach(store)
        self._unsubscribe_logs = store.subscribe_to_logs(self._record_log)

    def send(
        self,
        project_id: str,
        method: str,
        path: str,
        body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        apply_delay: Optional[bool] = None
    ) -> MockReply:
        """
        Simulate a request.

        Args:
            project_id: Target project
            method: HTTP method
            path: Request path
            body: Raw request body
            headers: Request headers
            apply_delay: Sleep for the response latency (defaults to
                config.simulate_latency)

        Returns:
            MockReply; 503 if the project is stopped or missing, 404 if no
            endpoint matched

        Raises:
            OffloadError: If background matching failed or timed out
        """
        start = now_ms()
        self.metrics.total_requests += 1
        self.logger.debug(f"Incoming: {method} {path} (project {project_id})")

        result: Optional[MatchResult] = self.coordinator.run(OffloadTask.FIND_MATCH, {
            'projectId': project_id,
            'method': method,
            'path': path,
            'requestBody': body,
            'requestHeaders': headers,
        }).result()

        if result is None:
            project = self.store.get_project(project_id)
            if project is None or not project.is_running:
                self.metrics.rejected_requests += 1
                return self._system_reply(project_id, method, path, body, start, 503, STOPPED_BODY)
            self.metrics.unmatched_requests += 1
            return self._system_reply(project_id, method, path, body, start, 404, NOT_FOUND_BODY)

        self.metrics.matched_requests += 1
        if result.is_fallback:
            self.metrics.fallback_responses += 1

        response = result.response
        latency = compute_delay(response, self._rng)
        if apply_delay is None:
            apply_delay = self.config.simulate_latency
        if apply_delay and latency > 0:
            self._sleep(latency / 1000)

        self.logger.debug(
            f"Matched {method} {path} -> {response.name} ({result.matched_strategy}, {latency}ms)"
        )
        self.store.emit_log(LogEntry(
            id=generate_id(),
            project_id=project_id,
            timestamp=start,
            method=method,
            path=path,
            status=response.status_code,
            duration=now_ms() - start,
            request_body=body,
            response_body=response.body,
            response_name=response.name,
        ))

        return MockReply(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.body,
            matched_strategy=result.matched_strategy,
            response_name=response.name,
            latency_ms=latency,
        )

    def _system_reply(
        self,
        project_id: str,
        method: str,
        path: str,
        body: Optional[str],
        start: int,
        status: int,
        response_body: str
    ) -> MockReply:
        self.logger.info(f"{method} {path} -> {status}")
        self.store.emit_log(LogEntry(
            id=generate_id(),
            project_id=project_id,
            timestamp=start,
            method=method,
            path=path,
            status=status,
            duration=now_ms() - start,
            request_body=body,
            response_body=response_body,
            response_name=SYSTEM_ERROR_NAME,
        ))
        return MockReply(
            status_code=status,
            headers={"Content-Type": "application/json"},
            body=response_body,
            response_name=SYSTEM_ERROR_NAME,
        )

    def _record_log(self, entry: LogEntry):
        self.logs.append(entry)
        limit = self.config.log_history_limit
        if limit > 0 and len(self.logs) > limit:
            del self.logs[:len(self.logs) - limit]

    def logs_for(self, project_id: str) -> List[LogEntry]:
        """Recent log entries for one project, oldest first."""
        return [entry for entry in self.logs if entry.project_id == project_id]

    def import_openapi(self, project_id: str, document: Dict[str, Any]):
        """
        Parse a document through the coordinator and add the result to a project.

        Returns:
            ImportResult as stored

        Raises:
            OffloadError: If parsing failed or timed out
            CatalogError: If the project doesn't exist
        """
        result = self.coordinator.run(OffloadTask.PARSE_SWAGGER, {
            'projectId': project_id,
            'swaggerJson': document,
        }).result()
        return self.store.add_import_result(project_id, result)

    def create_project_from_openapi(
        self,
        document: Dict[str, Any],
        name: Optional[str] = None,
        description: Optional[str] = None
    ) -> Project:
        """Create a project from a document's info section and import its paths."""
        fields = project_fields_from_openapi(document)
        project = self.store.create_project(
            name or fields['name'],
            description if description is not None else fields['description'],
            components=fields['components'],
        )
        self.import_openapi(project.id, document)
        return project

    def resolved_docs(self, endpoint_id: str) -> Optional[Dict[str, Any]]:
        """Endpoint docs with refs expanded against the project's components."""
        endpoint = self.store.get_endpoint(endpoint_id)
        if endpoint is None:
            return None
        project = self.store.get_project(endpoint.project_id)
        return resolve_endpoint_docs(endpoint.docs, project.components if project else None)

    def close(self):
        """Detach from the store and stop the coordinator."""
        self._detach()
        self._unsubscribe_logs()
        self.coordinator.close()
