"""
CastleMock Lite Catalog Store

Single writer of the canonical catalog. Every mutation is persisted through
the storage backend and then announced synchronously to subscribers, which
is how the offload coordinator keeps its background copy current.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from ..common import generate_id
from ..errors import CatalogError
from .backup import export_project, rebuild_from_backup
from .models import (
    Catalog,
    Endpoint,
    ImportResult,
    LogEntry,
    Project,
    Response,
    ResponseStrategy,
)
from .storage import MemoryStorage, StorageBackend

PROJECT_STATUSES = ('running', 'stopped')

ChangeListener = Callable[[], None]
LogListener = Callable[[LogEntry], None]


class CatalogStore:
    """
    Mutable collections of projects, endpoints and responses.

    Example:
        store = CatalogStore(JsonFileStorage('catalog.json'))
        project = store.create_project('Petstore', 'Demo API')
        unsubscribe = store.subscribe(lambda: print('catalog changed'))
        store.update_project_status(project.id, 'running')
        unsubscribe()
    """

    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        id_factory: Callable[[], str] = generate_id
    ):
        """
        Initialize the store and load any persisted catalog.

        Args:
            storage: Persistence backend (defaults to in-memory storage)
            id_factory: Callable producing fresh record ids
        """
        self.logger = logging.getLogger("castlemock.store")
        self.storage = storage or MemoryStorage()
        self.id_factory = id_factory
        self._listeners: List[ChangeListener] = []
        self._log_listeners: List[LogListener] = []

        self._data = Catalog.from_dict(self.storage.load())
        self.logger.debug(
            f"Loaded catalog: {len(self._data.projects)} projects, "
            f"{len(self._data.endpoints)} endpoints, {len(self._data.responses)} responses"
        )

    # --- Subscriptions ---

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a callback run after every catalog mutation.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def subscribe_to_logs(self, listener: LogListener) -> Callable[[], None]:
        """Register a callback for emitted request log entries."""
        self._log_listeners.append(listener)

        def unsubscribe():
            if listener in self._log_listeners:
                self._log_listeners.remove(listener)

        return unsubscribe

    def emit_log(self, entry: LogEntry):
        for listener in list(self._log_listeners):
            listener(entry)

    def _commit(self):
        """Persist the catalog, then notify subscribers."""
        try:
            self.storage.save(self._data.to_dict())
        except OSError as e:
            self.logger.error(f"Failed to persist catalog: {e}")
        for listener in list(self._listeners):
            listener()

    def snapshot(self) -> Catalog:
        """Deep copy of the current catalog."""
        return Catalog.from_dict(self._data.to_dict())

    # --- Projects ---

    def get_projects(self) -> List[Project]:
        return copy.deepcopy(self._data.projects)

    def get_project(self, project_id: str) -> Optional[Project]:
        project = self._data.get_project(project_id)
        return copy.deepcopy(project) if project else None

    def create_project(
        self,
        name: str,
        description: str = "",
        components: Optional[Dict[str, Any]] = None
    ) -> Project:
        project = Project(
            id=self.id_factory(),
            name=name,
            description=description,
            base_url=f"/mock/{self.id_factory()}",
            status='stopped',
            components=components,
        )
        self._data.projects.append(project)
        self.logger.info(f"Created project {project.id} ({name})")
        self._commit()
        return copy.deepcopy(project)

    def update_project(self, project: Project) -> bool:
        """Replace a project by id. Returns False if it doesn't exist."""
        for index, existing in enumerate(self._data.projects):
            if existing.id == project.id:
                self._data.projects[index] = copy.deepcopy(project)
                self._commit()
                return True
        return False

    def update_project_status(self, project_id: str, status: str) -> bool:
        """
        Start or stop a project's mock server.

        Raises:
            ValueError: If status is not 'running' or 'stopped'
        """
        if status not in PROJECT_STATUSES:
            raise ValueError(f"Invalid project status: {status}")
        project = self._data.get_project(project_id)
        if project is None:
            return False
        project.status = status
        self.logger.info(f"Project {project_id} is now {status}")
        self._commit()
        return True

    def delete_project(self, project_id: str) -> bool:
        """Delete a project with its endpoints and their responses."""
        if self._data.get_project(project_id) is None:
            return False
        endpoint_ids = {e.id for e in self._data.endpoints if e.project_id == project_id}
        self._data.projects = [p for p in self._data.projects if p.id != project_id]
        self._data.endpoints = [e for e in self._data.endpoints if e.project_id != project_id]
        self._data.responses = [r for r in self._data.responses if r.endpoint_id not in endpoint_ids]
        self.logger.info(f"Deleted project {project_id} and {len(endpoint_ids)} endpoints")
        self._commit()
        return True

    # --- Endpoints ---

    def get_endpoints(self, project_id: str) -> List[Endpoint]:
        return copy.deepcopy(self._data.endpoints_for(project_id))

    def get_endpoint(self, endpoint_id: str) -> Optional[Endpoint]:
        endpoint = self._data.get_endpoint(endpoint_id)
        return copy.deepcopy(endpoint) if endpoint else None

    def create_endpoint(
        self,
        project_id: str,
        method: str,
        path: str,
        name: str,
        response_strategy: ResponseStrategy = ResponseStrategy.DEFAULT
    ) -> Endpoint:
        """
        Create a hand-written endpoint.

        Raises:
            CatalogError: If the project doesn't exist
        """
        if self._data.get_project(project_id) is None:
            raise CatalogError(f"Cannot create endpoint: project {project_id} not found")

        endpoint = Endpoint(
            id=self.id_factory(),
            project_id=project_id,
            method=method.upper(),
            path=path,
            name=name,
            response_strategy=response_strategy,
            docs={'tags': ['Custom']},
        )
        self._data.endpoints.append(endpoint)
        self._commit()
        return copy.deepcopy(endpoint)

    def update_endpoint(self, endpoint: Endpoint) -> bool:
        """
        Replace an endpoint by id. Returns False if it doesn't exist.

        Raises:
            CatalogError: If its project doesn't exist
        """
        if self._data.get_project(endpoint.project_id) is None:
            raise CatalogError(f"Cannot update endpoint: project {endpoint.project_id} not found")
        for index, existing in enumerate(self._data.endpoints):
            if existing.id == endpoint.id:
                self._data.endpoints[index] = copy.deepcopy(endpoint)
                self._commit()
                return True
        return False

    def delete_endpoint(self, endpoint_id: str) -> bool:
        """Delete an endpoint and its responses."""
        if self._data.get_endpoint(endpoint_id) is None:
            return False
        self._data.endpoints = [e for e in self._data.endpoints if e.id != endpoint_id]
        self._data.responses = [r for r in self._data.responses if r.endpoint_id != endpoint_id]
        self._commit()
        return True

    # --- Responses ---

    def get_responses(self, endpoint_id: str) -> List[Response]:
        return copy.deepcopy(self._data.responses_for(endpoint_id))

    def get_response(self, response_id: str) -> Optional[Response]:
        response = self._data.get_response(response_id)
        return copy.deepcopy(response) if response else None

    def create_response(
        self,
        endpoint_id: str,
        name: str,
        body: str,
        status_code: int = 200
    ) -> Response:
        """
        Create a response; the first one becomes the endpoint's default.

        Raises:
            CatalogError: If the endpoint doesn't exist
        """
        endpoint = self._data.get_endpoint(endpoint_id)
        if endpoint is None:
            raise CatalogError(f"Cannot create response: endpoint {endpoint_id} not found")

        response = Response(
            id=self.id_factory(),
            endpoint_id=endpoint_id,
            name=name,
            status_code=status_code,
            body=body,
            delay=0,
            delay_mode='fixed',
            delay_min=100,
            delay_max=500,
        )
        self._data.responses.append(response)
        if not endpoint.default_response_id:
            endpoint.default_response_id = response.id
        self._commit()
        return copy.deepcopy(response)

    def update_response(self, response: Response) -> bool:
        """
        Replace a response by id. Returns False if it doesn't exist.

        Raises:
            CatalogError: If its endpoint doesn't exist
        """
        if self._data.get_endpoint(response.endpoint_id) is None:
            raise CatalogError(f"Cannot update response: endpoint {response.endpoint_id} not found")
        for index, existing in enumerate(self._data.responses):
            if existing.id == response.id:
                self._data.responses[index] = copy.deepcopy(response)
                self._commit()
                return True
        return False

    def delete_response(self, response_id: str) -> bool:
        """
        Delete a response.

        An endpoint whose default pointed at it keeps the stale id; matching
        then falls back to the endpoint's first remaining response.
        """
        if self._data.get_response(response_id) is None:
            return False
        self._data.responses = [r for r in self._data.responses if r.id != response_id]
        self._commit()
        return True

    def set_default_response(self, endpoint_id: str, response_id: str) -> bool:
        """Designate one of an endpoint's responses as its default."""
        endpoint = self._data.get_endpoint(endpoint_id)
        response = self._data.get_response(response_id)
        if endpoint is None or response is None or response.endpoint_id != endpoint_id:
            return False
        endpoint.default_response_id = response_id
        self._commit()
        return True

    # --- Import / export ---

    def add_import_result(self, project_id: str, result: ImportResult) -> ImportResult:
        """
        Append parsed endpoints and responses to a project.

        Raises:
            CatalogError: If the project doesn't exist
        """
        if self._data.get_project(project_id) is None:
            raise CatalogError(f"Cannot import into missing project {project_id}")

        endpoints = [copy.deepcopy(e) for e in result.endpoints]
        for endpoint in endpoints:
            endpoint.project_id = project_id
        endpoint_ids = {e.id for e in endpoints}
        responses = [copy.deepcopy(r) for r in result.responses if r.endpoint_id in endpoint_ids]

        self._data.endpoints.extend(endpoints)
        self._data.responses.extend(responses)
        self.logger.info(f"Imported {len(endpoints)} endpoints into project {project_id}")
        self._commit()
        return ImportResult(endpoints=copy.deepcopy(endpoints), responses=copy.deepcopy(responses))

    def import_openapi(self, project_id: str, document: Dict[str, Any]) -> ImportResult:
        """Parse an OpenAPI document in-process and add it to a project."""
        from ..importer.openapi import parse_openapi

        result = parse_openapi(project_id, document, id_factory=self.id_factory)
        return self.add_import_result(project_id, result)

    def create_project_from_openapi(
        self,
        document: Dict[str, Any],
        name: Optional[str] = None,
        description: Optional[str] = None
    ) -> Project:
        """Create a project named after the document's info section and import it."""
        from ..importer.openapi import project_fields_from_openapi

        fields = project_fields_from_openapi(document)
        project = self.create_project(
            name or fields['name'],
            description if description is not None else fields['description'],
            components=fields['components'],
        )
        self.import_openapi(project.id, document)
        return project

    def export_project(self, project_id: str) -> Dict[str, Any]:
        """
        Build a backup document for a project.

        Raises:
            KeyError: If the project doesn't exist
        """
        return export_project(self._data, project_id)

    def import_backup(
        self,
        document: Dict[str, Any],
        name: Optional[str] = None,
        description: Optional[str] = None
    ) -> Project:
        """
        Restore a project from a backup document under fresh ids.

        Raises:
            BackupFormatError: If the document is not a valid backup
        """
        project, endpoints, responses = rebuild_from_backup(
            document, id_factory=self.id_factory, name=name, description=description
        )
        self._data.projects.append(project)
        self._data.endpoints.extend(endpoints)
        self._data.responses.extend(responses)
        self.logger.info(f"Restored project {project.id} with {len(endpoints)} endpoints from backup")
        self._commit()
        return copy.deepcopy(project)
