"""
CastleMock Lite Project Backups

Export a project with its endpoints and responses to a standalone document,
and rebuild one from such a document with every id regenerated.

Backup format:
    {
        "version": 1,
        "type": "castlemock-lite-backup",
        "timestamp": 1700000000000,
        "project": {...},
        "endpoints": [...],
        "responses": [...]
    }
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from ..common import generate_id, now_ms
from ..errors import BackupFormatError
from .models import Catalog, Endpoint, Project, Response

BACKUP_TYPE = 'castlemock-lite-backup'
BACKUP_VERSION = 1


def export_project(catalog: Catalog, project_id: str, timestamp: Optional[int] = None) -> Dict[str, Any]:
    """
    Build a backup document for one project.

    Args:
        catalog: Catalog snapshot
        project_id: Project to export
        timestamp: Export time in epoch ms (defaults to now)

    Returns:
        Backup document

    Raises:
        KeyError: If the project doesn't exist
    """
    project = catalog.get_project(project_id)
    if project is None:
        raise KeyError(f"Project not found: {project_id}")

    endpoints = catalog.endpoints_for(project_id)
    endpoint_ids = {e.id for e in endpoints}
    responses = [r for r in catalog.responses if r.endpoint_id in endpoint_ids]

    return {
        'version': BACKUP_VERSION,
        'type': BACKUP_TYPE,
        'timestamp': timestamp if timestamp is not None else now_ms(),
        'project': project.to_dict(),
        'endpoints': [e.to_dict() for e in endpoints],
        'responses': [r.to_dict() for r in responses],
    }


def validate_backup(document: Any):
    """
    Check the backup type tag and project section.

    Raises:
        BackupFormatError: If the document isn't a CastleMock Lite backup
    """
    if not isinstance(document, dict):
        raise BackupFormatError("Invalid backup file format: expected a JSON object")
    if document.get('type') != BACKUP_TYPE:
        raise BackupFormatError(f"Invalid backup file format: type must be '{BACKUP_TYPE}'")
    if not isinstance(document.get('project'), dict):
        raise BackupFormatError("Invalid backup file format: missing project")


def rebuild_from_backup(
    document: Dict[str, Any],
    id_factory: Callable[[], str] = generate_id,
    name: Optional[str] = None,
    description: Optional[str] = None
) -> Tuple[Project, List[Endpoint], List[Response]]:
    """
    Recreate a project's records from a backup with fresh ids.

    Endpoint and response ids are remapped through lookup tables so
    ``projectId``, ``endpointId`` and ``defaultResponseId`` keep pointing at
    the right records. Responses whose endpoint isn't in the backup are
    dropped. The project comes back stopped.

    Args:
        document: Backup document
        id_factory: Callable producing fresh ids
        name: Optional project name override
        description: Optional project description override

    Returns:
        Tuple of (project, endpoints, responses)

    Raises:
        BackupFormatError: If the document is not a valid backup
    """
    validate_backup(document)

    try:
        source = document['project']
        project_id = id_factory()
        project = Project(
            id=project_id,
            name=name if name is not None else source.get('name', ''),
            description=description if description is not None else (source.get('description') or ''),
            base_url=f"/mock/{id_factory()}",
            status='stopped',
            components=source.get('components'),
        )

        endpoint_ids: Dict[str, str] = {}
        endpoints: List[Endpoint] = []
        old_defaults: Dict[str, Optional[str]] = {}
        for data in document.get('endpoints') or []:
            endpoint = Endpoint.from_dict({**data, 'projectId': project_id})
            new_id = id_factory()
            endpoint_ids[endpoint.id] = new_id
            old_defaults[new_id] = endpoint.default_response_id
            endpoint.id = new_id
            endpoints.append(endpoint)

        response_ids: Dict[str, str] = {}
        responses: List[Response] = []
        for data in document.get('responses') or []:
            response = Response.from_dict(data)
            if response.endpoint_id not in endpoint_ids:
                continue
            new_id = id_factory()
            response_ids[response.id] = new_id
            response.id = new_id
            response.endpoint_id = endpoint_ids[response.endpoint_id]
            responses.append(response)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise BackupFormatError(f"Invalid backup file format: {e}") from e

    for endpoint in endpoints:
        endpoint.default_response_id = response_ids.get(old_defaults[endpoint.id])

    return project, endpoints, responses
