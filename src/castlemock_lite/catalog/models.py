"""
CastleMock Lite Catalog Models

Dataclasses for projects, endpoints, responses and request log entries.

Attributes are snake_case in Python; ``to_dict``/``from_dict`` convert to and
from the camelCase form used by persisted catalogs, backups and worker
messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

FALLBACK_STRATEGY_LABEL = "FALLBACK (Default)"
DEFAULT_HEADERS = {"Content-Type": "application/json"}


class ResponseStrategy(str, Enum):
    """Policy an endpoint uses to choose among its responses."""

    DEFAULT = "DEFAULT"
    RANDOM = "RANDOM"
    QUERY_MATCH = "QUERY_MATCH"
    HEADER_MATCH = "HEADER_MATCH"

    @classmethod
    def parse(cls, value: Any) -> 'ResponseStrategy':
        """Parse a stored strategy name, falling back to DEFAULT."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.DEFAULT


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


@dataclass
class Project:
    """A mock API project."""

    id: str
    name: str
    description: str = ""
    base_url: str = ""
    status: str = "stopped"  # running / stopped
    components: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        return self.status == "running"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'baseUrl': self.base_url,
            'status': self.status,
            'components': self.components,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Project':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            description=data.get('description') or '',
            base_url=data.get('baseUrl', ''),
            status=data.get('status', 'stopped'),
            components=data.get('components'),
        )


@dataclass
class Endpoint:
    """An HTTP method + path inside a project."""

    id: str
    project_id: str
    method: str
    path: str
    name: str
    description: Optional[str] = None
    response_strategy: ResponseStrategy = ResponseStrategy.DEFAULT
    default_response_id: Optional[str] = None
    docs: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'projectId': self.project_id,
            'method': self.method,
            'path': self.path,
            'name': self.name,
            'description': self.description,
            'responseStrategy': self.response_strategy.value,
            'defaultResponseId': self.default_response_id,
            'docs': self.docs,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Endpoint':
        return cls(
            id=data['id'],
            project_id=data['projectId'],
            method=data.get('method', 'GET'),
            path=data.get('path', '/'),
            name=data.get('name', ''),
            description=data.get('description'),
            response_strategy=ResponseStrategy.parse(data.get('responseStrategy', 'DEFAULT')),
            default_response_id=data.get('defaultResponseId'),
            docs=data.get('docs'),
        )


@dataclass
class Response:
    """A candidate response served for an endpoint."""

    id: str
    endpoint_id: str
    name: str
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    body: str = "{}"
    delay: int = 0
    delay_mode: str = "fixed"  # fixed / random
    delay_min: Optional[int] = None
    delay_max: Optional[int] = None
    match_type: Optional[str] = None  # json / regex / body_json / header
    match_expression: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'endpointId': self.endpoint_id,
            'name': self.name,
            'statusCode': self.status_code,
            'headers': dict(self.headers),
            'body': self.body,
            'delay': self.delay,
            'delayMode': self.delay_mode,
            'delayMin': self.delay_min,
            'delayMax': self.delay_max,
            'matchType': self.match_type,
            'matchExpression': self.match_expression,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Response':
        return cls(
            id=data['id'],
            endpoint_id=data['endpointId'],
            name=data.get('name', ''),
            status_code=int(data.get('statusCode', 200)),
            headers=dict(data.get('headers') or {}),
            body=data.get('body', ''),
            delay=int(data.get('delay') or 0),
            delay_mode=data.get('delayMode') or 'fixed',
            delay_min=_optional_int(data.get('delayMin')),
            delay_max=_optional_int(data.get('delayMax')),
            match_type=data.get('matchType'),
            match_expression=data.get('matchExpression'),
        )


@dataclass
class LogEntry:
    """One resolved (or rejected) mock request."""

    id: str
    project_id: str
    timestamp: int
    method: str
    path: str
    status: int
    duration: int = 0
    request_body: Optional[str] = None
    response_body: Optional[str] = None
    response_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'projectId': self.project_id,
            'timestamp': self.timestamp,
            'method': self.method,
            'path': self.path,
            'status': self.status,
            'duration': self.duration,
            'requestBody': self.request_body,
            'responseBody': self.response_body,
            'responseName': self.response_name,
        })


@dataclass
class Catalog:
    """
    Snapshot of every project, endpoint and response.

    This is both the persisted document and the input of the match engine
    and importer, which treat it as read-only.
    """

    projects: List[Project] = field(default_factory=list)
    endpoints: List[Endpoint] = field(default_factory=list)
    responses: List[Response] = field(default_factory=list)

    def get_project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def get_endpoint(self, endpoint_id: str) -> Optional[Endpoint]:
        return next((e for e in self.endpoints if e.id == endpoint_id), None)

    def get_response(self, response_id: str) -> Optional[Response]:
        return next((r for r in self.responses if r.id == response_id), None)

    def endpoints_for(self, project_id: str) -> List[Endpoint]:
        return [e for e in self.endpoints if e.project_id == project_id]

    def responses_for(self, endpoint_id: str) -> List[Response]:
        return [r for r in self.responses if r.endpoint_id == endpoint_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'projects': [p.to_dict() for p in self.projects],
            'endpoints': [e.to_dict() for e in self.endpoints],
            'responses': [r.to_dict() for r in self.responses],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Catalog':
        data = data or {}
        return cls(
            projects=[Project.from_dict(p) for p in data.get('projects', [])],
            endpoints=[Endpoint.from_dict(e) for e in data.get('endpoints', [])],
            responses=[Response.from_dict(r) for r in data.get('responses', [])],
        )


@dataclass
class MatchResult:
    """The response selected for a request and how it was chosen."""

    endpoint: Endpoint
    response: Response
    matched_strategy: str

    @property
    def is_fallback(self) -> bool:
        return self.matched_strategy == FALLBACK_STRATEGY_LABEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            'endpoint': self.endpoint.to_dict(),
            'response': self.response.to_dict(),
            'matchedStrategy': self.matched_strategy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchResult':
        return cls(
            endpoint=Endpoint.from_dict(data['endpoint']),
            response=Response.from_dict(data['response']),
            matched_strategy=data['matchedStrategy'],
        )


@dataclass
class ImportResult:
    """Endpoints and responses synthesized from an OpenAPI document."""

    endpoints: List[Endpoint] = field(default_factory=list)
    responses: List[Response] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'endpoints': [e.to_dict() for e in self.endpoints],
            'responses': [r.to_dict() for r in self.responses],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImportResult':
        return cls(
            endpoints=[Endpoint.from_dict(e) for e in data.get('endpoints', [])],
            responses=[Response.from_dict(r) for r in data.get('responses', [])],
        )
