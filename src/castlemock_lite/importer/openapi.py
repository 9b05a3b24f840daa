"""
CastleMock Lite OpenAPI Importer

Turns an OpenAPI 3.x or Swagger 2.0 document into endpoint and response
records: one endpoint per path/method, each with a single default response
whose body is an example synthesized from the first 2xx response.

Endpoint docs are stored unresolved. Only the chosen 2xx response is
dereferenced, and only to build the example body.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple

from ..catalog.models import (
    DEFAULT_HEADERS,
    Endpoint,
    ImportResult,
    Response,
    ResponseStrategy,
)
from ..common import generate_id
from .examples import generate_example
from .resolver import resolve_refs

logger = logging.getLogger("castlemock.importer")

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')
JSON_CONTENT_TYPE = 'application/json'


def _success_key(responses: Any) -> Optional[str]:
    """First response status key starting with '2', as text."""
    if not isinstance(responses, dict):
        return None
    for key in responses:
        if str(key).startswith('2'):
            return key
    return None


def _status_from_key(key: Any) -> int:
    match = re.match(r'\d+', str(key))
    return int(match.group()) if match else 200


def build_example_body(operation: Dict[str, Any], document: Dict[str, Any]) -> Tuple[Optional[Any], str]:
    """
    Build the mock body for an operation.

    Args:
        operation: OpenAPI operation object
        document: Whole document, used as the ``$ref`` root

    Returns:
        Tuple of (2xx response key or None, JSON body text). The body is
        ``"{}"`` when there is nothing to generate from or generation fails.
    """
    responses = operation.get('responses') or {}
    key = _success_key(responses)
    if key is None:
        return None, '{}'

    try:
        success = resolve_refs(responses[key], document)
        if not isinstance(success, dict):
            return key, '{}'

        content = success.get('content')
        if isinstance(content, dict):
            json_content = content.get(JSON_CONTENT_TYPE)
            if not isinstance(json_content, dict):
                return key, '{}'
            if json_content.get('example') is not None:
                value = json_content['example']
            elif json_content.get('schema') is not None:
                value = generate_example(json_content['schema'])
            else:
                return key, '{}'
        else:
            # Swagger 2.0 keeps schema and examples on the response itself
            examples = success.get('examples') or {}
            if isinstance(examples, dict) and examples.get(JSON_CONTENT_TYPE) is not None:
                value = examples[JSON_CONTENT_TYPE]
            elif success.get('schema') is not None:
                value = generate_example(success['schema'])
            else:
                return key, '{}'

        return key, json.dumps(value, indent=2, ensure_ascii=False)
    except Exception as e:
        logger.warning(f"Failed to generate example body: {e}")
        return key, '{}'


def _build_docs(operation: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'summary': operation.get('summary'),
        'description': operation.get('description'),
        'tags': operation.get('tags') or [],
        'parameters': operation.get('parameters'),
        'requestBody': operation.get('requestBody'),
        'responses': operation.get('responses'),
    }


def parse_openapi(
    project_id: str,
    document: Dict[str, Any],
    id_factory: Callable[[], str] = generate_id
) -> ImportResult:
    """
    Synthesize endpoints and default responses from an OpenAPI document.

    A path that fails to import is logged and skipped; the rest of the
    document still imports.

    Args:
        project_id: Project the endpoints belong to
        document: Parsed OpenAPI/Swagger document
        id_factory: Callable producing fresh record ids

    Returns:
        ImportResult with one endpoint and one response per operation

    Example:
        result = parse_openapi(project.id, load_document('petstore.yaml'))
        print(f"{len(result.endpoints)} endpoints imported")
    """
    result = ImportResult()
    paths = document.get('paths') or {}
    if not isinstance(paths, dict):
        logger.warning("Document 'paths' is not a mapping; nothing to import")
        return result

    for path, methods in paths.items():
        try:
            endpoints = []
            responses = []
            for method_key, operation in methods.items():
                if str(method_key).lower() not in HTTP_METHODS:
                    continue
                operation = operation or {}
                method = str(method_key).upper()

                endpoint = Endpoint(
                    id=id_factory(),
                    project_id=project_id,
                    method=method,
                    path=path,
                    name=operation.get('summary') or operation.get('operationId') or f"{method} {path}",
                    description=operation.get('description'),
                    response_strategy=ResponseStrategy.DEFAULT,
                    docs=_build_docs(operation),
                )

                key, body = build_example_body(operation, document)
                response = Response(
                    id=id_factory(),
                    endpoint_id=endpoint.id,
                    name=f"{key} Response" if key is not None else "Default 200",
                    status_code=_status_from_key(key) if key is not None else 200,
                    headers=dict(DEFAULT_HEADERS),
                    body=body,
                    delay=0,
                    delay_mode='fixed',
                )
                endpoint.default_response_id = response.id

                endpoints.append(endpoint)
                responses.append(response)

            result.endpoints.extend(endpoints)
            result.responses.extend(responses)
        except Exception:
            logger.exception(f"Failed to process path: {path}")

    logger.info(f"Parsed {len(result.endpoints)} endpoints from OpenAPI document")
    return result


def project_fields_from_openapi(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract project name, description and components from a document.

    Returns:
        Dict with 'name', 'description' and 'components' keys
    """
    info = document.get('info') or {}
    return {
        'name': info.get('title') or 'Imported API',
        'description': info.get('description') or '',
        'components': document.get('components'),
    }
