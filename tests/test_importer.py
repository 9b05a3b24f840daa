"""
Tests for CastleMock Lite OpenAPI Importer

Tests endpoint synthesis including:
- Name fallback chain
- 2xx response selection and example bodies
- Per-path failure isolation
- Swagger 2.0 documents
- Project fields from the info section
"""

import itertools
import json

import pytest

from castlemock_lite.catalog.models import ResponseStrategy
from castlemock_lite.importer.openapi import (
    build_example_body,
    parse_openapi,
    project_fields_from_openapi,
)


@pytest.fixture
def id_factory():
    """Deterministic id generator."""
    counter = itertools.count(1)
    return lambda: f"id{next(counter)}"


@pytest.fixture
def petstore():
    """Small OpenAPI 3 document."""
    return {
        'openapi': '3.0.0',
        'info': {'title': 'Petstore', 'description': 'Demo API'},
        'paths': {
            '/pets': {
                'get': {
                    'summary': 'List pets',
                    'tags': ['pets'],
                    'responses': {
                        '200': {
                            'description': 'OK',
                            'content': {
                                'application/json': {
                                    'schema': {
                                        'type': 'array',
                                        'items': {'$ref': '#/components/schemas/Pet'}
                                    }
                                }
                            }
                        }
                    }
                },
                'post': {
                    'operationId': 'createPet',
                    'responses': {
                        '400': {'description': 'Bad request'},
                        '201': {
                            'description': 'Created',
                            'content': {
                                'application/json': {'example': {'id': 7}}
                            }
                        }
                    }
                },
                'parameters': [{'name': 'limit', 'in': 'query'}],
            },
            '/pets/{id}': {
                'delete': {
                    'responses': {'404': {'description': 'Not found'}}
                }
            },
        },
        'components': {
            'schemas': {
                'Pet': {
                    'type': 'object',
                    'properties': {
                        'id': {'type': 'integer'},
                        'name': {'type': 'string', 'example': 'Rex'},
                    }
                }
            }
        }
    }


class TestParseOpenapi:
    """Test parse_openapi."""

    def test_one_endpoint_per_operation(self, petstore, id_factory):
        """Test non-method keys like parameters are skipped."""
        result = parse_openapi('p1', petstore, id_factory)

        pairs = [(e.method, e.path) for e in result.endpoints]
        assert pairs == [('GET', '/pets'), ('POST', '/pets'), ('DELETE', '/pets/{id}')]
        assert len(result.responses) == 3

    def test_endpoint_fields(self, petstore, id_factory):
        """Test endpoint records are linked and default to DEFAULT strategy."""
        result = parse_openapi('p1', petstore, id_factory)

        for endpoint, response in zip(result.endpoints, result.responses):
            assert endpoint.project_id == 'p1'
            assert endpoint.response_strategy == ResponseStrategy.DEFAULT
            assert endpoint.default_response_id == response.id
            assert response.endpoint_id == endpoint.id

    def test_name_fallback_chain(self, petstore, id_factory):
        """Test summary, then operationId, then 'METHOD path'."""
        names = [e.name for e in parse_openapi('p1', petstore, id_factory).endpoints]

        assert names == ['List pets', 'createPet', 'DELETE /pets/{id}']

    def test_example_from_schema(self, petstore, id_factory):
        """Test the body is generated from the resolved 2xx schema."""
        response = parse_openapi('p1', petstore, id_factory).responses[0]

        assert response.status_code == 200
        assert response.name == '200 Response'
        assert json.loads(response.body) == [{'id': 0, 'name': 'Rex'}]
        assert response.headers == {'Content-Type': 'application/json'}

    def test_first_2xx_response_chosen(self, petstore, id_factory):
        """Test a 201 is found after a 400 and its example is used."""
        response = parse_openapi('p1', petstore, id_factory).responses[1]

        assert response.status_code == 201
        assert response.name == '201 Response'
        assert json.loads(response.body) == {'id': 7}

    def test_no_success_response(self, petstore, id_factory):
        """Test operations without 2xx get an empty 200 default."""
        response = parse_openapi('p1', petstore, id_factory).responses[2]

        assert response.status_code == 200
        assert response.name == 'Default 200'
        assert response.body == '{}'

    def test_docs_stored_unresolved(self, petstore, id_factory):
        """Test endpoint docs keep their $ref pointers."""
        endpoint = parse_openapi('p1', petstore, id_factory).endpoints[0]

        schema = endpoint.docs['responses']['200']['content']['application/json']['schema']
        assert schema['items'] == {'$ref': '#/components/schemas/Pet'}
        assert endpoint.docs['tags'] == ['pets']

    def test_bad_path_is_isolated(self, petstore, id_factory):
        """Test one broken path item doesn't stop the rest."""
        petstore['paths'] = {'/broken': 'not an object', **petstore['paths']}

        result = parse_openapi('p1', petstore, id_factory)

        assert len(result.endpoints) == 3
        assert all(e.path != '/broken' for e in result.endpoints)

    def test_missing_paths(self, id_factory):
        """Test a document without paths imports nothing."""
        result = parse_openapi('p1', {'openapi': '3.0.0'}, id_factory)

        assert result.endpoints == []
        assert result.responses == []

    def test_swagger2_schema(self, id_factory):
        """Test Swagger 2.0 response schemas and definitions."""
        document = {
            'swagger': '2.0',
            'paths': {
                '/users': {
                    'get': {
                        'responses': {
                            '200': {'schema': {'$ref': '#/definitions/User'}}
                        }
                    }
                }
            },
            'definitions': {
                'User': {'type': 'object', 'properties': {'email': {'type': 'string', 'format': 'email'}}}
            }
        }

        response = parse_openapi('p1', document, id_factory).responses[0]

        assert json.loads(response.body) == {'email': 'user@example.com'}


class TestBuildExampleBody:
    """Test build_example_body."""

    def test_non_json_content(self):
        """Test non-JSON content gives an empty object body."""
        operation = {'responses': {'200': {'content': {'text/plain': {'example': 'hi'}}}}}

        assert build_example_body(operation, {}) == ('200', '{}')


class TestProjectFields:
    """Test project_fields_from_openapi."""

    def test_info_fields(self, petstore):
        fields = project_fields_from_openapi(petstore)

        assert fields['name'] == 'Petstore'
        assert fields['description'] == 'Demo API'
        assert 'schemas' in fields['components']

    def test_defaults(self):
        """Test a document without info gets a generic name."""
        fields = project_fields_from_openapi({})

        assert fields == {'name': 'Imported API', 'description': '', 'components': None}
