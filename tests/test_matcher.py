"""
Tests for CastleMock Lite Match Engine

Tests response selection including:
- Project and endpoint resolution
- DEFAULT, RANDOM, HEADER_MATCH and QUERY_MATCH strategies
- Fallback to the default or first response
- Catalog immutability
"""

import copy
import random

import pytest

from castlemock_lite.catalog.models import (
    FALLBACK_STRATEGY_LABEL,
    Catalog,
    Endpoint,
    Project,
    Response,
    ResponseStrategy,
)
from castlemock_lite.mock.matcher import find_endpoint, find_match, select_response


@pytest.fixture
def catalog():
    """Running project with one endpoint and three responses."""
    return Catalog(
        projects=[Project(id='p1', name='Shop', status='running')],
        endpoints=[
            Endpoint(id='e1', project_id='p1', method='POST', path='/users', name='Create user',
                     default_response_id='r2'),
        ],
        responses=[
            Response(id='r1', endpoint_id='e1', name='Admin', status_code=201,
                     body='{"role": "admin"}', match_type='json',
                     match_expression="role == 'admin'"),
            Response(id='r2', endpoint_id='e1', name='Created', status_code=201, body='{}'),
            Response(id='r3', endpoint_id='e1', name='Premium', status_code=202,
                     match_type='regex', match_expression='premium'),
        ]
    )


def _set_strategy(catalog, strategy):
    catalog.endpoints[0].response_strategy = strategy


class TestFindMatch:
    """Test project and endpoint resolution."""

    def test_default_strategy_serves_default(self, catalog):
        result = find_match(catalog, 'p1', 'POST', '/users')

        assert result.response.id == 'r2'
        assert result.matched_strategy == FALLBACK_STRATEGY_LABEL
        assert result.is_fallback

    def test_stopped_project(self, catalog):
        """Test stopped projects never match."""
        catalog.projects[0].status = 'stopped'

        assert find_match(catalog, 'p1', 'POST', '/users') is None

    def test_missing_project(self, catalog):
        assert find_match(catalog, 'nope', 'POST', '/users') is None

    def test_method_and_path_exact(self, catalog):
        """Test method and path must match exactly."""
        assert find_match(catalog, 'p1', 'GET', '/users') is None
        assert find_match(catalog, 'p1', 'post', '/users') is None
        assert find_match(catalog, 'p1', 'POST', '/users/') is None

    def test_endpoint_without_responses(self, catalog):
        catalog.responses = []

        assert find_match(catalog, 'p1', 'POST', '/users') is None

    def test_catalog_not_mutated(self, catalog):
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)
        original = copy.deepcopy(catalog)

        find_match(catalog, 'p1', 'POST', '/users', body='{"role": "admin"}')

        assert catalog == original


class TestFindEndpoint:
    """Test find_endpoint."""

    def test_last_created_wins(self, catalog):
        """Test duplicates resolve to the most recently added endpoint."""
        catalog.endpoints.append(
            Endpoint(id='e2', project_id='p1', method='POST', path='/users', name='Newer')
        )

        assert find_endpoint(catalog, 'p1', 'POST', '/users').id == 'e2'

    def test_scoped_to_project(self, catalog):
        catalog.endpoints.append(
            Endpoint(id='e9', project_id='p2', method='POST', path='/users', name='Other')
        )

        assert find_endpoint(catalog, 'p1', 'POST', '/users').id == 'e1'


class TestStrategies:
    """Test strategy dispatch in select_response."""

    def test_query_match_json(self, catalog):
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)

        result = find_match(catalog, 'p1', 'POST', '/users', body='{"role": "admin"}')

        assert result.response.id == 'r1'
        assert result.matched_strategy == 'QUERY_MATCH'

    def test_query_match_regex(self, catalog):
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)

        result = find_match(catalog, 'p1', 'POST', '/users', body='plan=premium')

        assert result.response.id == 'r3'

    def test_query_match_first_in_order(self, catalog):
        """Test the first matching response wins."""
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)

        result = find_match(catalog, 'p1', 'POST', '/users', body='{"role": "admin", "plan": "premium"}')

        assert result.response.id == 'r1'

    def test_query_match_no_body_falls_back(self, catalog):
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)

        result = find_match(catalog, 'p1', 'POST', '/users', body='')

        assert result.response.id == 'r2'
        assert result.is_fallback

    def test_query_match_no_rule_matches(self, catalog):
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)

        result = find_match(catalog, 'p1', 'POST', '/users', body='{"role": "guest"}')

        assert result.response.id == 'r2'
        assert result.matched_strategy == FALLBACK_STRATEGY_LABEL

    def test_header_match(self, catalog):
        """Test header rules match names case-insensitively."""
        _set_strategy(catalog, ResponseStrategy.HEADER_MATCH)
        catalog.responses[2].match_expression = '{"key": "X-Plan", "value": "premium"}'

        result = find_match(catalog, 'p1', 'POST', '/users', headers={'x-plan': 'premium'})

        assert result.response.id == 'r3'
        assert result.matched_strategy == 'HEADER_MATCH'

    def test_header_match_without_headers(self, catalog):
        _set_strategy(catalog, ResponseStrategy.HEADER_MATCH)
        catalog.responses[2].match_expression = '{"key": "X-Plan", "value": "premium"}'

        result = find_match(catalog, 'p1', 'POST', '/users')

        assert result.is_fallback

    def test_random_uses_rng(self, catalog):
        """Test RANDOM draws through the supplied random source."""
        _set_strategy(catalog, ResponseStrategy.RANDOM)
        rng = random.Random(42)
        expected = catalog.responses[random.Random(42).randrange(3)].id

        result = find_match(catalog, 'p1', 'POST', '/users', rng=rng)

        assert result.response.id == expected
        assert result.matched_strategy == 'RANDOM'

    def test_random_covers_all_responses(self, catalog):
        _set_strategy(catalog, ResponseStrategy.RANDOM)
        rng = random.Random(7)

        seen = {find_match(catalog, 'p1', 'POST', '/users', rng=rng).response.id for _ in range(200)}

        assert seen == {'r1', 'r2', 'r3'}


class TestFallback:
    """Test fallback selection."""

    def test_dangling_default_uses_first(self, catalog):
        """Test a deleted default falls back to the first response."""
        catalog.endpoints[0].default_response_id = 'gone'

        result = find_match(catalog, 'p1', 'POST', '/users')

        assert result.response.id == 'r1'
        assert result.is_fallback

    def test_no_default_uses_first(self, catalog):
        catalog.endpoints[0].default_response_id = None

        assert find_match(catalog, 'p1', 'POST', '/users').response.id == 'r1'

    def test_broken_rule_is_no_match(self, catalog):
        """Test invalid expressions never prevent a response."""
        _set_strategy(catalog, ResponseStrategy.QUERY_MATCH)
        catalog.responses[0].match_type = 'regex'
        catalog.responses[0].match_expression = '(['

        result = find_match(catalog, 'p1', 'POST', '/users', body='anything')

        assert result.response.id == 'r2'

    def test_select_response_empty(self, catalog):
        assert select_response(catalog.endpoints[0], []) is None
