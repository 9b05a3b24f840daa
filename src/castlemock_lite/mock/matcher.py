"""
CastleMock Lite Match Engine

Selects the response for an in-process mock request.

Resolution steps:
1. The project must exist and be running
2. An endpoint must match (project, method, path) exactly
3. The endpoint must have at least one response
4. The endpoint's strategy picks a candidate (RANDOM, HEADER_MATCH,
   QUERY_MATCH); DEFAULT picks nothing
5. Without a candidate, the endpoint's default response is served, or the
   first response if the default no longer exists

Once an endpoint with responses is found a result is always returned.
The engine never mutates the catalog it is given.
"""

import logging
import random
from typing import Dict, List, Optional

from ..catalog.models import (
    FALLBACK_STRATEGY_LABEL,
    Catalog,
    Endpoint,
    MatchResult,
    Response,
    ResponseStrategy,
)
from .rules import rule_for

logger = logging.getLogger("castlemock.mock")


def find_endpoint(catalog: Catalog, project_id: str, method: str, path: str) -> Optional[Endpoint]:
    """Find the endpoint for (project, method, path); the last created wins."""
    for endpoint in reversed(catalog.endpoints):
        if endpoint.project_id == project_id and endpoint.method == method and endpoint.path == path:
            return endpoint
    return None


def _first_rule_match(
    responses: List[Response],
    strategy: ResponseStrategy,
    body: Optional[str],
    headers: Optional[Dict[str, str]]
) -> Optional[Response]:
    for response in responses:
        rule = rule_for(response, strategy)
        try:
            if rule.matches(body, headers):
                return response
        except Exception as e:
            logger.debug(f"Rule on response {response.id} failed, treating as no match: {e}")
    return None


def select_response(
    endpoint: Endpoint,
    responses: List[Response],
    body: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    rng: Optional[random.Random] = None
) -> Optional[MatchResult]:
    """
    Apply the endpoint's strategy and the fallback rules to its responses.

    Args:
        endpoint: Endpoint being served
        responses: The endpoint's responses in catalog order
        body: Raw request body
        headers: Request headers
        rng: Random source for the RANDOM strategy

    Returns:
        MatchResult, or None if responses is empty
    """
    if not responses:
        return None

    strategy = endpoint.response_strategy
    selected: Optional[Response] = None

    if strategy == ResponseStrategy.RANDOM:
        selected = responses[(rng or random).randrange(len(responses))]
    elif strategy == ResponseStrategy.HEADER_MATCH and headers is not None:
        selected = _first_rule_match(responses, strategy, body, headers)
    elif strategy == ResponseStrategy.QUERY_MATCH and body:
        selected = _first_rule_match(responses, strategy, body, headers)

    if selected is not None:
        return MatchResult(endpoint=endpoint, response=selected, matched_strategy=strategy.value)

    fallback = None
    if endpoint.default_response_id:
        fallback = next((r for r in responses if r.id == endpoint.default_response_id), None)
    if fallback is None:
        fallback = responses[0]

    return MatchResult(endpoint=endpoint, response=fallback, matched_strategy=FALLBACK_STRATEGY_LABEL)


def find_match(
    catalog: Catalog,
    project_id: str,
    method: str,
    path: str,
    body: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    rng: Optional[random.Random] = None
) -> Optional[MatchResult]:
    """
    Resolve a request against a catalog snapshot.

    Args:
        catalog: Catalog snapshot (not modified)
        project_id: Target project id
        method: HTTP method, compared exactly
        path: Request path, compared exactly
        body: Raw request body
        headers: Request headers
        rng: Random source for the RANDOM strategy

    Returns:
        MatchResult, or None when the project is missing or stopped, no
        endpoint matches, or the endpoint has no responses

    Example:
        result = find_match(store.snapshot(), project.id, 'POST', '/users', body='{"role": "admin"}')
        if result:
            print(result.response.status_code, result.matched_strategy)
    """
    project = catalog.get_project(project_id)
    if project is None or not project.is_running:
        return None

    endpoint = find_endpoint(catalog, project_id, method, path)
    if endpoint is None:
        return None

    return select_response(endpoint, catalog.responses_for(endpoint.id), body, headers, rng)
