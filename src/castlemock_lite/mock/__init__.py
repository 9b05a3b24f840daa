"""
CastleMock Lite Mock Module

Request matching and simulated request handling.

This module provides:
- Match rules (regex, JSON path, body subset, header)
- Match engine with strategy dispatch and fallback
"""

from .rules import (
    MatchRule,
    NoRule,
    RegexRule,
    JsonPathRule,
    BodySubsetRule,
    HeaderEqualsRule,
    rule_for,
    is_subset,
    get_object_value,
    UNDEFINED,
)
from .matcher import find_match, find_endpoint, select_response

__all__ = [
    # Rules
    'MatchRule',
    'NoRule',
    'RegexRule',
    'JsonPathRule',
    'BodySubsetRule',
    'HeaderEqualsRule',
    'rule_for',
    'is_subset',
    'get_object_value',
    'UNDEFINED',

    # Matcher
    'find_match',
    'find_endpoint',
    'select_response',
]
