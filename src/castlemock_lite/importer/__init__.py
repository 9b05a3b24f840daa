"""
CastleMock Lite Importer Module

OpenAPI/Swagger import support.

This module provides:
- $ref resolution with cycle detection
- Example payload generation from JSON Schema
- Endpoint and response synthesis from OpenAPI documents
"""

from .resolver import resolve_refs, resolve_endpoint_docs, circular_placeholder
from .examples import generate_example
from .openapi import parse_openapi, build_example_body, project_fields_from_openapi

__all__ = [
    # Resolver
    'resolve_refs',
    'resolve_endpoint_docs',
    'circular_placeholder',

    # Examples
    'generate_example',

    # OpenAPI
    'parse_openapi',
    'build_example_body',
    'project_fields_from_openapi',
]
