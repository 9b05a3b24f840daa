"""
CastleMock Lite Example Generator

Builds a representative sample value from a (resolved) JSON Schema fragment.
Output is deterministic except for ``format: date-time`` strings, which use
the current time.
"""

from datetime import datetime, timezone
from typing import Any

EXAMPLE_EMAIL = "user@example.com"
EXAMPLE_UUID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def generate_example(schema: Any) -> Any:
    """
    Generate an example value for a schema.

    Precedence is an explicit ``example``, then ``default``, then a value
    synthesized from ``type``/``format``/``enum``/``properties``/``items``.

    Args:
        schema: JSON Schema fragment; refs should already be resolved

    Returns:
        A JSON-compatible value. Unrecognized schemas give ``"unknown"``.
    """
    if schema is None:
        return None
    if not isinstance(schema, dict):
        return "unknown"

    if schema.get('example') is not None:
        return schema['example']
    if schema.get('default') is not None:
        return schema['default']

    schema_type = schema.get('type')

    if schema_type == 'object' or 'properties' in schema:
        properties = schema.get('properties') or {}
        if not isinstance(properties, dict):
            return {}
        return {name: generate_example(prop) for name, prop in properties.items()}

    if schema_type == 'array':
        if schema.get('items') is not None:
            return [generate_example(schema['items'])]
        return []

    if schema_type == 'string':
        fmt = schema.get('format')
        if fmt == 'date-time':
            return _timestamp()
        if fmt == 'email':
            return EXAMPLE_EMAIL
        if fmt == 'uuid':
            return EXAMPLE_UUID
        enum = schema.get('enum')
        if isinstance(enum, list) and enum:
            return enum[0]
        return "string"

    if schema_type in ('integer', 'number'):
        return 0

    if schema_type == 'boolean':
        return True

    return "unknown"
