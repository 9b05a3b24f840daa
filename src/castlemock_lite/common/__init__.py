"""
CastleMock Lite Common Utilities

Shared utilities and helpers used across CastleMock Lite modules.
"""

from .utils import (
    generate_id,
    now_ms,
    safe_json_parse,
    parse_document_text,
    load_document,
    fetch_document,
    detect_document_kind,
)

__all__ = [
    'generate_id',
    'now_ms',
    'safe_json_parse',
    'parse_document_text',
    'load_document',
    'fetch_document',
    'detect_document_kind',
]
