"""
CastleMock Lite Common Utilities

Shared helpers for id generation, timestamps and loading JSON/YAML documents.
"""

import json
import random
import string
import time
from pathlib import Path
from typing import Any, Dict, Optional

import requests
import yaml

from ..errors import DocumentError

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 7


def generate_id(rng: Optional[random.Random] = None) -> str:
    """
    Generate a short random identifier for catalog records.

    Args:
        rng: Optional random source (defaults to the module-level generator)

    Returns:
        Seven character lowercase base36 string
    """
    source = rng or random
    return ''.join(source.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def safe_json_parse(json_string: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(response.body, default=response.body)
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def parse_document_text(text: str, source: str = "<document>") -> Dict[str, Any]:
    """
    Parse a JSON or YAML document into a dictionary.

    JSON is tried first since it is the common export format; YAML is the
    fallback and also accepts plain JSON.

    Args:
        text: Raw document text
        source: Name used in error messages

    Returns:
        Parsed document

    Raises:
        DocumentError: If the text is neither JSON nor YAML, or is not a mapping
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise DocumentError(f"Could not parse {source} as JSON or YAML: {e}") from e

    if not isinstance(data, dict):
        raise DocumentError(
            f"Unexpected document format in {source}. "
            f"Expected a mapping, got {type(data).__name__}"
        )
    return data


def load_document(file_path: str) -> Dict[str, Any]:
    """
    Load an OpenAPI, Swagger or backup document from disk.

    Args:
        file_path: Path to a .json, .yaml or .yml file

    Returns:
        Parsed document

    Raises:
        DocumentError: If the file doesn't exist or cannot be parsed
    """
    path = Path(file_path)
    if not path.exists():
        raise DocumentError(f"Document not found: {path}")

    return parse_document_text(path.read_text(encoding='utf-8'), source=str(path))


def fetch_document(url: str, timeout: float = 30.0) -> Dict[str, Any]:
    """
    Download an OpenAPI document from a URL.

    Args:
        url: Document URL
        timeout: Request timeout in seconds

    Returns:
        Parsed document

    Raises:
        DocumentError: If the request fails or the body cannot be parsed
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DocumentError(f"Failed to fetch {url}: {e}") from e

    return parse_document_text(response.text, source=url)


def detect_document_kind(document: Dict[str, Any]) -> str:
    """
    Classify a parsed document.

    Returns:
        'backup', 'openapi' or 'unknown'
    """
    if document.get('type') == 'castlemock-lite-backup':
        return 'backup'
    if 'openapi' in document or 'swagger' in document:
        return 'openapi'
    return 'unknown'
