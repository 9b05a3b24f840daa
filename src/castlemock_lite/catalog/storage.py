"""
CastleMock Lite Catalog Storage

The whole catalog is persisted as a single document under the key ``root``.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import DocumentError

DATA_KEY = 'root'

logger = logging.getLogger("castlemock.store")


class StorageBackend:
    """Key-value persistence for the catalog document."""

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored catalog document, or None if nothing is stored."""
        raise NotImplementedError

    def save(self, data: Dict[str, Any]):
        """Replace the stored catalog document."""
        raise NotImplementedError


class MemoryStorage(StorageBackend):
    """In-memory storage, used by tests and embedded callers."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._documents: Dict[str, Any] = {}
        if data is not None:
            self._documents[DATA_KEY] = copy.deepcopy(data)

    def load(self) -> Optional[Dict[str, Any]]:
        data = self._documents.get(DATA_KEY)
        return copy.deepcopy(data) if data is not None else None

    def save(self, data: Dict[str, Any]):
        self._documents[DATA_KEY] = copy.deepcopy(data)


class JsonFileStorage(StorageBackend):
    """
    JSON file storage.

    Example:
        storage = JsonFileStorage("~/.castlemock-lite/catalog.json")
        store = CatalogStore(storage)
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path).expanduser()

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load the catalog document.

        Raises:
            DocumentError: If the file exists but isn't a valid catalog file
        """
        if not self.file_path.exists():
            return None

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DocumentError(f"Could not read catalog from {self.file_path}: {e}") from e

        if not isinstance(data, dict):
            raise DocumentError(f"Unexpected catalog format in {self.file_path}")
        return data.get(DATA_KEY)

    def save(self, data: Dict[str, Any]):
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump({DATA_KEY: data}, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.file_path)
        logger.debug(f"Saved catalog to {self.file_path}")
