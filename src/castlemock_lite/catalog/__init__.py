"""
CastleMock Lite Catalog Module

Projects, endpoints and responses, and the store that owns them.

This module provides:
- Catalog data model
- Catalog store with change and log subscriptions
- JSON file and in-memory persistence
- Project backup export/import
"""

from .models import (
    Catalog,
    Project,
    Endpoint,
    Response,
    LogEntry,
    MatchResult,
    ImportResult,
    ResponseStrategy,
    FALLBACK_STRATEGY_LABEL,
)
from .storage import StorageBackend, MemoryStorage, JsonFileStorage
from .backup import export_project, rebuild_from_backup, validate_backup, BACKUP_TYPE
from .store import CatalogStore

__all__ = [
    # Models
    'Catalog',
    'Project',
    'Endpoint',
    'Response',
    'LogEntry',
    'MatchResult',
    'ImportResult',
    'ResponseStrategy',
    'FALLBACK_STRATEGY_LABEL',

    # Storage
    'StorageBackend',
    'MemoryStorage',
    'JsonFileStorage',

    # Backup
    'export_project',
    'rebuild_from_backup',
    'validate_backup',
    'BACKUP_TYPE',

    # Store
    'CatalogStore',
]
