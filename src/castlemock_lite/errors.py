"""
CastleMock Lite Errors

Exception hierarchy shared by the catalog, importer and offload modules.
"""


class CastleMockError(Exception):
    """Base class for all CastleMock Lite errors."""


class CatalogError(CastleMockError):
    """Raised when a mutation would leave an orphaned record."""


class DocumentError(CastleMockError):
    """Raised when an OpenAPI, backup or config document cannot be read."""


class BackupFormatError(DocumentError):
    """Raised when a backup document is missing its type tag or project."""


class OffloadError(CastleMockError):
    """Raised when background execution fails."""


class OffloadTimeoutError(OffloadError):
    """Raised when background execution does not reply in time."""
