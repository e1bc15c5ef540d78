"""Services package."""

from src.services.storage import (
    AdjustmentStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAdjustmentStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSnapshotStorage,
    GoogleSheetsTemplateStorage,
    InMemoryAdjustmentStorage,
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    InMemoryTemplateStorage,
    NotFoundError,
    SnapshotStorageInterface,
    StaleSnapshotWriteError,
    StorageError,
    TemplateStorageInterface,
)

__all__ = [
    # Storage interfaces
    "AdjustmentStorageInterface",
    "AuditStorageInterface",
    "SnapshotStorageInterface",
    "TemplateStorageInterface",
    # Storage exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StaleSnapshotWriteError",
    "StorageError",
    # Storage implementations
    "GoogleSheetsAdjustmentStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSnapshotStorage",
    "GoogleSheetsTemplateStorage",
    "InMemoryAdjustmentStorage",
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
    "InMemoryTemplateStorage",
]
