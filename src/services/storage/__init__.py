"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory implementation
backs tests and runs without credentials.
"""

from src.services.storage.interface import (
    AdjustmentStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    SnapshotStorageInterface,
    StaleSnapshotWriteError,
    StorageError,
    TemplateStorageInterface,
)
from src.services.storage.google_sheets import (
    GoogleSheetsAdjustmentStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSnapshotStorage,
    GoogleSheetsTemplateStorage,
)
from src.services.storage.memory import (
    InMemoryAdjustmentStorage,
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    InMemoryTemplateStorage,
)

__all__ = [
    # Interfaces
    "AdjustmentStorageInterface",
    "AuditStorageInterface",
    "SnapshotStorageInterface",
    "TemplateStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StaleSnapshotWriteError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAdjustmentStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSnapshotStorage",
    "GoogleSheetsTemplateStorage",
    # In-memory implementation
    "InMemoryAdjustmentStorage",
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
    "InMemoryTemplateStorage",
]
