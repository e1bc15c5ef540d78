"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Keep the reconciliation logic decoupled from storage

Every method is scoped by owner_id. There is no implicit "current user".
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.budget import (
    BudgetAdjustment,
    CategoryConfig,
    GlobalBudgetSettings,
    MonthlyBudget,
    PersonalBudget,
)


class TemplateStorageInterface(ABC):
    """
    Abstract interface for personal budget (template) storage.

    Templates are versioned by supersession: saving always inserts a
    new version and deactivates the previous one.
    """

    @abstractmethod
    async def get_active_template(self, owner_id: str) -> Optional[PersonalBudget]:
        """
        Get the owner's active template.

        Returns:
            The active template, or None if the owner has none
        """
        pass

    @abstractmethod
    async def get_template_by_id(
        self,
        owner_id: str,
        template_id: UUID,
    ) -> Optional[PersonalBudget]:
        """Get one template version, or None."""
        pass

    @abstractmethod
    async def list_template_versions(self, owner_id: str) -> list[PersonalBudget]:
        """
        List every template version for the owner.

        Returns:
            Templates ordered by version, newest first
        """
        pass

    @abstractmethod
    async def save_template(
        self,
        owner_id: str,
        name: str,
        categories: dict[str, CategoryConfig],
        global_settings: GlobalBudgetSettings,
        notes: Optional[str] = None,
    ) -> PersonalBudget:
        """
        Save a new template version.

        Deactivates the current active version and inserts a new
        active one with the next version number.

        Returns:
            The newly created version
        """
        pass

    @abstractmethod
    async def set_active_template(
        self,
        owner_id: str,
        template_id: UUID,
    ) -> PersonalBudget:
        """
        Make an existing version the active one.

        Raises:
            NotFoundError: If the version doesn't exist
        """
        pass

    @abstractmethod
    async def update_template_metadata(
        self,
        owner_id: str,
        template_id: UUID,
        name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PersonalBudget:
        """
        Change name or notes in place, without a new version.

        Raises:
            NotFoundError: If the version doesn't exist
        """
        pass


class SnapshotStorageInterface(ABC):
    """
    Abstract interface for monthly budget (snapshot) storage.

    At most one snapshot exists per (owner, year, month).
    """

    @abstractmethod
    async def get_snapshot(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> Optional[MonthlyBudget]:
        """Get the stored snapshot for a month, or None."""
        pass

    @abstractmethod
    async def get_snapshot_by_id(self, snapshot_id: UUID) -> Optional[MonthlyBudget]:
        """Get a stored snapshot by ID, or None."""
        pass

    @abstractmethod
    async def insert_snapshot(self, snapshot: MonthlyBudget) -> MonthlyBudget:
        """
        Store a newly created snapshot.

        Raises:
            DuplicateError: If the owner already has a snapshot for that month
        """
        pass

    @abstractmethod
    async def save_snapshot_adjustment(
        self,
        snapshot_id: UUID,
        category_name: str,
        new_limit: Decimal,
    ) -> MonthlyBudget:
        """
        Change one category's limit and increment adjustment_count.

        Returns:
            The updated snapshot as stored

        Raises:
            StaleSnapshotWriteError: If the snapshot no longer exists
        """
        pass

    @abstractmethod
    async def set_locked(
        self,
        owner_id: str,
        year: int,
        month: int,
        locked: bool,
    ) -> MonthlyBudget:
        """
        Lock or unlock a month.

        Raises:
            NotFoundError: If the month has no snapshot
        """
        pass

    @abstractmethod
    async def list_snapshots(
        self,
        owner_id: str,
        year: Optional[int] = None,
        limit: int = 12,
    ) -> list[MonthlyBudget]:
        """
        List stored snapshots, newest month first.

        Args:
            owner_id: Owner to list for
            year: Only this year, if given
            limit: Maximum number of results
        """
        pass


class AdjustmentStorageInterface(ABC):
    """Abstract interface for scheduled adjustment storage."""

    @abstractmethod
    async def list_pending(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> list[BudgetAdjustment]:
        """Pending adjustments due in one month, ordered by category name."""
        pass

    @abstractmethod
    async def list_all_pending(self, owner_id: str) -> list[BudgetAdjustment]:
        """All pending adjustments, ordered by effective month then category."""
        pass

    @abstractmethod
    async def list_applied(
        self,
        owner_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[BudgetAdjustment]:
        """Applied adjustments, optionally for one month only."""
        pass

    @abstractmethod
    async def insert(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        """Store a new pending adjustment."""
        pass

    @abstractmethod
    async def delete(self, owner_id: str, adjustment_id: UUID) -> bool:
        """
        Delete a pending adjustment.

        Applied adjustments are never deleted.

        Returns:
            True if a pending adjustment was deleted
        """
        pass

    @abstractmethod
    async def mark_applied(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        """
        Record that an adjustment has been applied.

        Raises:
            NotFoundError: If the adjustment doesn't exist
        """
        pass

    @abstractmethod
    async def restore_pending(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        """
        Undo mark_applied when the month it was applied to was not stored.

        Raises:
            NotFoundError: If the adjustment doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StaleSnapshotWriteError(NotFoundError):
    """
    A write targeted a monthly budget that no longer exists.

    The caller may re-fetch the month and try again.
    """

    retryable = True

    def __init__(self, snapshot_id: UUID):
        self.snapshot_id = snapshot_id
        super().__init__(f"Monthly budget not found: {snapshot_id}")
