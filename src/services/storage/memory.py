"""
In-Memory Storage Implementation

Implements every storage interface with plain dictionaries.
Used by the test suite and as the fallback when no spreadsheet is
configured. Stored objects are deep-copied on the way in and out, so
callers never share state with the store.
"""

from datetime import datetime
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
from src.services.storage.interface import (
    AdjustmentStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    SnapshotStorageInterface,
    StaleSnapshotWriteError,
    TemplateStorageInterface,
)


class InMemoryTemplateStorage(TemplateStorageInterface):
    """Personal budget versions kept in a dict keyed by template ID."""

    def __init__(self):
        self._templates: dict[UUID, PersonalBudget] = {}

    def _owned(self, owner_id: str) -> list[PersonalBudget]:
        return [t for t in self._templates.values() if t.owner_id == owner_id]

    async def get_active_template(self, owner_id: str) -> Optional[PersonalBudget]:
        for template in self._owned(owner_id):
            if template.is_active:
                return template.model_copy(deep=True)
        return None

    async def get_template_by_id(
        self,
        owner_id: str,
        template_id: UUID,
    ) -> Optional[PersonalBudget]:
        template = self._templates.get(template_id)
        if template is None or template.owner_id != owner_id:
            return None
        return template.model_copy(deep=True)

    async def list_template_versions(self, owner_id: str) -> list[PersonalBudget]:
        versions = sorted(self._owned(owner_id), key=lambda t: t.version, reverse=True)
        return [t.model_copy(deep=True) for t in versions]

    async def save_template(
        self,
        owner_id: str,
        name: str,
        categories: dict[str, CategoryConfig],
        global_settings: GlobalBudgetSettings,
        notes: Optional[str] = None,
    ) -> PersonalBudget:
        owned = self._owned(owner_id)
        for template in owned:
            template.is_active = False

        template = PersonalBudget(
            owner_id=owner_id,
            version=max((t.version for t in owned), default=0) + 1,
            name=name,
            categories={k: v.model_copy() for k, v in categories.items()},
            global_settings=global_settings.model_copy(deep=True),
            is_active=True,
            notes=notes,
        )
        self._templates[template.id] = template
        return template.model_copy(deep=True)

    async def set_active_template(
        self,
        owner_id: str,
        template_id: UUID,
    ) -> PersonalBudget:
        target = self._templates.get(template_id)
        if target is None or target.owner_id != owner_id:
            raise NotFoundError(f"Personal budget not found: {template_id}")

        for template in self._owned(owner_id):
            template.is_active = template.id == template_id
        target.updated_at = datetime.utcnow()
        return target.model_copy(deep=True)

    async def update_template_metadata(
        self,
        owner_id: str,
        template_id: UUID,
        name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PersonalBudget:
        target = self._templates.get(template_id)
        if target is None or target.owner_id != owner_id:
            raise NotFoundError(f"Personal budget not found: {template_id}")

        if name is not None:
            target.name = name
        if notes is not None:
            target.notes = notes
        target.updated_at = datetime.utcnow()
        return target.model_copy(deep=True)


class InMemorySnapshotStorage(SnapshotStorageInterface):
    """Monthly budgets kept in a dict keyed by snapshot ID."""

    def __init__(self):
        self._snapshots: dict[UUID, MonthlyBudget] = {}

    def _find(self, owner_id: str, year: int, month: int) -> Optional[MonthlyBudget]:
        for snapshot in self._snapshots.values():
            if (
                snapshot.owner_id == owner_id
                and snapshot.year == year
                and snapshot.month == month
            ):
                return snapshot
        return None

    def remove(self, snapshot_id: UUID) -> None:
        """Drop a snapshot (test helper for stale-write scenarios)."""
        self._snapshots.pop(snapshot_id, None)

    async def get_snapshot(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> Optional[MonthlyBudget]:
        snapshot = self._find(owner_id, year, month)
        return snapshot.model_copy(deep=True) if snapshot else None

    async def get_snapshot_by_id(self, snapshot_id: UUID) -> Optional[MonthlyBudget]:
        snapshot = self._snapshots.get(snapshot_id)
        return snapshot.model_copy(deep=True) if snapshot else None

    async def insert_snapshot(self, snapshot: MonthlyBudget) -> MonthlyBudget:
        if self._find(snapshot.owner_id, snapshot.year, snapshot.month):
            raise DuplicateError(
                f"Monthly budget already exists for {snapshot.year}-{snapshot.month:02d}"
            )
        self._snapshots[snapshot.id] = snapshot.model_copy(deep=True)
        return snapshot.model_copy(deep=True)

    async def save_snapshot_adjustment(
        self,
        snapshot_id: UUID,
        category_name: str,
        new_limit: Decimal,
    ) -> MonthlyBudget:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise StaleSnapshotWriteError(snapshot_id)
        if category_name not in snapshot.categories:
            raise NotFoundError(f"Category not in monthly budget: {category_name}")

        categories = dict(snapshot.categories)
        categories[category_name] = categories[category_name].with_limit(new_limit)
        snapshot.categories = categories
        snapshot.adjustment_count += 1
        snapshot.updated_at = datetime.utcnow()
        return snapshot.model_copy(deep=True)

    async def set_locked(
        self,
        owner_id: str,
        year: int,
        month: int,
        locked: bool,
    ) -> MonthlyBudget:
        snapshot = self._find(owner_id, year, month)
        if snapshot is None:
            raise NotFoundError(f"Monthly budget not found for {year}-{month:02d}")
        snapshot.is_locked = locked
        snapshot.updated_at = datetime.utcnow()
        return snapshot.model_copy(deep=True)

    async def list_snapshots(
        self,
        owner_id: str,
        year: Optional[int] = None,
        limit: int = 12,
    ) -> list[MonthlyBudget]:
        snapshots = [
            s for s in self._snapshots.values()
            if s.owner_id == owner_id and (year is None or s.year == year)
        ]
        snapshots.sort(key=lambda s: (s.year, s.month), reverse=True)
        return [s.model_copy(deep=True) for s in snapshots[:limit]]


class InMemoryAdjustmentStorage(AdjustmentStorageInterface):
    """Scheduled adjustments kept in a dict keyed by adjustment ID."""

    def __init__(self):
        self._adjustments: dict[UUID, BudgetAdjustment] = {}

    async def list_pending(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> list[BudgetAdjustment]:
        pending = [
            a for a in self._adjustments.values()
            if a.owner_id == owner_id and not a.is_applied and a.targets(year, month)
        ]
        pending.sort(key=lambda a: a.category_name)
        return [a.model_copy(deep=True) for a in pending]

    async def list_all_pending(self, owner_id: str) -> list[BudgetAdjustment]:
        pending = [
            a for a in self._adjustments.values()
            if a.owner_id == owner_id and not a.is_applied
        ]
        pending.sort(key=lambda a: (a.effective_year, a.effective_month, a.category_name))
        return [a.model_copy(deep=True) for a in pending]

    async def list_applied(
        self,
        owner_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[BudgetAdjustment]:
        applied = [
            a for a in self._adjustments.values()
            if a.owner_id == owner_id
            and a.is_applied
            and (year is None or a.effective_year == year)
            and (month is None or a.effective_month == month)
        ]
        applied.sort(key=lambda a: a.category_name)
        return [a.model_copy(deep=True) for a in applied]

    async def insert(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        if adjustment.id in self._adjustments:
            raise DuplicateError(f"Adjustment already exists: {adjustment.id}")
        self._adjustments[adjustment.id] = adjustment.model_copy(deep=True)
        return adjustment.model_copy(deep=True)

    async def delete(self, owner_id: str, adjustment_id: UUID) -> bool:
        adjustment = self._adjustments.get(adjustment_id)
        if (
            adjustment is None
            or adjustment.owner_id != owner_id
            or adjustment.is_applied
        ):
            return False
        del self._adjustments[adjustment_id]
        return True

    async def mark_applied(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        stored = self._adjustments.get(adjustment.id)
        if stored is None:
            raise NotFoundError(f"Adjustment not found: {adjustment.id}")
        stored.is_applied = True
        stored.applied_at = adjustment.applied_at or datetime.utcnow()
        return stored.model_copy(deep=True)

    async def restore_pending(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        stored = self._adjustments.get(adjustment.id)
        if stored is None:
            raise NotFoundError(f"Adjustment not found: {adjustment.id}")
        stored.is_applied = False
        stored.applied_at = None
        return stored.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
