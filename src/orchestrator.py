"""
Main Orchestrator for Household Budget

This module ties together storage, reconciliation, comparison and audit,
and defines the end-to-end flows for:
1. Personal budget edits (save -> new version -> audit)
2. Monthly budgets (open month -> seed -> roll over adjustments -> store)
3. Scheduled adjustments (schedule / cancel / summarize)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A stored month is never rewritten by a template edit; it is
  reconciled against the active template every time it is read
- Scheduled adjustments are applied exactly once, when their month
  is first created
- Every change is audited

The owner is passed explicitly to every call. There is no ambient user.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.budget import (
    BudgetError,
    LockedSnapshotError,
    MissingTemplateError,
    UnknownCategoryError,
    apply_on_rollover,
    category_histories,
    compare,
    compare_to_month_start,
    effective_month_for,
    find_orphaned_adjustments,
    reconcile,
    schedule_adjustment,
    seed_from_template,
    summarize_pending,
)
from src.config import get_settings
from src.models.budget import (
    BudgetAdjustment,
    BudgetComparison,
    CategoryAdjustmentHistory,
    CategoryConfig,
    GlobalBudgetSettings,
    MonthlyBudget,
    PendingAdjustmentsSummary,
    PersonalBudget,
    parse_limit,
)
from src.services.storage import (
    AdjustmentStorageInterface,
    DuplicateError,
    GoogleSheetsAdjustmentStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSnapshotStorage,
    GoogleSheetsTemplateStorage,
    InMemoryAdjustmentStorage,
    InMemorySnapshotStorage,
    InMemoryTemplateStorage,
    NotFoundError,
    SnapshotStorageInterface,
    StaleSnapshotWriteError,
    StorageError,
    TemplateStorageInterface,
)


logger = structlog.get_logger(__name__)


class PersonalBudgetFlow:
    """
    Orchestrates edits to the personal budget (template).

    Every structural edit goes through save(), which stores a new
    version and deactivates the previous one. Existing monthly budgets
    are never touched here.
    """

    def __init__(
        self,
        template_storage: TemplateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._templates = template_storage
        self._audit_logger = audit_logger

    async def get_active(self, owner_id: str) -> Optional[PersonalBudget]:
        """Get the owner's active template, or None."""
        return await self._templates.get_active_template(owner_id)

    async def _require_active(self, owner_id: str, operation: str) -> PersonalBudget:
        template = await self._templates.get_active_template(owner_id)
        if template is None:
            if self._audit_logger:
                await self._audit_logger.log_missing_template(owner_id, operation)
            raise MissingTemplateError(owner_id)
        return template

    async def save(
        self,
        owner_id: str,
        categories: dict[str, CategoryConfig],
        global_settings: Optional[GlobalBudgetSettings] = None,
        name: Optional[str] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PersonalBudget:
        """
        Save the template as a new version.

        Without global settings, the previous version's settings are
        kept, or the configured defaults are used for a first save.

        Returns:
            The new active version
        """
        correlation_id = correlation_id or create_correlation_id()
        app = get_settings().app

        if global_settings is None or name is None:
            current = await self._templates.get_active_template(owner_id)
            if global_settings is None:
                global_settings = (
                    current.global_settings
                    if current
                    else GlobalBudgetSettings(currency=app.default_currency)
                )
            if name is None:
                name = current.name if current else app.default_template_name

        template = await self._templates.save_template(
            owner_id=owner_id,
            name=name,
            categories=categories,
            global_settings=global_settings,
            notes=notes,
        )

        logger.info(
            "template_saved",
            owner_id=owner_id,
            version=template.version,
            categories=len(template.categories),
        )
        if self._audit_logger:
            await self._audit_logger.log_template_saved(
                owner_id=owner_id,
                template_id=template.id,
                version=template.version,
                category_count=len(template.categories),
                correlation_id=correlation_id,
            )

        return template

    async def list_versions(self, owner_id: str) -> list[PersonalBudget]:
        """All stored versions, newest first."""
        return await self._templates.list_template_versions(owner_id)

    async def activate(
        self,
        owner_id: str,
        template_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> PersonalBudget:
        """Make an older version the active template again."""
        template = await self._templates.set_active_template(owner_id, template_id)
        if self._audit_logger:
            await self._audit_logger.log_template_activated(
                owner_id=owner_id,
                template_id=template.id,
                version=template.version,
                correlation_id=correlation_id,
            )
        return template

    async def update_metadata(
        self,
        owner_id: str,
        template_id: UUID,
        name: Optional[str] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PersonalBudget:
        """Change name or notes without creating a new version."""
        template = await self._templates.update_template_metadata(
            owner_id,
            template_id,
            name=name,
            notes=notes,
        )
        fields = [f for f, v in (("name", name), ("notes", notes)) if v is not None]
        if self._audit_logger and fields:
            await self._audit_logger.log_template_metadata_updated(
                owner_id=owner_id,
                template_id=template.id,
                fields=fields,
                correlation_id=correlation_id,
            )
        return template

    async def add_category(
        self,
        owner_id: str,
        name: str,
        monthly_limit: Decimal,
        **fields: Any,
    ) -> PersonalBudget:
        """
        Add one category as a new template version.

        Unset colour and warning threshold come from the app defaults.
        Months that already exist do not receive the category.
        """
        template = await self._require_active(owner_id, "add_category")
        if name in template.categories:
            raise BudgetError(f"Category already exists: {name}")

        app = get_settings().app
        config = CategoryConfig(
            monthly_limit=monthly_limit,
            color=fields.pop("color", app.default_category_color),
            warning_threshold=fields.pop("warning_threshold", app.default_warning_threshold),
            **fields,
        )
        categories = dict(template.categories)
        categories[name] = config
        return await self.save(owner_id, categories, template.global_settings, template.name)

    async def remove_category(self, owner_id: str, name: str) -> PersonalBudget:
        """
        Remove one category as a new template version.

        Existing months keep the category, shown as inactive.
        """
        template = await self._require_active(owner_id, "remove_category")
        if name not in template.categories:
            raise UnknownCategoryError(name, where="personal budget")

        categories = {k: v for k, v in template.categories.items() if k != name}
        settings = template.global_settings.model_copy(update={
            "active_expense_categories": [
                c for c in template.global_settings.active_expense_categories if c != name
            ],
        })
        return await self.save(owner_id, categories, settings, template.name)

    async def update_category(
        self,
        owner_id: str,
        name: str,
        **changes: Any,
    ) -> PersonalBudget:
        """
        Change one category's configuration as a new template version.

        Raises:
            UnknownCategoryError: If the template has no such category
            pydantic.ValidationError: If the changes are invalid
        """
        template = await self._require_active(owner_id, "update_category")
        if name not in template.categories:
            raise UnknownCategoryError(name, where="personal budget")

        categories = dict(template.categories)
        categories[name] = CategoryConfig.model_validate(
            {**categories[name].model_dump(), **changes}
        )
        return await self.save(owner_id, categories, template.global_settings, template.name)

    async def rename_category(
        self,
        owner_id: str,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> PersonalBudget:
        """
        Rename a category as a new template version.

        Existing months keep the old name; on read it shows as inactive
        there. active_expense_categories is updated to the new name.
        """
        correlation_id = correlation_id or create_correlation_id()
        template = await self._require_active(owner_id, "rename_category")
        if old_name not in template.categories:
            raise UnknownCategoryError(old_name, where="personal budget")
        if new_name in template.categories:
            raise BudgetError(f"Category already exists: {new_name}")

        # Rebuild to keep the category's position
        categories = {
            (new_name if key == old_name else key): config
            for key, config in template.categories.items()
        }
        settings = template.global_settings.model_copy(update={
            "active_expense_categories": [
                new_name if c == old_name else c
                for c in template.global_settings.active_expense_categories
            ],
        })

        saved = await self.save(
            owner_id,
            categories,
            settings,
            template.name,
            notes=template.notes,
            correlation_id=correlation_id,
        )
        if self._audit_logger:
            await self._audit_logger.log_category_renamed(
                owner_id=owner_id,
                template_id=saved.id,
                old_name=old_name,
                new_name=new_name,
                correlation_id=correlation_id,
            )
        return saved


class MonthlyBudgetFlow:
    """
    Orchestrates monthly budgets.

    Flow for opening a month:
    1. Stored month exists -> reconcile against the active template, return
    2. Otherwise seed from the active template (all categories)
    3. Apply pending adjustments targeting the month
    4. Record the result as the month-start baseline
    5. Mark applied adjustments, store the month, delete dropped ones.
       A month that fails to store hands its adjustments back to pending.

    Reads never write back. A template edit reaches an existing month
    only through reconciliation, and never adds categories to it.
    """

    def __init__(
        self,
        template_storage: TemplateStorageInterface,
        snapshot_storage: SnapshotStorageInterface,
        adjustment_storage: AdjustmentStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._templates = template_storage
        self._snapshots = snapshot_storage
        self._adjustments = adjustment_storage
        self._audit_logger = audit_logger

    async def get_or_create_snapshot(
        self,
        owner_id: str,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyBudget:
        """
        Get a month, creating it from the template on first access.

        Raises:
            MissingTemplateError: If the month doesn't exist and the
                owner has no active template to seed it from
        """
        correlation_id = correlation_id or create_correlation_id()
        template = await self._templates.get_active_template(owner_id)

        stored = await self._snapshots.get_snapshot(owner_id, year, month)
        if stored is not None:
            return reconcile(stored, template)

        if template is None:
            if self._audit_logger:
                await self._audit_logger.log_missing_template(
                    owner_id, "create_snapshot", correlation_id
                )
            raise MissingTemplateError(
                owner_id,
                f"Cannot create a monthly budget for {year}-{month:02d} "
                f"without a personal budget",
            )

        seeded = seed_from_template(owner_id, year, month, template)
        pending = await self._adjustments.list_pending(owner_id, year, month)
        rollover = apply_on_rollover(pending, seeded, template)

        snapshot = rollover.snapshot.model_copy(update={
            "original_categories": {
                name: config.model_copy()
                for name, config in rollover.snapshot.categories.items()
            },
        })

        # Adjustments are consumed before the month is stored.
        # If the month is not stored they go back to pending.
        marked: list[BudgetAdjustment] = []
        try:
            for adjustment in rollover.applied:
                await self._adjustments.mark_applied(adjustment)
                marked.append(adjustment)
            snapshot = await self._snapshots.insert_snapshot(snapshot)
        except DuplicateError:
            # Another request created the month first
            stored = await self._snapshots.get_snapshot(owner_id, year, month)
            if stored is None:
                await self._restore_pending(marked, correlation_id)
                raise
            return reconcile(stored, template)
        except StorageError as e:
            logger.error(
                "snapshot_creation_failed",
                owner_id=owner_id,
                year=year,
                month=month,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    "create_snapshot", str(e), correlation_id
                )
            await self._restore_pending(marked, correlation_id)
            raise

        for adjustment in rollover.applied:
            if self._audit_logger:
                await self._audit_logger.log_adjustment_applied(
                    owner_id=owner_id,
                    adjustment_id=adjustment.id,
                    snapshot_id=snapshot.id,
                    category_name=adjustment.category_name,
                    new_limit=adjustment.new_limit,
                    correlation_id=correlation_id,
                )

        for adjustment in rollover.dropped:
            try:
                await self._adjustments.delete(owner_id, adjustment.id)
            except StorageError as e:
                # Left pending; list_orphaned still reports it
                logger.error(
                    "adjustment_drop_failed",
                    owner_id=owner_id,
                    adjustment_id=str(adjustment.id),
                    error=str(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_storage_error(
                        "drop_adjustment", str(e), correlation_id
                    )
                continue
            if self._audit_logger:
                await self._audit_logger.log_adjustment_dropped(
                    owner_id=owner_id,
                    adjustment_id=adjustment.id,
                    category_name=adjustment.category_name,
                    correlation_id=correlation_id,
                )

        logger.info(
            "snapshot_created",
            owner_id=owner_id,
            year=year,
            month=month,
            template_version=template.version,
            applied=len(rollover.applied),
            dropped=len(rollover.dropped),
        )
        if self._audit_logger:
            await self._audit_logger.log_snapshot_created(
                owner_id=owner_id,
                snapshot_id=snapshot.id,
                year=year,
                month=month,
                template_version=template.version,
                applied_adjustments=len(rollover.applied),
                correlation_id=correlation_id,
            )

        return snapshot

    async def _restore_pending(
        self,
        adjustments: list[BudgetAdjustment],
        correlation_id: UUID,
    ) -> None:
        for adjustment in adjustments:
            try:
                await self._adjustments.restore_pending(adjustment)
            except StorageError as e:
                logger.error(
                    "adjustment_restore_failed",
                    owner_id=adjustment.owner_id,
                    adjustment_id=str(adjustment.id),
                    error=str(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_storage_error(
                        "restore_pending", str(e), correlation_id
                    )

    async def get_snapshot(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> Optional[MonthlyBudget]:
        """Get an existing month, reconciled. Never creates one."""
        stored = await self._snapshots.get_snapshot(owner_id, year, month)
        if stored is None:
            return None
        template = await self._templates.get_active_template(owner_id)
        return reconcile(stored, template)

    async def get_current_month_snapshot(
        self,
        owner_id: str,
        today: Optional[date] = None,
    ) -> MonthlyBudget:
        """Get or create the month containing today."""
        today = today or date.today()
        return await self.get_or_create_snapshot(owner_id, today.year, today.month)

    async def adjust_category_limit(
        self,
        owner_id: str,
        year: int,
        month: int,
        category_name: str,
        new_limit: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyBudget:
        """
        Change one category's limit in one month only.

        The template is not touched. adjustment_count is incremented.

        Raises:
            LockedSnapshotError: If the month is locked
            UnknownCategoryError: If the month has no such category
            StaleSnapshotWriteError: If the month was removed meanwhile
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            new_limit = parse_limit(new_limit)
        except ValueError as e:
            raise BudgetError(str(e)) from e

        snapshot = await self.get_or_create_snapshot(owner_id, year, month, correlation_id)
        if snapshot.is_locked:
            raise LockedSnapshotError(year, month)
        if category_name not in snapshot.categories:
            raise UnknownCategoryError(category_name, where="monthly budget")

        old_limit = snapshot.categories[category_name].monthly_limit
        try:
            updated = await self._snapshots.save_snapshot_adjustment(
                snapshot.id,
                category_name,
                new_limit,
            )
        except StaleSnapshotWriteError:
            if self._audit_logger:
                await self._audit_logger.log_stale_snapshot_write(
                    owner_id=owner_id,
                    snapshot_id=snapshot.id,
                    category_name=category_name,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_limit_adjusted(
                owner_id=owner_id,
                snapshot_id=snapshot.id,
                category_name=category_name,
                old_limit=old_limit,
                new_limit=new_limit,
                correlation_id=correlation_id,
            )

        template = await self._templates.get_active_template(owner_id)
        return reconcile(updated, template)

    async def _set_locked(
        self,
        owner_id: str,
        year: int,
        month: int,
        locked: bool,
    ) -> MonthlyBudget:
        snapshot = await self._snapshots.set_locked(owner_id, year, month, locked)
        if self._audit_logger:
            await self._audit_logger.log_snapshot_lock_changed(
                owner_id=owner_id,
                snapshot_id=snapshot.id,
                locked=locked,
            )
        template = await self._templates.get_active_template(owner_id)
        return reconcile(snapshot, template)

    async def lock_month(self, owner_id: str, year: int, month: int) -> MonthlyBudget:
        """Refuse further limit changes to a month."""
        return await self._set_locked(owner_id, year, month, True)

    async def unlock_month(self, owner_id: str, year: int, month: int) -> MonthlyBudget:
        return await self._set_locked(owner_id, year, month, False)

    async def list_snapshots(
        self,
        owner_id: str,
        year: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[MonthlyBudget]:
        """Stored months, newest first, each reconciled."""
        limit = limit or get_settings().app.recent_months_limit
        snapshots = await self._snapshots.list_snapshots(owner_id, year=year, limit=limit)
        template = await self._templates.get_active_template(owner_id)
        return [reconcile(snapshot, template) for snapshot in snapshots]

    async def _require_snapshot(self, owner_id: str, year: int, month: int) -> MonthlyBudget:
        snapshot = await self.get_snapshot(owner_id, year, month)
        if snapshot is None:
            raise NotFoundError(f"Monthly budget not found for {year}-{month:02d}")
        return snapshot

    async def compare_to_template(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> BudgetComparison:
        """
        Compare a stored month with the active template.

        Without a template the comparison is empty (has_baseline=False).
        """
        snapshot = await self._require_snapshot(owner_id, year, month)
        template = await self._templates.get_active_template(owner_id)
        return compare(template, snapshot)

    async def compare_to_month_start(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> BudgetComparison:
        """Compare a stored month with how it stood when it was created."""
        snapshot = await self._require_snapshot(owner_id, year, month)
        return compare_to_month_start(snapshot)


class AdjustmentFlow:
    """
    Orchestrates scheduled adjustments.

    Adjustments always target the calendar month after the one they
    are scheduled in. They are consumed by MonthlyBudgetFlow when that
    month is first opened.
    """

    def __init__(
        self,
        template_storage: TemplateStorageInterface,
        adjustment_storage: AdjustmentStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._templates = template_storage
        self._adjustments = adjustment_storage
        self._audit_logger = audit_logger

    async def schedule(
        self,
        owner_id: str,
        category_name: str,
        current_limit: Decimal,
        new_limit: Decimal,
        reason: Optional[str] = None,
        today: Optional[date] = None,
        created_by: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetAdjustment:
        """
        Queue a limit change for next month.

        Raises:
            MissingTemplateError: If the owner has no active template
            UnknownCategoryError: If the template has no such category
        """
        template = await self._templates.get_active_template(owner_id)
        if template is None:
            if self._audit_logger:
                await self._audit_logger.log_missing_template(
                    owner_id, "schedule_adjustment", correlation_id
                )
            raise MissingTemplateError(owner_id)
        if category_name not in template.categories:
            raise UnknownCategoryError(category_name, where="personal budget")

        try:
            adjustment = schedule_adjustment(
                owner_id=owner_id,
                category_name=category_name,
                current_limit=current_limit,
                new_limit=new_limit,
                reason=reason,
                today=today,
                created_by=created_by,
            )
        except ValueError as e:
            raise BudgetError(str(e)) from e
        adjustment = await self._adjustments.insert(adjustment)

        if self._audit_logger:
            await self._audit_logger.log_adjustment_scheduled(
                owner_id=owner_id,
                adjustment_id=adjustment.id,
                category_name=category_name,
                new_limit=adjustment.new_limit,
                effective=adjustment.effective_label,
                correlation_id=correlation_id,
            )
        return adjustment

    async def cancel(
        self,
        owner_id: str,
        adjustment_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Cancel a pending adjustment.

        Returns:
            False if there was no pending adjustment with that ID
        """
        cancelled = await self._adjustments.delete(owner_id, adjustment_id)
        if cancelled and self._audit_logger:
            await self._audit_logger.log_adjustment_cancelled(
                owner_id=owner_id,
                adjustment_id=adjustment_id,
                correlation_id=correlation_id,
            )
        return cancelled

    async def cancel_all(self, owner_id: str, year: int, month: int) -> int:
        """Cancel every pending adjustment for a month. Returns how many."""
        correlation_id = create_correlation_id()
        pending = await self._adjustments.list_pending(owner_id, year, month)
        count = 0
        for adjustment in pending:
            if await self.cancel(owner_id, adjustment.id, correlation_id):
                count += 1
        return count

    async def list_pending(self, owner_id: str, year: int, month: int) -> list[BudgetAdjustment]:
        return await self._adjustments.list_pending(owner_id, year, month)

    async def list_all_pending(self, owner_id: str) -> list[BudgetAdjustment]:
        return await self._adjustments.list_all_pending(owner_id)

    async def list_applied(
        self,
        owner_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[BudgetAdjustment]:
        return await self._adjustments.list_applied(owner_id, year, month)

    async def get_pending_summary(
        self,
        owner_id: str,
        today: Optional[date] = None,
    ) -> PendingAdjustmentsSummary:
        """Summary of what will change when next month opens."""
        year, month = effective_month_for(today)
        pending = await self._adjustments.list_pending(owner_id, year, month)
        return summarize_pending(pending, year, month)

    async def list_orphaned(self, owner_id: str) -> list[BudgetAdjustment]:
        """Pending adjustments that will be dropped at rollover as things stand."""
        template = await self._templates.get_active_template(owner_id)
        pending = await self._adjustments.list_all_pending(owner_id)
        return find_orphaned_adjustments(pending, template)

    async def category_history(self, owner_id: str) -> list[CategoryAdjustmentHistory]:
        """Adjustment history per category, most adjusted first."""
        applied = await self._adjustments.list_applied(owner_id)
        return category_histories(applied)


def create_app_components(
    use_storage: bool = True,
) -> tuple[PersonalBudgetFlow, MonthlyBudgetFlow, AdjustmentFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (personal_budget_flow, monthly_budget_flow, adjustment_flow, sheets_client)
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            template_storage = GoogleSheetsTemplateStorage(sheets_client)
            snapshot_storage = GoogleSheetsSnapshotStorage(sheets_client)
            adjustment_storage = GoogleSheetsAdjustmentStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        template_storage = InMemoryTemplateStorage()
        snapshot_storage = InMemorySnapshotStorage()
        adjustment_storage = InMemoryAdjustmentStorage()
        audit_logger = AuditLogger()  # Local-only logging

    personal_budget_flow = PersonalBudgetFlow(
        template_storage=template_storage,
        audit_logger=audit_logger,
    )
    monthly_budget_flow = MonthlyBudgetFlow(
        template_storage=template_storage,
        snapshot_storage=snapshot_storage,
        adjustment_storage=adjustment_storage,
        audit_logger=audit_logger,
    )
    adjustment_flow = AdjustmentFlow(
        template_storage=template_storage,
        adjustment_storage=adjustment_storage,
        audit_logger=audit_logger,
    )

    return personal_budget_flow, monthly_budget_flow, adjustment_flow, sheets_client
