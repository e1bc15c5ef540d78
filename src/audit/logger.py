"""
Audit Logger

DESIGN DECISION: Every change to a budget is logged.
This provides:
1. Complete traceability of limit changes
2. Debugging capability
3. User can see history of their budget

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Personal budget
    # -------------------------------------------------------------------------

    async def log_template_saved(
        self,
        owner_id: str,
        template_id: UUID,
        version: int,
        category_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new template version."""
        await self.log(AuditEventBuilder.template_saved(
            owner_id=owner_id,
            template_id=template_id,
            version=version,
            category_count=category_count,
            correlation_id=correlation_id,
        ))

    async def log_template_activated(
        self,
        owner_id: str,
        template_id: UUID,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.template_activated(
            owner_id=owner_id,
            template_id=template_id,
            version=version,
            correlation_id=correlation_id,
        ))

    async def log_template_metadata_updated(
        self,
        owner_id: str,
        template_id: UUID,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.template_metadata_updated(
            owner_id=owner_id,
            template_id=template_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_category_renamed(
        self,
        owner_id: str,
        template_id: UUID,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_renamed(
            owner_id=owner_id,
            template_id=template_id,
            old_name=old_name,
            new_name=new_name,
            correlation_id=correlation_id,
        ))

    async def log_missing_template(
        self,
        owner_id: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an operation that needed a template and found none."""
        await self.log(AuditEventBuilder.missing_template(
            owner_id=owner_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Monthly budget
    # -------------------------------------------------------------------------

    async def log_snapshot_created(
        self,
        owner_id: str,
        snapshot_id: UUID,
        year: int,
        month: int,
        template_version: int,
        applied_adjustments: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log month creation."""
        await self.log(AuditEventBuilder.snapshot_created(
            owner_id=owner_id,
            snapshot_id=snapshot_id,
            year=year,
            month=month,
            template_version=template_version,
            applied_adjustments=applied_adjustments,
            correlation_id=correlation_id,
        ))

    async def log_limit_adjusted(
        self,
        owner_id: str,
        snapshot_id: UUID,
        category_name: str,
        old_limit: Decimal,
        new_limit: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an in-month limit change."""
        await self.log(AuditEventBuilder.limit_adjusted(
            owner_id=owner_id,
            snapshot_id=snapshot_id,
            category_name=category_name,
            old_limit=str(old_limit),
            new_limit=str(new_limit),
            correlation_id=correlation_id,
        ))

    async def log_snapshot_lock_changed(
        self,
        owner_id: str,
        snapshot_id: UUID,
        locked: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.snapshot_lock_changed(
            owner_id=owner_id,
            snapshot_id=snapshot_id,
            locked=locked,
            correlation_id=correlation_id,
        ))

    async def log_stale_snapshot_write(
        self,
        owner_id: str,
        snapshot_id: UUID,
        category_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.stale_snapshot_write(
            owner_id=owner_id,
            snapshot_id=snapshot_id,
            category_name=category_name,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Scheduled adjustments
    # -------------------------------------------------------------------------

    async def log_adjustment_scheduled(
        self,
        owner_id: str,
        adjustment_id: UUID,
        category_name: str,
        new_limit: Decimal,
        effective: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.adjustment_scheduled(
            owner_id=owner_id,
            adjustment_id=adjustment_id,
            category_name=category_name,
            new_limit=str(new_limit),
            effective=effective,
            correlation_id=correlation_id,
        ))

    async def log_adjustment_cancelled(
        self,
        owner_id: str,
        adjustment_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.adjustment_cancelled(
            owner_id=owner_id,
            adjustment_id=adjustment_id,
            correlation_id=correlation_id,
        ))

    async def log_adjustment_applied(
        self,
        owner_id: str,
        adjustment_id: UUID,
        snapshot_id: UUID,
        category_name: str,
        new_limit: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.adjustment_applied(
            owner_id=owner_id,
            adjustment_id=adjustment_id,
            snapshot_id=snapshot_id,
            category_name=category_name,
            new_limit=str(new_limit),
            correlation_id=correlation_id,
        ))

    async def log_adjustment_dropped(
        self,
        owner_id: str,
        adjustment_id: UUID,
        category_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a pending adjustment discarded at rollover."""
        await self.log(AuditEventBuilder.adjustment_dropped(
            owner_id=owner_id,
            adjustment_id=adjustment_id,
            category_name=category_name,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Errors
    # -------------------------------------------------------------------------

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., opening a month).
    Pass it through all subsequent operations.
    """
    return uuid4()
