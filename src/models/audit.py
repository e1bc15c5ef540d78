"""
Audit Models for Household Budget

Every change to a template, a month or a scheduled adjustment is
recorded as an AuditEvent. Recoverable conditions (missing template,
dropped adjustment, stale write) are recorded too, with a warning
severity, so they are visible without being raised to the user.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Grouped by the budget layer they touch.
    """
    # Personal budget (template)
    TEMPLATE_SAVED = "template_saved"
    TEMPLATE_ACTIVATED = "template_activated"
    TEMPLATE_METADATA_UPDATED = "template_metadata_updated"
    CATEGORY_RENAMED = "category_renamed"
    MISSING_TEMPLATE = "missing_template"

    # Monthly budget (snapshot)
    SNAPSHOT_CREATED = "snapshot_created"
    LIMIT_ADJUSTED = "limit_adjusted"
    SNAPSHOT_LOCKED = "snapshot_locked"
    SNAPSHOT_UNLOCKED = "snapshot_unlocked"
    STALE_SNAPSHOT_WRITE = "stale_snapshot_write"

    # Scheduled adjustments
    ADJUSTMENT_SCHEDULED = "adjustment_scheduled"
    ADJUSTMENT_CANCELLED = "adjustment_cancelled"
    ADJUSTMENT_APPLIED = "adjustment_applied"
    ADJUSTMENT_DROPPED = "adjustment_dropped"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every budget change creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who the event belongs to
    owner_id: Optional[str] = Field(
        default=None,
        description="User or household the budget belongs to"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'template', 'snapshot', 'adjustment')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one month rollover)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.template_saved(owner_id, template_id, version)
        event = AuditEventBuilder.adjustment_dropped(owner_id, adjustment_id, name)
    """

    @staticmethod
    def template_saved(
        owner_id: str,
        template_id: UUID,
        version: int,
        category_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEMPLATE_SAVED,
            owner_id=owner_id,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Personal budget saved as version {version}",
            details={
                "version": version,
                "category_count": category_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def template_activated(
        owner_id: str,
        template_id: UUID,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEMPLATE_ACTIVATED,
            owner_id=owner_id,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Personal budget version {version} activated",
            details={"version": version},
            is_user_action=True,
        )

    @staticmethod
    def template_metadata_updated(
        owner_id: str,
        template_id: UUID,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEMPLATE_METADATA_UPDATED,
            owner_id=owner_id,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Personal budget metadata updated: {', '.join(fields)}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def category_renamed(
        owner_id: str,
        template_id: UUID,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RENAMED,
            owner_id=owner_id,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Category renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "new_name": new_name,
            },
            is_user_action=True,
        )

    @staticmethod
    def missing_template(
        owner_id: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MISSING_TEMPLATE,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"No active personal budget during {operation}",
            details={"operation": operation},
        )

    @staticmethod
    def snapshot_created(
        owner_id: str,
        snapshot_id: UUID,
        year: int,
        month: int,
        template_version: int,
        applied_adjustments: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_CREATED,
            owner_id=owner_id,
            entity_type="snapshot",
            entity_id=snapshot_id,
            correlation_id=correlation_id,
            description=f"Monthly budget created for {year}-{month:02d}",
            details={
                "year": year,
                "month": month,
                "template_version": template_version,
                "applied_adjustments": applied_adjustments,
            },
        )

    @staticmethod
    def limit_adjusted(
        owner_id: str,
        snapshot_id: UUID,
        category_name: str,
        old_limit: str,
        new_limit: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LIMIT_ADJUSTED,
            owner_id=owner_id,
            entity_type="snapshot",
            entity_id=snapshot_id,
            correlation_id=correlation_id,
            description=f"{category_name} limit changed from {old_limit} to {new_limit}",
            details={
                "category_name": category_name,
                "old_limit": old_limit,
                "new_limit": new_limit,
            },
            is_user_action=True,
        )

    @staticmethod
    def snapshot_lock_changed(
        owner_id: str,
        snapshot_id: UUID,
        locked: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SNAPSHOT_LOCKED
                if locked
                else AuditEventType.SNAPSHOT_UNLOCKED
            ),
            owner_id=owner_id,
            entity_type="snapshot",
            entity_id=snapshot_id,
            correlation_id=correlation_id,
            description="Monthly budget locked" if locked else "Monthly budget unlocked",
            details={"locked": locked},
            is_user_action=True,
        )

    @staticmethod
    def stale_snapshot_write(
        owner_id: str,
        snapshot_id: UUID,
        category_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_SNAPSHOT_WRITE,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="snapshot",
            entity_id=snapshot_id,
            correlation_id=correlation_id,
            description="Limit change targeted a monthly budget that no longer exists",
            details={"category_name": category_name},
        )

    @staticmethod
    def adjustment_scheduled(
        owner_id: str,
        adjustment_id: UUID,
        category_name: str,
        new_limit: str,
        effective: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_SCHEDULED,
            owner_id=owner_id,
            entity_type="adjustment",
            entity_id=adjustment_id,
            correlation_id=correlation_id,
            description=f"{category_name} set to {new_limit} from {effective}",
            details={
                "category_name": category_name,
                "new_limit": new_limit,
                "effective": effective,
            },
            is_user_action=True,
        )

    @staticmethod
    def adjustment_cancelled(
        owner_id: str,
        adjustment_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_CANCELLED,
            owner_id=owner_id,
            entity_type="adjustment",
            entity_id=adjustment_id,
            correlation_id=correlation_id,
            description="Scheduled adjustment cancelled",
            is_user_action=True,
        )

    @staticmethod
    def adjustment_applied(
        owner_id: str,
        adjustment_id: UUID,
        snapshot_id: UUID,
        category_name: str,
        new_limit: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_APPLIED,
            owner_id=owner_id,
            entity_type="adjustment",
            entity_id=adjustment_id,
            correlation_id=correlation_id,
            description=f"Scheduled adjustment applied: {category_name} = {new_limit}",
            details={
                "snapshot_id": str(snapshot_id),
                "category_name": category_name,
                "new_limit": new_limit,
            },
        )

    @staticmethod
    def adjustment_dropped(
        owner_id: str,
        adjustment_id: UUID,
        category_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_DROPPED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="adjustment",
            entity_id=adjustment_id,
            correlation_id=correlation_id,
            description=f"Scheduled adjustment dropped: {category_name} is not in the personal budget",
            details={"category_name": category_name},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
