"""
Data Models Package

This package contains all Pydantic models used by the budget core.
Templates, monthly budgets and adjustments all conform to these schemas.
"""

from src.models.budget import (
    AdjustmentType,
    BudgetAdjustment,
    BudgetComparison,
    CategoryAdjustmentHistory,
    CategoryComparison,
    CategoryConfig,
    CategoryPriority,
    ComparisonStatus,
    FamilyMember,
    GlobalBudgetSettings,
    MonthlyBudget,
    PendingAdjustmentsSummary,
    PersonalBudget,
    format_month_year,
    month_name,
    next_month,
    parse_limit,
    total_active_limit,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "AdjustmentType",
    "BudgetAdjustment",
    "BudgetComparison",
    "CategoryAdjustmentHistory",
    "CategoryComparison",
    "CategoryConfig",
    "CategoryPriority",
    "ComparisonStatus",
    "FamilyMember",
    "GlobalBudgetSettings",
    "MonthlyBudget",
    "PendingAdjustmentsSummary",
    "PersonalBudget",
    # Month helpers
    "format_month_year",
    "month_name",
    "next_month",
    "parse_limit",
    "total_active_limit",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
