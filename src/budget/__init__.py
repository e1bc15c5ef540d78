"""Budget reconciliation package."""

from src.budget.adjustments import (
    RolloverResult,
    apply_on_rollover,
    category_histories,
    effective_month_for,
    find_orphaned_adjustments,
    schedule_adjustment,
    summarize_pending,
)
from src.budget.comparison import compare, compare_to_month_start
from src.budget.errors import (
    BudgetError,
    LockedSnapshotError,
    MissingTemplateError,
    UnknownCategoryError,
)
from src.budget.reconciler import reconcile, seed_from_template

__all__ = [
    # Reconciliation
    "reconcile",
    "seed_from_template",
    # Comparison
    "compare",
    "compare_to_month_start",
    # Adjustments
    "RolloverResult",
    "apply_on_rollover",
    "category_histories",
    "effective_month_for",
    "find_orphaned_adjustments",
    "schedule_adjustment",
    "summarize_pending",
    # Errors
    "BudgetError",
    "LockedSnapshotError",
    "MissingTemplateError",
    "UnknownCategoryError",
]
