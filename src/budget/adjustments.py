"""
Scheduled Budget Adjustments

A user can queue a category limit change for the next calendar month
without touching the current month's numbers. Pending adjustments are
applied exactly once, when the target month is first created.

An adjustment whose category is no longer in the personal budget at
rollover is dropped. find_orphaned_adjustments() lets callers see such
adjustments before the month rolls over.
"""

from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from src.models.budget import (
    AdjustmentType,
    BudgetAdjustment,
    CategoryAdjustmentHistory,
    MonthlyBudget,
    PendingAdjustmentsSummary,
    PersonalBudget,
    format_month_year,
    next_month,
    parse_limit,
)


logger = structlog.get_logger(__name__)


class RolloverResult(BaseModel):
    """Outcome of applying pending adjustments to a new month."""

    snapshot: MonthlyBudget
    applied: list[BudgetAdjustment] = Field(default_factory=list)
    dropped: list[BudgetAdjustment] = Field(default_factory=list)


def effective_month_for(today: Optional[date] = None) -> tuple[int, int]:
    """The month an adjustment scheduled today takes effect in."""
    today = today or date.today()
    return next_month(today.year, today.month)


def schedule_adjustment(
    owner_id: str,
    category_name: str,
    current_limit: Decimal,
    new_limit: Decimal,
    reason: Optional[str] = None,
    today: Optional[date] = None,
    created_by: Optional[str] = None,
) -> BudgetAdjustment:
    """
    Build a pending adjustment for the next calendar month.

    December schedules into January of the following year.
    An unchanged limit is recorded as a zero-amount decrease.
    """
    current_limit = parse_limit(current_limit)
    new_limit = parse_limit(new_limit)
    year, month = effective_month_for(today)

    adjustment_type = (
        AdjustmentType.INCREASE if new_limit > current_limit else AdjustmentType.DECREASE
    )

    return BudgetAdjustment(
        owner_id=owner_id,
        category_name=category_name,
        current_limit=current_limit,
        new_limit=new_limit,
        adjustment_type=adjustment_type,
        adjustment_amount=abs(new_limit - current_limit),
        effective_year=year,
        effective_month=month,
        reason=reason,
        created_by=created_by or owner_id,
    )


def apply_on_rollover(
    adjustments: Iterable[BudgetAdjustment],
    snapshot: MonthlyBudget,
    template: PersonalBudget,
) -> RolloverResult:
    """
    Apply pending adjustments to a freshly created month.

    Each adjustment targeting the snapshot's month overwrites that
    category's limit and increments adjustment_count. Adjustments for
    other months are ignored. Adjustments naming a category that is not
    in the personal budget are dropped.
    """
    categories = dict(snapshot.categories)
    adjustment_count = snapshot.adjustment_count
    applied: list[BudgetAdjustment] = []
    dropped: list[BudgetAdjustment] = []

    for adjustment in adjustments:
        if adjustment.is_applied or not adjustment.targets(snapshot.year, snapshot.month):
            continue

        name = adjustment.category_name
        if name not in template.categories or name not in categories:
            logger.warning(
                "adjustment_dropped",
                reason="unknown_category",
                owner_id=snapshot.owner_id,
                adjustment_id=str(adjustment.id),
                category_name=name,
            )
            dropped.append(adjustment)
            continue

        categories[name] = categories[name].with_limit(adjustment.new_limit)
        adjustment_count += 1
        applied.append(
            adjustment.model_copy(
                update={"is_applied": True, "applied_at": datetime.utcnow()}
            )
        )

    return RolloverResult(
        snapshot=snapshot.model_copy(
            update={"categories": categories, "adjustment_count": adjustment_count}
        ),
        applied=applied,
        dropped=dropped,
    )


def find_orphaned_adjustments(
    adjustments: Iterable[BudgetAdjustment],
    template: Optional[PersonalBudget],
) -> list[BudgetAdjustment]:
    """Pending adjustments whose category is no longer in the personal budget."""
    known = template.categories if template else {}
    return [
        adjustment
        for adjustment in adjustments
        if not adjustment.is_applied and adjustment.category_name not in known
    ]


def summarize_pending(
    adjustments: Iterable[BudgetAdjustment],
    year: int,
    month: int,
) -> PendingAdjustmentsSummary:
    """Totals of the pending adjustments due in one month."""
    due = [
        a for a in adjustments
        if not a.is_applied and a.targets(year, month)
    ]
    total_increase = sum(
        (a.adjustment_amount for a in due if a.adjustment_type == AdjustmentType.INCREASE),
        Decimal("0"),
    )
    total_decrease = sum(
        (a.adjustment_amount for a in due if a.adjustment_type == AdjustmentType.DECREASE),
        Decimal("0"),
    )

    return PendingAdjustmentsSummary(
        effective_year=year,
        effective_month=month,
        effective_date=format_month_year(year, month),
        adjustment_count=len(due),
        total_increase=total_increase,
        total_decrease=total_decrease,
        net_change=total_increase - total_decrease,
        adjustments=sorted(due, key=lambda a: a.category_name),
    )


def category_histories(
    applied: Iterable[BudgetAdjustment],
) -> list[CategoryAdjustmentHistory]:
    """
    Per-category adjustment history from applied adjustments.

    Sorted by adjustment count, most adjusted first.
    """
    histories: "OrderedDict[str, CategoryAdjustmentHistory]" = OrderedDict()

    for adjustment in sorted(applied, key=lambda a: a.applied_at or a.created_at):
        if not adjustment.is_applied:
            continue
        when = adjustment.applied_at or adjustment.created_at
        history = histories.get(adjustment.category_name)
        if history is None:
            history = CategoryAdjustmentHistory(
                category_name=adjustment.category_name,
                first_adjusted_at=when,
            )
            histories[adjustment.category_name] = history

        history.adjustment_count += 1
        history.last_adjusted_at = when
        if adjustment.adjustment_type == AdjustmentType.INCREASE:
            history.total_increased_amount += adjustment.adjustment_amount
        else:
            history.total_decreased_amount += adjustment.adjustment_amount

    return sorted(
        histories.values(),
        key=lambda h: h.adjustment_count,
        reverse=True,
    )
