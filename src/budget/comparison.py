"""
Budget Comparison Engine

Computes a category-by-category diff between a baseline (normally the
personal budget) and one month, plus totals for display.

CLASSIFICATION:
- added:     in the month, not in the baseline
- removed:   in the baseline, absent or inactive in the month
- increased / decreased / unchanged: active in the month and present
  in the baseline, compared by limit

The baseline total is the sum of the baseline's active limits only.
It does not depend on what the month has deactivated.
"""

from decimal import Decimal
from typing import Optional

import structlog

from src.models.budget import (
    BudgetComparison,
    CategoryComparison,
    CategoryConfig,
    ComparisonStatus,
    MonthlyBudget,
    PersonalBudget,
    format_month_year,
    total_active_limit,
)


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def _percentage(difference: Decimal, baseline: Decimal) -> Optional[float]:
    """Difference as a percentage of the baseline; None when the baseline is 0."""
    if baseline <= 0:
        return None
    return float(difference / baseline * 100)


def classify(
    name: str,
    baseline: Optional[CategoryConfig],
    monthly: Optional[CategoryConfig],
) -> Optional[CategoryComparison]:
    """
    Classify one category.

    Returns None when the name is in neither mapping.
    """
    if baseline is None and monthly is None:
        return None

    if baseline is None:
        return CategoryComparison(
            category=name,
            status=ComparisonStatus.ADDED,
            baseline_limit=ZERO,
            monthly_limit=monthly.monthly_limit,
            difference=monthly.monthly_limit,
            difference_percentage=None,
            is_active=monthly.is_active,
        )

    if monthly is None or not monthly.is_active:
        return CategoryComparison(
            category=name,
            status=ComparisonStatus.REMOVED,
            baseline_limit=baseline.monthly_limit,
            monthly_limit=ZERO,
            difference=-baseline.monthly_limit,
            difference_percentage=-100.0 if baseline.monthly_limit > 0 else None,
            is_active=False,
        )

    difference = monthly.monthly_limit - baseline.monthly_limit
    if difference > 0:
        status = ComparisonStatus.INCREASED
    elif difference < 0:
        status = ComparisonStatus.DECREASED
    else:
        status = ComparisonStatus.UNCHANGED

    return CategoryComparison(
        category=name,
        status=status,
        baseline_limit=baseline.monthly_limit,
        monthly_limit=monthly.monthly_limit,
        difference=difference,
        difference_percentage=_percentage(difference, baseline.monthly_limit),
        is_active=True,
    )


def compare_categories(
    baseline: dict[str, CategoryConfig],
    monthly: dict[str, CategoryConfig],
    baseline_name: str,
    year: int,
    month: int,
    currency: str,
) -> BudgetComparison:
    """Compare two category mappings. Month names come first, then baseline-only names."""
    names = list(monthly)
    names.extend(name for name in baseline if name not in monthly)

    comparisons: list[CategoryComparison] = []
    counts = {status: 0 for status in ComparisonStatus}
    active_count = 0
    total_snapshot = ZERO

    for name in names:
        line = classify(name, baseline.get(name), monthly.get(name))
        if line is None:
            continue
        comparisons.append(line)
        counts[line.status] += 1
        if line.is_active:
            active_count += 1
            total_snapshot += line.monthly_limit

    total_template = total_active_limit(baseline)

    return BudgetComparison(
        baseline_name=baseline_name,
        month_label=format_month_year(year, month),
        year=year,
        month=month,
        currency=currency,
        total_categories=len(names),
        active_categories=active_count,
        added_categories=counts[ComparisonStatus.ADDED],
        removed_categories=counts[ComparisonStatus.REMOVED],
        adjusted_categories=(
            counts[ComparisonStatus.INCREASED] + counts[ComparisonStatus.DECREASED]
        ),
        comparisons=comparisons,
        total_template=total_template,
        total_snapshot=total_snapshot,
        total_difference=total_snapshot - total_template,
    )


def compare(
    template: Optional[PersonalBudget],
    snapshot: MonthlyBudget,
) -> BudgetComparison:
    """
    Compare a month against the personal budget.

    Without a template the result is empty: no lines, a zero template
    total and has_baseline=False. The month total is still reported.
    """
    if template is None:
        logger.info(
            "compare_without_template",
            owner_id=snapshot.owner_id,
            year=snapshot.year,
            month=snapshot.month,
        )
        total_snapshot = total_active_limit(snapshot.categories)
        return BudgetComparison(
            baseline_name="",
            month_label=snapshot.month_label,
            year=snapshot.year,
            month=snapshot.month,
            currency=snapshot.global_settings.currency,
            total_snapshot=total_snapshot,
            total_difference=total_snapshot,
            has_baseline=False,
        )

    return compare_categories(
        baseline=template.categories,
        monthly=snapshot.categories,
        baseline_name=template.name,
        year=snapshot.year,
        month=snapshot.month,
        currency=template.global_settings.currency,
    )


def compare_to_month_start(snapshot: MonthlyBudget) -> BudgetComparison:
    """
    Compare a month against its own starting point.

    The baseline is original_categories, captured when the month was
    created, so the result shows only in-month changes.
    """
    return compare_categories(
        baseline=snapshot.original_categories,
        monthly=snapshot.categories,
        baseline_name="Month Start",
        year=snapshot.year,
        month=snapshot.month,
        currency=snapshot.global_settings.currency,
    )
