"""
Monthly Budget Reconciliation

Blends a month's stored categories with the owner's current personal
budget to produce what should be displayed for that month.

RULES:
1. Category in both: display metadata (active flag, colour, description,
   warning threshold) comes from the template; the month keeps its own
   limit, which may have been adjusted.
2. Category only in the template: included only when new categories are
   allowed, which is only when the month is first created.
3. Category only in the month: kept, but marked inactive.
4. Global settings always come from the template.

Reconciliation is a pure function. The result is never written back to
storage; it is derived again on every read.
"""

from typing import Optional

import structlog

from src.models.budget import CategoryConfig, MonthlyBudget, PersonalBudget


logger = structlog.get_logger(__name__)

# Fields refreshed from the template on every read
SYNCED_FIELDS = ("is_active", "color", "description", "warning_threshold")


def sync_category(
    stored: CategoryConfig,
    template_config: CategoryConfig,
) -> CategoryConfig:
    """Refresh a stored category's metadata from the template, keeping its limit."""
    return stored.model_copy(
        update={field: getattr(template_config, field) for field in SYNCED_FIELDS}
    )


def reconcile(
    snapshot: MonthlyBudget,
    template: Optional[PersonalBudget],
    allow_new_categories: bool = False,
) -> MonthlyBudget:
    """
    Reconcile a monthly budget against the personal budget.

    Args:
        snapshot: The month as stored
        template: The owner's active personal budget, or None
        allow_new_categories: True only while the month is being created

    Returns:
        A new MonthlyBudget. Without a template this is an unchanged copy.
    """
    if template is None:
        logger.info(
            "reconcile_skipped",
            reason="missing_template",
            owner_id=snapshot.owner_id,
            year=snapshot.year,
            month=snapshot.month,
        )
        return snapshot.model_copy(deep=True)

    categories: dict[str, CategoryConfig] = {
        name: config.model_copy() for name, config in snapshot.categories.items()
    }

    for name, template_config in template.categories.items():
        if name in categories:
            categories[name] = sync_category(categories[name], template_config)
        elif allow_new_categories:
            categories[name] = template_config.model_copy()

    # Deleted from the template: keep the record, stop counting it
    for name, config in categories.items():
        if name not in template.categories and config.is_active:
            categories[name] = config.model_copy(update={"is_active": False})

    return snapshot.model_copy(
        update={
            "categories": categories,
            "global_settings": template.global_settings.model_copy(deep=True),
        },
        deep=True,
    )


def seed_from_template(
    owner_id: str,
    year: int,
    month: int,
    template: PersonalBudget,
    notes: Optional[str] = None,
) -> MonthlyBudget:
    """
    Build a brand-new month from the personal budget.

    This is the only place new categories are allowed into a month.
    original_categories is left empty; it is filled once rollover
    adjustments have been applied.
    """
    empty = MonthlyBudget(
        owner_id=owner_id,
        personal_budget_id=template.id,
        year=year,
        month=month,
        notes=notes,
    )
    return reconcile(empty, template, allow_new_categories=True)
