"""
Tests for the budget comparison engine.
"""

import pytest
from decimal import Decimal

from src.budget.comparison import classify, compare, compare_to_month_start
from src.budget.reconciler import reconcile
from src.models.budget import (
    CategoryConfig,
    ComparisonStatus,
    GlobalBudgetSettings,
    MonthlyBudget,
    PersonalBudget,
)


def cfg(limit: str, active: bool = True) -> CategoryConfig:
    return CategoryConfig(monthly_limit=Decimal(limit), is_active=active)


def make_template(categories: dict, currency: str = "USD") -> PersonalBudget:
    return PersonalBudget(
        owner_id="owner-1",
        name="Family Budget",
        categories=categories,
        global_settings=GlobalBudgetSettings(currency=currency),
    )


def make_snapshot(categories: dict, original: dict = None) -> MonthlyBudget:
    return MonthlyBudget(
        owner_id="owner-1",
        year=2025,
        month=10,
        categories=categories,
        original_categories=original or {},
    )


class TestClassify:
    """Tests for single-category classification."""

    def test_added(self):
        """Test a month-only category is added with no percentage."""
        line = classify("Gifts", None, cfg("50"))
        assert line.status == ComparisonStatus.ADDED
        assert line.baseline_limit == Decimal("0")
        assert line.difference == Decimal("50")
        assert line.difference_percentage is None

    def test_removed_when_absent(self):
        """Test a template-only category is removed."""
        line = classify("Gym", cfg("60"), None)
        assert line.status == ComparisonStatus.REMOVED
        assert line.monthly_limit == Decimal("0")
        assert line.difference == Decimal("-60")
        assert line.difference_percentage == -100.0
        assert line.is_active is False

    def test_removed_when_inactive_in_month(self):
        """Test an inactive month entry counts as removed."""
        line = classify("Gym", cfg("60"), cfg("60", active=False))
        assert line.status == ComparisonStatus.REMOVED

    def test_increased(self):
        line = classify("Food", cfg("400"), cfg("500"))
        assert line.status == ComparisonStatus.INCREASED
        assert line.difference == Decimal("100")
        assert line.difference_percentage == pytest.approx(25.0)

    def test_decreased(self):
        line = classify("Food", cfg("400"), cfg("300"))
        assert line.status == ComparisonStatus.DECREASED
        assert line.difference_percentage == pytest.approx(-25.0)

    def test_unchanged(self):
        line = classify("Food", cfg("400"), cfg("400"))
        assert line.status == ComparisonStatus.UNCHANGED
        assert line.difference == Decimal("0")

    def test_zero_limit_is_not_absence(self):
        """Test a zero limit present on both sides is compared, not added."""
        line = classify("Gifts", cfg("0"), cfg("0"))
        assert line.status == ComparisonStatus.UNCHANGED
        assert line.difference_percentage is None

    def test_zero_baseline_increase_has_no_percentage(self):
        """Test growth from a zero baseline has no percentage."""
        line = classify("Gifts", cfg("0"), cfg("500"))
        assert line.status == ComparisonStatus.INCREASED
        assert line.difference_percentage is None

    def test_in_neither(self):
        assert classify("Nothing", None, None) is None


class TestCompare:
    """Tests for template vs month comparison."""

    def test_totals_and_counts(self):
        """Test the full result for a mixed month."""
        template = make_template({
            "Food": cfg("400"),
            "Rent": cfg("1200"),
            "Gym": cfg("60"),
        })
        snapshot = make_snapshot({
            "Food": cfg("450"),
            "Rent": cfg("1200"),
            "Gifts": cfg("50"),
        })

        result = compare(template, snapshot)

        assert result.total_template == Decimal("1660")
        assert result.total_snapshot == Decimal("1700")
        assert result.total_difference == Decimal("40")
        assert result.total_categories == 4
        assert result.active_categories == 3
        assert result.added_categories == 1
        assert result.removed_categories == 1
        assert result.adjusted_categories == 1
        assert result.get("Gym").status == ComparisonStatus.REMOVED
        assert result.has_baseline is True

    def test_month_names_first(self):
        """Test month categories are listed before template-only ones."""
        template = make_template({"Gym": cfg("60"), "Food": cfg("400")})
        snapshot = make_snapshot({"Food": cfg("400"), "Gifts": cfg("10")})

        names = [line.category for line in compare(template, snapshot).comparisons]

        assert names == ["Food", "Gifts", "Gym"]

    def test_template_total_ignores_inactive(self):
        """Test inactive template categories are excluded from the template total."""
        template = make_template({"A": cfg("100"), "B": cfg("200", active=False)})

        for snapshot_b in (None, cfg("200"), cfg("200", active=False)):
            categories = {"A": cfg("100")}
            if snapshot_b is not None:
                categories["B"] = snapshot_b
            result = compare(template, make_snapshot(categories))
            assert result.total_template == Decimal("100")

    def test_deactivated_in_template_shows_removed(self):
        """Test a category deactivated after the month was created reads as removed."""
        template = make_template({"Groceries": cfg("500", active=False)})
        snapshot = reconcile(make_snapshot({"Groceries": cfg("500")}), template)

        line = compare(template, snapshot).get("Groceries")

        assert line.status == ComparisonStatus.REMOVED
        assert line.difference == Decimal("-500")
        assert snapshot.categories["Groceries"].monthly_limit == Decimal("500")

    def test_inactive_added_category_not_counted(self):
        """Test an inactive month-only category adds nothing to the month total."""
        template = make_template({"Food": cfg("400")})
        snapshot = make_snapshot({"Food": cfg("400"), "Old": cfg("90", active=False)})

        result = compare(template, snapshot)

        assert result.get("Old").status == ComparisonStatus.ADDED
        assert result.total_snapshot == Decimal("400")
        assert result.active_categories == 1

    def test_carries_template_currency_and_label(self):
        """Test display fields come from the template and month."""
        template = make_template({"Food": cfg("400")}, currency="EUR")
        result = compare(template, make_snapshot({"Food": cfg("400")}))

        assert result.currency == "EUR"
        assert result.baseline_name == "Family Budget"
        assert result.month_label == "October 2025"

    def test_without_template(self):
        """Test comparing with no template gives an empty result."""
        snapshot = make_snapshot({"Food": cfg("400"), "Old": cfg("90", active=False)})

        result = compare(None, snapshot)

        assert result.has_baseline is False
        assert result.comparisons == []
        assert result.total_template == Decimal("0")
        assert result.total_snapshot == Decimal("400")
        assert result.total_difference == Decimal("400")

    def test_empty_both(self):
        """Test an empty template against an empty month."""
        result = compare(make_template({}), make_snapshot({}))
        assert result.total_categories == 0
        assert result.total_difference == Decimal("0")


class TestCompareToMonthStart:
    """Tests for in-month change tracking."""

    def test_only_in_month_changes(self):
        """Test the baseline is the month's own starting point."""
        snapshot = make_snapshot(
            categories={"Food": cfg("450"), "Rent": cfg("1200")},
            original={"Food": cfg("400"), "Rent": cfg("1200")},
        )

        result = compare_to_month_start(snapshot)

        assert result.baseline_name == "Month Start"
        assert result.total_template == Decimal("1600")
        assert result.total_snapshot == Decimal("1650")
        assert result.adjusted_categories == 1
        assert result.get("Rent").status == ComparisonStatus.UNCHANGED
