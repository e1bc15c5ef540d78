"""
Tests for monthly budget reconciliation.

Reconciliation is pure, so these tests need no storage.
"""

import pytest
from decimal import Decimal

from src.budget.reconciler import reconcile, seed_from_template
from src.models.budget import (
    CategoryConfig,
    GlobalBudgetSettings,
    MonthlyBudget,
    PersonalBudget,
)


def make_template(categories: dict, currency: str = "USD") -> PersonalBudget:
    return PersonalBudget(
        owner_id="owner-1",
        categories=categories,
        global_settings=GlobalBudgetSettings(currency=currency),
    )


def make_snapshot(categories: dict, year: int = 2025, month: int = 10) -> MonthlyBudget:
    return MonthlyBudget(
        owner_id="owner-1",
        year=year,
        month=month,
        categories=categories,
    )


@pytest.fixture
def template():
    """Groceries 500 and Entertainment 400, both active."""
    return make_template({
        "Groceries": CategoryConfig(monthly_limit=Decimal("500"), color="#10B981"),
        "Entertainment": CategoryConfig(monthly_limit=Decimal("400")),
    })


@pytest.fixture
def existing_month():
    """A month created before Entertainment was added."""
    return make_snapshot({
        "Groceries": CategoryConfig(monthly_limit=Decimal("500")),
    })


class TestNewCategories:
    """Template categories missing from a month."""

    def test_not_added_to_existing_month(self, template, existing_month):
        """Test an existing month never gains a category added later."""
        result = reconcile(existing_month, template)

        assert list(result.categories) == ["Groceries"]
        assert "Entertainment" not in result.categories

    def test_added_when_allowed(self, template, existing_month):
        """Test new categories are copied in while a month is being created."""
        result = reconcile(existing_month, template, allow_new_categories=True)

        assert result.categories["Groceries"].monthly_limit == Decimal("500")
        assert result.categories["Entertainment"].monthly_limit == Decimal("400")

    def test_added_category_is_a_copy(self, template, existing_month):
        """Test the month does not share objects with the template."""
        result = reconcile(existing_month, template, allow_new_categories=True)
        assert result.categories["Entertainment"] is not template.categories["Entertainment"]


class TestLimitPreservation:
    """Categories present on both sides keep the month's limit."""

    def test_limit_kept_metadata_synced(self):
        """Test metadata comes from the template while the limit stays."""
        template = make_template({
            "Food": CategoryConfig(
                monthly_limit=Decimal("600"),
                warning_threshold=90,
                color="#EF4444",
                description="Groceries and takeaway",
            ),
        })
        snapshot = make_snapshot({
            "Food": CategoryConfig(monthly_limit=Decimal("450"), warning_threshold=70),
        })

        food = reconcile(snapshot, template).categories["Food"]

        assert food.monthly_limit == Decimal("450")
        assert food.warning_threshold == 90
        assert food.color == "#EF4444"
        assert food.description == "Groceries and takeaway"

    def test_priority_not_synced(self):
        """Test fields outside the synced set stay as stored."""
        template = make_template({
            "Food": CategoryConfig(monthly_limit=Decimal("600"), priority="high"),
        })
        snapshot = make_snapshot({
            "Food": CategoryConfig(monthly_limit=Decimal("450"), priority="low"),
        })
        assert reconcile(snapshot, template).categories["Food"].priority.value == "low"

    def test_deactivation_keeps_limit(self):
        """Test a category deactivated in the template keeps its month limit."""
        template = make_template({
            "Groceries": CategoryConfig(monthly_limit=Decimal("500"), is_active=False),
        })
        snapshot = make_snapshot({
            "Groceries": CategoryConfig(monthly_limit=Decimal("500")),
        })

        groceries = reconcile(snapshot, template).categories["Groceries"]

        assert groceries.is_active is False
        assert groceries.monthly_limit == Decimal("500")


class TestSoftDeletion:
    """Categories removed from the template."""

    def test_removed_category_kept_inactive(self, template):
        """Test a deleted category stays in the month, inactive."""
        snapshot = make_snapshot({
            "Groceries": CategoryConfig(monthly_limit=Decimal("500")),
            "Gym": CategoryConfig(monthly_limit=Decimal("60")),
        })

        result = reconcile(snapshot, template)

        assert "Gym" in result.categories
        assert result.categories["Gym"].is_active is False
        assert result.categories["Gym"].monthly_limit == Decimal("60")
        assert result.total_limit == Decimal("500")


class TestReconcileGeneral:
    """Other reconciliation rules."""

    def test_global_settings_from_template(self, existing_month):
        """Test the month shows the template's currency."""
        template = make_template(
            {"Groceries": CategoryConfig(monthly_limit=Decimal("500"))},
            currency="EUR",
        )
        assert reconcile(existing_month, template).global_settings.currency == "EUR"

    def test_missing_template_is_pass_through(self, existing_month):
        """Test reconciling without a template returns the month unchanged."""
        result = reconcile(existing_month, None)

        assert result == existing_month
        assert result is not existing_month

    def test_input_not_mutated(self, existing_month):
        """Test the stored month is never modified."""
        template = make_template({
            "Groceries": CategoryConfig(monthly_limit=Decimal("500"), is_active=False),
        })
        reconcile(existing_month, template, allow_new_categories=True)

        assert existing_month.categories["Groceries"].is_active is True

    def test_result_shares_no_categories(self, template):
        """Test every category in the result is a separate object, even untouched ones."""
        month = make_snapshot({
            "Groceries": CategoryConfig(monthly_limit=Decimal("500")),
            "Gym": CategoryConfig(monthly_limit=Decimal("60"), is_active=False),
        })
        month = month.model_copy(update={"original_categories": dict(month.categories)})

        result = reconcile(month, template)
        result.categories["Gym"].monthly_limit = Decimal("99")
        result.original_categories["Gym"].monthly_limit = Decimal("99")

        assert result.categories["Gym"] is not month.categories["Gym"]
        assert month.categories["Gym"].monthly_limit == Decimal("60")
        assert month.original_categories["Gym"].monthly_limit == Decimal("60")

    @pytest.mark.parametrize("allow_new", [False, True])
    def test_idempotent(self, template, allow_new):
        """Test reconciling a reconciled month changes nothing."""
        snapshot = make_snapshot({
            "Groceries": CategoryConfig(monthly_limit=Decimal("480")),
            "Gym": CategoryConfig(monthly_limit=Decimal("60")),
        })

        once = reconcile(snapshot, template, allow_new_categories=allow_new)
        twice = reconcile(once, template, allow_new_categories=allow_new)

        assert twice.categories == once.categories
        assert twice.global_settings == once.global_settings


class TestSeedFromTemplate:
    """Tests for building a new month."""

    def test_seed_copies_all_categories(self, template):
        """Test a new month gets every template category and limit."""
        snapshot = seed_from_template("owner-1", 2025, 11, template)

        assert snapshot.personal_budget_id == template.id
        assert snapshot.year == 2025
        assert snapshot.month == 11
        assert snapshot.total_limit == Decimal("900")
        assert snapshot.adjustment_count == 0
        assert snapshot.original_categories == {}

    def test_seed_keeps_inactive_categories(self):
        """Test inactive template categories are seeded inactive."""
        template = make_template({
            "A": CategoryConfig(monthly_limit=Decimal("100")),
            "B": CategoryConfig(monthly_limit=Decimal("200"), is_active=False),
        })
        snapshot = seed_from_template("owner-1", 2025, 11, template)

        assert snapshot.categories["B"].is_active is False
        assert snapshot.total_limit == Decimal("100")
