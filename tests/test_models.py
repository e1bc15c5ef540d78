"""
Tests for Household Budget

Test strategy:
1. Unit tests for individual components (models, reconciler, comparison)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests (use mocks)
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from src.models.budget import (
    AdjustmentType,
    BudgetAdjustment,
    CategoryAdjustmentHistory,
    CategoryConfig,
    GlobalBudgetSettings,
    MonthlyBudget,
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


class TestCategoryConfig:
    """Tests for CategoryConfig."""

    def test_defaults(self):
        """Test a category with only a limit."""
        config = CategoryConfig(monthly_limit=Decimal("500.00"))
        assert config.warning_threshold == 80
        assert config.is_active is True
        assert config.color is None

    def test_rejects_negative_limit(self):
        """Test that negative limits are rejected."""
        with pytest.raises(ValueError):
            CategoryConfig(monthly_limit=Decimal("-1"))

    def test_rejects_three_decimal_places(self):
        """Test that limits are restricted to cents."""
        with pytest.raises(ValueError):
            CategoryConfig(monthly_limit=Decimal("10.005"))

    def test_warning_threshold_bounds(self):
        """Test warning threshold must be a percentage."""
        with pytest.raises(ValueError):
            CategoryConfig(monthly_limit=Decimal("10"), warning_threshold=101)

    def test_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        config = CategoryConfig(monthly_limit=Decimal("10"), description="  Food  ")
        assert config.description == "Food"

    def test_with_limit_validates(self):
        """Test a limit change goes through the same validation."""
        config = CategoryConfig(monthly_limit=Decimal("500"), color="#EF4444")

        updated = config.with_limit(0.1)

        assert str(updated.monthly_limit) == "0.10"
        assert updated.color == "#EF4444"
        with pytest.raises(ValueError):
            config.with_limit(Decimal("12.345"))
        with pytest.raises(ValueError):
            config.with_limit(-5)


class TestParseLimit:
    """Tests for turning input into a monthly limit."""

    def test_accepts_numbers(self):
        assert parse_limit(Decimal("12.5")) == Decimal("12.50")
        assert parse_limit(100) == Decimal("100.00")
        assert parse_limit("7.25") == Decimal("7.25")

    def test_float_keeps_written_value(self):
        """Test 0.1 is not stored as its binary expansion."""
        assert str(parse_limit(0.1)) == "0.10"

    def test_rejects_bad_input(self):
        for value in (Decimal("12.345"), -1, "abc", Decimal("NaN")):
            with pytest.raises(ValueError):
                parse_limit(value)


class TestBudgetModels:
    """Tests for template and snapshot models."""

    def test_currency_is_uppercased(self):
        """Test currency codes are normalized."""
        settings = GlobalBudgetSettings(currency="eur")
        assert settings.currency == "EUR"

    def test_template_total_excludes_inactive(self):
        """Test that inactive categories don't count towards the total."""
        template = PersonalBudget(
            owner_id="owner-1",
            categories={
                "Food": CategoryConfig(monthly_limit=Decimal("500")),
                "Travel": CategoryConfig(monthly_limit=Decimal("200"), is_active=False),
            },
        )
        assert template.total_monthly_limit == Decimal("500")
        assert template.active_category_count == 1

    def test_template_defaults(self):
        """Test default name and version."""
        template = PersonalBudget(owner_id="owner-1")
        assert template.name == "My Budget"
        assert template.version == 1
        assert template.is_active is True

    def test_snapshot_month_bounds(self):
        """Test month must be 1-12."""
        with pytest.raises(ValueError):
            MonthlyBudget(owner_id="owner-1", year=2025, month=13)

    def test_snapshot_properties(self):
        """Test month label and adjustment flag."""
        snapshot = MonthlyBudget(
            owner_id="owner-1",
            year=2025,
            month=10,
            categories={"Food": CategoryConfig(monthly_limit=Decimal("450"))},
            adjustment_count=2,
        )
        assert snapshot.month_label == "October 2025"
        assert snapshot.total_limit == Decimal("450")
        assert snapshot.has_adjustments is True


class TestBudgetAdjustment:
    """Tests for BudgetAdjustment validation."""

    def test_valid_increase(self):
        """Test a consistent increase."""
        adjustment = BudgetAdjustment(
            owner_id="owner-1",
            category_name="Food",
            current_limit=Decimal("500"),
            new_limit=Decimal("650"),
            adjustment_type=AdjustmentType.INCREASE,
            adjustment_amount=Decimal("150"),
            effective_year=2025,
            effective_month=11,
        )
        assert adjustment.effective_label == "November 2025"
        assert adjustment.targets(2025, 11)
        assert not adjustment.targets(2025, 12)

    def test_amount_must_match_difference(self):
        """Test amount must equal |new - current|."""
        with pytest.raises(ValueError, match="limit difference"):
            BudgetAdjustment(
                owner_id="owner-1",
                category_name="Food",
                current_limit=Decimal("500"),
                new_limit=Decimal("650"),
                adjustment_type=AdjustmentType.INCREASE,
                adjustment_amount=Decimal("100"),
                effective_year=2025,
                effective_month=11,
            )

    def test_direction_must_match(self):
        """Test an increase can't lower the limit."""
        with pytest.raises(ValueError, match="cannot lower"):
            BudgetAdjustment(
                owner_id="owner-1",
                category_name="Food",
                current_limit=Decimal("500"),
                new_limit=Decimal("400"),
                adjustment_type=AdjustmentType.INCREASE,
                adjustment_amount=Decimal("100"),
                effective_year=2025,
                effective_month=11,
            )

    def test_limits_restricted_to_cents(self):
        with pytest.raises(ValueError):
            BudgetAdjustment(
                owner_id="owner-1",
                category_name="Food",
                current_limit=Decimal("500"),
                new_limit=Decimal("500.005"),
                adjustment_type=AdjustmentType.INCREASE,
                adjustment_amount=Decimal("0.005"),
                effective_year=2025,
                effective_month=11,
            )

    def test_history_averages(self):
        """Test net and average adjustment."""
        history = CategoryAdjustmentHistory(
            category_name="Food",
            adjustment_count=2,
            total_increased_amount=Decimal("150"),
            total_decreased_amount=Decimal("50"),
        )
        assert history.net_adjustment == Decimal("100")
        assert history.average_adjustment == Decimal("100")

    def test_empty_history_average(self):
        """Test average with no adjustments."""
        history = CategoryAdjustmentHistory(category_name="Food")
        assert history.average_adjustment == Decimal("0")


class TestMonthHelpers:
    """Tests for month arithmetic and labels."""

    def test_next_month_wraps_december(self):
        """Test December rolls into January of the next year."""
        assert next_month(2025, 12) == (2026, 1)
        assert next_month(2025, 10) == (2025, 11)

    def test_month_name(self):
        """Test month names, including out-of-range."""
        assert month_name(1) == "January"
        assert month_name(13) == "Unknown"

    def test_format_month_year(self):
        assert format_month_year(2025, 10) == "October 2025"

    def test_total_active_limit_empty(self):
        """Test the total of no categories."""
        assert total_active_limit({}) == Decimal("0")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SNAPSHOT_CREATED,
            description="Monthly budget created",
        )
        assert event.event_type == AuditEventType.SNAPSHOT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.LIMIT_ADJUSTED,
            owner_id="owner-1",
            description="Food limit changed",
            details={"category_name": "Food", "new_limit": "450"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "limit_adjusted"
        assert log_dict["owner_id"] == "owner-1"
        assert log_dict["details"]["category_name"] == "Food"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_SCHEDULED,
            owner_id="owner-1",
            description="Food set to 650",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "adjustment_scheduled"  # event_type
        assert row[4] == "owner-1"  # owner_id
        assert row[11] == "True"  # is_user_action

    def test_builder_template_saved(self):
        """Test AuditEventBuilder.template_saved."""
        template_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.template_saved(
            owner_id="owner-1",
            template_id=template_id,
            version=3,
            category_count=5,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TEMPLATE_SAVED
        assert event.entity_id == template_id
        assert event.correlation_id == correlation_id
        assert event.details["version"] == 3
        assert event.is_user_action is True

    def test_builder_adjustment_dropped_is_warning(self):
        """Test dropped adjustments are recorded as warnings."""
        event = AuditEventBuilder.adjustment_dropped(
            owner_id="owner-1",
            adjustment_id=uuid4(),
            category_name="Gym",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_type == "adjustment"
        assert "Gym" in event.description

    def test_builder_lock_changed(self):
        """Test lock and unlock map to separate event types."""
        snapshot_id = uuid4()
        locked = AuditEventBuilder.snapshot_lock_changed("owner-1", snapshot_id, True)
        unlocked = AuditEventBuilder.snapshot_lock_changed("owner-1", snapshot_id, False)
        assert locked.event_type == AuditEventType.SNAPSHOT_LOCKED
        assert unlocked.event_type == AuditEventType.SNAPSHOT_UNLOCKED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
