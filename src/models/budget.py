"""
Budget Models for Household Budget

These models define the schemas for the two budget layers and
everything derived from them:

1. PersonalBudget - the owner's standing, versioned category template
2. MonthlyBudget  - one calendar month's copy of the template
3. BudgetAdjustment - a limit change queued for the next month
4. BudgetComparison - what changed between template and month

DESIGN DECISION: Category maps are typed as dict[str, CategoryConfig].
Presence of a name is checked explicitly with `in`; a missing category
is never treated as a category with a zero limit.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def month_name(month: int) -> str:
    """Get the English month name for 1-12, 'Unknown' otherwise."""
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return "Unknown"


def format_month_year(year: int, month: int) -> str:
    """Format a month for display, e.g. 'October 2025'."""
    return f"{month_name(month)} {year}"


def next_month(year: int, month: int) -> tuple[int, int]:
    """Return the (year, month) after the given one, wrapping December."""
    if month == 12:
        return year + 1, 1
    return year, month + 1


CENT = Decimal("0.01")


def parse_limit(value) -> Decimal:
    """
    Convert user input to a monthly limit.

    Floats go through str() so 0.1 stays 0.1. The result always has
    exactly two decimal places.

    Raises:
        ValueError: If the value is not a non-negative amount in cents
    """
    try:
        limit = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid monthly limit: {value!r}") from e
    if not limit.is_finite():
        raise ValueError(f"Invalid monthly limit: {value!r}")
    if limit < 0:
        raise ValueError("Monthly limit cannot be negative")
    if limit != limit.quantize(CENT):
        raise ValueError("Monthly limit cannot have more than 2 decimal places")
    return limit.quantize(CENT)


def total_active_limit(categories: dict[str, "CategoryConfig"]) -> Decimal:
    """Sum of monthly limits over active categories only."""
    return sum(
        (config.monthly_limit for config in categories.values() if config.is_active),
        Decimal("0"),
    )


# =============================================================================
# ENUMS
# =============================================================================

class CategoryPriority(str, Enum):
    """Optional priority tag on a category."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AdjustmentType(str, Enum):
    """Direction of a scheduled limit change."""
    INCREASE = "increase"
    DECREASE = "decrease"


class ComparisonStatus(str, Enum):
    """
    How a category differs between the template and a month.

    ADDED and REMOVED key off presence and active state.
    The other three compare limits of a category active on both sides.
    """
    ADDED = "added"
    REMOVED = "removed"
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"


# =============================================================================
# CATEGORY CONFIGURATION
# =============================================================================

class CategoryConfig(BaseModel):
    """
    Spending-limit configuration for one category.

    Embedded in both the template and every monthly snapshot,
    keyed by category name in the containing mapping.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    monthly_limit: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Monthly spending limit"
    )
    warning_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Percentage of the limit at which to warn"
    )
    is_active: bool = Field(
        default=True,
        description="Inactive categories are excluded from all totals"
    )
    color: Optional[str] = Field(
        default=None,
        max_length=32,
        description="Display colour token"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )
    priority: Optional[CategoryPriority] = None

    def with_limit(self, monthly_limit) -> "CategoryConfig":
        """Copy with a new limit, validated like any other limit."""
        return CategoryConfig.model_validate(
            {**self.model_dump(), "monthly_limit": parse_limit(monthly_limit)}
        )


class FamilyMember(BaseModel):
    """A household member shown in budget views."""

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = None


class GlobalBudgetSettings(BaseModel):
    """
    Budget-wide preferences.

    Always taken from the template when a month is read,
    never frozen into a snapshot.
    """

    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    warning_notifications: bool = True
    email_alerts: bool = False
    family_members: list[FamilyMember] = Field(default_factory=list)
    active_expense_categories: list[str] = Field(default_factory=list)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


# =============================================================================
# TEMPLATE AND SNAPSHOT
# =============================================================================

class PersonalBudget(BaseModel):
    """
    The owner's standing budget template ("My Budget").

    Versioned by supersession: every edit is stored as a new version
    and the previous version is deactivated. At most one version per
    owner has is_active=True.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(
        ...,
        min_length=1,
        description="User or household that owns this template"
    )
    version: int = Field(default=1, ge=1)
    name: str = Field(
        default="My Budget",
        min_length=1,
        max_length=200
    )
    categories: dict[str, CategoryConfig] = Field(default_factory=dict)
    global_settings: GlobalBudgetSettings = Field(
        default_factory=GlobalBudgetSettings
    )
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @property
    def total_monthly_limit(self) -> Decimal:
        """Total of all active category limits."""
        return total_active_limit(self.categories)

    @property
    def active_category_count(self) -> int:
        return sum(1 for config in self.categories.values() if config.is_active)


class MonthlyBudget(BaseModel):
    """
    One calendar month's budget, seeded from the template.

    Created lazily on first access for the month. Its limits may be
    adjusted in place afterwards, but it never receives categories
    added to the template after its creation.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    personal_budget_id: Optional[UUID] = Field(
        default=None,
        description="Template version this month was seeded from"
    )
    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)

    categories: dict[str, CategoryConfig] = Field(default_factory=dict)
    original_categories: dict[str, CategoryConfig] = Field(
        default_factory=dict,
        description="Categories as they stood when the month was created"
    )
    global_settings: GlobalBudgetSettings = Field(
        default_factory=GlobalBudgetSettings
    )

    adjustment_count: int = Field(
        default=0,
        ge=0,
        description="Number of limit changes applied after creation"
    )
    is_locked: bool = False

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @property
    def month_label(self) -> str:
        return format_month_year(self.year, self.month)

    @property
    def total_limit(self) -> Decimal:
        """Total budgeted for the month (active categories only)."""
        return total_active_limit(self.categories)

    @property
    def has_adjustments(self) -> bool:
        return self.adjustment_count > 0


# =============================================================================
# SCHEDULED ADJUSTMENTS
# =============================================================================

class BudgetAdjustment(BaseModel):
    """
    A category limit change queued for a future month.

    Consumed when the target month's snapshot is first created.
    Can be cancelled while still pending.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    category_name: str = Field(..., min_length=1, max_length=200)

    current_limit: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Limit at the time the change was scheduled"
    )
    new_limit: Decimal = Field(..., ge=0, decimal_places=2)
    adjustment_type: AdjustmentType
    adjustment_amount: Decimal = Field(..., ge=0, decimal_places=2)

    effective_year: int = Field(..., ge=1900, le=9999)
    effective_month: int = Field(..., ge=1, le=12)

    reason: Optional[str] = Field(default=None, max_length=500)
    is_applied: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    applied_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @model_validator(mode='after')
    def validate_amount(self) -> 'BudgetAdjustment':
        """Amount and direction must agree with the two limits."""
        if self.adjustment_amount != abs(self.new_limit - self.current_limit):
            raise ValueError("Adjustment amount must equal the limit difference")
        if (
            self.adjustment_type == AdjustmentType.INCREASE
            and self.new_limit < self.current_limit
        ):
            raise ValueError("Increase adjustment cannot lower the limit")
        if (
            self.adjustment_type == AdjustmentType.DECREASE
            and self.new_limit > self.current_limit
        ):
            raise ValueError("Decrease adjustment cannot raise the limit")
        return self

    @property
    def effective_label(self) -> str:
        return format_month_year(self.effective_year, self.effective_month)

    def targets(self, year: int, month: int) -> bool:
        """Check whether this adjustment is due for the given month."""
        return self.effective_year == year and self.effective_month == month


class PendingAdjustmentsSummary(BaseModel):
    """Overview of the adjustments waiting for one month."""

    effective_year: int
    effective_month: int
    effective_date: str = Field(..., description="e.g. 'November 2025'")
    adjustment_count: int = Field(ge=0)
    total_increase: Decimal = Decimal("0")
    total_decrease: Decimal = Decimal("0")
    net_change: Decimal = Decimal("0")
    adjustments: list[BudgetAdjustment] = Field(default_factory=list)


class CategoryAdjustmentHistory(BaseModel):
    """How often, and by how much, a category has been adjusted."""

    category_name: str
    adjustment_count: int = Field(default=0, ge=0)
    total_increased_amount: Decimal = Decimal("0")
    total_decreased_amount: Decimal = Decimal("0")
    first_adjusted_at: Optional[datetime] = None
    last_adjusted_at: Optional[datetime] = None

    @property
    def net_adjustment(self) -> Decimal:
        return self.total_increased_amount - self.total_decreased_amount

    @property
    def average_adjustment(self) -> Decimal:
        if self.adjustment_count == 0:
            return Decimal("0")
        total = self.total_increased_amount + self.total_decreased_amount
        return total / self.adjustment_count


# =============================================================================
# COMPARISON RESULT
# =============================================================================

class CategoryComparison(BaseModel):
    """One category's line in a comparison."""

    category: str
    status: ComparisonStatus
    baseline_limit: Decimal = Field(
        ...,
        description="Limit on the template side (0 when added)"
    )
    monthly_limit: Decimal = Field(
        ...,
        description="Limit on the month side (0 when removed)"
    )
    difference: Decimal
    difference_percentage: Optional[float] = Field(
        default=None,
        description="Difference relative to the baseline, None when the baseline is 0"
    )
    is_active: bool = Field(
        ...,
        description="Active state on the month side"
    )


class BudgetComparison(BaseModel):
    """
    Category-by-category diff of a template against one month.

    This is the payload handed to display code. It carries the
    template's currency so every view formats amounts the same way.
    """

    baseline_name: str
    month_label: str
    year: int
    month: int
    currency: str = "USD"

    total_categories: int = Field(default=0, ge=0)
    active_categories: int = Field(default=0, ge=0)
    added_categories: int = Field(default=0, ge=0)
    removed_categories: int = Field(default=0, ge=0)
    adjusted_categories: int = Field(default=0, ge=0)

    comparisons: list[CategoryComparison] = Field(default_factory=list)

    total_template: Decimal = Decimal("0")
    total_snapshot: Decimal = Decimal("0")
    total_difference: Decimal = Decimal("0")

    has_baseline: bool = Field(
        default=True,
        description="False when no template existed to compare against"
    )

    def get(self, category: str) -> Optional[CategoryComparison]:
        """Find the line for a category, if any."""
        for line in self.comparisons:
            if line.category == category:
                return line
        return None

    def by_status(self, status: ComparisonStatus) -> list[CategoryComparison]:
        return [line for line in self.comparisons if line.status == status]
