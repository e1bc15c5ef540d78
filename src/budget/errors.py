"""
Budget Errors

Every condition here is local and recoverable: the caller can re-fetch
the template and the month and derive state again.
"""

from typing import Optional


class BudgetError(Exception):
    """Base exception for budget operations."""
    pass


class MissingTemplateError(BudgetError):
    """The owner has no active personal budget."""

    def __init__(self, owner_id: str, message: Optional[str] = None):
        self.owner_id = owner_id
        super().__init__(
            message
            or "No active personal budget found. Please create one first."
        )


class UnknownCategoryError(BudgetError):
    """A category name is not present where it was expected."""

    def __init__(self, category_name: str, where: str = "budget"):
        self.category_name = category_name
        self.where = where
        super().__init__(f'Category "{category_name}" not found in {where}')


class LockedSnapshotError(BudgetError):
    """A locked monthly budget cannot be modified."""

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(
            f"Cannot modify locked monthly budget for {year}-{month:02d}"
        )
