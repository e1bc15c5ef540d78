"""
Household Budget - Source Package

The budget reconciliation core of a household finance tracker:
a standing personal budget, month-by-month copies of it, limit
changes scheduled for next month, and comparisons between them.

DESIGN PRINCIPLES:
1. A month never changes because the template changed
2. Derive on read, never rewrite stored months
3. No silent corrections to limits
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Budget Team"
