"""
Default transaction categories.
"""
from __future__ import annotations

SENTINEL_CATEGORY = "other-expense"

# (id, name, type)
DEFAULT_CATEGORIES: list[tuple[str, str, str]] = [
    # Income
    ("salary", "Salary", "INCOME"),
    ("freelance", "Freelance", "INCOME"),
    ("investments", "Investments", "INCOME"),
    ("business", "Business", "INCOME"),
    ("rental", "Rental", "INCOME"),
    ("other-income", "Other Income", "INCOME"),
    # Expense
    ("housing", "Housing", "EXPENSE"),
    ("transportation", "Transportation", "EXPENSE"),
    ("groceries", "Groceries", "EXPENSE"),
    ("utilities", "Utilities", "EXPENSE"),
    ("entertainment", "Entertainment", "EXPENSE"),
    ("food", "Food", "EXPENSE"),
    ("shopping", "Shopping", "EXPENSE"),
    ("healthcare", "Healthcare", "EXPENSE"),
    ("education", "Education", "EXPENSE"),
    ("personal", "Personal Care", "EXPENSE"),
    ("travel", "Travel", "EXPENSE"),
    ("insurance", "Insurance", "EXPENSE"),
    ("gifts", "Gifts & Donations", "EXPENSE"),
    ("bills", "Bills & Fees", "EXPENSE"),
    ("other-expense", "Other Expenses", "EXPENSE"),
]


def category_ids(type_: str | None = None) -> list[str]:
    return [cid for cid, _, t in DEFAULT_CATEGORIES if type_ is None or t == type_]


def expense_category_ids() -> list[str]:
    """Default allow-list for receipt scanning."""
    return category_ids("EXPENSE")
