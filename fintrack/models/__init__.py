from fintrack.models.user import UserModel
from fintrack.models.account import AccountModel, BudgetModel
from fintrack.models.transaction import TransactionModel, balance_change

__all__ = [
    "UserModel",
    "AccountModel",
    "BudgetModel",
    "TransactionModel",
    "balance_change",
]
