"""
Request / response schemas for users, accounts, transactions, budgets and
the dashboard.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

AccountType = Literal["CURRENT", "SAVINGS"]
TransactionType = Literal["INCOME", "EXPENSE"]
RecurringInterval = Literal["DAILY", "WEEKLY", "MONTHLY", "YEARLY"]
TransactionStatus = Literal["PENDING", "COMPLETED", "FAILED"]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserSync(BaseModel):
    email: str
    name: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    clerk_user_id: str
    email: str
    name: Optional[str] = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: AccountType = "CURRENT"
    # Parsed server-side so a bad value yields "Invalid balance amount"
    balance: str | float
    is_default: bool = False


class AccountResponse(BaseModel):
    id: str
    name: str
    type: str
    balance: float
    is_default: bool
    transaction_count: int = 0
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class TransactionCreate(BaseModel):
    account_id: str
    type: TransactionType
    amount: float = Field(..., ge=0)
    description: Optional[str] = None
    date: datetime
    category: str
    receipt_url: Optional[str] = None
    is_recurring: bool = False
    recurring_interval: Optional[RecurringInterval] = None


class TransactionUpdate(TransactionCreate):
    pass


class TransactionResponse(BaseModel):
    id: str
    account_id: str
    type: str
    amount: float
    description: Optional[str] = None
    date: datetime
    category: str
    receipt_url: Optional[str] = None
    is_recurring: bool
    recurring_interval: Optional[str] = None
    next_recurring_date: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: datetime


class AccountDetailResponse(AccountResponse):
    transactions: list[TransactionResponse] = Field(default_factory=list)


class BulkDeleteRequest(BaseModel):
    transaction_ids: list[str] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: int


# ---------------------------------------------------------------------------
# Budgets & dashboard
# ---------------------------------------------------------------------------

class BudgetUpdate(BaseModel):
    amount: float = Field(..., gt=0)


class BudgetResponse(BaseModel):
    id: str
    amount: float
    last_alert_sent: Optional[datetime] = None
    updated_at: datetime


class CurrentBudget(BaseModel):
    budget: Optional[BudgetResponse] = None
    current_expenses: float = 0


class BudgetUsage(CurrentBudget):
    account_id: str
    percent_used: Optional[float] = None


class DashboardResponse(BaseModel):
    accounts: list[AccountResponse] = Field(default_factory=list)
    transactions: list[TransactionResponse] = Field(default_factory=list)
    default_account: Optional[AccountResponse] = None
    budget: Optional[BudgetUsage] = None
