"""
Dashboard endpoints.

GET /api/dashboard                 — accounts, transactions, default account, budget usage
GET /api/dashboard/transactions    — every transaction of the user, newest first
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fintrack.database import get_db
from fintrack.models import TransactionModel, UserModel
from fintrack.routers.accounts import list_user_accounts
from fintrack.routers.budgets import get_current_budget
from fintrack.routers.transactions import transform_transaction
from fintrack.schemas import (
    AccountResponse,
    BudgetUsage,
    DashboardResponse,
    TransactionResponse,
)
from fintrack.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()


def list_user_transactions(db: Session, user: UserModel) -> list[TransactionResponse]:
    rows = (
        db.query(TransactionModel)
        .filter(TransactionModel.user_id == user.id)
        .order_by(TransactionModel.date.desc())
        .all()
    )
    return [transform_transaction(r) for r in rows]


def budget_usage(db: Session, user: UserModel, account: Optional[AccountResponse]) -> Optional[BudgetUsage]:
    """Budget progress for the default account; None when it cannot be shown."""
    if account is None:
        return None
    try:
        current = get_current_budget(db, user, account.id)
    except SQLAlchemyError as exc:
        logger.error("Error loading budget data: %s", exc)
        return None
    if current.budget is None:
        return None

    percent = None
    if current.budget.amount > 0:
        percent = round(current.current_expenses / current.budget.amount * 100, 1)
    return BudgetUsage(
        account_id=account.id,
        budget=current.budget,
        current_expenses=current.current_expenses,
        percent_used=percent,
    )


# ── GET /api/dashboard/transactions ──────────────────────────────────────
@router.get("/dashboard/transactions", response_model=list[TransactionResponse])
def get_dashboard_data(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_user_transactions(db, user)


# ── GET /api/dashboard ───────────────────────────────────────────────────
@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    accounts = list_user_accounts(db, user)
    transactions = list_user_transactions(db, user)
    default_account = next((a for a in accounts if a.is_default), None)
    logger.info(
        "Dashboard for user %s: %d accounts, %d transactions",
        user.id, len(accounts), len(transactions),
    )
    return DashboardResponse(
        accounts=accounts,
        transactions=transactions,
        default_account=default_account,
        budget=budget_usage(db, user, default_account),
    )
