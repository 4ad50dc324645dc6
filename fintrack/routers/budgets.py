"""
Budget endpoints.

GET /api/budgets/current?account_id=   — budget + this month's expenses
PUT /api/budgets                       — set the monthly budget
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from fintrack.database import get_db, utcnow
from fintrack.models import BudgetModel, TransactionModel, UserModel
from fintrack.schemas import BudgetResponse, BudgetUpdate, CurrentBudget
from fintrack.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_budget(model: BudgetModel) -> BudgetResponse:
    return BudgetResponse(
        id=model.id,
        amount=float(model.amount),
        last_alert_sent=model.last_alert_sent,
        updated_at=model.updated_at,
    )


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def monthly_expenses(
    db: Session, user_id: str, account_id: str, now: Optional[datetime] = None
) -> float:
    start, end = month_bounds(now or utcnow())
    total = (
        db.query(func.coalesce(func.sum(TransactionModel.amount), 0))
        .filter(
            TransactionModel.user_id == user_id,
            TransactionModel.account_id == account_id,
            TransactionModel.type == "EXPENSE",
            TransactionModel.date >= start,
            TransactionModel.date < end,
        )
        .scalar()
    )
    return round(float(total or 0), 2)


def get_current_budget(db: Session, user: UserModel, account_id: str) -> CurrentBudget:
    budget = db.query(BudgetModel).filter(BudgetModel.user_id == user.id).first()
    return CurrentBudget(
        budget=transform_budget(budget) if budget else None,
        current_expenses=monthly_expenses(db, user.id, account_id),
    )


# ── GET /api/budgets/current ─────────────────────────────────────────────
@router.get("/budgets/current", response_model=CurrentBudget)
def read_current_budget(
    account_id: str = Query(...),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_current_budget(db, user, account_id)


# ── PUT /api/budgets ─────────────────────────────────────────────────────
@router.put("/budgets", response_model=BudgetResponse)
def update_budget(
    req: BudgetUpdate,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    budget = db.query(BudgetModel).filter(BudgetModel.user_id == user.id).first()
    if budget:
        budget.amount = req.amount
    else:
        budget = BudgetModel(id=str(uuid.uuid4()), user_id=user.id, amount=req.amount)
        db.add(budget)
    db.commit()
    logger.info("Budget for user %s set to %.2f", user.id, req.amount)
    return transform_budget(budget)
