"""
Transaction endpoints.

POST /api/transactions               — create, adjusting the account balance
GET  /api/transactions               — list (optional account/type/category filters)
GET  /api/transactions/{id}          — get one
PUT  /api/transactions/{id}          — update, re-applying the balance effect
POST /api/transactions/bulk-delete   — delete several, reversing their effect
"""
from __future__ import annotations

import calendar
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fintrack.database import get_db
from fintrack.models import AccountModel, TransactionModel, UserModel, balance_change
from fintrack.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from fintrack.security import get_current_user, rate_limited_user

logger = logging.getLogger(__name__)
router = APIRouter()


def calculate_next_recurring_date(start: datetime, interval: str) -> datetime:
    if interval == "DAILY":
        return start + timedelta(days=1)
    if interval == "WEEKLY":
        return start + timedelta(days=7)
    if interval == "MONTHLY":
        year, month = (start.year + 1, 1) if start.month == 12 else (start.year, start.month + 1)
        day = min(start.day, calendar.monthrange(year, month)[1])
        return start.replace(year=year, month=month, day=day)
    if interval == "YEARLY":
        year = start.year + 1
        day = min(start.day, calendar.monthrange(year, start.month)[1])
        return start.replace(year=year, day=day)
    raise ValueError(f"Unknown recurring interval: {interval}")


def _next_date(req: TransactionCreate) -> Optional[datetime]:
    if req.is_recurring and req.recurring_interval:
        return calculate_next_recurring_date(req.date, req.recurring_interval)
    return None


def transform_transaction(model: TransactionModel) -> TransactionResponse:
    return TransactionResponse(
        id=model.id,
        account_id=model.account_id,
        type=model.type,
        amount=float(model.amount),
        description=model.description,
        date=model.date,
        category=model.category,
        receipt_url=model.receipt_url,
        is_recurring=bool(model.is_recurring),
        recurring_interval=model.recurring_interval,
        next_recurring_date=model.next_recurring_date,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def get_owned_account(db: Session, user: UserModel, account_id: str) -> AccountModel:
    account = (
        db.query(AccountModel)
        .filter(AccountModel.id == account_id, AccountModel.user_id == user.id)
        .first()
    )
    if not account:
        logger.warning("Account not found: %s", account_id)
        raise HTTPException(status_code=404, detail="Account not found")
    return account


def get_owned_transaction(db: Session, user: UserModel, transaction_id: str) -> TransactionModel:
    row = (
        db.query(TransactionModel)
        .filter(TransactionModel.id == transaction_id, TransactionModel.user_id == user.id)
        .first()
    )
    if not row:
        logger.warning("Transaction not found: %s", transaction_id)
        raise HTTPException(status_code=404, detail="Transaction not found")
    return row


def _adjust_balance(account: AccountModel, delta: float) -> None:
    account.balance = round(float(account.balance or 0) + delta, 2)


# ── POST /api/transactions ───────────────────────────────────────────────
@router.post("/transactions", response_model=TransactionResponse)
def create_transaction(
    req: TransactionCreate,
    user: UserModel = Depends(rate_limited_user),
    db: Session = Depends(get_db),
):
    account = get_owned_account(db, user, req.account_id)

    row = TransactionModel(
        id=str(uuid.uuid4()),
        user_id=user.id,
        account_id=account.id,
        type=req.type,
        amount=req.amount,
        description=req.description,
        date=req.date,
        category=req.category,
        receipt_url=req.receipt_url,
        is_recurring=req.is_recurring,
        recurring_interval=req.recurring_interval,
        next_recurring_date=_next_date(req),
    )
    db.add(row)
    _adjust_balance(account, balance_change(req.type, req.amount))
    db.commit()
    logger.info("Created transaction %s on account %s", row.id, account.id)
    return transform_transaction(row)


# ── GET /api/transactions ────────────────────────────────────────────────
@router.get("/transactions", response_model=list[TransactionResponse])
def get_user_transactions(
    account_id: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(TransactionModel).filter(TransactionModel.user_id == user.id)
    if account_id:
        query = query.filter(TransactionModel.account_id == account_id)
    if type:
        query = query.filter(TransactionModel.type == type)
    if category:
        query = query.filter(TransactionModel.category == category)
    rows = query.order_by(TransactionModel.date.desc()).all()
    logger.info("Found %d transactions for user %s", len(rows), user.id)
    return [transform_transaction(r) for r in rows]


# ── GET /api/transactions/{transaction_id} ───────────────────────────────
@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return transform_transaction(get_owned_transaction(db, user, transaction_id))


# ── PUT /api/transactions/{transaction_id} ───────────────────────────────
@router.put("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: str,
    req: TransactionUpdate,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = get_owned_transaction(db, user, transaction_id)
    old_account = get_owned_account(db, user, row.account_id)
    new_account = get_owned_account(db, user, req.account_id)

    old_change = row.signed_amount
    new_change = balance_change(req.type, req.amount)

    if old_account.id == new_account.id:
        _adjust_balance(new_account, new_change - old_change)
    else:
        _adjust_balance(old_account, -old_change)
        _adjust_balance(new_account, new_change)

    row.account_id = new_account.id
    row.type = req.type
    row.amount = req.amount
    row.description = req.description
    row.date = req.date
    row.category = req.category
    row.receipt_url = req.receipt_url
    row.is_recurring = req.is_recurring
    row.recurring_interval = req.recurring_interval
    row.next_recurring_date = _next_date(req)

    db.commit()
    logger.info("Updated transaction %s", row.id)
    return transform_transaction(row)


# ── POST /api/transactions/bulk-delete ───────────────────────────────────
@router.post("/transactions/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_transactions(
    req: BulkDeleteRequest,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(TransactionModel)
        .filter(
            TransactionModel.id.in_(req.transaction_ids),
            TransactionModel.user_id == user.id,
        )
        .all()
    )

    reversal: dict[str, float] = defaultdict(float)
    for r in rows:
        reversal[r.account_id] -= r.signed_amount

    for account_id, delta in reversal.items():
        _adjust_balance(get_owned_account(db, user, account_id), delta)
    for r in rows:
        db.delete(r)

    db.commit()
    logger.info("Deleted %d transactions for user %s", len(rows), user.id)
    return BulkDeleteResponse(deleted=len(rows))
