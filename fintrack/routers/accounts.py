"""
Account endpoints.

GET  /api/accounts                 — list the user's accounts
POST /api/accounts                 — create an account
GET  /api/accounts/{id}            — one account with its transactions
PUT  /api/accounts/{id}/default    — make an account the default
"""
from __future__ import annotations

import logging
import math
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from fintrack.database import get_db
from fintrack.models import AccountModel, TransactionModel, UserModel
from fintrack.routers.transactions import get_owned_account, transform_transaction
from fintrack.schemas import AccountCreate, AccountDetailResponse, AccountResponse
from fintrack.security import get_current_user, rate_limited_user

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_account(model: AccountModel, transaction_count: int = 0) -> AccountResponse:
    return AccountResponse(
        id=model.id,
        name=model.name,
        type=model.type,
        balance=float(model.balance or 0),
        is_default=bool(model.is_default),
        transaction_count=transaction_count,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def transaction_counts(db: Session, user_id: str) -> dict[str, int]:
    rows = (
        db.query(TransactionModel.account_id, func.count(TransactionModel.id))
        .filter(TransactionModel.user_id == user_id)
        .group_by(TransactionModel.account_id)
        .all()
    )
    return {account_id: count for account_id, count in rows}


def list_user_accounts(db: Session, user: UserModel) -> list[AccountResponse]:
    rows = (
        db.query(AccountModel)
        .filter(AccountModel.user_id == user.id)
        .order_by(AccountModel.created_at.desc())
        .all()
    )
    counts = transaction_counts(db, user.id)
    return [transform_account(r, counts.get(r.id, 0)) for r in rows]


def _unset_defaults(db: Session, user_id: str) -> None:
    db.query(AccountModel).filter(
        AccountModel.user_id == user_id,
        AccountModel.is_default.is_(True),
    ).update({AccountModel.is_default: False}, synchronize_session="fetch")


def parse_balance(value: str | float) -> float:
    try:
        balance = float(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid balance amount") from None
    if not math.isfinite(balance):
        raise HTTPException(status_code=400, detail="Invalid balance amount")
    return balance


# ── GET /api/accounts ────────────────────────────────────────────────────
@router.get("/accounts", response_model=list[AccountResponse])
def get_user_accounts(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    accounts = list_user_accounts(db, user)
    logger.info("Found %d accounts for user %s", len(accounts), user.id)
    return accounts


# ── POST /api/accounts ───────────────────────────────────────────────────
@router.post("/accounts", response_model=AccountResponse)
def create_account(
    req: AccountCreate,
    user: UserModel = Depends(rate_limited_user),
    db: Session = Depends(get_db),
):
    balance = parse_balance(req.balance)

    # The first account is always the default
    has_accounts = db.query(AccountModel).filter(AccountModel.user_id == user.id).count() > 0
    should_be_default = req.is_default if has_accounts else True

    if should_be_default:
        _unset_defaults(db, user.id)

    account = AccountModel(
        id=str(uuid.uuid4()),
        user_id=user.id,
        name=req.name,
        type=req.type,
        balance=balance,
        is_default=should_be_default,
    )
    db.add(account)
    db.commit()
    logger.info("Created account %s (default=%s) for user %s", account.id, should_be_default, user.id)
    return transform_account(account)


# ── GET /api/accounts/{account_id} ───────────────────────────────────────
@router.get("/accounts/{account_id}", response_model=AccountDetailResponse)
def get_account_with_transactions(
    account_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    account = get_owned_account(db, user, account_id)
    transactions = (
        db.query(TransactionModel)
        .filter(TransactionModel.account_id == account.id, TransactionModel.user_id == user.id)
        .order_by(TransactionModel.date.desc())
        .all()
    )
    summary = transform_account(account, len(transactions))
    return AccountDetailResponse(
        **summary.model_dump(),
        transactions=[transform_transaction(t) for t in transactions],
    )


# ── PUT /api/accounts/{account_id}/default ───────────────────────────────
@router.put("/accounts/{account_id}/default", response_model=AccountResponse)
def update_default_account(
    account_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    account = get_owned_account(db, user, account_id)
    _unset_defaults(db, user.id)
    account.is_default = True
    db.commit()
    db.refresh(account)
    logger.info("Default account for user %s is now %s", user.id, account.id)
    return transform_account(account, transaction_counts(db, user.id).get(account.id, 0))
