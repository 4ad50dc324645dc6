"""
User mirror endpoint.

POST /api/users/me   — create or refresh the local row for the signed-in user
"""
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fintrack.database import get_db
from fintrack.models import UserModel
from fintrack.schemas import UserResponse, UserSync
from fintrack.security import get_clerk_user_id

logger = logging.getLogger(__name__)
router = APIRouter()


def transform_user(model: UserModel) -> UserResponse:
    return UserResponse(
        id=model.id,
        clerk_user_id=model.clerk_user_id,
        email=model.email,
        name=model.name,
        created_at=model.created_at,
    )


@router.post("/users/me", response_model=UserResponse)
def sync_current_user(
    req: UserSync,
    clerk_user_id: str = Depends(get_clerk_user_id),
    db: Session = Depends(get_db),
):
    user = db.query(UserModel).filter(UserModel.clerk_user_id == clerk_user_id).first()

    taken = db.query(UserModel).filter(UserModel.email == req.email)
    if user:
        taken = taken.filter(UserModel.id != user.id)
    if taken.first():
        raise HTTPException(status_code=400, detail="Email already registered")

    if user:
        user.email = req.email
        user.name = req.name
        db.commit()
        return transform_user(user)

    user = UserModel(
        id=str(uuid.uuid4()),
        clerk_user_id=clerk_user_id,
        email=req.email,
        name=req.name,
    )
    db.add(user)
    db.commit()
    logger.info("Created user %s for %s", user.id, clerk_user_id)
    return transform_user(user)
