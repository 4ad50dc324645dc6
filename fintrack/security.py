"""
Request identity and per-user rate limiting.

Authentication happens upstream at the identity provider; requests reach the
API with the provider's user id in ``X-User-Id``.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fintrack.config import settings
from fintrack.database import get_db
from fintrack.models import UserModel

logger = logging.getLogger(__name__)


def get_clerk_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def get_current_user(
    clerk_user_id: str = Depends(get_clerk_user_id),
    db: Session = Depends(get_db),
) -> UserModel:
    user = db.query(UserModel).filter(UserModel.clerk_user_id == clerk_user_id).first()
    if not user:
        logger.warning("User not found: %s", clerk_user_id)
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class RateDecision(BaseModel):
    allowed: bool
    remaining: int
    reset_in_seconds: float


class RateLimitExceeded(Exception):
    def __init__(self, decision: RateDecision):
        super().__init__("Too many requests. Please try again later.")
        self.decision = decision


class RateLimiter:
    """In-process token bucket per user.

    A bucket holds ``capacity`` tokens and refills completely over
    ``refill_seconds``. Once more than ``max_idle_buckets`` are tracked,
    buckets that have refilled to capacity are dropped; a missing bucket
    and a full one behave the same.
    """

    def __init__(
        self,
        capacity: int,
        refill_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_idle_buckets: int = 1024,
    ):
        self.capacity = capacity
        self.rate = capacity / refill_seconds if refill_seconds > 0 else float("inf")
        self.clock = clock
        self.max_idle_buckets = max_idle_buckets
        self._buckets: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()

    def protect(self, key: str, requested: int = 1) -> RateDecision:
        with self._lock:
            now = self.clock()
            tokens, last = self._buckets.get(key, (float(self.capacity), now))
            tokens = min(float(self.capacity), tokens + (now - last) * self.rate)

            allowed = tokens >= requested
            if allowed:
                tokens -= requested
            self._buckets[key] = (tokens, now)
            if len(self._buckets) > self.max_idle_buckets:
                self._prune(now)

            missing = self.capacity - tokens
            reset = missing / self.rate if self.rate != float("inf") else 0.0
            return RateDecision(allowed=allowed, remaining=int(tokens), reset_in_seconds=round(reset, 1))

    def check(self, key: str, requested: int = 1) -> RateDecision:
        """Like ``protect`` but raises ``RateLimitExceeded`` on denial."""
        decision = self.protect(key, requested)
        if not decision.allowed:
            logger.warning(
                "RATE_LIMIT_EXCEEDED user=%s remaining=%d reset_in_seconds=%s",
                key, decision.remaining, decision.reset_in_seconds,
            )
            raise RateLimitExceeded(decision)
        return decision

    def _prune(self, now: float) -> None:
        full = [
            key for key, (tokens, last) in self._buckets.items()
            if tokens + (now - last) * self.rate >= self.capacity
        ]
        for key in full:
            del self._buckets[key]

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


rate_limiter = RateLimiter(
    capacity=settings.RATE_LIMIT_CAPACITY,
    refill_seconds=settings.RATE_LIMIT_REFILL_SECONDS,
)


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def rate_limited_user(
    user: UserModel = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> UserModel:
    """Current user, after spending one token from their bucket."""
    try:
        limiter.check(user.id)
    except RateLimitExceeded as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    return user
