"""
Receipt scanning contracts.

``ExtractionResult`` is always well formed: every failure after the upload
pre-checks is folded into it, with ``status`` telling callers which path
produced it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from fintrack.categories import SENTINEL_CATEGORY

ExtractionStatus = Literal["parsed", "unrecognized", "failed"]
NoticeLevel = Literal["error", "success", "info"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ReceiptUpload(BaseModel):
    """Raw uploaded image; lives for one scan call only."""
    content: bytes
    mime_type: str
    size: int


class ExtractionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(default=0, ge=0)
    date: datetime = Field(default_factory=_now)
    description: str = "Receipt scan"
    merchant_name: str = Field(default="Unknown merchant", alias="merchantName")
    category: str = SENTINEL_CATEGORY
    status: ExtractionStatus = "parsed"
    failure_reason: Optional[str] = Field(default=None, alias="failureReason")


class ScanNotice(BaseModel):
    level: NoticeLevel
    message: str


class ScanResponse(BaseModel):
    result: ExtractionResult
    notice: ScanNotice
