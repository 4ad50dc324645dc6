"""
Receipt scanning endpoints.

POST /api/receipts/scan     — image upload → ExtractionResult + notice
GET  /api/receipts/models   — models visible to the configured API key
GET  /api/receipts/health   — connectivity check against the AI API
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from fintrack.config import settings
from fintrack.models import UserModel
from fintrack.scanner import (
    FileTooLarge,
    NoFileProvided,
    ReceiptRejected,
    ReceiptScanner,
    ScannerNotConfigured,
)
from fintrack.scanner.notice import classify_notice
from fintrack.schemas import ReceiptUpload, ScanResponse
from fintrack.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()

_REJECTION_STATUS = {
    NoFileProvided: 400,
    FileTooLarge: 413,
    ScannerNotConfigured: 503,
}


def get_receipt_scanner() -> ReceiptScanner:
    return ReceiptScanner.from_settings(settings)


def _parse_categories(raw: Optional[str]) -> Optional[list[str]]:
    if not raw:
        return None
    items = [c.strip() for c in raw.split(",") if c.strip()]
    return items or None


def _read_upload(file: Optional[UploadFile], max_bytes: int) -> Optional[ReceiptUpload]:
    """Read at most one byte past *max_bytes*; anything longer is oversize either way."""
    if file is None:
        return None
    content = file.file.read(max_bytes + 1)
    return ReceiptUpload(
        content=content,
        mime_type=file.content_type or "application/octet-stream",
        size=len(content),
    )


# ── POST /api/receipts/scan ──────────────────────────────────────────────
@router.post("/receipts/scan", response_model=ScanResponse)
def scan_receipt(
    file: Optional[UploadFile] = File(default=None),
    categories: Optional[str] = Form(default=None),
    user: UserModel = Depends(get_current_user),
    scanner: ReceiptScanner = Depends(get_receipt_scanner),
):
    upload = _read_upload(file, scanner.max_bytes)
    logger.info(
        "Scan request from user %s: %s bytes",
        user.id, upload.size if upload else "no file",
    )
    try:
        result = scanner.scan(upload, _parse_categories(categories))
    except ReceiptRejected as exc:
        logger.warning("Receipt rejected: %s", exc)
        raise HTTPException(status_code=_REJECTION_STATUS.get(type(exc), 400), detail=str(exc)) from exc

    return ScanResponse(result=result, notice=classify_notice(result))


# ── GET /api/receipts/models ─────────────────────────────────────────────
@router.get("/receipts/models")
def list_models(
    user: UserModel = Depends(get_current_user),
    scanner: ReceiptScanner = Depends(get_receipt_scanner),
):
    return scanner.list_models()


# ── GET /api/receipts/health ─────────────────────────────────────────────
@router.get("/receipts/health")
def check_scanner_health(
    user: UserModel = Depends(get_current_user),
    scanner: ReceiptScanner = Depends(get_receipt_scanner),
):
    return scanner.check_connectivity(settings.GEMINI_HEALTH_MODELS)
