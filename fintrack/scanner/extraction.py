"""
Turn a free-text model response into a validated ``ExtractionResult``.

The payload is the first complete JSON object found in the text after code
fences are removed. Each field is sanitized on its own, so a partially valid
object still yields a usable result.
"""
from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable

from fintrack.categories import SENTINEL_CATEGORY
from fintrack.schemas.receipt import ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Receipt scan"
DEFAULT_MERCHANT = "Unknown merchant"
UNRECOGNIZED_DESCRIPTION = (
    "Receipt scan - AI response format not recognized. "
    "Please manually enter details."
)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def strip_code_fences(text: str) -> str:
    return _FENCE.sub(r"\1", text.strip()).strip()


def find_json_object(text: str) -> dict:
    """Return the first ``{...}`` in *text* that decodes to a JSON object.

    Raises ``ValueError`` when there is none.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except (json.JSONDecodeError, RecursionError):
            obj = None
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    raise ValueError("no JSON object in response")


# ---------------------------------------------------------------------------
# Field sanitizers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip().replace(",", ""))
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)):
        return 0.0
    try:
        value = float(value)
    except OverflowError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return abs(value)


def sanitize_date(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        return _now()
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return _now()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sanitize_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def sanitize_category(value: Any, allowed: Iterable[str]) -> str:
    if isinstance(value, str) and value in set(allowed):
        return value
    return SENTINEL_CATEGORY


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def unrecognized_result() -> ExtractionResult:
    return ExtractionResult(
        amount=0,
        date=_now(),
        description=UNRECOGNIZED_DESCRIPTION,
        merchant_name=DEFAULT_MERCHANT,
        category=SENTINEL_CATEGORY,
        status="unrecognized",
        failure_reason="AI response format not recognized",
    )


def sanitize(data: dict, allowed: Iterable[str]) -> ExtractionResult:
    return ExtractionResult(
        amount=sanitize_amount(data.get("amount")),
        date=sanitize_date(data.get("date")),
        description=sanitize_text(data.get("description"), DEFAULT_DESCRIPTION),
        merchant_name=sanitize_text(data.get("merchantName"), DEFAULT_MERCHANT),
        category=sanitize_category(data.get("category"), allowed),
        status="parsed",
    )


def extract_result(text: str, allowed: Iterable[str]) -> ExtractionResult:
    """Never raises: undecodable text becomes the "format not recognized" result."""
    cleaned = strip_code_fences(text or "")
    try:
        data = find_json_object(cleaned)
    except ValueError:
        logger.warning("JSON parsing failed, attempted to parse: %r", cleaned[:500])
        return unrecognized_result()

    result = sanitize(data, list(allowed))
    logger.info(
        "Parsed receipt: amount=%s merchant=%s category=%s",
        result.amount, result.merchant_name, result.category,
    )
    return result
