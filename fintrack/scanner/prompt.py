"""
Prompt text sent alongside the receipt image.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from fintrack.categories import SENTINEL_CATEGORY


def build_prompt(categories: Iterable[str], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    allowed = ",".join(categories)
    return f"""Extract receipt information in this JSON format:
{{
  "amount": 29.99,
  "date": "2023-12-25T00:00:00.000Z",
  "description": "Grocery shopping",
  "merchantName": "Store Name",
  "category": "groceries"
}}

Use these categories: {allowed}

If not a receipt, return:
{{
  "amount": 0,
  "date": "{now.isoformat()}",
  "description": "Not a receipt",
  "merchantName": "Unknown",
  "category": "{SENTINEL_CATEGORY}"
}}"""


def build_body(image_b64: str, mime_type: str, prompt: str) -> dict:
    return {
        "contents": [
            {
                "parts": [
                    {"inlineData": {"mimeType": mime_type, "data": image_b64}},
                    {"text": prompt},
                ]
            }
        ]
    }


def build_text_body(prompt: str) -> dict:
    return {"contents": [{"parts": [{"text": prompt}]}]}
