"""
Receipt scanning pipeline.

Orchestrates: pre-checks → endpoint selection → extraction.

Only the pre-checks raise (``ReceiptRejected``). Once they pass, ``scan``
always returns an ``ExtractionResult``; network, decode and unexpected errors
are folded into the result's description and ``status``.
"""
from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

import httpx

from fintrack.categories import SENTINEL_CATEGORY, expense_category_ids
from fintrack.schemas.receipt import ExtractionResult, ReceiptUpload
from fintrack.scanner.endpoints import (
    Endpoint,
    EndpointError,
    EndpointSelector,
    SelectionPolicy,
    build_endpoints,
    get_policy,
    priority_policy,
    response_text,
)
from fintrack.scanner.extraction import extract_result, find_json_object
from fintrack.scanner.prompt import build_body, build_prompt, build_text_body

logger = logging.getLogger(__name__)

MAX_RECEIPT_BYTES = 5 * 1024 * 1024


class ReceiptRejected(Exception):
    """Upload refused before any network activity."""


class NoFileProvided(ReceiptRejected):
    pass


class FileTooLarge(ReceiptRejected):
    pass


class ScannerNotConfigured(ReceiptRejected):
    pass


def failed_result(message: str) -> ExtractionResult:
    return ExtractionResult(
        amount=0,
        date=datetime.now(timezone.utc),
        description=f"Error: {message}. Please manually enter receipt details.",
        merchant_name="Error occurred",
        category=SENTINEL_CATEGORY,
        status="failed",
        failure_reason=message,
    )


class ReceiptScanner:
    """Scans receipt images through the Gemini ``generateContent`` API.

    The API key and endpoint list are given at construction. A shared
    ``httpx.Client`` may be injected; otherwise each call opens and closes
    its own.
    """

    def __init__(
        self,
        api_key: str,
        endpoints: list[Endpoint],
        *,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        policy: SelectionPolicy = priority_policy,
        attempt_budget: Optional[int] = None,
        timeout: Optional[float] = 30.0,
        max_bytes: int = MAX_RECEIPT_BYTES,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.selector = EndpointSelector(
            api_key=api_key,
            endpoints=endpoints,
            policy=policy,
            attempt_budget=attempt_budget,
            timeout=timeout,
        )
        self._client = client

    @classmethod
    def from_settings(cls, settings, client: Optional[httpx.Client] = None) -> "ReceiptScanner":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            endpoints=build_endpoints(
                settings.GEMINI_API_BASE,
                settings.GEMINI_MODELS,
                settings.GEMINI_MODEL_WEIGHTS,
            ),
            api_base=settings.GEMINI_API_BASE,
            policy=get_policy(settings.GEMINI_SELECTION_POLICY),
            attempt_budget=settings.GEMINI_MAX_ATTEMPTS or None,
            timeout=settings.GEMINI_TIMEOUT_SECONDS,
            max_bytes=settings.RECEIPT_MAX_BYTES,
            client=client,
        )

    @contextmanager
    def _http(self) -> Iterator[httpx.Client]:
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(timeout=self.timeout) as client:
            yield client

    # ── pre-checks ──────────────────────────────────────────────────────
    def check_upload(self, upload: Optional[ReceiptUpload]) -> ReceiptUpload:
        if upload is None or not upload.content:
            raise NoFileProvided("No file provided")
        if upload.size > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            raise FileTooLarge(f"File size should be less than {limit_mb}MB")
        if not self.api_key:
            raise ScannerNotConfigured(
                "GEMINI_API_KEY is not configured in environment variables"
            )
        return upload

    # ── scan ────────────────────────────────────────────────────────────
    def scan(
        self,
        upload: Optional[ReceiptUpload],
        categories: Optional[Iterable[str]] = None,
    ) -> ExtractionResult:
        upload = self.check_upload(upload)
        allowed = list(categories) if categories else expense_category_ids()

        try:
            body = build_body(
                base64.b64encode(upload.content).decode("ascii"),
                upload.mime_type,
                build_prompt(allowed),
            )
            with self._http() as client:
                endpoint, payload = self.selector.generate(client, body)
            text = response_text(payload)
            logger.info("Extracted text from %s: %d chars", endpoint.model, len(text))
            return extract_result(text, allowed)
        except Exception as exc:
            logger.exception("Receipt scanning failed")
            return failed_result(str(exc))

    # ── diagnostics ─────────────────────────────────────────────────────
    def list_models(self) -> dict:
        """Models visible to the configured key, or ``{"error": ...}``."""
        if not self.api_key:
            return {"error": "GEMINI_API_KEY is not configured"}
        try:
            with self._http() as client:
                response = client.get(
                    f"{self.api_base}/models",
                    params={"key": self.api_key},
                    timeout=self.timeout if self.timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
            if not response.is_success:
                return {
                    "error": f"Failed to fetch models: {response.status_code} {response.reason_phrase}"
                }
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error listing models: %s", exc)
            return {"error": str(exc)}

    def check_connectivity(self, models: Iterable[str]) -> dict:
        """Try *models* with a text-only prompt; report the first that answers with JSON."""
        if not self.api_key:
            return {"success": False, "error": "GEMINI_API_KEY is not configured"}

        body = build_text_body(
            "Say 'API test successful' in JSON format: "
            '{"status": "success", "message": "API test successful"}'
        )
        selector = EndpointSelector(api_key=self.api_key, endpoints=[], timeout=self.timeout)
        last_error: Optional[Exception] = None

        with self._http() as client:
            for endpoint in build_endpoints(self.api_base, models):
                try:
                    payload = selector.attempt(client, endpoint, body)
                    find_json_object(response_text(payload))
                except (EndpointError, ValueError) as exc:
                    logger.info("Model %s test failed: %s", endpoint.model, exc)
                    last_error = exc
                    continue
                return {"success": True, "model": endpoint.model}

        return {"success": False, "error": str(last_error or "No models available")}


__all__ = [
    "MAX_RECEIPT_BYTES",
    "ReceiptRejected",
    "NoFileProvided",
    "FileTooLarge",
    "ScannerNotConfigured",
    "ReceiptScanner",
    "failed_result",
]
