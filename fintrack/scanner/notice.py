"""
Presentation outcome for a scan result.

Clients pick an error / success / info toast by substring checks on the
result description; this module is the single place those checks live.
"""
from __future__ import annotations

from fintrack.schemas.receipt import ExtractionResult, ScanNotice

ERROR_MARKERS = ("Error:", "Failed to connect")
UNRECOGNIZED_MARKER = "format not recognized"
GENERIC_MARKER = "Receipt scan"


def classify_notice(result: ExtractionResult) -> ScanNotice:
    description = result.description or ""

    if any(marker in description for marker in ERROR_MARKERS):
        return ScanNotice(
            level="error",
            message="AI service unavailable. Please manually enter receipt details.",
        )
    if UNRECOGNIZED_MARKER in description:
        return ScanNotice(
            level="info",
            message="Receipt scanned but format not recognized. Please manually enter details.",
        )
    if result.amount > 0 or (description and GENERIC_MARKER not in description):
        return ScanNotice(level="success", message="Receipt scanned successfully!")
    return ScanNotice(
        level="info",
        message="Receipt scanned. Please review and manually adjust details if needed.",
    )
