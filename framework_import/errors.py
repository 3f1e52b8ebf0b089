from __future__ import annotations

"""Exception hierarchy for the two-phase framework import.

Validation issues on individual rows are NOT exceptions: they are collected
into RowOutcome.issues and surfaced in the preview. The classes below are the
conditions that reject a whole preview or confirm request. Storage errors
(psycopg2 / redis) are never wrapped and propagate as raised by the driver.
"""

__all__ = [
    "FrameworkImportError",
    "MalformedInputError",
    "MissingColumnsError",
    "PreviewNotFoundError",
    "TenantMismatchError",
    "BlockedByErrorsError",
]


class FrameworkImportError(Exception):
    """Base exception for rejected import requests."""


class MalformedInputError(FrameworkImportError):
    """Upload cannot be turned into a framework (raised before any staging write)."""


class MissingColumnsError(MalformedInputError):
    """Raised when required columns are missing from the CSV header."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"CSV is missing required columns: {', '.join(missing)}")


class PreviewNotFoundError(FrameworkImportError):
    """Preview token is unknown, expired or already consumed."""


class TenantMismatchError(FrameworkImportError):
    """Preview token belongs to another organization."""


class BlockedByErrorsError(FrameworkImportError):
    """Preview still has rows with validation errors."""

    def __init__(self, errors: int) -> None:
        self.errors = errors
        super().__init__(f"Cannot import framework with validation errors ({errors} rows)")
