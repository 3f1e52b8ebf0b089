from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from ..errors import (
    BlockedByErrorsError,
    MalformedInputError,
    PreviewNotFoundError,
    TenantMismatchError,
)
from ..models.canonical import CanonicalFramework
from ..models.preview import ConfirmResult, ImportContext, PreviewPayload, PreviewResult
from ..staging.store import PREVIEW_TTL_SECONDS, PreviewStore
from ..tabular.reader import parse_csv
from .template import generate_template
from .validator import validate_rows

"""Two-phase import orchestration.

preview: parse + validate + group, stage the payload under a random token.
    Nothing durable is written.
confirm: claim the token, check tenant and errors, hand the framework to the
    synchronizer. A token moves CREATED -> CONSUMED (confirm) or
    CREATED -> EXPIRED (TTL); neither state can be left again.
"""

__all__ = [
    "MAX_UPLOAD_BYTES",
    "FrameworkImportService",
    "generate_framework_id",
    "slugify",
]

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class Synchronizer(Protocol):
    def sync(self, framework: CanonicalFramework) -> CanonicalFramework: ...


def slugify(name: str) -> str:
    """Lowercase; runs of non [a-z0-9] become one hyphen; outer hyphens trimmed."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def generate_framework_id(name: str) -> str:
    slug = slugify(name) or "framework"
    return f"{slug}-{secrets.token_hex(4)}"


def _check_context(context: ImportContext) -> None:
    if not context.organization_id:
        raise MalformedInputError("organizationId is required for framework import")


class FrameworkImportService:
    """Entry point for template / preview / confirm.

    Args:
        store: shared preview staging store
        synchronizer: persists canonical frameworks (FrameworkSynchronizer)
        clock: returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        store: PreviewStore,
        synchronizer: Synchronizer,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._synchronizer = synchronizer
        self._clock = clock or (lambda: datetime.now(UTC))

    def generate_template(self) -> str:
        return generate_template()

    def preview_import(self, data: bytes, context: ImportContext, filename: str | None = None) -> PreviewResult:
        """Validate an uploaded CSV and stage it for confirmation.

        Raises:
            MalformedInputError: bad upload (size, extension, content, header,
                blank framework name). No token is issued in that case.
        """
        _check_context(context)
        if filename is not None and not filename.lower().endswith(".csv"):
            raise MalformedInputError("Only CSV files are supported")
        if len(data) > MAX_UPLOAD_BYTES:
            raise MalformedInputError(f"CSV file exceeds {MAX_UPLOAD_BYTES} bytes")

        rows = parse_csv(data)
        logger.debug(f"Received CSV for preview: {len(rows)} rows")
        grouped = validate_rows(rows)

        token = secrets.token_urlsafe(32)
        payload = PreviewPayload(
            framework=grouped.framework,
            rows=grouped.rows,
            summary=grouped.summary,
            organization_id=context.organization_id,
            uploaded_by=context.uploaded_by,
            created_at=self._clock(),
        )
        self._store.set(token, payload.to_dict(), PREVIEW_TTL_SECONDS)

        logger.info(
            f"Prepared framework import preview for org {context.organization_id} "
            f"(token {token[:8]}..., rows={grouped.summary.total_rows}, errors={grouped.summary.errors})"
        )
        return PreviewResult(
            preview_token=token,
            framework=grouped.framework,
            rows=grouped.rows,
            summary=grouped.summary,
        )

    def confirm_import(self, preview_token: str, context: ImportContext) -> ConfirmResult:
        """Commit a staged preview.

        Raises:
            PreviewNotFoundError: unknown, expired or already consumed token
            TenantMismatchError: token staged by another organization, or the
                framework id is already owned by another organization
            BlockedByErrorsError: preview has rows with errors
            Exception: storage failures from the synchronizer, unchanged
        """
        _check_context(context)
        raw = self._store.get(preview_token) if preview_token else None
        payload = _load_payload(raw)
        if payload is None:
            raise PreviewNotFoundError("Preview expired or not found")

        if payload.organization_id != context.organization_id:
            raise TenantMismatchError("Preview token does not belong to this organization")

        if payload.summary.errors > 0:
            raise BlockedByErrorsError(payload.summary.errors)

        # get -> take の間に他の confirm が消費した場合はここで NotFound
        if self._store.take(preview_token) is None:
            raise PreviewNotFoundError("Preview expired or not found")

        framework = payload.framework
        framework_id = framework.id or generate_framework_id(framework.name)
        canonical = CanonicalFramework(
            id=framework_id,
            name=framework.name,
            description=framework.description,
            dimensions=framework.dimensions,
            organization_id=context.organization_id,
            imported_by=context.uploaded_by,
            imported_at=self._clock(),
        )

        try:
            record = self._synchronizer.sync(canonical)
        except Exception:
            self._restore(preview_token, raw, payload.created_at)
            raise

        logger.info(
            f"Imported framework {framework.name} for org {context.organization_id} ({framework_id})"
        )
        return ConfirmResult(
            framework_id=record.id or framework_id,
            name=framework.name,
            dimension_count=len(framework.dimensions),
            question_count=framework.question_count,
        )

    def _restore(self, token: str, raw: dict[str, Any] | None, created_at: datetime) -> None:
        """Put a claimed payload back after a failed commit, for its remaining TTL only."""
        if raw is None:
            return
        remaining = PREVIEW_TTL_SECONDS - (self._clock() - created_at).total_seconds()
        if remaining < 1:
            return
        try:
            self._store.set(token, raw, int(remaining))
        except Exception as e:
            logger.warning(f"could not restore preview {token[:8]}... after failed import: {e}")


def _load_payload(raw: dict[str, Any] | None) -> PreviewPayload | None:
    if raw is None:
        return None
    try:
        return PreviewPayload.from_dict(raw)
    except (KeyError, TypeError, ValueError):
        logger.warning("staged preview payload has an unexpected shape; treating as absent")
        return None
