from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .framework import ParsedFramework
from .row_outcome import ImportSummary, RowOutcome

"""Preview / confirm models for the two-phase import.

PreviewPayload is what gets staged under a preview token. It is serialized to
a JSON-compatible dict (camelCase keys) so any shared store can hold it.
"""

__all__ = [
    "ImportContext",
    "PreviewPayload",
    "PreviewResult",
    "ConfirmResult",
]


@dataclass(frozen=True)
class ImportContext:
    """Caller identity, accepted as given (no authentication here)."""
    organization_id: str
    uploaded_by: str = "system"


@dataclass(frozen=True)
class PreviewPayload:
    framework: ParsedFramework
    rows: tuple[RowOutcome, ...]
    summary: ImportSummary
    organization_id: str
    uploaded_by: str
    created_at: datetime  # UTC

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework.to_dict(),
            "rows": [r.to_dict() for r in self.rows],
            "summary": self.summary.to_dict(),
            "organizationId": self.organization_id,
            "uploadedBy": self.uploaded_by,
            "createdAt": self.created_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> PreviewPayload:
        return PreviewPayload(
            framework=ParsedFramework.from_dict(data["framework"]),
            rows=tuple(RowOutcome.from_dict(r) for r in data.get("rows") or ()),
            summary=ImportSummary.from_dict(data["summary"]),
            organization_id=data["organizationId"],
            uploaded_by=data.get("uploadedBy") or "system",
            created_at=datetime.fromisoformat(data["createdAt"]),
        )


@dataclass(frozen=True)
class PreviewResult:
    preview_token: str
    framework: ParsedFramework
    rows: tuple[RowOutcome, ...]
    summary: ImportSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "previewToken": self.preview_token,
            "framework": self.framework.to_dict(),
            "rows": [r.to_dict() for r in self.rows],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class ConfirmResult:
    framework_id: str
    name: str
    dimension_count: int
    question_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "frameworkId": self.framework_id,
            "name": self.name,
            "dimensionCount": self.dimension_count,
            "questionCount": self.question_count,
        }
