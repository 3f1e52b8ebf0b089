from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Per-row diagnostics and the aggregated import summary."""

__all__ = [
    "RowStatus",
    "RowOutcome",
    "ImportSummary",
]


class RowStatus(Enum):
    VALID = "valid"
    ERROR = "error"


@dataclass(frozen=True)
class RowOutcome:
    """Validation result for one data row.

    Issues are human-readable strings kept in the order they were detected;
    a row is `error` as soon as it has at least one issue.
    """
    row_number: int
    issues: tuple[str, ...] = field(default_factory=tuple)

    @property
    def status(self) -> RowStatus:
        return RowStatus.ERROR if self.issues else RowStatus.VALID

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowNumber": self.row_number,
            "status": self.status.value,
            "issues": list(self.issues),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> RowOutcome:
        return RowOutcome(row_number=int(data["rowNumber"]), issues=tuple(data.get("issues") or ()))


@dataclass(frozen=True)
class ImportSummary:
    total_rows: int
    valid_rows: int
    errors: int
    warnings: int = 0  # 現行バリデーションでは警告なし (常に 0)

    @staticmethod
    def from_outcomes(outcomes: list[RowOutcome]) -> ImportSummary:
        total = len(outcomes)
        errors = sum(1 for o in outcomes if o.status is RowStatus.ERROR)
        return ImportSummary(total_rows=total, valid_rows=total - errors, errors=errors, warnings=0)

    def to_dict(self) -> dict[str, int]:
        return {
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "errors": self.errors,
            "warnings": self.warnings,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ImportSummary:
        return ImportSummary(
            total_rows=int(data["totalRows"]),
            valid_rows=int(data["validRows"]),
            errors=int(data["errors"]),
            warnings=int(data.get("warnings", 0)),
        )
