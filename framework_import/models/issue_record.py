from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""IssueRecord model for the validation issue log.

One record per issue found on a preview row. Records are written as JSON Lines
with a fixed key set (timestamp, file, row, status, issue) so the log can be
grepped or loaded back without a schema of its own.
"""

__all__ = [
    "IssueRecord",
]


@dataclass(frozen=True)
class IssueRecord:
    """Structured validation issue for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: CSV filename that was previewed
        row: Row number (header = 1). Use -1 for file-level problems
        status: Row status (`error`) or `rejected` for file-level failures
        issue: Human-readable issue text
    """
    timestamp: str
    file: str
    row: int  # 行番号。ファイル単位の失敗は -1
    status: str
    issue: str

    @staticmethod
    def create(file: str, row: int, status: str, issue: str) -> IssueRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return IssueRecord(timestamp=ts, file=file, row=row, status=status, issue=issue)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
