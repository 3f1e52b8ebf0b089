from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.issue_record import IssueRecord
from ..models.preview import PreviewResult

"""Validation issue log (JSON Lines).

- 固定スキーマ (IssueRecord のキーのみ)
- 起動ごとに `logs/issues-YYYYMMDD-HHMMSS.log` (UTC) を必要時に生成
- バッファリングし flush() でまとめて追記
"""

__all__ = [
    "IssueRecord",
    "IssueLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class IssueLogBuffer:
    """In-memory buffer for issue records. Flush writes JSON Lines.

    Not thread safe; the CLI processes files serially.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[IssueRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"issues-{stamp}.log"
        return self._file_path

    def append(self, record: IssueRecord) -> None:
        self._records.append(record)

    def add_preview(self, file: str, preview: PreviewResult) -> int:
        """Buffer every issue of a preview; returns the number of records added."""
        added = 0
        for outcome in preview.rows:
            for issue in outcome.issues:
                self.append(IssueRecord.create(file, outcome.row_number, outcome.status.value, issue))
                added += 1
        return added

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file.

        Returns the file path, or None when nothing was buffered (no empty
        log files are created).
        """
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
