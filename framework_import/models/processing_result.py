from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Result models for batch (directory) imports.

A directory import previews and confirms every CSV file in the configured
source directory; these records aggregate what happened for the SUMMARY line.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file outcome of a directory import."""
    file_name: str
    status: str  # imported / blocked / failed
    framework_id: str | None  # 取り込み成功時のみ
    questions: int  # 取り込んだ設問数
    elapsed_seconds: float
    error: str | None = None


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results of a directory import."""
    imported_files: int
    blocked_files: int  # validation errors prevented confirm
    failed_files: int  # malformed file or storage failure
    total_questions: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None

    @property
    def total_files(self) -> int:
        return self.imported_files + self.blocked_files + self.failed_files
