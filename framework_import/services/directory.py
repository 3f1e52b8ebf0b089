from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..errors import BlockedByErrorsError, FrameworkImportError
from ..logging.issue_log import IssueLogBuffer, IssueRecord
from ..models.preview import ImportContext
from ..models.processing_result import FileStat, ProcessingResult
from .orchestrator import FrameworkImportService
from .progress import ProgressTracker

"""Directory import: preview + confirm every CSV file of a directory.

Files are independent: one framework per file, each committed in its own
transaction by the synchronizer. A file with validation errors is reported as
`blocked` (its issues go to the issue log) and the remaining files continue.
"""

logger = logging.getLogger(__name__)


class DirectoryImportError(Exception):
    """Fatal problem with the source directory itself."""


def scan_csv_files(directory: Path) -> list[Path]:
    """Return the .csv files of `directory` (non-recursive, sorted by name)."""
    if not directory.exists():
        raise DirectoryImportError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise DirectoryImportError(f"Path is not a directory: {directory}")
    try:
        return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".csv")
    except OSError as e:
        raise DirectoryImportError(f"Error reading directory {directory}: {e}") from e


def import_directory(
    service: FrameworkImportService,
    directory: Path,
    context: ImportContext,
    issue_log: IssueLogBuffer,
) -> ProcessingResult:
    start_time = datetime.now(UTC)
    file_paths = scan_csv_files(directory)

    file_stats: list[FileStat] = []

    with ProgressTracker(len(file_paths)) as progress:
        for path in file_paths:
            progress.start_file(path)
            stat = _import_file(service, path, context, issue_log)
            file_stats.append(stat)
            progress.finish_file(stat.status)
    counts = progress.outcomes

    end_time = datetime.now(UTC)
    return ProcessingResult(
        imported_files=counts["imported"],
        blocked_files=counts["blocked"],
        failed_files=counts["failed"],
        total_questions=sum(s.questions for s in file_stats),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_stats=file_stats,
    )


def _import_file(
    service: FrameworkImportService,
    path: Path,
    context: ImportContext,
    issue_log: IssueLogBuffer,
) -> FileStat:
    started = datetime.now(UTC)

    def _elapsed() -> float:
        return (datetime.now(UTC) - started).total_seconds()

    try:
        preview = service.preview_import(path.read_bytes(), context, filename=path.name)
    except (FrameworkImportError, OSError) as e:
        logger.error(f"{path.name}: {e}")
        issue_log.append(IssueRecord.create(path.name, -1, "rejected", str(e)))
        return FileStat(path.name, "failed", None, 0, _elapsed(), error=str(e))

    if preview.summary.errors:
        issue_log.add_preview(path.name, preview)
        logger.warning(f"{path.name}: {preview.summary.errors} rows with errors, not imported")
        return FileStat(path.name, "blocked", None, 0, _elapsed(), error=f"{preview.summary.errors} rows with errors")

    try:
        result = service.confirm_import(preview.preview_token, context)
    except BlockedByErrorsError as e:  # pragma: no cover (errors checked above)
        return FileStat(path.name, "blocked", None, 0, _elapsed(), error=str(e))
    except Exception as e:
        # ストレージ障害はファイル単位で失敗扱いにし、次のファイルへ進む
        logger.error(f"{path.name}: import failed: {e}")
        issue_log.append(IssueRecord.create(path.name, -1, "rejected", f"import failed: {e}"))
        return FileStat(path.name, "failed", None, 0, _elapsed(), error=str(e))

    logger.info(f"{path.name}: imported {result.framework_id} ({result.question_count} questions)")
    return FileStat(path.name, "imported", result.framework_id, result.question_count, _elapsed())
