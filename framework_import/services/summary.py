from __future__ import annotations

from ..models.preview import ConfirmResult, PreviewResult
from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering for the CLI.

Each render_* returns the line WITHOUT the `SUMMARY ` label; log_summary()
adds it. Formats:

    preview rows={total} valid={valid} errors={errors} warnings={warnings} dimensions={d} questions={q}
    confirm framework={id} dimensions={d} questions={q}
    files={total} imported={i} blocked={b} failed={f} questions={q} elapsed_sec={elapsed}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記を避ける
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}"


def render_preview_line(result: PreviewResult) -> str:
    s = result.summary
    return (
        f"preview rows={s.total_rows} valid={s.valid_rows} errors={s.errors} warnings={s.warnings} "
        f"dimensions={len(result.framework.dimensions)} questions={result.framework.question_count}"
    )


def render_confirm_line(result: ConfirmResult) -> str:
    return (
        f"confirm framework={result.framework_id} "
        f"dimensions={result.dimension_count} questions={result.question_count}"
    )


def render_directory_line(result: ProcessingResult) -> str:
    """
    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> r = ProcessingResult(imported_files=2, blocked_files=1, failed_files=0,
        ...     total_questions=12, start_time=t, end_time=t, elapsed_seconds=2.0)
        >>> render_directory_line(r)
        'files=3 imported=2 blocked=1 failed=0 questions=12 elapsed_sec=2'
    """
    return (
        f"files={result.total_files} "
        f"imported={result.imported_files} "
        f"blocked={result.blocked_files} "
        f"failed={result.failed_files} "
        f"questions={result.total_questions} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
