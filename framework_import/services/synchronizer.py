from __future__ import annotations

import logging
from typing import Any

from ..db.batch_insert import BatchMetrics, batch_insert
from ..db.framework_store import (
    QUESTION_COLUMNS,
    QUESTIONS_TABLE,
    delete_questions,
    question_values,
    upsert_framework,
)
from ..models.canonical import CanonicalFramework, flatten_questions

"""Persistence synchronizer.

Writes the canonical framework and regenerates its question mirror as ONE
transaction on a psycopg2 connection:

    upsert framework -> delete all mirror rows -> bulk insert flattened rows

Either all three are committed or none are; a reader never sees a framework
whose mirror is missing or stale. Driver errors are re-raised unchanged after
rollback.
"""

__all__ = [
    "FrameworkSynchronizer",
]

logger = logging.getLogger(__name__)


class FrameworkSynchronizer:
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def sync(self, framework: CanonicalFramework) -> CanonicalFramework:
        """Upsert `framework` and replace its mirror atomically; returns the stored record."""
        rows = flatten_questions(framework)

        def _log_metrics(metrics: BatchMetrics) -> None:
            logger.debug(
                f"mirror insert framework={framework.id} rows={metrics.batch_size} "
                f"elapsed={metrics.elapsed_seconds:.4f}s"
            )

        try:
            with self._conn.cursor() as cur:
                record = upsert_framework(cur, framework)
                removed = delete_questions(cur, framework.id)
                if rows:
                    batch_insert(
                        cur,
                        QUESTIONS_TABLE,
                        QUESTION_COLUMNS,
                        (question_values(r) for r in rows),
                        metrics_callback=_log_metrics,
                    )
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

        logger.info(
            f"synced framework {framework.id}: mirror rows replaced {removed} -> {len(rows)}"
        )
        return record
