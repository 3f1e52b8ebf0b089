from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batch INSERT via psycopg2.extras.execute_values.

Used for the question mirror, which is always rewritten as one bulk insert.
Driver errors are not wrapped: the caller owns the transaction and rolls it
back before re-raising.
"""

__all__ = [
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for a single batch insert call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert `rows` into `table` in pages of `page_size`.

    Parameters
    ----------
    cursor: psycopg2 cursor (トランザクションは呼び出し側で管理)
    table: 対象テーブル名 (固定値のみ渡す想定)
    columns: 挿入列
    rows: 行シーケンス。空なら SQL を発行せず 0 を返す
    metrics_callback: called once with BatchMetrics after execute_values,
        whether it succeeded or not. Not called for empty `rows`.
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=len(rows_list))
