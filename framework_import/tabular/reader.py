from __future__ import annotations

import io
import warnings
from collections.abc import Iterable
from typing import Any

import pandas as pd

from ..errors import MalformedInputError, MissingColumnsError
from ..models.row_data import FlatRow

"""CSV reader for framework imports.

- 1行目をヘッダ行、2行目以降をデータ行として扱う (row_number は 2 始まり)
- 列の有無のみ検査し、順序は問わない。未知の列は無視する
- 値はすべて文字列として読み、前後の空白を除去する (空セルは "")
"""

__all__ = [
    "REQUIRED_COLUMNS",
    "OPTIONAL_COLUMNS",
    "parse_csv",
    "ensure_columns",
]

REQUIRED_COLUMNS: tuple[str, ...] = (
    "framework_name",
    "framework_description",
    "dimension_order",
    "dimension_name",
    "dimension_description",
    "question_order",
    "question_text",
    "response_type",
    "help_text",
    "weight",
    "tags",
)

# Recognised but not required: pins the framework id so a re-import replaces it
OPTIONAL_COLUMNS: tuple[str, ...] = ("framework_id",)


def _cell(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def ensure_columns(columns: Iterable[str]) -> None:
    """Raise MissingColumnsError when any required column is absent."""
    present = set(columns)
    missing = [c for c in REQUIRED_COLUMNS if c not in present]
    if missing:
        raise MissingColumnsError(missing)


def parse_csv(data: bytes) -> list[FlatRow]:
    """Parse a UTF-8 CSV buffer into FlatRows.

    Raises:
        MalformedInputError: undecodable or unparsable buffer, zero data rows
        MissingColumnsError: required header columns absent
    """
    if not data or not data.strip():
        raise MalformedInputError("CSV file is empty")
    try:
        with warnings.catch_warnings():
            # 余剰フィールドは切り捨てずエラーにする
            warnings.simplefilter("error", pd.errors.ParserWarning)
            df = pd.read_csv(
                io.BytesIO(data),
                dtype=str,
                keep_default_na=False,  # "NA" / "null" 等を欠損扱いしない
                encoding="utf-8-sig",
                index_col=False,  # 余剰列を index とみなさない
                skip_blank_lines=True,
            )
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError("CSV file is empty") from e
    except pd.errors.ParserWarning as e:
        raise MalformedInputError(f"Invalid CSV: column header mismatch ({e})") from e
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        raise MalformedInputError(f"Invalid CSV: {e}") from e

    columns = [str(c).strip() for c in df.columns]
    if df.empty:
        raise MalformedInputError("CSV file is empty")
    ensure_columns(columns)

    rows: list[FlatRow] = []
    for position, raw in enumerate(df.itertuples(index=False, name=None)):
        values = {col: _cell(val) for col, val in zip(columns, raw, strict=False)}
        rows.append(FlatRow(row_number=position + 2, values=values))
    return rows
