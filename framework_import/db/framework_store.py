from __future__ import annotations

from pathlib import Path
from typing import Any

from psycopg2.extras import Json

from ..errors import TenantMismatchError
from ..models.canonical import CanonicalFramework, DenormalizedQuestionRow
from ..models.framework import ParsedDimension

"""SQL access for canonical frameworks and the question mirror.

Every function takes a cursor and never commits: the synchronizer groups them
into one transaction.
"""

FRAMEWORKS_TABLE = "frameworks"
QUESTIONS_TABLE = "framework_questions"
SCHEMA_PATH = Path(__file__).with_name("schema.sql")

QUESTION_COLUMNS: tuple[str, ...] = (
    "framework_id",
    "text",
    "response_type",
    "dimension",
    "sub_dimension",
    "scoring_weight",
    "help_text",
    "order_index",
    "options",
)

_FRAMEWORK_COLUMNS = (
    "id, name, version, description, organization_id, dimensions, "
    "imported_by, imported_at, created_at, updated_at"
)

# created_at は初回 INSERT 時のみ。2回目以降は dimensions 含め全置換し updated_at を更新
# 他組織の既存行は更新せず RETURNING も空になる
_UPSERT_SQL = (
    f"INSERT INTO {FRAMEWORKS_TABLE} "
    "(id, name, version, description, organization_id, dimensions, imported_by, imported_at, created_at, updated_at) "
    "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, now(), now()) "
    "ON CONFLICT (id) DO UPDATE SET "
    "name = EXCLUDED.name, version = EXCLUDED.version, description = EXCLUDED.description, "
    "dimensions = EXCLUDED.dimensions, "
    "imported_by = EXCLUDED.imported_by, imported_at = EXCLUDED.imported_at, updated_at = now() "
    f"WHERE {FRAMEWORKS_TABLE}.organization_id IS NOT DISTINCT FROM EXCLUDED.organization_id "
    f"RETURNING {_FRAMEWORK_COLUMNS}"
)


def ensure_schema(cursor: Any) -> None:
    """Create the importer tables if they do not exist (schema.sql)."""
    ddl = SCHEMA_PATH.read_text(encoding="utf-8")
    cursor.execute(ddl)


def upsert_framework(cursor: Any, framework: CanonicalFramework) -> CanonicalFramework:
    """Insert-or-replace by id and return the stored record.

    Raises:
        TenantMismatchError: `framework.id` exists under another organization
    """
    cursor.execute(
        _UPSERT_SQL,
        (
            framework.id,
            framework.name,
            framework.version,
            framework.description,
            framework.organization_id,
            Json(framework.dimensions_document()),
            framework.imported_by,
            framework.imported_at,
        ),
    )
    row = cursor.fetchone()
    if row is None:
        raise TenantMismatchError(f"Framework {framework.id} belongs to another organization")
    return _row_to_framework(row)


def delete_questions(cursor: Any, framework_id: str) -> int:
    cursor.execute(f"DELETE FROM {QUESTIONS_TABLE} WHERE framework_id = %s", (framework_id,))
    return cursor.rowcount


def question_values(row: DenormalizedQuestionRow) -> tuple[Any, ...]:
    options = row.options
    return (
        row.framework_id,
        row.text,
        row.response_type,
        row.dimension,
        row.sub_dimension,
        row.scoring_weight,
        row.help_text,
        row.order_index,
        Json(options) if options is not None else None,
    )


def _row_to_framework(row: tuple[Any, ...]) -> CanonicalFramework:
    (fid, name, version, description, org_id, dimensions, imported_by, imported_at, created_at, updated_at) = row
    return CanonicalFramework(
        id=fid,
        name=name,
        version=version,
        description=description or "",
        dimensions=tuple(ParsedDimension.from_dict(d) for d in dimensions or ()),
        organization_id=org_id,
        imported_by=imported_by,
        imported_at=imported_at,
        created_at=created_at,
        updated_at=updated_at,
    )
