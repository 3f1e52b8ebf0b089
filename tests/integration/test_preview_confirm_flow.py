from __future__ import annotations

import copy
import random
from datetime import UTC, datetime
from typing import Any

import pytest
from conftest import HEADER, VALID_CSV

from framework_import.errors import MalformedInputError, PreviewNotFoundError, TenantMismatchError
from framework_import.models.preview import ImportContext
from framework_import.services.orchestrator import FrameworkImportService
from framework_import.services.synchronizer import FrameworkSynchronizer

"""preview -> confirm against a small transactional stand-in for PostgreSQL.

The stand-in understands exactly the statements the synchronizer issues and
only publishes changes on commit, so partial writes are observable.
"""


class _Cursor:
    def __init__(self, db: MiniDatabase) -> None:
        self.db = db
        self.rowcount = 0
        self._result: Any = None

    def execute(self, sql: str, params: Any = None) -> None:
        db = self.db
        if db.fail_on is not None and db.fail_on in sql:
            raise RuntimeError("disk full")
        pending = db.pending
        if sql.startswith("INSERT INTO frameworks"):
            fid, name, version, description, org, dims, imported_by, imported_at = params
            now = datetime(2024, 5, 1, tzinfo=UTC)
            existing = pending["frameworks"].get(fid)
            if existing is not None and existing["row"][4] != org:
                # ON CONFLICT ... WHERE が偽: 更新なし、RETURNING なし
                self._result = None
                return
            created = existing["created_at"] if existing else now
            pending["frameworks"][fid] = {
                "row": (fid, name, version, description, org, dims.adapted, imported_by, imported_at),
                "created_at": created,
            }
            self._result = (*pending["frameworks"][fid]["row"], created, now)
        elif sql.startswith("DELETE FROM framework_questions"):
            (fid,) = params
            before = len(pending["questions"])
            pending["questions"] = [q for q in pending["questions"] if q[0] != fid]
            self.rowcount = before - len(pending["questions"])
        elif sql.startswith("INSERT INTO framework_questions"):
            pending["questions"].extend(
                tuple(v.adapted if hasattr(v, "adapted") else v for v in row) for row in params
            )
        else:  # pragma: no cover
            raise AssertionError(f"unexpected SQL: {sql}")

    def fetchone(self) -> Any:
        result, self._result = self._result, None
        return result

    def __enter__(self) -> _Cursor:
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class MiniDatabase:
    def __init__(self) -> None:
        self.committed: dict[str, Any] = {"frameworks": {}, "questions": []}
        self.pending = copy.deepcopy(self.committed)
        self.fail_on: str | None = None

    def cursor(self) -> _Cursor:
        return _Cursor(self)

    def commit(self) -> None:
        self.committed = copy.deepcopy(self.pending)

    def rollback(self) -> None:
        self.pending = copy.deepcopy(self.committed)

    def questions(self, framework_id: str) -> list[tuple[Any, ...]]:
        return [q for q in self.committed["questions"] if q[0] == framework_id]


@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import framework_import.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, page_size=1000):
        cursor.execute(sql, list(rows))

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)


@pytest.fixture()
def db() -> MiniDatabase:
    return MiniDatabase()


@pytest.fixture()
def db_service(store, clock, db) -> FrameworkImportService:
    return FrameworkImportService(store, FrameworkSynchronizer(db), clock=clock)


def _csv(*rows: str, header: str = HEADER) -> bytes:
    return ("\n".join((header, *rows)) + "\n").encode("utf-8")


def test_three_row_file_is_grouped_and_persisted(db_service, db, context):
    preview = db_service.preview_import(VALID_CSV.encode("utf-8"), context, filename="ai.csv")

    assert preview.summary.to_dict() == {"totalRows": 3, "validRows": 3, "errors": 0, "warnings": 0}
    assert len(preview.framework.dimensions) == 2
    first = next(d for d in preview.framework.dimensions if d.order == 1)
    assert len(first.questions) == 2
    assert db.committed["frameworks"] == {}

    result = db_service.confirm_import(preview.preview_token, context)

    stored = db.committed["frameworks"][result.framework_id]["row"]
    assert stored[1] == "AI Governance"
    assert stored[4] == "org-123"
    assert stored[6] == "user-123"
    mirror = db.questions(result.framework_id)
    assert [(q[1], q[3], q[5], q[7]) for q in mirror] == [
        ("Do you have an AI strategy?", "Strategy", 1.0, 101),
        ("How do you manage AI risk?", "Strategy", 0.9, 102),
        ("How do you manage data quality?", "Data", 0.8, 201),
    ]
    assert mirror[0][8] == {"tags": ["governance", "strategy"]}
    assert all(q[4] is None for q in mirror)


def test_header_without_response_type_issues_no_token(db_service, store, context):
    header = HEADER.replace(",response_type", "")
    data = _csv("Fw,,1,Dim,,1,Question?,,1,", header=header)

    with pytest.raises(MalformedInputError, match="response_type"):
        db_service.preview_import(data, context)
    assert len(store) == 0
    assert store.calls == []


def test_duplicate_question_order_is_reported_on_second_row(db_service, context):
    data = _csv("Fw,,1,Dim,,1,First?,text,,1,", "Fw,,1,Dim,,1,Second?,text,,1,")

    preview = db_service.preview_import(data, context)

    first, second = preview.rows
    assert first.issues == ()
    assert second.issues == ("question_order 1 already used for dimension Dim",)
    (dimension,) = preview.framework.dimensions
    assert dimension.order == 1
    assert [q.text for q in dimension.questions] == ["First?", "Second?"]


def test_out_of_range_weight_is_flagged_and_defaults_to_one(db_service, context):
    data = _csv("Fw,,1,Dim,,1,Question?,text,,2,")

    preview = db_service.preview_import(data, context)

    assert preview.rows[0].issues == ("weight must be a number between 0 and 1",)
    assert preview.framework.dimensions[0].questions[0].weight == 1.0


def test_grouping_is_independent_of_row_order(db_service, context):
    rows = VALID_CSV.strip("\n").split("\n")[1:]
    baseline = db_service.preview_import(_csv(*rows), context).framework

    rng = random.Random(7)
    for _ in range(5):
        shuffled = rows[:]
        rng.shuffle(shuffled)
        assert db_service.preview_import(_csv(*shuffled), context).framework == baseline


def test_reimport_with_pinned_id_replaces_mirror(db_service, db, context):
    header = HEADER + ",framework_id"
    first = db_service.preview_import(
        _csv("Fw,,1,Dim,,1,A?,text,,1,,fw-pinned", "Fw,,1,Dim,,2,B?,text,,1,,fw-pinned", header=header), context
    )
    db_service.confirm_import(first.preview_token, context)
    created_at = db.committed["frameworks"]["fw-pinned"]["created_at"]

    second = db_service.preview_import(_csv("Fw v2,,1,Dim,,1,C?,boolean,,1,,fw-pinned", header=header), context)
    result = db_service.confirm_import(second.preview_token, context)

    assert result.framework_id == "fw-pinned"
    assert db.committed["frameworks"]["fw-pinned"]["row"][1] == "Fw v2"
    assert db.committed["frameworks"]["fw-pinned"]["created_at"] == created_at
    assert [q[1] for q in db.questions("fw-pinned")] == ["C?"]


def test_storage_failure_leaves_no_partial_state_and_token_usable(db_service, db, store, context):
    preview = db_service.preview_import(VALID_CSV.encode("utf-8"), context)
    db.fail_on = "INSERT INTO framework_questions"

    with pytest.raises(RuntimeError, match="disk full"):
        db_service.confirm_import(preview.preview_token, context)

    assert db.committed == {"frameworks": {}, "questions": []}
    assert len(store) == 1

    db.fail_on = None
    result = db_service.confirm_import(preview.preview_token, context)
    assert len(db.questions(result.framework_id)) == 3

    with pytest.raises(PreviewNotFoundError):
        db_service.confirm_import(preview.preview_token, context)


def test_pinned_id_of_another_organization_is_rejected(db_service, db, store, context):
    header = HEADER + ",framework_id"
    owned = db_service.preview_import(_csv("Fw,,1,Dim,,1,A?,text,,1,,shared-id", header=header), context)
    db_service.confirm_import(owned.preview_token, context)

    intruder = ImportContext("org-other", "mallory")
    hijack = db_service.preview_import(_csv("Hijack,,1,Dim,,1,X?,text,,1,,shared-id", header=header), intruder)
    with pytest.raises(TenantMismatchError):
        db_service.confirm_import(hijack.preview_token, intruder)

    stored = db.committed["frameworks"]["shared-id"]["row"]
    assert stored[1] == "Fw"
    assert stored[4] == "org-123"
    assert [q[1] for q in db.questions("shared-id")] == ["A?"]
