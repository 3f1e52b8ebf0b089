# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from framework_import.models.canonical import CanonicalFramework
from framework_import.models.preview import ImportContext
from framework_import.services.orchestrator import FrameworkImportService
from framework_import.staging.store import PreviewStore

HEADER = (
    "framework_name,framework_description,dimension_order,dimension_name,dimension_description,"
    "question_order,question_text,response_type,help_text,weight,tags"
)

VALID_CSV = (
    HEADER + "\n"
    'AI Governance,AI governance overview,1,Strategy,Governance strategy,1,"Do you have an AI strategy?",rating_scale,,1,"governance;strategy"\n'
    'AI Governance,AI governance overview,1,Strategy,Governance strategy,2,"How do you manage AI risk?",rating_scale,,0.9,"risk"\n'
    'AI Governance,AI governance overview,2,Data,Data capabilities,1,"How do you manage data quality?",rating_scale,,0.8,"data"\n'
)


class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryPreviewStore(PreviewStore):
    """Test double for the shared store (values round-trip through JSON)."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, datetime]] = {}
        self.calls: list[tuple[str, str]] = []

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self.calls.append(("set", key))
        self._entries[key] = (json.dumps(value), self._clock() + timedelta(seconds=ttl_seconds))

    def get(self, key: str) -> dict[str, Any] | None:
        self.calls.append(("get", key))
        entry = self._entries.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return json.loads(raw)

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        self._entries.pop(key, None)

    def take(self, key: str) -> dict[str, Any] | None:
        self.calls.append(("take", key))
        entry = self._entries.pop(key, None)
        if entry is None or entry[1] <= self._clock():
            return None
        return json.loads(entry[0])

    def __len__(self) -> int:
        return len(self._entries)


class RecordingSynchronizer:
    """Stands in for FrameworkSynchronizer; remembers what was committed."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.synced: list[CanonicalFramework] = []
        self.fail_with = fail_with

    def sync(self, framework: CanonicalFramework) -> CanonicalFramework:
        if self.fail_with is not None:
            raise self.fail_with
        self.synced.append(framework)
        return framework


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.rowcount = 0

    def execute(self, sql: str, params: Any = None) -> None:
        self.conn.executed.append((sql, params))
        if self.conn.fail_on is not None and self.conn.fail_on in sql:
            raise self.conn.error
        self.rowcount = self.conn.rowcounts.pop(0) if self.conn.rowcounts else 0

    def fetchone(self) -> Any:
        return self.conn.fetch_results.pop(0) if self.conn.fetch_results else None

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class FakeConnection:
    """Minimal psycopg2 connection double recording SQL and transaction calls."""

    def __init__(self) -> None:
        self.executed: list[tuple[str, Any]] = []
        self.fetch_results: list[Any] = []
        self.rowcounts: list[int] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.fail_on: str | None = None
        self.error: Exception = RuntimeError("db failure")

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
staging:
  backend: postgres
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryPreviewStore:
    return InMemoryPreviewStore(clock)


@pytest.fixture()
def synchronizer() -> RecordingSynchronizer:
    return RecordingSynchronizer()


@pytest.fixture()
def service(store: InMemoryPreviewStore, synchronizer: RecordingSynchronizer, clock: FakeClock) -> FrameworkImportService:
    return FrameworkImportService(store, synchronizer, clock=clock)


@pytest.fixture()
def context() -> ImportContext:
    return ImportContext(organization_id="org-123", uploaded_by="user-123")


@pytest.fixture()
def valid_csv() -> bytes:
    return VALID_CSV.encode("utf-8")


@pytest.fixture()
def fake_conn() -> FakeConnection:
    return FakeConnection()
