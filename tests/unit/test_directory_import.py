from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import HEADER, VALID_CSV, RecordingSynchronizer

from framework_import.logging.issue_log import IssueLogBuffer
from framework_import.services.directory import DirectoryImportError, import_directory, scan_csv_files
from framework_import.services.orchestrator import FrameworkImportService

BLOCKED_CSV = HEADER + "\nFw,,1,Dim,,1,Question?,not_a_type,,1,\n"


@pytest.fixture(autouse=True)
def _no_tty(monkeypatch):
    monkeypatch.setattr("framework_import.services.progress.is_tty_enabled", lambda: False)


def _write(dir_path: Path, name: str, content: str) -> Path:
    p = dir_path / name
    p.write_text(content, encoding="utf-8")
    return p


def test_scan_csv_files_sorted_and_filtered(tmp_path: Path):
    _write(tmp_path, "b.csv", VALID_CSV)
    _write(tmp_path, "a.CSV", VALID_CSV)
    _write(tmp_path, "notes.txt", "x")
    (tmp_path / "sub").mkdir()
    _write(tmp_path / "sub", "c.csv", VALID_CSV)

    assert [p.name for p in scan_csv_files(tmp_path)] == ["a.CSV", "b.csv"]


def test_scan_csv_files_missing_directory(tmp_path: Path):
    with pytest.raises(DirectoryImportError, match="Directory not found"):
        scan_csv_files(tmp_path / "nope")


def test_scan_csv_files_rejects_file_path(tmp_path: Path):
    f = _write(tmp_path, "a.csv", VALID_CSV)
    with pytest.raises(DirectoryImportError, match="Path is not a directory"):
        scan_csv_files(f)


def test_import_directory_mixed_outcomes(tmp_path: Path, service, synchronizer, context):
    src = tmp_path / "data"
    src.mkdir()
    _write(src, "01_good.csv", VALID_CSV)
    _write(src, "02_blocked.csv", BLOCKED_CSV)
    _write(src, "03_empty.csv", "")
    issue_log = IssueLogBuffer(logs_dir=tmp_path / "logs")

    result = import_directory(service, src, context, issue_log)

    assert (result.imported_files, result.blocked_files, result.failed_files) == (1, 1, 1)
    assert result.total_files == 3
    assert result.total_questions == 3
    assert [s.status for s in result.file_stats] == ["imported", "blocked", "failed"]
    assert result.file_stats[0].framework_id.startswith("ai-governance-")
    assert len(synchronizer.synced) == 1

    path = issue_log.flush()
    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert {r["file"] for r in records} == {"02_blocked.csv", "03_empty.csv"}
    rejected = [r for r in records if r["file"] == "03_empty.csv"]
    assert rejected == [
        {
            "timestamp": rejected[0]["timestamp"],
            "file": "03_empty.csv",
            "row": -1,
            "status": "rejected",
            "issue": "CSV file is empty",
        }
    ]


def test_import_directory_storage_failure_continues(tmp_path: Path, store, clock, context):
    src = tmp_path / "data"
    src.mkdir()
    _write(src, "a.csv", VALID_CSV)
    _write(src, "b.csv", VALID_CSV)
    failing = RecordingSynchronizer(fail_with=RuntimeError("connection lost"))
    service = FrameworkImportService(store, failing, clock=clock)
    issue_log = IssueLogBuffer(logs_dir=tmp_path / "logs")

    result = import_directory(service, src, context, issue_log)

    assert result.failed_files == 2
    assert result.imported_files == 0
    assert all("connection lost" in s.error for s in result.file_stats)
    assert len(issue_log) == 2


def test_import_directory_empty_directory(tmp_path: Path, service, context):
    issue_log = IssueLogBuffer(logs_dir=tmp_path / "logs")
    result = import_directory(service, tmp_path, context, issue_log)

    assert result.total_files == 0
    assert result.file_stats == []
    assert issue_log.flush() is None
