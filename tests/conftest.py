"""Shared fixtures for backup history tests.

Backups are written with explicit modification times so that recency order
never depends on how fast the test runs.
"""

import os
from pathlib import Path

import pytest

from backup_naming import BackupPolicy, backup_name

BASE_MTIME = 1_700_000_000


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's own backup settings out of the tests."""
    monkeypatch.delenv("BACKUP_HISTORY_DIRECTORY", raising=False)
    monkeypatch.delenv("VERSION_CONTROL", raising=False)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture
def tracked(workdir: Path) -> Path:
    """A tracked file with current content."""
    path = workdir / "notes.txt"
    path.write_text("line one\nline two\nline three\n")
    os.utime(path, (BASE_MTIME + 1000, BASE_MTIME + 1000))
    return path


@pytest.fixture
def make_backup():
    """Factory: write a backup of a tracked file with a fixed age.

    Args:
        tracked: tracked file path
        revision: "previous" or a number
        content: file content
        age: seconds after BASE_MTIME (larger is newer)
        policy: optional BackupPolicy
    """

    def _make(tracked: Path, revision, content: str, age: int,
              policy: BackupPolicy | None = None) -> Path:
        path = backup_name(tracked, str(revision), policy or BackupPolicy())
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        os.utime(path, (BASE_MTIME + age, BASE_MTIME + age))
        return path

    return _make


@pytest.fixture
def notes_history(tracked: Path, make_backup):
    """notes.txt with .~1~ (oldest), .~2~ and notes.txt~ (newest)."""
    one = make_backup(tracked, 1, "line one\n", age=10)
    two = make_backup(tracked, 2, "line one\nline two\n", age=20)
    prev = make_backup(tracked, "previous", "line one\nline 2\nline three\n", age=30)
    return tracked, {"1": one, "2": two, "previous": prev}
