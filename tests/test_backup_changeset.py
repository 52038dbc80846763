"""Tests for deleting and renaming a tracked file with its backups."""

import hashlib
from pathlib import Path

import pytest

from backup_changeset import delete_all, rename_all, renamed_backup
from backup_errors import PartialOperationFailure
from backup_history import list_backups, list_tagged_backups
from backup_naming import BackupPolicy


def _digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def test_delete_all(notes_history) -> None:
    tracked, backups = notes_history

    deleted = delete_all(tracked)

    assert list_backups(tracked) == []
    assert not tracked.exists()
    assert deleted[-1] == tracked
    assert set(deleted[:-1]) == set(backups.values())


def test_delete_all_without_backups(tracked: Path) -> None:
    assert delete_all(tracked) == [tracked]
    assert not tracked.exists()


def test_delete_all_tolerates_missing_tracked_file(tracked: Path, make_backup) -> None:
    backup = make_backup(tracked, 1, "a", age=10)
    tracked.unlink()

    assert delete_all(tracked) == [backup]
    assert list_backups(tracked) == []


def test_delete_all_keeps_file_when_a_backup_survives(notes_history, monkeypatch) -> None:
    tracked, backups = notes_history
    stuck = backups["2"]
    real_unlink = Path.unlink

    def failing_unlink(self, *args, **kwargs):
        if self == stuck:
            raise PermissionError(13, "Permission denied", str(self))
        return real_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", failing_unlink)

    with pytest.raises(PartialOperationFailure) as exc:
        delete_all(tracked)

    assert exc.value.operation == "delete"
    assert [p for p, _ in exc.value.failures] == [stuck]
    assert exc.value.remaining == [tracked]
    assert tracked.exists()
    assert list_backups(tracked) == [stuck]


def test_rename_all_preserves_history(notes_history, workdir: Path) -> None:
    tracked, _ = notes_history
    before = [(rev, _digest(p)) for rev, p in list_tagged_backups(tracked)]
    target = workdir / "sub" / "renamed.md"
    target.parent.mkdir()

    moved = rename_all(tracked, target)

    assert moved[0] == (tracked, target)
    assert target.read_text() == "line one\nline two\nline three\n"
    assert not tracked.exists()
    assert list_backups(tracked) == []
    after = [(rev, _digest(p)) for rev, p in list_tagged_backups(target)]
    assert after == before
    assert all(p.parent == target.parent for _, p in moved)


def test_rename_all_relocated(tracked: Path, make_backup, workdir: Path) -> None:
    policy = BackupPolicy(directory_alist=[(".*", str(workdir / "shared"))])
    make_backup(tracked, 1, "a", age=10, policy=policy)
    make_backup(tracked, "previous", "b", age=20, policy=policy)
    target = workdir / "other.txt"

    rename_all(tracked, target, policy)

    assert list_backups(tracked, policy) == []
    assert [str(rev) for rev, _ in list_tagged_backups(target, policy)] == ["previous", "1"]


def test_rename_all_refuses_to_overwrite(notes_history, workdir: Path) -> None:
    tracked, backups = notes_history
    target = workdir / "taken.txt"
    target.write_text("mine")

    with pytest.raises(FileExistsError):
        rename_all(tracked, target)
    assert tracked.exists()
    assert all(p.exists() for p in backups.values())


def test_rename_all_missing_source(workdir: Path) -> None:
    with pytest.raises(FileNotFoundError):
        rename_all(workdir / "absent.txt", workdir / "new.txt")


def test_rename_all_reports_stragglers(notes_history, workdir: Path, monkeypatch) -> None:
    tracked, backups = notes_history
    stuck = backups["1"]
    real_rename = Path.rename

    def failing_rename(self, target):
        if self == stuck:
            raise PermissionError(13, "Permission denied", str(self))
        return real_rename(self, target)

    monkeypatch.setattr(Path, "rename", failing_rename)
    target = workdir / "moved.txt"

    with pytest.raises(PartialOperationFailure) as exc:
        rename_all(tracked, target)

    assert exc.value.operation == "rename"
    assert exc.value.remaining == [stuck]
    # nothing is rolled back
    assert target.exists()
    assert [str(rev) for rev, _ in list_tagged_backups(target)] == ["previous", "2"]
    assert list_backups(tracked) == [stuck]


def test_renamed_backup_rejects_foreign_files(workdir: Path) -> None:
    with pytest.raises(ValueError):
        renamed_backup(workdir / "other.txt~", workdir / "notes.txt", workdir / "x.txt",
                       BackupPolicy())


def test_rename_all_refuses_target_with_own_backups(notes_history, workdir: Path, make_backup) -> None:
    tracked, backups = notes_history
    target = workdir / "q.txt"
    theirs = make_backup(target, 2, "q's own backup 2", age=5)
    stale = make_backup(target, 7, "q's own backup 7", age=6)

    with pytest.raises(FileExistsError) as exc:
        rename_all(tracked, target)

    assert "q.txt.~2~" in str(exc.value)
    assert "q.txt.~7~" in str(exc.value)
    assert tracked.exists()
    assert not target.exists()
    assert all(p.exists() for p in backups.values())
    assert theirs.read_text() == "q's own backup 2"
    assert stale.exists()


def test_delete_all_on_symlink_removes_only_the_link(notes_history, workdir: Path) -> None:
    tracked, backups = notes_history
    link = workdir / "link.txt"
    link.symlink_to(tracked)

    assert delete_all(link) == [link]

    assert not link.is_symlink()
    assert tracked.exists()
    assert all(p.exists() for p in backups.values())


def test_rename_all_on_symlink_moves_only_the_link(notes_history, workdir: Path) -> None:
    tracked, backups = notes_history
    link = workdir / "link.txt"
    link.symlink_to(tracked)
    target = workdir / "moved-link.txt"

    assert rename_all(link, target) == [(link, target)]

    assert target.is_symlink()
    assert not link.is_symlink()
    assert tracked.exists()
    assert all(p.exists() for p in backups.values())
