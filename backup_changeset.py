"""
backup_changeset.py — Delete or rename a tracked file together with its backups.

Neither operation is atomic. Both are best-effort and resumable: every step
is attempted, failures are collected and reported at the end through
PartialOperationFailure, and nothing already done is undone. Running the
same operation again picks up whatever is left.
"""

from pathlib import Path

from loguru import logger

from backup_errors import PartialOperationFailure
from backup_history import list_backups
from backup_naming import backup_stem


def delete_all(tracked, policy=None) -> list[Path]:
    """
    Delete every backup of *tracked*, then *tracked* itself.

    If any backup cannot be deleted the tracked file is kept, so a failed
    run never leaves backups behind without their file. A symbolic link is
    removed on its own; the backups belong to the file it points to.

    Returns
    -------
    list[Path] — the files actually deleted.

    Raises
    ------
    PartialOperationFailure  if one or more deletions failed.
    """
    path = Path(tracked).expanduser().absolute()
    if path.is_symlink():
        path.unlink()
        logger.info("Deleted link, kept its target's backups", link=str(path))
        return [path]

    deleted, failures = [], []

    for backup in list_backups(path, policy):
        try:
            backup.unlink()
        except FileNotFoundError:
            logger.debug(f"Backup already gone: {backup}")
            continue
        except OSError as e:
            failures.append((backup, e))
            continue
        deleted.append(backup)
        logger.debug(f"Deleted backup {backup}")

    if failures:
        remaining = [path] if path.exists() else []
        logger.warning(f"Kept {path.name}: {len(failures)} backup(s) could not be deleted")
        raise PartialOperationFailure("delete", failures, remaining)

    try:
        path.unlink()
        deleted.append(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise PartialOperationFailure("delete", [(path, e)], [path]) from e

    logger.info("Deleted tracked file and its backups", tracked=str(path), count=len(deleted))
    return deleted


def renamed_backup(backup, old_tracked, new_tracked, policy=None) -> Path:
    """Name *backup* of *old_tracked* should carry once it belongs to *new_tracked*."""
    old_stem = backup_stem(old_tracked, policy)
    new_stem = backup_stem(new_tracked, policy)
    backup = Path(backup)
    if not backup.name.startswith(old_stem.name):
        raise ValueError(f"{backup.name} is not a backup of {Path(old_tracked).name}")
    suffix = backup.name[len(old_stem.name):]
    return new_stem.with_name(new_stem.name + suffix)


def _occupied(path: Path) -> bool:
    return path.is_symlink() or path.exists()


def rename_all(old_tracked, new_tracked, policy=None) -> list[tuple[Path, Path]]:
    """
    Rename *old_tracked* to *new_tracked* and carry its backups along.

    Every target name is checked before anything moves. The tracked file
    moves first; if that fails nothing else is touched and the OSError
    propagates. A symbolic link is renamed on its own and its target's
    backups stay where they are.

    Returns
    -------
    list[(Path, Path)] — (old, new) pairs for every file moved.

    Raises
    ------
    FileExistsError          if *new_tracked* or any of its backup names is taken.
    PartialOperationFailure  if some backups could not be moved.
    """
    old_path = Path(old_tracked).expanduser().absolute()
    new_path = Path(new_tracked).expanduser().absolute()
    if _occupied(new_path):
        raise FileExistsError(f"Rename target already exists: {new_path}")

    if old_path.is_symlink():
        old_path.rename(new_path)
        logger.info("Renamed link, kept its target's backups", old=str(old_path), new=str(new_path))
        return [(old_path, new_path)]

    plan = [
        (backup, renamed_backup(backup, old_path, new_path, policy))
        for backup in list_backups(old_path, policy)
    ]
    taken = {target for _, target in plan if _occupied(target)}
    taken.update(list_backups(new_path, policy))
    if taken:
        names = ", ".join(sorted(p.name for p in taken))
        raise FileExistsError(f"{new_path.name} already has backups: {names}")

    old_path.rename(new_path)
    moved = [(old_path, new_path)]
    logger.debug(f"Renamed {old_path} → {new_path}")

    failures = []
    for backup, target in plan:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            backup.rename(target)
        except OSError as e:
            failures.append((backup, e))
            continue
        moved.append((backup, target))
        logger.debug(f"Renamed backup {backup.name} → {target.name}")

    if failures:
        logger.warning(
            f"Renamed {old_path.name} but {len(failures)} backup(s) stayed behind"
        )
        raise PartialOperationFailure("rename", failures, [p for p, _ in failures])

    logger.info(
        "Renamed tracked file with its backups",
        old=str(old_path),
        new=str(new_path),
        count=len(moved) - 1,
    )
    return moved
