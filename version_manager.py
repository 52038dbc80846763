#!/usr/bin/env python3
"""
version_manager.py — Revision history for a file, straight from its editor backups.

Every save that leaves a backup behind (notes.txt~, notes.txt.~7~) is a
revision. No repository, no index: the backups on disk are the history.

Usage as module:
    from version_manager import version_file, rollback, enumerate_revisions

Usage as CLI:
    python3 version_manager.py backup   <file>
    python3 version_manager.py list     <file>
    python3 version_manager.py log      <file>
    python3 version_manager.py diff     <file>  [--rev-a current] [--rev-b 3]
    python3 version_manager.py show     <file>  <rev>
    python3 version_manager.py rollback <file>  [--rev previous]
    python3 version_manager.py previous <file>  <rev>
    python3 version_manager.py next     <file>  <rev>
    python3 version_manager.py delete   <file>
    python3 version_manager.py rename   <old> <new>

Design:
    - Revisions are "current" (the file), "previous" (name~) or N (name.~N~)
    - Order is by modification time, newest first; N is only an identifier
    - Backup location and numbering follow BACKUP_HISTORY_DIRECTORY and
      VERSION_CONTROL (see backup_naming.py)
"""

import argparse
import shutil
import sys
from pathlib import Path

from loguru import logger

from backup_changeset import delete_all, rename_all
from backup_diff import DiffOptions, diff, render_log
from backup_errors import BackupHistoryError, PartialOperationFailure
from backup_history import (
    extract_tag,
    last_revision,
    list_backups,
    list_tagged_backups,
    next_revision,
    previous_revision,
    resolve,
)
from backup_naming import PREVIOUS, RevisionKind, backup_name, numbered, policy_or_default


# ---------------------------------------------------------------------------
# Framework-facing queries
# ---------------------------------------------------------------------------

def is_trackable(filepath, policy=None) -> bool:
    """True when *filepath* has at least one backup."""
    return bool(list_backups(filepath, policy))


def current_tag_of(filepath) -> str:
    """Revision a path stands for: "current" for the file itself."""
    return str(extract_tag(filepath))


def enumerate_revisions(filepath, policy=None) -> list[str]:
    """All backup revisions of *filepath*, newest first."""
    return [str(rev) for rev, _ in list_tagged_backups(filepath, policy)]


# ---------------------------------------------------------------------------
# Backups and restores
# ---------------------------------------------------------------------------

def _next_backup(src: Path, policy) -> Path:
    numbers = [
        rev.number for rev, _ in list_tagged_backups(src, policy)
        if rev.kind is RevisionKind.NUMBERED
    ]
    mode = policy.version_control
    if mode == "numbered" or (mode == "existing" and numbers):
        return backup_name(src, numbered(max(numbers, default=0) + 1), policy)
    return backup_name(src, PREVIOUS, policy)


def version_file(filepath, policy=None) -> Path:
    """
    Back up *filepath* now, the way a save with backups would.

    Parameters
    ----------
    filepath : str or Path
        The file to back up (must exist).

    Returns
    -------
    Path  — the backup file location.

    Raises
    ------
    FileNotFoundError  if the source file does not exist.
    """
    policy = policy_or_default(policy)
    src = Path(filepath).expanduser().resolve()
    if not src.is_file():
        raise FileNotFoundError(f"Cannot back up — file not found: {src}")

    dst = _next_backup(src, policy)
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)  # keeps mtime: the backup dates from its content
    logger.info(f"Backed up {src.name} → {dst.name}")
    return dst


def find_revision(filepath, revision, destination=None, policy=None) -> bytes:
    """Content of one revision, optionally also written to *destination*."""
    content = resolve(filepath, revision, policy).read_bytes()
    if destination is not None:
        Path(destination).write_bytes(content)
    return content


def rollback(filepath, revision=None, policy=None):
    """
    Restore *filepath* from one of its revisions.

    Parameters
    ----------
    filepath : str or Path
        The file to restore.
    revision : Revision or str, optional
        Defaults to the most recent backup.

    Returns
    -------
    Revision — the revision that was restored.

    Raises
    ------
    NoBackupsFound    if there is nothing to restore from.
    RevisionNotFound  if *revision* has no backup.
    """
    policy = policy_or_default(policy)
    if revision is None:
        revision = last_revision(filepath, policy)
    source = resolve(filepath, revision, policy)
    revision = extract_tag(source)
    content = source.read_bytes()

    target = Path(filepath).expanduser().resolve()

    # Version the *current* state before overwriting (safety net)
    if target.exists():
        version_file(target, policy)

    target.write_bytes(content)
    logger.info(f"Rolled back {target.name} to revision {revision}")
    return revision


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _print_partial(e: PartialOperationFailure):
    print(f"  ✗ {e}")
    for path, err in e.failures:
        print(f"    {path}: {err}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="File revision history from editor backups")
    sub = parser.add_subparsers(dest="command")

    p_bak = sub.add_parser("backup", help="Make a backup of the file now")
    p_bak.add_argument("file")

    p_ls = sub.add_parser("list", help="List revisions, newest first")
    p_ls.add_argument("file")

    p_log = sub.add_parser("log", help="Show the revision log, oldest first")
    p_log.add_argument("file")

    p_diff = sub.add_parser("diff", help="Diff two revisions")
    p_diff.add_argument("file")
    p_diff.add_argument("--rev-a", default="current")
    p_diff.add_argument("--rev-b", default=None,
                        help="Defaults to the most recent backup")
    p_diff.add_argument("--context", type=int, default=3)

    p_show = sub.add_parser("show", help="Print one revision")
    p_show.add_argument("file")
    p_show.add_argument("rev")

    p_rb = sub.add_parser("rollback", help="Restore the file from a revision")
    p_rb.add_argument("file")
    p_rb.add_argument("--rev", default=None,
                      help="Revision to restore (default: latest backup)")

    for name, help_text in (("previous", "Revision before REV"), ("next", "Revision after REV")):
        p_nav = sub.add_parser(name, help=help_text)
        p_nav.add_argument("file")
        p_nav.add_argument("rev")

    p_del = sub.add_parser("delete", help="Delete the file and all its backups")
    p_del.add_argument("file")

    p_mv = sub.add_parser("rename", help="Rename the file together with its backups")
    p_mv.add_argument("old")
    p_mv.add_argument("new")

    args = parser.parse_args(argv)

    try:
        if args.command == "backup":
            dst = version_file(args.file)
            print(f"  ✓ backed up → {dst}")

        elif args.command == "list":
            tagged = list_tagged_backups(args.file)
            if not tagged:
                print("No revisions found.")
            else:
                print(f"Revisions of {args.file} ({len(tagged)} total):\n")
                for rev, path in tagged:
                    print(f"  {str(rev):>8}  {path}")

        elif args.command == "log":
            text = render_log(args.file)
            if not text:
                print("No revisions found.")
            else:
                print(text, end="")

        elif args.command == "diff":
            result = diff(args.file, args.rev_a, args.rev_b,
                          options=DiffOptions(context=args.context))
            print(result.text, end="")
            return 1 if result.has_differences else 0

        elif args.command == "show":
            sys.stdout.buffer.write(find_revision(args.file, args.rev))
            sys.stdout.flush()

        elif args.command == "rollback":
            rev = rollback(args.file, revision=args.rev)
            print(f"  ✓ rolled back → {rev}")

        elif args.command in ("previous", "next"):
            step = previous_revision if args.command == "previous" else next_revision
            rev = step(args.file, args.rev)
            if rev is None:
                print(f"No {args.command} revision.")
                return 1
            print(rev)

        elif args.command == "delete":
            deleted = delete_all(args.file)
            print(f"  ✓ deleted {len(deleted)} file(s)")

        elif args.command == "rename":
            moved = rename_all(args.old, args.new)
            print(f"  ✓ renamed {len(moved)} file(s)")

        else:
            parser.print_help()

    except PartialOperationFailure as e:
        _print_partial(e)
        return 1
    except (BackupHistoryError, OSError, ValueError) as e:
        print(f"  ✗ {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
