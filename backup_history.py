"""
backup_history.py — Revision history of a tracked file, read from its backups.

The directory listing is the only database: every call lists the backup
directory again, so saves, deletions and renames made by other programs in
between are always picked up.

    list_backups(path)          backup paths, most recent first
    list_tagged_backups(path)   (Revision, path) pairs, most recent first
    last_revision(path)         Revision of the newest backup
    resolve(path, rev)          Revision → file on disk
    previous_revision(path, rev) / next_revision(path, rev)
"""

import os
from pathlib import Path

from loguru import logger

from backup_errors import MalformedBackupName, NoBackupsFound, RevisionNotFound
from backup_naming import (
    CURRENT,
    PREVIOUS,
    Revision,
    RevisionKind,
    backup_name,
    split_version,
    to_search_pattern,
)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def _as_paths(tracked):
    if isinstance(tracked, (str, os.PathLike)):
        return [tracked]
    return list(tracked)


def _recency_key(entry):
    """Newest first; same mtime → unnumbered, then higher numbers, then name."""
    mtime, revision, path = entry
    rank = revision.number if revision.kind is RevisionKind.NUMBERED else float("inf")
    return (-mtime, -rank, path.name)


def list_backups(tracked, policy=None) -> list[Path]:
    """
    Return every backup of *tracked*, most recent first.

    *tracked* may be a single path or an iterable of paths; with several the
    results are merged and re-sorted. No backups → empty list.
    """
    entries = {}
    for item in _as_paths(tracked):
        directory, pattern = to_search_pattern(item, policy)
        if not directory.is_dir():
            continue
        for candidate in directory.iterdir():
            if not pattern.match(candidate.name) or candidate in entries:
                continue
            try:
                _, revision = split_version(candidate.name)
            except MalformedBackupName as e:
                logger.warning(f"Skipping backup candidate: {e}")
                continue
            try:
                st = candidate.stat()
            except FileNotFoundError:
                logger.debug(f"Backup vanished while listing: {candidate}")
                continue
            entries[candidate] = (st.st_mtime_ns, revision, candidate)

    ordered = sorted(entries.values(), key=_recency_key)
    return [path for _, _, path in ordered]


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------

def extract_tag(path) -> Revision:
    """CURRENT for a live file, PREVIOUS for "name~", N for "name.~N~"."""
    _, revision = split_version(Path(path).name)
    return revision


def list_tagged_backups(tracked, policy=None) -> list[tuple[Revision, Path]]:
    return [(extract_tag(path), path) for path in list_backups(tracked, policy)]


def last_revision(tracked, policy=None) -> Revision:
    """Revision of the most recent backup of *tracked*."""
    tagged = list_tagged_backups(tracked, policy)
    if not tagged:
        raise NoBackupsFound(tracked)
    return tagged[0][0]


def enumerate_tags(tracked, policy=None) -> list[Revision]:
    return [revision for revision, _ in list_tagged_backups(tracked, policy)]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve(tracked, revision, policy=None) -> Path:
    """
    Translate *revision* into the file holding it.

    CURRENT is the tracked file itself and is not checked for existence.

    Raises
    ------
    RevisionNotFound  if no backup carries that revision right now.
    """
    revision = Revision.parse(revision)
    if revision.kind is RevisionKind.CURRENT:
        return Path(tracked).expanduser().resolve()

    if revision.kind is RevisionKind.PREVIOUS:
        path = backup_name(tracked, PREVIOUS, policy)
        if path.is_file():
            return path
        raise RevisionNotFound(tracked, revision)

    for tag, path in list_tagged_backups(tracked, policy):
        if tag == revision:
            return path
    raise RevisionNotFound(tracked, revision)


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

def _timeline(tracked, policy):
    # newest first, the live file in front
    return [CURRENT] + enumerate_tags(tracked, policy)


def previous_revision(tracked, revision, policy=None) -> Revision | None:
    """The revision just older than *revision*, or None.

    PREVIOUS sits at its mtime position, so older numbered backups follow it.
    """
    revision = Revision.parse(revision)
    timeline = _timeline(tracked, policy)
    if revision not in timeline:
        return None
    i = timeline.index(revision)
    return timeline[i + 1] if i + 1 < len(timeline) else None


def next_revision(tracked, revision, policy=None) -> Revision | None:
    """The revision just newer than *revision*, or None."""
    revision = Revision.parse(revision)
    timeline = _timeline(tracked, policy)
    if revision not in timeline:
        return None
    i = timeline.index(revision)
    return timeline[i - 1] if i > 0 else None
