"""
backup_diff.py — Diffs between revisions and the textual revision log.
"""

import difflib
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from backup_history import last_revision, list_tagged_backups, resolve
from backup_naming import CURRENT, PREVIOUS, UNNUMBERED_MARKER, Revision, numbered

# Tag extraction from rendered log lines
RE_LOG_NUMBERED = re.compile(r"\.~([1-9][0-9]*)~(?=\s|$)")

SIZE_UNITS = ["k", "M", "G", "T", "P"]


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------

@dataclass
class DiffOptions:
    context: int = 3
    label_a: str | None = None
    label_b: str | None = None


@dataclass
class DiffResult:
    has_differences: bool
    text: str


def _split_lines(text: str) -> list[str]:
    """Split on "\\n" only; form feeds and carriage returns stay inside lines."""
    lines = [line + "\n" for line in text.split("\n")]
    lines[-1] = lines[-1][:-1]
    return lines if lines[-1] else lines[:-1]


def compute_diff(path_a, path_b, options: DiffOptions | None = None) -> DiffResult:
    """Unified diff of two files; non UTF-8 content is reported as binary."""
    options = options or DiffOptions()
    path_a, path_b = Path(path_a), Path(path_b)
    label_a = options.label_a or str(path_a)
    label_b = options.label_b or str(path_b)

    data_a, data_b = path_a.read_bytes(), path_b.read_bytes()
    if data_a == data_b:
        return DiffResult(has_differences=False, text="")
    try:
        text_a, text_b = data_a.decode("utf-8"), data_b.decode("utf-8")
    except UnicodeDecodeError:
        return DiffResult(has_differences=True, text=f"Binary files {label_a} and {label_b} differ\n")

    diff_lines = difflib.unified_diff(
        _split_lines(text_a),
        _split_lines(text_b),
        fromfile=label_a,
        tofile=label_b,
        n=options.context,
    )
    out = []
    for line in diff_lines:
        out.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return DiffResult(has_differences=True, text="".join(out))


def diff(tracked, rev_a=CURRENT, rev_b=None, *, differ=compute_diff,
         options: DiffOptions | None = None, policy=None) -> DiffResult:
    """
    Compare two revisions of *tracked*.

    Defaults to the live file against the most recent backup. Both revisions
    go through resolve(), so a missing one raises RevisionNotFound.
    """
    rev_a = Revision.parse(rev_a)
    rev_b = last_revision(tracked, policy) if rev_b is None else Revision.parse(rev_b)
    path_a = resolve(tracked, rev_a, policy)
    path_b = resolve(tracked, rev_b, policy)

    name = Path(tracked).name
    options = options or DiffOptions()
    options = DiffOptions(
        context=options.context,
        label_a=options.label_a or f"{name} ({rev_a})",
        label_b=options.label_b or f"{name} ({rev_b})",
    )
    logger.debug(f"Diffing {path_a} against {path_b}")
    return differ(path_a, path_b, options)


# ---------------------------------------------------------------------------
# Log
# ---------------------------------------------------------------------------

def human_size(size: int) -> str:
    """512 → "512", 1536 → "1.5k", 12582912 → "12M"."""
    if size < 1024:
        return str(size)
    value = float(size)
    unit = ""
    for unit in SIZE_UNITS:
        value /= 1024
        if value < 1024:
            break
    if value < 10 and round(value % 1, 1) >= 0.1:
        return f"{value:.1f}{unit}"
    return f"{value:.0f}{unit}"


def _owner(path: Path, uid: int) -> str:
    try:
        return path.owner()
    except (KeyError, NotImplementedError):
        return str(uid)


def render_log(tracked, policy=None) -> str:
    """
    One line per backup, oldest first:
        name<TAB>tag<TAB>modified<TAB>owner<TAB>size
    """
    name = Path(tracked).name
    lines = []
    for revision, backup in reversed(list_tagged_backups(tracked, policy)):
        try:
            st = backup.stat()
        except FileNotFoundError:
            logger.debug(f"Backup vanished while rendering log: {backup}")
            continue
        modified = datetime.fromtimestamp(st.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        lines.append("\t".join([
            name + revision.suffix,
            str(revision),
            modified,
            _owner(backup, st.st_uid),
            human_size(st.st_size),
        ]))
    return "".join(line + "\n" for line in lines)


def revision_at_line(line: str) -> Revision | None:
    """Read the revision back out of a line produced by render_log."""
    m = RE_LOG_NUMBERED.search(line)
    if m:
        return numbered(int(m.group(1)))
    first = line.split("\t", 1)[0].strip()
    if first.endswith(UNNUMBERED_MARKER):
        return PREVIOUS
    return None
