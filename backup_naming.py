"""
backup_naming.py — Backup file naming for tracked files.

Maps a tracked file to the names its editor backups carry, and back.

Naming convention (GNU/Emacs):
    notes.txt       →  notes.txt~        unnumbered ("previous") backup
                    →  notes.txt.~3~     numbered backup 3

Where backups live is decided by a BackupPolicy:
    - no matching entry    → next to the tracked file
    - relative directory   → that directory, under the tracked file's own
                             directory, same base name
    - absolute directory   → a shared backup root; the base name is the full
                             tracked path with "!" doubled and "/" turned
                             into "!"   (/home/me/notes.txt → !home!me!notes.txt~)

Nothing here touches the disk except for resolving paths.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from backup_errors import MalformedBackupName

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# Environment overrides, read on every load_policy() call
ENV_BACKUP_DIRECTORY = "BACKUP_HISTORY_DIRECTORY"
ENV_VERSION_CONTROL = "VERSION_CONTROL"

ESCAPE_MARKER = "!"
UNNUMBERED_MARKER = "~"

# GNU spellings accepted for VERSION_CONTROL
VERSION_CONTROL_ALIASES = {
    "existing": "existing",
    "nil": "existing",
    "numbered": "numbered",
    "t": "numbered",
    "never": "never",
    "simple": "never",
}

RE_VERSION_SUFFIX = re.compile(r"\.~([^~/]*)~$")


@dataclass
class BackupPolicy:
    """Where backups are kept and which kind a new backup gets."""
    directory_alist: list = field(default_factory=list)  # [(regex, directory)]
    version_control: str = "existing"

    def __post_init__(self):
        key = str(self.version_control).strip().lower()
        if key not in VERSION_CONTROL_ALIASES:
            raise ValueError(f"Unknown version control mode: {self.version_control!r}")
        self.version_control = VERSION_CONTROL_ALIASES[key]


def load_policy() -> BackupPolicy:
    """Build the policy from the environment."""
    alist = []
    directory = os.environ.get(ENV_BACKUP_DIRECTORY, "").strip()
    if directory:
        alist.append((".*", directory))
    return BackupPolicy(
        directory_alist=alist,
        version_control=os.environ.get(ENV_VERSION_CONTROL, "") or "existing",
    )


def policy_or_default(policy):
    return load_policy() if policy is None else policy


# ---------------------------------------------------------------------------
# Revision tags
# ---------------------------------------------------------------------------

class RevisionKind(Enum):
    CURRENT = "current"
    PREVIOUS = "previous"
    NUMBERED = "numbered"


@dataclass(frozen=True)
class Revision:
    """One point in a tracked file's history.

    CURRENT is the live file, PREVIOUS the single unnumbered backup, and
    NUMBERED(n) the backup carrying the ``.~n~`` suffix.
    """
    kind: RevisionKind
    number: int | None = None

    def __post_init__(self):
        if self.kind is RevisionKind.NUMBERED:
            if not isinstance(self.number, int) or self.number < 1:
                raise ValueError(f"Numbered revision needs a positive number, got {self.number!r}")
        elif self.number is not None:
            raise ValueError(f"{self.kind.value} revision takes no number")

    def __str__(self):
        if self.kind is RevisionKind.NUMBERED:
            return str(self.number)
        return self.kind.value

    @property
    def suffix(self) -> str:
        """Version suffix appended to the backup stem."""
        if self.kind is RevisionKind.NUMBERED:
            return f".~{self.number}~"
        if self.kind is RevisionKind.PREVIOUS:
            return UNNUMBERED_MARKER
        return ""

    @classmethod
    def parse(cls, text) -> "Revision":
        if isinstance(text, Revision):
            return text
        value = str(text).strip()
        if value == RevisionKind.CURRENT.value:
            return CURRENT
        if value == RevisionKind.PREVIOUS.value:
            return PREVIOUS
        if value.isdigit() and int(value) > 0:
            return cls(RevisionKind.NUMBERED, int(value))
        raise ValueError(f"Not a revision: {text!r}")


CURRENT = Revision(RevisionKind.CURRENT)
PREVIOUS = Revision(RevisionKind.PREVIOUS)


def numbered(n: int) -> Revision:
    return Revision(RevisionKind.NUMBERED, n)


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def escape_path(path: str) -> str:
    """Flatten an absolute path into a single file name."""
    return path.replace(ESCAPE_MARKER, ESCAPE_MARKER * 2).replace("/", ESCAPE_MARKER)


def unescape_name(name: str) -> str:
    """Inverse of escape_path, decoded left to right."""
    out = []
    i = 0
    while i < len(name):
        ch = name[i]
        if ch == ESCAPE_MARKER:
            if name[i + 1:i + 2] == ESCAPE_MARKER:
                out.append(ESCAPE_MARKER)
                i += 2
                continue
            out.append("/")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

def is_backup_name(name) -> bool:
    return str(name).endswith(UNNUMBERED_MARKER)


def split_version(name):
    """
    Split a file name into (stem, Revision).

    A name that is not a backup comes back whole with CURRENT.

    Raises
    ------
    MalformedBackupName  if the name ends in "~" but its suffix is unreadable.
    """
    name = str(name)
    if not is_backup_name(name):
        return name, CURRENT

    m = RE_VERSION_SUFFIX.search(name)
    if m:
        digits = m.group(1)
        if not digits.isdigit() or int(digits) < 1:
            raise MalformedBackupName(name, f"version {digits!r} is not a positive integer")
        stem, revision = name[:m.start()], numbered(int(digits))
    else:
        stem, revision = name[:-len(UNNUMBERED_MARKER)], PREVIOUS

    if not stem:
        raise MalformedBackupName(name, "empty file name")
    return stem, revision


def _absolute(path) -> Path:
    return Path(path).expanduser().resolve()


def backup_directory(tracked, policy=None):
    """
    Return (directory, relocated) for the backups of *tracked*.

    ``relocated`` is True when the directory is a shared backup root and the
    backup base names carry the escaped full path.
    """
    policy = policy_or_default(policy)
    tracked = _absolute(tracked)
    for pattern, directory in policy.directory_alist:
        if re.search(pattern, str(tracked)):
            directory = Path(directory).expanduser()
            if directory.is_absolute():
                return directory.resolve(), True
            return (tracked.parent / directory).resolve(), False
    return tracked.parent, False


def backup_stem(tracked, policy=None) -> Path:
    """Path of a backup of *tracked* without its version suffix."""
    tracked = _absolute(tracked)
    directory, relocated = backup_directory(tracked, policy)
    name = escape_path(str(tracked)) if relocated else tracked.name
    return directory / name


def backup_name(tracked, revision, policy=None) -> Path:
    """Concrete backup path for a PREVIOUS or numbered revision."""
    revision = Revision.parse(revision)
    if revision.kind is RevisionKind.CURRENT:
        raise ValueError("The current revision is the tracked file, not a backup")
    stem = backup_stem(tracked, policy)
    return stem.with_name(stem.name + revision.suffix)


def to_search_pattern(tracked, policy=None):
    """
    Return (directory, regex) locating every backup of *tracked*.

    The regex matches whole file names: the unnumbered backup and anything
    carrying a ``.~…~`` suffix (malformed ones included, so discovery can
    report them). Files whose names merely start or end like this one's
    never match.
    """
    stem = backup_stem(tracked, policy)
    pattern = re.compile(
        "^" + re.escape(stem.name) + r"(?:\.~[^~/]*~|" + re.escape(UNNUMBERED_MARKER) + ")$"
    )
    return stem.parent, pattern


def to_tracked_path(path, policy=None) -> Path:
    """
    Recover the tracked file a backup belongs to.

    A path that is not a backup name is returned as is (made absolute).
    """
    policy = policy_or_default(policy)
    path = _absolute(path)
    if not is_backup_name(path.name):
        return path

    stem, _ = split_version(path.name)
    directory = path.parent

    for pattern, backup_dir in policy.directory_alist:
        backup_dir = Path(backup_dir).expanduser()
        if backup_dir.is_absolute():
            if backup_dir.resolve() != directory or not stem.startswith(ESCAPE_MARKER):
                continue
            candidate = Path(unescape_name(stem))
        else:
            # "../bak" is shared by every sibling directory; the tracked one is lost
            backup_dir = Path(os.path.normpath(backup_dir))
            if ".." in backup_dir.parts:
                continue
            depth = len(backup_dir.parts)
            if directory.parts[-depth:] != backup_dir.parts:
                continue
            candidate = directory.parents[depth - 1] / stem
        if re.search(pattern, str(candidate)):
            return candidate

    return directory / stem
