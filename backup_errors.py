"""
backup_errors.py — Error types for backup history operations.

None of these trigger a retry or rollback; they are surfaced to the caller,
who decides what to tell the user. Plain filesystem failures are not wrapped
and propagate as OSError.
"""

from pathlib import Path


class BackupHistoryError(Exception):
    """Base exception for backup history errors."""

    pass


class MalformedBackupName(BackupHistoryError, ValueError):
    """Raised when a name looks like a backup but its version suffix is unreadable."""

    def __init__(self, path, reason: str = "unparseable version suffix") -> None:
        self.path = Path(path)
        super().__init__(f"Malformed backup name {self.path.name!r}: {reason}")


class NoBackupsFound(BackupHistoryError):
    """Raised when a tracked file has no backups at all."""

    def __init__(self, tracked) -> None:
        self.tracked = Path(tracked)
        super().__init__(f"No backups found for {self.tracked}")


class RevisionNotFound(BackupHistoryError, LookupError):
    """Raised when a revision has no corresponding file at lookup time."""

    def __init__(self, tracked, revision) -> None:
        self.tracked = Path(tracked)
        self.revision = revision
        super().__init__(f"Revision {revision} of {self.tracked} not found")


class PartialOperationFailure(BackupHistoryError):
    """Raised when a delete/rename over a backup set stopped partway.

    Attributes:
        operation: "delete" or "rename"
        failures: (path, error) pairs for every step that failed
        remaining: paths that were not processed
    """

    def __init__(self, operation: str, failures: list, remaining: list) -> None:
        self.operation = operation
        self.failures = list(failures)
        self.remaining = list(remaining)
        names = ", ".join(p.name for p, _ in self.failures)
        super().__init__(
            f"{operation} incomplete: {len(self.failures)} failed ({names}), "
            f"{len(self.remaining)} left unprocessed"
        )
