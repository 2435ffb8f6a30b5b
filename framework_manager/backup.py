"""
Timestamped backups of framework files before destructive writes.

A backup is a sibling copy named "<file>.backup-<timestamp>", where the
timestamp is the ISO-8601 UTC time with ':' and '.' replaced by '-'.
"""

from __future__ import annotations

import datetime
import logging
import re
from pathlib import Path
from typing import Callable

from .common import utc_now, utc_timestamp, vlog
from .errors import BackupError
from .file_gateway import LocalFileGateway

logger = logging.getLogger(__name__)

BACKUP_MARKER = ".backup-"

_TIMESTAMP_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z")


def backup_timestamp(moment: datetime.datetime | None = None) -> str:
    """Filesystem-safe form of an ISO timestamp, e.g. 2025-01-01T12-00-00-000Z."""
    return re.sub(r"[:.]", "-", utc_timestamp(moment))


def parse_backup_timestamp(backup_path: str | Path) -> datetime.datetime | None:
    """Recover the creation time encoded in a backup file name."""
    name = Path(backup_path).name
    if BACKUP_MARKER not in name:
        return None
    match = _TIMESTAMP_RE.match(name.rsplit(BACKUP_MARKER, 1)[1])
    if not match:
        return None
    year, month, day, hour, minute, second, millis = (int(g) for g in match.groups())
    return datetime.datetime(
        year, month, day, hour, minute, second, millis * 1000, tzinfo=datetime.timezone.utc
    )


class BackupManager:
    """Creates, lists and prunes sibling backups of workspace files."""

    def __init__(
        self,
        gateway: LocalFileGateway | None = None,
        now: Callable[[], datetime.datetime] = utc_now,
        verbose: bool = False,
    ):
        self.gateway = gateway or LocalFileGateway()
        self._now = now
        self.verbose = verbose

    def backup(self, path: str | Path) -> Path:
        """
        Copy path to a timestamped sibling.

        Args:
            path: File to snapshot

        Returns:
            Path of the backup copy

        Raises:
            BackupError: If the source is missing/unreadable or the copy fails.
                The original file is never modified.
        """
        source = Path(path)
        if not self.gateway.exists(source):
            raise BackupError(str(source), f"Cannot back up missing file: {source}")

        try:
            backup_path = self._unique_backup_path(source)
        except OSError as e:
            raise BackupError(
                str(source),
                f"Failed to reserve a backup name for {source}: {e}",
                remediation="Check write permissions on the steering directory",
            ) from e

        try:
            self.gateway.copy(source, backup_path)
        except OSError as e:
            self.gateway.delete(backup_path)
            raise BackupError(
                str(source),
                f"Failed to back up {source} to {backup_path}: {e}",
                remediation="Check free disk space and write permissions",
            ) from e

        vlog(f"Backed up {source.name} → {backup_path.name}", self.verbose)
        return backup_path

    def list_backups(self, path: str | Path) -> list[Path]:
        """Backups of path, oldest first."""
        source = Path(path)
        return self.gateway.list(source.parent, f"{source.name}{BACKUP_MARKER}*")

    def prune_backups(self, path: str | Path, retention_days: int) -> list[Path]:
        """
        Delete backups of path older than the retention period.

        Args:
            path: File whose backups are pruned
            retention_days: Number of days to keep backups

        Returns:
            Paths that were deleted
        """
        cutoff = self._now() - datetime.timedelta(days=retention_days)
        removed = []
        for backup_path in self.list_backups(path):
            created = parse_backup_timestamp(backup_path)
            if created is None or created >= cutoff:
                continue
            self.gateway.delete(backup_path)
            removed.append(backup_path)
            vlog(f"Removed old backup: {backup_path.name}", self.verbose)
        return removed

    def _unique_backup_path(self, source: Path) -> Path:
        # Claims the name on disk so concurrent backups never share a path
        base = source.with_name(f"{source.name}{BACKUP_MARKER}{backup_timestamp(self._now())}")
        candidate = base
        counter = 1
        while not self.gateway.create_exclusive(candidate):
            candidate = base.with_name(f"{base.name}-{counter}")
            counter += 1
        return candidate
