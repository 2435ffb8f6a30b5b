"""
Conflict handling for installs whose target file already exists.

A target that does not exist is no conflict and is written directly. An
existing target is either handled by a choice pre-selected by the caller
(batch and update flows) or by asking the decision provider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .backup import BackupManager
from .decisions import (
    CONFLICT_CANCEL,
    CONFLICT_CHOICES,
    CONFLICT_KEEP,
    CONFLICT_MERGE,
    CONFLICT_OVERWRITE,
    DecisionProvider,
)
from .errors import ConflictUnresolvedError, UserCancelledError
from .file_gateway import LocalFileGateway
from .models import FrameworkDefinition, InstallOptions

logger = logging.getLogger(__name__)

MERGE_START_MARKER = (
    b"<!-- ========== MERGE CONFLICT: New Framework Content Below ========== -->\n"
    b"<!-- Review and integrate the content below, then remove conflict markers -->\n"
)
MERGE_END_MARKER = b"<!-- ========== END MERGE CONFLICT ========== -->\n"


def merge_content(existing: bytes, incoming: bytes) -> bytes:
    """Append incoming content to existing content between conflict markers."""
    return (
        existing
        + b"\n\n"
        + MERGE_START_MARKER
        + b"\n"
        + incoming
        + b"\n\n"
        + MERGE_END_MARKER
    )


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of the conflict decision for one target.

    Attributes:
        conflict: Whether the target existed
        action: One of overwrite, merge, keep
        backup: Whether the existing target must be backed up first
        prompted: Whether the decision provider was consulted
    """
    conflict: bool
    action: str
    backup: bool = False
    prompted: bool = False


class ConflictResolver:
    """Decides and applies overwrite/merge/keep for an install target."""

    def __init__(self, gateway: LocalFileGateway | None = None, backups: BackupManager | None = None):
        self.gateway = gateway or LocalFileGateway()
        self.backups = backups or BackupManager(self.gateway)

    def resolve(
        self,
        framework: FrameworkDefinition,
        target_path: Path,
        options: InstallOptions,
        decisions: DecisionProvider | None,
    ) -> Resolution:
        """
        Decide how to write the framework to target_path.

        Args:
            framework: Framework being installed
            target_path: Destination file in the workspace
            options: Caller's pre-selected overwrite/merge/backup
            decisions: Provider consulted when nothing is pre-selected

        Returns:
            Resolution describing the file operation

        Raises:
            UserCancelledError: If the provider chose cancel
            ConflictUnresolvedError: If no provider is available or it
                returned an unknown choice
        """
        if not self.gateway.exists(target_path):
            return Resolution(conflict=False, action=CONFLICT_OVERWRITE)

        if options.merge:
            return Resolution(conflict=True, action=CONFLICT_MERGE, backup=options.backup)
        if options.overwrite:
            return Resolution(conflict=True, action=CONFLICT_OVERWRITE, backup=options.backup)

        if decisions is None:
            raise ConflictUnresolvedError(
                f"Framework file already exists: {target_path}",
                remediation="Re-run with --overwrite or --merge",
            )

        action = decisions.resolve_conflict(framework, target_path)
        logger.debug(f"Conflict on {target_path}: provider chose {action!r}")

        if action == CONFLICT_CANCEL:
            raise UserCancelledError("Installation cancelled by user")
        if action not in CONFLICT_CHOICES:
            raise ConflictUnresolvedError(f"Unrecognized conflict resolution: {action!r}")
        if action == CONFLICT_KEEP:
            return Resolution(conflict=True, action=CONFLICT_KEEP, prompted=True)
        # A resolved conflict always keeps a copy of what it replaces
        return Resolution(conflict=True, action=action, backup=True, prompted=True)

    def apply(self, resolution: Resolution, source_path: Path, target_path: Path) -> Path | None:
        """
        Perform the file operation for a resolution.

        The backup, when required, completes before the target is touched.

        Returns:
            Path of the backup that was created, if any
        """
        if resolution.action == CONFLICT_KEEP:
            return None

        backup_path = None
        if resolution.conflict and resolution.backup:
            backup_path = self.backups.backup(target_path)

        if resolution.conflict and resolution.action == CONFLICT_MERGE:
            existing = self.gateway.read(target_path)
            incoming = self.gateway.read(source_path)
            self.gateway.write(target_path, merge_content(existing, incoming))
        else:
            self.gateway.copy(source_path, target_path)

        return backup_path
