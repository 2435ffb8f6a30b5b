"""
Framework lifecycle management: install, update, remove and update checks.

Orchestrates the catalog, the installed-state store, customization
detection, conflict resolution and backups. Operations may be called
concurrently from several threads; the installed-state store serializes
their read-modify-write cycles, while conflict handling, backups and file
copies run unserialized.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .backup import BackupManager
from .catalog import CatalogStore
from .common import utc_timestamp, vlog
from .config import Config
from .conflict import ConflictResolver
from .customization import CustomizationDetector
from .decisions import (
    CONFLICT_KEEP,
    CONFLICT_MERGE,
    UPDATE_CANCEL,
    UPDATE_PROCEED,
    UPDATE_SHOW_DIFF,
    UPDATE_WITH_BACKUP,
    DecisionProvider,
)
from .errors import ConflictUnresolvedError, NotFoundError, UserCancelledError
from .file_gateway import LocalFileGateway
from .installed_state import InstalledStateStore
from .models import (
    FrameworkDefinition,
    InstalledRecord,
    InstallOptions,
    UpdateInfo,
)
from .versions import is_major_upgrade
from .workspace import Workspace

logger = logging.getLogger(__name__)

# Install actions reported in InstallResult
ACTION_INSTALL = "install"
ACTION_OVERWRITE = "overwrite"
ACTION_MERGE = "merge"
ACTION_KEEP = "keep"


@dataclass(frozen=True)
class InstallResult:
    """
    Result of installing a single framework.

    Attributes:
        framework_id: Catalog id
        installed: Whether the file was written and the record upserted
        action: install (no conflict), overwrite, merge or keep
        target_path: Install location in the workspace
        version: Catalog version recorded (None when kept)
        backup_path: Backup of the previous file, if one was made
    """
    framework_id: str
    installed: bool
    action: str
    target_path: str
    version: str | None = None
    backup_path: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "framework_id": self.framework_id,
            "installed": self.installed,
            "action": self.action,
            "target_path": self.target_path,
            "version": self.version,
            "backup_path": self.backup_path,
        }


@dataclass(frozen=True)
class UpdateResult:
    """
    Result of updating a single framework.

    Attributes:
        framework_id: Catalog id
        previous_version: Version recorded before the update
        new_version: Catalog version now installed
        was_customized: Whether the installed file had local changes
        backup_path: Backup of the previous file, if one was made
    """
    framework_id: str
    previous_version: str
    new_version: str
    was_customized: bool = False
    backup_path: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "framework_id": self.framework_id,
            "previous_version": self.previous_version,
            "new_version": self.new_version,
            "was_customized": self.was_customized,
            "backup_path": self.backup_path,
        }


@dataclass(frozen=True)
class OperationFailure:
    """A per-framework failure captured by a bulk operation."""

    framework_id: str
    error_type: str
    message: str

    def to_dict(self) -> dict:
        return {
            "framework_id": self.framework_id,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass(frozen=True)
class BulkUpdateResult:
    """
    Result of updating every outdated framework.

    Attributes:
        frameworks_attempted: Ids that had an update available
        updates: Successful updates
        skipped: Ids whose update was cancelled by the decision provider
        failures: Ids whose update raised
        duration_seconds: Total execution time
    """
    frameworks_attempted: tuple[str, ...]
    updates: tuple[UpdateResult, ...]
    skipped: tuple[str, ...]
    failures: tuple[OperationFailure, ...]
    duration_seconds: float

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "frameworks_attempted": list(self.frameworks_attempted),
            "updates": [u.to_dict() for u in self.updates],
            "skipped": list(self.skipped),
            "failures": [f.to_dict() for f in self.failures],
            "duration_seconds": self.duration_seconds,
        }

    def summary(self) -> str:
        """Human-readable summary."""
        return (
            "Update Summary:\n"
            f"  ✅ Updated: {len(self.updates)}\n"
            f"  ❌ Failed: {len(self.failures)}\n"
            f"  ⏭️  Skipped: {len(self.skipped)}\n"
            f"  ⏱️  Duration: {self.duration_seconds:.1f}s\n"
        )


@dataclass(frozen=True)
class BulkInstallResult:
    """
    Result of installing several frameworks in parallel.

    Attributes:
        frameworks_attempted: Ids requested
        successes: Installs that wrote the file
        skipped: Ids kept or cancelled at the conflict prompt
        failures: Ids whose install raised
        duration_seconds: Total execution time
    """
    frameworks_attempted: tuple[str, ...]
    successes: tuple[InstallResult, ...]
    skipped: tuple[str, ...]
    failures: tuple[OperationFailure, ...]
    duration_seconds: float

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "frameworks_attempted": list(self.frameworks_attempted),
            "successes": [r.to_dict() for r in self.successes],
            "skipped": list(self.skipped),
            "failures": [f.to_dict() for f in self.failures],
            "duration_seconds": self.duration_seconds,
        }


def _failure(framework_id: str, error: Exception) -> OperationFailure:
    message = getattr(error, "message", None) or str(error)
    return OperationFailure(framework_id, type(error).__name__, message)


class FrameworkManager:
    """Installs, updates and removes framework documents in a workspace."""

    def __init__(
        self,
        workspace: Workspace,
        catalog: CatalogStore,
        state: InstalledStateStore | None = None,
        gateway: LocalFileGateway | None = None,
        decisions: DecisionProvider | None = None,
        detector: CustomizationDetector | None = None,
        backups: BackupManager | None = None,
        resolver: ConflictResolver | None = None,
        max_workers: int = 4,
        verbose: bool = False,
    ):
        """Initialize framework manager.

        Args:
            workspace: Target workspace layout
            catalog: Source of framework definitions and documents
            state: Installed-state store (defaults to the workspace state file)
            gateway: File gateway for all file operations
            decisions: Default decision provider for conflicts and updates
            detector: Customization detector
            backups: Backup manager
            resolver: Conflict resolver
            max_workers: Parallel workers for install_many
            verbose: Enable verbose logging
        """
        self.workspace = workspace
        self.catalog = catalog
        self.gateway = gateway or LocalFileGateway()
        self.state = state or InstalledStateStore(workspace.state_file, self.gateway)
        self.decisions = decisions
        self.detector = detector or CustomizationDetector(self.gateway)
        self.backups = backups or BackupManager(self.gateway, verbose=verbose)
        self.resolver = resolver or ConflictResolver(self.gateway, self.backups)
        self.max_workers = max_workers
        self.verbose = verbose

    @classmethod
    def from_config(
        cls,
        workspace_root: str | Path,
        config: Config | None = None,
        decisions: DecisionProvider | None = None,
        verbose: bool = False,
    ) -> "FrameworkManager":
        """Build a manager for a workspace from configuration."""
        config = config or Config()
        gateway = LocalFileGateway()
        workspace = Workspace.from_config(workspace_root, config)
        return cls(
            workspace=workspace,
            catalog=CatalogStore(config.resolved_resources_dir(), gateway),
            state=InstalledStateStore(
                workspace.state_file,
                gateway,
                ttl_seconds=config.preferences.state_cache_ttl_seconds,
            ),
            gateway=gateway,
            decisions=decisions,
            max_workers=config.preferences.max_workers,
            verbose=verbose,
        )

    # Catalog queries

    def list_available(self) -> list[FrameworkDefinition]:
        return self.catalog.all_frameworks()

    def search(self, query: str) -> list[FrameworkDefinition]:
        return self.catalog.search(query)

    def get_by_category(self, category: str) -> list[FrameworkDefinition]:
        return self.catalog.by_category(category)

    def get_framework(self, framework_id: str) -> FrameworkDefinition | None:
        return self.catalog.get_by_id(framework_id)

    # Installed-state queries

    def get_installed(self) -> list[InstalledRecord]:
        """All installed-state records, including ones no longer in the catalog."""
        return self.state.read().frameworks

    def get_installed_record(self, framework_id: str) -> InstalledRecord | None:
        return self.state.read().get(framework_id)

    def get_installed_frameworks(self) -> list[FrameworkDefinition]:
        """Catalog definitions of installed frameworks; dangling ids are skipped."""
        installed = []
        for record in self.state.read().frameworks:
            framework = self.catalog.get_by_id(record.id)
            if framework is not None:
                installed.append(framework)
        return installed

    def is_installed(self, framework_id: str) -> bool:
        return self.get_installed_record(framework_id) is not None

    def clear_caches(self) -> None:
        """Drop the cached catalog and installed state."""
        self.catalog.invalidate()
        self.state.invalidate()

    # Lifecycle operations

    def install(
        self,
        framework_id: str,
        options: InstallOptions | None = None,
        decisions: DecisionProvider | None = None,
    ) -> InstallResult:
        """
        Install a framework document into the workspace.

        Args:
            framework_id: Catalog id
            options: Pre-selected overwrite/merge/backup for an existing target
            decisions: Provider for the conflict prompt (defaults to the manager's)

        Returns:
            InstallResult; installed is False when the existing file was kept

        Raises:
            NotFoundError: If the id is not in the catalog
            UserCancelledError: If the conflict prompt was cancelled
            ConflictUnresolvedError: If a conflict could not be decided
            BackupError: If the pre-write backup failed
            OSError: On file-system failures
        """
        framework = self._require_framework(framework_id)
        return self._install(framework, options or InstallOptions(), decisions or self.decisions)

    def install_many(
        self,
        framework_ids: Sequence[str],
        options: InstallOptions | None = None,
        decisions: DecisionProvider | None = None,
    ) -> BulkInstallResult:
        """
        Install several frameworks in parallel.

        Failures are isolated per id. The decision provider is shared by the
        worker threads, so it should not depend on prompt order.
        """
        start_time = time.time()
        ids = list(dict.fromkeys(framework_ids))
        successes: list[InstallResult] = []
        skipped: list[str] = []
        failures: list[OperationFailure] = []

        vlog(f"Installing {len(ids)} frameworks with {self.max_workers} workers...", self.verbose)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_id = {
                executor.submit(self.install, framework_id, options, decisions): framework_id
                for framework_id in ids
            }
            for future in as_completed(future_to_id):
                framework_id = future_to_id[future]
                try:
                    result = future.result()
                except UserCancelledError:
                    skipped.append(framework_id)
                except Exception as e:
                    logger.warning(f"Install failed for {framework_id}: {e}")
                    failures.append(_failure(framework_id, e))
                else:
                    if result.installed:
                        successes.append(result)
                    else:
                        skipped.append(framework_id)

        return BulkInstallResult(
            frameworks_attempted=tuple(ids),
            successes=tuple(successes),
            skipped=tuple(skipped),
            failures=tuple(failures),
            duration_seconds=time.time() - start_time,
        )

    def update(self, framework_id: str, decisions: DecisionProvider | None = None) -> UpdateResult:
        """
        Update an installed framework to the catalog version.

        Customized files are always backed up first. The decision provider
        confirms the update; asking for a diff shows it and asks again.

        Raises:
            NotFoundError: If the id is not installed or no longer in the catalog
            UserCancelledError: If the provider cancelled
            ConflictUnresolvedError: If no provider is available or it
                returned an unknown choice
        """
        record = self.get_installed_record(framework_id)
        if record is None:
            raise NotFoundError(framework_id, f"Framework not installed: {framework_id}")
        framework = self._require_framework(framework_id)

        provider = decisions or self.decisions
        if provider is None:
            raise ConflictUnresolvedError(
                f"No decision provider available to confirm update of {framework_id}"
            )

        target_path = self.workspace.target_path(framework)
        source_path = self.catalog.source_path(framework)
        customized = self.detector.is_customized(target_path, source_path)

        if customized:
            choices = (UPDATE_SHOW_DIFF, UPDATE_WITH_BACKUP, UPDATE_CANCEL)
        else:
            choices = (UPDATE_SHOW_DIFF, UPDATE_PROCEED, UPDATE_CANCEL)

        choice = provider.confirm_update(framework, customized, choices)
        while choice == UPDATE_SHOW_DIFF:
            provider.show_diff(framework, target_path, source_path)
            choice = provider.confirm_update(framework, customized, choices)

        if choice == UPDATE_CANCEL:
            raise UserCancelledError("Update cancelled by user")
        if choice not in choices:
            raise ConflictUnresolvedError(f"Update choice {choice!r} was not offered")

        backup = customized or choice == UPDATE_WITH_BACKUP
        result = self._install(framework, InstallOptions(overwrite=True, backup=backup), provider)

        logger.info(f"Updated {framework_id}: {record.version} → {framework.version}")
        return UpdateResult(
            framework_id=framework_id,
            previous_version=record.version,
            new_version=framework.version,
            was_customized=customized,
            backup_path=result.backup_path,
        )

    def update_all(self, decisions: DecisionProvider | None = None) -> BulkUpdateResult:
        """
        Update every framework reported by check_for_updates, one at a time.

        Never raises for a single framework: failures and cancellations are
        collected in the result.
        """
        start_time = time.time()
        pending = self.check_for_updates()
        updates: list[UpdateResult] = []
        skipped: list[str] = []
        failures: list[OperationFailure] = []

        vlog(f"Updating {len(pending)} frameworks...", self.verbose)

        for info in pending:
            try:
                updates.append(self.update(info.framework_id, decisions))
            except UserCancelledError:
                vlog(f"Skipped {info.framework_id}: cancelled", self.verbose)
                skipped.append(info.framework_id)
            except Exception as e:
                logger.warning(f"Update failed for {info.framework_id}: {e}")
                failures.append(_failure(info.framework_id, e))

        return BulkUpdateResult(
            frameworks_attempted=tuple(info.framework_id for info in pending),
            updates=tuple(updates),
            skipped=tuple(skipped),
            failures=tuple(failures),
            duration_seconds=time.time() - start_time,
        )

    def remove(self, framework_id: str) -> bool:
        """
        Delete an installed framework file and its installed-state record.

        Removing a catalog id that is not installed is a no-op. A record whose
        id is no longer in the catalog is dropped without touching any file.

        Returns:
            True if a record was removed

        Raises:
            NotFoundError: If the id is unknown to both the catalog and the
                installed state
        """
        framework = self.catalog.get_by_id(framework_id)

        with self.state.transaction() as state:
            if not state.remove(framework_id):
                if framework is None:
                    raise NotFoundError(framework_id)
                vlog(f"{framework_id} is not installed, nothing to remove", self.verbose)
                return False

            if framework is None:
                logger.warning(f"Dropping record for {framework_id}: no longer in the catalog")
            else:
                self.gateway.delete(self.workspace.target_path(framework))

        logger.info(f"Removed {framework_id}")
        return True

    def check_for_updates(self) -> list[UpdateInfo]:
        """Installed frameworks whose recorded version differs from the catalog."""
        updates = []
        for record in self.state.read().frameworks:
            framework = self.catalog.get_by_id(record.id)
            if framework is None:
                continue
            if framework.version != record.version:
                updates.append(UpdateInfo(
                    framework_id=record.id,
                    current_version=record.version,
                    latest_version=framework.version,
                    changes=(f"Updated to version {framework.version}",),
                    breaking_change=is_major_upgrade(record.version, framework.version),
                ))
        return updates

    def mark_customized(self, framework_id: str) -> InstalledRecord:
        """
        Flag an installed framework as hand-edited.

        Raises:
            NotFoundError: If the id is not installed
        """
        with self.state.transaction() as state:
            record = state.get(framework_id)
            if record is None:
                raise NotFoundError(framework_id, f"Framework not installed: {framework_id}")
            record.customized = True
            record.customized_at = utc_timestamp()
        return record

    def detect_customizations(self) -> list[str]:
        """
        Re-check every installed framework against its source and persist
        the customized flags.

        Returns:
            Ids whose customized flag changed
        """
        observed: dict[str, bool] = {}
        for record in self.state.read().frameworks:
            framework = self.catalog.get_by_id(record.id)
            if framework is None:
                continue
            observed[record.id] = self.detector.is_customized(
                self.workspace.target_path(framework),
                self.catalog.source_path(framework),
            )

        changed = []
        with self.state.transaction() as state:
            for framework_id, customized in observed.items():
                record = state.get(framework_id)
                if record is None or record.customized == customized:
                    continue
                record.customized = customized
                record.customized_at = utc_timestamp() if customized else None
                changed.append(framework_id)

        for framework_id in changed:
            vlog(f"{framework_id}: customized flag updated", self.verbose)
        return changed

    # Internals

    def _require_framework(self, framework_id: str) -> FrameworkDefinition:
        framework = self.catalog.get_by_id(framework_id)
        if framework is None:
            raise NotFoundError(framework_id)
        return framework

    def _install(
        self,
        framework: FrameworkDefinition,
        options: InstallOptions,
        decisions: DecisionProvider | None,
    ) -> InstallResult:
        target_path = self.workspace.target_path(framework)
        source_path = self.catalog.source_path(framework)

        resolution = self.resolver.resolve(framework, target_path, options, decisions)
        if resolution.action == CONFLICT_KEEP:
            vlog(f"Kept existing {target_path}", self.verbose)
            return InstallResult(
                framework_id=framework.id,
                installed=False,
                action=ACTION_KEEP,
                target_path=str(target_path),
            )

        backup_path = self.resolver.apply(resolution, source_path, target_path)

        record = InstalledRecord(
            id=framework.id,
            version=framework.version,
            installed_at=utc_timestamp(),
            customized=False,
        )
        with self.state.transaction() as state:
            state.upsert(record)

        if not resolution.conflict:
            action = ACTION_INSTALL
        elif resolution.action == CONFLICT_MERGE:
            action = ACTION_MERGE
        else:
            action = ACTION_OVERWRITE

        logger.info(f"Installed {framework.name} ({framework.id} v{framework.version}, {action})")
        return InstallResult(
            framework_id=framework.id,
            installed=True,
            action=action,
            target_path=str(target_path),
            version=framework.version,
            backup_path=str(backup_path) if backup_path else None,
        )
