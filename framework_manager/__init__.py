"""
Steering Frameworks - Install and maintain framework documents in a workspace.

Core Modules:
- Catalog: Bundled manifest of installable frameworks
- Installed State: Persisted record of what is installed, with a short TTL cache
- Lifecycle: Install, update, remove and update checks
- Conflict Handling: Overwrite, merge or keep an existing target, with backups
- Decisions: Console, policy and scripted decision providers
"""

__version__ = "1.0.0"
__author__ = "Steering Frameworks Contributors"

# Version info for backward compatibility
VERSION = __version__

# Data model
from .models import (
    FrameworkDefinition,
    Catalog,
    InstalledRecord,
    InstalledState,
    InstallOptions,
    UpdateInfo,
    VALID_CATEGORIES,
)

# Errors
from .errors import (
    FrameworkError,
    NotFoundError,
    CatalogCorruptError,
    ConflictUnresolvedError,
    UserCancelledError,
    BackupError,
)

# Storage
from .file_gateway import LocalFileGateway
from .catalog import CatalogStore
from .installed_state import InstalledStateStore
from .customization import CustomizationDetector, fingerprint
from .backup import BackupManager

# Decisions and conflicts
from .decisions import (
    DecisionProvider,
    ConsoleDecisionProvider,
    PolicyDecisionProvider,
    ScriptedDecisionProvider,
    decision_provider_from_policy,
)
from .conflict import ConflictResolver, merge_content

# Configuration and workspace
from .config import Config, Preferences, load_config, load_config_file, validate_config
from .workspace import Workspace

# Lifecycle
from .lifecycle import (
    FrameworkManager,
    InstallResult,
    UpdateResult,
    OperationFailure,
    BulkInstallResult,
    BulkUpdateResult,
)
from .versions import is_major_upgrade

# Logging configuration
from .logging_config import (
    setup_logging,
    get_logger,
)

__all__ = [
    # Version
    "__version__",
    "VERSION",
    # Data model
    "FrameworkDefinition",
    "Catalog",
    "InstalledRecord",
    "InstalledState",
    "InstallOptions",
    "UpdateInfo",
    "VALID_CATEGORIES",
    # Errors
    "FrameworkError",
    "NotFoundError",
    "CatalogCorruptError",
    "ConflictUnresolvedError",
    "UserCancelledError",
    "BackupError",
    # Storage
    "LocalFileGateway",
    "CatalogStore",
    "InstalledStateStore",
    "CustomizationDetector",
    "fingerprint",
    "BackupManager",
    # Decisions and conflicts
    "DecisionProvider",
    "ConsoleDecisionProvider",
    "PolicyDecisionProvider",
    "ScriptedDecisionProvider",
    "decision_provider_from_policy",
    "ConflictResolver",
    "merge_content",
    # Configuration and workspace
    "Config",
    "Preferences",
    "load_config",
    "load_config_file",
    "validate_config",
    "Workspace",
    # Lifecycle
    "FrameworkManager",
    "InstallResult",
    "UpdateResult",
    "OperationFailure",
    "BulkInstallResult",
    "BulkUpdateResult",
    "is_major_upgrade",
    # Logging
    "setup_logging",
    "get_logger",
]
