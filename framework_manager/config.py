"""
Configuration file parsing and management.

Supports YAML configuration files, plus JSON files by extension.
Merges configurations from multiple sources (explicit → project → user → defaults).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .common import vlog


# Project-relative configuration files (highest priority first)
PROJECT_CONFIG_FILES = [
    ".frameworks.yml",
    ".frameworks.yaml",
]

USER_CONFIG_FILES = [
    os.path.expanduser("~/.config/steering-frameworks/config.yml"),
    os.path.expanduser("~/.config/steering-frameworks/config.yaml"),
]

DEFAULT_STEERING_DIR = ".kiro/steering"
DEFAULT_METADATA_DIR = ".kiro/.metadata"

VALID_CONFLICT_POLICIES = {"prompt", "overwrite", "merge", "keep", "cancel"}
VALID_UPDATE_POLICIES = {"prompt", "update", "cancel"}


def bundled_resources_dir() -> Path:
    """Directory of the framework documents shipped with the package."""
    return Path(__file__).parent / "resources" / "frameworks"


@dataclass(frozen=True)
class Preferences:
    """
    User preferences for lifecycle behavior.

    Attributes:
        conflict_policy: How to handle an existing target ('prompt' asks)
        update_policy: How to confirm updates ('prompt' asks)
        state_cache_ttl_seconds: Installed-state cache time-to-live
        backup_retention_days: Age after which backups may be pruned
        max_workers: Parallel workers for multi-framework installs
    """
    conflict_policy: str = "prompt"
    update_policy: str = "prompt"
    state_cache_ttl_seconds: float = 5.0
    backup_retention_days: int = 30
    max_workers: int = 4

    def __post_init__(self):
        """Validate preferences after initialization."""
        if self.conflict_policy not in VALID_CONFLICT_POLICIES:
            raise ValueError(
                f"Invalid conflict_policy: {self.conflict_policy}. "
                f"Must be one of: {', '.join(sorted(VALID_CONFLICT_POLICIES))}"
            )

        if self.update_policy not in VALID_UPDATE_POLICIES:
            raise ValueError(
                f"Invalid update_policy: {self.update_policy}. "
                f"Must be one of: {', '.join(sorted(VALID_UPDATE_POLICIES))}"
            )

        if self.state_cache_ttl_seconds < 0 or self.state_cache_ttl_seconds > 60:
            raise ValueError(
                f"Invalid state_cache_ttl_seconds: {self.state_cache_ttl_seconds}. "
                "Must be between 0 and 60"
            )

        if self.backup_retention_days < 1 or self.backup_retention_days > 365:
            raise ValueError(
                f"Invalid backup_retention_days: {self.backup_retention_days}. "
                "Must be between 1 and 365"
            )

        if self.max_workers < 1 or self.max_workers > 32:
            raise ValueError(
                f"Invalid max_workers: {self.max_workers}. "
                "Must be between 1 and 32"
            )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Preferences:
        """Create Preferences from dictionary."""
        return Preferences(
            conflict_policy=data.get("conflict_policy", "prompt"),
            update_policy=data.get("update_policy", "prompt"),
            state_cache_ttl_seconds=data.get("state_cache_ttl_seconds", 5.0),
            backup_retention_days=data.get("backup_retention_days", 30),
            max_workers=data.get("max_workers", 4),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for the framework manager.

    Attributes:
        version: Config schema version
        resources_dir: Catalog source directory ('' selects the bundled one)
        steering_dir: Install target directory, relative to the workspace
        metadata_dir: Installed-state directory, relative to the workspace
        preferences: Global preferences
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    resources_dir: str = ""
    steering_dir: str = DEFAULT_STEERING_DIR
    metadata_dir: str = DEFAULT_METADATA_DIR
    preferences: Preferences = field(default_factory=Preferences)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

        for name in ("steering_dir", "metadata_dir"):
            value = getattr(self, name)
            if not value or os.path.isabs(value):
                raise ValueError(f"Invalid {name}: {value!r}. Must be a relative path")

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        preferences = Preferences.from_dict(data.get("preferences", {}) or {})

        return Config(
            version=data.get("version", 1),
            resources_dir=data.get("resources_dir", "") or "",
            steering_dir=data.get("steering_dir", DEFAULT_STEERING_DIR),
            metadata_dir=data.get("metadata_dir", DEFAULT_METADATA_DIR),
            preferences=preferences,
            source=source,
        )

    def resolved_resources_dir(self) -> Path:
        if not self.resources_dir:
            return bundled_resources_dir()
        path = Path(os.path.expanduser(self.resources_dir))
        if not path.is_absolute() and self.source:
            # Relative paths are taken relative to the config file
            path = Path(self.source).parent / path
        return path

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        defaults = Preferences()
        mine = self.preferences
        theirs = other.preferences

        def pick(name: str):
            value = getattr(mine, name)
            return value if value != getattr(defaults, name) else getattr(theirs, name)

        merged_preferences = Preferences(
            conflict_policy=pick("conflict_policy"),
            update_policy=pick("update_policy"),
            state_cache_ttl_seconds=pick("state_cache_ttl_seconds"),
            backup_retention_days=pick("backup_retention_days"),
            max_workers=pick("max_workers"),
        )

        # source anchors a relative resources_dir, so it follows that value
        if not self.resources_dir and other.resources_dir:
            resources_dir, source = other.resources_dir, other.source
        else:
            resources_dir, source = self.resources_dir, self.source or other.source

        return Config(
            version=self.version,
            resources_dir=resources_dir,
            steering_dir=self.steering_dir if self.steering_dir != DEFAULT_STEERING_DIR else other.steering_dir,
            metadata_dir=self.metadata_dir if self.metadata_dir != DEFAULT_METADATA_DIR else other.metadata_dir,
            preferences=merged_preferences,
            source=source,
        )


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def _load_json(file_path: str) -> dict[str, Any] | None:
    """
    Load JSON configuration file.

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return None


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Load configuration from a single file.

    Files ending in .json are parsed as JSON, anything else as YAML.

    Args:
        file_path: Path to configuration file
        verbose: Enable verbose logging

    Returns:
        Config object, or None if file cannot be loaded
    """
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    if file_path.endswith(".json"):
        data = _load_json(file_path)
    else:
        data = _load_yaml(file_path)

    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return None

    try:
        config = Config.from_dict(data, source=os.path.abspath(file_path))
        vlog(f"Loaded config successfully: {file_path}", verbose)
        return config
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return None


def load_config(
    custom_path: str | None = None,
    workspace: str | Path | None = None,
    verbose: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Custom path (if provided)
    2. Project .frameworks.yml in the workspace
    3. User ~/.config/steering-frameworks/config.yml
    4. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        workspace: Workspace root searched for project config (defaults to cwd)
        verbose: Enable verbose logging

    Returns:
        Merged Config object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded
    """
    configs: list[Config] = []

    if custom_path:
        config = load_config_file(custom_path, verbose)
        if config is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)
        vlog(f"Using custom config: {custom_path}", verbose)

    root = Path(workspace) if workspace is not None else Path.cwd()
    locations = [str(root / name) for name in PROJECT_CONFIG_FILES] + USER_CONFIG_FILES

    for location in locations:
        config = load_config_file(location, verbose)
        if config is not None:
            configs.append(config)
            vlog(f"Found config at: {location}", verbose)

    if not configs:
        vlog("No config files found, using defaults", verbose)
        return Config()

    merged = configs[0]
    for config in configs[1:]:
        merged = merged.merge_with(config)

    vlog(f"Merged {len(configs)} config files", verbose)
    return merged


def validate_config(config: Config) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: Config object to validate

    Returns:
        List of validation warning messages (empty if valid)
    """
    warnings = []

    resources = config.resolved_resources_dir()
    if not (resources / "manifest.json").exists():
        warnings.append(f"No manifest.json in resources directory: {resources}")

    if Path(config.steering_dir) == Path(config.metadata_dir):
        warnings.append("steering_dir and metadata_dir are the same directory")

    prefs = config.preferences
    if prefs.conflict_policy == "prompt" and prefs.update_policy != "prompt":
        warnings.append("conflict_policy 'prompt' makes update_policy interactive as well")
    if prefs.conflict_policy != "prompt" and prefs.update_policy == "prompt":
        warnings.append("update_policy 'prompt' makes conflict_policy interactive as well")

    return warnings
