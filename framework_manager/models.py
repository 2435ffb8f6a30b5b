"""
Data model for the framework catalog and the installed-state record.

Serialized field names follow the on-disk JSON formats (camelCase);
Python attributes are snake_case.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any


# Framework categories
CATEGORY_ARCHITECTURE = "architecture"
CATEGORY_TESTING = "testing"
CATEGORY_SECURITY = "security"
CATEGORY_DEVOPS = "devops"
CATEGORY_CLOUD = "cloud"
CATEGORY_INFRASTRUCTURE = "infrastructure"
CATEGORY_WORK_MANAGEMENT = "work-management"

VALID_CATEGORIES = frozenset({
    CATEGORY_ARCHITECTURE,
    CATEGORY_TESTING,
    CATEGORY_SECURITY,
    CATEGORY_DEVOPS,
    CATEGORY_CLOUD,
    CATEGORY_INFRASTRUCTURE,
    CATEGORY_WORK_MANAGEMENT,
})

CATEGORY_LABELS = {
    CATEGORY_ARCHITECTURE: "Architecture",
    CATEGORY_TESTING: "Testing",
    CATEGORY_SECURITY: "Security",
    CATEGORY_DEVOPS: "DevOps",
    CATEGORY_CLOUD: "Cloud",
    CATEGORY_INFRASTRUCTURE: "Infrastructure",
    CATEGORY_WORK_MANAGEMENT: "Work Management",
}


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"missing or invalid '{key}'")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"invalid '{key}': expected a string")
    return value


@dataclass(frozen=True)
class FrameworkDefinition:
    """
    Catalog entry for one installable framework document.

    Attributes:
        id: Unique catalog key
        name: Display name
        description: One-line description
        category: One of VALID_CATEGORIES
        version: Semantic version string of the bundled document
        file_name: Target path relative to the steering directory
        dependencies: Advisory ids of other frameworks (not resolved)
    """
    id: str
    name: str
    description: str
    category: str
    version: str
    file_name: str
    dependencies: tuple[str, ...] = ()

    def __post_init__(self):
        if self.category not in VALID_CATEGORIES:
            raise ValueError(
                f"Invalid category for {self.id}: {self.category}. "
                f"Must be one of: {', '.join(sorted(VALID_CATEGORIES))}"
            )
        # fileName is joined onto the steering directory
        path = PurePosixPath(self.file_name.replace("\\", "/"))
        if path.is_absolute() or ".." in path.parts or self.file_name.startswith(("/", "\\")):
            raise ValueError(f"Invalid fileName for {self.id}: {self.file_name}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FrameworkDefinition":
        """Create from manifest JSON data.

        Raises:
            ValueError: If a required field is missing or invalid
        """
        if not isinstance(data, dict):
            raise ValueError("framework entry must be an object")
        dependencies = data.get("dependencies") or []
        if not isinstance(dependencies, list) or not all(isinstance(d, str) for d in dependencies):
            raise ValueError("'dependencies' must be a list of ids")
        return cls(
            id=_require_str(data, "id"),
            name=_require_str(data, "name"),
            description=_optional_str(data, "description"),
            category=_require_str(data, "category"),
            version=_require_str(data, "version"),
            file_name=_require_str(data, "fileName"),
            dependencies=tuple(dependencies),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to manifest JSON form."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "version": self.version,
            "fileName": self.file_name,
            "dependencies": list(self.dependencies),
        }

    @property
    def category_label(self) -> str:
        return CATEGORY_LABELS.get(self.category, self.category)


@dataclass(frozen=True)
class Catalog:
    """Parsed manifest: schema version plus ordered framework definitions."""

    version: str
    frameworks: tuple[FrameworkDefinition, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Catalog":
        """Create from manifest JSON data.

        Raises:
            ValueError: If the manifest shape is invalid or ids repeat
        """
        if not isinstance(data, dict):
            raise ValueError("manifest must be an object")
        raw = data.get("frameworks")
        if not isinstance(raw, list):
            raise ValueError("manifest must contain a 'frameworks' list")

        frameworks = []
        seen: set[str] = set()
        for index, entry in enumerate(raw):
            try:
                framework = FrameworkDefinition.from_dict(entry)
            except ValueError as e:
                raise ValueError(f"frameworks[{index}]: {e}") from e
            if framework.id in seen:
                raise ValueError(f"duplicate framework id: {framework.id}")
            seen.add(framework.id)
            frameworks.append(framework)

        return cls(version=str(data.get("version", "")), frameworks=tuple(frameworks))

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "frameworks": [f.to_dict() for f in self.frameworks],
        }

    def get(self, framework_id: str) -> FrameworkDefinition | None:
        for framework in self.frameworks:
            if framework.id == framework_id:
                return framework
        return None


@dataclass
class InstalledRecord:
    """
    Installed-state entry for one framework.

    Attributes:
        id: Catalog id that was installed
        version: Version installed (may lag the catalog)
        installed_at: ISO timestamp of the last install/update
        customized: Whether the local file diverged from its source
        customized_at: ISO timestamp, present iff customized
    """
    id: str
    version: str
    installed_at: str
    customized: bool = False
    customized_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "version": self.version,
            "installedAt": self.installed_at,
            "customized": self.customized,
        }
        if self.customized_at is not None:
            data["customizedAt"] = self.customized_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstalledRecord":
        """Create from dictionary."""
        # Only a JSON true marks the record customized
        customized = data.get("customized") is True
        return cls(
            id=data.get("id", ""),
            version=data.get("version", ""),
            installed_at=data.get("installedAt", ""),
            customized=customized,
            customized_at=data.get("customizedAt") if customized else None,
        )


@dataclass
class InstalledState:
    """Mutable record of installed frameworks, unique by id."""

    frameworks: list[InstalledRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"frameworks": [record.to_dict() for record in self.frameworks]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstalledState":
        """Create from dictionary; later duplicates of an id replace earlier ones."""
        state = cls()
        for raw in data.get("frameworks", []) or []:
            if isinstance(raw, dict) and raw.get("id"):
                state.upsert(InstalledRecord.from_dict(raw))
        return state

    def get(self, framework_id: str) -> InstalledRecord | None:
        for record in self.frameworks:
            if record.id == framework_id:
                return record
        return None

    def upsert(self, record: InstalledRecord) -> None:
        """Replace the record with the same id in place, or append it."""
        for index, existing in enumerate(self.frameworks):
            if existing.id == record.id:
                self.frameworks[index] = record
                return
        self.frameworks.append(record)

    def remove(self, framework_id: str) -> bool:
        """Drop the record for an id. Returns True if one was present."""
        before = len(self.frameworks)
        self.frameworks = [r for r in self.frameworks if r.id != framework_id]
        return len(self.frameworks) != before

    def ids(self) -> list[str]:
        return [record.id for record in self.frameworks]

    def copy(self) -> "InstalledState":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class InstallOptions:
    """
    Pre-selected conflict handling for an install.

    Attributes:
        overwrite: Replace an existing target without asking
        merge: Append to an existing target without asking
        backup: Snapshot an existing target before writing
    """
    overwrite: bool = False
    merge: bool = False
    backup: bool = False

    def __post_init__(self):
        if self.overwrite and self.merge:
            raise ValueError("overwrite and merge are mutually exclusive")


@dataclass(frozen=True)
class UpdateInfo:
    """
    Installed framework whose recorded version differs from the catalog.

    Attributes:
        framework_id: Catalog id
        current_version: Version recorded at install time
        latest_version: Version currently in the catalog
        changes: Human-readable change summary lines
        breaking_change: Whether the catalog version is a major bump
    """
    framework_id: str
    current_version: str
    latest_version: str
    changes: tuple[str, ...] = ()
    breaking_change: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.framework_id,
            "currentVersion": self.current_version,
            "latestVersion": self.latest_version,
            "changes": list(self.changes),
            "breakingChange": self.breaking_change,
        }

    def version_jump_description(self) -> str:
        """Human-readable version jump description."""
        if self.breaking_change:
            return f"{self.current_version} → {self.latest_version} (BREAKING)"
        return f"{self.current_version} → {self.latest_version}"
