"""
Framework catalog loading and lookup.

The catalog is the read-only manifest of installable frameworks bundled in
the resources directory. It is parsed once and cached until invalidated.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from .errors import CatalogCorruptError
from .file_gateway import LocalFileGateway
from .models import Catalog, FrameworkDefinition

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"


class CatalogStore:
    """Loads and caches the framework manifest from a resources directory."""

    def __init__(self, resources_dir: str | Path, gateway: LocalFileGateway | None = None):
        """Initialize catalog store.

        Args:
            resources_dir: Directory holding manifest.json and framework files
            gateway: File gateway used for reads (defaults to local disk)
        """
        self.resources_dir = Path(resources_dir)
        self.gateway = gateway or LocalFileGateway()
        self._catalog: Catalog | None = None
        self._lock = threading.Lock()

    @property
    def manifest_path(self) -> Path:
        return self.resources_dir / MANIFEST_FILE

    def load(self) -> Catalog:
        """
        Return the parsed catalog, reading the manifest on first use.

        Raises:
            CatalogCorruptError: If the manifest is not valid JSON or fails validation
            OSError: If the manifest cannot be read
        """
        with self._lock:
            if self._catalog is not None:
                return self._catalog

            raw = self.gateway.read(self.manifest_path)
            try:
                data = json.loads(raw.decode("utf-8"))
                catalog = Catalog.from_dict(data)
            except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
                raise CatalogCorruptError(
                    f"Invalid framework manifest {self.manifest_path}: {e}",
                    remediation="Reinstall the package or fix the manifest JSON",
                ) from e

            logger.debug(f"Loaded {len(catalog.frameworks)} catalog entries from {self.manifest_path}")
            self._catalog = catalog
            return catalog

    def invalidate(self) -> None:
        """Drop the cached catalog so the next load re-reads the manifest."""
        with self._lock:
            self._catalog = None

    def all_frameworks(self) -> list[FrameworkDefinition]:
        """All catalog entries in manifest order."""
        return list(self.load().frameworks)

    def get_by_id(self, framework_id: str) -> FrameworkDefinition | None:
        """
        Get catalog entry for a framework.

        Args:
            framework_id: Catalog id

        Returns:
            FrameworkDefinition or None if not found
        """
        return self.load().get(framework_id)

    def has(self, framework_id: str) -> bool:
        return self.get_by_id(framework_id) is not None

    def search(self, query: str) -> list[FrameworkDefinition]:
        """
        Case-insensitive substring search over name, description and category.

        An empty or whitespace-only query returns the whole catalog.
        """
        frameworks = self.all_frameworks()
        if not query or not query.strip():
            return frameworks

        needle = query.lower()
        return [
            f for f in frameworks
            if needle in f.name.lower()
            or needle in f.description.lower()
            or needle in f.category.lower()
        ]

    def by_category(self, category: str) -> list[FrameworkDefinition]:
        return [f for f in self.all_frameworks() if f.category == category]

    def source_path(self, framework: FrameworkDefinition) -> Path:
        """Path of the bundled source document for a framework."""
        return self.resources_dir / framework.file_name
