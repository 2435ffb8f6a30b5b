"""
Content fingerprinting and customization detection.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from .file_gateway import LocalFileGateway

logger = logging.getLogger(__name__)


def fingerprint(content: bytes) -> str:
    """SHA256 hex digest of raw content."""
    return hashlib.sha256(content).hexdigest()


class CustomizationDetector:
    """Compares an installed framework file against its bundled source."""

    def __init__(self, gateway: LocalFileGateway | None = None):
        self.gateway = gateway or LocalFileGateway()

    def file_fingerprint(self, path: str | Path) -> str:
        return fingerprint(self.gateway.read(path))

    def is_customized(self, installed_path: str | Path, source_path: str | Path) -> bool:
        """
        Check whether the installed file's content differs from the source.

        Args:
            installed_path: File in the workspace
            source_path: Bundled catalog file

        Returns:
            True if the fingerprints differ; False if they match or either
            file cannot be read
        """
        try:
            installed = self.file_fingerprint(installed_path)
            source = self.file_fingerprint(source_path)
        except OSError as e:
            logger.debug(f"Customization check skipped for {installed_path}: {e}")
            return False
        return installed != source
