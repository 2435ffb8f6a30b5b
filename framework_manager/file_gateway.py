"""
Local file-system gateway used by the lifecycle operations.

Every operation is atomic at single-file granularity: writes and copies go
to a temporary sibling first and are then renamed over the target. Errors
propagate as OSError.
"""

from __future__ import annotations

import fnmatch
import os
import shutil
import tempfile
from pathlib import Path


class LocalFileGateway:
    """File gateway backed by the local file system."""

    def exists(self, path: str | Path) -> bool:
        """Check whether a regular file exists at path."""
        return Path(path).is_file()

    def read(self, path: str | Path) -> bytes:
        """Read a file's raw bytes."""
        with open(path, "rb") as f:
            return f.read()

    def write(self, path: str | Path, data: bytes) -> None:
        """Atomically replace path with data, creating parent directories."""
        target = Path(path)
        self.ensure_dir(target.parent)
        fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(temp_name, target)
        except BaseException:
            _discard(temp_name)
            raise

    def copy(self, source: str | Path, destination: str | Path) -> None:
        """Atomically copy source over destination, creating parent directories."""
        target = Path(destination)
        self.ensure_dir(target.parent)
        fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        os.close(fd)
        try:
            shutil.copy2(source, temp_name)
            os.replace(temp_name, target)
        except BaseException:
            _discard(temp_name)
            raise

    def create_exclusive(self, path: str | Path) -> bool:
        """
        Create an empty file at path unless one already exists.

        Returns:
            True if this call created the file, False if the name was taken
        """
        target = Path(path)
        self.ensure_dir(target.parent)
        try:
            with open(target, "xb"):
                pass
        except FileExistsError:
            return False
        return True

    def delete(self, path: str | Path) -> None:
        """Delete a file; a missing file counts as already deleted."""
        try:
            os.unlink(path)
        except FileNotFoundError:
            return

    def ensure_dir(self, path: str | Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def list(self, directory: str | Path, pattern: str = "*") -> list[Path]:
        """
        List regular files in a directory whose names match a glob pattern.

        Args:
            directory: Directory to scan (not recursive)
            pattern: fnmatch-style pattern applied to file names

        Returns:
            Sorted list of matching paths, empty if the directory is missing
        """
        root = Path(directory)
        try:
            entries = list(root.iterdir())
        except FileNotFoundError:
            return []
        return sorted(
            entry for entry in entries
            if entry.is_file() and fnmatch.fnmatchcase(entry.name, pattern)
        )


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
