"""
Workspace layout: where frameworks are installed and state is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .installed_state import STATE_FILE
from .models import FrameworkDefinition


@dataclass(frozen=True)
class Workspace:
    """
    Resolved directories of one workspace.

    Attributes:
        root: Workspace root directory
        steering_dir: Directory framework documents are installed into
        metadata_dir: Directory holding the installed-state file
    """
    root: Path
    steering_dir: Path
    metadata_dir: Path

    @classmethod
    def from_config(cls, root: str | Path, config: Config | None = None) -> "Workspace":
        config = config or Config()
        base = Path(root).resolve()
        return cls(
            root=base,
            steering_dir=base / config.steering_dir,
            metadata_dir=base / config.metadata_dir,
        )

    @property
    def state_file(self) -> Path:
        return self.metadata_dir / STATE_FILE

    def target_path(self, framework: FrameworkDefinition) -> Path:
        """Install location of a framework document."""
        return self.steering_dir / framework.file_name
