"""
Version comparison helpers for framework updates.
"""

from __future__ import annotations

from packaging import version
from packaging.version import InvalidVersion


def is_major_upgrade(v1: str, v2: str) -> bool:
    """
    Check if moving from v1 to v2 is a major version bump.

    Args:
        v1: Installed version
        v2: Catalog version

    Returns:
        True if v2 is a major version ahead of v1; False if either
        version cannot be parsed
    """
    try:
        ver1 = version.parse(v1.lstrip("v"))
        ver2 = version.parse(v2.lstrip("v"))
    except InvalidVersion:
        return False
    return ver2.major > ver1.major
