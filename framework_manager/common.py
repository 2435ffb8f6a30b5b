"""
Common utilities shared across framework_manager modules.
"""

from __future__ import annotations

import datetime
import os


def is_ci_environment() -> bool:
    """
    Check if running in a CI/CD environment.

    Returns:
        True if CI indicators are present, False otherwise.
    """
    ci_indicators = [
        "CI",
        "CONTINUOUS_INTEGRATION",
        "GITHUB_ACTIONS",
        "GITLAB_CI",
        "CIRCLECI",
        "TRAVIS",
        "JENKINS_HOME",
        "BUILDKITE",
        "DRONE",
        "SEMAPHORE",
        "APPVEYOR",
        "CODEBUILD_BUILD_ID",
        "TF_BUILD",  # Azure Pipelines
    ]
    return any(os.environ.get(var) for var in ci_indicators)


def utc_now() -> datetime.datetime:
    """Current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def utc_timestamp(moment: datetime.datetime | None = None) -> str:
    """
    Format a moment as an ISO-8601 UTC timestamp with millisecond precision.

    Args:
        moment: Datetime to format (defaults to now)

    Returns:
        Timestamp such as "2025-01-01T12:00:00.000Z"
    """
    if moment is None:
        moment = utc_now()
    moment = moment.astimezone(datetime.timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("FRAMEWORKS_DEBUG", "0") == "1":
        from .logging_config import get_logger
        get_logger().info(msg)
