"""
Error types raised by the framework lifecycle operations.

File-system failures are not wrapped: they surface as the built-in
OSError (IOError) raised by the file gateway.
"""

from __future__ import annotations


class FrameworkError(Exception):
    """
    Base exception for framework lifecycle errors.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
    """
    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class NotFoundError(FrameworkError):
    """Unknown framework id, or an operation on an id that is not installed."""

    def __init__(self, framework_id: str, message: str | None = None, remediation: str | None = None):
        self.framework_id = framework_id
        super().__init__(message or f"Framework not found: {framework_id}", remediation)


class CatalogCorruptError(FrameworkError):
    """The catalog manifest could not be parsed or failed validation."""


class ConflictUnresolvedError(FrameworkError):
    """A conflict (or update confirmation) ended without a usable decision."""


class UserCancelledError(ConflictUnresolvedError):
    """The decision provider chose to cancel the operation."""


class BackupError(FrameworkError):
    """A snapshot of a file could not be created."""

    def __init__(self, path: str, message: str, remediation: str | None = None):
        self.path = path
        super().__init__(message, remediation)
