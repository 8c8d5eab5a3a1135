"""CLI exceptions and the mapping from engine errors to exit codes."""

from confluence_mirror.confluence_client.errors import (
    APIAccessError,
    APIUnreachableError,
    InvalidCredentialsError,
    PageNotFoundError,
    SyncError,
    VersionConflictError,
)
from confluence_mirror.sync.errors import InvalidPushTargetError, NotConfiguredError

from .models import ExitCode


class CLIError(SyncError):
    """Base exception for all CLI-related errors."""
    pass


class InitError(CLIError):
    """Raised when initialization fails."""

    def __init__(self, message: str):
        super().__init__(message)


def exit_code_for(error: SyncError) -> ExitCode:
    """Pick the exit code that describes an error.

    Example:
        >>> exit_code_for(VersionConflictError("123", 2, 3))
        <ExitCode.VERSION_CONFLICT: 2>
    """
    if isinstance(error, NotConfiguredError):
        return ExitCode.NOT_CONFIGURED
    if isinstance(error, InvalidCredentialsError):
        return ExitCode.AUTH_ERROR
    if isinstance(error, (APIUnreachableError, APIAccessError)):
        return ExitCode.NETWORK_ERROR
    if isinstance(error, VersionConflictError):
        return ExitCode.VERSION_CONFLICT
    if isinstance(error, PageNotFoundError):
        return ExitCode.NOT_FOUND
    if isinstance(error, InvalidPushTargetError):
        return ExitCode.INVALID_ARGUMENTS
    return ExitCode.GENERAL_ERROR
