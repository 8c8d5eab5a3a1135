"""Data models for CLI operations."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): Any other failure, including partial batch failures
    - VERSION_CONFLICT (2): Remote page is newer than the local copy
    - AUTH_ERROR (3): Missing or rejected credentials
    - NETWORK_ERROR (4): API unreachable or access failure after retries
    - NOT_CONFIGURED (5): Directory is not an initialized mirror
    - NOT_FOUND (6): Space or page does not exist
    - INVALID_ARGUMENTS (7): Bad command-line arguments
    - CANCELLED (130): Interrupted with Ctrl-C

    Example:
        >>> raise typer.Exit(ExitCode.NOT_CONFIGURED)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    VERSION_CONFLICT = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4
    NOT_CONFIGURED = 5
    NOT_FOUND = 6
    INVALID_ARGUMENTS = 7
    CANCELLED = 130
