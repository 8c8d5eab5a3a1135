"""Exceptions raised while reading and writing the local mirror.

Every class derives from FileMapperError, itself a SyncError, and keeps the
offending path or field on the instance.
"""

from typing import Optional

from confluence_mirror.confluence_client.errors import SyncError


class FileMapperError(SyncError):
    """A local file, path or state problem."""
    pass


class FilesystemError(FileMapperError):
    """A read, write or path check failed for one file.

    Attributes:
        file_path: Path that was being accessed
        operation: 'read', 'write' or 'validate'
        reason: Short cause, e.g. 'Permission denied'
    """

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Could not {operation} {file_path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class ConfigError(FileMapperError):
    """The mirror state file is structurally invalid."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        prefix = f"Invalid '{config_field}' in mirror state" if config_field else "Invalid mirror state"
        super().__init__(f"{prefix}: {message}")
        self.config_field = config_field
        self.original_message = message


class FrontmatterError(FileMapperError):
    """A Markdown file's YAML header could not be parsed."""

    def __init__(self, file_path: str, message: str):
        super().__init__(f"Invalid frontmatter in {file_path}: {message}")
        self.file_path = file_path
        self.message = message
