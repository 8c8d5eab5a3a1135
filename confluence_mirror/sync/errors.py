"""Typed exceptions raised by the sync engine."""

from typing import Optional

from confluence_mirror.confluence_client.errors import SyncError


class EngineError(SyncError):
    """Base exception for sync engine errors."""
    pass


class NotConfiguredError(EngineError):
    """Raised when a directory has no mirror state."""

    def __init__(self, root: str):
        super().__init__(
            f"No mirror configuration found in {root}. "
            f"Run 'confluence-mirror init <SPACE_KEY>' first."
        )
        self.root = root


class FolderHierarchyError(EngineError):
    """Raised when the remote folder chain for a file cannot be ensured."""

    def __init__(self, message: str):
        super().__init__(message)


class ContentTooLargeError(EngineError):
    """Raised when converted content exceeds the remote page size limit."""

    def __init__(self, path: str, size: int, limit: int):
        super().__init__(
            f"Content too large for {path}: {size} characters (max: {limit})"
        )
        self.path = path
        self.size = size
        self.limit = limit


class RenameError(EngineError):
    """Raised when a rename could not be completed and was rolled back."""

    def __init__(self, old_path: str, new_path: str, reason: Optional[str] = None):
        message = f"Rename {old_path} -> {new_path} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.old_path = old_path
        self.new_path = new_path
        self.reason = reason


class InvalidPushTargetError(EngineError):
    """Raised when a push is requested for a file that cannot be pushed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot push {path}: {reason}")
        self.path = path
        self.reason = reason
