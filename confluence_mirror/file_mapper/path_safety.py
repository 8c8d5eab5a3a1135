"""Path containment checks and directory cleanup for the mirror root."""

import logging
import os

from .errors import FilesystemError

logger = logging.getLogger(__name__)


def resolve_within(root: str, relative_path: str) -> str:
    """Join a mirror-relative path onto the root, refusing traversal.

    Both sides are resolved with realpath so symlinks cannot be used to
    escape the root.

    Args:
        root: Mirror root directory
        relative_path: Slash-separated path relative to the root

    Returns:
        Absolute, resolved path inside the root

    Raises:
        FilesystemError: If the path resolves outside the root
    """
    real_root = os.path.realpath(root)
    candidate = os.path.realpath(os.path.join(real_root, *relative_path.split('/')))

    if candidate != real_root and not candidate.startswith(real_root + os.sep):
        raise FilesystemError(
            relative_path,
            'validate',
            f'Path traversal detected: path resolves outside {real_root}'
        )
    return candidate


def to_relative(root: str, absolute_path: str) -> str:
    """Express an absolute path as a slash-separated path relative to root."""
    relative = os.path.relpath(os.path.realpath(absolute_path), os.path.realpath(root))
    return relative.replace(os.sep, '/')


def remove_empty_parents(root: str, file_path: str) -> None:
    """Delete empty directories above file_path, stopping at the root."""
    real_root = os.path.realpath(root)
    parent = os.path.dirname(os.path.realpath(file_path))

    while parent != real_root and parent.startswith(real_root + os.sep):
        try:
            if os.listdir(parent):
                break
            os.rmdir(parent)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Stopped directory cleanup at {parent}: {e}")
            break
        parent = os.path.dirname(parent)
