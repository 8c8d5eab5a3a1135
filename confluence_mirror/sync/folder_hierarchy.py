"""Ensure remote folders exist for a new page's local directory.

A file at guides/setup/install.md without an explicit parent_id is created
under remote folders "guides" and "setup". Folders already recorded in the
mirror state are reused, as is a page whose README.md indexes the
directory; missing ones are created one level at a time and
recorded (and saved) immediately, so a failure part-way keeps what exists.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Optional

from confluence_mirror.confluence_client.errors import ConfluenceError
from confluence_mirror.confluence_client.remote_client import RemoteClient
from confluence_mirror.file_mapper.mirror_state import MirrorState
from confluence_mirror.models import FolderRecord

from .errors import FolderHierarchyError

logger = logging.getLogger(__name__)

MAX_FOLDER_DEPTH = 10

INVALID_TITLE_CHARS = re.compile(r'[|\\/:*?"<>]')


@dataclass
class FolderHierarchyResult:
    """Leaf folder id to use as parent, and the possibly updated state."""
    parent_id: Optional[str]
    state: MirrorState


def sanitize_folder_title(title: str) -> str:
    """Replace characters Confluence rejects in titles with '-'."""
    return INVALID_TITLE_CHARS.sub('-', title).strip()


def ensure_folder_hierarchy(
    remote: RemoteClient,
    state: MirrorState,
    store,
    rel_path: str,
    dry_run: bool = False,
) -> FolderHierarchyResult:
    """Walk rel_path's directories, creating missing remote folders.

    Args:
        remote: Remote client for the space
        state: Current mirror state
        store: State store used to persist each new folder
        rel_path: Mirror-relative path of the file being pushed
        dry_run: Report the first missing folder instead of creating it

    Returns:
        FolderHierarchyResult with the leaf folder id (None at root level)

    Raises:
        FolderHierarchyError: On traversal, excessive depth or creation failure
    """
    normalized = rel_path[2:] if rel_path.startswith('./') else rel_path
    directory = posixpath.dirname(normalized)
    segments = [s for s in directory.split('/') if s] if directory else []

    if not segments:
        return FolderHierarchyResult(parent_id=None, state=state)

    if '..' in segments:
        raise FolderHierarchyError(f'Invalid path: "{directory}" contains path traversal sequences')

    if len(segments) > MAX_FOLDER_DEPTH:
        raise FolderHierarchyError(
            f"Folder hierarchy too deep: {len(segments)} levels (max: {MAX_FOLDER_DEPTH})"
        )

    parent_id: Optional[str] = None
    current_path = ''

    for segment in segments:
        current_path = f"{current_path}/{segment}" if current_path else segment

        existing = state.folder_by_path(current_path)
        if existing is not None:
            parent_id = existing.folder_id
            continue

        index_page_id = state.page_id_for_path(f"{current_path}/README.md")
        if index_page_id is not None:
            parent_id = index_page_id
            continue

        title = sanitize_folder_title(segment)
        if title != segment:
            logger.info(f'Folder title sanitized: "{segment}" -> "{title}"')

        if dry_run:
            logger.info(f"Would create folder: {current_path}")
            return FolderHierarchyResult(parent_id=None, state=state)

        try:
            folder = remote.create_folder(state.space_id, title, parent_id=parent_id)
        except ConfluenceError as e:
            if 'already exists' in str(e).lower():
                raise FolderHierarchyError(
                    f'Folder "{title}" exists on Confluence but is not tracked locally. '
                    f'Run "confluence-mirror pull" first.'
                ) from e
            raise FolderHierarchyError(f"Failed to create folder {title}: {e}") from e

        logger.info(f"  + Created folder {folder.title} ({folder.id})")
        state = state.with_folder(FolderRecord(
            folder_id=folder.id,
            title=folder.title,
            parent_id=parent_id,
            local_path=current_path,
        ))
        store.save(state)
        parent_id = folder.id

    return FolderHierarchyResult(parent_id=parent_id, state=state)
