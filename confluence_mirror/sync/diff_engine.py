"""Classify remote pages against the local mirror.

A remote page is ADDED when no local record exists, MODIFIED when its remote
version is newer than the version in the local file's frontmatter (or it is
forced), and a local record missing from the remote list is DELETED.
Versions come from frontmatter, not from cached state: a record whose file
is missing or unreadable has local version 0 and is therefore re-downloaded
as soon as the remote page has any version at all.
"""

from typing import Dict, Iterable, List, Optional, Set

from confluence_mirror.models import ChangeSet, ChangeType, PageState, RemoteNode, SyncChange


def compute_diff(
    remote_pages: List[RemoteNode],
    records: Dict[str, str],
    page_states: Dict[str, PageState],
    force_ids: Optional[Iterable[str]] = None,
) -> ChangeSet:
    """Compute the change set for one pull.

    Args:
        remote_pages: All pages currently in the remote space
        records: Recorded page id -> local path mapping
        page_states: Frontmatter state by page id (absent means version 0)
        force_ids: Page ids to treat as modified regardless of version

    Returns:
        ChangeSet whose buckets preserve remote list order (record order for
        deletions)
    """
    forced: Set[str] = set(force_ids or ())
    changes = ChangeSet()
    remote_ids: Set[str] = set()

    for page in remote_pages:
        if page.id in remote_ids:
            continue
        remote_ids.add(page.id)

        if page.id not in records:
            changes.added.append(SyncChange(ChangeType.ADDED, page.id, page.title))
            continue

        state = page_states.get(page.id)
        local_version = state.version if state else 0
        if page.version > local_version or page.id in forced:
            changes.modified.append(
                SyncChange(ChangeType.MODIFIED, page.id, page.title, records[page.id])
            )

    for page_id, local_path in records.items():
        if page_id not in remote_ids:
            title = page_states[page_id].title if page_id in page_states else None
            changes.deleted.append(
                SyncChange(ChangeType.DELETED, page_id, title or local_path, local_path)
            )

    return changes


def full_resync(remote_pages: List[RemoteNode]) -> ChangeSet:
    """Mark every remote page as added, ignoring recorded state."""
    changes = ChangeSet()
    seen: Set[str] = set()
    for page in remote_pages:
        if page.id not in seen:
            seen.add(page.id)
            changes.added.append(SyncChange(ChangeType.ADDED, page.id, page.title))
    return changes
