"""Resolve --page references (ids or local paths) to page ids."""

from typing import Iterable, List, Set, Tuple

from confluence_mirror.file_mapper.mirror_state import MirrorState


def resolve_page_refs(
    refs: Iterable[str],
    remote_ids: Set[str],
    state: MirrorState,
) -> Tuple[List[str], List[str]]:
    """Map each reference to a page id.

    A reference is tried as a remote page id, then as a recorded local path,
    then as that path without a leading "./".

    Returns:
        Tuple of (page ids in reference order without duplicates, warnings)
    """
    page_ids: List[str] = []
    warnings: List[str] = []

    for ref in refs:
        page_id = None
        if ref in remote_ids:
            page_id = ref
        else:
            page_id = state.page_id_for_path(ref)
            if page_id is None and ref.startswith('./'):
                page_id = state.page_id_for_path(ref[2:])

        if page_id is None:
            warnings.append(f"Could not find page for: {ref}")
        elif page_id not in page_ids:
            page_ids.append(page_id)

    return page_ids, warnings
