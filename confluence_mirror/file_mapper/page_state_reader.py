"""Read PageState for recorded pages from their frontmatter.

Any record whose file is missing, escapes the root, belongs to another page
or cannot be parsed produces a warning and no PageState; the diff then
treats that page's local version as 0.
"""

import logging
from typing import Dict, List, Tuple

from confluence_mirror.models import PageState

from .errors import FileMapperError
from .frontmatter_handler import FrontmatterHandler
from .path_safety import resolve_within

logger = logging.getLogger(__name__)


def as_version(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def read_page_states(root: str, records: Dict[str, str]) -> Tuple[Dict[str, PageState], List[str]]:
    """Build PageState for each recorded page.

    Args:
        root: Mirror root directory
        records: Map of page id to recorded local path

    Returns:
        Tuple of (page states by id, warnings)
    """
    states: Dict[str, PageState] = {}
    warnings: List[str] = []

    for page_id, local_path in records.items():
        try:
            full_path = resolve_within(root, local_path)
        except FileMapperError:
            warnings.append(f"Recorded path for page {page_id} is outside the mirror: {local_path}")
            continue

        try:
            with open(full_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            warnings.append(f"Local file missing for page {page_id}: {local_path}")
            continue
        except (OSError, UnicodeDecodeError) as e:
            warnings.append(f"Cannot read {local_path}: {e}")
            continue

        try:
            frontmatter, _ = FrontmatterHandler.parse(content, local_path)
        except FileMapperError as e:
            warnings.append(f"Cannot parse frontmatter in {local_path}: {e}")
            continue

        file_page_id = frontmatter.get('page_id')
        if file_page_id is not None and str(file_page_id) != page_id:
            warnings.append(
                f"{local_path} has page_id {file_page_id}, expected {page_id}"
            )
            continue

        states[page_id] = PageState(
            page_id=page_id,
            title=frontmatter.get('title'),
            version=as_version(frontmatter.get('version')),
            updated_at=_text_or_none(frontmatter.get('updated_at')),
            synced_at=_text_or_none(frontmatter.get('synced_at')),
        )

    for warning in warnings:
        logger.warning(warning)
    return states, warnings


def _text_or_none(value):
    return None if value is None else str(value)
