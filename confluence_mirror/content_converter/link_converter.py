"""Translation between local Markdown links and Confluence page links.

A pushed page links to other pages by title (``<ri:page ri:content-title>``),
while a mirrored file links to other files by relative path. PageLookup
holds the pages known to the mirror and answers both questions.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
from urllib.parse import unquote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageLink:
    """A mirrored page as seen by link conversion."""
    page_id: str
    local_path: str
    title: str


def _id_order(page_id: str):
    return (len(page_id), page_id)


class PageLookup:
    """Pages indexed by mirror-relative path and by title.

    When two pages share a title, links by that title go to the page with
    the lower id.

    Example:
        >>> lookup = PageLookup([PageLink("42", "guides/setup.md", "Setup")])
        >>> lookup.resolve_path("../guides/setup.md#install", "faq/index.md").title
        'Setup'
        >>> lookup.relative_path("Setup", "faq/index.md")
        '../guides/setup.md'
    """

    def __init__(self, links: Iterable[PageLink] = ()):
        self.by_path: Dict[str, PageLink] = {}
        self.by_title: Dict[str, PageLink] = {}

        for link in links:
            self.by_path[link.local_path] = link
            if not link.title:
                continue
            existing = self.by_title.get(link.title)
            if existing is None:
                self.by_title[link.title] = link
                continue
            keep = link if _id_order(link.page_id) < _id_order(existing.page_id) else existing
            logger.warning(
                f"Duplicate page title '{link.title}' ({existing.local_path}, {link.local_path}); "
                f"links by title go to {keep.local_path}"
            )
            self.by_title[link.title] = keep

    def __len__(self) -> int:
        return len(self.by_path)

    def resolve_path(self, href: str, source_path: str) -> Optional[PageLink]:
        """Find the page a relative .md link in source_path points to."""
        target = unquote(href.split('#', 1)[0])
        if not target.endswith('.md') or target.startswith(('http://', 'https://', '/')):
            return None
        resolved = posixpath.normpath(posixpath.join(posixpath.dirname(source_path), target))
        return self.by_path.get(resolved)

    def relative_path(self, title: str, source_path: str) -> Optional[str]:
        """Relative link from source_path to the page titled title, if mirrored."""
        link = self.by_title.get(title)
        if link is None:
            return None
        return posixpath.relpath(link.local_path, posixpath.dirname(source_path) or '.')
