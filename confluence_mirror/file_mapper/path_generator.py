"""Derive local file paths from the remote page tree.

Layout rules:
    - The space homepage is README.md at the mirror root; its children sit
      directly at the root.
    - A page with children becomes a directory holding README.md.
    - A leaf page becomes <slug>.md inside its parent's directory.
    - Folders contribute a directory level but never a file.

Slugs are lossy, so collisions get -2, -3, ... suffixes against the set of
paths already assigned in the current run.
"""

import logging
import posixpath
from typing import Dict, Iterable, List, Optional, Set

from confluence_mirror.models import RemoteNode

from .slugify import slugify

logger = logging.getLogger(__name__)

INDEX_FILE = 'README.md'
FALLBACK_SLUG = 'untitled'


class PathGenerator:
    """Assigns deterministic, unique relative paths to remote nodes.

    The remote tree is held as an arena of nodes keyed by id, with parents
    referenced by id. Ancestor walks carry a visited set, so a malformed
    tree with a parent cycle terminates instead of looping.

    Example:
        >>> generator = PathGenerator(pages + folders, homepage_id="100")
        >>> assigned = set()
        >>> generator.generate(page, assigned)
        'guides/installation.md'
    """

    def __init__(self, nodes: Iterable[RemoteNode], homepage_id: Optional[str] = None):
        self.homepage_id = homepage_id
        self._nodes: Dict[str, RemoteNode] = {}
        self._children: Dict[str, List[str]] = {}

        for node in nodes:
            self._nodes[node.id] = node
        for node in self._nodes.values():
            if node.parent_id and node.parent_id != node.id:
                self._children.setdefault(node.parent_id, []).append(node.id)

    def has_children(self, node_id: str) -> bool:
        return bool(self._children.get(node_id))

    def _directory_prefix(self, node: RemoteNode) -> List[str]:
        """Slugs of the node's ancestors, root first, homepage excluded."""
        parts: List[str] = []
        visited: Set[str] = {node.id}
        current = node.parent_id

        while current and current not in visited:
            visited.add(current)
            ancestor = self._nodes.get(current)
            if ancestor is None:
                break
            if ancestor.id != self.homepage_id:
                slug = slugify(ancestor.title)
                if slug:
                    parts.append(slug)
            current = ancestor.parent_id

        if current and current in visited:
            logger.warning(f"Parent cycle detected above node {node.id}, truncating path")

        parts.reverse()
        return parts

    def folder_path(self, folder: RemoteNode) -> str:
        """Directory path (no trailing slash) for a folder node."""
        slug = slugify(folder.title) or FALLBACK_SLUG
        return '/'.join(self._directory_prefix(folder) + [slug])

    def base_path(self, node: RemoteNode) -> str:
        """Path for a node before collision handling."""
        if node.id == self.homepage_id:
            return INDEX_FILE

        parts = self._directory_prefix(node)
        slug = slugify(node.title) or FALLBACK_SLUG
        if self.has_children(node.id):
            return '/'.join(parts + [slug, INDEX_FILE])
        return '/'.join(parts + [f"{slug}.md"])

    def generate(self, node: RemoteNode, assigned_paths: Set[str]) -> str:
        """Generate a unique path for a node and reserve it.

        Args:
            node: Page to place
            assigned_paths: Paths already taken in this run; updated in place

        Returns:
            Slash-separated path relative to the mirror root
        """
        path = self.base_path(node)
        candidate = path
        counter = 2
        while candidate in assigned_paths:
            candidate = _with_suffix(path, counter)
            counter += 1

        if candidate != path:
            logger.debug(f"Path collision for '{node.title}': {path} -> {candidate}")

        assigned_paths.add(candidate)
        return candidate


def _with_suffix(path: str, counter: int) -> str:
    """Insert -N before the extension, or on the directory of an index file."""
    directory, filename = posixpath.split(path)
    if filename == INDEX_FILE and directory:
        return f"{directory}-{counter}/{INDEX_FILE}"
    stem, ext = posixpath.splitext(path)
    return f"{stem}-{counter}{ext}"
