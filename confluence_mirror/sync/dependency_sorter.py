"""Order a push batch so link targets are pushed before the pages linking to them.

Only links between candidates of the same batch matter: a link to an
already-synced file needs no ordering. The graph is sorted with Kahn's
algorithm. Files left over after the queue drains sit on (or behind) a
cycle; each distinct cycle is reported, and the leftovers are appended with
new files first so they obtain a page id that the modified ones can link to.
"""

import logging
import os
import posixpath
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from confluence_mirror.confluence_client.errors import SyncError
from confluence_mirror.models import PushCandidate

logger = logging.getLogger(__name__)

LOCAL_LINK_PATTERN = re.compile(
    r'\[([^\[\]]*(?:\[[^\]]*\][^\[\]]*)*)\]\(([^)#\s]+\.md)(?:#[^)]*)?\)'
)

ContentLoader = Callable[[str], str]


@dataclass
class SortResult:
    """Push order plus the cycles found among the candidates.

    Attributes:
        sorted: Every candidate exactly once, in push order
        cycles: Each cycle as an ordered list of paths (first path not repeated)
    """
    sorted: List[PushCandidate] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)


def extract_local_links(content: str, source_path: str) -> List[str]:
    """Resolve the local .md link targets in content to mirror-relative paths.

    Args:
        content: Markdown content
        source_path: Mirror-relative path of the file holding content

    Returns:
        Unique resolved targets in order of first appearance
    """
    source_dir = posixpath.dirname(source_path)
    targets: List[str] = []

    for match in LOCAL_LINK_PATTERN.finditer(content):
        link = match.group(2)
        if link.startswith(('http://', 'https://')):
            continue
        resolved = posixpath.normpath(posixpath.join(source_dir, link))
        if resolved.startswith('./'):
            resolved = resolved[2:]
        if resolved not in targets:
            targets.append(resolved)

    return targets


def _file_loader(root: str) -> ContentLoader:
    def _load(rel_path: str) -> str:
        with open(os.path.join(root, *rel_path.split('/')), 'r', encoding='utf-8') as f:
            return f.read()
    return _load


def sort_by_dependencies(
    candidates: List[PushCandidate],
    root: Optional[str] = None,
    content_loader: Optional[ContentLoader] = None,
) -> SortResult:
    """Topologically sort push candidates by their local links.

    Args:
        candidates: Candidates in their original (scan) order
        root: Mirror root used to read candidate files
        content_loader: Alternative reader mapping a relative path to content

    Returns:
        SortResult with the push order and any detected cycles
    """
    if content_loader is None:
        if root is None:
            raise ValueError("sort_by_dependencies needs a root or a content_loader")
        content_loader = _file_loader(root)

    by_path: Dict[str, PushCandidate] = {}
    for candidate in candidates:
        by_path.setdefault(candidate.path, candidate)
    order = list(by_path)

    depends_on: Dict[str, List[str]] = {path: [] for path in order}
    depended_by: Dict[str, List[str]] = {path: [] for path in order}

    for path in order:
        try:
            content = content_loader(path)
        except (OSError, UnicodeDecodeError, SyncError) as e:
            logger.warning(f"Cannot read {path} for dependency analysis: {e}")
            continue
        for target in extract_local_links(content, path):
            if target in by_path and target != path:
                depends_on[path].append(target)

    for path in order:
        for target in depends_on[path]:
            depended_by[target].append(path)
    for target in depended_by:
        depended_by[target].sort(key=order.index)

    remaining = {path: len(depends_on[path]) for path in order}
    queue = deque(path for path in order if remaining[path] == 0)
    emitted: List[str] = []
    emitted_set: Set[str] = set()

    while queue:
        path = queue.popleft()
        emitted.append(path)
        emitted_set.add(path)
        for dependent in depended_by[path]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                queue.append(dependent)

    leftover = [path for path in order if path not in emitted_set]
    cycles = _find_cycles(leftover, depends_on) if leftover else []

    result = SortResult(cycles=cycles)
    result.sorted = [by_path[path] for path in emitted]
    result.sorted += [by_path[path] for path in leftover if by_path[path].is_new]
    result.sorted += [by_path[path] for path in leftover if not by_path[path].is_new]

    if cycles:
        logger.warning(f"Detected {len(cycles)} circular link dependency chain(s)")
    return result


def _find_cycles(nodes: List[str], depends_on: Dict[str, List[str]]) -> List[List[str]]:
    """Report each distinct cycle among nodes once, via iterative DFS."""
    node_set = set(nodes)
    visited: Set[str] = set()
    seen_keys: Set[frozenset] = set()
    cycles: List[List[str]] = []

    for start in nodes:
        if start in visited:
            continue

        path: List[str] = [start]
        on_path: Set[str] = {start}
        visited.add(start)
        stack: List[Tuple[str, Iterator[str]]] = [(start, iter(depends_on[start]))]

        while stack:
            node, deps = stack[-1]
            advanced = False
            for dep in deps:
                if dep not in node_set:
                    continue
                if dep in on_path:
                    cycle = path[path.index(dep):]
                    key = frozenset(cycle)
                    if key not in seen_keys:
                        seen_keys.add(key)
                        cycles.append(list(cycle))
                elif dep not in visited:
                    visited.add(dep)
                    path.append(dep)
                    on_path.add(dep)
                    stack.append((dep, iter(depends_on[dep])))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_path.discard(path.pop())

    return cycles
