"""Scan the mirror for files that need pushing.

A file is a push candidate when it has never been pushed (no page_id), has
never been synced (no synced_at), or was modified on disk after its
synced_at timestamp. The mtime comparison allows one second of tolerance
for filesystem timestamp granularity.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import List

from confluence_mirror.models import CandidateType, PushCandidate

from .errors import FileMapperError
from .frontmatter_handler import FrontmatterHandler, parse_timestamp
from .path_safety import to_relative

logger = logging.getLogger(__name__)

MTIME_TOLERANCE = timedelta(seconds=1)

EXCLUDED_DIRS = frozenset({
    'node_modules',
    '.git',
    'dist',
    'build',
    'coverage',
    '.next',
    '.nuxt',
    '.cache',
    '.turbo',
    'out',
    'vendor',
    '__pycache__',
    '.venv',
    'venv',
})

# Agent instruction files that live in the mirror but are never pages
RESERVED_FILENAMES = frozenset({'claude.md', 'agents.md'})


def iter_markdown_files(root: str, excluded_dirs=EXCLUDED_DIRS) -> List[str]:
    """List Markdown files under root as sorted mirror-relative paths.

    Hidden files and directories, excluded directories and reserved
    filenames are skipped.
    """
    found: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames
            if not d.startswith('.') and d not in excluded_dirs
        )
        for filename in filenames:
            if filename.startswith('.') or not filename.endswith('.md'):
                continue
            if filename.lower() in RESERVED_FILENAMES:
                continue
            found.append(to_relative(root, os.path.join(dirpath, filename)))
    return sorted(found)


def detect_push_candidates(root: str) -> List[PushCandidate]:
    """Find new and locally modified Markdown files.

    Args:
        root: Mirror root directory

    Returns:
        Candidates sorted by path
    """
    candidates: List[PushCandidate] = []

    for rel_path in iter_markdown_files(root):
        full_path = os.path.join(root, *rel_path.split('/'))
        try:
            with open(full_path, 'r', encoding='utf-8') as f:
                content = f.read()
            frontmatter, _ = FrontmatterHandler.parse(content, rel_path)
            mtime = os.path.getmtime(full_path)
        except (OSError, UnicodeDecodeError, FileMapperError) as e:
            logger.warning(f"Skipping {rel_path}: {e}")
            continue

        title = frontmatter.get('title') or PurePosixPath(rel_path).stem
        page_id = frontmatter.get('page_id')

        if not page_id:
            candidates.append(PushCandidate(rel_path, CandidateType.NEW, str(title)))
            continue

        synced_at = parse_timestamp(frontmatter.get('synced_at'))
        modified_at = datetime.fromtimestamp(mtime, tz=timezone.utc)
        if synced_at is None or modified_at > synced_at + MTIME_TOLERANCE:
            candidates.append(
                PushCandidate(rel_path, CandidateType.MODIFIED, str(title), str(page_id))
            )

    return sorted(candidates, key=lambda c: c.path)
