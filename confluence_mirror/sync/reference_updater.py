"""Repair Markdown links after a document moves.

Every other Markdown file in the mirror is scanned (a full walk, not an
index) for links whose target, resolved against the linking file's
directory, is the old path. Matching links are rewritten to the new path
relative to the same directory; link text and #anchor are kept. A file
that cannot be read or written is counted and skipped.
"""

import logging
import os
import posixpath
import re
from dataclasses import dataclass, field
from typing import List, Tuple

from confluence_mirror.file_mapper.file_scanner import iter_markdown_files
from confluence_mirror.file_mapper.frontmatter_handler import FrontmatterHandler

logger = logging.getLogger(__name__)

REFERENCE_EXCLUDED_DIRS = frozenset({
    'node_modules',
    '.git',
    'dist',
    'build',
    '.cache',
    '__pycache__',
    '.venv',
    'venv',
})

# [text](target#anchor); text may hold one level of nested brackets
LINK_PATTERN = re.compile(
    r'\[([^\[\]]*(?:\[[^\]]*\][^\[\]]*)*)\]\(([^)\s#]+)(#[^)\s]*)?\)'
)


@dataclass
class UpdatedFile:
    file_path: str
    updated_count: int


@dataclass
class ReferenceUpdateResult:
    """Files whose links were rewritten, plus the count of skipped files."""
    updated_files: List[UpdatedFile] = field(default_factory=list)
    failed_count: int = 0

    @property
    def link_count(self) -> int:
        return sum(f.updated_count for f in self.updated_files)


def _is_external(target: str) -> bool:
    return bool(re.match(r'^[a-zA-Z][a-zA-Z0-9+.-]*:', target)) or target.startswith('/')


def rewrite_links(body: str, source_path: str, old_rel: str, new_rel: str) -> Tuple[str, int]:
    """Rewrite links in body that resolve to old_rel.

    Args:
        body: Markdown text (no frontmatter)
        source_path: Mirror-relative path of the file containing body
        old_rel: Previous mirror-relative path of the moved document
        new_rel: New mirror-relative path of the moved document

    Returns:
        Tuple of (new body, number of links rewritten)
    """
    source_dir = posixpath.dirname(source_path)
    replacement_target = posixpath.relpath(new_rel, source_dir or '.')
    count = 0

    def _replace(match) -> str:
        nonlocal count
        text, target, anchor = match.group(1), match.group(2), match.group(3) or ''
        if _is_external(target):
            return match.group(0)

        resolved = posixpath.normpath(posixpath.join(source_dir, target))
        if resolved != old_rel:
            return match.group(0)

        new_target = replacement_target
        if target.startswith('./') and not new_target.startswith('../'):
            new_target = f"./{new_target}"
        count += 1
        return f"[{text}]({new_target}{anchor})"

    return LINK_PATTERN.sub(_replace, body), count


def update_references(root: str, old_rel: str, new_rel: str) -> ReferenceUpdateResult:
    """Rewrite links to old_rel in every other Markdown file under root.

    Args:
        root: Mirror root directory
        old_rel: Previous mirror-relative path of the moved document
        new_rel: New mirror-relative path of the moved document

    Returns:
        ReferenceUpdateResult listing updated files and failures
    """
    result = ReferenceUpdateResult()
    old_rel = posixpath.normpath(old_rel)
    new_rel = posixpath.normpath(new_rel)

    for rel_path in iter_markdown_files(root, REFERENCE_EXCLUDED_DIRS):
        if rel_path in (old_rel, new_rel):
            continue

        full_path = os.path.join(root, *rel_path.split('/'))
        try:
            with open(full_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {rel_path} for link repair: {e}")
            result.failed_count += 1
            continue

        match = FrontmatterHandler.FRONTMATTER_PATTERN.match(content)
        header = content[:match.end()] if match else ''
        body = content[len(header):]

        new_body, count = rewrite_links(body, rel_path, old_rel, new_rel)
        if count == 0:
            continue

        temp_path = f"{full_path}.tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                f.write(header + new_body)
            os.replace(temp_path, full_path)
        except OSError as e:
            logger.warning(f"Could not update links in {rel_path}: {e}")
            result.failed_count += 1
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            continue

        logger.info(f"  Updated {count} link(s) in {rel_path}")
        result.updated_files.append(UpdatedFile(rel_path, count))

    return result
