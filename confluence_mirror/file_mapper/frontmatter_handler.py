"""YAML frontmatter parsing and generation for mirrored Markdown files.

Each mirrored file starts with a YAML header describing the remote page:

    ---
    page_id: '123456'
    title: Getting Started
    space_key: TEAM
    version: 4
    synced_at: '2024-01-15T10:30:00+00:00'
    ---

The header is the authoritative record of which remote version the local file
was derived from. Fields the user adds by hand are preserved across rewrites.
"""

import re
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, Optional, Tuple

import yaml

from confluence_mirror.models import RemoteNode

from .errors import FrontmatterError

# Order in which managed fields are written
MANAGED_FIELDS = (
    'page_id',
    'title',
    'space_key',
    'created_at',
    'updated_at',
    'version',
    'parent_id',
    'parent_title',
    'author_id',
    'labels',
    'url',
    'synced_at',
)


class FrontmatterHandler:
    """Handles YAML frontmatter operations for Markdown files."""

    FRONTMATTER_PATTERN = re.compile(
        r'^---\s*\n(.*?)\n---\s*\n',
        re.DOTALL
    )

    H1_PATTERN = re.compile(r'^#\s+(.+?)\s*#*\s*$')

    FENCE_PATTERN = re.compile(r'^ {0,3}(`{3,}|~{3,})')

    # Deepest YAML nesting accepted in a header
    MAX_YAML_DEPTH = 10

    @classmethod
    def _validate_yaml_depth(cls, obj, current_depth: int = 0, max_depth: int = MAX_YAML_DEPTH) -> None:
        """Reject YAML structures nested deeper than max_depth.

        Raises:
            FrontmatterError: If depth exceeds maximum
        """
        if current_depth > max_depth:
            raise FrontmatterError(
                "<yaml>",
                f"YAML structure exceeds maximum depth of {max_depth}"
            )

        if isinstance(obj, dict):
            for value in obj.values():
                cls._validate_yaml_depth(value, current_depth + 1, max_depth)
        elif isinstance(obj, list):
            for item in obj:
                cls._validate_yaml_depth(item, current_depth + 1, max_depth)

    @classmethod
    def parse(cls, content: str, file_path: str = "<unknown>") -> Tuple[Dict[str, Any], str]:
        """Split content into a frontmatter dict and the Markdown body.

        Args:
            content: Full file content
            file_path: Path used in error messages

        Returns:
            Tuple of (frontmatter, body). Content without a header yields
            ({}, content).

        Raises:
            FrontmatterError: If the header is not a valid YAML mapping
        """
        match = cls.FRONTMATTER_PATTERN.match(content)
        if not match:
            return {}, content

        try:
            frontmatter = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            raise FrontmatterError(file_path, f"Invalid YAML syntax: {e}")

        if frontmatter is None:
            frontmatter = {}
        if not isinstance(frontmatter, dict):
            raise FrontmatterError(
                file_path,
                f"Frontmatter must be a YAML dictionary, got {type(frontmatter).__name__}"
            )

        try:
            cls._validate_yaml_depth(frontmatter)
        except FrontmatterError as e:
            raise FrontmatterError(file_path, e.message)

        return frontmatter, content[match.end():]

    @classmethod
    def serialize(cls, frontmatter: Dict[str, Any], body: str) -> str:
        """Render a frontmatter dict and body into file content.

        None values are dropped. An empty header yields the body unchanged.
        """
        clean = {key: value for key, value in frontmatter.items() if value is not None}
        if not clean:
            return body

        yaml_str = yaml.safe_dump(
            clean,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False
        )
        if body and not body.startswith('\n'):
            body = '\n' + body
        return f"---\n{yaml_str}---\n{body}"

    @classmethod
    def merge(cls, existing: Dict[str, Any], managed: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay managed fields on an existing header, keeping user fields.

        Managed fields come first in MANAGED_FIELDS order; any extra keys
        follow in their original order.
        """
        merged: Dict[str, Any] = {}
        for key in MANAGED_FIELDS:
            if key in managed:
                merged[key] = managed[key]
            elif key in existing:
                merged[key] = existing[key]
        for key, value in existing.items():
            if key not in merged:
                merged[key] = value
        for key, value in managed.items():
            if key not in merged:
                merged[key] = value
        return merged

    @classmethod
    def from_remote(
        cls,
        node: RemoteNode,
        space_key: str,
        parent_title: Optional[str] = None,
        synced_at: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the managed frontmatter fields for a remote page."""
        return {
            'page_id': node.id,
            'title': node.title,
            'space_key': space_key,
            'created_at': node.created_at,
            'updated_at': node.updated_at,
            'version': node.version,
            'parent_id': node.parent_id,
            'parent_title': parent_title,
            'author_id': node.author_id,
            'labels': list(node.labels) or None,
            'url': node.url,
            'synced_at': synced_at or utc_now(),
        }

    @classmethod
    def extract_h1_title(cls, body: str) -> Optional[str]:
        """Return the text of the first level-1 heading outside code fences, if any."""
        fence = None
        for line in body.splitlines():
            marker = cls.FENCE_PATTERN.match(line)
            if marker:
                token = marker.group(1)
                if fence is None:
                    fence = token
                elif token[0] == fence[0] and len(token) >= len(fence):
                    fence = None
                continue
            if fence is None:
                match = cls.H1_PATTERN.match(line)
                if match:
                    return match.group(1).strip()
        return None

    @classmethod
    def strip_h1_title(cls, body: str) -> str:
        """Remove a level-1 heading that opens the body.

        Confluence shows the title separately. Only the first non-blank
        line is considered, so headings further down (and comment lines in
        code blocks) are left alone.
        """
        lines = body.splitlines(keepends=True)
        for index, line in enumerate(lines):
            if not line.strip():
                continue
            if cls.H1_PATTERN.match(line.rstrip('\r\n')):
                return ''.join(lines[index + 1:]).lstrip('\n')
            return body
        return body

    @classmethod
    def derive_title(cls, frontmatter: Dict[str, Any], body: str, file_path: str) -> str:
        """Pick a page title: frontmatter title, then first H1, then filename."""
        title = frontmatter.get('title')
        if title:
            return str(title)
        h1 = cls.extract_h1_title(body)
        if h1:
            return h1
        return PurePosixPath(file_path).stem


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string (or YAML datetime) into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
