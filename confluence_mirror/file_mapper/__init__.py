"""File mapper library for the Confluence mirror.

Maps the remote page tree onto local Markdown files: frontmatter handling,
slug and path generation, mirror state persistence and change scanning.
"""

from .errors import (
    FileMapperError,
    FilesystemError,
    ConfigError,
    FrontmatterError,
)
from .file_scanner import detect_push_candidates, iter_markdown_files
from .frontmatter_handler import FrontmatterHandler
from .mirror_state import InMemoryStateStore, MirrorState, MirrorStateStore
from .page_state_reader import read_page_states
from .path_generator import PathGenerator
from .path_safety import remove_empty_parents, resolve_within
from .slugify import slugify

__all__ = [
    'FileMapperError',
    'FilesystemError',
    'ConfigError',
    'FrontmatterError',
    'detect_push_candidates',
    'iter_markdown_files',
    'FrontmatterHandler',
    'InMemoryStateStore',
    'MirrorState',
    'MirrorStateStore',
    'read_page_states',
    'PathGenerator',
    'remove_empty_parents',
    'resolve_within',
    'slugify',
]
