"""Content conversion between Confluence storage format and Markdown."""

from .link_converter import PageLink, PageLookup
from .markdown_converter import MarkdownConverter

__all__ = ['MarkdownConverter', 'PageLink', 'PageLookup']
