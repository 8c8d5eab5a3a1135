"""Title to filename slug conversion."""

import re

_INVALID_CHARS = re.compile(r'[^\w\s-]')
_WHITESPACE = re.compile(r'\s+')
_HYPHENS = re.compile(r'-+')


def slugify(text: str) -> str:
    """Convert a title into a lowercase, hyphen-separated slug.

    Lossy: case is folded and punctuation dropped, so distinct titles
    may share a slug. Callers resolve such collisions.

    Example:
        >>> slugify("  Getting Started: API v2!  ")
        'getting-started-api-v2'
    """
    slug = text.lower().strip()
    slug = _INVALID_CHARS.sub('', slug)
    slug = _WHITESPACE.sub('-', slug)
    slug = _HYPHENS.sub('-', slug)
    return slug.strip('-')
