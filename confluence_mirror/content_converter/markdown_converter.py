"""Markdown converter using markdownify and Pandoc.

Converts between Confluence storage format (XHTML) and Markdown. markdownify
handles storage→Markdown (clean pipe tables), Pandoc handles Markdown→HTML.
Both directions return the converted text with a list of warnings about
content that could not be represented faithfully.

Given a PageLookup, links between mirrored pages are translated too:
``[text](other.md)`` becomes an ``<ac:link>`` to the page's title on push,
and the reverse on pull.
"""

import logging
import re
import shutil
import subprocess
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, CData
from markdownify import MarkdownConverter as BaseMarkdownConverter

from ..confluence_client.errors import ConversionError
from .link_converter import PageLookup

logger = logging.getLogger(__name__)

# Relative links to local Markdown files, e.g. [Setup](../guide/setup.md#install)
LOCAL_MD_LINK_PATTERN = re.compile(r'\[[^\]]*\]\((?!https?://)([^)#\s]+\.md)(?:#[^)]*)?\)')

PANDOC_TIMEOUT_SECONDS = 10


class _StorageMarkdownConverter(BaseMarkdownConverter):
    """markdownify converter with Confluence-friendly defaults."""

    def __init__(self, **options):
        options.setdefault('heading_style', 'atx')
        options.setdefault('bullets', '-')
        options.setdefault('strong_em_symbol', '*')
        super().__init__(**options)

    @staticmethod
    def _in_table_cell(parent_tags) -> bool:
        return 'td' in parent_tags or 'th' in parent_tags

    def convert_p(self, el, text, parent_tags):
        """Keep paragraph breaks inside table cells as <br>."""
        text = text.strip()
        if not text:
            return ''
        if self._in_table_cell(parent_tags):
            return text + '\n'
        if '_inline' in parent_tags:
            return ' ' + text + ' '
        return '\n\n%s\n\n' % text

    def _convert_cell(self, el, text):
        colspan = 1
        if 'colspan' in el.attrs and el['colspan'].isdigit():
            colspan = max(1, min(1000, int(el['colspan'])))
        cell_text = re.sub(r'(<br>)+', '<br>', text.strip().replace('\n', '<br>'))
        while cell_text.endswith('<br>'):
            cell_text = cell_text.removesuffix('<br>')
        return ' ' + cell_text + ' |' * colspan

    def convert_td(self, el, text, parent_tags):
        return self._convert_cell(el, text)

    def convert_th(self, el, text, parent_tags):
        return self._convert_cell(el, text)


class MarkdownConverter:
    """Converts between Confluence storage XHTML and Markdown.

    Pandoc is only needed for the Markdown→storage direction, so it is looked
    up lazily on first push rather than when the converter is created.
    """

    def to_local_format(
        self,
        storage: str,
        source_path: str = "",
        lookup: Optional[PageLookup] = None,
    ) -> Tuple[str, List[str]]:
        """Convert a storage-format body to Markdown.

        Args:
            storage: Confluence storage format XHTML
            source_path: Mirror-relative path the Markdown will be written to
            lookup: Mirrored pages; page links to them become relative links

        Returns:
            Tuple of (markdown, warnings)

        Raises:
            ConversionError: If markdownify fails
        """
        if not storage:
            return "", []

        warnings = self._macro_warnings(storage)
        if lookup is not None:
            storage = self._page_links_to_markdown(storage, source_path, lookup)
        try:
            markdown = _StorageMarkdownConverter().convert(storage)
        except Exception as e:
            raise ConversionError(f"Markdownify conversion failed: {e}") from e

        return markdown.strip() + "\n", warnings

    def to_remote_format(
        self,
        markdown: str,
        source_path: str = "",
        lookup: Optional[PageLookup] = None,
    ) -> Tuple[str, List[str]]:
        """Convert Markdown to storage-format XHTML using Pandoc.

        Args:
            markdown: Markdown body without frontmatter
            source_path: Mirror-relative path of the Markdown file
            lookup: Mirrored pages; relative links to them become page links

        Returns:
            Tuple of (xhtml, warnings)

        Raises:
            ConversionError: If Pandoc is missing, fails or times out
        """
        if not markdown.strip():
            return "", []

        warnings = [
            f"Local link '{target}' will not resolve in Confluence"
            for target in LOCAL_MD_LINK_PATTERN.findall(markdown)
            if lookup is None or lookup.resolve_path(target, source_path) is None
        ]

        if shutil.which("pandoc") is None:
            raise ConversionError(
                "Pandoc not found. Install: brew install pandoc (macOS) or "
                "apt-get install pandoc (Linux) or download from "
                "https://pandoc.org/installing.html"
            )

        try:
            result = subprocess.run(
                ["pandoc", "-f", "markdown", "-t", "html"],
                input=markdown,
                text=True,
                capture_output=True,
                check=True,
                timeout=PANDOC_TIMEOUT_SECONDS,
            )
        except subprocess.CalledProcessError as e:
            raise ConversionError(f"Pandoc conversion failed: {e.stderr}") from e
        except subprocess.TimeoutExpired as e:
            raise ConversionError(
                f"Pandoc conversion timed out (>{PANDOC_TIMEOUT_SECONDS}s)"
            ) from e

        xhtml = result.stdout
        if lookup:
            xhtml = self._local_links_to_storage(xhtml, source_path, lookup)
        return xhtml, warnings

    @staticmethod
    def _local_links_to_storage(xhtml: str, source_path: str, lookup: PageLookup) -> str:
        """Replace <a href="x.md"> with <ac:link> for pages in lookup."""
        soup = BeautifulSoup(xhtml, "html.parser")
        replaced = 0
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            page = lookup.resolve_path(href, source_path)
            if page is None:
                continue

            link = soup.new_tag("ac:link")
            fragment = href.partition('#')[2]
            if fragment:
                link["ac:anchor"] = fragment
            link.append(soup.new_tag("ri:page", attrs={"ri:content-title": page.title}))
            body = soup.new_tag("ac:plain-text-link-body")
            body.append(CData(anchor.get_text()))
            link.append(body)
            anchor.replace_with(link)
            replaced += 1

        if not replaced:
            return xhtml
        logger.debug(f"Converted {replaced} local link(s) in {source_path}")
        return str(soup)

    @staticmethod
    def _page_links_to_markdown(storage: str, source_path: str, lookup: PageLookup) -> str:
        """Replace <ac:link><ri:page/></ac:link> with relative <a> links.

        Links to pages outside the mirror keep only their text.
        """
        soup = BeautifulSoup(storage, "html.parser")
        for link in soup.find_all("ac:link"):
            page = link.find("ri:page")
            title = page.get("ri:content-title") if page is not None else None
            if not title:
                continue

            body = link.find(["ac:plain-text-link-body", "ac:link-body"])
            text = body.get_text() if body is not None else title
            href = lookup.relative_path(title, source_path)
            if href is None:
                link.replace_with(text)
                continue

            anchor = link.get("ac:anchor")
            if anchor:
                href = f"{href}#{anchor}"
            replacement = soup.new_tag("a", href=href)
            replacement.string = text
            link.replace_with(replacement)
        return str(soup)

    @staticmethod
    def _macro_warnings(storage: str) -> List[str]:
        """List Confluence macros that have no Markdown representation."""
        soup = BeautifulSoup(storage, "html.parser")
        names = []
        for macro in soup.find_all("ac:structured-macro"):
            name = macro.get("ac:name", "unknown")
            if name not in names:
                names.append(name)
        return [f"Macro '{name}' is not supported and was dropped" for name in names]
