"""
Markdown rendering.

Converts page HTML to markdown with html2text. Links are also rewritten into
numbered citations with a trailing references block, and an optional content
filter produces the "fit" variant from the pruned HTML.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin

import html2text

from ..models import MarkdownResult

logger = logging.getLogger(__name__)

# [text](url "title") with no nested brackets; images are skipped via the lookbehind
LINK_PATTERN = re.compile(r'(?<!!)\[([^\]]*)\]\(([^)\s]+)(?:\s+"([^"]*)")?\)')


def html_to_markdown(html: str) -> str:
    """Convert HTML to markdown without line wrapping."""
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.ignore_links = False
    converter.ignore_images = False
    converter.ignore_emphasis = False
    return converter.handle(html or "").strip()


def convert_links_to_citations(markdown: str, base_url: str = "") -> tuple[str, str]:
    """
    Replace inline links with numbered citations.

    Args:
        markdown: Markdown containing inline links
        base_url: Used to resolve relative link targets

    Returns:
        Tuple of (markdown with ⟨n⟩ markers, references block)
    """
    index_by_url: dict[str, int] = {}
    references: list[str] = []

    def replace(match: re.Match) -> str:
        text, url, title = match.group(1), match.group(2).strip("<>"), match.group(3)
        if base_url and not url.startswith(("http://", "https://", "mailto:", "#")):
            url = urljoin(base_url, url)

        if url not in index_by_url:
            index_by_url[url] = len(index_by_url) + 1
            description = title or text
            entry = f"⟨{index_by_url[url]}⟩ {url}"
            if description:
                entry += f": {description}"
            references.append(entry)

        return f"{text}⟨{index_by_url[url]}⟩"

    converted = LINK_PATTERN.sub(replace, markdown)

    if not references:
        return converted, ""
    return converted, "\n\n## References\n\n" + "\n".join(references) + "\n"


class MarkdownGenerator:
    """
    Produces a MarkdownResult from page HTML.

    Usage:
        generator = MarkdownGenerator(content_filter=PruningContentFilter())
        result = generator.generate(html, base_url=url)
    """

    def __init__(self, content_filter=None, citations: bool = True):
        """
        Initialize markdown generator.

        Args:
            content_filter: Object with ``filter_content(html) -> str``; when
                set, ``fit_markdown`` and ``fit_html`` are populated
            citations: Whether to build citation markdown and references
        """
        self.content_filter = content_filter
        self.citations = citations

    def generate(self, html: str, base_url: str = "", content_filter=None) -> MarkdownResult:
        """
        Render markdown for ``html``.

        Args:
            html: Page HTML
            base_url: Page URL for resolving relative links
            content_filter: Overrides the generator's filter for this call
        """
        raw_markdown = html_to_markdown(html)

        if self.citations:
            with_citations, references = convert_links_to_citations(raw_markdown, base_url)
        else:
            with_citations, references = raw_markdown, ""

        fit_markdown: Optional[str] = None
        fit_html: Optional[str] = None
        active_filter = content_filter if content_filter is not None else self.content_filter
        if active_filter is not None:
            fit_html = active_filter.filter_content(html)
            fit_markdown = html_to_markdown(fit_html)
            logger.debug(
                f"{type(active_filter).__name__} reduced markdown from "
                f"{len(raw_markdown)} to {len(fit_markdown)} chars"
            )

        return MarkdownResult(
            raw_markdown=raw_markdown,
            markdown_with_citations=with_citations,
            references_markdown=references,
            fit_markdown=fit_markdown,
            fit_html=fit_html,
        )
