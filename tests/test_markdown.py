"""Tests for markdown generation and the content processor."""

import json

import pytest

from pagefetch.content.extraction import JsonCssExtractionStrategy
from pagefetch.content.filters import PruningContentFilter
from pagefetch.content.markdown import (
    MarkdownGenerator,
    convert_links_to_citations,
    html_to_markdown,
)
from pagefetch.content.processor import ContentProcessor, DefaultContentProcessor
from pagefetch.models import CrawlRequest

LONG_TEXT = (
    "Every browsing context belongs to exactly one browser generation and is "
    "discarded when the browser process is replaced by a new one."
)


class TestHtmlToMarkdown:
    """Test cases for html_to_markdown()."""

    def test_headings_and_links(self):
        """Test basic structure is converted."""
        markdown = html_to_markdown(
            '<h1>Title</h1><p>Hello <a href="https://example.com">world</a></p>'
        )
        assert "# Title" in markdown
        assert "[world](https://example.com)" in markdown

    def test_no_line_wrapping(self):
        """Test long paragraphs stay on one line."""
        markdown = html_to_markdown(f"<p>{LONG_TEXT} {LONG_TEXT}</p>")
        assert "\n" not in markdown

    def test_empty_html(self):
        """Test empty input yields empty markdown."""
        assert html_to_markdown("") == ""


class TestCitations:
    """Test cases for convert_links_to_citations()."""

    def test_numbered_and_deduplicated(self):
        """Test each distinct URL gets one number."""
        markdown = "See [docs](https://a.com/docs), [again](https://a.com/docs) and [home](/home)."
        converted, references = convert_links_to_citations(markdown, base_url="https://a.com/x")

        assert converted == "See docs⟨1⟩, again⟨1⟩ and home⟨2⟩."
        assert "⟨1⟩ https://a.com/docs: docs" in references
        assert "⟨2⟩ https://a.com/home: home" in references
        assert references.lstrip().startswith("## References")

    def test_title_used_as_description(self):
        """Test a link title is preferred over its text."""
        _, references = convert_links_to_citations('[x](https://a.com "The A site")')
        assert "⟨1⟩ https://a.com: The A site" in references

    def test_images_untouched(self):
        """Test image syntax is not turned into a citation."""
        converted, references = convert_links_to_citations("![logo](https://a.com/logo.png)")
        assert converted == "![logo](https://a.com/logo.png)"
        assert references == ""


class TestMarkdownGenerator:
    """Test cases for MarkdownGenerator."""

    def test_generate_without_filter(self):
        """Test raw and citation markdown are produced, fit markdown is not."""
        result = MarkdownGenerator().generate(
            '<p>Read <a href="https://example.com/a">this</a>.</p>',
            base_url="https://example.com",
        )

        assert "[this](https://example.com/a)" in result.raw_markdown
        assert "this⟨1⟩" in result.markdown_with_citations
        assert "https://example.com/a" in result.references_markdown
        assert result.fit_markdown is None
        assert result.fit_html is None

    def test_generate_with_filter(self):
        """Test a content filter produces fit markdown and HTML."""
        html = f"<body><nav>Menu</nav><article><p>{LONG_TEXT}</p></article></body>"
        result = MarkdownGenerator(content_filter=PruningContentFilter()).generate(html)

        assert "Menu" in result.raw_markdown
        assert "Menu" not in result.fit_markdown
        assert "browser generation" in result.fit_markdown
        assert "<article>" in result.fit_html

    def test_citations_disabled(self):
        """Test citations can be switched off."""
        result = MarkdownGenerator(citations=False).generate('<a href="https://a.com">a</a>')
        assert result.markdown_with_citations == result.raw_markdown
        assert result.references_markdown == ""


class TestDefaultContentProcessor:
    """Test cases for DefaultContentProcessor."""

    def test_satisfies_protocol(self):
        """Test the default processor matches the ContentProcessor protocol."""
        assert isinstance(DefaultContentProcessor(), ContentProcessor)

    @pytest.mark.asyncio
    async def test_markdown_only(self):
        """Test no extraction without a strategy."""
        markdown, extracted = await DefaultContentProcessor().process(
            "<h1>Hi</h1>", CrawlRequest(url="https://example.com")
        )
        assert "# Hi" in markdown.raw_markdown
        assert extracted is None

    @pytest.mark.asyncio
    async def test_request_filter_and_extraction(self):
        """Test the request's filter and strategy are applied."""
        html = (
            f"<body><nav>Menu</nav><article><p>{LONG_TEXT}</p></article>"
            '<div class="item"><span class="name">One</span></div></body>'
        )
        strategy = JsonCssExtractionStrategy({
            "baseSelector": ".item",
            "fields": [{"name": "name", "selector": ".name", "type": "text"}],
        })
        request = CrawlRequest(
            url="https://example.com",
            content_filter=PruningContentFilter(),
            extraction_strategy=strategy,
        )

        markdown, extracted = await DefaultContentProcessor().process(html, request)

        assert markdown.fit_markdown is not None
        assert "Menu" not in markdown.fit_markdown
        assert json.loads(extracted) == [{"name": "One"}]
