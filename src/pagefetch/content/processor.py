"""Turns the raw HTML of a successful attempt into markdown and extracted data."""

import json
import logging
from typing import Optional, Protocol, Tuple, runtime_checkable

from ..models import CrawlRequest, MarkdownResult
from .markdown import MarkdownGenerator

logger = logging.getLogger(__name__)


@runtime_checkable
class ContentProcessor(Protocol):
    """Post-processing step run once per successful crawl."""

    async def process(
        self, html: str, request: CrawlRequest
    ) -> Tuple[MarkdownResult, Optional[str]]:
        ...


class DefaultContentProcessor:
    """
    Markdown generation plus optional schema extraction.

    The request's ``content_filter`` overrides the processor's default filter;
    its ``extraction_strategy`` (if any) runs over the same HTML and the
    records are returned as a JSON string.
    """

    def __init__(self, markdown_generator: MarkdownGenerator | None = None):
        self.markdown_generator = markdown_generator or MarkdownGenerator()

    async def process(
        self, html: str, request: CrawlRequest
    ) -> Tuple[MarkdownResult, Optional[str]]:
        markdown = self.markdown_generator.generate(
            html,
            base_url=request.url,
            content_filter=request.content_filter,
        )

        extracted = None
        if request.extraction_strategy is not None:
            records = request.extraction_strategy.extract(html)
            extracted = json.dumps(records, ensure_ascii=False)
            logger.info(f"Extracted {len(records)} record(s) from {request.url}")

        return markdown, extracted
