"""Content filtering, markdown rendering and structured extraction."""

from .extraction import (
    JsonCssExtractionStrategy,
    JsonExtractionStrategy,
    JsonXPathExtractionStrategy,
)
from .filters import BM25ContentFilter, PruningContentFilter
from .markdown import MarkdownGenerator, html_to_markdown
from .processor import ContentProcessor, DefaultContentProcessor

__all__ = [
    "BM25ContentFilter",
    "ContentProcessor",
    "DefaultContentProcessor",
    "JsonCssExtractionStrategy",
    "JsonExtractionStrategy",
    "JsonXPathExtractionStrategy",
    "MarkdownGenerator",
    "PruningContentFilter",
    "html_to_markdown",
]
