"""Fetch fully rendered web pages through a supervised headless browser."""

__version__ = "0.1.0"

from pagefetch.crawler import AsyncWebCrawler, crawl_sync
from pagefetch.pipeline import CrawlPipeline, Deadline
from pagefetch.browser_config import BrowserConfig, DEFAULT_CONFIG, FAST_CONFIG
from pagefetch.config import CrawlerSettings, settings
from pagefetch.models import (
    CrawlRequest,
    CrawlResult,
    FixedWait,
    JsConditionWait,
    Link,
    MarkdownResult,
    MediaItem,
    NetworkIdleWait,
    SelectorWait,
    WaitSpec,
    XPathWait,
)
from pagefetch.errors import (
    CrawlerError,
    CrawlFailed,
    CrawlTimeout,
    ErrorClass,
    EvaluationError,
    HttpStatusError,
    StartupFailure,
    TransientProtocolError,
    TransportFatalError,
)
from pagefetch.retry_policy import BackoffConfig, RetryDecision, decide

# Infrastructure
from pagefetch.infrastructure import (
    BrowserHandle,
    BrowserSupervisor,
    ContextHandle,
    SessionRegistry,
)
from pagefetch.wait_strategies import WaitOutcome, WaitResult, WaitStrategyEngine

# Content
from pagefetch.content import (
    BM25ContentFilter,
    DefaultContentProcessor,
    JsonCssExtractionStrategy,
    JsonXPathExtractionStrategy,
    MarkdownGenerator,
    PruningContentFilter,
)

__all__ = [
    # Core
    "AsyncWebCrawler",
    "crawl_sync",
    "CrawlPipeline",
    "Deadline",
    # Configuration
    "BrowserConfig",
    "DEFAULT_CONFIG",
    "FAST_CONFIG",
    "CrawlerSettings",
    "settings",
    # Models
    "CrawlRequest",
    "CrawlResult",
    "FixedWait",
    "JsConditionWait",
    "Link",
    "MarkdownResult",
    "MediaItem",
    "NetworkIdleWait",
    "SelectorWait",
    "WaitSpec",
    "XPathWait",
    # Errors
    "CrawlerError",
    "CrawlFailed",
    "CrawlTimeout",
    "ErrorClass",
    "EvaluationError",
    "HttpStatusError",
    "StartupFailure",
    "TransientProtocolError",
    "TransportFatalError",
    # Retry
    "BackoffConfig",
    "RetryDecision",
    "decide",
    # Infrastructure
    "BrowserHandle",
    "BrowserSupervisor",
    "ContextHandle",
    "SessionRegistry",
    "WaitOutcome",
    "WaitResult",
    "WaitStrategyEngine",
    # Content
    "BM25ContentFilter",
    "DefaultContentProcessor",
    "JsonCssExtractionStrategy",
    "JsonXPathExtractionStrategy",
    "MarkdownGenerator",
    "PruningContentFilter",
]
