"""
Async crawler facade.

Wires the browser supervisor, session registry, wait engine and content
processor into a single object:

    async with AsyncWebCrawler() as crawler:
        result = await crawler.arun("https://example.com")
        print(result.markdown.raw_markdown)
"""

import asyncio
import logging
from dataclasses import fields
from typing import Any, Optional, Sequence, Union

from .browser_config import BrowserConfig
from .config import CrawlerSettings
from .content.processor import ContentProcessor
from .errors import CrawlFailed
from .infrastructure.browser_supervisor import BrowserSupervisor
from .infrastructure.session_registry import SessionRegistry
from .models import CrawlRequest, CrawlResult, FixedWait
from .pipeline import CrawlPipeline
from .retry_policy import BackoffConfig
from .wait_strategies import WaitStrategyEngine

logger = logging.getLogger(__name__)

REQUEST_OPTIONS = frozenset(f.name for f in fields(CrawlRequest)) - {"url"}


class AsyncWebCrawler:
    """
    Fetches fully rendered pages through one supervised browser.

    Features:
    - One browser process shared by every request, relaunched on crash
    - Session keys for cookie/storage continuity across requests
    - Readiness waits, retries with backoff, markdown and extraction
    - Bounded concurrency for batches via ``arun_many``
    """

    def __init__(
        self,
        browser_config: BrowserConfig | None = None,
        settings: CrawlerSettings | None = None,
        processor: ContentProcessor | None = None,
        launcher=None,
    ):
        """
        Initialize crawler.

        Args:
            browser_config: Browser launch and context configuration
            settings: Request defaults, retry and concurrency settings
            processor: Content processor (default: DefaultContentProcessor)
            launcher: Optional browser launcher passed to the supervisor
        """
        self.browser_config = browser_config or BrowserConfig()
        self.settings = settings or CrawlerSettings.from_env()

        self.supervisor = BrowserSupervisor(self.browser_config, launcher=launcher)
        self.registry = SessionRegistry(self.browser_config)
        self.pipeline = CrawlPipeline(
            self.supervisor,
            self.registry,
            wait_engine=WaitStrategyEngine(poll_interval=self.settings.poll_interval),
            processor=processor,
            backoff=BackoffConfig(
                base_delay=self.settings.backoff_base_delay,
                max_delay=self.settings.backoff_max_delay,
                jitter_factor=self.settings.backoff_jitter,
            ),
        )

    async def __aenter__(self) -> "AsyncWebCrawler":
        # The browser is launched by the first request
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Launch the browser now instead of on the first request."""
        await self.supervisor.ensure_running()

    async def close(self) -> None:
        """Close all sessions and shut the browser down."""
        await self.registry.close_all()
        await self.supervisor.stop()

    def build_request(self, url: str, **options: Any) -> CrawlRequest:
        """
        Build a CrawlRequest, filling unset options from the crawler settings.

        Raises:
            TypeError: On an unknown option name
        """
        unknown = set(options) - REQUEST_OPTIONS
        if unknown:
            raise TypeError(f"Unknown crawl option(s): {', '.join(sorted(unknown))}")

        defaults = {
            "wait": FixedWait(self.settings.default_fixed_wait),
            "page_timeout": self.settings.page_timeout,
            "wait_timeout": self.settings.wait_timeout,
            "network_idle_window": self.settings.network_idle_window,
            "max_attempts": self.settings.max_attempts,
            "retry_404": self.settings.retry_404,
        }
        defaults.update({key: value for key, value in options.items() if value is not None})
        return CrawlRequest(url=url, **defaults)

    async def arun(self, url: str, **options: Any) -> CrawlResult:
        """
        Crawl a single URL.

        Args:
            url: Target URL
            **options: Any CrawlRequest field (session_key, wait, screenshot, ...)

        Returns:
            CrawlResult

        Raises:
            CrawlFailed: If every attempt failed or the error was not retryable
        """
        return await self.arun_request(self.build_request(url, **options))

    async def arun_request(self, request: CrawlRequest) -> CrawlResult:
        return await self.pipeline.run(request)

    async def arun_many(
        self,
        urls: Sequence[str],
        max_concurrency: Optional[int] = None,
        **options: Any,
    ) -> list[Union[CrawlResult, CrawlFailed]]:
        """
        Crawl several URLs concurrently.

        Args:
            urls: Target URLs
            max_concurrency: Pipelines allowed to run at once
                (default: settings.max_concurrency)
            **options: CrawlRequest fields applied to every URL

        Returns:
            One entry per URL, in input order: a CrawlResult, or the
            CrawlFailed raised for that URL
        """
        limit = max_concurrency or self.settings.max_concurrency
        semaphore = asyncio.Semaphore(limit)
        requests = [self.build_request(url, **options) for url in urls]

        async def run_one(request: CrawlRequest) -> Union[CrawlResult, CrawlFailed]:
            async with semaphore:
                try:
                    return await self.pipeline.run(request)
                except CrawlFailed as e:
                    return e

        logger.info(f"Crawling {len(requests)} URL(s) with concurrency {limit}")
        tasks = [asyncio.ensure_future(run_one(request)) for request in requests]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # An unclassified error aborts the batch; stop the other crawls first
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        failed = sum(1 for result in results if isinstance(result, CrawlFailed))
        if failed:
            logger.warning(f"{failed}/{len(results)} URL(s) failed")
        return list(results)


def crawl_sync(
    url: str,
    browser_config: BrowserConfig | None = None,
    settings: CrawlerSettings | None = None,
    **options: Any,
) -> CrawlResult:
    """
    Synchronous wrapper for crawling a single URL.

    Convenience function for non-async contexts.

    Args:
        url: URL to crawl
        browser_config: Browser configuration
        settings: Crawler settings
        **options: CrawlRequest fields

    Returns:
        CrawlResult
    """
    async def _crawl():
        async with AsyncWebCrawler(browser_config, settings) as crawler:
            return await crawler.arun(url, **options)

    return asyncio.run(_crawl())
