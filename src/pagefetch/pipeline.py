"""
Crawl pipeline.

Runs the attempt sequence for one request and retries it according to
``retry_policy.decide``:

    ensure browser -> acquire context -> open page -> navigate
        -> wait -> read HTML, media, links -> screenshot

Every step of an attempt shares one deadline (the request's page timeout).
Content processing runs once, after a successful attempt, and is not retried.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional

from .content.processor import ContentProcessor, DefaultContentProcessor
from .errors import (
    CrawlerError,
    CrawlFailed,
    CrawlTimeout,
    EvaluationError,
    HttpStatusError,
    StartupFailure,
    TransportFatalError,
    classify_exception,
)
from .infrastructure.browser_supervisor import BrowserHandle, BrowserSupervisor
from .infrastructure.session_registry import SessionRegistry
from .models import CrawlRequest, CrawlResult, PageSnapshot
from .page_extraction import PageRecorder, capture_screenshot, extract_media_and_links
from .retry_policy import BackoffConfig, calculate_backoff, decide
from .wait_strategies import WaitOutcome, WaitStrategyEngine

logger = logging.getLogger(__name__)


class Deadline:
    """Monotonic deadline shared by every step of one attempt."""

    def __init__(self, seconds: float):
        self.total = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    def remaining_ms(self) -> float:
        return self.remaining() * 1000

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    async def run(self, awaitable: Awaitable, what: str) -> Any:
        """
        Await ``awaitable`` within the remaining time.

        Raises:
            CrawlTimeout: If the deadline passes first
        """
        remaining = self.remaining()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CrawlTimeout(f"Page timeout of {self.total:.1f}s exceeded before {what}")
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError as e:
            raise CrawlTimeout(f"Page timeout of {self.total:.1f}s exceeded while {what}") from e


class CrawlPipeline:
    """
    Acquire-session, navigate, wait, extract; with retries.

    Usage:
        pipeline = CrawlPipeline(supervisor, registry)
        result = await pipeline.run(CrawlRequest(url="https://example.com"))

    The registry is subscribed to the supervisor's restarts so that every
    relaunch wipes it before the next attempt proceeds.
    """

    def __init__(
        self,
        supervisor: BrowserSupervisor,
        registry: SessionRegistry,
        wait_engine: WaitStrategyEngine | None = None,
        processor: ContentProcessor | None = None,
        backoff: BackoffConfig | None = None,
    ):
        """
        Initialize crawl pipeline.

        Args:
            supervisor: Owner of the browser process
            registry: Session-to-context mapping
            wait_engine: Readiness wait runner
            processor: Markdown/extraction step for successful attempts
            backoff: Delay configuration between attempts
        """
        self.supervisor = supervisor
        self.registry = registry
        self.wait_engine = wait_engine or WaitStrategyEngine()
        self.processor = processor or DefaultContentProcessor()
        self.backoff = backoff or BackoffConfig()

        supervisor.add_restart_listener(registry.invalidate_all)

    async def run(self, request: CrawlRequest) -> CrawlResult:
        """
        Crawl one URL.

        Args:
            request: The crawl request

        Returns:
            CrawlResult of the first successful attempt

        Raises:
            CrawlFailed: When the error is not retryable or attempts run out
        """
        attempt = 0

        while True:
            attempt += 1
            logger.info(f"Crawling {request.url} (attempt {attempt}/{request.max_attempts})")

            try:
                handle = await self.supervisor.ensure_running()
            except StartupFailure as e:
                logger.error(f"Browser startup failed: {e}")
                raise CrawlFailed(request.url, e, attempt) from e

            try:
                snapshot = await self._attempt(request, handle)
            except Exception as e:
                error = self._classify(e, handle)
                decision = decide(error, attempt, request.max_attempts, request.retry_404)

                if not decision.retry:
                    logger.error(
                        f"Giving up on {request.url} after {attempt} attempt(s): "
                        f"{type(error).__name__}: {error} ({decision.reason})"
                    )
                    raise CrawlFailed(request.url, error, attempt) from error

                logger.warning(
                    f"Attempt {attempt} for {request.url} failed with "
                    f"{type(error).__name__}: {error}; retrying"
                )

                if decision.restart_browser:
                    try:
                        await self.supervisor.restart(handle)
                    except StartupFailure as startup_error:
                        logger.error(f"Browser relaunch failed: {startup_error}")
                        raise CrawlFailed(request.url, startup_error, attempt) from startup_error

                delay = calculate_backoff(attempt, self.backoff)
                if delay > 0:
                    logger.debug(f"Backing off {delay:.2f}s before attempt {attempt + 1}")
                    await asyncio.sleep(delay)
                continue

            markdown, extracted = await self.processor.process(snapshot.html, request)

            logger.info(
                f"Crawled {request.url} (status {snapshot.status_code}, "
                f"{len(snapshot.html)} bytes, attempt {attempt})"
            )
            return CrawlResult(
                url=request.url,
                html=snapshot.html,
                markdown=markdown,
                extracted_content=extracted,
                media=snapshot.media,
                links=snapshot.links,
                screenshot=snapshot.screenshot,
                status_code=snapshot.status_code,
                final_url=snapshot.final_url,
                attempts=attempt,
                network_requests=snapshot.network_requests,
                console_messages=snapshot.console_messages,
            )

    def _classify(self, exc: Exception, handle: BrowserHandle) -> CrawlerError:
        error = classify_exception(exc)
        if not isinstance(error, TransportFatalError) and not handle.is_alive:
            # Whatever surfaced first, the browser is gone
            escalated = TransportFatalError(
                f"Browser generation {handle.generation} died during attempt: {error}"
            )
            escalated.__cause__ = error
            return escalated
        return error

    async def _attempt(self, request: CrawlRequest, handle: BrowserHandle) -> PageSnapshot:
        deadline = Deadline(request.page_timeout)

        context_handle = await deadline.run(
            self.registry.get_or_create(request.session_key, handle),
            "acquiring a browsing context",
        )

        page = None
        recorder = PageRecorder(
            capture_network=request.capture_network_requests,
            capture_console=request.capture_console_messages,
        )
        try:
            page = await deadline.run(context_handle.context.new_page(), "opening a page")
            recorder.attach(page)

            response = await deadline.run(
                page.goto(
                    request.url,
                    wait_until=self.supervisor.config.wait_until,
                    timeout=deadline.remaining_ms(),
                ),
                f"navigating to {request.url}",
            )
            status_code = self._check_status(response, request.url)

            wait_result = await self.wait_engine.wait(
                page,
                request.wait,
                page_timeout=deadline.remaining(),
                default_timeout=request.wait_timeout,
                default_idle_window=request.network_idle_window,
            )
            if wait_result.outcome == WaitOutcome.TIMED_OUT:
                raise CrawlTimeout(wait_result.detail)
            if wait_result.outcome == WaitOutcome.EVALUATION_ERROR:
                raise EvaluationError(wait_result.detail)

            html = await deadline.run(page.content(), "reading page content")
            media, links = await deadline.run(
                extract_media_and_links(page), "extracting media and links"
            )

            screenshot: Optional[bytes] = None
            if request.screenshot:
                screenshot = await deadline.run(capture_screenshot(page), "taking a screenshot")

            context_handle.record_use()
            return PageSnapshot(
                url=request.url,
                html=html,
                status_code=status_code,
                final_url=page.url,
                media=media,
                links=links,
                screenshot=screenshot,
                network_requests=recorder.network_requests,
                console_messages=recorder.console_messages,
            )
        finally:
            if page is not None:
                recorder.detach(page)
                await self._close_page(page)
            await self.registry.release(context_handle)

    @staticmethod
    def _check_status(response: Any, url: str) -> Optional[int]:
        # file: and data: navigations, and same-document navigations, have no response
        if response is None:
            return None
        status_code = response.status
        if not status_code:
            # Local schemes can report status 0
            return None
        if not 200 <= status_code < 300:
            raise HttpStatusError(status_code, url)
        return status_code

    @staticmethod
    async def _close_page(page: Any) -> None:
        try:
            await page.close()
        except Exception as e:
            logger.debug(f"Error closing page: {e}")
