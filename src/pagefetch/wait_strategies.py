"""
Post-navigation readiness waits.

Each WaitSpec variant suspends the attempt until its condition holds or its
timeout elapses, never longer. The effective timeout is always the tighter of
the strategy's own timeout and the request's remaining page time.

    Waiting -> SATISFIED | TIMED_OUT | EVALUATION_ERROR

Errors that mean the browser connection is gone are not outcomes; they are
re-raised for the pipeline to classify.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import is_context_destroyed, is_evaluation_error, is_transport_fatal
from .models import (
    FixedWait,
    JsConditionWait,
    NetworkIdleWait,
    SelectorWait,
    WaitSpec,
    XPathWait,
)

logger = logging.getLogger(__name__)


class WaitOutcome(Enum):
    """Result of a wait strategy."""
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"
    EVALUATION_ERROR = "evaluation_error"


@dataclass
class WaitResult:
    """Outcome plus timing for one wait."""
    outcome: WaitOutcome
    elapsed: float
    timeout: float
    detail: str = ""

    @property
    def satisfied(self) -> bool:
        return self.outcome == WaitOutcome.SATISFIED


class _EvaluationRejected(Exception):
    """Internal: the page rejected the selector or expression."""


class WaitStrategyEngine:
    """
    Runs a WaitSpec against a live page.

    Selector, XPath and JavaScript conditions are polled; network idleness is
    tracked from request events observed after the wait starts.
    """

    def __init__(self, poll_interval: float = 0.1):
        """
        Initialize wait engine.

        Args:
            poll_interval: Seconds between condition probes
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.poll_interval = poll_interval

    def effective_timeout(
        self,
        spec: WaitSpec,
        page_timeout: float,
        default_timeout: float,
    ) -> float:
        """The tighter of the strategy's timeout and the page timeout."""
        return max(0.0, min(spec.resolve_timeout(default_timeout), page_timeout))

    async def wait(
        self,
        page: Any,
        spec: WaitSpec,
        page_timeout: float,
        default_timeout: float = 10.0,
        default_idle_window: float = 0.5,
    ) -> WaitResult:
        """
        Suspend until ``spec`` is satisfied or times out.

        Args:
            page: Playwright page (or compatible object)
            spec: Wait strategy
            page_timeout: Remaining time for the whole page, in seconds
            default_timeout: Timeout for strategies that do not carry one
            default_idle_window: Idle window for NetworkIdleWait without one

        Returns:
            WaitResult
        """
        timeout = self.effective_timeout(spec, page_timeout, default_timeout)
        start = time.monotonic()

        if isinstance(spec, FixedWait):
            # A fixed delay is not a condition; clamp it to the page deadline
            await asyncio.sleep(timeout)
            return WaitResult(WaitOutcome.SATISFIED, time.monotonic() - start, timeout)

        if isinstance(spec, SelectorWait):
            probe = self._selector_probe(page, spec.css)
            description = f"selector {spec.css!r}"
            condition = self._poll(probe)
        elif isinstance(spec, XPathWait):
            probe = self._selector_probe(page, f"xpath={spec.expression}")
            description = f"xpath {spec.expression!r}"
            condition = self._poll(probe)
        elif isinstance(spec, JsConditionWait):
            probe = self._js_probe(page, spec.expression)
            description = "js condition"
            condition = self._poll(probe)
        elif isinstance(spec, NetworkIdleWait):
            idle_window = spec.idle_window if spec.idle_window is not None else default_idle_window
            description = f"network idle ({idle_window:.3f}s window)"
            condition = self._network_idle(page, idle_window)
        else:
            raise TypeError(f"Unsupported wait strategy: {spec!r}")

        try:
            await asyncio.wait_for(condition, timeout=timeout)
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - start
            logger.info(f"Timed out after {elapsed:.2f}s waiting for {description}")
            return WaitResult(WaitOutcome.TIMED_OUT, elapsed, timeout, f"timed out waiting for {description}")
        except _EvaluationRejected as e:
            elapsed = time.monotonic() - start
            logger.warning(f"Page rejected {description}: {e}")
            return WaitResult(WaitOutcome.EVALUATION_ERROR, elapsed, timeout, str(e))

        elapsed = time.monotonic() - start
        logger.debug(f"Satisfied {description} after {elapsed:.2f}s")
        return WaitResult(WaitOutcome.SATISFIED, elapsed, timeout, description)

    async def _poll(self, probe) -> None:
        while True:
            if await probe():
                return
            await asyncio.sleep(self.poll_interval)

    def _selector_probe(self, page: Any, selector: str):
        async def probe() -> bool:
            try:
                return await page.query_selector(selector) is not None
            except Exception as e:
                return self._handle_probe_error(e)
        return probe

    def _js_probe(self, page: Any, expression: str):
        async def probe() -> bool:
            try:
                return bool(await page.evaluate(expression))
            except Exception as e:
                return self._handle_script_error(e)
        return probe

    def _handle_probe_error(self, exc: Exception) -> bool:
        if is_context_destroyed(exc):
            # Page navigated mid-probe; try again on the new document
            return False
        if is_evaluation_error(exc):
            raise _EvaluationRejected(str(exc)) from exc
        raise exc

    def _handle_script_error(self, exc: Exception) -> bool:
        if is_context_destroyed(exc):
            return False
        if (
            isinstance(exc, PlaywrightError)
            and not isinstance(exc, PlaywrightTimeoutError)
            and not is_transport_fatal(exc)
        ):
            # Whatever the script threw, the page is alive and rejected it
            raise _EvaluationRejected(str(exc)) from exc
        raise exc

    async def _network_idle(self, page: Any, idle_window: float) -> None:
        """
        Resolve once nothing is in flight for ``idle_window`` seconds.

        Known limitation: requests already in flight before this wait starts
        are not observed and do not delay idleness.
        """
        in_flight: set = set()
        last_activity = time.monotonic()

        def on_request(request) -> None:
            nonlocal last_activity
            in_flight.add(request)
            last_activity = time.monotonic()

        def on_done(request) -> None:
            nonlocal last_activity
            # Requests started before the wait are ignored entirely
            if request in in_flight:
                in_flight.discard(request)
                last_activity = time.monotonic()

        page.on("request", on_request)
        page.on("requestfinished", on_done)
        page.on("requestfailed", on_done)
        try:
            check_interval = min(self.poll_interval, idle_window / 4)
            while True:
                quiet_for = time.monotonic() - last_activity
                if not in_flight and quiet_for >= idle_window:
                    return
                await asyncio.sleep(check_interval)
        finally:
            for event, handler in (
                ("request", on_request),
                ("requestfinished", on_done),
                ("requestfailed", on_done),
            ):
                try:
                    page.remove_listener(event, handler)
                except Exception as e:
                    logger.debug(f"Could not remove {event} listener: {e}")
