"""Tests for error classification."""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pagefetch.errors import (
    CrawlFailed,
    CrawlTimeout,
    ErrorClass,
    EvaluationError,
    HttpStatusError,
    TransientProtocolError,
    TransportFatalError,
    classify_exception,
    is_context_destroyed,
    is_evaluation_error,
    is_transport_fatal,
)


class TestClassifyException:
    """Test cases for classify_exception()."""

    def test_playwright_timeout(self):
        """Test Playwright timeouts map to CrawlTimeout."""
        error = classify_exception(PlaywrightTimeoutError("Timeout 30000ms exceeded."))
        assert isinstance(error, CrawlTimeout)
        assert error.error_class == ErrorClass.TIMEOUT

    def test_asyncio_timeout(self):
        """Test asyncio timeouts map to CrawlTimeout."""
        assert isinstance(classify_exception(asyncio.TimeoutError()), CrawlTimeout)

    @pytest.mark.parametrize("message", [
        "Target page, context or browser has been closed",
        "Browser has been closed",
        "Connection closed: pipe broken",
    ])
    def test_transport_fatal(self, message):
        """Test closed-connection errors map to TransportFatalError."""
        error = classify_exception(PlaywrightError(message))
        assert isinstance(error, TransportFatalError)
        assert error.error_class == ErrorClass.TRANSPORT_FATAL

    def test_os_connection_error(self):
        """Test OS-level connection loss is fatal."""
        assert isinstance(classify_exception(ConnectionResetError()), TransportFatalError)

    def test_script_error_outside_wait_is_transient(self):
        """Test script errors are not EvaluationError unless the wait engine says so."""
        error = classify_exception(PlaywrightError("TypeError: Cannot read properties of null"))
        assert isinstance(error, TransientProtocolError)

    def test_evaluation_error_passes_through(self):
        """Test an EvaluationError raised for a wait keeps its class."""
        error = EvaluationError("div[[ is not a valid selector")
        assert classify_exception(error) is error

    def test_other_playwright_error_is_transient(self):
        """Test unrecognised Playwright errors are treated as transient."""
        error = classify_exception(PlaywrightError("net::ERR_ABORTED at https://example.com"))
        assert isinstance(error, TransientProtocolError)

    def test_cause_preserved(self):
        """Test the original exception is chained."""
        original = PlaywrightError("net::ERR_ABORTED")
        assert classify_exception(original).__cause__ is original

    def test_classified_error_unchanged(self):
        """Test already-classified errors pass through."""
        error = HttpStatusError(503, "https://example.com")
        assert classify_exception(error) is error

    def test_programming_error_propagates(self):
        """Test unknown exceptions are re-raised, not classified."""
        with pytest.raises(KeyError):
            classify_exception(KeyError("missing"))


class TestPredicates:
    """Test cases for the error predicates."""

    def test_timeout_is_not_fatal(self):
        """Test a Playwright timeout never counts as a dead connection."""
        assert not is_transport_fatal(PlaywrightTimeoutError("Target closed"))

    def test_fatal_is_not_evaluation(self):
        """Test fatal errors are never reported as evaluation errors."""
        assert not is_evaluation_error(PlaywrightError("Target closed; SyntaxError"))

    def test_context_destroyed(self):
        """Test navigation-torn contexts are recognised."""
        assert is_context_destroyed(
            PlaywrightError("Execution context was destroyed, most likely because of a navigation")
        )
        assert not is_context_destroyed(PlaywrightError("net::ERR_ABORTED"))


class TestCrawlFailed:
    """Test cases for CrawlFailed."""

    def test_carries_last_error_and_attempts(self):
        """Test the wrapper exposes the classified cause."""
        last = HttpStatusError(404, "https://example.com/missing")
        failed = CrawlFailed("https://example.com/missing", last, attempts=1)

        assert failed.last_error is last
        assert failed.attempts == 1
        assert failed.error_class == ErrorClass.HTTP_STATUS
        assert "HTTP 404" in str(failed)
