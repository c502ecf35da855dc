"""
Crawl error taxonomy.

Every failure inside an attempt is mapped onto one of the classes below before
the retry policy sees it. ``classify_exception`` does that mapping for errors
raised by Playwright and the asyncio runtime.
"""

import asyncio
from enum import Enum
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


class ErrorClass(Enum):
    """Classification used by the retry policy."""
    STARTUP = "startup"
    TIMEOUT = "timeout"
    TRANSIENT_PROTOCOL = "transient_protocol"
    TRANSPORT_FATAL = "transport_fatal"
    HTTP_STATUS = "http_status"
    EVALUATION = "evaluation"


class CrawlerError(Exception):
    """Base class for classified crawl errors."""

    error_class: Optional[ErrorClass] = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class StartupFailure(CrawlerError):
    """No usable browser executable, or the browser process failed to launch."""
    error_class = ErrorClass.STARTUP


class CrawlTimeout(CrawlerError):
    """Navigation, a wait strategy or page extraction exceeded its bound."""
    error_class = ErrorClass.TIMEOUT


class TransientProtocolError(CrawlerError):
    """A response was dropped or cancelled on an otherwise healthy connection."""
    error_class = ErrorClass.TRANSIENT_PROTOCOL


class TransportFatalError(CrawlerError):
    """The connection to the browser process is gone."""
    error_class = ErrorClass.TRANSPORT_FATAL


class HttpStatusError(CrawlerError):
    """Navigation completed with a non-2xx status."""
    error_class = ErrorClass.HTTP_STATUS

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"HTTP {status_code} for {url}" if url else f"HTTP {status_code}")
        self.status_code = status_code
        self.url = url


class EvaluationError(CrawlerError):
    """The page rejected a selector, XPath or JavaScript expression."""
    error_class = ErrorClass.EVALUATION


class CrawlFailed(CrawlerError):
    """
    Raised to callers when a request could not be completed.

    Carries the last classified error and the number of attempts made.
    """

    def __init__(self, url: str, last_error: CrawlerError, attempts: int):
        super().__init__(
            f"Crawl of {url} failed after {attempts} attempt(s): "
            f"{type(last_error).__name__}: {last_error}"
        )
        self.url = url
        self.last_error = last_error
        self.attempts = attempts

    @property
    def error_class(self) -> Optional[ErrorClass]:
        return self.last_error.error_class


# Substrings Playwright uses when the browser, context or pipe has gone away
FATAL_MARKERS = (
    "target page, context or browser has been closed",
    "browser has been closed",
    "browser has disconnected",
    "browser closed",
    "target closed",
    "connection closed",
    "connection refused",
    "pipe closed",
    "broken pipe",
    "connection reset by peer",
    "channel closed",
    "websocket error",
)

# Substrings for selector / expression syntax rejected by the page
EVALUATION_MARKERS = (
    "is not a valid selector",
    "not a valid xpath expression",
    "unexpected token",
    "syntaxerror",
    "invalid selector",
    "unknown engine",
    "failed to execute 'evaluate' on 'document'",
    "failed to execute 'queryselector",
    # exceptions thrown by the evaluated script itself
    "referenceerror",
    "typeerror",
    "rangeerror",
)

# Page-side evaluation context was torn down by a navigation
CONTEXT_DESTROYED_MARKERS = (
    "execution context was destroyed",
    "cannot find context with specified id",
    "frame was detached",
)


def _message(exc: BaseException) -> str:
    return str(getattr(exc, "message", None) or exc).lower()


def is_transport_fatal(exc: BaseException) -> bool:
    """Whether an exception means the browser connection is gone."""
    if isinstance(exc, TransportFatalError):
        return True
    if isinstance(exc, (ConnectionError, EOFError)):
        return True
    if isinstance(exc, PlaywrightError) and not isinstance(exc, PlaywrightTimeoutError):
        message = _message(exc)
        return any(marker in message for marker in FATAL_MARKERS)
    return False


def is_evaluation_error(exc: BaseException) -> bool:
    """Whether an exception is the page rejecting a selector or expression."""
    if isinstance(exc, EvaluationError):
        return True
    if isinstance(exc, PlaywrightError) and not isinstance(exc, PlaywrightTimeoutError):
        if is_transport_fatal(exc):
            return False
        message = _message(exc)
        return any(marker in message for marker in EVALUATION_MARKERS)
    return False


def is_context_destroyed(exc: BaseException) -> bool:
    """Whether an evaluation failed only because the page navigated underneath it."""
    if isinstance(exc, PlaywrightError) and not isinstance(exc, PlaywrightTimeoutError):
        message = _message(exc)
        return any(marker in message for marker in CONTEXT_DESTROYED_MARKERS)
    return False


def classify_exception(exc: BaseException) -> CrawlerError:
    """
    Map an exception raised during an attempt onto the crawl error taxonomy.

    Args:
        exc: Exception raised by Playwright, asyncio or the pipeline itself

    Returns:
        A CrawlerError subclass instance. Already-classified errors are
        returned unchanged.

    Raises:
        The original exception if it is not a browser/transport failure
        (programming errors are never turned into retryable failures).
    """
    if isinstance(exc, CrawlerError):
        return exc

    if isinstance(exc, (PlaywrightTimeoutError, asyncio.TimeoutError)):
        classified: CrawlerError = CrawlTimeout(str(exc) or "operation timed out")
    elif is_transport_fatal(exc):
        classified = TransportFatalError(str(exc) or type(exc).__name__)
    elif isinstance(exc, PlaywrightError):
        # net::ERR_ABORTED, interrupted navigations, script errors outside a
        # readiness wait (only the wait engine reports EvaluationError)
        classified = TransientProtocolError(str(exc))
    else:
        raise exc

    classified.__cause__ = exc
    return classified
