"""
Retry policy for the crawl attempt loop.

``decide`` is a pure function of (classified error, attempt number,
configuration) so the whole retry table can be unit-tested without a browser.

    Class              Retried?                              Browser restarted?
    Timeout            yes, up to max attempts               no
    TransientProtocol  yes                                   no
    TransportFatal     yes                                   yes, before retry
    HttpStatus(code)   code >= 500, or 404 with retry_404    no
    Evaluation         no                                    no
    Startup            no                                    no
"""

import random
from dataclasses import dataclass

from .errors import CrawlerError, ErrorClass, HttpStatusError


@dataclass(frozen=True)
class RetryDecision:
    """What the attempt loop should do after a failed attempt."""

    retry: bool
    restart_browser: bool
    reason: str


def is_retryable_status(status_code: int, retry_404: bool = False) -> bool:
    """Whether a non-2xx navigation status is worth another attempt."""
    if status_code >= 500:
        return True
    return status_code == 404 and retry_404


def decide(
    error: CrawlerError,
    attempt: int,
    max_attempts: int,
    retry_404: bool = False,
) -> RetryDecision:
    """
    Decide whether to retry after a failed attempt.

    Args:
        error: Classified error from the attempt
        attempt: 1-based number of the attempt that just failed
        max_attempts: Maximum number of attempts for the request
        retry_404: Whether HTTP 404 responses are retried

    Returns:
        RetryDecision
    """
    exhausted = attempt >= max_attempts
    error_class = error.error_class

    if error_class in (ErrorClass.TIMEOUT, ErrorClass.TRANSIENT_PROTOCOL):
        retryable = True
        restart = False
    elif error_class == ErrorClass.TRANSPORT_FATAL:
        retryable = True
        restart = True
    elif error_class == ErrorClass.HTTP_STATUS:
        status_code = error.status_code if isinstance(error, HttpStatusError) else 0
        retryable = is_retryable_status(status_code, retry_404)
        restart = False
    else:
        # Evaluation and startup failures will not improve with another attempt
        label = error_class.value if error_class else "unclassified error"
        return RetryDecision(retry=False, restart_browser=False, reason=f"{label} is not retryable")

    if not retryable:
        return RetryDecision(retry=False, restart_browser=False, reason=f"{error} is not retryable")

    if exhausted:
        return RetryDecision(
            retry=False,
            restart_browser=False,
            reason=f"retry budget exhausted after {attempt}/{max_attempts} attempts",
        )

    return RetryDecision(
        retry=True,
        restart_browser=restart,
        reason=f"{error_class.value} on attempt {attempt}/{max_attempts}",
    )


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for delay between attempts.

    - base_delay: Delay after the first failed attempt, in seconds
    - max_delay: Cap on any single delay
    - exponential_base: Growth factor per attempt
    - jitter_factor: Random variation (+/- fraction of the delay)
    """

    base_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")


def calculate_backoff(
    attempt: int,
    config: BackoffConfig | None = None,
    *,
    add_jitter: bool = True,
) -> float:
    """Delay before the next attempt.

    delay = min(base_delay * exponential_base ** (attempt - 1), max_delay),
    then +/- jitter_factor, never above max_delay.

    Args:
        attempt: 1-based number of the attempt that just failed
        config: Backoff configuration (default: BackoffConfig())
        add_jitter: Whether to add random jitter

    Returns:
        Delay in seconds
    """
    config = config or BackoffConfig()
    exponent = max(attempt - 1, 0)
    delay = min(config.base_delay * (config.exponential_base ** exponent), config.max_delay)

    if add_jitter and delay > 0 and config.jitter_factor > 0:
        jitter = delay * config.jitter_factor
        delay += random.uniform(-jitter, jitter)

    return max(0.0, min(delay, config.max_delay))
