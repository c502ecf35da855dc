"""Data models for crawl requests, wait strategies and results."""

import base64
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional, Union
from urllib.parse import urlparse


SUPPORTED_SCHEMES = ("http", "https", "file", "data")


# =============================================================================
# Wait strategies
# =============================================================================

def _check_timeout(timeout: Optional[float]) -> None:
    if timeout is not None and timeout <= 0:
        raise ValueError("timeout must be positive")


@dataclass(frozen=True)
class FixedWait:
    """Sleep for a fixed duration (seconds) after navigation."""

    duration: float

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError("duration must not be negative")

    def resolve_timeout(self, default: float) -> float:
        return self.duration

    def to_dict(self) -> dict:
        return {"type": "fixed", "duration": self.duration}


@dataclass(frozen=True)
class SelectorWait:
    """Wait until a CSS selector matches a node."""

    css: str
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.css:
            raise ValueError("css selector must not be empty")
        _check_timeout(self.timeout)

    def resolve_timeout(self, default: float) -> float:
        return self.timeout if self.timeout is not None else default

    def to_dict(self) -> dict:
        return {"type": "selector", "css": self.css, "timeout": self.timeout}


@dataclass(frozen=True)
class XPathWait:
    """Wait until an XPath expression matches a node."""

    expression: str
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.expression:
            raise ValueError("xpath expression must not be empty")
        _check_timeout(self.timeout)

    def resolve_timeout(self, default: float) -> float:
        return self.timeout if self.timeout is not None else default

    def to_dict(self) -> dict:
        return {"type": "xpath", "expression": self.expression, "timeout": self.timeout}


@dataclass(frozen=True)
class JsConditionWait:
    """Wait until a JavaScript expression evaluates truthy in the page."""

    expression: str
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.expression:
            raise ValueError("js expression must not be empty")
        _check_timeout(self.timeout)

    def resolve_timeout(self, default: float) -> float:
        return self.timeout if self.timeout is not None else default

    def to_dict(self) -> dict:
        return {"type": "js", "expression": self.expression, "timeout": self.timeout}


@dataclass(frozen=True)
class NetworkIdleWait:
    """
    Wait until no request is in flight for ``idle_window`` seconds.

    Only requests that start after the wait begins are observed; requests
    already in flight at that moment are invisible to this strategy.
    """

    idle_window: Optional[float] = None
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.idle_window is not None and self.idle_window <= 0:
            raise ValueError("idle_window must be positive")
        _check_timeout(self.timeout)

    def resolve_timeout(self, default: float) -> float:
        return self.timeout if self.timeout is not None else default

    def to_dict(self) -> dict:
        return {"type": "networkidle", "idle_window": self.idle_window, "timeout": self.timeout}


WaitSpec = Union[FixedWait, SelectorWait, XPathWait, JsConditionWait, NetworkIdleWait]

WAIT_SPEC_TYPES = {
    "fixed": FixedWait,
    "selector": SelectorWait,
    "xpath": XPathWait,
    "js": JsConditionWait,
    "networkidle": NetworkIdleWait,
}


def wait_spec_from_dict(data: dict) -> WaitSpec:
    """Build a WaitSpec from its tagged dictionary form.

    Args:
        data: Dictionary with a "type" key and the variant's fields

    Returns:
        The matching WaitSpec instance

    Raises:
        ValueError: If the type tag is unknown
    """
    params = dict(data)
    kind = params.pop("type", None)
    spec_cls = WAIT_SPEC_TYPES.get(kind)
    if spec_cls is None:
        raise ValueError(f"Unknown wait strategy type: {kind!r}")
    return spec_cls(**params)


# =============================================================================
# Page data
# =============================================================================

@dataclass
class MediaItem:
    """Image or other media element found on a page."""

    src: Optional[str] = None
    alt: Optional[str] = None
    desc: Optional[str] = None
    score: Optional[int] = None
    type: str = "image"
    group_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "MediaItem":
        return cls(
            src=data.get("src"),
            alt=data.get("alt"),
            desc=data.get("desc"),
            score=data.get("score"),
            type=data.get("type") or "image",
            group_id=data.get("group_id"),
        )


@dataclass
class Link:
    """Anchor found on a page."""

    href: Optional[str] = None
    text: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Link":
        return cls(href=data.get("href"), text=data.get("text"), title=data.get("title"))


@dataclass
class NetworkRequest:
    """Network request observed while the page was loading."""

    url: str
    method: str = "GET"
    resource_type: Optional[str] = None
    status: Optional[int] = None
    failure: Optional[str] = None


@dataclass
class ConsoleMessage:
    """Console message emitted by the page."""

    type: str
    text: str
    location: Optional[str] = None


@dataclass
class PageSnapshot:
    """Raw data pulled from a page by one successful attempt."""

    url: str
    html: str
    status_code: Optional[int] = None
    final_url: Optional[str] = None
    media: dict[str, list[MediaItem]] = field(default_factory=dict)
    links: dict[str, list[Link]] = field(default_factory=dict)
    screenshot: Optional[bytes] = None
    network_requests: list[NetworkRequest] = field(default_factory=list)
    console_messages: list[ConsoleMessage] = field(default_factory=list)


@dataclass
class MarkdownResult:
    """Markdown rendered from a page."""

    raw_markdown: str
    markdown_with_citations: str = ""
    references_markdown: str = ""
    fit_markdown: Optional[str] = None
    fit_html: Optional[str] = None


# =============================================================================
# Request / result
# =============================================================================

@dataclass(frozen=True)
class CrawlRequest:
    """A single "fetch this URL" request.

    ``content_filter`` and ``extraction_strategy`` are handed to the content
    processor untouched; ``None`` selects the processor's defaults.
    """

    url: str
    session_key: Optional[str] = None
    wait: WaitSpec = field(default_factory=lambda: FixedWait(0.1))
    page_timeout: float = 30.0
    wait_timeout: float = 10.0
    network_idle_window: float = 0.5
    max_attempts: int = 3
    retry_404: bool = False
    screenshot: bool = False
    capture_network_requests: bool = False
    capture_console_messages: bool = False
    content_filter: Any = None
    extraction_strategy: Any = None

    def __post_init__(self):
        parsed = urlparse(self.url)
        if parsed.scheme not in SUPPORTED_SCHEMES:
            raise ValueError(f"Unsupported URL scheme in {self.url!r}")
        if parsed.scheme in ("http", "https") and not parsed.netloc:
            raise ValueError(f"URL has no host: {self.url!r}")
        if self.session_key is not None and not self.session_key:
            raise ValueError("session_key must not be empty")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        for name in ("page_timeout", "wait_timeout", "network_idle_window"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass
class CrawlResult:
    """Final output of a successful crawl."""

    url: str
    html: str
    markdown: Optional[MarkdownResult] = None
    extracted_content: Optional[str] = None
    media: dict[str, list[MediaItem]] = field(default_factory=dict)
    links: dict[str, list[Link]] = field(default_factory=dict)
    screenshot: Optional[bytes] = None
    status_code: Optional[int] = None
    final_url: Optional[str] = None
    attempts: int = 1
    network_requests: list[NetworkRequest] = field(default_factory=list)
    console_messages: list[ConsoleMessage] = field(default_factory=list)
    crawled_at: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        # Failures surface as CrawlFailed, never as a CrawlResult
        return True

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        data = asdict(self)
        data["success"] = True
        data["crawled_at"] = self.crawled_at.isoformat()
        if self.screenshot is not None:
            data["screenshot"] = base64.b64encode(self.screenshot).decode("ascii")
        return data
