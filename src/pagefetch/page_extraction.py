"""
Raw data extraction from a loaded page.

Pulls media and link descriptors out of the live DOM, captures screenshots,
and records network and console activity while the page loads.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from .errors import is_transport_fatal
from .models import ConsoleMessage, Link, MediaItem, NetworkRequest

logger = logging.getLogger(__name__)


# Resolves image sources and splits links into internal/external by hostname
MEDIA_AND_LINKS_SCRIPT = """
() => {
    const resolveUrl = (url) => {
        try {
            return new URL(url, document.baseURI).href;
        } catch (e) {
            return url;
        }
    };

    const images = Array.from(document.images).map(img => ({
        src: img.src ? resolveUrl(img.src) : null,
        alt: img.alt || null,
        desc: img.title || null,
        score: null,
        type: "image",
        group_id: null
    }));

    const links = { internal: [], external: [] };
    const domain = window.location.hostname;

    Array.from(document.links).forEach(link => {
        const href = resolveUrl(link.href);
        const linkObj = {
            href: href,
            text: (link.innerText || "").trim() || null,
            title: link.title || null
        };

        try {
            const linkUrl = new URL(href);
            if (linkUrl.hostname && linkUrl.hostname === domain) {
                links.internal.push(linkObj);
            } else {
                links.external.push(linkObj);
            }
        } catch (e) {
            links.external.push(linkObj);
        }
    });

    return { media: { images: images }, links: links };
}
"""


async def extract_media_and_links(
    page: Any,
) -> Tuple[Dict[str, List[MediaItem]], Dict[str, List[Link]]]:
    """
    Collect image and link descriptors from the page.

    Args:
        page: Playwright page

    Returns:
        Tuple of (media by kind, links by "internal"/"external")
    """
    raw = await page.evaluate(MEDIA_AND_LINKS_SCRIPT) or {}

    media = {
        kind: [MediaItem.from_dict(item) for item in items or []]
        for kind, items in (raw.get("media") or {}).items()
    }
    links = {
        kind: [Link.from_dict(item) for item in items or []]
        for kind, items in (raw.get("links") or {}).items()
    }
    links.setdefault("internal", [])
    links.setdefault("external", [])

    return media, links


async def capture_screenshot(page: Any) -> Optional[bytes]:
    """
    Capture a full-page PNG screenshot.

    A screenshot failure does not fail the crawl; it is logged and None is
    returned. Failures of the browser connection itself are re-raised.
    """
    try:
        return await page.screenshot(full_page=True, type="png")
    except Exception as e:
        if is_transport_fatal(e):
            raise
        logger.warning(f"Failed to take screenshot: {e}")
        return None


class PageRecorder:
    """
    Records network requests and console messages emitted by a page.

    Attach before navigation so the main document request is captured:

        recorder = PageRecorder(capture_network=True, capture_console=True)
        recorder.attach(page)
        await page.goto(url)
        ...
        recorder.detach(page)
    """

    def __init__(self, capture_network: bool = False, capture_console: bool = False):
        self.capture_network = capture_network
        self.capture_console = capture_console
        # Keyed by the request object itself; dicts keep insertion order
        self._requests: Dict[Any, NetworkRequest] = {}
        self.console_messages: List[ConsoleMessage] = []
        self._handlers: List[Tuple[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return self.capture_network or self.capture_console

    @property
    def network_requests(self) -> List[NetworkRequest]:
        return list(self._requests.values())

    def attach(self, page: Any) -> None:
        if self.capture_network:
            self._subscribe(page, "request", self._on_request)
            self._subscribe(page, "response", self._on_response)
            self._subscribe(page, "requestfailed", self._on_request_failed)
        if self.capture_console:
            self._subscribe(page, "console", self._on_console)
            self._subscribe(page, "pageerror", self._on_page_error)

    def detach(self, page: Any) -> None:
        for event, handler in self._handlers:
            try:
                page.remove_listener(event, handler)
            except Exception as e:
                logger.debug(f"Could not remove {event} listener: {e}")
        self._handlers.clear()

    def _subscribe(self, page: Any, event: str, handler) -> None:
        page.on(event, handler)
        self._handlers.append((event, handler))

    def _on_request(self, request) -> None:
        self._requests[request] = NetworkRequest(
            url=request.url,
            method=request.method,
            resource_type=request.resource_type,
        )

    def _on_response(self, response) -> None:
        entry = self._requests.get(response.request)
        if entry is not None:
            entry.status = response.status

    def _on_request_failed(self, request) -> None:
        entry = self._requests.get(request)
        if entry is not None:
            entry.failure = request.failure

    def _on_console(self, message) -> None:
        location = None
        loc = message.location or {}
        if loc.get("url"):
            location = f"{loc['url']}:{loc.get('lineNumber', 0)}:{loc.get('columnNumber', 0)}"
        self.console_messages.append(
            ConsoleMessage(type=message.type, text=message.text, location=location)
        )

    def _on_page_error(self, error) -> None:
        self.console_messages.append(ConsoleMessage(type="pageerror", text=str(error)))
