"""Tests for media/link extraction, screenshots and page recording."""

from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import (
    CLOSED_MESSAGE,
    FakeBrowser,
    FakeBrowserFactory,
    FakeContext,
    FakePage,
    FakeRequest,
)

from pagefetch.page_extraction import PageRecorder, capture_screenshot, extract_media_and_links


@pytest.fixture
def page():
    return FakePage(FakeContext(FakeBrowser(FakeBrowserFactory()), {}))


class TestExtractMediaAndLinks:
    """Test cases for extract_media_and_links."""

    @pytest.mark.asyncio
    async def test_descriptors(self, page):
        media, links = await extract_media_and_links(page)

        assert media["images"][0].src == "https://example.com/logo.png"
        assert media["images"][0].alt == "Logo"
        assert links["internal"][0].href == "https://example.com/about"
        assert links["external"][0].text == "More information..."

    @pytest.mark.asyncio
    async def test_empty_result(self, page):
        """Test a page returning nothing still yields both link groups."""
        page.media_and_links = None

        media, links = await extract_media_and_links(page)

        assert media == {}
        assert links == {"internal": [], "external": []}


class TestCaptureScreenshot:
    """Test cases for capture_screenshot."""

    @pytest.mark.asyncio
    async def test_png_bytes(self, page):
        assert await capture_screenshot(page) == b"\x89PNG fake"

    @pytest.mark.asyncio
    async def test_failure_is_soft(self, page):
        """Test an ordinary screenshot error returns None."""
        async def broken(**kwargs):
            raise PlaywrightError("Cannot take screenshot with 0 width")

        page.screenshot = broken
        assert await capture_screenshot(page) is None

    @pytest.mark.asyncio
    async def test_dead_browser_reraised(self, page):
        """Test a lost browser connection is not swallowed."""
        page.context.browser.crash()

        with pytest.raises(PlaywrightError, match=CLOSED_MESSAGE):
            await capture_screenshot(page)


class TestPageRecorder:
    """Test cases for PageRecorder."""

    def test_disabled_by_default(self, page):
        recorder = PageRecorder()
        recorder.attach(page)

        assert not recorder.enabled
        assert not any(page.listeners.values())

    def test_network_requests(self, page):
        """Test requests are recorded with their status and failure."""
        recorder = PageRecorder(capture_network=True)
        recorder.attach(page)

        document = FakeRequest("https://example.com/")
        script = FakeRequest("https://example.com/app.js", resource_type="script")
        page.emit("request", document)
        page.emit("request", script)
        page.emit("response", SimpleNamespace(request=document, status=200))
        script.failure = "net::ERR_FAILED"
        page.emit("requestfailed", script)

        requests = recorder.network_requests
        assert [r.url for r in requests] == ["https://example.com/", "https://example.com/app.js"]
        assert requests[0].status == 200
        assert requests[1].resource_type == "script"
        assert requests[1].failure == "net::ERR_FAILED"

    def test_console_messages(self, page):
        recorder = PageRecorder(capture_console=True)
        recorder.attach(page)

        page.emit("console", SimpleNamespace(
            type="warning",
            text="deprecated",
            location={"url": "https://example.com/app.js", "lineNumber": 3, "columnNumber": 7},
        ))
        page.emit("pageerror", ValueError("boom"))

        messages = recorder.console_messages
        assert messages[0].type == "warning"
        assert messages[0].location == "https://example.com/app.js:3:7"
        assert messages[1].type == "pageerror"
        assert messages[1].text == "boom"

    def test_detach(self, page):
        """Test detaching stops recording."""
        recorder = PageRecorder(capture_network=True, capture_console=True)
        recorder.attach(page)
        recorder.detach(page)

        page.emit("request", FakeRequest("https://example.com/"))

        assert recorder.network_requests == []
        assert not any(page.listeners.values())
