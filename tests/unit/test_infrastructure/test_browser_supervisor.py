"""Unit tests for BrowserSupervisor and browser executable discovery."""

import asyncio

import pytest

from fakes import FakeBrowserFactory

from pagefetch.browser_config import BrowserConfig
from pagefetch.errors import StartupFailure
from pagefetch.infrastructure.browser_supervisor import (
    CHROME_EXECUTABLE_ENV,
    BrowserSupervisor,
    find_browser_executable,
)


@pytest.fixture
def factory():
    return FakeBrowserFactory()


@pytest.fixture
def supervisor(factory):
    return BrowserSupervisor(BrowserConfig(), launcher=factory)


class TestFindBrowserExecutable:
    """Tests for executable discovery."""

    def test_override_used(self, tmp_path, monkeypatch):
        """Test CHROME_EXECUTABLE wins when it exists."""
        chrome = tmp_path / "chrome"
        chrome.write_text("")
        monkeypatch.setenv(CHROME_EXECUTABLE_ENV, str(chrome))

        assert find_browser_executable(candidates=[]) == str(chrome)

    def test_missing_override_is_fatal(self, tmp_path, monkeypatch):
        """Test a dangling override is a startup failure, not a fallback."""
        monkeypatch.setenv(CHROME_EXECUTABLE_ENV, str(tmp_path / "nope"))
        other = tmp_path / "chromium"
        other.write_text("")

        with pytest.raises(StartupFailure, match="does not exist"):
            find_browser_executable(candidates=[str(other)])

    def test_search_order(self, tmp_path, monkeypatch):
        """Test the first existing candidate is chosen."""
        monkeypatch.delenv(CHROME_EXECUTABLE_ENV, raising=False)
        first = tmp_path / "google-chrome"
        second = tmp_path / "chromium"
        second.write_text("")
        first.write_text("")

        assert find_browser_executable(candidates=[str(first), str(second)]) == str(first)

    def test_bundled_checked_last(self, tmp_path, monkeypatch):
        """Test Playwright's bundled build is the final fallback."""
        monkeypatch.delenv(CHROME_EXECUTABLE_ENV, raising=False)
        bundled = tmp_path / "bundled-chrome"
        bundled.write_text("")

        found = find_browser_executable(
            candidates=[str(tmp_path / "missing")], bundled=str(bundled)
        )
        assert found == str(bundled)

    def test_nothing_found(self, tmp_path, monkeypatch):
        """Test no candidate is a startup failure."""
        monkeypatch.delenv(CHROME_EXECUTABLE_ENV, raising=False)
        with pytest.raises(StartupFailure, match="No browser executable found"):
            find_browser_executable(candidates=[str(tmp_path / "missing")])


class TestBrowserSupervisor:
    """Tests for BrowserSupervisor lifecycle."""

    @pytest.mark.asyncio
    async def test_lazy_launch(self, supervisor, factory):
        """Test nothing is launched until first use."""
        assert supervisor.current is None
        handle = await supervisor.ensure_running()

        assert handle.generation == 1
        assert handle.is_alive
        assert len(factory.browsers) == 1

    @pytest.mark.asyncio
    async def test_ensure_running_idempotent(self, supervisor, factory):
        """Test repeated calls return the same handle without relaunching."""
        first = await supervisor.ensure_running()
        second = await supervisor.ensure_running()

        assert first is second
        assert len(factory.browsers) == 1
        assert supervisor.restart_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_first_use_launches_once(self, supervisor, factory):
        """Test racing callers share one launch."""
        factory.launch_delay = 0.05
        handles = await asyncio.gather(*(supervisor.ensure_running() for _ in range(5)))

        assert len({id(handle) for handle in handles}) == 1
        assert len(factory.browsers) == 1

    @pytest.mark.asyncio
    async def test_dead_browser_replaced(self, supervisor, factory):
        """Test a crashed browser is detected and relaunched."""
        first = await supervisor.ensure_running()
        factory.browsers[0].crash()

        assert not first.is_alive
        second = await supervisor.ensure_running()

        assert second.generation == 2
        assert second.is_alive
        assert supervisor.restart_count == 1

    @pytest.mark.asyncio
    async def test_restart_new_generation(self, supervisor, factory):
        """Test restart closes the old process and launches a new one."""
        first = await supervisor.ensure_running()
        second = await supervisor.restart()

        assert second.generation == first.generation + 1
        assert factory.browsers[0].closed
        assert not first.is_alive

    @pytest.mark.asyncio
    async def test_restart_with_stale_handle_deduplicated(self, supervisor, factory):
        """Test concurrent restarts for the same dead generation relaunch once."""
        stale = await supervisor.ensure_running()
        factory.browsers[0].crash()

        handles = await asyncio.gather(supervisor.restart(stale), supervisor.restart(stale))

        assert handles[0] is handles[1]
        assert supervisor.restart_count == 1
        assert len(factory.browsers) == 2

    @pytest.mark.asyncio
    async def test_listeners_run_before_handle_returned(self, supervisor):
        """Test restart listeners see the new generation before callers do."""
        seen = []

        async def async_listener(generation):
            await asyncio.sleep(0)
            seen.append(("async", generation))

        supervisor.add_restart_listener(lambda generation: seen.append(("sync", generation)))
        supervisor.add_restart_listener(async_listener)

        await supervisor.ensure_running()
        assert seen == []

        handle = await supervisor.restart()
        assert seen == [("sync", 2), ("async", 2)]
        assert handle.generation == 2

    @pytest.mark.asyncio
    async def test_launch_failure_is_startup_failure(self, supervisor, factory):
        """Test launcher errors surface as StartupFailure."""
        factory.launch_error = RuntimeError("spawn failed")

        with pytest.raises(StartupFailure, match="spawn failed"):
            await supervisor.ensure_running()
        assert supervisor.current is None

    @pytest.mark.asyncio
    async def test_stop(self, supervisor, factory):
        """Test stop closes the browser."""
        await supervisor.ensure_running()
        await supervisor.stop()

        assert supervisor.current is None
        assert factory.browsers[0].closed

    @pytest.mark.asyncio
    async def test_context_manager(self, factory):
        """Test async with stops the browser on exit."""
        async with BrowserSupervisor(launcher=factory) as supervisor:
            await supervisor.ensure_running()

        assert factory.browsers[0].closed
