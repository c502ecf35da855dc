"""
Browser process supervision.

This module owns the single browser process used by every crawl. It launches
the process lazily, notices when it dies, and replaces it on request. Each
launched process is a new *generation*; handles from an older generation are
never handed out again.

Playwright's connection object is the protocol transport: a single reader
task dispatches every response to the call awaiting it, and pending calls are
rejected when the browser goes away, so callers observe a transport failure
instead of hanging.
"""

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..browser_config import BrowserConfig
from ..errors import StartupFailure

logger = logging.getLogger(__name__)

CHROME_EXECUTABLE_ENV = "CHROME_EXECUTABLE"

# Search order when CHROME_EXECUTABLE is not set
KNOWN_BROWSER_PATHS = (
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
)

RestartListener = Callable[[int], Any]


def find_browser_executable(
    candidates: Sequence[str] = KNOWN_BROWSER_PATHS,
    bundled: Optional[str] = None,
) -> str:
    """
    Resolve the browser executable to launch.

    Args:
        candidates: Install locations checked in order when the
            CHROME_EXECUTABLE environment variable is unset
        bundled: Playwright's bundled Chromium, checked last

    Returns:
        Path to an existing executable

    Raises:
        StartupFailure: If the override does not exist or no candidate is found
    """
    override = os.getenv(CHROME_EXECUTABLE_ENV)
    if override:
        if Path(override).exists():
            return override
        raise StartupFailure(
            f"{CHROME_EXECUTABLE_ENV} points to {override!r}, which does not exist"
        )

    search = list(candidates)
    if bundled:
        search.append(bundled)

    for path in search:
        if Path(path).exists():
            return path

    raise StartupFailure(
        "No browser executable found. Set CHROME_EXECUTABLE or install Chromium "
        "(playwright install chromium). Searched: " + ", ".join(search)
    )


@dataclass
class BrowserHandle:
    """One running browser process (one generation)."""

    browser: Any
    generation: int
    executable_path: Optional[str] = None
    launched_at: datetime = field(default_factory=datetime.now)
    disconnected: bool = False

    @property
    def is_alive(self) -> bool:
        """Whether the process is still connected."""
        if self.disconnected:
            return False
        try:
            return bool(self.browser.is_connected())
        except Exception:
            return False

    def mark_disconnected(self, *_args) -> None:
        if not self.disconnected:
            logger.warning(f"Browser generation {self.generation} disconnected")
        self.disconnected = True


class BrowserSupervisor:
    """
    Keeps exactly one live browser available.

    Usage:
        async with BrowserSupervisor(config) as supervisor:
            handle = await supervisor.ensure_running()

    Features:
    - Lazy launch on first use
    - Death detection via the Playwright ``disconnected`` event
    - Serialized restarts; concurrent callers reporting the same dead
      generation trigger a single relaunch
    - Restart listeners notified before the new handle is returned
    """

    def __init__(
        self,
        config: BrowserConfig | None = None,
        launcher: Optional[Callable[[BrowserConfig], Awaitable[Any]]] = None,
    ):
        """
        Initialize browser supervisor.

        Args:
            config: Browser launch configuration
            launcher: Optional coroutine function returning a connected browser
                object; replaces the Playwright launch (used by tests)
        """
        self.config = config or BrowserConfig()
        self._launcher = launcher

        self._playwright = None
        self._handle: BrowserHandle | None = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._listeners: list[RestartListener] = []
        self._restart_count = 0

    async def __aenter__(self) -> "BrowserSupervisor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def add_restart_listener(self, listener: RestartListener) -> None:
        """Register a callable run with the new generation number on every relaunch."""
        self._listeners.append(listener)

    @property
    def current(self) -> BrowserHandle | None:
        """The current handle, alive or not, without launching anything."""
        return self._handle

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def restart_count(self) -> int:
        return self._restart_count

    async def ensure_running(self) -> BrowserHandle:
        """
        Return the live browser, launching it on first use.

        If the current process has died, it is replaced (a new generation)
        and restart listeners run before the new handle is returned.
        """
        handle = self._handle
        if handle is not None and handle.is_alive:
            return handle

        async with self._lock:
            handle = self._handle
            if handle is not None and handle.is_alive:
                return handle

            if handle is not None:
                logger.warning(
                    f"Browser generation {handle.generation} is no longer running; relaunching"
                )
                await self._close_browser(handle)

            return await self._launch_locked(previous=handle)

    async def restart(self, stale: BrowserHandle | None = None) -> BrowserHandle:
        """
        Terminate the current browser and launch a new one.

        Args:
            stale: The handle the caller saw fail. If a newer live generation
                already exists, it is returned without another relaunch.

        Returns:
            The new (or already replaced) handle
        """
        async with self._lock:
            current = self._handle
            if (
                stale is not None
                and current is not None
                and current.generation != stale.generation
                and current.is_alive
            ):
                logger.debug(
                    f"Generation {stale.generation} already replaced by {current.generation}"
                )
                return current

            if current is not None:
                logger.info(f"Restarting browser (generation {current.generation})")
                await self._close_browser(current)

            return await self._launch_locked(previous=current)

    async def stop(self) -> None:
        """Shut down the browser process and Playwright."""
        async with self._lock:
            if self._handle is not None:
                await self._close_browser(self._handle)
                self._handle = None

            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning(f"Error stopping playwright: {e}")
                self._playwright = None

        logger.info("Browser supervisor stopped")

    async def _launch_locked(self, previous: BrowserHandle | None) -> BrowserHandle:
        """Launch a new generation. Caller holds ``self._lock``."""
        # Drop the dead handle first so a failed launch never leaves it reusable
        self._handle = None

        browser, executable_path = await self._launch_browser()

        self._generation += 1
        handle = BrowserHandle(
            browser=browser,
            generation=self._generation,
            executable_path=executable_path,
        )

        try:
            browser.on("disconnected", handle.mark_disconnected)
        except Exception as e:
            logger.debug(f"Could not subscribe to browser disconnect events: {e}")

        if previous is not None:
            self._restart_count += 1
            await self._notify_listeners(handle.generation)

        self._handle = handle
        logger.info(
            f"Browser generation {handle.generation} running"
            + (f" ({executable_path})" if executable_path else "")
        )
        return handle

    async def _notify_listeners(self, generation: int) -> None:
        for listener in self._listeners:
            result = listener(generation)
            if inspect.isawaitable(result):
                await result

    async def _launch_browser(self) -> tuple[Any, Optional[str]]:
        if self._launcher is not None:
            try:
                browser = await self._launcher(self.config)
            except StartupFailure:
                raise
            except Exception as e:
                raise StartupFailure(f"Failed to launch browser: {e}") from e
            return browser, None

        await self._start_playwright()
        executable_path = find_browser_executable(
            bundled=self._bundled_executable(),
        )

        launch_options: dict[str, Any] = {
            "headless": self.config.headless,
            "executable_path": executable_path,
            "args": self.config.get_launch_args(),
        }

        try:
            browser = await self._playwright.chromium.launch(**launch_options)
        except Exception as e:
            raise StartupFailure(f"Failed to launch {executable_path}: {e}") from e

        return browser, executable_path

    async def _start_playwright(self) -> None:
        if self._playwright is not None:
            return
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "playwright package not installed. "
                "Install with: pip install playwright && playwright install chromium"
            )
        self._playwright = await async_playwright().start()

    def _bundled_executable(self) -> Optional[str]:
        try:
            return self._playwright.chromium.executable_path
        except Exception:
            return None

    async def _close_browser(self, handle: BrowserHandle) -> None:
        handle.disconnected = True
        try:
            await handle.browser.close()
        except Exception as e:
            # Expected when the process already died
            logger.debug(f"Error closing browser generation {handle.generation}: {e}")
