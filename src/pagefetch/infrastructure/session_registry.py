"""
Session registry.

Maps caller-chosen session keys to browsing contexts (isolated cookie and
storage jars) inside the current browser generation. The whole mapping is
discarded when the browser is replaced: context ids from a dead process mean
nothing to the new one.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..browser_config import BrowserConfig
from .browser_supervisor import BrowserHandle

logger = logging.getLogger(__name__)


@dataclass
class ContextHandle:
    """A browsing context bound to one browser generation."""

    context: Any
    key: Optional[str]
    generation: int
    created_at: datetime = field(default_factory=datetime.now)
    requests_handled: int = 0

    @property
    def tracked(self) -> bool:
        """Whether the registry keeps this context for reuse."""
        return self.key is not None

    def record_use(self) -> None:
        self.requests_handled += 1


class SessionRegistry:
    """
    Keyed browsing contexts for session continuity across requests.

    Features:
    - Untracked single-use contexts when no key is given
    - Lookups never return a context from an older browser generation
    - Requests with different keys never wait on each other; two requests
      racing to create the same key produce exactly one context
    """

    def __init__(self, config: BrowserConfig | None = None):
        """
        Initialize session registry.

        Args:
            config: Browser configuration supplying context options
        """
        self.config = config or BrowserConfig()
        self._contexts: dict[str, ContextHandle] = {}
        self._creation_locks: dict[str, asyncio.Lock] = {}
        self._generation = 0
        self._invalidations = 0
        self._contexts_created = 0
        self._cleanup_tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, key: str) -> bool:
        return key in self._contexts

    @property
    def invalidation_count(self) -> int:
        """Number of times the mapping was wiped."""
        return self._invalidations

    @property
    def contexts_created(self) -> int:
        """Total contexts created, tracked and untracked."""
        return self._contexts_created

    def get(self, key: str) -> ContextHandle | None:
        """Return the registered context for ``key`` without creating one."""
        return self._contexts.get(key)

    async def get_or_create(self, key: Optional[str], browser: BrowserHandle) -> ContextHandle:
        """
        Return a browsing context for a request.

        Args:
            key: Session key, or None for a fresh single-use context
            browser: Handle of the current browser generation

        Returns:
            ContextHandle valid for ``browser.generation``
        """
        self._sync_generation(browser.generation)

        if key is None:
            context = await self._new_context(browser)
            return ContextHandle(context=context, key=None, generation=browser.generation)

        existing = self._lookup(key, browser.generation)
        if existing is not None:
            return existing

        lock = self._creation_locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another request may have created it while we waited
            existing = self._lookup(key, browser.generation)
            if existing is not None:
                return existing

            context = await self._new_context(browser)
            handle = ContextHandle(context=context, key=key, generation=browser.generation)

            if browser.generation < self._generation:
                # Browser was replaced while the context was being created
                logger.debug(f"Discarding context for session {key!r} from stale generation")
                return handle

            self._contexts[key] = handle
            logger.debug(
                f"Created context for session {key!r} (generation {browser.generation})"
            )
            return handle

    def invalidate_all(self, generation: Optional[int] = None) -> None:
        """
        Forget every registered context.

        Called once per browser restart, before any new request proceeds.

        Args:
            generation: The new browser generation, if known
        """
        dropped = len(self._contexts)
        self._contexts.clear()
        self._creation_locks.clear()
        self._invalidations += 1
        if generation is not None:
            self._generation = max(self._generation, generation)
        logger.info(f"Session registry invalidated ({dropped} context(s) dropped)")

    async def release(self, handle: ContextHandle) -> None:
        """Close a context once its request is done, unless it is kept for reuse."""
        if handle.tracked and self._contexts.get(handle.key) is handle:
            return
        await self._close_context(handle)

    async def close_session(self, key: str) -> bool:
        """Close and forget one session. Returns False if the key is unknown."""
        handle = self._contexts.pop(key, None)
        self._creation_locks.pop(key, None)
        if handle is None:
            return False
        await self._close_context(handle)
        return True

    async def close_all(self) -> None:
        """Close every registered context (shutdown)."""
        handles = list(self._contexts.values())
        self._contexts.clear()
        self._creation_locks.clear()
        for handle in handles:
            await self._close_context(handle)

    def _lookup(self, key: str, generation: int) -> ContextHandle | None:
        handle = self._contexts.get(key)
        if handle is not None and handle.generation == generation:
            return handle
        return None

    def _sync_generation(self, generation: int) -> None:
        # Covers relaunches this registry was not told about
        if generation > self._generation:
            if self._contexts:
                self.invalidate_all(generation)
            self._generation = generation

    async def _new_context(self, browser: BrowserHandle) -> Any:
        creation = asyncio.ensure_future(browser.browser.new_context(**self.config.context_options()))
        try:
            context = await asyncio.shield(creation)
        except asyncio.CancelledError:
            # The browser may still finish creating it; close it when it does
            creation.add_done_callback(self._close_abandoned)
            raise
        context.set_default_timeout(self.config.default_timeout)
        self._contexts_created += 1
        return context

    def _close_abandoned(self, creation: asyncio.Future) -> None:
        if creation.cancelled() or creation.exception() is not None:
            return
        logger.debug("Closing context created for a cancelled request")
        task = asyncio.ensure_future(self._close_quietly(creation.result()))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _close_quietly(self, context: Any) -> None:
        try:
            await context.close()
        except Exception as e:
            logger.debug(f"Error closing abandoned context: {e}")

    async def _close_context(self, handle: ContextHandle) -> None:
        try:
            await handle.context.close()
        except Exception as e:
            logger.debug(f"Error closing context for session {handle.key!r}: {e}")
