"""
Infrastructure Package.

Browser process supervision and per-session browsing contexts.
"""

from .browser_supervisor import (
    BrowserHandle,
    BrowserSupervisor,
    CHROME_EXECUTABLE_ENV,
    KNOWN_BROWSER_PATHS,
    find_browser_executable,
)
from .session_registry import (
    ContextHandle,
    SessionRegistry,
)

__all__ = [
    # Browser Supervisor
    "BrowserHandle",
    "BrowserSupervisor",
    "CHROME_EXECUTABLE_ENV",
    "KNOWN_BROWSER_PATHS",
    "find_browser_executable",
    # Session Registry
    "ContextHandle",
    "SessionRegistry",
]
