"""
Browser configuration for Playwright-based fetching.

This module provides a validated Pydantic configuration model for browser launch
and browsing-context settings, plus pre-configured instances for common use cases.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# Launch flags applied to every browser process, regardless of configuration
REQUIRED_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-setuid-sandbox",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Viewport(BaseModel):
    """Browser viewport size."""

    width: int = Field(default=1280, ge=200, le=7680)
    height: int = Field(default=800, ge=200, le=4320)


class BrowserConfig(BaseModel):
    """
    Configuration for the supervised browser process and its contexts.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    model_config = ConfigDict(validate_assignment=True)

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium"] = Field(
        default="chromium",
        description="Browser engine. Executable discovery only covers Chromium builds."
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="load",
        description="When to consider navigation complete"
    )

    launch_args: List[str] = Field(
        default_factory=list,
        description="Additional browser launch arguments (e.g., '--disable-http2')"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. If None, DEFAULT_USER_AGENT is used."
    )

    viewport: Viewport = Field(default_factory=Viewport)

    locale: str = Field(
        default="en-US",
        description="Browser locale for new contexts"
    )

    ignore_https_errors: bool = Field(
        default=True,
        description="Accept invalid TLS certificates"
    )

    default_timeout: int = Field(
        default=30000,
        description="Default Playwright operation timeout in milliseconds",
        ge=1000,
        le=300000
    )

    def get_launch_args(self) -> List[str]:
        """Required sandbox flags followed by any extra arguments, without duplicates."""
        args = list(REQUIRED_LAUNCH_ARGS)
        for arg in self.launch_args:
            if arg not in args:
                args.append(arg)
        return args

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``browser.new_context()``."""
        return {
            "user_agent": self.user_agent or DEFAULT_USER_AGENT,
            "viewport": {"width": self.viewport.width, "height": self.viewport.height},
            "locale": self.locale,
            "ignore_https_errors": self.ignore_https_errors,
            "java_script_enabled": True,
        }


# --- Pre-configured Instances for Common Use Cases ---

DEFAULT_CONFIG = BrowserConfig()
"""
Default configuration.

Headless Chromium, navigation complete on the load event.
"""

FAST_CONFIG = BrowserConfig(
    headless=True,
    wait_until="domcontentloaded",
    default_timeout=15000,
    launch_args=["--blink-settings=imagesEnabled=false"],
)
"""
Fast configuration optimized for speed.

Skips image decoding and treats DOMContentLoaded as navigation complete.
Best for text extraction where rendered media does not matter.
"""
