"""Tests for crawler settings and browser configuration."""

import json

import pytest
from pydantic import ValidationError

from pagefetch.browser_config import (
    DEFAULT_CONFIG,
    DEFAULT_USER_AGENT,
    FAST_CONFIG,
    REQUIRED_LAUNCH_ARGS,
    BrowserConfig,
)
from pagefetch.config import CrawlerSettings


class TestCrawlerSettings:
    """Test cases for CrawlerSettings."""

    def test_defaults(self):
        """Test default values."""
        settings = CrawlerSettings()
        assert settings.page_timeout == 30.0
        assert settings.wait_timeout == 10.0
        assert settings.max_attempts == 3
        assert settings.retry_404 is False
        assert settings.backoff_base_delay == 0.5
        assert settings.backoff_max_delay == 5.0

    def test_from_env(self, monkeypatch):
        """Test PAGEFETCH_ variables override defaults with the right types."""
        monkeypatch.setenv("PAGEFETCH_PAGE_TIMEOUT", "45")
        monkeypatch.setenv("PAGEFETCH_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("PAGEFETCH_RETRY_404", "true")

        settings = CrawlerSettings.from_env()

        assert settings.page_timeout == 45.0
        assert settings.max_attempts == 5
        assert settings.retry_404 is True

    def test_from_env_invalid_number(self, monkeypatch):
        """Test unparsable values are reported."""
        monkeypatch.setenv("PAGEFETCH_MAX_ATTEMPTS", "many")
        with pytest.raises(ValueError, match="PAGEFETCH_MAX_ATTEMPTS"):
            CrawlerSettings.from_env()

    def test_from_env_out_of_range(self, monkeypatch):
        """Test parsed values are validated."""
        monkeypatch.setenv("PAGEFETCH_PAGE_TIMEOUT", "0")
        with pytest.raises(ValueError, match="page_timeout"):
            CrawlerSettings.from_env()

    def test_from_file(self, tmp_path):
        """Test JSON files with a crawler section."""
        path = tmp_path / "pagefetch.json"
        path.write_text(json.dumps({"crawler": {"wait_timeout": 3.5, "max_concurrency": 2}}))

        settings = CrawlerSettings.from_file(str(path))

        assert settings.wait_timeout == 3.5
        assert settings.max_concurrency == 2

    def test_from_missing_file(self, tmp_path):
        """Test a missing file yields defaults."""
        assert CrawlerSettings.from_file(str(tmp_path / "missing.json")) == CrawlerSettings()

    def test_to_dict(self):
        """Test dictionary export."""
        data = CrawlerSettings().to_dict()
        assert data["page_timeout"] == 30.0
        assert "max_concurrency" in data


class TestBrowserConfig:
    """Test cases for BrowserConfig."""

    def test_launch_args_include_required_flags(self):
        """Test sandbox flags are always present and never duplicated."""
        config = BrowserConfig(launch_args=["--no-sandbox", "--disable-http2"])
        args = config.get_launch_args()

        assert args[:len(REQUIRED_LAUNCH_ARGS)] == REQUIRED_LAUNCH_ARGS
        assert args.count("--no-sandbox") == 1
        assert "--disable-http2" in args

    def test_context_options(self):
        """Test context options use the default user agent."""
        options = BrowserConfig().context_options()
        assert options["user_agent"] == DEFAULT_USER_AGENT
        assert options["viewport"] == {"width": 1280, "height": 800}
        assert options["ignore_https_errors"] is True

    def test_validation(self):
        """Test invalid values are rejected."""
        with pytest.raises(ValidationError):
            BrowserConfig(default_timeout=10)
        with pytest.raises(ValidationError):
            BrowserConfig(wait_until="whenever")
        with pytest.raises(ValidationError):
            BrowserConfig(browser_type="firefox")

    def test_validate_assignment(self):
        """Test assignments are validated too."""
        config = BrowserConfig()
        with pytest.raises(ValidationError):
            config.default_timeout = 1

    def test_presets(self):
        """Test the pre-configured instances."""
        assert DEFAULT_CONFIG.wait_until == "load"
        assert FAST_CONFIG.wait_until == "domcontentloaded"
        assert FAST_CONFIG.default_timeout < DEFAULT_CONFIG.default_timeout
