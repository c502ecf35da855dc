"""Shared fixtures: a supervised fake browser and the components built on it."""

import pytest

from fakes import FakeBrowserFactory

from pagefetch.browser_config import BrowserConfig
from pagefetch.infrastructure.browser_supervisor import BrowserSupervisor
from pagefetch.infrastructure.session_registry import SessionRegistry
from pagefetch.pipeline import CrawlPipeline
from pagefetch.retry_policy import BackoffConfig
from pagefetch.wait_strategies import WaitStrategyEngine


@pytest.fixture
def browser_factory():
    return FakeBrowserFactory()


@pytest.fixture
def browser_config():
    return BrowserConfig()


@pytest.fixture
def supervisor(browser_factory, browser_config):
    return BrowserSupervisor(browser_config, launcher=browser_factory)


@pytest.fixture
def registry(browser_config):
    return SessionRegistry(browser_config)


@pytest.fixture
def no_backoff():
    return BackoffConfig(base_delay=0.0, max_delay=0.0)


@pytest.fixture
def pipeline(supervisor, registry, no_backoff):
    return CrawlPipeline(
        supervisor,
        registry,
        wait_engine=WaitStrategyEngine(poll_interval=0.01),
        backoff=no_backoff,
    )
