from dotenv import load_dotenv
from dataclasses import dataclass
from pathlib import Path
import json
import os

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    # Browser executable override, consulted only at browser launch
    CHROME_EXECUTABLE = os.getenv("CHROME_EXECUTABLE")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")


settings = Settings()


@dataclass
class CrawlerSettings:
    """Default crawl behaviour, overridable per request."""

    # Timeouts (seconds)
    page_timeout: float = 30.0
    wait_timeout: float = 10.0
    network_idle_window: float = 0.5
    default_fixed_wait: float = 0.1

    # Retry behaviour
    max_attempts: int = 3
    retry_404: bool = False
    backoff_base_delay: float = 0.5
    backoff_max_delay: float = 5.0
    backoff_jitter: float = 0.1

    # Wait strategy polling interval (seconds)
    poll_interval: float = 0.1

    # Concurrent pipelines for arun_many()
    max_concurrency: int = 5

    @classmethod
    def from_env(cls) -> "CrawlerSettings":
        """Load settings from environment variables.

        Environment variables should be prefixed with PAGEFETCH_
        e.g., PAGEFETCH_PAGE_TIMEOUT=45

        Returns:
            CrawlerSettings with values from environment
        """
        crawler_settings = cls()
        prefix = "PAGEFETCH_"

        for field_name, field_def in crawler_settings.__dataclass_fields__.items():
            env_value = os.getenv(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue
            setattr(crawler_settings, field_name, _coerce(field_def.type, env_value, field_name))

        crawler_settings.validate()
        return crawler_settings

    @classmethod
    def from_file(cls, path: str) -> "CrawlerSettings":
        """Load settings from a JSON file.

        Args:
            path: Path to JSON configuration file. A top-level "crawler"
                key is used when present.

        Returns:
            CrawlerSettings with values from file
        """
        crawler_settings = cls()
        file_path = Path(path)

        if not file_path.exists():
            return crawler_settings

        with open(file_path, 'r') as f:
            config = json.load(f)

        section = config.get('crawler', config)

        for field_name in crawler_settings.__dataclass_fields__:
            if field_name in section:
                setattr(crawler_settings, field_name, section[field_name])

        crawler_settings.validate()
        return crawler_settings

    def validate(self) -> None:
        """Reject values that would make waits unbounded or retries impossible."""
        for name in ("page_timeout", "wait_timeout", "network_idle_window", "poll_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.default_fixed_wait < 0:
            raise ValueError("default_fixed_wait must not be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.backoff_max_delay < self.backoff_base_delay:
            raise ValueError("backoff_max_delay must be >= backoff_base_delay")

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


def _coerce(field_type, raw: str, field_name: str):
    # Annotations are real types here (no postponed evaluation in this module)
    if field_type is bool:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    try:
        if field_type is int:
            return int(raw)
        if field_type is float:
            return float(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for PAGEFETCH_{field_name.upper()}: {raw!r}") from e
    return raw


default_settings = CrawlerSettings()
