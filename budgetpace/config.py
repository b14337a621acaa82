"""
BudgetPace - Configuration Module.

Process configuration loaded from environment variables. Per-agency
alert thresholds are data and live in the alert settings store.

Environment Variables:
    BUDGETPACE_DATA_PATH: JSON data file (default: budgetpace_db.json)
    BUDGETPACE_LOG_LEVEL: Logging level (default: INFO)
    BUDGETPACE_SYNC_INTERVAL: Seconds between campaign syncs (default: 300)
    BUDGETPACE_ALERT_INTERVAL: Seconds between alert checks (default: 86400)
    BUDGETPACE_CACHE_TTL: Seconds a cached campaign list stays fresh (default: 300)
    BUDGETPACE_FETCH_TIMEOUT: Seconds before a platform fetch times out (default: 30)
    BUDGETPACE_RETRY_ATTEMPTS: Fetch attempts for transient failures (default: 3)
    BUDGETPACE_RETRY_DELAY: Base backoff delay in seconds (default: 1.0)
    BUDGETPACE_RETRY_MAX_DELAY: Backoff ceiling in seconds (default: 30.0)
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

from budgetpace.errors import ValidationError

T = TypeVar("T")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RetryConfig:
    """Configuration for retry mechanisms."""

    max_attempts: int = 3
    base_delay: float = 1.0
    exponential_backoff: bool = True
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Returns the delay before retrying after a 0-based attempt."""
        if self.exponential_backoff:
            return min(self.base_delay * (2 ** attempt), self.max_delay)
        return self.base_delay


@dataclass
class Settings:
    """
    BudgetPace process settings.

    Attributes:
        data_path: JSON data file backing the document store.
        log_level: Logging level name.
        sync_interval_seconds: Interval of the campaign sync job.
        alert_interval_seconds: Interval of the alert check job.
        cache_ttl_seconds: Freshness window of cached campaign lists.
        fetch_timeout_seconds: Timeout of one platform fetch.
        retry: Backoff policy for transient platform failures.
    """

    data_path: str = "budgetpace_db.json"
    log_level: str = "INFO"
    sync_interval_seconds: float = 300.0
    alert_interval_seconds: float = 86400.0
    cache_ttl_seconds: float = 300.0
    fetch_timeout_seconds: float = 30.0
    retry: Optional[RetryConfig] = None

    def __post_init__(self) -> None:
        if self.retry is None:
            self.retry = RetryConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Loads settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ValidationError: If a variable holds a malformed value.
        """
        env = os.environ if environ is None else environ

        def read(name: str, parse: Callable[[str], T], default: T, positive: bool = False) -> T:
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                value = parse(raw.strip())
            except ValueError:
                raise ValidationError.for_field(
                    name, raw, f"{name} must be a {parse.__name__} (received: '{raw}')"
                ) from None
            if isinstance(value, (int, float)) and value < 0:
                raise ValidationError.for_field(name, raw, f"{name} must not be negative")
            if positive and value == 0:
                raise ValidationError.for_field(name, raw, f"{name} must be greater than zero")
            return value

        log_level = env.get("BUDGETPACE_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if log_level not in LOG_LEVELS:
            raise ValidationError.for_field(
                "BUDGETPACE_LOG_LEVEL",
                log_level,
                f"BUDGETPACE_LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}"
            )

        retry = RetryConfig(
            max_attempts=read("BUDGETPACE_RETRY_ATTEMPTS", int, 3),
            base_delay=read("BUDGETPACE_RETRY_DELAY", float, 1.0),
            max_delay=read("BUDGETPACE_RETRY_MAX_DELAY", float, 30.0),
        )
        if retry.max_attempts < 1:
            raise ValidationError.for_field(
                "BUDGETPACE_RETRY_ATTEMPTS", retry.max_attempts, "At least one attempt is required"
            )

        return cls(
            data_path=env.get("BUDGETPACE_DATA_PATH", "").strip() or "budgetpace_db.json",
            log_level=log_level,
            sync_interval_seconds=read("BUDGETPACE_SYNC_INTERVAL", float, 300.0, positive=True),
            alert_interval_seconds=read("BUDGETPACE_ALERT_INTERVAL", float, 86400.0, positive=True),
            cache_ttl_seconds=read("BUDGETPACE_CACHE_TTL", float, 300.0),
            fetch_timeout_seconds=read("BUDGETPACE_FETCH_TIMEOUT", float, 30.0, positive=True),
            retry=retry,
        )

    def configure_logging(self) -> None:
        """Configures root logging at the settings' level."""
        logging.basicConfig(
            level=getattr(logging, self.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
