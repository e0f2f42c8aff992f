from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .engine.retry import RetryPolicy


# Get the directory where this config.py file is located
_config_dir = Path(__file__).parent
_env_file = _config_dir.parent / ".env"  # services/core/.env


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    # Data provider
    provider: str = "mock"  # "mock" | "rest"
    symbol: str = "AAPL"

    # REST provider (only used when provider=rest)
    rest_base_url: str = "http://127.0.0.1:9000/v1/snapshot"
    rest_timeout_seconds: float = 10.0

    # Heartbeat
    heartbeat_interval_seconds: float = 10.0
    shutdown_grace_seconds: float = 5.0

    # Retry / backoff
    # base >= 2 keeps successive backoff waits non-decreasing even at full jitter
    max_attempts: int = Field(default=3, ge=1)
    base_backoff_seconds: float = Field(default=2.0, ge=2.0)
    rate_limit_cooldown_seconds: float = Field(default=60.0, gt=0)

    # Event fan-out
    event_queue_size: int = 100

    def get_symbol(self) -> str:
        """Normalized symbol (uppercase, trimmed)."""
        return self.symbol.strip().upper()

    def get_provider(self) -> str:
        return self.provider.strip().lower()

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy from the configured limits."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_backoff=self.base_backoff_seconds,
            rate_limit_cooldown=self.rate_limit_cooldown_seconds,
        )


def get_settings() -> Settings:
    return Settings()
