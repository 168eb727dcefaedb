from functools import lru_cache
from threading import Lock
from typing import Optional
import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator
from app.shared.core.constants import (
    AWS_SUPPORTED_REGIONS,
    COST_EXPLORER_MAX_RETENTION_MONTHS,
    LLMProvider,
)

# Environment Constants
ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


_settings_reload_lock = Lock()


def reload_settings_from_environment() -> "Settings":
    """
    Atomically rebuild and replace cached settings from environment values.

    This avoids mutating the cached singleton instance in-place.
    """
    logger = structlog.get_logger()
    with _settings_reload_lock:
        logger.info("settings_reload_started")
        get_settings.cache_clear()
        refreshed = get_settings()
        logger.info("settings_reload_completed")
        return refreshed


class Settings(BaseSettings):
    """
    Main configuration for Stratus.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "Stratus"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT options: development, staging, production
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # AWS Credentials (fall back to the default boto credential chain when unset)
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None
    AWS_DEFAULT_REGION: str = "us-east-1"
    AWS_ENDPOINT_URL: Optional[str] = (
        None  # Local testing (MotoServer/LocalStack)
    )
    AWS_SUPPORTED_REGIONS: list[str] = AWS_SUPPORTED_REGIONS

    # Socket timeouts and botocore retry budget for every AWS client
    AWS_CONNECT_TIMEOUT_SECONDS: int = 10
    AWS_READ_TIMEOUT_SECONDS: int = 30
    AWS_MAX_ATTEMPTS: int = 3
    # Outer tenacity retries for transient connection failures
    AWS_RETRY_ATTEMPTS: int = 4

    # Scanner Settings
    SCAN_MAX_PAGES: int = 1000
    S3_LIST_PAGE_SIZE: int = 1000
    ENRICHMENT_CONCURRENCY: int = 16

    # CloudWatch window used by the metric reducer
    METRIC_WINDOW_MINUTES: int = 60
    METRIC_PERIOD_SECONDS: int = 300

    # Cost Explorer
    COST_RETENTION_MONTHS: int = COST_EXPLORER_MAX_RETENTION_MONTHS
    COST_METRIC: str = "UnblendedCost"
    COST_EXPLORER_REGION: str = "us-east-1"  # Cost Explorer is global, served from us-east-1

    # LLM Provider
    LLM_PROVIDER: str = LLMProvider.OPENAI.value  # Options: openai, anthropic, claude
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    CLAUDE_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-3-7-sonnet"
    ANTHROPIC_API_KEY: Optional[str] = None
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_OUTPUT_TOKENS: int = 1000
    LLM_TIMEOUT_SECONDS: float = 60.0
    LLM_MAX_RETRIES: int = 2

    # Query audit trail
    DATABASE_URL: str = "sqlite+aiosqlite:///./stratus.db"
    AUDIT_ENABLED: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        """
        Centralized validation orchestrator.
        Groups validation by concern for clarity and specificity.
        """
        if self.TESTING and self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
            raise ValueError(
                "TESTING must be false in staging/production runtime environments."
            )

        self._validate_scan_config()
        self._validate_cost_config()
        if self.TESTING:
            return self

        self._validate_llm_config()
        return self

    def _validate_scan_config(self) -> None:
        """Validates pagination, enrichment and metric window knobs."""
        positive_knobs = {
            "AWS_CONNECT_TIMEOUT_SECONDS": self.AWS_CONNECT_TIMEOUT_SECONDS,
            "AWS_READ_TIMEOUT_SECONDS": self.AWS_READ_TIMEOUT_SECONDS,
            "AWS_MAX_ATTEMPTS": self.AWS_MAX_ATTEMPTS,
            "AWS_RETRY_ATTEMPTS": self.AWS_RETRY_ATTEMPTS,
            "SCAN_MAX_PAGES": self.SCAN_MAX_PAGES,
            "S3_LIST_PAGE_SIZE": self.S3_LIST_PAGE_SIZE,
            "ENRICHMENT_CONCURRENCY": self.ENRICHMENT_CONCURRENCY,
            "METRIC_WINDOW_MINUTES": self.METRIC_WINDOW_MINUTES,
            "METRIC_PERIOD_SECONDS": self.METRIC_PERIOD_SECONDS,
            "LLM_MAX_OUTPUT_TOKENS": self.LLM_MAX_OUTPUT_TOKENS,
        }
        for name, value in positive_knobs.items():
            if value < 1:
                raise ValueError(f"{name} must be >= 1.")

        # CloudWatch only accepts periods that are multiples of 60 seconds
        if self.METRIC_PERIOD_SECONDS % 60 != 0:
            raise ValueError("METRIC_PERIOD_SECONDS must be a multiple of 60.")
        if self.METRIC_PERIOD_SECONDS > self.METRIC_WINDOW_MINUTES * 60:
            raise ValueError(
                "METRIC_PERIOD_SECONDS must not exceed the metric window."
            )

    def _validate_cost_config(self) -> None:
        if not 1 <= self.COST_RETENTION_MONTHS <= COST_EXPLORER_MAX_RETENTION_MONTHS:
            raise ValueError(
                "COST_RETENTION_MONTHS must be between 1 and "
                f"{COST_EXPLORER_MAX_RETENTION_MONTHS}."
            )

    def _validate_llm_config(self) -> None:
        """Validates LLM provider keys based on selection."""
        provider_keys = {
            "openai": self.OPENAI_API_KEY,
            "claude": self.CLAUDE_API_KEY or self.ANTHROPIC_API_KEY,
            "anthropic": self.ANTHROPIC_API_KEY or self.CLAUDE_API_KEY,
        }

        if self.LLM_PROVIDER not in provider_keys:
            raise ValueError(f"Unsupported LLM_PROVIDER: {self.LLM_PROVIDER}")

        if not provider_keys[self.LLM_PROVIDER]:
            if self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
                raise ValueError(
                    f"LLM_PROVIDER is '{self.LLM_PROVIDER}' but its API key is missing."
                )
            structlog.get_logger().warning(
                "llm_provider_key_missing_non_prod", provider=self.LLM_PROVIDER
            )
