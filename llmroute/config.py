"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
This is the single source of truth for configuration - routing budgets,
stream timeouts and provider access are never hardcoded elsewhere.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class ProviderMode(StrEnum):
    """Which adapter family backs the provider registry."""

    LITELLM = "litellm"
    MOCK = "mock"


_DEFAULT_LITELLM_KEY = "sk-dev-key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    cors_allowed_origins: list[str] = Field(
        default=[],
        description="Allowed browser origins outside development",
    )

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #
    provider_mode: ProviderMode = Field(
        default=ProviderMode.MOCK,
        description="litellm streams through the proxy; mock serves canned output offline",
    )
    litellm_base_url: str = Field(
        default="http://localhost:4000",
        description="LiteLLM proxy base URL",
    )
    litellm_api_key: SecretStr = Field(
        default=SecretStr(_DEFAULT_LITELLM_KEY),
        description="API key for LiteLLM proxy",
    )
    enabled_providers: list[str] = Field(
        default=["openai", "anthropic", "google", "mistral"],
        description="Providers with configured credentials. Models of other providers are hidden.",
    )

    # ------------------------------------------------------------------ #
    # Routing & Segmentation
    # ------------------------------------------------------------------ #
    chars_per_token: int = Field(
        default=4,
        ge=1,
        description="Characters per token used by the size estimator",
    )
    completion_reserve_ratio: float = Field(
        default=0.25,
        ge=0.0,
        lt=1.0,
        description="Fraction of a model's context kept free for the completion",
    )
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # ------------------------------------------------------------------ #
    # Streaming
    # ------------------------------------------------------------------ #
    segment_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound on a single provider call, reported as a provider error",
    )
    stream_buffer_size: int = Field(
        default=16,
        ge=1,
        description="Frames buffered before writes block on a slow consumer",
    )

    # ------------------------------------------------------------------ #
    # Accounts & Quota
    # ------------------------------------------------------------------ #
    default_usage_limit: int = Field(
        default=100_000,
        ge=0,
        description="Token limit for seeded development callers",
    )
    seed_dev_callers: bool = Field(
        default=True,
        description="Create one development API key per tier outside production",
    )

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @model_validator(mode="after")
    def _validate_production_providers(self) -> Settings:
        """Refuse to start in production with the mock adapters or the dev key."""
        if self.environment != Environment.PROD:
            return self

        errors: list[str] = []
        if self.provider_mode == ProviderMode.MOCK:
            errors.append("PROVIDER_MODE=mock serves canned output. Use litellm in production.")
        if self.litellm_api_key.get_secret_value() == _DEFAULT_LITELLM_KEY:
            errors.append("LITELLM_API_KEY is the development default. Set a real key.")

        if errors:
            raise RuntimeError(
                "PRODUCTION STARTUP BLOCKED -- Insecure configuration detected:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use FastAPI dependency injection via Depends(get_settings) in endpoints,
    or call directly in non-request contexts (startup, scripts).
    """
    return Settings()
