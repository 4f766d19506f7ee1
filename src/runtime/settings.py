# SPDX-License-Identifier: MIT
"""Centralised governor configuration management.

This module exposes :class:`Settings`, a ``pydantic-settings`` model that
combines values sourced from the YAML configuration file and environment
variables. Environment variables take precedence over file-based values and
the merged configuration is validated before use.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from constants import (
    DEFAULT_ENDPOINT_URL,
    DEFAULT_RATE_LIMIT_CAPACITY,
    DEFAULT_RATE_LIMIT_INTERVAL,
    INITIAL_BACKOFF,
    MAX_RETRIES,
    MAX_TOKENS_PER_REQUEST,
)
from io_utils.loader import load_app_config


class Settings(BaseSettings):
    """Governor settings combining file-based and environment configuration."""

    endpoint_url: str = Field(
        DEFAULT_ENDPOINT_URL, min_length=1, description="Text-generation endpoint."
    )
    api_key: str | None = Field(
        None, description="Bearer token for the endpoint, if required.", repr=False
    )
    log_level: str = Field("INFO", description="Logging verbosity level.")
    logfire_token: str | None = Field(
        None, description="Logfire authentication token, if available.", repr=False
    )
    request_timeout: float = Field(
        60.0, gt=0, description="Per-request timeout in seconds."
    )

    # Retry policy
    max_retries: int = Field(
        MAX_RETRIES, ge=0, description="Retries after the initial attempt."
    )
    initial_backoff: float = Field(
        INITIAL_BACKOFF, gt=0, description="Initial backoff delay in seconds."
    )
    max_backoff: float | None = Field(
        None, gt=0, description="Upper bound for computed backoff delays."
    )
    backoff_jitter: float = Field(
        0.0, ge=0, le=1, description="Fractional random jitter added to backoff."
    )

    # Rate limiting
    rate_limit_capacity: int = Field(
        DEFAULT_RATE_LIMIT_CAPACITY, ge=1, description="Token bucket capacity."
    )
    rate_limit_interval: float = Field(
        DEFAULT_RATE_LIMIT_INTERVAL,
        gt=0,
        description="Seconds between token refills.",
    )
    strict_rate_limit: bool = Field(
        False,
        description=(
            "Raise a retryable rate-limit error instead of waiting for a token."
        ),
    )

    max_context_tokens: int = Field(
        MAX_TOKENS_PER_REQUEST,
        ge=1,
        description="Approximate token budget for attached document context.",
    )

    model_config = SettingsConfigDict(env_prefix="GOV_", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats values passed in from the configuration file.
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load and validate governor settings.

    Configuration values are read from the configuration file and then merged
    with environment variables using ``pydantic-settings``. When a value is
    provided in both sources the environment variable wins. A ``.env`` file in
    the working directory is loaded automatically when present. The optional
    ``config_path`` parameter overrides the default ``config/app.yaml``
    location.

    Args:
        config_path: Optional path to a YAML configuration file.

    Returns:
        Settings: Fully validated configuration.

    Raises:
        RuntimeError: If configuration values are invalid.
    """
    if config_path:
        cfg_path = Path(config_path)
        config = load_app_config(cfg_path.parent, cfg_path.name)
    else:
        config = load_app_config()
    env_file_path = Path(".env")
    env_file = env_file_path if env_file_path.exists() else None
    try:
        # Validate and merge configuration from file, env file and environment.
        return Settings(**config.model_dump(), _env_file=env_file)
    except ValidationError as exc:
        # Summarise validation issues so the caller receives clear feedback.
        details = "; ".join(
            f"{'.'.join(map(str, error['loc']))}: {error['msg']}"
            for error in exc.errors()
        )
        raise RuntimeError(f"Invalid configuration: {details}") from exc
