"""Harness configuration using Pydantic BaseSettings.

All settings are loaded from environment variables, including those that
drive log output (see ``lambda_harness.logging.config``).
The Lambda service always exports AWS_REGION; local replays take the
region from the replay document instead.

Usage:
    from lambda_harness.config import get_settings

    settings = get_settings()
    print(settings.require_region())
"""

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lambda_harness.exceptions.invocation_errors import ConfigurationError


class LogLevel(StrEnum):
    """Valid log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(StrEnum):
    """Valid log formats."""

    JSON = "json"
    HUMAN = "human"


class Settings(BaseSettings):
    """Harness settings loaded from environment variables.

    Attributes:
        service_name: Name of this function, written to every JSON log entry.
        aws_region: AWS region used to build the secret store client.
        log_level: Minimum log level to output.
        log_format: json inside Lambda, human for local replays.
        include_location: Whether log entries carry module/function/line.
        deadline_safety_margin_ms: Lead time before the hard deadline at
            which an invocation is failed with a timeout.
        throttle_retry_delay_ms: Base cool-down after a throttled store call.
        throttle_max_attempts: Attempts per store call while throttled,
            0 retries forever.
    """

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
        str_strip_whitespace=True,
    )

    service_name: str = Field(default="lambda-harness", min_length=1)

    aws_region: str | None = Field(default=None)

    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: LogFormat = Field(default=LogFormat.JSON)
    include_location: bool = Field(default=False)

    deadline_safety_margin_ms: int = Field(default=100, ge=0)
    throttle_retry_delay_ms: int = Field(default=100, ge=1, le=1000)
    throttle_max_attempts: int = Field(default=10, ge=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the allowed values, in any case."""
        allowed = {level.value for level in LogLevel}
        upper_value = str(value).upper()
        if upper_value not in allowed:
            error_message = f"log_level must be one of {allowed}, got '{value}'"
            raise ValueError(error_message)
        return upper_value

    @field_validator("aws_region")
    @classmethod
    def blank_region_is_missing(cls, value: str | None) -> str | None:
        """Treat an empty AWS_REGION the same as an unset one."""
        return value or None

    def require_region(self) -> str:
        """Return the configured region.

        Raises:
            ConfigurationError: If no region is configured.
        """
        if self.aws_region is None:
            raise ConfigurationError(
                "Missing AWS_REGION env variable",
                setting="aws_region",
            )
        return self.aws_region


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def validate_startup_config() -> Settings:
    """Validate configuration before the first invocation.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    try:
        return get_settings()
    except ValidationError as error:
        raise ConfigurationError(
            "Invalid harness configuration",
            context={"errors": error.errors(include_url=False)},
        ) from error
