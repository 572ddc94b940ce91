"""Log output configuration derived from the harness settings.

Inside Lambda, records are written to stdout as one JSON object per line so
CloudWatch can index their fields. Local replays print their results on
stdout, so their records are human readable and go to stderr instead.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict

from lambda_harness.config import LogFormat, LogLevel, Settings


class LoggingConfig(BaseModel):
    """What ``setup_logging`` installs on the root logger.

    Attributes:
        log_level: Minimum log level to output.
        log_format: json inside Lambda, human for local replays.
        service_name: Function identifier written to every JSON entry.
        include_location: Whether to include module/function/line info.
    """

    model_config = ConfigDict(frozen=True)

    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.JSON
    service_name: str = "lambda-harness"
    include_location: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "LoggingConfig":
        """Take the logging fields of ``settings``, replacing any given in ``overrides``."""
        values: dict[str, Any] = {
            "log_level": settings.log_level,
            "log_format": settings.log_format,
            "service_name": settings.service_name,
            "include_location": settings.include_location,
        }
        values.update(overrides)
        return cls(**values)
