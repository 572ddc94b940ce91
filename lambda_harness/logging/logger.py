"""Root logger setup and logger factory."""

import logging
import sys
from dataclasses import dataclass
from typing import TextIO

from lambda_harness.config import LogFormat, get_settings
from lambda_harness.logging.config import LoggingConfig
from lambda_harness.logging.formatters import HumanFormatter, JSONFormatter

# Request-level noise from the AWS SDK; their warnings still get through.
_QUIET_LOGGERS = ("boto3", "botocore", "urllib3")


@dataclass
class _LoggingState:
    config: LoggingConfig | None = None


_state = _LoggingState()


def _formatter_for(config: LoggingConfig, stream: TextIO) -> logging.Formatter:
    if config.log_format == LogFormat.JSON:
        return JSONFormatter(
            service_name=config.service_name,
            include_location=config.include_location,
        )
    return HumanFormatter(use_colors=stream.isatty())


def setup_logging(
    config: LoggingConfig | None = None,
    stream: TextIO | None = None,
    *,
    force: bool = False,
) -> None:
    """Route every record of the process through one harness handler.

    Handlers installed before, such as the one the Lambda Python runtime
    adds, are removed so that no record is written twice. Called once per
    process; later calls are no-ops unless ``force`` is set.

    Args:
        config: What to install. Built from ``get_settings()`` if not provided.
        stream: Output stream for logs. Defaults to sys.stdout.
        force: If True, reconfigure even if already configured.
    """
    if _state.config is not None and not force:
        return

    config = config or LoggingConfig.from_settings(get_settings())
    stream = stream or sys.stdout

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(_formatter_for(config, stream))
    root_logger.addHandler(handler)
    root_logger.setLevel(config.log_level.value)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _state.config = config


def installed_config() -> LoggingConfig | None:
    """Configuration installed by the last ``setup_logging``, None before it."""
    return _state.config


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return logging.getLogger(name)


def reset_logging() -> None:
    """Remove the installed handler. Primarily for testing."""
    _state.config = None

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
