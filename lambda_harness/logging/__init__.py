"""Structured logging for Lambda invocations.

Usage:
    from lambda_harness.logging import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Rotating secret", extra={"secret_id": "db-credentials"})
"""

from lambda_harness.config import LogFormat, LogLevel
from lambda_harness.logging.config import LoggingConfig
from lambda_harness.logging.context import (
    clear_context,
    correlation_id,
    get_correlation_id,
    get_extra_context,
    set_correlation_id,
    set_extra_context,
)
from lambda_harness.logging.formatters import HumanFormatter, JSONFormatter
from lambda_harness.logging.logger import get_logger, installed_config, reset_logging, setup_logging

__all__ = [
    "HumanFormatter",
    "JSONFormatter",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "clear_context",
    "correlation_id",
    "get_correlation_id",
    "get_extra_context",
    "get_logger",
    "installed_config",
    "reset_logging",
    "set_correlation_id",
    "set_extra_context",
    "setup_logging",
]
