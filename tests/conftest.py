"""Shared test fixtures."""

import pytest

from lambda_harness.config import get_settings
from lambda_harness.logging.logger import reset_logging


@pytest.fixture(autouse=True)
def _clear_environment(monkeypatch):
    """Clear environment variables that affect settings."""
    env_vars_to_clear = [
        "SERVICE_NAME",
        "AWS_REGION",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "INCLUDE_LOCATION",
        "DEADLINE_SAFETY_MARGIN_MS",
        "THROTTLE_RETRY_DELAY_MS",
        "THROTTLE_MAX_ATTEMPTS",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    reset_logging()
