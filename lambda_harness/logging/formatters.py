"""Log formatters for Lambda (JSON) and local replay (human) output."""

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any, ClassVar

from lambda_harness.logging.context import get_correlation_id, get_extra_context

_STANDARD_LOG_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
}


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect invocation context plus the record's ``extra=`` fields."""
    fields = get_extra_context()
    fields.update(
        (key, value)
        for key, value in record.__dict__.items()
        if key not in _STANDARD_LOG_ATTRS and not key.startswith("_")
    )
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, as CloudWatch Logs Insights expects."""

    def __init__(
        self,
        *,
        service_name: str = "lambda-harness",
        include_location: bool = False,
    ) -> None:
        """Initialize the JSON formatter.

        Args:
            service_name: Function identifier for log aggregation.
            include_location: Whether to include module/function/line fields.
        """
        super().__init__()
        self._service_name = service_name
        self._include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as a JSON string."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service_name,
        }

        request_id = get_correlation_id()
        if request_id:
            log_entry["request_id"] = request_id

        if self._include_location:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        log_entry.update(_record_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_entry, default=str)


class HumanFormatter(logging.Formatter):
    """Single-line colored output for replaying invocations locally."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, *, use_colors: bool = True) -> None:
        """Initialize the human formatter.

        Args:
            use_colors: Whether to use ANSI colors in output.
        """
        super().__init__()
        self._use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record for human readability."""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        level = f"{record.levelname:<8}"
        if self._use_colors:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        parts = [timestamp, level, record.name, "|", record.getMessage()]

        context_parts = [f"{key}={value}" for key, value in _record_fields(record).items()]
        request_id = get_correlation_id()
        if request_id:
            context_parts.insert(0, f"request_id={request_id}")
        if context_parts:
            parts.extend(["|", " ".join(context_parts)])

        result = " ".join(parts)
        if record.exc_info:
            result += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return result
