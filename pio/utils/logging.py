import logging
import re
import sys
import uuid
from typing import Any, Dict, Optional

import structlog

_PATH_PATTERN = re.compile(r"^(/|[A-Za-z]:\\|\\\\)")


def redact_paths(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask absolute file system paths in log entries."""
    sensitive_keys = {"path", "input_path", "output_path", "filename"}

    for key, value in list(event_dict.items()):
        if key in sensitive_keys and value is not None:
            event_dict[key] = "***PATH_REDACTED***"
        elif isinstance(value, str) and key != "event" and _PATH_PATTERN.match(value):
            event_dict[key] = "***PATH_REDACTED***"
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    redact: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Use JSON format for logs
        redact: Mask file system paths in log entries
    """
    level = getattr(logging, log_level.upper())

    # Always use stderr, stdout may carry image bytes
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if redact:
        processors.append(redact_paths)

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        handlers=[console_handler],
        level=level,
        force=True,
    )

    # Suppress noisy loggers
    logging.getLogger("PIL").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


class LoggingContext:
    """Context manager for adding context to logs."""

    def __init__(self, **kwargs) -> None:
        self.context = kwargs
        self.tokens = None

    def __enter__(self) -> "LoggingContext":
        self.tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.reset_contextvars(**self.tokens)
