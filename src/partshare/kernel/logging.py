"""
Structured logging for PartShare.

Every log line carries a correlation id so the lines of one allocation run
(plan, picks, commit or rollback) can be grepped together. Participant names
and contact details are scrubbed before any renderer sees them.

Fun fact: Ship's logs were named after the wooden "log" thrown overboard on a
knotted line to measure speed - which is also why speed at sea is in knots!
"""

import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

from partshare.kernel.errors import PartShareError

REDACTED = "***REDACTED***"

# Participant contact details never reach the logs
REDACTED_FIELDS = frozenset({"first_name", "last_name", "display_name", "email", "phone"})


def get_correlation_id() -> str:
    """Correlation id bound to the current context, created on first use"""
    cid = structlog.contextvars.get_contextvars().get("correlation_id")
    if not cid:
        cid = secrets.token_hex(8)
        set_correlation_id(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Replace personal fields with a placeholder.

    Example:
        >>> redact_context({"email": "a@b.c", "participant_id": 7})
        {'email': '***REDACTED***', 'participant_id': 7}
    """
    return {k: REDACTED if k in REDACTED_FIELDS else v for k, v in context.items()}


def _ensure_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("correlation_id", get_correlation_id())
    return event_dict


def _redact_personal_fields(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    return redact_context(event_dict)


def configure_logging(*, json_output: bool = False, log_level: str = "INFO") -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Args:
        json_output: JSON lines (production) instead of console rendering
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    # stderr keeps CLI --json output on stdout clean
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level.upper())
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _ensure_correlation_id,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_personal_fields,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def is_production() -> bool:
    """ENVIRONMENT=production hides stack traces from failure logs"""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


class LogOperation:
    """
    Log the start, outcome and duration of an operation.

    Domain errors (PartShareError) are expected outcomes such as a rejected
    request; they are logged as warnings without a traceback. Anything else
    is an error, with a traceback outside production.

    Example:
        with LogOperation(logger, "allocate", distribution_id=3):
            ...
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, operation: str, **context: Any):
        self.logger = logger.bind(operation=operation, **redact_context(context))
        self.operation = operation
        self.start_time = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation} started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type is None:
            self.logger.info(f"{self.operation} completed", duration_ms=duration_ms)
            return

        if isinstance(exc_val, PartShareError):
            self.logger.warning(
                f"{self.operation} failed", duration_ms=duration_ms, error=str(exc_val)
            )
        else:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=duration_ms,
                error=str(exc_val),
                exc_info=not is_production(),
            )
