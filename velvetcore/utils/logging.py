"""
Structured logging for VelvetCore.

Store requests carry the anon key twice (``apikey`` and ``Authorization``)
and error payloads sometimes echo them back, so every event passes through
a redaction processor before rendering. Owner ids are not secrets and are
logged as-is.
"""

import re
import sys
from typing import Any

import structlog

from velvetcore.constants import PROJECT_NAME, SENSITIVE_PATTERNS

_SECRET_RES = [re.compile(p) for p in SENSITIVE_PATTERNS]

_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def _redact_secrets(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Redact store keys anywhere in the event, including row payloads."""
    return {key: _redact_value(value) for key, value in event_dict.items()}


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, dict):
        return {k: _redact_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v) for v in value)
    return value


def _redact_string(text: str) -> str:
    for secret in _SECRET_RES:
        text = secret.sub("[REDACTED]", text)
    return text


def _add_service(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", PROJECT_NAME)
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    redact_secrets: bool = True,
) -> None:
    """
    Configure structlog for the process. Called once by create_service()
    from the [logging] config section; log lines go to stderr.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    # Redact after exception formatting so tracebacks are covered too.
    if redact_secrets:
        processors.append(_redact_secrets)

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_to_int(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str = "") -> structlog.BoundLogger:
    """Logger bound to a component name such as "database" or "sessions"."""
    logger = structlog.get_logger()
    if component:
        logger = logger.bind(component=component)
    return logger


def _level_to_int(level: str) -> int:
    return _LEVELS.get(level.upper(), _LEVELS["INFO"])
