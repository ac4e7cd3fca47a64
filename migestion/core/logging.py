# migestion/core/logging.py
from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_REDACTED_KEYS = ("password", "secret", "token", "authorization")


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set (or generate) the id used to correlate every log line of a request."""
    rid = request_id or uuid.uuid4().hex
    request_id_var.set(rid)
    return rid


def _add_request_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    rid = get_request_id()
    if rid:
        event_dict.setdefault("request_id", rid)
    return event_dict


def _redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in list(event_dict.keys()):
        if any(s in key.lower() for s in _REDACTED_KEYS) and isinstance(event_dict[key], str):
            event_dict[key] = "***"
    return event_dict


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the process.

    Args:
        level: minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines when True, colored console output otherwise
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_request_id,
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
