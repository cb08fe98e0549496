"""Structured logging for the worker and for handler output.

Worker events are snake_case names with keyword fields. Lines written by
handlers arrive as ``handler_log`` events and are rendered with the handler's
own text as the event, so a job log reads like the handler wrote it.
"""

import logging
import sys
from typing import Any, Final

import structlog
from structlog.types import EventDict, Processor

HANDLER_LOG_EVENT: Final[str] = "handler_log"


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["app"] = "helios_worker"
    return event_dict


def render_handler_lines(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Promote a handler's message to the event text, tagged with its job.

    Args:
        logger: Logger instance
        method_name: Method name
        event_dict: Event dictionary

    Returns:
        Event dictionary; non-handler events pass through untouched
    """
    if event_dict.get("event") != HANDLER_LOG_EVENT:
        return event_dict

    message = event_dict.pop("message", "")
    event_dict["event"] = str(message)
    event_dict["source"] = "handler"
    event_dict.setdefault("job_id", None)
    return event_dict


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines for production; colored console output otherwise

    Example:
        >>> setup_logging(log_level="INFO", json_logs=True)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        render_handler_lines,
        add_app_context,
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("job_dispatched", job_id="42", handler="log_arguments")
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: Any) -> None:
    """Bind context (e.g. ``worker_slot``) for later entries in this thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)
