"""Handler package exports."""

from helios_worker.handlers.log_arguments import (
    LOG_ARGUMENTS_HANDLER_NAME,
    LogArgumentsHandler,
)
from helios_worker.handlers.registry import HandlerRegistry


def default_registry() -> HandlerRegistry:
    """Registry with the built-in handlers."""

    registry = HandlerRegistry()
    registry.register(LOG_ARGUMENTS_HANDLER_NAME, LogArgumentsHandler)
    return registry


__all__ = [
    "HandlerRegistry",
    "LOG_ARGUMENTS_HANDLER_NAME",
    "LogArgumentsHandler",
    "default_registry",
]
