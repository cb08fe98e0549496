"""Explicit mapping from handler names to handler factories."""

from __future__ import annotations

import threading

from helios_worker.config.logging_config import get_logger
from helios_worker.domain.exceptions import HandlerNotFoundError
from helios_worker.ports.job_handler import HandlerFactory, HandlerLike

logger = get_logger(__name__)


class HandlerRegistry:
    """Registered handlers, resolved by the name carried on each job.

    Factories are called once per job so handler instances never carry state
    from one job into the next.
    """

    def __init__(self) -> None:
        self._factories: dict[str, HandlerFactory] = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: HandlerFactory) -> None:
        if not name or not name.strip():
            raise ValueError("handler name must not be empty")
        if not callable(factory):
            raise ValueError(f"factory for {name!r} must be callable")

        with self._lock:
            if name in self._factories:
                raise ValueError(f"Handler already registered: {name}")
            self._factories[name] = factory
        logger.debug("handler_registered", handler=name)

    def create(self, name: str) -> HandlerLike:
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            raise HandlerNotFoundError(name)
        return factory()

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories

    def __len__(self) -> int:
        with self._lock:
            return len(self._factories)


__all__ = ["HandlerRegistry"]
