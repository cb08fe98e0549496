"""Immutable per-job view handed to handlers."""

from __future__ import annotations

import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Final

from helios_worker.domain.exceptions import MalformedJobError
from helios_worker.domain.models import ArgumentValue, RawJob

_SCALAR_TYPES: Final[tuple[type, ...]] = (str, int, float, bool, type(None))


class _Missing:
    """Sentinel for absent arguments and config keys."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final[_Missing] = _Missing()


class JobContext:
    """Read-only bundle of job identifier, arguments and service configuration.

    Arguments keep their arrival order so handlers can log them
    deterministically. ``None`` is a legitimate argument value; absence is
    reported with ``MISSING``.
    """

    __slots__ = ("_job_id", "_arguments", "_config")

    def __init__(
        self,
        job_id: str,
        arguments: Mapping[str, ArgumentValue],
        config: Mapping[str, Any],
    ) -> None:
        object.__setattr__(self, "_job_id", job_id)
        object.__setattr__(self, "_arguments", MappingProxyType(dict(arguments)))
        object.__setattr__(self, "_config", MappingProxyType(dict(config)))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"JobContext is read-only, cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"JobContext is read-only, cannot delete {name!r}")

    @classmethod
    def from_raw(
        cls, raw_job: RawJob, service_config: Mapping[str, Any] | None = None
    ) -> JobContext:
        """Build a context from a claimed job record.

        Raises:
            MalformedJobError: The job id is empty or the argument mapping
                cannot be decoded.
        """

        job_id = raw_job.job_id
        if not job_id.strip():
            raise MalformedJobError(job_id, "job id must not be empty")

        arguments = _decode_arguments(job_id, raw_job.arguments)
        return cls(job_id, arguments, service_config or {})

    @property
    def job_id(self) -> str:
        return self._job_id

    def argument(self, name: str) -> ArgumentValue | _Missing:
        return self._arguments.get(name, MISSING)

    def all_arguments(self) -> tuple[tuple[str, ArgumentValue], ...]:
        return tuple(self._arguments.items())

    def config_value(self, name: str) -> Any:
        return self._config.get(name, MISSING)

    def __repr__(self) -> str:
        return (
            f"JobContext(job_id={self._job_id!r}, "
            f"arguments={len(self._arguments)}, config={len(self._config)})"
        )


def _decode_arguments(job_id: str, raw: Any) -> dict[str, ArgumentValue]:
    if raw is None:
        return {}

    if isinstance(raw, bytes | bytearray):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedJobError(job_id, "arguments are not valid UTF-8") from exc

    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            pairs = json.loads(raw, object_pairs_hook=_reject_duplicate_names)
        except json.JSONDecodeError as exc:
            raise MalformedJobError(
                job_id, f"arguments are not valid JSON ({exc.msg})"
            ) from exc
        except _DuplicateArgumentName as exc:
            raise MalformedJobError(
                job_id, f"duplicate argument name {exc.name!r}"
            ) from exc
        raw = pairs

    if not isinstance(raw, Mapping):
        raise MalformedJobError(
            job_id, f"arguments must be a mapping, got {type(raw).__name__}"
        )

    decoded: dict[str, ArgumentValue] = {}
    for name, value in raw.items():
        if not isinstance(name, str) or not name:
            raise MalformedJobError(
                job_id, f"argument names must be non-empty strings, got {name!r}"
            )
        if not isinstance(value, _SCALAR_TYPES):
            raise MalformedJobError(
                job_id,
                f"argument {name!r} has unsupported type {type(value).__name__}",
            )
        decoded[name] = value
    return decoded


class _DuplicateArgumentName(ValueError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)


def _reject_duplicate_names(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for name, value in pairs:
        if name in result:
            raise _DuplicateArgumentName(name)
        result[name] = value
    return result


__all__ = ["JobContext", "MISSING"]
