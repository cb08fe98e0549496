"""Worker settings with Pydantic Settings validation.

Process settings come from the environment (``HELIOS_`` prefix, ``.env``)
with defaults taken from ``config/worker.yaml``. Service configuration, the
mapping handlers read through ``JobContext.config_value``, lives in
``config/services/<service>.yaml`` and is validated against a JSON Schema
when one is available.
"""

import json
from pathlib import Path
from typing import Any, Final, cast

import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from helios_worker.config.logging_config import get_logger

WORKER_SLOTS_DEFAULT: Final[int] = 1
POLL_INTERVAL_SECONDS_DEFAULT: Final[float] = 2.0
CANCEL_POLL_INTERVAL_SECONDS_DEFAULT: Final[float] = 0.05
PERSIST_MAX_ATTEMPTS_DEFAULT: Final[int] = 3
PERSIST_BACKOFF_SECONDS_DEFAULT: Final[float] = 0.5
METRICS_PORT_DEFAULT: Final[int] = 9000

logger = cast(Any, get_logger(__name__))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_schema(config_dir: Path, schema_name: str) -> dict[str, Any]:
    """Load JSON Schema from ``<config_dir>/schemas/``.

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = config_dir / "schemas" / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(
            "config_schema_load_failed",
            schema=schema_name,
            error=str(e),
        )
        return {}


def validate_config_section(
    config: dict[str, Any], config_dir: Path, schema_name: str, file_path: str = ""
) -> None:
    """Validate a config mapping against its JSON Schema.

    Raises:
        ValueError: If validation fails
    """
    schema = load_schema(config_dir, schema_name)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        error_msg += f": {e.message}"
        raise ValueError(error_msg) from e


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return loaded


def load_worker_config(config_dir: Path) -> dict[str, Any]:
    """Load ``worker.yaml`` plus ``worker.local.yaml`` overrides, if present."""

    merged: dict[str, Any] = {}
    for name in ("worker.yaml", "worker.local.yaml"):
        path = config_dir / name
        if not path.exists():
            continue
        try:
            file_config = _load_yaml_mapping(path)
        except (yaml.YAMLError, OSError) as e:
            logger.warning("config_file_load_failed", path=str(path), error=str(e))
            continue
        validate_config_section(file_config, config_dir, "worker", str(path))
        merged = deep_merge(merged, file_config)
        logger.debug("config_file_loaded", path=str(path), schema="worker")
    return merged


def load_service_config(config_dir: Path, service_name: str) -> dict[str, Any]:
    """Load the configuration mapping for one service.

    A missing file yields an empty mapping. Unreadable or invalid files raise
    ``ValueError`` so a worker never runs handlers against a broken config.
    """

    path = config_dir / "services" / f"{service_name}.yaml"
    if not path.exists():
        logger.info("service_config_missing", service=service_name, path=str(path))
        return {}

    try:
        config = _load_yaml_mapping(path)
    except (yaml.YAMLError, OSError) as e:
        raise ValueError(f"Failed to load service config {path}: {e}") from e

    validate_config_section(config, config_dir, "service", str(path))
    logger.info("service_config_loaded", service=service_name, keys=len(config))
    return config


class Settings(BaseSettings):
    """Worker process settings."""

    model_config = SettingsConfigDict(
        env_prefix="HELIOS_",
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(
        default="TestService", description="Service whose jobs this worker runs"
    )
    config_dir: Path = Field(
        default=Path("config"), description="Directory holding YAML configs"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON logs")
    worker_slots: int = Field(
        default=WORKER_SLOTS_DEFAULT, description="Parallel worker slots"
    )
    poll_interval_seconds: float = Field(
        default=POLL_INTERVAL_SECONDS_DEFAULT,
        description="Seconds to wait between claims when the queue is idle",
    )
    cancel_poll_interval_seconds: float = Field(
        default=CANCEL_POLL_INTERVAL_SECONDS_DEFAULT,
        description="How often a running handler checks for cancellation",
    )
    persist_max_attempts: int = Field(
        default=PERSIST_MAX_ATTEMPTS_DEFAULT,
        description="Attempts to persist an outcome before surfacing the error",
    )
    persist_backoff_seconds: float = Field(
        default=PERSIST_BACKOFF_SECONDS_DEFAULT,
        description="Base delay between outcome persistence attempts",
    )
    metrics_port: int | None = Field(
        default=None, description="Prometheus exporter port (disabled when unset)"
    )

    @field_validator("worker_slots", "persist_max_attempts")
    @classmethod
    def _validate_positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    @field_validator("poll_interval_seconds", "cancel_poll_interval_seconds")
    @classmethod
    def _validate_positive_float(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    def __init__(self, **data: Any):
        """Initialize settings, filling unset fields from ``worker.yaml``."""
        super().__init__(**data)
        self._apply_yaml_defaults(load_worker_config(self.config_dir))

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding env-provided values."""

        fields_from_env = set(self.model_fields_set)

        def _assign(field_name: str, value: Any) -> None:
            if value is None:
                return
            if field_name in fields_from_env:
                return

            object.__setattr__(self, field_name, value)
            self.model_fields_set.add(field_name)

        _assign("service_name", config.get("service"))

        logging_config = config.get("logging") or {}
        level = logging_config.get("level")
        _assign("log_level", level.upper() if isinstance(level, str) else None)
        _assign("json_logs", logging_config.get("json"))

        worker_config = config.get("worker") or {}
        _assign("worker_slots", worker_config.get("slots"))
        _assign("poll_interval_seconds", worker_config.get("poll_interval_seconds"))
        _assign(
            "cancel_poll_interval_seconds",
            worker_config.get("cancel_poll_interval_seconds"),
        )

        persistence_config = config.get("persistence") or {}
        _assign("persist_max_attempts", persistence_config.get("max_attempts"))
        _assign("persist_backoff_seconds", persistence_config.get("backoff_seconds"))

        metrics_config = config.get("metrics") or {}
        _assign("metrics_port", metrics_config.get("port"))

    def service_config(self) -> dict[str, Any]:
        """Configuration mapping for ``service_name``."""

        return load_service_config(self.config_dir, self.service_name)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
