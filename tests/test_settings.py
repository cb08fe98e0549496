from __future__ import annotations

from pathlib import Path

import pytest

from helios_worker.config.settings import (
    Settings,
    deep_merge,
    load_service_config,
)

REPO_CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture(autouse=True)
def _clear_helios_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "HELIOS_SERVICE_NAME",
        "HELIOS_WORKER_SLOTS",
        "HELIOS_LOG_LEVEL",
        "HELIOS_PERSIST_MAX_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_config_files(tmp_path: Path) -> None:
    settings = Settings(config_dir=tmp_path)

    assert settings.service_name == "TestService"
    assert settings.worker_slots == 1
    assert settings.persist_max_attempts == 3
    assert settings.metrics_port is None
    assert settings.service_config() == {}


def test_repository_config_is_valid() -> None:
    settings = Settings(config_dir=REPO_CONFIG_DIR)

    assert settings.worker_slots == 2
    assert settings.service_config()["MAX_RETRIES"] == 3


def test_yaml_values_fill_unset_fields(tmp_path: Path) -> None:
    (tmp_path / "worker.yaml").write_text(
        "service: Indexer\n"
        "logging:\n  level: debug\n"
        "worker:\n  slots: 4\n"
        "persistence:\n  max_attempts: 7\n",
        encoding="utf-8",
    )

    settings = Settings(config_dir=tmp_path)

    assert settings.service_name == "Indexer"
    assert settings.log_level == "DEBUG"
    assert settings.worker_slots == 4
    assert settings.persist_max_attempts == 7


def test_local_overrides_are_merged(tmp_path: Path) -> None:
    (tmp_path / "worker.yaml").write_text(
        "worker:\n  slots: 4\n  poll_interval_seconds: 3.0\n", encoding="utf-8"
    )
    (tmp_path / "worker.local.yaml").write_text(
        "worker:\n  slots: 1\n", encoding="utf-8"
    )

    settings = Settings(config_dir=tmp_path)

    assert settings.worker_slots == 1
    assert settings.poll_interval_seconds == 3.0


def test_environment_wins_over_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "worker.yaml").write_text("worker:\n  slots: 4\n", encoding="utf-8")
    monkeypatch.setenv("HELIOS_WORKER_SLOTS", "6")

    settings = Settings(config_dir=tmp_path)

    assert settings.worker_slots == 6


def test_invalid_environment_value_rejected(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("HELIOS_WORKER_SLOTS", "0")

    with pytest.raises(ValueError):
        Settings(config_dir=tmp_path)


def test_worker_yaml_schema_violation_raises(tmp_path: Path) -> None:
    schemas = tmp_path / "schemas"
    schemas.mkdir()
    (schemas / "worker.schema.json").write_text(
        (REPO_CONFIG_DIR / "schemas" / "worker.schema.json").read_text(
            encoding="utf-8"
        ),
        encoding="utf-8",
    )
    (tmp_path / "worker.yaml").write_text("worker:\n  slots: 0\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Config validation failed for worker"):
        Settings(config_dir=tmp_path)


def test_service_config_must_be_mapping(tmp_path: Path) -> None:
    services = tmp_path / "services"
    services.mkdir()
    (services / "Broken.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_service_config(tmp_path, "Broken")


def test_service_config_invalid_yaml_raises(tmp_path: Path) -> None:
    services = tmp_path / "services"
    services.mkdir()
    (services / "Broken.yaml").write_text("key: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Failed to load service config"):
        load_service_config(tmp_path, "Broken")


def test_deep_merge_prefers_override() -> None:
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    override = {"a": {"y": 3}, "c": 4}

    assert deep_merge(base, override) == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
