"""Tests for YAML configuration loading and environment overrides."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
import yaml

from factory_monitor.config import ConfigLoadError, load_config
from factory_monitor.config.models import LogLevel, StorageBackend
from factory_monitor.models.alerts import SeverityPolicy

REPO_CONFIG = Path(__file__).parents[3] / "config"

ENV_VARS = (
    "CONFIG_PATH",
    "MONITORING_INTERVAL_SECONDS",
    "EMAIL_GATEWAY_URL",
    "SMS_GATEWAY_URL",
    "STORAGE_BACKEND",
    "REDIS_URL",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    for source in REPO_CONFIG.glob("*.yaml"):
        shutil.copy(source, tmp_path / source.name)
    return tmp_path


def _rewrite(path: Path, **changes: object) -> None:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    data.update(changes)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


def test_repository_config_loads_with_production_defaults() -> None:
    config = load_config(REPO_CONFIG)

    assert config.monitoring.severity == SeverityPolicy()
    assert config.monitoring.scheduler.monitoring_interval_seconds == 10.0
    assert config.monitoring.retention.alert_retention_days == 90
    assert config.notifications.notification_pool.queue_capacity == 100
    assert config.notifications.general_pool.max_size == 10
    assert config.notifications.topics.severity_topic("high") == "/topic/alerts/high"
    assert config.notifications.topics.facility_topic(2) == "/topic/facility/2/alerts"
    assert not config.notifications.email.enabled
    assert config.storage_backend == StorageBackend.MEMORY
    assert not config.uses_redis
    assert len(config.seed.sensors) == 7


def test_environment_overrides(config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONITORING_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("EMAIL_GATEWAY_URL", "https://mail.plant.local/send")
    monkeypatch.setenv("STORAGE_BACKEND", "REDIS")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6380")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config(config_dir)

    assert config.monitoring.scheduler.monitoring_interval_seconds == 2.5
    assert config.notifications.email.url == "https://mail.plant.local/send"
    assert config.notifications.email.enabled
    assert not config.notifications.sms.enabled
    assert config.uses_redis
    assert config.redis.url == "redis://cache:6380"
    assert config.logging.level == LogLevel.DEBUG


def test_config_path_env_is_used_when_no_dir_given(
    config_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CONFIG_PATH", str(config_dir))

    assert load_config().monitoring.severity.recent_window_minutes == 30


def test_seed_file_is_optional(config_dir: Path) -> None:
    (config_dir / "seed.yaml").unlink()

    config = load_config(config_dir)

    assert config.seed.sensors == []


def test_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="not found"):
        load_config(tmp_path / "nope")


def test_missing_required_file_raises(config_dir: Path) -> None:
    (config_dir / "notifications.yaml").unlink()

    with pytest.raises(ConfigLoadError, match="notifications.yaml"):
        load_config(config_dir)


def test_invalid_yaml_raises(config_dir: Path) -> None:
    (config_dir / "monitoring.yaml").write_text("scheduler: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigLoadError, match="Invalid YAML"):
        load_config(config_dir)


def test_pool_max_below_core_is_rejected(config_dir: Path) -> None:
    _rewrite(
        config_dir / "notifications.yaml",
        notification_pool={
            "core_size": 5,
            "max_size": 2,
            "queue_capacity": 100,
            "shutdown_grace_seconds": 10,
        },
    )

    with pytest.raises(ConfigLoadError):
        load_config(config_dir)


def test_unknown_storage_backend_is_rejected(
    config_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "postgres")

    with pytest.raises(ConfigLoadError, match="STORAGE_BACKEND"):
        load_config(config_dir)


def test_seed_sensor_with_unknown_facility_is_rejected(config_dir: Path) -> None:
    _rewrite(
        config_dir / "seed.yaml",
        sensors=[{"id": 1, "facility_id": 42, "name": "Orphan", "type": "TEMPERATURE"}],
    )

    with pytest.raises(ConfigLoadError):
        load_config(config_dir)


def test_seed_sensor_with_inverted_thresholds_is_rejected(config_dir: Path) -> None:
    _rewrite(
        config_dir / "seed.yaml",
        sensors=[
            {
                "id": 1,
                "facility_id": 1,
                "name": "Oil temperature",
                "type": "TEMPERATURE",
                "threshold_min": 90.0,
                "threshold_max": 60.0,
            }
        ],
    )

    with pytest.raises(ConfigLoadError):
        load_config(config_dir)
