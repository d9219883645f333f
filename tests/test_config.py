"""Tests for configuration loading and validation."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
import yaml

from restgate.config.loader import ConfigError, load_config, save_config
from restgate.config.schema import GatewayConfig


def test_default_config():
    """Test that default config has expected values."""
    config = GatewayConfig()

    assert config.server.host == "127.0.0.1"
    assert config.server.port == 8080
    assert config.server.log_level == "info"

    assert config.probe.attempts == 3
    assert config.probe.deadline == 240.0
    assert config.probe.backoff == 5.0
    assert config.forward.timeout == 300.0

    assert config.pool.size == 3
    assert config.pool.strategy == "random"

    assert config.platform.backend == "static"
    assert config.platform.static.base_url == "http://localhost:3000"
    assert config.platform.docker.port == 3000
    assert config.platform.docker.sleep_after == 900.0
    assert config.platform.docker.max_lifetime == 7200.0
    assert config.platform.docker.startup_timeout == 600.0
    assert config.platform.docker.health_check.path == "/"
    assert config.platform.docker.health_check.interval == 10.0
    assert config.platform.docker.health_check.timeout == 5.0
    assert config.platform.docker.health_check.retries == 30
    assert config.platform.docker.environment == {
        "POSTGRES_PASSWORD": "postgres",
        "POSTGRES_DB": "postgres",
    }


def test_load_config_nonexistent_returns_defaults():
    """Test that loading a nonexistent config returns defaults."""
    with TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / "nonexistent.yaml")

        assert config.probe.attempts == 3


def test_load_config_empty_file_returns_defaults():
    """Test that an empty config file returns defaults."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "empty.yaml"
        config_path.write_text("")

        config = load_config(config_path)
        assert config.pool.size == 3


def test_load_config_partial_override():
    """Test that partial config overrides only specified values."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "partial.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "probe": {"attempts": 5},
                    "pool": {"strategy": "round_robin"},
                    "platform": {"backend": "docker", "docker": {"image": "acme/pgrst:1"}},
                }
            )
        )

        config = load_config(config_path)

        assert config.probe.attempts == 5
        assert config.probe.deadline == 240.0
        assert config.pool.strategy == "round_robin"
        assert config.platform.backend == "docker"
        assert config.platform.docker.image == "acme/pgrst:1"
        assert config.platform.docker.port == 3000


def test_load_config_health_check_override():
    """Test nested health check settings load from YAML."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "health.yaml"
        config_path.write_text(
            yaml.safe_dump({"platform": {"docker": {"health_check": {"interval": 2, "retries": 5}}}})
        )

        config = load_config(config_path)

        assert config.platform.docker.health_check.interval == 2.0
        assert config.platform.docker.health_check.retries == 5
        assert config.platform.docker.health_check.timeout == 5.0


def test_load_config_invalid_yaml():
    """Test that malformed YAML raises ConfigError."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "bad.yaml"
        config_path.write_text("probe: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_path)


def test_load_config_validation_error():
    """Test that out-of-range values raise ConfigError."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "invalid.yaml"
        config_path.write_text(yaml.safe_dump({"probe": {"attempts": 0}}))

        with pytest.raises(ConfigError, match="validation failed"):
            load_config(config_path)


def test_load_config_unknown_strategy():
    """Test that unknown pool strategies are rejected."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "invalid.yaml"
        config_path.write_text(yaml.safe_dump({"pool": {"strategy": "least_loaded"}}))

        with pytest.raises(ConfigError):
            load_config(config_path)


def test_load_config_non_mapping():
    """Test that a top-level list is rejected."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "list.yaml"
        config_path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_path)


def test_save_and_reload(tmp_path):
    """Test saved config loads back with the same values."""
    config = GatewayConfig()
    config.server.port = 9090
    config.platform.static.base_url = "http://db.internal:3000"
    config_path = tmp_path / "nested" / "restgate.yaml"

    save_config(config, str(config_path))
    loaded = load_config(config_path)

    assert loaded.server.port == 9090
    assert loaded.platform.static.base_url == "http://db.internal:3000"
