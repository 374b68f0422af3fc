"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from plugsync.core import config as config_module
from plugsync.core.config import (
    Config,
    DiscoveryConfig,
    ManagerConfig,
    get_default_config,
    load_config,
    save_config,
)
from plugsync.core.errors import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from real user and system config files."""
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_FILE", tmp_path / "home" / "config.yaml")
    monkeypatch.setattr(config_module, "SYSTEM_CONFIG_FILE", tmp_path / "etc" / "config.yaml")
    for name in (
        "PLUGSYNC_CONFIG",
        "PLUGSYNC_POLL_INTERVAL",
        "PLUGSYNC_DEVICE_TIMEOUT",
        "PLUGSYNC_BACKEND",
        "PLUGSYNC_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestManagerConfig:
    """Tests for ManagerConfig dataclass."""

    def test_default_values(self):
        """Test default manager configuration."""
        config = ManagerConfig()
        assert config.poll_interval == 10.0
        assert config.device_timeout == 5.0
        assert config.max_workers == 4
        assert config.discovery_backoff_max == 0.0


class TestDiscoveryConfig:
    """Tests for DiscoveryConfig dataclass."""

    def test_default_values(self):
        """Test default discovery configuration."""
        config = DiscoveryConfig()
        assert config.backend == "kasa"
        assert config.hosts == []
        assert config.network is None
        assert config.port == 80


class TestConfig:
    """Tests for main Config class."""

    def test_default_values(self):
        """Test default configuration values."""
        config = Config()
        assert isinstance(config.manager, ManagerConfig)
        assert isinstance(config.discovery, DiscoveryConfig)
        assert config.devices == {}
        assert config.log_level == "INFO"

    def test_from_dict_custom_values(self):
        """Test creating config from dict with custom values."""
        data = {
            "manager": {"poll_interval": 2, "max_workers": 8},
            "discovery": {
                "backend": "Shelly",
                "hosts": ["10.0.0.1"],
                "network": "10.0.1.0/24",
                "relays": 2,
            },
            "devices": {"lamp": True, "fan": "off", "printer": None},
            "alert_log": "/var/log/plugsync/alerts.log",
            "log_level": "DEBUG",
        }
        config = Config.from_dict(data)

        assert config.manager.poll_interval == 2.0
        assert config.manager.max_workers == 8
        assert config.discovery.backend == "shelly"
        assert config.discovery.network == "10.0.1.0/24"
        assert config.discovery.relays == 2
        assert config.devices == {"lamp": True, "fan": False, "printer": None}
        assert config.alert_log == Path("/var/log/plugsync/alerts.log")
        assert config.log_level == "DEBUG"

    def test_labels_and_desired_states(self):
        """Test labels include unenforced plugs, desired states do not."""
        config = Config.from_dict({"devices": {"lamp": True, "printer": None}})

        assert config.labels == ["lamp", "printer"]
        assert config.desired_states == {"lamp": True}

    def test_devices_as_list(self):
        """Test a plain list of labels is accepted."""
        config = Config.from_dict({"devices": ["lamp", "fan"]})
        assert config.devices == {"lamp": None, "fan": None}

    def test_invalid_device_state(self):
        """Test an unrecognised device state is rejected."""
        with pytest.raises(ConfigurationError, match="Invalid state"):
            Config.from_dict({"devices": {"lamp": "dim"}})

    def test_invalid_number(self):
        """Test non-numeric values are rejected."""
        with pytest.raises(ConfigurationError):
            Config.from_dict({"manager": {"poll_interval": "often"}})

    def test_roundtrip(self):
        """Test config survives to_dict/from_dict roundtrip."""
        original = Config.from_dict({"devices": {"lamp": False}})
        restored = Config.from_dict(original.to_dict())

        assert restored.devices == original.devices
        assert restored.manager == original.manager
        assert restored.discovery == original.discovery


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_default_config(self):
        """Test loading config with no file returns defaults."""
        config = load_config()
        assert isinstance(config, Config)
        assert config.manager.poll_interval == 10.0

    def test_load_from_explicit_path(self, tmp_path):
        """Test loading config from explicit path."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            """
manager:
  poll_interval: 30
devices:
  lamp: on
  heater: off
log_level: WARNING
"""
        )
        config = load_config(config_file)
        assert config.manager.poll_interval == 30.0
        assert config.devices == {"lamp": True, "heater": False}
        assert config.log_level == "WARNING"

    def test_load_from_env_path(self, tmp_path, monkeypatch):
        """Test PLUGSYNC_CONFIG points at the config file."""
        config_file = tmp_path / "env.yaml"
        config_file.write_text("log_level: ERROR\n")
        monkeypatch.setenv("PLUGSYNC_CONFIG", str(config_file))

        assert load_config().log_level == "ERROR"

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("manager: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_file)

    def test_non_mapping(self, tmp_path):
        """Test a YAML list at top level is rejected."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- lamp\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(config_file)

    def test_env_overrides(self, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.setenv("PLUGSYNC_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("PLUGSYNC_DEVICE_TIMEOUT", "1")
        monkeypatch.setenv("PLUGSYNC_BACKEND", "TASMOTA")
        monkeypatch.setenv("PLUGSYNC_LOG_LEVEL", "DEBUG")

        config = load_config()

        assert config.manager.poll_interval == 2.5
        assert config.manager.device_timeout == 1.0
        assert config.discovery.backend == "tasmota"
        assert config.log_level == "DEBUG"

    def test_env_override_invalid_interval(self, monkeypatch):
        """Test invalid PLUGSYNC_POLL_INTERVAL is ignored."""
        monkeypatch.setenv("PLUGSYNC_POLL_INTERVAL", "not-a-number")
        config = load_config()
        assert config.manager.poll_interval == 10.0  # Default

    def test_create_if_missing(self):
        """Test a default config file is written when requested."""
        load_config(create_if_missing=True)
        assert config_module.DEFAULT_CONFIG_FILE.exists()


class TestSaveConfig:
    """Tests for save_config function."""

    def test_save_config(self, tmp_path):
        """Test saving config to file."""
        config_file = tmp_path / "subdir" / "config.yaml"

        save_config(Config(), config_file)

        content = config_file.read_text()
        assert "manager:" in content
        assert "poll_interval:" in content

    def test_save_and_load_roundtrip(self, tmp_path):
        """Test config survives save/load roundtrip."""
        original = Config()
        original.manager.poll_interval = 3.0
        original.devices = {"lamp": True, "printer": None}
        original.log_level = "ERROR"

        config_file = tmp_path / "config.yaml"
        save_config(original, config_file)
        loaded = load_config(config_file)

        assert loaded.manager.poll_interval == 3.0
        assert loaded.devices == {"lamp": True, "printer": None}
        assert loaded.log_level == "ERROR"


class TestGetDefaultConfig:
    """Tests for get_default_config function."""

    def test_returns_defaults(self):
        """Test get_default_config returns default values."""
        config = get_default_config()
        assert isinstance(config, Config)
        assert config.discovery.backend == "kasa"
