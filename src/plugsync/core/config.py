"""
Configuration management for plugsync.

Loads configuration from YAML files with environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from plugsync.core.errors import ConfigurationError


# Default configuration paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "plugsync"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
SYSTEM_CONFIG_FILE = Path("/etc/plugsync/config.yaml")


@dataclass
class ManagerConfig:
    """Reconciliation loop configuration."""

    poll_interval: float = 10.0
    device_timeout: float = 5.0
    max_workers: int = 4
    discovery_backoff_max: float = 0.0


@dataclass
class DiscoveryConfig:
    """Device discovery configuration."""

    backend: str = "kasa"
    target: str = "255.255.255.255"
    timeout: float = 5.0
    hosts: list[str] = field(default_factory=list)
    network: Optional[str] = None
    port: int = 80
    relays: int = 1
    probe_timeout: float = 1.0


@dataclass
class Config:
    """Main configuration for plugsync."""

    manager: ManagerConfig = field(default_factory=ManagerConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    # label -> desired state; None manages the plug without enforcing a state
    devices: dict[str, Optional[bool]] = field(default_factory=dict)
    alert_log: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def labels(self) -> list[str]:
        return list(self.devices)

    @property
    def desired_states(self) -> dict[str, bool]:
        return {label: on for label, on in self.devices.items() if on is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create Config from dictionary.

        Raises:
            ConfigurationError: If a value has the wrong type
        """
        manager_data = data.get("manager") or {}
        discovery_data = data.get("discovery") or {}

        try:
            manager = ManagerConfig(
                poll_interval=float(manager_data.get("poll_interval", 10.0)),
                device_timeout=float(manager_data.get("device_timeout", 5.0)),
                max_workers=int(manager_data.get("max_workers", 4)),
                discovery_backoff_max=float(manager_data.get("discovery_backoff_max", 0.0)),
            )

            discovery = DiscoveryConfig(
                backend=str(discovery_data.get("backend", "kasa")).lower(),
                target=discovery_data.get("target", "255.255.255.255"),
                timeout=float(discovery_data.get("timeout", 5.0)),
                hosts=[str(h) for h in discovery_data.get("hosts") or []],
                network=discovery_data.get("network"),
                port=int(discovery_data.get("port", 80)),
                relays=int(discovery_data.get("relays", 1)),
                probe_timeout=float(discovery_data.get("probe_timeout", 1.0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        devices = _parse_devices(data.get("devices") or {})
        alert_log = data.get("alert_log")

        return cls(
            manager=manager,
            discovery=discovery,
            devices=devices,
            alert_log=Path(alert_log) if alert_log else None,
            log_level=data.get("log_level", "INFO"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert Config to dictionary."""
        return {
            "manager": {
                "poll_interval": self.manager.poll_interval,
                "device_timeout": self.manager.device_timeout,
                "max_workers": self.manager.max_workers,
                "discovery_backoff_max": self.manager.discovery_backoff_max,
            },
            "discovery": {
                "backend": self.discovery.backend,
                "target": self.discovery.target,
                "timeout": self.discovery.timeout,
                "hosts": list(self.discovery.hosts),
                "network": self.discovery.network,
                "port": self.discovery.port,
                "relays": self.discovery.relays,
                "probe_timeout": self.discovery.probe_timeout,
            },
            "devices": dict(self.devices),
            "alert_log": str(self.alert_log) if self.alert_log else None,
            "log_level": self.log_level,
        }


_STATE_WORDS = {"on": True, "off": False}


def _parse_devices(data: Any) -> dict[str, Optional[bool]]:
    """
    Parse the devices section.

    Accepts a mapping of label to on/off/true/false/null, or a plain list
    of labels (managed without a desired state).
    """
    if isinstance(data, list):
        return {str(label): None for label in data}
    if not isinstance(data, dict):
        raise ConfigurationError("'devices' must be a mapping or a list of labels")

    devices: dict[str, Optional[bool]] = {}
    for label, state in data.items():
        if state is None or isinstance(state, bool):
            devices[str(label)] = state
        elif isinstance(state, str) and state.lower() in _STATE_WORDS:
            devices[str(label)] = _STATE_WORDS[state.lower()]
        else:
            raise ConfigurationError(f"Invalid state {state!r} for device {label!r}")
    return devices


def load_config(
    config_path: Optional[Path] = None,
    create_if_missing: bool = False,
) -> Config:
    """
    Load configuration from YAML file.

    Search order:
    1. Explicit path if provided
    2. PLUGSYNC_CONFIG environment variable
    3. ~/.config/plugsync/config.yaml
    4. /etc/plugsync/config.yaml
    5. Default values

    Environment variable overrides:
    - PLUGSYNC_POLL_INTERVAL: Override manager.poll_interval
    - PLUGSYNC_DEVICE_TIMEOUT: Override manager.device_timeout
    - PLUGSYNC_BACKEND: Override discovery.backend
    - PLUGSYNC_LOG_LEVEL: Override log_level

    Args:
        config_path: Optional explicit path to config file
        create_if_missing: Create default config if no config found

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file found is not valid YAML or has invalid values
    """
    # Determine config file path
    if config_path:
        paths_to_try = [config_path]
    else:
        env_path = os.environ.get("PLUGSYNC_CONFIG")
        paths_to_try = []
        if env_path:
            paths_to_try.append(Path(env_path))
        paths_to_try.extend([DEFAULT_CONFIG_FILE, SYSTEM_CONFIG_FILE])

    # Try to load from file
    config_data = {}
    for path in paths_to_try:
        if path.exists():
            try:
                with open(path) as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            if not isinstance(config_data, dict):
                raise ConfigurationError(f"Top level of {path} must be a mapping")
            break

    # Create config from loaded data (or defaults)
    config = Config.from_dict(config_data)

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    # Create default config file if requested and none exists
    if create_if_missing and not any(p.exists() for p in paths_to_try):
        save_config(config, DEFAULT_CONFIG_FILE)

    return config


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if "PLUGSYNC_POLL_INTERVAL" in os.environ:
        try:
            config.manager.poll_interval = float(os.environ["PLUGSYNC_POLL_INTERVAL"])
        except ValueError:
            pass

    if "PLUGSYNC_DEVICE_TIMEOUT" in os.environ:
        try:
            config.manager.device_timeout = float(os.environ["PLUGSYNC_DEVICE_TIMEOUT"])
        except ValueError:
            pass

    if "PLUGSYNC_BACKEND" in os.environ:
        config.discovery.backend = os.environ["PLUGSYNC_BACKEND"].lower()

    if "PLUGSYNC_LOG_LEVEL" in os.environ:
        config.log_level = os.environ["PLUGSYNC_LOG_LEVEL"]

    return config


def save_config(config: Config, path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        path: Path to save to
    """
    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    # Write config with header comment
    with open(path, "w") as f:
        f.write("# plugsync configuration\n")
        f.write("# devices maps plug labels to their desired state (on, off or null)\n\n")
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def get_default_config() -> Config:
    """Get default configuration without loading from file."""
    return Config()
