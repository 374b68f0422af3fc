"""
Core components for plugsync.

Provides configuration, the error hierarchy, shared device state and the
reconciliation manager.
"""

from plugsync.core.config import Config, load_config
from plugsync.core.errors import (
    ConfigurationError,
    DeviceIOError,
    DiscoveryError,
    LabelReadError,
    PlugSyncError,
)
from plugsync.core.manager import PlugManager
from plugsync.core.state import DeviceStatus, DeviceTable

__all__ = [
    "Config",
    "load_config",
    "PlugSyncError",
    "ConfigurationError",
    "DiscoveryError",
    "LabelReadError",
    "DeviceIOError",
    "PlugManager",
    "DeviceStatus",
    "DeviceTable",
]
