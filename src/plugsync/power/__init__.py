"""
Power switch module for plugsync.

Provides device handles for Kasa, Tasmota and Shelly smart plugs and the
discovery functions that find them on the network.
"""

from plugsync.power.base import DeviceHandle, PlugType, get_handle
from plugsync.power.discovery import HostDiscovery, KasaDiscovery, build_discovery

__all__ = [
    "DeviceHandle",
    "PlugType",
    "get_handle",
    "HostDiscovery",
    "KasaDiscovery",
    "build_discovery",
]
