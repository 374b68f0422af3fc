"""
Base classes for smart plug handles.

Defines the abstract device interface used by the manager and a factory for
the concrete implementations.
"""

from abc import ABC, abstractmethod
from enum import Enum


class PlugType(Enum):
    """Supported smart plug families."""

    KASA = "kasa"
    TASMOTA = "tasmota"
    SHELLY = "shelly"


class DeviceHandle(ABC):
    """
    Abstract handle to one network-attached power switch.

    All operations talk to the device and may block for up to timeout
    seconds. Failures raise DeviceIOError (LabelReadError for get_label)
    instead of returning sentinel values.
    """

    plug_type: PlugType

    def __init__(self, address: str, plug_index: int = 1, timeout: float = 5.0):
        """
        Initialize device handle.

        Args:
            address: IP address or hostname of the device
            plug_index: Outlet index for multi-relay devices (1-based)
            timeout: Request timeout in seconds
        """
        self.address = address
        self.plug_index = plug_index
        self.timeout = timeout

    @abstractmethod
    def get_label(self) -> str:
        """
        Read the device's configured name.

        Raises:
            LabelReadError: If the device did not answer
        """
        pass

    @abstractmethod
    def is_on(self) -> bool:
        """
        Read the current power state.

        Raises:
            DeviceIOError: If the device did not answer
        """
        pass

    @abstractmethod
    def set_on(self, on: bool) -> None:
        """
        Switch the device on or off.

        Raises:
            DeviceIOError: If the command was not acknowledged
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.address!r}, plug_index={self.plug_index})"


def get_handle(
    plug_type: PlugType,
    address: str,
    plug_index: int = 1,
    timeout: float = 5.0,
) -> DeviceHandle:
    """
    Factory function to create the appropriate device handle.

    Args:
        plug_type: Type of smart plug (kasa, tasmota, shelly)
        address: IP address or hostname
        plug_index: Outlet index for multi-relay devices
        timeout: Request timeout in seconds

    Returns:
        DeviceHandle subclass instance

    Raises:
        ValueError: If plug_type is not supported
    """
    if plug_type == PlugType.TASMOTA:
        from plugsync.power.tasmota import TasmotaHandle
        return TasmotaHandle(address, plug_index, timeout)

    elif plug_type == PlugType.KASA:
        from plugsync.power.kasa import KasaHandle
        return KasaHandle(address, plug_index, timeout)

    elif plug_type == PlugType.SHELLY:
        from plugsync.power.shelly import ShellyHandle
        return ShellyHandle(address, plug_index, timeout)

    else:
        raise ValueError(f"Unsupported plug type: {plug_type}")
