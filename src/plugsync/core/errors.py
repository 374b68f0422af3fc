"""
Exception hierarchy for plugsync.

Only ConfigurationError is ever raised to the caller of the manager; the
other errors are raised by device handles and discovery, and are handled
inside the reconciliation loop.
"""


class PlugSyncError(Exception):
    """Base class for all plugsync errors."""


class ConfigurationError(PlugSyncError):
    """Invalid construction arguments or configuration file."""


class DiscoveryError(PlugSyncError):
    """Device discovery failed; the reconnect attempt is retried later."""


class LabelReadError(PlugSyncError):
    """A discovered device did not report its label."""


class DeviceIOError(PlugSyncError):
    """Reading or writing the power state of a device failed."""

    def __init__(self, message: str, address: str = ""):
        super().__init__(message)
        self.address = address
