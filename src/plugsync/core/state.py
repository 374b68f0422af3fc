"""
Shared device state for the reconciliation manager.

DeviceTable owns the connected/disconnected partition of the managed labels
together with the desired and observed power states. Every accessor takes
the table lock for the duration of a map read or update only; device I/O is
never performed while the lock is held.
"""

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from plugsync.power.base import DeviceHandle


@dataclass(frozen=True)
class DeviceStatus:
    """Point-in-time view of a single managed device."""

    label: str
    connected: bool
    observed: Optional[bool] = None
    desired: Optional[bool] = None
    address: Optional[str] = None

    @property
    def in_sync(self) -> bool:
        """True when the device is known to be at its desired state."""
        if self.desired is None:
            return True
        return self.observed is not None and self.observed == self.desired


class DeviceTable:
    """
    Lock-guarded connection table and state maps.

    Each managed label is always in exactly one of the connected map
    (label -> handle) or the disconnected set. All labels start out
    disconnected.
    """

    def __init__(self, labels: Iterable[str]):
        self.labels = frozenset(labels)
        self._lock = threading.Lock()
        self._connected: dict[str, "DeviceHandle"] = {}
        self._disconnected: set[str] = set(self.labels)
        self._desired: dict[str, bool] = {}
        self._observed: dict[str, bool] = {}

    # --- Connection table ---

    def has_disconnected(self) -> bool:
        with self._lock:
            return bool(self._disconnected)

    def connected_labels(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._connected)

    def disconnected_labels(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._disconnected)

    def partitions(self) -> tuple[frozenset[str], frozenset[str]]:
        """Return (connected, disconnected) labels read under a single lock."""
        with self._lock:
            return frozenset(self._connected), frozenset(self._disconnected)

    def connected_items(self) -> list[tuple[str, "DeviceHandle"]]:
        """Snapshot of the connected map for iteration outside the lock."""
        with self._lock:
            return list(self._connected.items())

    def admit(self, label: str, handle: "DeviceHandle") -> bool:
        """
        Move a label from disconnected to connected.

        Args:
            label: Label reported by the discovered device
            handle: Handle to use for the device from now on

        Returns:
            True if the label was disconnected and is now connected
        """
        with self._lock:
            if label not in self._disconnected:
                return False
            self._disconnected.discard(label)
            self._connected[label] = handle
            return True

    def demote(self, label: str, handle: Optional["DeviceHandle"] = None) -> bool:
        """
        Move a label from connected to disconnected.

        If handle is given, the label is only demoted while that handle is
        still the connected one, so a failure reported through an old
        handle cannot disconnect a device that was since re-admitted.

        Returns:
            True if the label was moved
        """
        with self._lock:
            current = self._connected.get(label)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._connected[label]
            self._disconnected.add(label)
            return True

    # --- Desired / observed state ---

    def record_observed(self, label: str, handle: "DeviceHandle", is_on: bool) -> bool:
        """Store a polled state if handle is still connected for label."""
        with self._lock:
            if self._connected.get(label) is not handle:
                return False
            self._observed[label] = is_on
            return True

    def get_observed(self, label: str) -> Optional[bool]:
        with self._lock:
            return self._observed.get(label)

    def set_desired(self, label: str, is_on: bool) -> bool:
        """Set desired state; returns False for labels that are not managed."""
        if label not in self.labels:
            return False
        with self._lock:
            self._desired[label] = bool(is_on)
        return True

    def clear_desired(self, label: str) -> bool:
        with self._lock:
            return self._desired.pop(label, None) is not None

    def get_desired(self, label: str) -> Optional[bool]:
        with self._lock:
            return self._desired.get(label)

    def snapshot(self) -> list[DeviceStatus]:
        """Status of every managed label, sorted by label."""
        with self._lock:
            rows = []
            for label in sorted(self.labels):
                handle = self._connected.get(label)
                rows.append(
                    DeviceStatus(
                        label=label,
                        connected=handle is not None,
                        observed=self._observed.get(label),
                        desired=self._desired.get(label),
                        address=getattr(handle, "address", None),
                    )
                )
            return rows
