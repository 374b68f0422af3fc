"""
Reconciliation manager for smart plugs.

Keeps the power state of a fixed set of labelled plugs aligned with the
requested state, polling every plug at a fixed interval and rediscovering
plugs that dropped off the network.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Iterable, Mapping, Optional

from plugsync.core.errors import (
    ConfigurationError,
    DeviceIOError,
    DiscoveryError,
    LabelReadError,
)
from plugsync.core.state import DeviceStatus, DeviceTable
from plugsync.health.alerts import AlertManager, LoggingAlertHandler
from plugsync.power.base import DeviceHandle

logger = logging.getLogger(__name__)

Discovery = Callable[[], Iterable[DeviceHandle]]

DISCOVERY_ALERT_LABEL = "discovery"


def _on_off(is_on: bool) -> str:
    return "ON" if is_on else "OFF"


class PlugManager:
    """
    Maintains desired vs. observed power state for a set of labelled plugs.

    The manager does nothing until run() is called, usually from a
    dedicated thread. Each tick it first tries to rediscover disconnected
    plugs (only when there are any), then polls every connected plug and
    switches it if its state differs from the desired one. A plug whose
    read or write fails is moved to the disconnected set and stays there
    until discovery returns a device with the same label.

    All public methods are thread-safe.
    """

    def __init__(
        self,
        discovery: Optional[Discovery],
        labels: Iterable[str],
        poll_interval: float,
        device_timeout: float = 5.0,
        discovery_timeout: float = 10.0,
        max_workers: int = 4,
        discovery_backoff_max: float = 0.0,
        alerts: Optional[AlertManager] = None,
        log: Optional[logging.Logger] = None,
    ):
        """
        Initialize the manager. No network I/O is performed.

        Args:
            discovery: Callable returning the currently reachable device handles
            labels: Labels of the plugs to manage
            poll_interval: Seconds between reconciliation ticks
            device_timeout: Upper bound in seconds for a single device call
            discovery_timeout: Upper bound in seconds for a discovery call
            max_workers: Number of plugs polled concurrently
            discovery_backoff_max: Cap in seconds for exponential backoff after
                consecutive discovery failures (0 retries on every tick)
            alerts: Alert manager receiving connectivity and correction events
            log: Logger to use instead of the module logger

        Raises:
            ConfigurationError: If any argument is invalid
        """
        if discovery is None or not callable(discovery):
            raise ConfigurationError("A callable discovery function is required")
        if labels is None or isinstance(labels, str):
            raise ConfigurationError("labels must be a collection of plug labels")
        label_set = frozenset(labels)
        if not label_set:
            raise ConfigurationError("At least one plug label must be managed")
        for label in label_set:
            if not isinstance(label, str) or not label:
                raise ConfigurationError(f"Invalid plug label: {label!r}")
        if poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive, got {poll_interval}")
        if device_timeout <= 0 or discovery_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")
        if discovery_backoff_max < 0:
            raise ConfigurationError("discovery_backoff_max cannot be negative")

        self.discovery = discovery
        self.poll_interval = float(poll_interval)
        self.device_timeout = float(device_timeout)
        self.discovery_timeout = float(discovery_timeout)
        self.max_workers = max_workers
        self.discovery_backoff_max = float(discovery_backoff_max)
        self.log = log or logger
        self.alerts = alerts if alerts is not None else AlertManager([LoggingAlertHandler()])

        self._table = DeviceTable(label_set)
        self._pool_lock = threading.Lock()
        self._device_pool: Optional[ThreadPoolExecutor] = None

        # Only touched from the loop thread
        self._discovery_failures = 0
        self._next_discovery_at = 0.0
        self._last_discovery_error: Optional[DiscoveryError] = None

    # --- Public state accessors ---

    @property
    def labels(self) -> frozenset[str]:
        return self._table.labels

    @property
    def connected_labels(self) -> frozenset[str]:
        return self._table.connected_labels()

    @property
    def disconnected_labels(self) -> frozenset[str]:
        return self._table.disconnected_labels()

    @property
    def last_discovery_error(self) -> Optional[DiscoveryError]:
        """Most recent discovery failure, cleared by the next successful discovery."""
        return self._last_discovery_error

    def set_desired_state(self, label: str, is_on: bool) -> bool:
        """
        Request a power state for a plug.

        The request takes effect on the next poll of the plug, or once the
        plug is rediscovered if it is currently disconnected.

        Returns:
            True if recorded, False if label is not managed (ignored)
        """
        if not self._table.set_desired(label, is_on):
            self.log.warning(f"Ignoring desired state for unmanaged plug {label!r}")
            return False
        self.log.debug(f"Desired state of {label!r} set to {_on_off(is_on)}")
        return True

    def set_desired_states(self, states: Mapping[str, bool]) -> list[str]:
        """
        Request power states for several plugs at once.

        Returns:
            Labels that were ignored because they are not managed
        """
        return [label for label, is_on in states.items()
                if not self.set_desired_state(label, is_on)]

    def clear_desired_state(self, label: str) -> bool:
        """Stop enforcing a state for label; the plug is still polled."""
        return self._table.clear_desired(label)

    def get_desired_state(self, label: str) -> Optional[bool]:
        return self._table.get_desired(label)

    def get_observed_state(self, label: str) -> Optional[bool]:
        """
        Most recently polled state of a plug.

        Returns None if the plug has never been polled successfully. The
        value is not refreshed while the plug is disconnected.
        """
        return self._table.get_observed(label)

    def status(self) -> list[DeviceStatus]:
        return self._table.snapshot()

    # --- Reconciliation loop ---

    def run(self, stop_event: threading.Event) -> None:
        """
        Run the reconciliation loop until stop_event is set.

        Ticks fire every poll_interval seconds. A tick in progress always
        completes; stop_event is only checked between ticks. Errors raised
        during a tick are logged and never end the loop.
        """
        self.log.info(
            f"Starting plug manager for {len(self.labels)} plug(s) "
            f"with {self.poll_interval}s interval"
        )
        wait = self.poll_interval
        try:
            while not stop_event.wait(wait):
                start_time = time.monotonic()
                try:
                    self.run_once()
                except Exception as e:
                    self.log.exception(f"Unexpected error during reconciliation: {e}")
                elapsed = time.monotonic() - start_time
                self.log.debug(f"Reconciliation tick completed in {elapsed:.2f}s")
                wait = max(0.0, self.poll_interval - elapsed)
        finally:
            self.close()
        self.log.info("Plug manager stopped")

    def run_once(self) -> None:
        """Execute a single tick: reconnect if needed, then poll and enforce."""
        if self._table.has_disconnected():
            self.attempt_reconnect()
        self.update_state()

    def close(self) -> None:
        """Shut down worker threads. The manager can still be run afterwards."""
        with self._pool_lock:
            pool, self._device_pool = self._device_pool, None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)

    def attempt_reconnect(self) -> int:
        """
        Rediscover disconnected plugs by label.

        Discovery is called at most once, and not at all when every plug
        is connected. A discovery failure is logged and recorded in
        last_discovery_error; the attempt is retried on a later tick.

        Returns:
            Number of plugs moved back to the connected set
        """
        disconnected = self._table.disconnected_labels()
        if not disconnected:
            return 0
        if self.discovery_backoff_max > 0 and time.monotonic() < self._next_discovery_at:
            self.log.debug("Skipping discovery, backing off after previous failure")
            return 0

        self.log.debug(f"Attempting to reconnect disconnected plugs {sorted(disconnected)}")
        try:
            handles = self._discover()
        except DiscoveryError as e:
            self._record_discovery_failure(e)
            return 0
        self._discovery_failures = 0
        self._next_discovery_at = 0.0
        self._last_discovery_error = None

        device_pool = self._pool()
        reads = [(handle, device_pool.submit(self._read_label, handle)) for handle in handles]

        admitted = 0
        for handle, future in reads:
            try:
                label = future.result()
            except LabelReadError as e:
                self.log.warning(
                    f"Reading label of plug at {self._address(handle)} failed: {e}, skipping plug"
                )
                continue
            if self._table.admit(label, handle):
                admitted += 1
                self.log.info(f"Reconnected plug {label!r} at {self._address(handle)}")
                self.alerts.trigger_info(
                    label, "Plug came ONLINE", f"Address: {self._address(handle)}"
                )
        return admitted

    def update_state(self) -> None:
        """
        Poll every connected plug and enforce its desired state.

        Plugs are processed independently on the worker pool. For each plug
        the state is read before any write is issued. A failed read or write
        moves that plug to the disconnected set without affecting others.
        """
        items = self._table.connected_items()
        if not items:
            return
        self.log.debug(f"Validating health and state of {len(items)} plug(s)")

        device_pool = self._pool()
        futures = [
            (label, device_pool.submit(self._reconcile_plug, label, handle))
            for label, handle in items
        ]
        for label, future in futures:
            error = future.exception()
            if error is not None:
                self.log.error(f"Unexpected error reconciling plug {label!r}: {error}")

    # --- Internals ---

    def _pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._device_pool is None:
                self._device_pool = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="plugsync-device"
                )
            return self._device_pool

    def _call(self, timeout: float, func: Callable[..., Any], *args: Any) -> Any:
        """
        Run a blocking collaborator call, giving up after timeout seconds.

        Each call gets its own daemon thread, started immediately, so the
        timeout covers only the call itself. An abandoned call keeps its
        thread until the transport gives up, without holding back any
        other call.

        Raises:
            concurrent.futures.TimeoutError: If func did not return in time
        """
        future: Future = Future()

        def target() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(func(*args))
            except Exception as e:
                future.set_exception(e)

        name = getattr(func, "__name__", "call")
        threading.Thread(target=target, name=f"plugsync-io-{name}", daemon=True).start()
        return future.result(timeout=timeout)

    def _discover(self) -> list[DeviceHandle]:
        try:
            handles = self._call(self.discovery_timeout, self.discovery)
        except FuturesTimeoutError:
            raise DiscoveryError(f"Discovery timed out after {self.discovery_timeout}s")
        except DiscoveryError:
            raise
        except Exception as e:
            raise DiscoveryError(str(e) or e.__class__.__name__) from e
        return list(handles or [])

    def _read_label(self, handle: DeviceHandle) -> str:
        try:
            label = self._call(self.device_timeout, handle.get_label)
        except FuturesTimeoutError:
            raise LabelReadError(f"Timed out after {self.device_timeout}s")
        except LabelReadError:
            raise
        except Exception as e:
            raise LabelReadError(str(e) or e.__class__.__name__) from e
        if not isinstance(label, str) or not label:
            raise LabelReadError(f"Invalid label {label!r}")
        return label

    def _device_io(self, handle: DeviceHandle, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return self._call(self.device_timeout, func, *args)
        except FuturesTimeoutError:
            raise DeviceIOError(
                f"Timed out after {self.device_timeout}s", self._address(handle)
            )
        except DeviceIOError:
            raise
        except Exception as e:
            raise DeviceIOError(str(e) or e.__class__.__name__, self._address(handle)) from e

    def _reconcile_plug(self, label: str, handle: DeviceHandle) -> None:
        try:
            is_on = bool(self._device_io(handle, handle.is_on))
        except DeviceIOError as e:
            self._disconnect(label, handle, "reading state", e)
            return

        # Handle was replaced or dropped while we were reading
        if not self._table.record_observed(label, handle, is_on):
            return

        desired = self._table.get_desired(label)
        if desired is None or desired == is_on:
            return

        self.log.info(f"Plug {label!r} is {_on_off(is_on)}, switching {_on_off(desired)}")
        try:
            self._device_io(handle, handle.set_on, desired)
        except DeviceIOError as e:
            self._disconnect(label, handle, "setting state", e)
            return

        self._table.record_observed(label, handle, desired)
        self.alerts.trigger_info(
            label, f"Power set to {_on_off(desired)}", f"Previous: {_on_off(is_on)}"
        )

    def _disconnect(self, label: str, handle: DeviceHandle, action: str, error: Exception) -> None:
        if not self._table.demote(label, handle):
            return
        self.log.warning(
            f"{action.capitalize()} of plug {label!r} at {self._address(handle)} "
            f"failed: {error}; marking disconnected"
        )
        self.alerts.trigger_critical(label, "Plug went OFFLINE", str(error))

    def _record_discovery_failure(self, error: DiscoveryError) -> None:
        self._discovery_failures += 1
        self._last_discovery_error = error
        self.log.warning(
            f"Discovery failed ({self._discovery_failures} in a row): {error}"
        )
        self.alerts.trigger_warning(DISCOVERY_ALERT_LABEL, "Discovery failed", str(error))
        if self.discovery_backoff_max > 0:
            delay = self.poll_interval * (2 ** (self._discovery_failures - 1) - 1)
            self._next_discovery_at = time.monotonic() + min(delay, self.discovery_backoff_max)

    @staticmethod
    def _address(handle: DeviceHandle) -> str:
        return getattr(handle, "address", None) or "<unknown>"
