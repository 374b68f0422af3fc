"""
Device discovery for smart plugs.

A discovery is any callable returning the handles of the plugs that are
currently reachable. KasaDiscovery uses the Kasa UDP broadcast protocol;
HostDiscovery probes a configured list of hosts or a network range for an
open HTTP port, for Tasmota and Shelly devices.
"""

import asyncio
import ipaddress
import logging
import socket
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Iterable, Optional

from kasa import Discover, KasaException

from plugsync.core.errors import ConfigurationError, DiscoveryError
from plugsync.power.base import DeviceHandle, PlugType, get_handle
from plugsync.power.kasa import KasaHandle

if TYPE_CHECKING:
    from plugsync.core.config import Config

logger = logging.getLogger(__name__)


class KasaDiscovery:
    """Discover TP-Link Kasa devices by UDP broadcast."""

    def __init__(
        self,
        target: str = "255.255.255.255",
        timeout: float = 5.0,
        device_timeout: float = 5.0,
    ):
        """
        Args:
            target: Broadcast (or unicast) address discovery packets are sent to
            timeout: Seconds to wait for discovery replies
            device_timeout: Request timeout for the returned handles
        """
        self.target = target
        self.timeout = timeout
        self.device_timeout = device_timeout

    async def _discover(self) -> list[DeviceHandle]:
        found = await Discover.discover(
            target=self.target, discovery_timeout=max(1, int(self.timeout))
        )
        handles: list[DeviceHandle] = []
        for host, dev in found.items():
            try:
                await dev.update()
                outlets = len(getattr(dev, "children", None) or []) or 1
            except (KasaException, OSError, asyncio.TimeoutError) as e:
                logger.debug(f"Ignoring Kasa device at {host}: {e}")
                continue
            finally:
                await dev.disconnect()
            for index in range(1, outlets + 1):
                handles.append(KasaHandle(host, index, self.device_timeout))
        return handles

    def __call__(self) -> list[DeviceHandle]:
        try:
            handles = asyncio.run(self._discover())
        except (KasaException, OSError) as e:
            raise DiscoveryError(f"Kasa discovery on {self.target} failed: {e}") from e
        logger.debug(f"Kasa discovery found {len(handles)} outlet(s)")
        return handles


class HostDiscovery:
    """
    Discover HTTP controlled plugs (Tasmota, Shelly) by probing hosts.

    Every configured host, and every host address of the configured
    network, is probed with a TCP connect to the HTTP port. Responding hosts
    are returned as handles of the configured plug type, one per relay.
    """

    def __init__(
        self,
        plug_type: PlugType,
        hosts: Iterable[str] = (),
        network: Optional[str] = None,
        port: int = 80,
        relays: int = 1,
        probe_timeout: float = 1.0,
        timeout: float = 5.0,
        device_timeout: float = 5.0,
        max_workers: int = 32,
    ):
        """
        Args:
            plug_type: Type of plug behind every probed host
            hosts: Host addresses to probe
            network: Network in CIDR notation whose hosts are probed as well
            port: HTTP port of the plugs
            relays: Number of relays per plug
            probe_timeout: Connect timeout for a single host
            timeout: Seconds a whole sweep may take; hosts not probed by
                then are skipped for this sweep
            device_timeout: Request timeout for the returned handles
            max_workers: Number of hosts probed concurrently
        """
        if plug_type == PlugType.KASA:
            raise ConfigurationError("Use KasaDiscovery for Kasa devices")
        self.plug_type = plug_type
        self.hosts = list(hosts)
        if network:
            try:
                self.hosts.extend(
                    str(ip) for ip in ipaddress.ip_network(network, strict=False).hosts()
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid discovery network {network!r}: {e}") from e
        if not self.hosts:
            raise ConfigurationError(
                f"{plug_type.value} discovery needs at least one host or a network"
            )
        if relays < 1:
            raise ConfigurationError(f"relays must be at least 1, got {relays}")
        self.port = port
        self.relays = relays
        self.probe_timeout = probe_timeout
        self.timeout = timeout
        self.device_timeout = device_timeout
        self.max_workers = max_workers

    def _probe(self, host: str) -> bool:
        """Check whether host accepts TCP connections on the HTTP port."""
        try:
            with socket.create_connection((host, self.port), timeout=self.probe_timeout):
                return True
        except OSError:
            return False

    def __call__(self) -> list[DeviceHandle]:
        workers = min(self.max_workers, len(self.hosts))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="plugsync-probe")
        probes = [(host, pool.submit(self._probe, host)) for host in self.hosts]
        done, pending = wait([future for _, future in probes], timeout=self.timeout)
        pool.shutdown(wait=False, cancel_futures=True)
        if pending:
            logger.warning(
                f"Host sweep stopped after {self.timeout}s, "
                f"{len(pending)} of {len(self.hosts)} host(s) not probed"
            )

        handles = []
        for host, future in probes:
            if future not in done or not future.result():
                continue
            for index in range(1, self.relays + 1):
                handles.append(get_handle(self.plug_type, host, index, self.device_timeout))
        logger.debug(f"Probed {len(self.hosts)} host(s), {len(handles)} relay(s) reachable")
        return handles


def build_discovery(config: "Config"):
    """
    Create the discovery callable described by a configuration.

    Args:
        config: Loaded configuration

    Returns:
        KasaDiscovery or HostDiscovery instance

    Raises:
        ConfigurationError: If the discovery settings are invalid
    """
    disc = config.discovery
    try:
        plug_type = PlugType(disc.backend)
    except ValueError:
        choices = ", ".join(t.value for t in PlugType)
        raise ConfigurationError(f"Unknown discovery backend {disc.backend!r} (use {choices})")

    if plug_type == PlugType.KASA:
        return KasaDiscovery(
            target=disc.target,
            timeout=disc.timeout,
            device_timeout=config.manager.device_timeout,
        )
    return HostDiscovery(
        plug_type,
        hosts=disc.hosts,
        network=disc.network,
        port=disc.port,
        relays=disc.relays,
        probe_timeout=disc.probe_timeout,
        timeout=disc.timeout,
        device_timeout=config.manager.device_timeout,
    )
