"""
Kasa device handle.

Controls TP-Link Kasa smart plugs and power strips via the python-kasa
library. python-kasa is asyncio based; every operation opens a fresh
connection inside its own event loop, so handles can be used from plain
worker threads.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from kasa import Discover, KasaException

from plugsync.core.errors import DeviceIOError, LabelReadError
from plugsync.power.base import DeviceHandle, PlugType

T = TypeVar("T")


class KasaHandle(DeviceHandle):
    """
    Handle for TP-Link Kasa devices.

    The label is the device alias configured in the Kasa app. For power
    strips, plug_index selects the outlet (1-based) and the outlet alias is
    used as label.
    """

    plug_type = PlugType.KASA

    def _run(self, action: Callable[[Any], Awaitable[T]]) -> T:
        """
        Connect to the device, run action on it and disconnect.

        Raises:
            DeviceIOError: On connection errors, protocol errors or timeout
        """

        async def _session() -> T:
            dev = await Discover.discover_single(
                self.address, timeout=max(1, int(self.timeout))
            )
            try:
                await dev.update()
                return await action(self._target(dev))
            finally:
                await dev.disconnect()

        try:
            return asyncio.run(asyncio.wait_for(_session(), timeout=self.timeout))
        except (KasaException, OSError, asyncio.TimeoutError) as e:
            raise DeviceIOError(
                f"Kasa request failed: {str(e) or e.__class__.__name__}", self.address
            ) from e

    def _target(self, dev: Any) -> Any:
        """Return the outlet addressed by plug_index (the device itself for plugs)."""
        children = getattr(dev, "children", None) or []
        if not children:
            return dev
        if self.plug_index > len(children):
            raise DeviceIOError(
                f"Outlet {self.plug_index} not present, device has {len(children)}",
                self.address,
            )
        return children[self.plug_index - 1]

    def get_label(self) -> str:
        async def _alias(target: Any) -> str:
            return target.alias

        try:
            alias = self._run(_alias)
        except DeviceIOError as e:
            raise LabelReadError(str(e)) from e
        if not alias:
            raise LabelReadError(f"Kasa device at {self.address} has no alias")
        return alias

    def is_on(self) -> bool:
        async def _state(target: Any) -> bool:
            return bool(target.is_on)

        return self._run(_state)

    def set_on(self, on: bool) -> None:
        async def _switch(target: Any) -> None:
            if on:
                await target.turn_on()
            else:
                await target.turn_off()

        self._run(_switch)
