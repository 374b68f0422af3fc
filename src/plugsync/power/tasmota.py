"""
Tasmota device handle.

Controls Tasmota-flashed smart plugs via HTTP API.
"""

import requests

from plugsync.core.errors import DeviceIOError, LabelReadError
from plugsync.power.base import DeviceHandle, PlugType


class TasmotaHandle(DeviceHandle):
    """
    Handle for Tasmota devices.

    Uses Tasmota HTTP API:
    - Label:     http://<ip>/cm?cmnd=DeviceName (FriendlyName<index> for relays > 1)
    - Power On:  http://<ip>/cm?cmnd=Power<index>%20On
    - Power Off: http://<ip>/cm?cmnd=Power<index>%20Off
    - Status:    http://<ip>/cm?cmnd=Power<index>
    """

    plug_type = PlugType.TASMOTA

    def _command(self, cmnd: str) -> dict:
        """
        Send command to Tasmota device.

        Args:
            cmnd: Command string (e.g., "Power1 On")

        Returns:
            JSON response dict

        Raises:
            DeviceIOError: On connection, HTTP or decoding errors
        """
        url = f"http://{self.address}/cm"
        params = {"cmnd": cmnd}

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DeviceIOError(f"Tasmota command {cmnd!r} failed: {e}", self.address) from e

        if not isinstance(result, dict):
            raise DeviceIOError(f"Unexpected Tasmota response: {result!r}", self.address)
        return result

    def _power_value(self, result: dict) -> str:
        """Extract the relay state (POWER or POWER1, POWER2, etc.)."""
        keys = [f"POWER{self.plug_index}"]
        if self.plug_index == 1:
            keys.insert(0, "POWER")
        for key in keys:
            if key in result:
                return str(result[key]).upper()
        raise DeviceIOError(f"No power state in response: {result!r}", self.address)

    def get_label(self) -> str:
        """Read DeviceName, or the relay's FriendlyName on multi-relay devices."""
        cmnd = "DeviceName" if self.plug_index == 1 else f"FriendlyName{self.plug_index}"
        try:
            result = self._command(cmnd)
        except DeviceIOError as e:
            raise LabelReadError(str(e)) from e

        label = result.get(cmnd)
        if not label:
            raise LabelReadError(f"Tasmota device at {self.address} reported no {cmnd}")
        return str(label)

    def is_on(self) -> bool:
        state = self._power_value(self._command(f"Power{self.plug_index}"))
        if state not in ("ON", "OFF"):
            raise DeviceIOError(f"Unknown power state {state!r}", self.address)
        return state == "ON"

    def set_on(self, on: bool) -> None:
        wanted = "ON" if on else "OFF"
        result = self._command(f"Power{self.plug_index} {wanted.capitalize()}")

        # Tasmota echoes the new state: {"POWER": "ON"} or {"POWER1": "ON"}
        if self._power_value(result) != wanted:
            raise DeviceIOError(f"Device did not switch {wanted}: {result!r}", self.address)
