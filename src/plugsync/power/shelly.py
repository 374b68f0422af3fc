"""
Shelly device handle.

Controls Shelly smart plugs via HTTP API.
"""

from typing import Optional

import requests

from plugsync.core.errors import DeviceIOError, LabelReadError
from plugsync.power.base import DeviceHandle, PlugType


class ShellyHandle(DeviceHandle):
    """
    Handle for Shelly devices.

    Uses Shelly HTTP API (Gen1):
    - Label:     http://<ip>/settings (relay name, falling back to device name)
    - Power On:  http://<ip>/relay/<index>?turn=on
    - Power Off: http://<ip>/relay/<index>?turn=off
    - Status:    http://<ip>/relay/<index>

    Note: plug_index is 0-based for Shelly API (converted from 1-based input)
    """

    plug_type = PlugType.SHELLY

    @property
    def _relay_index(self) -> int:
        """Convert 1-based plug_index to 0-based relay index."""
        return self.plug_index - 1

    def _request(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """
        Send request to Shelly device.

        Args:
            endpoint: API endpoint (e.g., "relay/0")
            params: Optional query parameters

        Returns:
            JSON response dict

        Raises:
            DeviceIOError: On connection, HTTP or decoding errors
        """
        url = f"http://{self.address}/{endpoint}"

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DeviceIOError(f"Shelly request {endpoint!r} failed: {e}", self.address) from e

        if not isinstance(result, dict):
            raise DeviceIOError(f"Unexpected Shelly response: {result!r}", self.address)
        return result

    def _ison(self, result: dict) -> bool:
        ison = result.get("ison")
        if not isinstance(ison, bool):
            raise DeviceIOError(f"No relay state in response: {result!r}", self.address)
        return ison

    def get_label(self) -> str:
        try:
            settings = self._request("settings")
        except DeviceIOError as e:
            raise LabelReadError(str(e)) from e

        relays = settings.get("relays") or []
        if self._relay_index < len(relays) and relays[self._relay_index].get("name"):
            return str(relays[self._relay_index]["name"])
        if settings.get("name"):
            return str(settings["name"])
        raise LabelReadError(f"Shelly device at {self.address} has no name configured")

    def is_on(self) -> bool:
        return self._ison(self._request(f"relay/{self._relay_index}"))

    def set_on(self, on: bool) -> None:
        turn = "on" if on else "off"
        result = self._request(f"relay/{self._relay_index}", params={"turn": turn})

        # Shelly returns {"ison": true, ...}
        if self._ison(result) is not on:
            raise DeviceIOError(f"Relay did not turn {turn}: {result!r}", self.address)
