"""
Device Registry - which BLE addresses are taken, and by what state.

One registry is shared by every transfer session in the process. It is
handed to each session at construction; every operation runs under one
lock so a claim is never observed half applied.
"""

import threading
from typing import Dict, Optional

from .types import ConnectionState, format_address


class DeviceRegistry:
    """Thread-safe map of device key -> ConnectionState."""

    def __init__(self):
        self._states: Dict[int, ConnectionState] = {}
        self._lock = threading.Lock()

    def try_claim(self, key: int) -> bool:
        """
        Claim a device for connecting.

        Succeeds (and marks CONNECTING) only when the key is unknown or
        NOT_CONNECTED. A failed claim changes nothing.
        """
        with self._lock:
            state = self._states.get(key, ConnectionState.NOT_CONNECTED)
            if state != ConnectionState.NOT_CONNECTED:
                return False
            self._states[key] = ConnectionState.CONNECTING
            return True

    def set_state(self, key: int, state: ConnectionState) -> None:
        with self._lock:
            self._states[key] = state

    def release(self, key: int) -> None:
        """Forget a device. Unknown keys are ignored."""
        with self._lock:
            self._states.pop(key, None)

    def get_state(self, key: int) -> Optional[ConnectionState]:
        with self._lock:
            return self._states.get(key)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the registry keyed by printable address (for API)."""
        with self._lock:
            return {format_address(k): v.value for k, v in self._states.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
