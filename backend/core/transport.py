"""
Transport layer - byte pipe between a session and its BLE adapter.

Provides:
- Transport protocol (interface)
- TransportFault
- MockTransport: simulated BGAPI adapter with advertising devices
- (SerialTransport in separate file for production)
"""

from __future__ import annotations

import queue
import struct
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from . import bgapi
from .device import signature_advertisement


DataCallback = Callable[[bytes], None]


class TransportFault(ConnectionError):
    """Adapter could not be opened, written or read"""
    pass


class Transport(Protocol):
    """Protocol for adapter communication."""

    @property
    def port(self) -> str:
        ...

    @property
    def is_open(self) -> bool:
        ...

    def open(self, on_data: DataCallback) -> None:
        """Open the adapter; on_data receives bytes asynchronously."""
        ...

    def write(self, data: bytes) -> None:
        ...

    def close(self) -> None:
        ...


# =============================================================================
# Mock adapter
# =============================================================================


DEFAULT_MOCK_ADDRESS = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06])

_STOP = object()


@dataclass
class MockDevice:
    """A BLE peripheral the mock adapter 'sees' during discovery."""
    address: bytes = DEFAULT_MOCK_ADDRESS
    advertisement: bytes = b"\x02\x01\x06"
    accept: bool = True

    @classmethod
    def robot(cls, address: bytes = DEFAULT_MOCK_ADDRESS) -> "MockDevice":
        """Device advertising the robot's TX UUID."""
        return cls(address=address, advertisement=signature_advertisement())


class MockTransport:
    """
    Mock adapter for testing without hardware.

    Answers every BGAPI command with a response packet and simulates
    discovery/connection events. Replies are delivered from a separate
    thread, like bytes arriving from a real serial port.
    """

    def __init__(
        self,
        port: str = "mock",
        devices: Optional[Sequence[MockDevice]] = None,
        fail_after_writes: Optional[int] = None,
    ):
        self._port = port
        self.devices: List[MockDevice] = list(devices) if devices is not None else [MockDevice()]
        # Unplug (once) when this many attribute writes have gone through
        self.fail_after_writes = fail_after_writes
        self.written: List[bytes] = []
        self.attribute_writes: List[bytes] = []
        self.open_count = 0
        self._open = False
        self._on_data: Optional[DataCallback] = None
        self._rx: "queue.Queue" = queue.Queue()
        self._rx_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self, on_data: DataCallback) -> None:
        with self._lock:
            if self._open:
                raise TransportFault(f"{self._port} already open")
            self.open_count += 1
            self._on_data = on_data
            self._open = True
            self._rx = queue.Queue()
            self._rx_thread = threading.Thread(
                target=self._rx_loop, args=(self._rx,), daemon=True, name=f"mock-rx-{self._port}"
            )
            self._rx_thread.start()

    def close(self) -> None:
        with self._lock:
            self._open = False
            self._on_data = None
            self._rx.put(_STOP)
            thread = self._rx_thread
            self._rx_thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def write(self, data: bytes) -> None:
        with self._lock:
            if not self._open:
                raise TransportFault(f"{self._port} is not open")
            message_type, class_id, command_id, payload = bgapi.split_packet(bytes(data))
            if class_id == bgapi.CLASS_ATTCLIENT and command_id == bgapi.CMD_ATTCLIENT_ATTRIBUTE_WRITE:
                if self.fail_after_writes is not None and len(self.attribute_writes) >= self.fail_after_writes:
                    self.fail_after_writes = None
                    self._open = False
                    raise TransportFault(f"{self._port} unplugged")
                _, _, length = struct.unpack_from("<BHB", payload)
                self.attribute_writes.append(payload[4:4 + length])
            self.written.append(bytes(data))
            self._respond(class_id, command_id, payload)

    def commands(self, class_id: int, command_id: int) -> List[bytes]:
        """Written packets matching one BGAPI command."""
        return [p for p in self.written if p[2] == class_id and p[3] == command_id]

    # --- simulation ---

    def _respond(self, class_id: int, command_id: int, payload: bytes) -> None:
        ok = struct.pack("<H", 0)

        if class_id == bgapi.CLASS_GAP and command_id == bgapi.CMD_GAP_DISCOVER:
            self._rx.put(bgapi.encode_response(class_id, command_id, ok))
            for device in self.devices:
                self._rx.put(bgapi.encode_scan_response(device.address, device.advertisement))

        elif class_id == bgapi.CLASS_GAP and command_id == bgapi.CMD_GAP_CONNECT_DIRECT:
            self._rx.put(bgapi.encode_response(class_id, command_id, ok + b"\x00"))
            address = payload[:6]
            device = next((d for d in self.devices if d.address == address), None)
            flags = 0x05 if device is not None and device.accept else 0x00
            self._rx.put(bgapi.encode_connection_status(address, flags))

        elif class_id in (bgapi.CLASS_CONNECTION, bgapi.CLASS_ATTCLIENT):
            # connection byte then result
            self._rx.put(bgapi.encode_response(class_id, command_id, payload[:1] + ok))

        else:
            self._rx.put(bgapi.encode_response(class_id, command_id, ok))

    def _rx_loop(self, rx: "queue.Queue") -> None:
        while True:
            packet = rx.get()
            if packet is _STOP:
                return
            callback = self._on_data
            if callback is not None:
                callback(packet)
