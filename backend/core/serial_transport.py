"""
Serial Transport - Single responsibility: talk to a BLE dongle over a COM port

Received bytes are pushed to the owner from pyserial's ReaderThread.
Thread-safe: writes are serialized with a lock (scan callbacks on the
reader thread and the session worker both send commands).
"""

import threading
from dataclasses import dataclass
from typing import Optional

import serial
import serial.threaded
import serial.tools.list_ports

from .logger import log_critical, log_ok, log_serial
from .transport import DataCallback, TransportFault


BAUD_RATE = 115200
DEFAULT_TIMEOUT = 1.0


@dataclass
class SerialConfig:
    baud_rate: int = BAUD_RATE
    timeout: float = DEFAULT_TIMEOUT
    rtscts: bool = True
    log_rx: bool = False


class _AdapterProtocol(serial.threaded.Protocol):
    """Forwards ReaderThread callbacks to the owning SerialTransport."""

    def __init__(self, owner: "SerialTransport"):
        self._owner = owner

    def data_received(self, data: bytes) -> None:
        self._owner._handle_data(data)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._owner._handle_lost(exc)


class SerialTransport:
    """
    Serial link to one BLE adapter (8N1, RTS/CTS handshake).
    """

    def __init__(self, port: str, config: Optional[SerialConfig] = None):
        self.config = config or SerialConfig()
        self._port = port
        self._serial: Optional[serial.Serial] = None
        self._reader: Optional[serial.threaded.ReaderThread] = None
        self._on_data: Optional[DataCallback] = None
        self._lost: Optional[Exception] = None
        self._lock = threading.Lock()

    @staticmethod
    def list_ports() -> list[str]:
        """List available serial ports"""
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open and self._lost is None

    def open(self, on_data: DataCallback) -> None:
        """Open the port and start the reader thread."""
        try:
            self._serial = serial.Serial(
                self._port,
                self.config.baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                rtscts=self.config.rtscts,
                timeout=self.config.timeout,
            )
        except serial.SerialException as e:
            self._serial = None
            raise TransportFault(f"Failed to open {self._port}: {e}")

        self._on_data = on_data
        self._lost = None
        self._reader = serial.threaded.ReaderThread(self._serial, lambda: _AdapterProtocol(self))
        self._reader.daemon = True
        self._reader.start()
        self._reader.connect()
        log_ok(f"Opened {self._port}", {"baud": self.config.baud_rate})

    def write(self, data: bytes) -> None:
        """Write raw bytes"""
        if not self._serial or self._lost is not None:
            raise TransportFault(f"{self._port} is not open")
        with self._lock:
            try:
                self._serial.write(data)
            except serial.SerialException as e:
                raise TransportFault(f"Write to {self._port} failed: {e}")

    def close(self) -> None:
        """Stop the reader thread and close the port"""
        reader, self._reader = self._reader, None
        self._on_data = None
        if reader is not None:
            # ReaderThread.close() stops the thread, then closes the port
            reader.close()
        elif self._serial is not None:
            self._serial.close()
        self._serial = None

    # --- ReaderThread callbacks ---

    def _handle_data(self, data: bytes) -> None:
        if self.config.log_rx:
            log_serial("<<<", data, self._port)
        callback = self._on_data
        if callback is not None:
            callback(data)

    def _handle_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            log_critical(f"{self._port} reader stopped: {exc}")
            self._lost = exc
