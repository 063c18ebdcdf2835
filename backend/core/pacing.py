"""
Chunked writer - paces one motion payload onto the robot's TX characteristic.

Write schedule for a payload of L bytes:

    "#IN" marker (UTF-16-LE, 6 bytes)
    payload[0:20]
    payload[20:30]
    per 100-byte stride k (ceil((L-30)/100) strides):
        payload[30+100k + 0  : +20]
        payload[30+100k + 20 : +20]
        ...                        (5 writes, sub-offsets 0..80)

Only one attribute write is outstanding at a time: after each write we
spin on the adapter busy flag, then wait write_delay for the robot's
receive buffer. The delays are part of the protocol; the robot drops
data when they are shortened.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, TYPE_CHECKING

from .bgapi import BGLib, ProtocolFault
from .device import TX_CHARACTERISTIC_HANDLE
from .logger import log_send

if TYPE_CHECKING:
    from .transport import Transport
    from .types import EncodedCommand


# The robot expects the marker in UTF-16 while the body is plain ASCII
MOTION_MARKER = "#IN".encode("utf-16-le")

HEAD_CHUNKS = (20, 10)
HEAD_SIZE = sum(HEAD_CHUNKS)
STRIDE = 100
CHUNK = 20
CHUNKS_PER_STRIDE = STRIDE // CHUNK


@dataclass
class PacingSettings:
    """Timing of the write schedule (seconds)"""
    write_delay: float = 0.05
    stride_delay: float = 0.05
    poll_interval: float = 0.001
    busy_timeout: float = 2.0
    connection: int = 0
    characteristic: int = TX_CHARACTERISTIC_HANDLE


def stride_count(length: int) -> int:
    """Number of 100-byte strides after the 30-byte head."""
    return max(0, math.ceil((length - HEAD_SIZE) / STRIDE))


def chunk_schedule(payload: bytes) -> List[bytes]:
    """Payload chunks in send order (marker not included)."""
    chunks = [payload[0:20], payload[20:30]]
    for stride in range(stride_count(len(payload))):
        base = HEAD_SIZE + stride * STRIDE
        for sub in range(0, STRIDE, CHUNK):
            chunks.append(payload[base + sub:base + sub + CHUNK])
    return chunks


def wait_until_idle(radio: BGLib, settings: PacingSettings, sleep: Callable[[float], None] = time.sleep) -> None:
    """
    Spin until the adapter has answered the last command.

    Raises:
        ProtocolFault: no response within busy_timeout
    """
    deadline = time.monotonic() + settings.busy_timeout
    while radio.is_busy():
        if time.monotonic() > deadline:
            raise ProtocolFault(f"Adapter busy for more than {settings.busy_timeout}s")
        sleep(settings.poll_interval)


class PacedWriter:
    """
    Sends encoded commands over an open, connected adapter.

    on_progress receives human-readable progress lines.
    """

    def __init__(
        self,
        radio: BGLib,
        transport: "Transport",
        settings: Optional[PacingSettings] = None,
        on_progress: Optional[Callable[[str], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._radio = radio
        self._transport = transport
        self.settings = settings or PacingSettings()
        self._on_progress = on_progress
        self._sleep = sleep
        self.write_count = 0

    def write_command(self, command: "EncodedCommand") -> int:
        """
        Send one command (marker, head, strides).

        Returns the number of attribute writes issued.
        """
        payload = command.payload
        chunks = chunk_schedule(payload)
        strides = stride_count(len(payload))
        body = max(0, len(payload) - HEAD_SIZE)
        sent = 0

        self._write(MOTION_MARKER)
        for chunk in chunks[:len(HEAD_CHUNKS)]:
            self._write(chunk)
        sent += 1 + len(HEAD_CHUNKS)
        self._progress("header written.")
        self._sleep(self.settings.stride_delay)

        for stride in range(strides):
            start = len(HEAD_CHUNKS) + stride * CHUNKS_PER_STRIDE
            for chunk in chunks[start:start + CHUNKS_PER_STRIDE]:
                self._write(chunk)
                sent += 1
            self._progress(f"frame written. [{(stride + 1) * STRIDE}/{body}]")
            self._sleep(self.settings.stride_delay)

        log_send(f"{command.name} sent", {"bytes": len(payload), "writes": sent})
        return sent

    def wait_idle(self) -> None:
        """Block until the adapter answered the last command."""
        wait_until_idle(self._radio, self.settings, self._sleep)

    def _write(self, data: bytes) -> None:
        packet = self._radio.ble_cmd_attclient_attribute_write(
            self.settings.connection, self.settings.characteristic, data
        )
        self._radio.send_command(self._transport, packet)
        self.wait_idle()
        self._sleep(self.settings.write_delay)
        self.write_count += 1

    def _progress(self, message: str) -> None:
        if self._on_progress:
            self._on_progress(message)
