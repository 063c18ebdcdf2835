"""
BGAPI codec - the handful of Bluegiga BLE commands/events the installer uses.

Packet layout (little endian):

    byte 0   message type (0x00 command/response, 0x80 event)
             | technology (bits 6..3, 0 = BLE) | length bits 10..8
    byte 1   length bits 7..0
    byte 2   class id
    byte 3   command / event id
    byte 4.. payload

Commands are one-at-a-time: send_command() marks the lib busy and the
matching response clears it. There is no completion callback, callers
poll is_busy().
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, TYPE_CHECKING

from .logger import log_radio, log_serial, log_warn

if TYPE_CHECKING:
    from .transport import Transport


MSG_COMMAND = 0x00
MSG_EVENT = 0x80
_TECH_MASK = 0x78
_LENGTH_HIGH_MASK = 0x07
HEADER_SIZE = 4

CLASS_CONNECTION = 0x03
CLASS_ATTCLIENT = 0x04
CLASS_GAP = 0x06

CMD_CONNECTION_DISCONNECT = 0x00
CMD_ATTCLIENT_ATTRIBUTE_WRITE = 0x05
CMD_GAP_DISCOVER = 0x02
CMD_GAP_CONNECT_DIRECT = 0x03
CMD_GAP_END_PROCEDURE = 0x04

EVT_CONNECTION_STATUS = 0x00
EVT_GAP_SCAN_RESPONSE = 0x00

GAP_DISCOVER_GENERIC = 1
CONNECTION_FLAG_CONNECTED = 0x01

_SCAN_RESPONSE = struct.Struct("<bB6sBBB")
_CONNECTION_STATUS = struct.Struct("<BB6sBHHHB")


class ProtocolFault(RuntimeError):
    """Adapter or device did not behave as the protocol expects"""
    pass


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class ScanResponse:
    """ble_evt_gap_scan_response - one advertisement seen during discovery"""
    rssi: int
    packet_type: int
    sender: bytes
    address_type: int
    bond: int
    data: bytes


@dataclass(frozen=True)
class ConnectionStatus:
    """ble_evt_connection_status"""
    connection: int
    flags: int
    address: bytes
    address_type: int
    conn_interval: int
    timeout: int
    latency: int
    bonding: int

    @property
    def connected(self) -> bool:
        return bool(self.flags & CONNECTION_FLAG_CONNECTED)


# =============================================================================
# Packing
# =============================================================================


def pack_packet(message_type: int, class_id: int, command_id: int, payload: bytes = b"") -> bytes:
    """Build one BGAPI packet."""
    length = len(payload)
    if length > 0x7FF:
        raise ValueError(f"BGAPI payload too long: {length} bytes")
    header = bytes([
        message_type | ((length >> 8) & _LENGTH_HIGH_MASK),
        length & 0xFF,
        class_id,
        command_id,
    ])
    return header + bytes(payload)


def encode_response(class_id: int, command_id: int, payload: bytes = b"") -> bytes:
    return pack_packet(MSG_COMMAND, class_id, command_id, payload)


def encode_scan_response(sender: bytes, data: bytes, rssi: int = -60,
                         packet_type: int = 0, address_type: int = 0, bond: int = 0xFF) -> bytes:
    payload = _SCAN_RESPONSE.pack(rssi, packet_type, bytes(sender), address_type, bond, len(data)) + bytes(data)
    return pack_packet(MSG_EVENT, CLASS_GAP, EVT_GAP_SCAN_RESPONSE, payload)


def encode_connection_status(address: bytes, flags: int, connection: int = 0,
                             address_type: int = 0, conn_interval: int = 60,
                             timeout: int = 100, latency: int = 0, bonding: int = 0xFF) -> bytes:
    payload = _CONNECTION_STATUS.pack(
        connection, flags, bytes(address), address_type, conn_interval, timeout, latency, bonding
    )
    return pack_packet(MSG_EVENT, CLASS_CONNECTION, EVT_CONNECTION_STATUS, payload)


def split_packet(packet: bytes):
    """Return (message_type, class_id, command_id, payload) of a full packet."""
    return packet[0] & MSG_EVENT, packet[2], packet[3], packet[HEADER_SIZE:]


# =============================================================================
# BGLib
# =============================================================================


class BGLib:
    """
    Command builders, busy tracking and incremental parser.

    Event callbacks run in whatever context calls parse() (the transport's
    reader thread in production).
    """

    def __init__(self):
        self._busy = False
        self._buffer = bytearray()
        self.last_response: Optional[tuple] = None
        self.on_scan_response: Optional[Callable[[ScanResponse], None]] = None
        self.on_connection_status: Optional[Callable[[ConnectionStatus], None]] = None

    # --- commands ---

    def ble_cmd_gap_end_procedure(self) -> bytes:
        return pack_packet(MSG_COMMAND, CLASS_GAP, CMD_GAP_END_PROCEDURE)

    def ble_cmd_gap_discover(self, mode: int = GAP_DISCOVER_GENERIC) -> bytes:
        return pack_packet(MSG_COMMAND, CLASS_GAP, CMD_GAP_DISCOVER, struct.pack("<B", mode))

    def ble_cmd_gap_connect_direct(self, address: bytes, addr_type: int, conn_interval_min: int,
                                   conn_interval_max: int, timeout: int, latency: int) -> bytes:
        payload = struct.pack(
            "<6sBHHHH", bytes(address), addr_type,
            conn_interval_min, conn_interval_max, timeout, latency,
        )
        return pack_packet(MSG_COMMAND, CLASS_GAP, CMD_GAP_CONNECT_DIRECT, payload)

    def ble_cmd_connection_disconnect(self, connection: int) -> bytes:
        return pack_packet(MSG_COMMAND, CLASS_CONNECTION, CMD_CONNECTION_DISCONNECT, struct.pack("<B", connection))

    def ble_cmd_attclient_attribute_write(self, connection: int, atthandle: int, data: bytes) -> bytes:
        payload = struct.pack("<BHB", connection, atthandle, len(data)) + bytes(data)
        return pack_packet(MSG_COMMAND, CLASS_ATTCLIENT, CMD_ATTCLIENT_ATTRIBUTE_WRITE, payload)

    def send_command(self, transport: "Transport", packet: bytes) -> None:
        """Write a command; busy until its response is parsed."""
        self._busy = True
        log_serial(">>>", packet, transport.port)
        try:
            transport.write(packet)
        except Exception:
            self._busy = False
            raise

    def is_busy(self) -> bool:
        return self._busy

    # --- parsing ---

    def parse(self, data: bytes) -> None:
        """Feed received bytes; dispatches every complete packet."""
        self._buffer.extend(data)
        while len(self._buffer) >= HEADER_SIZE:
            if self._buffer[0] & _TECH_MASK:
                # Not a BLE packet header, resync one byte at a time
                del self._buffer[0]
                continue
            length = ((self._buffer[0] & _LENGTH_HIGH_MASK) << 8) | self._buffer[1]
            total = HEADER_SIZE + length
            if len(self._buffer) < total:
                break
            packet = bytes(self._buffer[:total])
            del self._buffer[:total]
            self._dispatch(packet)

    def reset(self) -> None:
        """Drop partial input and the busy flag (new transport session)."""
        self._buffer.clear()
        self._busy = False

    def _dispatch(self, packet: bytes) -> None:
        message_type, class_id, command_id, payload = split_packet(packet)

        if message_type == MSG_COMMAND:
            self.last_response = (class_id, command_id, payload)
            self._busy = False
            return

        if class_id == CLASS_GAP and command_id == EVT_GAP_SCAN_RESPONSE:
            event = self._parse_scan_response(payload)
            if event and self.on_scan_response:
                self.on_scan_response(event)
        elif class_id == CLASS_CONNECTION and command_id == EVT_CONNECTION_STATUS:
            event = self._parse_connection_status(payload)
            if event and self.on_connection_status:
                self.on_connection_status(event)

    @staticmethod
    def _parse_scan_response(payload: bytes) -> Optional[ScanResponse]:
        if len(payload) < _SCAN_RESPONSE.size:
            log_warn("Short scan response dropped", {"length": len(payload)})
            return None
        rssi, packet_type, sender, address_type, bond, data_len = _SCAN_RESPONSE.unpack_from(payload)
        data = payload[_SCAN_RESPONSE.size:_SCAN_RESPONSE.size + data_len]
        return ScanResponse(rssi, packet_type, sender, address_type, bond, data)

    @staticmethod
    def _parse_connection_status(payload: bytes) -> Optional[ConnectionStatus]:
        if len(payload) < _CONNECTION_STATUS.size:
            log_warn("Short connection status dropped", {"length": len(payload)})
            return None
        event = ConnectionStatus(*_CONNECTION_STATUS.unpack_from(payload))
        log_radio("Connection status", {"flags": event.flags, "connection": event.connection})
        return event
