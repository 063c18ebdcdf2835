"""
Core immutable types for the motion installer.

Motion records mirror the motion file tree (motion -> extra/params,
frames -> joints). Numeric fields may arrive as ints or as the decimal
text the file loader produces; the encoder parses them.

All types are frozen dataclasses so a queued command cannot change
between encoding and transfer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


# Raw numeric field as delivered by the loader ("5" or 5)
Numeric = Union[int, str]


# =============================================================================
# Motion Types
# =============================================================================


@dataclass(frozen=True)
class ParamDefinition:
    """Auxiliary motion parameter (byte range)."""
    id: Numeric
    value: Numeric


@dataclass(frozen=True)
class JointDefinition:
    """One joint angle inside a frame (16-bit signed)."""
    id: Numeric
    value: Numeric


@dataclass(frozen=True)
class FrameDefinition:
    """A key frame: transition time plus one value per joint."""
    id: Numeric
    time: Numeric
    joints: Tuple[JointDefinition, ...] = ()


@dataclass(frozen=True)
class MotionDefinition:
    """
    One motion slot.

    `params` must hold exactly two entries; the encoder rejects anything else.
    `frame_count` is transmitted as declared, it is not derived from `frames`.
    """
    slot: Numeric
    name: str
    function: Numeric
    params: Tuple[ParamDefinition, ...]
    frame_count: Numeric
    frames: Tuple[FrameDefinition, ...] = ()


@dataclass(frozen=True)
class EncodedCommand:
    """
    Result of encoding one motion.

    `wire` is the ASCII hex text sent to the robot, `display` a bracketed
    trace for humans. When `is_converted` is False both are empty and
    `error` says why.
    """
    motion: MotionDefinition
    wire: str = ""
    display: str = ""
    is_converted: bool = False
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.motion.name

    @property
    def payload(self) -> bytes:
        """Wire text as transmitted: one byte per hex character."""
        return self.wire.encode("ascii", errors="replace")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "converted": self.is_converted,
            "wire": self.wire,
            "display": self.display,
            "error": self.error,
        }


# =============================================================================
# Device Types
# =============================================================================


class ConnectionState(Enum):
    """Connection state of one BLE device (or of one session's link)."""
    NOT_CONNECTED = "not_connected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SEND_COMPLETED = "send_completed"
    REJECTED = "rejected"


ADDRESS_LENGTH = 6


def device_key(address: bytes) -> int:
    """Fold a 6-byte BLE address into an int, byte 0 least significant."""
    if len(address) != ADDRESS_LENGTH:
        raise ValueError(f"BLE address must be {ADDRESS_LENGTH} bytes, got {len(address)}")
    return int.from_bytes(bytes(address), "little")


def key_to_address(key: int) -> bytes:
    """Inverse of device_key()."""
    return key.to_bytes(ADDRESS_LENGTH, "little")


def format_address(key: int) -> str:
    """Human form, most significant byte first (aa:bb:cc:dd:ee:ff)."""
    return ":".join(f"{b:02x}" for b in reversed(key_to_address(key)))
