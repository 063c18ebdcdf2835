"""
Motion encoder - turns a MotionDefinition into the robot's wire text.

Wire layout (all hex lower case, zero padded, MSB first):

    slot        2 hex
    name        20 chars, left justified, space padded
    function    2 hex
    param[0]    2 hex   (params sorted by id)
    param[1]    2 hex
    frameNum    2 hex
    per frame (sorted by id):
        time    4 hex
        joint   4 hex each (sorted by id)

The text itself is the payload: each hex character goes out as one byte.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .logger import log_warn
from .types import EncodedCommand, MotionDefinition, Numeric


NAME_WIDTH = 20
PARAM_COUNT = 2

BYTE_RANGE = (0, 0xFF)
INT16_RANGE = (-0x8000, 0x7FFF)

# ASCII digits with an optional sign; surrounding whitespace allowed
_DECIMAL = re.compile(r"[ \t]*[+-]?[0-9]+[ \t]*")


class EncodingError(ValueError):
    """Raised when a motion cannot be encoded"""
    pass


# =============================================================================
# Field helpers
# =============================================================================


def _parse_int(value: Numeric, label: str, bounds: Tuple[int, int]) -> int:
    """Parse an int or decimal string and check it against bounds."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise EncodingError(f"{label}: expected integer, got {value!r}")
    if isinstance(value, str):
        if not _DECIMAL.fullmatch(value):
            raise EncodingError(f"{label}: {value!r} is not an integer")
        number = int(value)
    else:
        number = value
    lo, hi = bounds
    if not (lo <= number <= hi):
        raise EncodingError(f"{label}: {number} out of range [{lo}, {hi}]")
    return number


def _hex2(value: Numeric, label: str) -> str:
    return f"{_parse_int(value, label, BYTE_RANGE):02x}"


def _hex4(value: Numeric, label: str) -> str:
    # 16-bit two's complement, so -1 -> ffff
    return f"{_parse_int(value, label, INT16_RANGE) & 0xFFFF:04x}"


def _sort_key(value: Numeric, label: str) -> int:
    return _parse_int(value, f"{label} id", (0, 2**31 - 1))


def _name_field(name: str) -> str:
    if not isinstance(name, str):
        raise EncodingError(f"name: expected text, got {name!r}")
    return name[:NAME_WIDTH].ljust(NAME_WIDTH)


# =============================================================================
# Encoding
# =============================================================================


def encode_motion(motion: MotionDefinition) -> EncodedCommand:
    """
    Encode one motion.

    Raises:
        EncodingError: a field is not a valid number, is out of range,
            or the motion does not have exactly two params.
    """
    if motion.params is None or len(motion.params) != PARAM_COUNT:
        count = 0 if motion.params is None else len(motion.params)
        raise EncodingError(f"expected {PARAM_COUNT} params, got {count}")
    if motion.frames is None:
        raise EncodingError("frames missing")

    slot = _hex2(motion.slot, "slot")
    name = _name_field(motion.name)

    params = sorted(motion.params, key=lambda p: _sort_key(p.id, "param"))
    function = _hex2(motion.function, "function")
    param_hex = "".join(_hex2(p.value, f"param {p.id}") for p in params)

    frame_num = _hex2(motion.frame_count, "frameNum")

    wire = [slot, name, function, param_hex, frame_num]
    display = [
        f"[slotNum : {slot}]",
        f"[name : {name}]",
        f"[config : {function}{param_hex}]",
        f"[frameNum : {frame_num}]",
    ]

    frame_trace = []
    for frame in sorted(motion.frames, key=lambda f: _sort_key(f.id, "frame")):
        if frame.joints is None:
            raise EncodingError(f"frame {frame.id}: joints missing")
        time_hex = _hex4(frame.time, f"frame {frame.id} time")
        joints = sorted(frame.joints, key=lambda j: _sort_key(j.id, "joint"))
        joint_hex = "".join(
            _hex4(j.value, f"frame {frame.id} joint {j.id}") for j in joints
        )
        wire.append(time_hex + joint_hex)
        frame_trace.append(time_hex + joint_hex)

    display.append("[frame : " + "".join(" " + f for f in frame_trace) + "]")

    return EncodedCommand(
        motion=motion,
        wire="".join(wire),
        display=" ".join(display),
        is_converted=True,
    )


def convert(motion: MotionDefinition) -> EncodedCommand:
    """
    Encode one motion, reporting failure as a result instead of raising.

    The returned command has is_converted=False and empty wire/display
    when encoding fails.
    """
    try:
        return encode_motion(motion)
    except EncodingError as e:
        return EncodedCommand(motion=motion, error=str(e))


def build_queue(motions: Iterable[MotionDefinition]) -> List[EncodedCommand]:
    """Encode motions in order, skipping (and logging) the ones that fail."""
    queue: List[EncodedCommand] = []
    for motion in motions:
        command = convert(motion)
        if command.is_converted:
            queue.append(command)
        else:
            log_warn(f"Motion not queued: {command.error}", {"name": motion.name})
    return queue


# =============================================================================
# Decoding (diagnostics)
# =============================================================================


@dataclass(frozen=True)
class DecodedFrame:
    time: int
    joints: Tuple[int, ...]


@dataclass(frozen=True)
class DecodedMotion:
    slot: int
    name: str
    function: int
    params: Tuple[int, int]
    frame_count: int
    frames: Tuple[DecodedFrame, ...]


HEADER_WIDTH = 2 + NAME_WIDTH + 2 + 2 * PARAM_COUNT + 2


def _signed16(text: str) -> int:
    value = int(text, 16)
    return value - 0x10000 if value & 0x8000 else value


def decode_motion(wire: str, joints_per_frame: int) -> DecodedMotion:
    """
    Split wire text back into fields.

    The wire carries no joint count, so the caller supplies it. Every
    frame must have the same number of joints.
    """
    if len(wire) < HEADER_WIDTH:
        raise EncodingError(f"wire too short for header: {len(wire)} chars")
    frame_width = 4 * (1 + joints_per_frame)
    body = wire[HEADER_WIDTH:]
    if len(body) % frame_width:
        raise EncodingError(
            f"frame section of {len(body)} chars is not a multiple of {frame_width}"
        )

    try:
        slot = int(wire[0:2], 16)
        name = wire[2:2 + NAME_WIDTH].rstrip(" ")
        pos = 2 + NAME_WIDTH
        function = int(wire[pos:pos + 2], 16)
        params = (int(wire[pos + 2:pos + 4], 16), int(wire[pos + 4:pos + 6], 16))
        frame_count = int(wire[pos + 6:pos + 8], 16)

        frames = []
        for start in range(0, len(body), frame_width):
            chunk = body[start:start + frame_width]
            values = [_signed16(chunk[i:i + 4]) for i in range(0, frame_width, 4)]
            frames.append(DecodedFrame(time=values[0], joints=tuple(values[1:])))
    except ValueError as e:
        raise EncodingError(f"malformed wire text: {e}")

    return DecodedMotion(
        slot=slot,
        name=name,
        function=function,
        params=params,
        frame_count=frame_count,
        frames=tuple(frames),
    )
