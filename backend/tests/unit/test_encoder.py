"""
Unit tests for the motion encoder.
"""

import pytest
from dataclasses import replace

from core.encoder import (
    EncodingError,
    HEADER_WIDTH,
    build_queue,
    convert,
    decode_motion,
    encode_motion,
)
from core.types import FrameDefinition, JointDefinition, MotionDefinition, ParamDefinition


WAVE_WIRE = "01" + "Wave".ljust(20) + "02" + "0305" + "01" + "0100" + "000a"


class TestEncodeMotion:
    """Tests for encode_motion()."""

    def test_wave_wire(self, wave_motion):
        """Fields are emitted in order: slot, name, config, frameNum, frames."""
        command = encode_motion(wave_motion)
        assert command.wire == WAVE_WIRE
        assert command.is_converted
        assert command.error is None

    def test_wave_display(self, wave_motion):
        """Display string mirrors the fields with labels."""
        command = encode_motion(wave_motion)
        assert command.display == (
            "[slotNum : 01] [name : Wave                ] [config : 020305] "
            "[frameNum : 01] [frame :  0100000a]"
        )

    def test_payload_is_ascii_of_wire(self, wave_motion):
        """Each hex character is one transmitted byte."""
        command = encode_motion(wave_motion)
        assert command.payload == WAVE_WIRE.encode("ascii")
        assert len(command.payload) == len(command.wire)

    def test_params_sorted_by_id(self, wave_motion):
        """Param with id 0 goes first regardless of input order."""
        swapped = replace(wave_motion, params=tuple(reversed(wave_motion.params)))
        assert encode_motion(swapped).wire == WAVE_WIRE

    def test_frames_and_joints_sorted_by_id(self):
        """Frames and joints are emitted in id order."""
        motion = MotionDefinition(
            slot=0, name="", function=0,
            params=(ParamDefinition(0, 0), ParamDefinition(1, 0)),
            frame_count=2,
            frames=(
                FrameDefinition(id=1, time=2, joints=(JointDefinition(1, 4), JointDefinition(0, 3))),
                FrameDefinition(id=0, time=1, joints=(JointDefinition(1, 2), JointDefinition(0, 1))),
            ),
        )
        wire = encode_motion(motion).wire
        assert wire[HEADER_WIDTH:] == "0001" "0001" "0002" "0002" "0003" "0004"

    def test_ids_compare_numerically(self):
        """Id "10" sorts after id "2"."""
        motion = MotionDefinition(
            slot=0, name="", function=0,
            params=(ParamDefinition(0, 0), ParamDefinition(1, 0)),
            frame_count=1,
            frames=(FrameDefinition(id=0, time=0, joints=(
                JointDefinition("10", 16), JointDefinition("2", 2),
            )),),
        )
        assert encode_motion(motion).wire.endswith("0002" "0010")

    def test_negative_joint_is_twos_complement(self, wave_motion):
        """-1 encodes as ffff."""
        frame = FrameDefinition(id=0, time=0, joints=(JointDefinition(0, "-1"),))
        wire = encode_motion(replace(wave_motion, frames=(frame,))).wire
        assert wire.endswith("0000ffff")

    def test_name_padded_with_spaces(self, wave_motion):
        """Short names are space padded to 20 chars, not null padded."""
        wire = encode_motion(wave_motion).wire
        assert wire[2:22] == "Wave                "
        assert "\x00" not in wire

    def test_long_name_truncated(self, wave_motion):
        """Names longer than 20 chars are cut to the field width."""
        wire = encode_motion(replace(wave_motion, name="A" * 30)).wire
        assert wire[2:22] == "A" * 20
        assert wire[22:24] == "02"

    def test_zero_frames(self, wave_motion):
        """A motion without frames encodes to header fields only."""
        command = encode_motion(replace(wave_motion, frames=(), frame_count=0))
        assert len(command.wire) == HEADER_WIDTH
        assert command.wire.endswith("00")

    def test_frame_without_joints(self, wave_motion):
        """A frame with no joints contributes only its time."""
        frame = FrameDefinition(id=0, time=1)
        wire = encode_motion(replace(wave_motion, frames=(frame,))).wire
        assert wire[HEADER_WIDTH:] == "0001"

    def test_lower_case_hex(self, wave_motion):
        """Hex digits are lower case."""
        wire = encode_motion(replace(wave_motion, slot=255, function=171)).wire
        assert wire.startswith("ff")
        assert wire[22:24] == "ab"


class TestEncodingErrors:
    """Structural and numeric failures."""

    @pytest.mark.parametrize("count", [0, 1, 3])
    def test_wrong_param_count(self, wave_motion, count):
        """Exactly two params are required."""
        params = tuple(ParamDefinition(i, 1) for i in range(count))
        with pytest.raises(EncodingError, match="params"):
            encode_motion(replace(wave_motion, params=params))

    def test_non_numeric_field(self, wave_motion):
        """Text that is not a number fails."""
        with pytest.raises(EncodingError, match="function"):
            encode_motion(replace(wave_motion, function="two"))

    @pytest.mark.parametrize("text", ["1_0", "١٢", "0x10", "1.0", "", "5\n"])
    def test_only_plain_decimal_text(self, wave_motion, text):
        """Underscores, non-ASCII digits and other int() forms are refused."""
        with pytest.raises(EncodingError, match="slot"):
            encode_motion(replace(wave_motion, slot=text))

    @pytest.mark.parametrize("text,expected", [(" 5 ", "05"), ("+7", "07"), ("010", "0a")])
    def test_signed_and_padded_decimal_text(self, wave_motion, text, expected):
        assert encode_motion(replace(wave_motion, slot=text)).wire[:2] == expected

    def test_param_out_of_byte_range(self, wave_motion):
        """Params must fit in a byte."""
        params = (ParamDefinition(0, 256), ParamDefinition(1, 0))
        with pytest.raises(EncodingError, match="out of range"):
            encode_motion(replace(wave_motion, params=params))

    def test_slot_out_of_range(self, wave_motion):
        """Slot must fit in two hex digits."""
        with pytest.raises(EncodingError, match="slot"):
            encode_motion(replace(wave_motion, slot=300))

    def test_joint_out_of_int16_range(self, wave_motion):
        """Joint values must fit in a signed 16-bit field."""
        frame = FrameDefinition(id=0, time=0, joints=(JointDefinition(0, 40000),))
        with pytest.raises(EncodingError, match="joint"):
            encode_motion(replace(wave_motion, frames=(frame,)))

    def test_missing_frames(self, wave_motion):
        """None instead of a frame list fails."""
        with pytest.raises(EncodingError):
            encode_motion(replace(wave_motion, frames=None))


class TestConvert:
    """convert() reports failures as results."""

    def test_success(self, wave_motion):
        command = convert(wave_motion)
        assert command.is_converted
        assert command.wire == WAVE_WIRE

    def test_failure_has_no_output(self, wave_motion):
        """Failed conversion leaves wire and display empty."""
        command = convert(replace(wave_motion, params=()))
        assert not command.is_converted
        assert command.wire == ""
        assert command.display == ""
        assert "params" in command.error

    def test_build_queue_skips_failures(self, wave_motion):
        """Only converted commands are queued, order kept."""
        bad = replace(wave_motion, name="Bad", function="x")
        second = replace(wave_motion, name="Second", slot=2)
        queue = build_queue([wave_motion, bad, second])
        assert [c.name for c in queue] == ["Wave", "Second"]


class TestDecodeMotion:
    """Fixed-width decoding of wire text."""

    def test_decode_wave(self, wave_motion):
        decoded = decode_motion(encode_motion(wave_motion).wire, joints_per_frame=1)
        assert decoded.slot == 1
        assert decoded.name == "Wave"
        assert decoded.function == 2
        assert decoded.params == (3, 5)
        assert decoded.frame_count == 1
        assert decoded.frames[0].time == 256
        assert decoded.frames[0].joints == (10,)

    def test_decode_negative_joint(self):
        wire = "00" + " " * 20 + "00" "0000" "01" "0000" "ff9c"
        decoded = decode_motion(wire, joints_per_frame=1)
        assert decoded.frames[0].joints == (-100,)

    def test_decode_short_wire(self):
        with pytest.raises(EncodingError, match="too short"):
            decode_motion("0102", joints_per_frame=0)

    def test_decode_wrong_joint_count(self, wave_motion):
        with pytest.raises(EncodingError, match="multiple"):
            decode_motion(encode_motion(wave_motion).wire, joints_per_frame=2)
