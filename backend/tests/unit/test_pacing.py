"""
Unit tests for the chunked writer.
"""

import pytest

from core.bgapi import BGLib, ProtocolFault
from core.pacing import (
    MOTION_MARKER,
    PacedWriter,
    PacingSettings,
    chunk_schedule,
    stride_count,
    wait_until_idle,
)
from core.types import EncodedCommand


class ImmediateRadio(BGLib):
    """Radio whose adapter answers every command instantly."""

    def __init__(self):
        super().__init__()
        self.writes = []

    def send_command(self, transport, packet):
        # attribute_write payload: connection, handle(2), length, data
        self.writes.append(packet[8:])

    def is_busy(self):
        return False


class StuckRadio(BGLib):
    """Radio that never gets an answer."""

    def is_busy(self):
        return True


def make_command(motion, length: int) -> EncodedCommand:
    wire = "".join("0123456789abcdef"[i % 16] for i in range(length))
    return EncodedCommand(motion=motion, wire=wire, is_converted=True)


@pytest.fixture
def settings():
    return PacingSettings(write_delay=0, stride_delay=0, poll_interval=0, busy_timeout=0.05)


class TestSchedule:
    """chunk_schedule() and stride_count()"""

    @pytest.mark.parametrize("length,strides", [
        (0, 0), (30, 0), (31, 1), (130, 1), (131, 2), (246, 3),
    ])
    def test_stride_count(self, length, strides):
        assert stride_count(length) == strides

    def test_head_chunks(self):
        payload = bytes(range(40))
        chunks = chunk_schedule(payload)
        assert chunks[0] == payload[0:20]
        assert chunks[1] == payload[20:30]

    def test_chunks_cover_payload(self):
        """Joined chunks reproduce the payload, in order."""
        payload = bytes(i % 256 for i in range(246))
        assert b"".join(chunk_schedule(payload)) == payload

    def test_trailing_chunks_may_be_empty(self):
        """A short last stride still issues five writes."""
        chunks = chunk_schedule(bytes(35))
        assert len(chunks) == 7
        assert [len(c) for c in chunks[2:]] == [5, 0, 0, 0, 0]

    def test_chunk_size_limit(self):
        assert all(len(c) <= 20 for c in chunk_schedule(bytes(500)))


class TestPacedWriter:
    """write_command() sequencing"""

    def test_marker_first(self, wave_motion, settings):
        radio = ImmediateRadio()
        PacedWriter(radio, None, settings).write_command(make_command(wave_motion, 36))
        assert radio.writes[0] == MOTION_MARKER
        assert MOTION_MARKER == b"#\x00I\x00N\x00"

    def test_wave_sized_payload(self, wave_motion, settings):
        """36 bytes: marker, two head writes, one stride of five."""
        radio = ImmediateRadio()
        command = make_command(wave_motion, 36)
        sent = PacedWriter(radio, None, settings).write_command(command)

        assert sent == 8
        assert len(radio.writes) == 8
        assert b"".join(radio.writes[1:]) == command.payload

    def test_header_only_payload(self, wave_motion, settings):
        radio = ImmediateRadio()
        sent = PacedWriter(radio, None, settings).write_command(make_command(wave_motion, 30))
        assert sent == 3

    def test_write_count_accumulates(self, wave_motion, settings):
        radio = ImmediateRadio()
        writer = PacedWriter(radio, None, settings)
        writer.write_command(make_command(wave_motion, 36))
        writer.write_command(make_command(wave_motion, 246))
        assert writer.write_count == 8 + 18

    def test_progress_messages(self, wave_motion, settings):
        radio = ImmediateRadio()
        messages = []
        PacedWriter(radio, None, settings, on_progress=messages.append).write_command(
            make_command(wave_motion, 246)
        )
        assert messages == [
            "header written.",
            "frame written. [100/216]",
            "frame written. [200/216]",
            "frame written. [300/216]",
        ]

    def test_delays_applied(self, wave_motion):
        """write_delay after each write, stride_delay after head and strides."""
        radio = ImmediateRadio()
        slept = []
        settings = PacingSettings(write_delay=0.05, stride_delay=0.07, poll_interval=0)
        PacedWriter(radio, None, settings, sleep=slept.append).write_command(make_command(wave_motion, 36))
        assert slept.count(0.05) == 8
        assert slept.count(0.07) == 2

    def test_characteristic_handle(self, wave_motion, settings):
        packets = []

        class CapturingRadio(ImmediateRadio):
            def send_command(self, transport, packet):
                packets.append(packet)

        PacedWriter(CapturingRadio(), None, settings).write_command(make_command(wave_motion, 30))
        assert all(p[5:7] == bytes([31, 0]) for p in packets)


class TestBusyWait:

    def test_timeout_raises(self, settings):
        with pytest.raises(ProtocolFault, match="busy"):
            wait_until_idle(StuckRadio(), settings, sleep=lambda _: None)

    def test_idle_returns(self, settings):
        wait_until_idle(ImmediateRadio(), settings)
