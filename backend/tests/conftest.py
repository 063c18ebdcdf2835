"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.pacing import PacingSettings
from core.registry import DeviceRegistry
from core.types import FrameDefinition, JointDefinition, MotionDefinition, ParamDefinition
from transfer.session import SessionSettings


@pytest.fixture
def wave_motion() -> MotionDefinition:
    """Small motion as the file loader delivers it (numbers as text)."""
    return MotionDefinition(
        slot="1",
        name="Wave",
        function="2",
        params=(ParamDefinition(id="1", value="5"), ParamDefinition(id="0", value="3")),
        frame_count="1",
        frames=(
            FrameDefinition(id="0", time="256", joints=(JointDefinition(id="0", value="10"),)),
        ),
    )


@pytest.fixture
def long_motion() -> MotionDefinition:
    """Motion whose payload spans several strides."""
    frames = tuple(
        FrameDefinition(
            id=i,
            time=100 + i,
            joints=tuple(JointDefinition(id=j, value=j * 10 - 50) for j in range(8)),
        )
        for i in range(6)
    )
    return MotionDefinition(
        slot=12,
        name="Dance",
        function=0,
        params=(ParamDefinition(0, 0), ParamDefinition(1, 0)),
        frame_count=6,
        frames=frames,
    )


@pytest.fixture
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture
def fast_settings() -> SessionSettings:
    """Session settings with the protocol delays removed (mock adapter only)."""
    return SessionSettings(
        settle_delay=0,
        retry_delay=0.05,
        reset_delay=0,
        disconnect_timeout=0.5,
        pacing=PacingSettings(write_delay=0, stride_delay=0, poll_interval=0.0005, busy_timeout=1.0),
    )
