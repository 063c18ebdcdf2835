"""
Events - notifications a transfer session emits to its host
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, List, Optional

from core.types import EncodedCommand


class SessionEventType(Enum):
    """What happened in a session"""
    MESSAGE = auto()
    DEVICE_CONNECTED = auto()
    COMMAND_SENT = auto()
    SESSION_FINISHED = auto()


@dataclass
class SessionEvent:
    """Event with port and optional data payload"""
    type: SessionEventType
    port: str
    data: Optional[Any] = None

    @classmethod
    def message(cls, port: str, text: str) -> 'SessionEvent':
        return cls(SessionEventType.MESSAGE, port, data=text)

    @classmethod
    def device_connected(cls, port: str, key: Optional[int]) -> 'SessionEvent':
        return cls(SessionEventType.DEVICE_CONNECTED, port, data=key)

    @classmethod
    def command_sent(cls, port: str, count: int) -> 'SessionEvent':
        return cls(SessionEventType.COMMAND_SENT, port, data=count)

    @classmethod
    def finished(cls, port: str, commands: List[EncodedCommand]) -> 'SessionEvent':
        return cls(SessionEventType.SESSION_FINISHED, port, data=list(commands))
