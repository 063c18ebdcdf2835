"""
Session Manager - runs one TransferSession per adapter port.

All sessions share one DeviceRegistry so two dongles never connect to
the same robot. Session events are kept per port for the API.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Sequence

from core.logger import log_ok, log_warn
from core.registry import DeviceRegistry
from core.serial_transport import SerialTransport
from core.transport import MockTransport, Transport
from core.types import EncodedCommand

from .events import SessionEvent, SessionEventType
from .session import SessionSettings, TransferSession


MOCK_PORT_PREFIX = "mock"
MESSAGE_HISTORY = 200


def default_transport_factory(port: str) -> Transport:
    """'mock...' ports get a simulated adapter, anything else a real COM port."""
    if port.startswith(MOCK_PORT_PREFIX):
        return MockTransport(port=port)
    return SerialTransport(port)


@dataclass
class SessionRecord:
    """A running (or stopped) session and what it reported"""
    session: TransferSession
    messages: Deque[str] = field(default_factory=lambda: deque(maxlen=MESSAGE_HISTORY))
    connected_count: int = 0

    def to_dict(self) -> dict:
        s = self.session
        return {
            "port": s.port,
            "running": s.is_running,
            "cancelled": s.is_cancelled,
            "link_state": s.link_state.value,
            "attempts": s.attempts,
            "sent_count": s.sent_count,
            "total_commands": len(s.commands),
            "connected_count": self.connected_count,
            "finished_count": s.finished_count,
            "messages": list(self.messages),
        }


class SessionManager:
    """Starts, tracks and cancels transfer sessions."""

    def __init__(
        self,
        registry: Optional[DeviceRegistry] = None,
        settings: Optional[SessionSettings] = None,
        transport_factory: Callable[[str], Transport] = default_transport_factory,
        on_event: Optional[Callable[[SessionEvent], None]] = None,
    ):
        self.registry = registry or DeviceRegistry()
        self.settings = settings or SessionSettings()
        self._transport_factory = transport_factory
        self._on_event = on_event
        self._records: Dict[str, SessionRecord] = {}

    def start(self, port: str, commands: Sequence[EncodedCommand]) -> TransferSession:
        """Start a session on a port. A port runs at most one session."""
        existing = self._records.get(port)
        if existing and existing.session.is_running:
            raise RuntimeError(f"Session already running on {port}")

        transport = self._transport_factory(port)
        session = TransferSession(
            transport,
            commands,
            self.registry,
            settings=self.settings,
            on_event=self._handle_event,
        )
        self._records[port] = SessionRecord(session=session)
        session.start()
        log_ok(f"Session started on {port}", {"commands": len(commands)})
        return session

    def cancel(self, port: str, timeout: Optional[float] = 5.0) -> bool:
        """Cancel one session. Returns False for an unknown port."""
        record = self._records.get(port)
        if record is None:
            return False
        record.session.cancel()
        if not record.session.join(timeout):
            log_warn(f"Session on {port} did not stop within {timeout}s")
        return True

    def cancel_all(self, timeout: Optional[float] = 5.0) -> None:
        for record in list(self._records.values()):
            record.session.cancel()
        for port in list(self._records):
            self.cancel(port, timeout)

    def get(self, port: str) -> Optional[TransferSession]:
        record = self._records.get(port)
        return record.session if record else None

    def status(self) -> List[dict]:
        return [record.to_dict() for record in list(self._records.values())]

    def _handle_event(self, event: SessionEvent) -> None:
        record = self._records.get(event.port)
        if record is not None:
            if event.type == SessionEventType.MESSAGE:
                record.messages.append(event.data)
            elif event.type == SessionEventType.DEVICE_CONNECTED:
                record.connected_count += 1
        if self._on_event:
            self._on_event(event)
