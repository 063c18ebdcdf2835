"""
State Machine - link state tracking and attempt orchestration
"""

import threading
from abc import ABC, abstractmethod
from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Optional, Callable, List, TYPE_CHECKING

from core.bgapi import ProtocolFault
from core.logger import log_critical, log_session
from core.types import ConnectionState, EncodedCommand

if TYPE_CHECKING:
    from core.bgapi import BGLib
    from core.pacing import PacedWriter
    from core.registry import DeviceRegistry
    from core.transport import Transport
    from .session import SessionSettings


class SessionCancelled(Exception):
    """Host asked the session to stop"""
    pass


class IllegalTransition(ProtocolFault):
    """Link state change that the protocol does not allow"""
    pass


# =============================================================================
# Link state
# =============================================================================


_ALLOWED = {
    ConnectionState.NOT_CONNECTED: {ConnectionState.CONNECTING, ConnectionState.REJECTED},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.NOT_CONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.SEND_COMPLETED},
    ConnectionState.SEND_COMPLETED: set(),
    ConnectionState.REJECTED: set(),
}


class LinkStateMachine:
    """
    Connection state of one session's BLE link.

    Written from the worker thread and from adapter callbacks, so every
    change goes through a lock and an allowed-transition table.
    """

    def __init__(self):
        self._state = ConnectionState.NOT_CONNECTED
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    def reset(self) -> None:
        """Back to NOT_CONNECTED (start of every attempt)."""
        with self._lock:
            self._state = ConnectionState.NOT_CONNECTED

    def advance(self, new_state: ConnectionState) -> None:
        with self._lock:
            if new_state not in _ALLOWED[self._state]:
                raise IllegalTransition(f"{self._state.name} -> {new_state.name}")
            self._state = new_state

    def try_begin_connect(self) -> bool:
        """NOT_CONNECTED -> CONNECTING, atomically. False if in any other state."""
        with self._lock:
            if self._state != ConnectionState.NOT_CONNECTED:
                return False
            self._state = ConnectionState.CONNECTING
            return True


# =============================================================================
# Attempt workflow
# =============================================================================


class StateResult(Enum):
    """Result of state execution"""
    SUCCESS = auto()
    FAILURE = auto()


@dataclass
class StateContext:
    """Shared context passed between states of one attempt"""
    port: str
    radio: 'BGLib'
    transport: 'Transport'
    registry: 'DeviceRegistry'
    link: LinkStateMachine
    writer: 'PacedWriter'
    settings: 'SessionSettings'
    commands: List[EncodedCommand]
    cancel: threading.Event

    # Progress
    sent_count: int = 0
    completed: bool = False
    error: Optional[Exception] = None

    # Callbacks
    on_message: Optional[Callable[[str], None]] = None
    on_connected: Optional[Callable[[], None]] = None
    on_command_sent: Optional[Callable[[int], None]] = None
    on_finished: Optional[Callable[[], None]] = None

    def check_cancelled(self) -> None:
        if self.cancel.is_set():
            raise SessionCancelled()


class State(ABC):
    """Base class for all attempt states"""

    name: str = "State"

    @abstractmethod
    def on_enter(self, context: StateContext) -> StateResult:
        """Called when entering this state - perform the action"""
        pass

    def on_exit(self, context: StateContext) -> None:
        """Called when exiting this state - cleanup"""
        pass

    def get_next_state(self, context: StateContext, result: StateResult) -> Optional['State']:
        """Determine next state based on result"""
        return None  # Override in subclass

    def log(self, context: StateContext, message: str) -> None:
        """Report a progress message to the host"""
        if context.on_message:
            context.on_message(message)
        else:
            log_session(f"[{self.name}] {message}", {"port": context.port})


class StateMachine:
    """Runs one attempt: ResetAdapter -> Discovering -> Streaming -> Complete"""

    def __init__(self, context: StateContext):
        self.context = context
        self.current_state: Optional[State] = None
        self.is_running = False
        self._history: list[str] = []

    def start(self, initial_state: State) -> None:
        """Start the state machine with initial state"""
        self.is_running = True
        self.context.error = None
        self._transition_to(initial_state)

    def step(self) -> Optional[StateResult]:
        """
        Execute one state.

        Returns None while more states follow. SessionCancelled propagates;
        any other exception ends the attempt with FAILURE.
        """
        if not self.current_state or not self.is_running:
            return StateResult.SUCCESS

        self.context.check_cancelled()

        try:
            result = self.current_state.on_enter(self.context)
        except SessionCancelled:
            self.is_running = False
            raise
        except Exception as e:
            log_critical(f"[StateMachine] Error in {self.current_state.name}: {e}", {"port": self.context.port})
            self.context.error = e
            result = StateResult.FAILURE

        if result == StateResult.FAILURE:
            self.is_running = False
            return StateResult.FAILURE

        next_state = self.current_state.get_next_state(self.context, result)
        if next_state:
            self._transition_to(next_state)
            return None
        self.is_running = False
        return StateResult.SUCCESS

    def run_to_completion(self) -> StateResult:
        """Run the state machine until complete or error"""
        while self.is_running:
            result = self.step()
            if result is not None:
                return result
        return StateResult.SUCCESS

    def _transition_to(self, state: State) -> None:
        """Transition to a new state"""
        if self.current_state:
            self.current_state.on_exit(self.context)
            self._history.append(self.current_state.name)

        self.current_state = state
        log_session(f"[StateMachine] → {state.name}", {"port": self.context.port})

    @property
    def state_name(self) -> str:
        """Get current state name"""
        return self.current_state.name if self.current_state else "None"

    @property
    def history(self) -> list[str]:
        """Get state transition history"""
        return self._history.copy()
