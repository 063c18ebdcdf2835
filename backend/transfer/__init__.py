"""Transfer layer - session state machine and session management"""

from .state_machine import (
    LinkStateMachine,
    IllegalTransition,
    SessionCancelled,
    StateMachine,
    State,
    StateResult,
    StateContext,
)
from .states import (
    ResetAdapterState,
    DiscoveringState,
    StreamingState,
    CompleteState,
    create_transfer_workflow,
)
from .events import SessionEvent, SessionEventType
from .session import SessionSettings, TransferSession
from .manager import SessionManager

__all__ = [
    'LinkStateMachine', 'IllegalTransition', 'SessionCancelled',
    'StateMachine', 'State', 'StateResult', 'StateContext',
    'ResetAdapterState', 'DiscoveringState', 'StreamingState',
    'CompleteState', 'create_transfer_workflow',
    'SessionEvent', 'SessionEventType',
    'SessionSettings', 'TransferSession', 'SessionManager',
]
