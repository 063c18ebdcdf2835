"""
API Dependencies - Dependency injection for FastAPI
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import sys
import os

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.encoder import build_queue
from core.types import MotionDefinition
from transfer.manager import SessionManager
from transfer.session import TransferSession


@dataclass
class AppState:
    """
    Application state container.

    One SessionManager (and with it one DeviceRegistry) per process.
    """
    manager: SessionManager = field(default_factory=SessionManager)

    def start_sessions(self, ports: List[str], motions: List[MotionDefinition]) -> Dict[str, Any]:
        """Encode motions once, then start one session per port."""
        commands = build_queue(motions)
        if not commands:
            return {"success": False, "message": "No motion could be encoded", "started": []}

        started: List[str] = []
        errors: Dict[str, str] = {}
        for port in ports:
            try:
                self.manager.start(port, commands)
                started.append(port)
            except Exception as e:
                errors[port] = str(e)

        return {
            "success": bool(started),
            "started": started,
            "errors": errors,
            "queued": [c.name for c in commands],
            "skipped": len(motions) - len(commands),
        }

    def get_status(self) -> Dict[str, Any]:
        """Get current status for API."""
        return {
            "sessions": self.manager.status(),
            "registry": self.manager.registry.snapshot(),
        }


# Global instance
_app_state: Optional[AppState] = None


def get_app_state() -> AppState:
    """Get the global app state instance."""
    global _app_state
    if _app_state is None:
        _app_state = AppState()
    return _app_state


def require_session(port: str) -> TransferSession:
    """Get a session by port, raising 404 if unknown."""
    from fastapi import HTTPException

    session = get_app_state().manager.get(port)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No session on {port}")
    return session
