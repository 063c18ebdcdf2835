"""
Session Routes - start, inspect and cancel transfer sessions
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List

from core.logger import log_warn
from ..dependencies import get_app_state, require_session, AppState
from .motions import MotionModel

router = APIRouter(tags=["sessions"])


class StartRequest(BaseModel):
    ports: List[str]
    motions: List[MotionModel]


@router.post("/sessions")
def start_sessions(req: StartRequest, state: AppState = Depends(get_app_state)):
    """Encode motions and install them through every listed adapter."""
    if not req.ports:
        raise HTTPException(status_code=400, detail="No ports given")

    result = state.start_sessions(req.ports, [m.to_definition() for m in req.motions])
    if not result["success"]:
        log_warn("No session started", result)
        raise HTTPException(status_code=400, detail=result.get("message") or result.get("errors"))
    return result


@router.get("/sessions")
def list_sessions(state: AppState = Depends(get_app_state)):
    """Status and recent messages of every session."""
    return state.get_status()


@router.delete("/sessions/{port:path}")
def cancel_session(port: str, state: AppState = Depends(get_app_state)):
    """Stop a session; it disconnects and closes its adapter first."""
    require_session(port)
    state.manager.cancel(port)
    return {"success": True, "port": port}


@router.get("/registry")
def get_registry(state: AppState = Depends(get_app_state)):
    """Devices known to the shared registry."""
    return {"devices": state.manager.registry.snapshot()}
