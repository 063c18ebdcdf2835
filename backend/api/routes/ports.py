"""
Port Routes - serial adapters available to sessions
"""

from fastapi import APIRouter

from core.serial_transport import SerialTransport
from transfer.manager import MOCK_PORT_PREFIX

router = APIRouter(tags=["ports"])


@router.get("/ports")
def get_ports():
    """List available serial ports."""
    return {"ports": SerialTransport.list_ports(), "mock_prefix": MOCK_PORT_PREFIX}
