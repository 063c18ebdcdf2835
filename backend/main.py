"""
Motion Installer - Main Entry Point
Installs motion files on robots through one or more BLE dongles

Run with: uvicorn main:app --port 8000
"""

import sys
from pathlib import Path

# Add backend to path for imports
backend_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))

import uvicorn
from fastapi import FastAPI

from api.app import create_app
from api.dependencies import get_app_state
from core.serial_transport import SerialTransport


# Create app instance
app: FastAPI = create_app()


# === Startup/Shutdown Events ===

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    print("=" * 50)
    print("  Motion Installer v1.0")
    print("  BLE motion transfer over serial dongles")
    print("=" * 50)
    print()
    ports = SerialTransport.list_ports()
    print("Serial Ports:")
    for port in ports:
        print(f"  {port}")
    if not ports:
        print("  (none found - use 'mock' for a simulated adapter)")
    print()
    print("API ready at http://localhost:8000")
    print("Docs at http://localhost:8000/docs")
    print()


@app.on_event("shutdown")
async def shutdown_event():
    """Cancel sessions; each one disconnects and closes its adapter"""
    state = get_app_state()
    try:
        print("[SHUTDOWN] Stopping transfer sessions...")
        state.manager.cancel_all()
    except Exception as e:
        print(f"[SHUTDOWN] Error during cleanup: {e}")


# === Health Check ===

@app.get("/health")
def health_check():
    """Health check endpoint"""
    state = get_app_state()
    sessions = state.manager.status()
    return {
        "status": "ok",
        "version": "1.0.0",
        "sessions": len(sessions),
        "running": sum(1 for s in sessions if s["running"]),
        "devices": len(state.manager.registry),
    }


# === Run directly ===

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
    )
