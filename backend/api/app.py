"""
FastAPI App Factory - Creates and configures the app
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.encoder import EncodingError
from .routes import (
    ports_router,
    motions_router,
    sessions_router,
)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    app = FastAPI(
        title="Motion Installer API",
        description="REST API for installing motions on robots over BLE adapters",
        version="1.0.0",
    )

    # CORS - must be added first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EncodingError)
    async def encoding_error_handler(request: Request, exc: EncodingError):
        return JSONResponse(status_code=400, content={"detail": f"Encoding error: {exc}"})

    # Anything else still answers with JSON so CORS headers survive
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)},
        )

    app.include_router(ports_router, prefix="/api")
    app.include_router(motions_router, prefix="/api")
    app.include_router(sessions_router, prefix="/api")

    return app
