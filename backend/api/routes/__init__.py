"""API Routes - Domain-based routing"""

from .ports import router as ports_router
from .motions import router as motions_router
from .sessions import router as sessions_router

__all__ = [
    'ports_router',
    'motions_router',
    'sessions_router',
]
