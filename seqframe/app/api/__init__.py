"""
seqframe HTTP API routers.
"""

from .actions import router as actions_router
from .sessions import router as sessions_router
from .thoughts import router as thoughts_router

__all__ = [
    "actions_router",
    "sessions_router",
    "thoughts_router",
]
