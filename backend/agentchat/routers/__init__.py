"""API routers for the agentchat backend."""

from .agents import router as agents_router
from .api_connections import router as api_connections_router
from .catalog import router as catalog_router
from .chat import router as chat_router

__all__ = ["agents_router", "api_connections_router", "catalog_router", "chat_router"]
