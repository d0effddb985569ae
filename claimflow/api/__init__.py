# API module - REST and WebSocket routers
from .endpoints import router
from .ws import router as notifications_router

__all__ = ["router", "notifications_router"]
