"""API routers."""

from .chat import create_chat_router
from .models import create_models_router
from .health import create_health_router

__all__ = [
    "create_chat_router",
    "create_models_router",
    "create_health_router"
]
