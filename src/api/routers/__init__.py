"""API routers package."""

from .health import router as health_router
from .auth import router as auth_router
from .posts import router as posts_router
from .ai import router as ai_router
from .models import router as models_router
from .refactor import router as refactor_router
from .bug_detect import router as bug_detect_router
from .subscription import router as subscription_router
from .chat import router as chat_router

__all__ = [
    "health_router",
    "auth_router",
    "posts_router",
    "ai_router",
    "models_router",
    "refactor_router",
    "bug_detect_router",
    "subscription_router",
    "chat_router",
]
