"""Routes package for the stack chat backend API.

All API routes are defined here and registered with the FastAPI app.
"""

from stack_chat_backend.routes.health import router as health_router
from stack_chat_backend.routes.messages import router as messages_router
from stack_chat_backend.routes.threads import router as threads_router

__all__ = ["health_router", "messages_router", "threads_router"]
