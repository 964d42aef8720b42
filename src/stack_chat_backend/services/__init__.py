"""Services for the stack chat backend.

Business logic layer between routes and storage/runtime.
"""

from stack_chat_backend.services.orchestrator import (
    GenerateResult,
    ThreadOrchestrator,
    ThreadView,
    display_messages,
)
from stack_chat_backend.services.runtime import ChatRuntime, build_runtime, get_runtime

__all__ = [
    "ChatRuntime",
    "GenerateResult",
    "ThreadOrchestrator",
    "ThreadView",
    "build_runtime",
    "display_messages",
    "get_runtime",
]
