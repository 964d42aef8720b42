"""FastAPI dependency injection for shared services.

Tests override ``get_storage`` and ``get_runtime`` through
``app.dependency_overrides``.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends, Header

from stack_chat_backend.errors import AuthError, InputValidationError
from stack_chat_backend.services.orchestrator import ThreadOrchestrator
from stack_chat_backend.services.runtime import get_runtime as _get_runtime
from stack_chat_backend.services.settings import get_settings, storage_dir
from stack_chat_backend.storage import create_thread_store

if TYPE_CHECKING:
    from stack_chat_backend.services.runtime import ChatRuntime
    from stack_chat_backend.storage import ThreadStore

CALLER_HEADER = "X-User-Email"
_EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


@lru_cache
def get_storage() -> ThreadStore:
    """Get the thread store (cached singleton)."""
    return create_thread_store(get_settings(), storage_dir())


def get_runtime() -> ChatRuntime:
    """Get the chat runtime."""
    return _get_runtime()


_storage_dep = Depends(get_storage)
_runtime_dep = Depends(get_runtime)


def get_orchestrator(
    storage: ThreadStore = _storage_dep, runtime: ChatRuntime = _runtime_dep
) -> ThreadOrchestrator:
    return ThreadOrchestrator(
        storage, runtime.invoker, runtime.title_generator, runtime.settings
    )


def get_caller(
    x_user_email: str | None = Header(default=None, alias=CALLER_HEADER),  # noqa: B008
) -> str | None:
    """Resolve the caller identity from the request.

    Falls back to ``DEFAULT_OWNER``; a present identity must look like an
    e-mail address.
    """
    settings = get_settings()
    caller = (x_user_email or "").strip() or settings.default_owner
    if caller is None:
        if settings.require_caller_identity:
            msg = f"Missing caller identity ({CALLER_HEADER} header)"
            raise AuthError(msg)
        return None
    if not _EMAIL_PATTERN.match(caller):
        msg = "Caller identity must be a valid e-mail address"
        raise InputValidationError(msg)
    return caller
