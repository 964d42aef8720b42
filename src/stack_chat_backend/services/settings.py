"""Cached settings for backend services.

Environment parsing and validation happen once per process.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

from stack_toolkit.config import load_settings

if TYPE_CHECKING:
    from stack_toolkit.models.settings import Settings


@lru_cache
def get_settings() -> Settings:
    """Return cached runtime settings."""
    return load_settings()


def storage_dir() -> Path:
    """Directory holding the SQLite database (``WEB_STORAGE_DIR``)."""
    return Path(os.getenv("WEB_STORAGE_DIR", ".data"))


def allowed_origins() -> list[str]:
    allowed = os.getenv("WEB_ALLOWED_ORIGINS")
    if not allowed:
        return []
    return [origin.strip() for origin in allowed.split(",") if origin.strip()]
