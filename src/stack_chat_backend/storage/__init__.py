"""Thread storage backends."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from stack_chat_backend.storage.base import ThreadRecord, ThreadStore, timestamp
from stack_chat_backend.storage.dynamodb import DynamoThreadStore, table_definition
from stack_chat_backend.storage.sqlite import SQLiteThreadStore

if TYPE_CHECKING:
    from stack_toolkit.models.settings import Settings

SQLITE_FILENAME = "stack_chat.db"


def create_thread_store(settings: Settings, storage_dir: str | Path = ".data") -> ThreadStore:
    """Create the store selected by ``settings.thread_store``."""
    if settings.thread_store == "dynamodb":
        return DynamoThreadStore(
            settings.dynamodb_table_name,
            owner_index=settings.dynamodb_owner_index,
            region=settings.aws_region,
        )
    return SQLiteThreadStore(Path(storage_dir) / SQLITE_FILENAME)


__all__ = [
    "SQLITE_FILENAME",
    "DynamoThreadStore",
    "SQLiteThreadStore",
    "ThreadRecord",
    "ThreadStore",
    "create_thread_store",
    "table_definition",
    "timestamp",
]
