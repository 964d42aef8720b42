"""Thread record and store contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from stack_toolkit.models.messages import Message


@dataclass(frozen=True)
class ThreadRecord:
    """A persisted conversation."""

    id: str
    title: str = ""
    messages: list[Message] = field(default_factory=list)
    owner: str | None = None
    is_public: bool = False
    cost: float = 0.0
    version: int = 1
    created_at: str = ""
    updated_at: str = ""


class ThreadStore(Protocol):
    """Key-value thread storage with conditional writes.

    Ownership condition for every mutation: the stored owner is absent or
    equals ``expected_owner``. A mutation on an unowned thread with a
    non-empty ``expected_owner`` claims it.
    """

    def create(self, record: ThreadRecord) -> ThreadRecord:
        """Insert a new thread.

        Raises:
            ThreadExistsError: If the id is already taken.
        """
        ...

    def get(self, thread_id: str) -> ThreadRecord | None:
        """Return the thread or ``None`` when it does not exist."""
        ...

    def update(
        self,
        thread_id: str,
        *,
        messages: list[Message],
        title: str | None = None,
        expected_owner: str | None = None,
        expected_version: int | None = None,
        cost_delta: float = 0.0,
    ) -> ThreadRecord:
        """Replace messages (and title when given), bumping the version.

        ``cost_delta`` is added to the thread cost in the same conditional write.

        Raises:
            ThreadNotFoundError: If the thread does not exist.
            OwnershipError: If the ownership condition fails.
            ConflictError: If ``expected_version`` no longer matches.
        """
        ...

    def add_cost(
        self, thread_id: str, delta: float, *, expected_owner: str | None = None
    ) -> float:
        """Atomically add ``delta`` to the thread cost and return the new total."""
        ...

    def list_by_owner(self, owner: str, limit: int = 50) -> list[ThreadRecord]:
        """Return at most ``limit`` threads of ``owner``, newest first."""
        ...

    def delete(self, thread_id: str, *, expected_owner: str | None = None) -> None:
        """Delete a thread under the ownership condition."""
        ...


def timestamp() -> str:
    return datetime.now(UTC).isoformat()
