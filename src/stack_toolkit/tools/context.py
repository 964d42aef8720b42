"""Per-generation context visible to tool handlers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class InvocationContext:
    """State shared between the orchestrator and tools during one generation."""

    thread_id: str
    owner: str | None = None
    pending_cost: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def record_cost(self, amount: float) -> float:
        """Add to the cost recorded by tools and return the new pending total."""
        if amount < 0:
            msg = "Cost increment must not be negative"
            raise ValueError(msg)
        with self._lock:
            self.pending_cost += amount
            return self.pending_cost


_invocation_ctx: ContextVar[InvocationContext | None] = ContextVar(
    "invocation_context", default=None
)


def get_invocation_context() -> InvocationContext | None:
    """Return the active invocation context, if any."""
    return _invocation_ctx.get()


@contextmanager
def invocation_context(context: InvocationContext) -> Iterator[InvocationContext]:
    """Make ``context`` visible to tools for the duration of the block."""
    token = _invocation_ctx.set(context)
    try:
        yield context
    finally:
        _invocation_ctx.reset(token)
