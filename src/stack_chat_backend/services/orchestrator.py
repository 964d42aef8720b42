"""Thread orchestration: one request turns into one persisted exchange.

Stages run strictly in order and each may end the request early:

RESOLVE -> LOAD -> AUTHORIZE -> LIMIT -> GENERATE -> TITLE -> PERSIST -> RESPOND

Nothing is written before GENERATE succeeds, so a failed request never leaves
a thread without its assistant turn. The stored history never contains the
system message; it is rebuilt from settings on every request.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from stack_toolkit.models.messages import Message, TextPart, Usage, user_message
from stack_toolkit.prompts import assemble_messages, build_system_prompt
from stack_toolkit.providers import ProviderError
from stack_toolkit.tools import InvocationContext, invocation_context

from stack_chat_backend.errors import (
    AuthError,
    CapacityError,
    ConflictError,
    ForbiddenError,
    InputValidationError,
    InternalError,
    OwnershipError,
    ThreadNotFoundError,
    UpstreamError,
)
from stack_chat_backend.storage.base import ThreadRecord, timestamp

if TYPE_CHECKING:
    from collections.abc import Callable

    from stack_toolkit.completion import CompletionInvoker
    from stack_toolkit.models.settings import Settings
    from stack_toolkit.titles import TitleGenerator

    from stack_chat_backend.storage.base import ThreadStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateResult:
    """Outcome of one generate request."""

    generated_text: str
    generated_title: str
    thread_id: str
    is_new_thread: bool
    usage: Usage = field(default_factory=Usage)
    cost: float = 0.0
    stopped_by_step_limit: bool = False


@dataclass(frozen=True)
class ThreadView:
    """Display projection of a stored thread."""

    id: str
    title: str
    messages: list[Message]
    created_at: str
    updated_at: str


def display_messages(messages: list[Message]) -> list[Message]:
    """Project stored history for display.

    Keeps user and assistant turns only and drops tool-call and tool-result
    parts. An assistant turn that used tools shows only its final text part;
    earlier text in that turn was written alongside the calls. Turns left
    without text are skipped.
    """
    projected: list[Message] = []
    for message in messages:
        if message.role not in ("user", "assistant"):
            continue
        text = message.text()
        if message.role == "assistant" and message.has_tool_parts():
            texts = [part.text for part in message.parts() if isinstance(part, TextPart)]
            text = texts[-1] if texts else ""
        if text.strip():
            projected.append(Message(role=message.role, content=text))
    return projected


def can_read(record: ThreadRecord, caller: str | None) -> bool:
    return record.is_public or record.owner is None or record.owner == caller


def can_write(record: ThreadRecord, caller: str | None) -> bool:
    return record.owner is None or record.owner == caller


def _new_thread_id() -> str:
    return str(uuid4())


class ThreadOrchestrator:
    """Run the generate flow and the thread read paths."""

    def __init__(
        self,
        store: ThreadStore,
        invoker: CompletionInvoker,
        title_generator: TitleGenerator,
        settings: Settings,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._invoker = invoker
        self._titles = title_generator
        self._settings = settings
        self._id_factory = id_factory or _new_thread_id

    @property
    def store(self) -> ThreadStore:
        return self._store

    async def generate(
        self,
        text: str,
        thread_id: str | None = None,
        *,
        is_public: bool = False,
        caller: str | None = None,
    ) -> GenerateResult:
        """Generate the assistant reply for ``text`` and persist the exchange.

        Raises:
            InputValidationError: Empty text or thread id.
            ForbiddenError: The thread belongs to someone else.
            CapacityError: The caller already owns the maximum number of threads.
            UpstreamError: The model provider failed or timed out.
            ConflictError: The thread changed underneath this request.
            StoreError: Any other persistence failure.
        """
        started = time.monotonic()
        if not text or not text.strip():
            msg = "Message text must not be empty"
            raise InputValidationError(msg)

        # RESOLVE
        is_new_thread = thread_id is None
        if thread_id is None:
            thread_id = self._generate_id()
        elif not thread_id.strip():
            msg = "Thread id must not be empty"
            raise InputValidationError(msg)

        # LOAD + AUTHORIZE
        existing: ThreadRecord | None = None
        if not is_new_thread:
            existing = self._store.get(thread_id)
            if existing is None:
                logger.info("Thread %s not found, starting it as a new thread", thread_id)
                is_new_thread = True
            elif not can_write(existing, caller):
                logger.warning("Caller is not the owner of thread %s", thread_id)
                msg = "You do not have access to this thread"
                raise ForbiddenError(msg)

        # LIMIT
        if is_new_thread and caller is not None:
            self._check_thread_limit(caller)

        # GENERATE
        history = [m for m in existing.messages if m.role != "system"] if existing else []
        system_prompt = build_system_prompt(self._settings.system_prompt, self._invoker.tools)
        working = assemble_messages(system_prompt, history, text)
        context = InvocationContext(thread_id=thread_id, owner=caller)
        generation_started = time.monotonic()
        with invocation_context(context):
            try:
                completion = await self._invoker.run(working)
            except ProviderError as exc:
                logger.exception("Generation failed for thread %s", thread_id)
                msg = f"Model provider failed: {exc}"
                raise UpstreamError(msg) from exc
        logger.info(
            "Generated reply for thread %s in %.0fms (steps=%d, history=%d messages)",
            thread_id,
            (time.monotonic() - generation_started) * 1000,
            completion.steps,
            len(history),
        )

        updated_history = [*history, user_message(text), completion.assistant_turn()]
        usage = completion.usage

        # TITLE
        new_title: str | None = None
        if existing is not None and existing.title:
            title = existing.title
        else:
            title_result = await self._titles.generate(updated_history)
            title = new_title = title_result.title
            usage += title_result.usage

        # PERSIST, cost included in the same write
        cost = self._compute_cost(usage, context.pending_cost)
        if is_new_thread:
            stored = self._create_thread(
                thread_id, title, updated_history, caller, is_public, cost
            )
        else:
            stored = self._update_thread(existing, updated_history, new_title, caller, cost)

        logger.info(
            "Persisted thread %s (new=%s, messages=%d, version=%d, cost=%.6f) in %.0fms",
            stored.id,
            is_new_thread,
            len(stored.messages),
            stored.version,
            cost,
            (time.monotonic() - started) * 1000,
        )
        # RESPOND
        return GenerateResult(
            generated_text=completion.text,
            generated_title=title,
            thread_id=stored.id,
            is_new_thread=is_new_thread,
            usage=usage,
            cost=cost,
            stopped_by_step_limit=completion.stopped_by_step_limit,
        )

    def get_thread_view(self, thread_id: str, caller: str | None = None) -> ThreadView:
        """Return the display view of a thread readable by ``caller``.

        Threads the caller may not read are reported as not found.
        """
        record = self._store.get(thread_id)
        if record is None or not can_read(record, caller):
            raise ThreadNotFoundError(thread_id)
        return ThreadView(
            id=record.id,
            title=record.title,
            messages=display_messages(record.messages),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def list_threads(self, caller: str | None, limit: int = 50) -> list[ThreadRecord]:
        if caller is None:
            msg = "A caller identity is required to list threads"
            raise AuthError(msg)
        return self._store.list_by_owner(caller, limit=limit)

    def delete_thread(self, thread_id: str, caller: str | None = None) -> None:
        self._store.delete(thread_id, expected_owner=caller)
        logger.info("Deleted thread %s", thread_id)

    def _generate_id(self) -> str:
        try:
            thread_id = self._id_factory()
        except Exception as exc:
            msg = "Could not generate a thread id"
            raise InternalError(msg) from exc
        if not thread_id:
            msg = "Thread id generator returned an empty id"
            raise InternalError(msg)
        return thread_id

    def _check_thread_limit(self, caller: str) -> None:
        maximum = self._settings.max_threads_per_owner
        owned = self._store.list_by_owner(caller, limit=maximum)
        if len(owned) >= maximum:
            logger.warning("Thread limit of %d reached for caller", maximum)
            msg = f"Thread limit reached: at most {maximum} threads per user"
            raise CapacityError(msg)

    def _create_thread(
        self,
        thread_id: str,
        title: str,
        messages: list[Message],
        caller: str | None,
        is_public: bool,
        cost: float,
    ) -> ThreadRecord:
        now = timestamp()
        return self._store.create(
            ThreadRecord(
                id=thread_id,
                title=title,
                messages=messages,
                owner=caller,
                is_public=is_public,
                cost=cost,
                created_at=now,
                updated_at=now,
            )
        )

    def _update_thread(
        self,
        existing: ThreadRecord,
        messages: list[Message],
        new_title: str | None,
        caller: str | None,
        cost: float,
    ) -> ThreadRecord:
        try:
            return self._store.update(
                existing.id,
                messages=messages,
                title=new_title,
                expected_owner=caller,
                expected_version=existing.version,
                cost_delta=cost,
            )
        except OwnershipError as exc:
            msg = f"Thread {existing.id} changed owner while this request was running"
            raise ConflictError(msg) from exc
        except ThreadNotFoundError as exc:
            msg = f"Thread {existing.id} was deleted while this request was running"
            raise ConflictError(msg) from exc

    def _compute_cost(self, usage: Usage, tool_cost: float) -> float:
        return max(
            0.0,
            usage.input_tokens / 1000 * self._settings.input_token_price
            + usage.output_tokens / 1000 * self._settings.output_token_price
            + tool_cost,
        )
