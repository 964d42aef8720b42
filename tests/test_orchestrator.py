from __future__ import annotations

import pytest
from stack_chat_backend.errors import (
    AuthError,
    CapacityError,
    ConflictError,
    ForbiddenError,
    InputValidationError,
    InternalError,
    StoreUnavailableError,
    ThreadNotFoundError,
    UpstreamError,
)
from stack_chat_backend.services.orchestrator import ThreadOrchestrator, display_messages
from stack_chat_backend.services.runtime import build_runtime
from stack_chat_backend.storage import ThreadRecord
from stack_toolkit.models import (
    Message,
    RuntimeConfig,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    Usage,
)
from stack_toolkit.providers import ProviderError, ProviderResponse
from stack_toolkit.titles import FALLBACK_TITLE

OWNER = "owner@example.com"
OTHER = "other@example.com"


def _orchestrator(store, settings, provider, **kwargs) -> ThreadOrchestrator:
    runtime = build_runtime(settings, RuntimeConfig(model_id="m", region="us-east-1"), provider)
    return ThreadOrchestrator(store, runtime.invoker, runtime.title_generator, settings, **kwargs)


@pytest.mark.asyncio
async def test_new_thread_persists_one_exchange(orchestrator, store, provider) -> None:
    result = await orchestrator.generate(
        "Recommend a database for a small e-commerce app", caller=OWNER
    )

    assert result.is_new_thread
    assert result.generated_text
    assert result.generated_title == "Database Choice For Small Shop"
    assert 3 <= len(result.generated_title.split()) <= 7
    record = store.get(result.thread_id)
    assert [m.role for m in record.messages] == ["user", "assistant"]
    assert record.messages[0].text() == "Recommend a database for a small e-commerce app"
    assert record.owner == OWNER
    assert record.title == result.generated_title
    assert all(m.role != "system" for m in record.messages)
    assert provider.requests[0].messages[0].role == "system"


@pytest.mark.asyncio
async def test_fresh_ids_are_unique(orchestrator) -> None:
    first = await orchestrator.generate("one")
    second = await orchestrator.generate("two")

    assert first.thread_id != second.thread_id


@pytest.mark.asyncio
async def test_follow_up_appends_and_keeps_title(orchestrator, store, provider) -> None:
    first = await orchestrator.generate("Recommend a database", caller=OWNER)
    before = store.get(first.thread_id)
    provider.title = '"A Completely Different Title"'

    second = await orchestrator.generate("What about caching?", first.thread_id, caller=OWNER)

    after = store.get(first.thread_id)
    assert second.thread_id == first.thread_id
    assert not second.is_new_thread
    assert second.generated_title == first.generated_title
    assert after.title == first.generated_title
    assert len(after.messages) == len(before.messages) + 2
    assert after.messages[:2] == before.messages
    assert after.version == before.version + 1
    assert len(provider.title_requests) == 1
    history_roles = [m.role for m in provider.requests[1].messages]
    assert history_roles == ["system", "user", "assistant", "user"]


@pytest.mark.asyncio
async def test_non_owner_is_forbidden_without_mutation(orchestrator, store, provider) -> None:
    created = await orchestrator.generate("Private question", caller=OWNER)
    before = store.get(created.thread_id)
    calls = len(provider.requests)

    with pytest.raises(ForbiddenError):
        await orchestrator.generate("Let me in", created.thread_id, caller=OTHER)
    with pytest.raises(ForbiddenError):
        await orchestrator.generate("Anonymous", created.thread_id)

    assert store.get(created.thread_id) == before
    assert len(provider.requests) == calls


@pytest.mark.asyncio
async def test_public_thread_is_readable_but_not_writable(orchestrator, store) -> None:
    created = await orchestrator.generate("Shared question", is_public=True, caller=OWNER)

    view = orchestrator.get_thread_view(created.thread_id, caller=OTHER)
    assert [m.role for m in view.messages] == ["user", "assistant"]
    with pytest.raises(ForbiddenError):
        await orchestrator.generate("Can I add?", created.thread_id, caller=OTHER)


@pytest.mark.asyncio
async def test_private_thread_is_not_found_for_others(orchestrator) -> None:
    created = await orchestrator.generate("Secret", caller=OWNER)

    with pytest.raises(ThreadNotFoundError):
        orchestrator.get_thread_view(created.thread_id, caller=OTHER)
    with pytest.raises(ThreadNotFoundError):
        orchestrator.get_thread_view("missing", caller=OWNER)


@pytest.mark.asyncio
async def test_thread_limit_rejects_before_generation(orchestrator, store, provider) -> None:
    for index in range(5):
        store.create(ThreadRecord(id=f"existing-{index}", owner=OWNER, title="t"))

    with pytest.raises(CapacityError):
        await orchestrator.generate("One more", caller=OWNER)

    assert provider.requests == []
    assert len(store.list_by_owner(OWNER, limit=100)) == 5


@pytest.mark.asyncio
async def test_thread_limit_does_not_block_existing_threads(orchestrator, store) -> None:
    for index in range(5):
        store.create(ThreadRecord(id=f"existing-{index}", owner=OWNER, title="t"))

    result = await orchestrator.generate("Continue", "existing-0", caller=OWNER)

    assert not result.is_new_thread


@pytest.mark.asyncio
async def test_missing_referenced_thread_starts_new_thread(orchestrator, store) -> None:
    result = await orchestrator.generate("Hello", "client-chosen-id", caller=OWNER)

    assert result.is_new_thread
    assert result.thread_id == "client-chosen-id"
    assert store.get("client-chosen-id").owner == OWNER


@pytest.mark.asyncio
async def test_provider_failure_persists_nothing(store, settings, make_provider) -> None:
    provider = make_provider([ProviderError("model overloaded")])
    orchestrator = _orchestrator(store, settings, provider, id_factory=lambda: "fixed-id")

    with pytest.raises(UpstreamError, match="model overloaded"):
        await orchestrator.generate("Hello", caller=OWNER)

    assert store.get("fixed-id") is None


@pytest.mark.asyncio
async def test_title_failure_uses_fallback(store, settings, make_provider) -> None:
    provider = make_provider(title=ProviderError("title model down"))
    orchestrator = _orchestrator(store, settings, provider)

    result = await orchestrator.generate("Hello", caller=OWNER)

    assert result.generated_title == FALLBACK_TITLE
    assert store.get(result.thread_id).title == FALLBACK_TITLE


@pytest.mark.asyncio
async def test_concurrent_change_is_reported_as_conflict(orchestrator, store, monkeypatch) -> None:
    created = await orchestrator.generate("Hello", caller=OWNER)
    stale = store.get(created.thread_id)

    # Another request lands between this request's load and persist.
    store.update(created.thread_id, messages=stale.messages, expected_owner=OWNER)
    monkeypatch.setattr(store, "get", lambda thread_id: stale)

    with pytest.raises(ConflictError):
        await orchestrator.generate("Follow-up", created.thread_id, caller=OWNER)


@pytest.mark.asyncio
async def test_tool_turns_are_stored_but_hidden_from_display(store, settings, make_provider) -> None:
    provider = make_provider(
        [
            ProviderResponse(
                tool_calls=[
                    ToolCallPart(
                        toolCallId="c1",
                        toolName="calculate",
                        args={"operation": "multiply", "a": 6, "b": 7},
                    )
                ],
                usage=Usage(input_tokens=10, output_tokens=5),
            ),
            ProviderResponse(text="6 x 7 = 42", usage=Usage(input_tokens=20, output_tokens=5)),
        ]
    )
    orchestrator = _orchestrator(store, settings, provider)

    result = await orchestrator.generate("What is 6 x 7?", caller=OWNER)

    stored = store.get(result.thread_id).messages
    assert len(stored) == 2
    assert stored[1].has_tool_parts()
    view = orchestrator.get_thread_view(result.thread_id, caller=OWNER)
    assert [(m.role, m.content) for m in view.messages] == [
        ("user", "What is 6 x 7?"),
        ("assistant", "6 x 7 = 42"),
    ]


@pytest.mark.asyncio
async def test_cost_includes_usage_and_tool_increments(store, settings, make_provider) -> None:
    provider = make_provider(
        [
            ProviderResponse(
                tool_calls=[
                    ToolCallPart(
                        toolCallId="c1", toolName="update_thread_cost", args={"costIncrement": 0.5}
                    )
                ],
                usage=Usage(input_tokens=1000, output_tokens=0),
            ),
            ProviderResponse(text="Recorded.", usage=Usage(input_tokens=0, output_tokens=1000)),
        ]
    )
    orchestrator = _orchestrator(store, settings, provider)

    result = await orchestrator.generate("Track this", caller=OWNER)

    title_cost = 20 / 1000 * settings.input_token_price + 5 / 1000 * settings.output_token_price
    expected = settings.input_token_price + settings.output_token_price + 0.5 + title_cost
    assert result.cost == pytest.approx(expected)
    assert store.get(result.thread_id).cost == pytest.approx(expected)


@pytest.mark.asyncio
async def test_blank_text_is_rejected(orchestrator) -> None:
    with pytest.raises(InputValidationError):
        await orchestrator.generate("   ")
    with pytest.raises(InputValidationError):
        await orchestrator.generate("hi", " ")


@pytest.mark.asyncio
async def test_id_generation_failure_is_fatal(store, settings, provider) -> None:
    orchestrator = _orchestrator(store, settings, provider, id_factory=lambda: "")

    with pytest.raises(InternalError):
        await orchestrator.generate("Hello")

    assert provider.requests == []


@pytest.mark.asyncio
async def test_list_and_delete_threads(orchestrator) -> None:
    created = await orchestrator.generate("Hello", caller=OWNER)

    assert [r.id for r in orchestrator.list_threads(OWNER)] == [created.thread_id]
    with pytest.raises(AuthError):
        orchestrator.list_threads(None)

    orchestrator.delete_thread(created.thread_id, OWNER)
    assert orchestrator.list_threads(OWNER) == []


def test_display_messages_filters_roles_and_tool_only_turns() -> None:
    messages = [
        Message(role="system", content="sys"),
        Message(role="user", content="Q"),
        Message(
            role="assistant",
            content=[ToolCallPart(toolCallId="c1", toolName="calculate", args={})],
        ),
        Message(
            role="assistant",
            content=[ToolResultPart(toolCallId="c1", toolName="calculate", result=1)],
        ),
        Message(role="assistant", content="A"),
    ]

    assert display_messages(messages) == [
        Message(role="user", content="Q"),
        Message(role="assistant", content="A"),
    ]


@pytest.mark.asyncio
async def test_cost_is_written_with_the_turn(orchestrator, store, settings, monkeypatch) -> None:
    def fail_add_cost(*args, **kwargs):
        msg = "cost table offline"
        raise StoreUnavailableError(msg)

    monkeypatch.setattr(store, "add_cost", fail_add_cost)

    first = await orchestrator.generate("Hello", caller=OWNER)
    after_first = store.get(first.thread_id).cost
    second = await orchestrator.generate("Again", first.thread_id, caller=OWNER)

    assert after_first == pytest.approx(first.cost)
    assert first.cost > 0
    assert store.get(first.thread_id).cost == pytest.approx(first.cost + second.cost)


@pytest.mark.asyncio
async def test_failed_follow_up_write_leaves_thread_untouched(orchestrator, store, monkeypatch) -> None:
    created = await orchestrator.generate("Hello", caller=OWNER)
    before = store.get(created.thread_id)

    def fail_update(*args, **kwargs):
        msg = "database is locked"
        raise StoreUnavailableError(msg)

    monkeypatch.setattr(store, "update", fail_update)

    with pytest.raises(StoreUnavailableError):
        await orchestrator.generate("Follow-up", created.thread_id, caller=OWNER)

    monkeypatch.undo()
    assert store.get(created.thread_id) == before


@pytest.mark.asyncio
async def test_failed_create_stores_nothing(store, settings, provider, monkeypatch) -> None:
    orchestrator = _orchestrator(store, settings, provider, id_factory=lambda: "fixed-id")

    def fail_create(record):
        msg = "database is locked"
        raise StoreUnavailableError(msg)

    monkeypatch.setattr(store, "create", fail_create)

    with pytest.raises(StoreUnavailableError):
        await orchestrator.generate("Hello", caller=OWNER)

    monkeypatch.undo()
    assert store.get("fixed-id") is None


def test_display_shows_only_final_text_of_tool_turn() -> None:
    messages = [
        Message(role="user", content="What is 6 x 7?"),
        Message(
            role="assistant",
            content=[
                TextPart(text="Let me calculate that."),
                ToolCallPart(toolCallId="c1", toolName="calculate", args={}),
                ToolResultPart(toolCallId="c1", toolName="calculate", result=42),
                TextPart(text="6 x 7 = 42"),
            ],
        ),
        Message(role="assistant", content=[TextPart(text="One"), TextPart(text="Two")]),
    ]

    assert display_messages(messages) == [
        Message(role="user", content="What is 6 x 7?"),
        Message(role="assistant", content="6 x 7 = 42"),
        Message(role="assistant", content="One\n\nTwo"),
    ]
