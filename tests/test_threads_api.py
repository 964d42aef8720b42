from __future__ import annotations

from stack_chat_backend.storage import ThreadRecord
from stack_toolkit.models import Message, TextPart, ToolCallPart, ToolResultPart

OWNER = {"X-User-Email": "owner@example.com"}
OTHER = {"X-User-Email": "other@example.com"}


def _generate(client, text: str, headers=OWNER) -> str:
    response = client.post("/api/message/generate", json={"text": text}, headers=headers)
    assert response.status_code == 200
    return response.json()["id"]


def test_thread_lifecycle(client) -> None:
    thread_id = _generate(client, "Hello there")

    listed = client.get("/api/threads", headers=OWNER).json()
    assert [t["id"] for t in listed["threads"]] == [thread_id]
    assert listed["threads"][0]["title"] == "Database Choice For Small Shop"
    assert listed["threads"][0]["createdAt"]

    detail = client.get(f"/api/thread/{thread_id}", headers=OWNER).json()
    assert detail["id"] == thread_id
    assert detail["messages"][0] == {"role": "user", "content": "Hello there"}
    assert detail["updatedAt"] >= detail["createdAt"]

    deleted = client.delete(f"/api/thread/{thread_id}", headers=OWNER)
    assert deleted.status_code == 200
    assert deleted.json() == {"status": "ok"}

    assert client.get("/api/threads", headers=OWNER).json()["threads"] == []
    assert client.get(f"/api/thread/{thread_id}", headers=OWNER).status_code == 404


def test_thread_detail_hides_tool_parts(client, store) -> None:
    store.create(
        ThreadRecord(
            id="t1",
            title="Math",
            owner="owner@example.com",
            messages=[
                Message(role="user", content="What is 6 x 7?"),
                Message(
                    role="assistant",
                    content=[
                        ToolCallPart(toolCallId="c1", toolName="calculate", args={}),
                    ],
                ),
                Message(role="assistant", content="42"),
            ],
        )
    )

    detail = client.get("/api/thread/t1", headers=OWNER).json()

    assert detail["messages"] == [
        {"role": "user", "content": "What is 6 x 7?"},
        {"role": "assistant", "content": "42"},
    ]


def test_private_thread_is_hidden_from_others(client) -> None:
    thread_id = _generate(client, "Secret plans")

    response = client.get(f"/api/thread/{thread_id}", headers=OTHER)

    assert response.status_code == 404
    assert response.json()["category"] == "NotFound"


def test_list_is_scoped_to_caller_and_bounded(client, store) -> None:
    for index in range(3):
        store.create(
            ThreadRecord(
                id=f"t{index}",
                title=f"Thread {index}",
                owner="owner@example.com",
                created_at=f"2025-01-0{index + 1}T00:00:00+00:00",
                updated_at=f"2025-01-0{index + 1}T00:00:00+00:00",
            )
        )
    store.create(ThreadRecord(id="x", title="Other", owner="other@example.com"))

    listed = client.get("/api/threads", params={"limit": 2}, headers=OWNER).json()

    assert [t["id"] for t in listed["threads"]] == ["t2", "t1"]


def test_list_requires_identity(client) -> None:
    response = client.get("/api/threads")

    assert response.status_code == 401
    assert response.json()["category"] == "Unauthorized"


def test_list_rejects_out_of_range_limit(client) -> None:
    assert client.get("/api/threads", params={"limit": 0}, headers=OWNER).status_code == 400


def test_delete_foreign_thread_is_forbidden(client, store) -> None:
    thread_id = _generate(client, "Mine")

    response = client.delete(f"/api/thread/{thread_id}", headers=OTHER)

    assert response.status_code == 403
    assert store.get(thread_id) is not None


def test_delete_missing_thread(client) -> None:
    assert client.delete("/api/thread/missing", headers=OWNER).status_code == 404


def test_thread_detail_shows_final_answer_of_tool_turn(client, store) -> None:
    store.create(
        ThreadRecord(
            id="t2",
            title="Math",
            owner="owner@example.com",
            messages=[
                Message(role="user", content="What is 6 x 7?"),
                Message(
                    role="assistant",
                    content=[
                        TextPart(text="Let me calculate that."),
                        ToolCallPart(toolCallId="c1", toolName="calculate", args={}),
                        ToolResultPart(toolCallId="c1", toolName="calculate", result=42),
                        TextPart(text="42"),
                    ],
                ),
            ],
        )
    )

    detail = client.get("/api/thread/t2", headers=OWNER).json()

    assert detail["messages"][1] == {"role": "assistant", "content": "42"}
