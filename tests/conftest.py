from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from stack_chat_backend.dependencies import get_runtime, get_storage
from stack_chat_backend.main import app
from stack_chat_backend.services.orchestrator import ThreadOrchestrator
from stack_chat_backend.services.runtime import build_runtime
from stack_chat_backend.services.settings import get_settings
from stack_chat_backend.storage import SQLiteThreadStore
from stack_toolkit.models import RuntimeConfig, Settings, Usage
from stack_toolkit.providers import CompletionRequest, ProviderResponse
from stack_toolkit.titles import TITLE_SYSTEM_PROMPT

_ENV_VARS = (
    "SYSTEM_PROMPT",
    "BEDROCK_MODEL_ID",
    "AWS_REGION",
    "LLM_PROVIDER",
    "RESOLVE_INFERENCE_PROFILE",
    "MAX_THREADS_PER_OWNER",
    "MAX_TOOL_STEPS",
    "MAX_GENERATION_TOKENS",
    "TITLE_MAX_TOKENS",
    "TEMPERATURE",
    "TOP_P",
    "GENERATION_TIMEOUT",
    "TOOL_TIMEOUT",
    "ENABLED_TOOLS",
    "INPUT_TOKEN_PRICE",
    "OUTPUT_TOKEN_PRICE",
    "THREAD_STORE",
    "DYNAMODB_TABLE_NAME",
    "DYNAMODB_OWNER_INDEX",
    "REQUIRE_CALLER_IDENTITY",
    "DEFAULT_OWNER",
    "WEB_ALLOWED_ORIGINS",
)

DEFAULT_REPLY = "For a small e-commerce app, PostgreSQL is a solid default."
DEFAULT_TITLE = "Database Choice For Small Shop"


class ScriptedProvider:
    """Provider double returning queued responses.

    Title requests are answered separately so scripts only describe the
    conversation itself.
    """

    name = "scripted"

    def __init__(
        self,
        responses: list[ProviderResponse | Exception] | None = None,
        *,
        supports_tools: bool = True,
        title: str | Exception = f'"{DEFAULT_TITLE}"',
    ) -> None:
        self.supports_tools = supports_tools
        self.responses = list(responses or [])
        self.title = title
        self.requests: list[CompletionRequest] = []
        self.title_requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> ProviderResponse:
        if request.messages and request.messages[0].text() == TITLE_SYSTEM_PROMPT:
            self.title_requests.append(request)
            if isinstance(self.title, Exception):
                raise self.title
            return ProviderResponse(text=self.title, usage=Usage(input_tokens=20, output_tokens=5))
        self.requests.append(request)
        item = (
            self.responses.pop(0)
            if self.responses
            else ProviderResponse(
                text=DEFAULT_REPLY,
                stop_reason="end_turn",
                usage=Usage(input_tokens=100, output_tokens=50),
            )
        )
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WEB_STORAGE_DIR", str(tmp_path / "data"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(max_threads_per_owner=5, max_tool_steps=4)


@pytest.fixture
def make_provider() -> type[ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def store(tmp_path) -> SQLiteThreadStore:
    return SQLiteThreadStore(tmp_path / "threads.db")


@pytest.fixture
def runtime(settings, provider):
    return build_runtime(
        settings, RuntimeConfig(model_id="test-model", region="us-east-1"), provider
    )


@pytest.fixture
def orchestrator(store, runtime, settings) -> ThreadOrchestrator:
    return ThreadOrchestrator(store, runtime.invoker, runtime.title_generator, settings)


@pytest.fixture
def client(store, runtime) -> TestClient:
    """Create a test client with isolated storage and a scripted provider."""
    app.dependency_overrides[get_storage] = lambda: store
    app.dependency_overrides[get_runtime] = lambda: runtime

    yield TestClient(app)

    app.dependency_overrides.clear()
