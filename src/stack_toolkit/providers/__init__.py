"""Model providers.

Every provider completes one request/response round-trip; the multi-step
tool loop lives in ``stack_toolkit.completion``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stack_toolkit.providers.base import (
    ChatProvider,
    CompletionRequest,
    ProviderError,
    ProviderResponse,
)
from stack_toolkit.providers.bedrock import (
    BedrockConverseProvider,
    BedrockLlamaProvider,
    create_runtime_client,
    parse_converse_response,
)
from stack_toolkit.providers.strands_provider import (
    StrandsModelProvider,
    bedrock_model_factory,
    collect_stream,
)

if TYPE_CHECKING:
    from stack_toolkit.models.settings import RuntimeConfig, Settings


def create_provider(
    settings: Settings, runtime_config: RuntimeConfig, client: Any | None = None
) -> ChatProvider:
    """Create the provider selected by ``settings.llm_provider``."""
    if settings.llm_provider == "strands":
        return StrandsModelProvider(
            bedrock_model_factory(
                runtime_config.model_id, runtime_config.region, settings.temperature
            )
        )
    runtime_client = client or create_runtime_client(
        runtime_config.region, read_timeout=settings.generation_timeout
    )
    if settings.llm_provider == "llama":
        return BedrockLlamaProvider(runtime_config.model_id, runtime_client)
    return BedrockConverseProvider(runtime_config.model_id, runtime_client)


__all__ = [
    "BedrockConverseProvider",
    "BedrockLlamaProvider",
    "ChatProvider",
    "CompletionRequest",
    "ProviderError",
    "ProviderResponse",
    "StrandsModelProvider",
    "bedrock_model_factory",
    "collect_stream",
    "create_provider",
    "create_runtime_client",
    "parse_converse_response",
]
