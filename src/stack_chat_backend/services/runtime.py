"""Chat runtime service.

Builds the provider, tool registry, completion invoker and title generator
once per process. Model resolution happens here, at start-up, and never on
the request path.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stack_toolkit.completion import CompletionInvoker
from stack_toolkit.config import initialize_runtime_config
from stack_toolkit.providers import create_provider
from stack_toolkit.titles import TitleGenerator
from stack_toolkit.tools import ToolRegistry, build_tool_registry

from stack_chat_backend.services.settings import get_settings

if TYPE_CHECKING:
    from stack_toolkit.models.settings import RuntimeConfig, Settings
    from stack_toolkit.providers import ChatProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatRuntime:
    """Process-wide generation components."""

    settings: Settings
    runtime_config: RuntimeConfig
    provider: ChatProvider
    invoker: CompletionInvoker
    title_generator: TitleGenerator


def build_runtime(
    settings: Settings,
    runtime_config: RuntimeConfig,
    provider: ChatProvider,
) -> ChatRuntime:
    """Wire generation components around ``provider``."""
    # Providers without a tool protocol get no tools in the prompt either.
    registry = (
        build_tool_registry(settings.enabled_tools or None)
        if provider.supports_tools
        else ToolRegistry()
    )
    invoker = CompletionInvoker(
        provider,
        registry,
        max_steps=settings.max_tool_steps,
        max_tokens=settings.max_generation_tokens,
        temperature=settings.temperature,
        top_p=settings.top_p,
        timeout=settings.generation_timeout,
        tool_timeout=settings.tool_timeout,
    )
    title_generator = TitleGenerator(
        provider,
        max_tokens=settings.title_max_tokens,
        timeout=settings.generation_timeout,
        temperature=settings.temperature,
        top_p=settings.top_p,
    )
    return ChatRuntime(
        settings=settings,
        runtime_config=runtime_config,
        provider=provider,
        invoker=invoker,
        title_generator=title_generator,
    )


_runtime: ChatRuntime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> ChatRuntime:
    """Get or create the singleton runtime (thread-safe)."""
    global _runtime  # noqa: PLW0603
    if _runtime is None:
        with _runtime_lock:
            if _runtime is None:  # Double-checked locking
                settings = get_settings()
                runtime_config = initialize_runtime_config(settings)
                for warning in runtime_config.warnings:
                    logger.warning("Model resolution: %s", warning)
                provider = create_provider(settings, runtime_config)
                _runtime = build_runtime(settings, runtime_config, provider)
                logger.info(
                    "Chat runtime initialized (provider=%s, model=%s, tools=%s)",
                    provider.name,
                    runtime_config.model_id,
                    ", ".join(tool.name for tool in _runtime.invoker.tools) or "none",
                )
    return _runtime


def reset_runtime() -> None:
    """Drop the cached runtime so the next call rebuilds it."""
    global _runtime  # noqa: PLW0603
    with _runtime_lock:
        _runtime = None
