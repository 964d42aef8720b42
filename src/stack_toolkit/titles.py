"""Best-effort conversation titles."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stack_toolkit.models.messages import Message, Usage, system_message, user_message
from stack_toolkit.providers.base import CompletionRequest, ProviderError

if TYPE_CHECKING:
    from stack_toolkit.providers.base import ChatProvider

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "Untitled Conversation"
TITLE_SYSTEM_PROMPT = (
    "You generate short, descriptive titles for conversations. "
    "Reply with the title only: 3 to 7 words, no quotes, no trailing punctuation."
)
TITLE_USER_PROMPT = "Generate a concise title for the conversation above."
_QUOTES = "\"'`“”‘’"


@dataclass(frozen=True)
class TitleResult:
    title: str
    usage: Usage = field(default_factory=Usage)
    fallback: bool = False


def clean_title(raw: str) -> str:
    """Strip surrounding whitespace and one pair of enclosing quote characters."""
    title = raw.strip()
    if len(title) >= 2 and title[0] in _QUOTES and title[-1] in _QUOTES:
        title = title[1:-1]
    return title.strip()


class TitleGenerator:
    """Derive a 3-7 word title from the opening exchanges of a thread."""

    def __init__(
        self,
        provider: ChatProvider,
        *,
        max_tokens: int = 100,
        timeout: float | None = 30.0,
        context_messages: int = 4,
        temperature: float = 0.5,
        top_p: float = 0.9,
    ) -> None:
        self._provider = provider
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._context_messages = context_messages
        self._temperature = temperature
        self._top_p = top_p

    def build_messages(self, messages: list[Message]) -> list[Message]:
        context = [message for message in messages if message.role != "system"]
        return [
            system_message(TITLE_SYSTEM_PROMPT),
            *context[: self._context_messages],
            user_message(TITLE_USER_PROMPT),
        ]

    async def generate(self, messages: list[Message]) -> TitleResult:
        """Generate a title, falling back to ``FALLBACK_TITLE`` on any failure."""
        request = CompletionRequest(
            messages=self.build_messages(messages),
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            top_p=self._top_p,
        )
        try:
            response = await asyncio.wait_for(
                self._provider.complete(request), timeout=self._timeout
            )
        except (ProviderError, TimeoutError) as exc:
            logger.warning("Title generation failed, using fallback: %s", exc)
            return TitleResult(title=FALLBACK_TITLE, fallback=True)
        except Exception:
            logger.exception("Unexpected title generation error, using fallback")
            return TitleResult(title=FALLBACK_TITLE, fallback=True)

        title = clean_title(response.text)
        if not title:
            logger.warning("Title generation returned no text, using fallback")
            return TitleResult(title=FALLBACK_TITLE, usage=response.usage, fallback=True)
        return TitleResult(title=title, usage=response.usage)
