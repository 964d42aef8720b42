"""AWS Bedrock providers backed by boto3."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from stack_toolkit.models.messages import ToolCallPart, Usage
from stack_toolkit.prompts.formatters import ConverseFormatter, LlamaPromptFormatter
from stack_toolkit.providers.base import CompletionRequest, ProviderError, ProviderResponse

logger = logging.getLogger(__name__)


def create_runtime_client(region: str, read_timeout: float = 120.0) -> Any:
    """Create a ``bedrock-runtime`` client with bounded timeouts."""
    return boto3.client(
        "bedrock-runtime",
        region_name=region,
        config=Config(read_timeout=read_timeout, retries={"max_attempts": 2, "mode": "standard"}),
    )


class BedrockConverseProvider:
    """Bedrock Converse API provider with native tool use."""

    name = "converse"
    supports_tools = True

    def __init__(self, model_id: str, client: Any) -> None:
        self._model_id = model_id
        self._client = client
        self._formatter = ConverseFormatter()

    async def complete(self, request: CompletionRequest) -> ProviderResponse:
        kwargs = self._formatter.format(request.messages, request.tools)
        kwargs["modelId"] = self._model_id
        kwargs["inferenceConfig"] = {
            "maxTokens": request.max_tokens,
            "temperature": request.temperature,
            "topP": request.top_p,
        }
        try:
            response = await asyncio.to_thread(self._client.converse, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            msg = f"Bedrock converse failed: {exc}"
            raise ProviderError(msg) from exc
        return parse_converse_response(response)


def parse_converse_response(response: dict[str, Any]) -> ProviderResponse:
    """Normalize a Converse API response."""
    message = (response.get("output") or {}).get("message") or {}
    texts: list[str] = []
    tool_calls: list[ToolCallPart] = []
    for block in message.get("content", []):
        if "text" in block:
            texts.append(block["text"])
        elif "toolUse" in block:
            tool_use = block["toolUse"]
            tool_calls.append(
                ToolCallPart(
                    toolCallId=tool_use.get("toolUseId", ""),
                    toolName=tool_use.get("name", ""),
                    args=tool_use.get("input") or {},
                )
            )
    usage = response.get("usage") or {}
    return ProviderResponse(
        text="".join(texts).strip(),
        tool_calls=tool_calls,
        stop_reason=response.get("stopReason"),
        usage=Usage(
            input_tokens=int(usage.get("inputTokens", 0)),
            output_tokens=int(usage.get("outputTokens", 0)),
        ),
    )


class BedrockLlamaProvider:
    """Bedrock ``invoke_model`` provider using the Llama 3 prompt format.

    The prompt format has no tool protocol, so tools are never offered.
    """

    name = "llama"
    supports_tools = False

    def __init__(self, model_id: str, client: Any) -> None:
        self._model_id = model_id
        self._client = client
        self._formatter = LlamaPromptFormatter()

    async def complete(self, request: CompletionRequest) -> ProviderResponse:
        body = {
            "prompt": self._formatter.format(request.messages)["prompt"],
            "max_gen_len": request.max_tokens,
            "temperature": request.temperature,
            "top_p": request.top_p,
        }
        try:
            response = await asyncio.to_thread(
                self._client.invoke_model,
                modelId=self._model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body),
            )
            payload = json.loads(response["body"].read())
        except (BotoCoreError, ClientError) as exc:
            msg = f"Bedrock invocation failed: {exc}"
            raise ProviderError(msg) from exc
        except (KeyError, ValueError) as exc:
            msg = f"Bedrock returned an unreadable response: {exc}"
            raise ProviderError(msg) from exc

        generated = payload.get("generation") or ""
        if not generated:
            outputs = payload.get("outputs") or []
            generated = outputs[0].get("text", "") if outputs else ""
        logger.debug(
            "Llama generation finished (stop_reason=%s, tokens=%s)",
            payload.get("stop_reason"),
            payload.get("generation_token_count"),
        )
        return ProviderResponse(
            text=LlamaPromptFormatter.clean_output(generated),
            stop_reason=payload.get("stop_reason"),
            usage=Usage(
                input_tokens=int(payload.get("prompt_token_count") or 0),
                output_tokens=int(payload.get("generation_token_count") or 0),
            ),
        )
