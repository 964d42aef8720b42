"""Pydantic models for application settings."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = """You are a helpful AI assistant for the Stack Generator application.

You help users choose technology stacks: databases, cloud services, frameworks and tooling.

When answering questions:
- Reference specific companies and services when relevant
- Provide clear, accurate, and concise responses
- If asked about services you do not know, say so and provide general guidance
- Focus on helping users make informed decisions about their technology choices"""

DEFAULT_MODEL_ID = "us.meta.llama4-maverick-17b-instruct-v1:0"

LLM_PROVIDERS = ("converse", "llama", "strands")
THREAD_STORES = ("sqlite", "dynamodb")


class Settings(BaseModel, frozen=True):
    """Runtime configuration loaded from environment variables."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    bedrock_model_id: str = DEFAULT_MODEL_ID
    aws_region: str = "us-east-1"
    llm_provider: str = "converse"
    resolve_inference_profile: bool = False
    max_threads_per_owner: int = 50
    max_tool_steps: int = 25
    max_generation_tokens: int = 2048
    title_max_tokens: int = 100
    temperature: float = 0.5
    top_p: float = 0.9
    generation_timeout: float = 120.0
    tool_timeout: float = 30.0
    enabled_tools: list[str] = Field(default_factory=list)
    # Prices are per 1K tokens
    input_token_price: float = 0.00024
    output_token_price: float = 0.00097
    thread_store: str = "sqlite"
    dynamodb_table_name: str = "threads"
    dynamodb_owner_index: str = "owner-index"
    require_caller_identity: bool = False
    default_owner: str | None = None


class RuntimeConfig(BaseModel, frozen=True):
    """Values resolved once at process start."""

    model_id: str
    region: str
    warnings: tuple[str, ...] = ()


def _parse_list(value: str) -> list[str]:
    """Parse comma-separated string into list."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _validate(settings: Settings) -> Settings:
    if settings.llm_provider not in LLM_PROVIDERS:
        msg = f"LLM_PROVIDER must be one of {LLM_PROVIDERS}, got '{settings.llm_provider}'"
        raise ValueError(msg)
    if settings.thread_store not in THREAD_STORES:
        msg = f"THREAD_STORE must be one of {THREAD_STORES}, got '{settings.thread_store}'"
        raise ValueError(msg)
    if settings.max_tool_steps < 1:
        msg = "MAX_TOOL_STEPS must be at least 1"
        raise ValueError(msg)
    if settings.max_threads_per_owner < 1:
        msg = "MAX_THREADS_PER_OWNER must be at least 1"
        raise ValueError(msg)
    if settings.input_token_price < 0 or settings.output_token_price < 0:
        msg = "Token prices must not be negative"
        raise ValueError(msg)
    return settings


def load_settings() -> Settings:
    """Load settings from environment variables with defaults."""
    load_dotenv()

    return _validate(
        Settings(
            system_prompt=os.getenv("SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
            bedrock_model_id=os.getenv("BEDROCK_MODEL_ID", DEFAULT_MODEL_ID),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            llm_provider=os.getenv("LLM_PROVIDER", "converse").lower(),
            resolve_inference_profile=_parse_bool(os.getenv("RESOLVE_INFERENCE_PROFILE", "false")),
            max_threads_per_owner=int(os.getenv("MAX_THREADS_PER_OWNER", "50")),
            max_tool_steps=int(os.getenv("MAX_TOOL_STEPS", "25")),
            max_generation_tokens=int(os.getenv("MAX_GENERATION_TOKENS", "2048")),
            title_max_tokens=int(os.getenv("TITLE_MAX_TOKENS", "100")),
            temperature=float(os.getenv("TEMPERATURE", "0.5")),
            top_p=float(os.getenv("TOP_P", "0.9")),
            generation_timeout=float(os.getenv("GENERATION_TIMEOUT", "120")),
            tool_timeout=float(os.getenv("TOOL_TIMEOUT", "30")),
            enabled_tools=_parse_list(os.getenv("ENABLED_TOOLS", "")),
            input_token_price=float(os.getenv("INPUT_TOKEN_PRICE", "0.00024")),
            output_token_price=float(os.getenv("OUTPUT_TOKEN_PRICE", "0.00097")),
            thread_store=os.getenv("THREAD_STORE", "sqlite").lower(),
            dynamodb_table_name=os.getenv("DYNAMODB_TABLE_NAME", "threads"),
            dynamodb_owner_index=os.getenv("DYNAMODB_OWNER_INDEX", "owner-index"),
            require_caller_identity=_parse_bool(os.getenv("REQUIRE_CALLER_IDENTITY", "false")),
            default_owner=os.getenv("DEFAULT_OWNER") or None,
        )
    )
