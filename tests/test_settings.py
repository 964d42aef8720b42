from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from stack_toolkit.config import (
    initialize_runtime_config,
    list_inference_profile_ids,
    match_inference_profile,
)
from stack_toolkit.models import Settings, load_settings
from stack_toolkit.models.settings import DEFAULT_MODEL_ID


def test_load_settings_defaults() -> None:
    settings = load_settings()

    assert settings.bedrock_model_id == DEFAULT_MODEL_ID
    assert settings.aws_region == "us-east-1"
    assert settings.llm_provider == "converse"
    assert settings.max_threads_per_owner == 50
    assert settings.max_tool_steps == 25
    assert settings.max_generation_tokens == 2048
    assert settings.enabled_tools == []
    assert settings.default_owner is None
    assert not settings.require_caller_identity


def test_load_settings_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "Llama")
    monkeypatch.setenv("MAX_THREADS_PER_OWNER", "5")
    monkeypatch.setenv("ENABLED_TOOLS", "calculate, update_thread_cost,")
    monkeypatch.setenv("REQUIRE_CALLER_IDENTITY", "yes")
    monkeypatch.setenv("DEFAULT_OWNER", "owner@example.com")

    settings = load_settings()

    assert settings.llm_provider == "llama"
    assert settings.max_threads_per_owner == 5
    assert settings.enabled_tools == ["calculate", "update_thread_cost"]
    assert settings.require_caller_identity
    assert settings.default_owner == "owner@example.com"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("LLM_PROVIDER", "openai"),
        ("THREAD_STORE", "postgres"),
        ("MAX_TOOL_STEPS", "0"),
        ("MAX_THREADS_PER_OWNER", "0"),
        ("INPUT_TOKEN_PRICE", "-1"),
    ],
)
def test_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        load_settings()


def test_settings_are_frozen() -> None:
    settings = Settings()

    with pytest.raises(ValueError):
        settings.max_tool_steps = 3


def _bedrock_client(profile_ids: list[str]) -> MagicMock:
    client = MagicMock()
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {"inferenceProfileSummaries": [{"inferenceProfileId": pid} for pid in profile_ids]}
    ]
    client.get_paginator.return_value = paginator
    return client


def test_match_inference_profile_prefers_exact_match() -> None:
    ids = ["eu.meta.llama", "meta.llama"]

    assert match_inference_profile("meta.llama", ids) == "meta.llama"
    assert match_inference_profile("meta.other", ids) is None
    assert match_inference_profile("meta.llama", ["us.meta.llama"]) == "us.meta.llama"


def test_list_inference_profile_ids_deduplicates() -> None:
    client = _bedrock_client(["b", "a", "b"])

    assert list_inference_profile_ids(client) == ["a", "b"]
    client.get_paginator.assert_called_once_with("list_inference_profiles")


def test_runtime_config_skips_lookup_when_disabled() -> None:
    client = MagicMock()

    config = initialize_runtime_config(Settings(bedrock_model_id="meta.model"), client=client)

    assert config.model_id == "meta.model"
    assert config.warnings == ()
    client.get_paginator.assert_not_called()


def test_runtime_config_resolves_inference_profile() -> None:
    settings = Settings(bedrock_model_id="meta.model", resolve_inference_profile=True)

    config = initialize_runtime_config(settings, client=_bedrock_client(["us.meta.model"]))

    assert config.model_id == "us.meta.model"
    assert config.warnings == ()


def test_runtime_config_falls_back_on_client_error() -> None:
    settings = Settings(bedrock_model_id="meta.model", resolve_inference_profile=True)
    client = MagicMock()
    client.get_paginator.side_effect = ClientError(
        {"Error": {"Code": "AccessDeniedException", "Message": "denied"}},
        "ListInferenceProfiles",
    )

    config = initialize_runtime_config(settings, client=client)

    assert config.model_id == "meta.model"
    assert len(config.warnings) == 1
    assert "Unable to list" in config.warnings[0]


def test_runtime_config_falls_back_when_nothing_matches() -> None:
    settings = Settings(bedrock_model_id="meta.model", resolve_inference_profile=True)

    config = initialize_runtime_config(settings, client=_bedrock_client(["us.other"]))

    assert config.model_id == "meta.model"
    assert config.warnings
