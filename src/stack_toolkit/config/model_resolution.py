"""Resolve the configured model name to a Bedrock identifier once at start-up."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stack_toolkit.models.settings import RuntimeConfig

if TYPE_CHECKING:
    from stack_toolkit.models.settings import Settings

logger = logging.getLogger(__name__)


def list_inference_profile_ids(client: Any) -> list[str]:
    """List inference profile ids visible to the Bedrock control-plane client."""
    profile_ids: list[str] = []
    paginator = client.get_paginator("list_inference_profiles")
    for page in paginator.paginate():
        for summary in page.get("inferenceProfileSummaries", []):
            profile_id = summary.get("inferenceProfileId")
            if profile_id:
                profile_ids.append(str(profile_id))
    return sorted(set(profile_ids))


def match_inference_profile(model_id: str, profile_ids: list[str]) -> str | None:
    """Return the profile id that serves ``model_id``, if any.

    Exact matches win; otherwise a cross-region profile such as
    ``us.meta.llama4-maverick-17b-instruct-v1:0`` matches the bare
    ``meta.llama4-maverick-17b-instruct-v1:0``.
    """
    if model_id in profile_ids:
        return model_id
    candidates = [pid for pid in profile_ids if pid.endswith(f".{model_id}")]
    return candidates[0] if candidates else None


def initialize_runtime_config(settings: Settings, client: Any | None = None) -> RuntimeConfig:
    """Produce the immutable runtime configuration.

    Falls back to ``settings.bedrock_model_id`` unchanged when profile
    resolution is disabled, fails, or finds nothing.
    """
    model_id = settings.bedrock_model_id
    if not settings.resolve_inference_profile:
        return RuntimeConfig(model_id=model_id, region=settings.aws_region)

    warnings: list[str] = []
    try:
        bedrock = client or boto3.client("bedrock", region_name=settings.aws_region)
        resolved = match_inference_profile(model_id, list_inference_profile_ids(bedrock))
    except (BotoCoreError, ClientError, ValueError) as exc:
        warnings.append(f"Unable to list Bedrock inference profiles: {exc}")
        resolved = None

    if resolved is None:
        if not warnings:
            warnings.append(f"No inference profile found for '{model_id}'")
        for warning in warnings:
            logger.warning("%s; using configured model id '%s'", warning, model_id)
        return RuntimeConfig(model_id=model_id, region=settings.aws_region, warnings=tuple(warnings))

    logger.info("Resolved model '%s' to inference profile '%s'", model_id, resolved)
    return RuntimeConfig(model_id=resolved, region=settings.aws_region)
