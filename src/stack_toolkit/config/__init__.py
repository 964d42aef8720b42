from stack_toolkit.config.model_resolution import (
    initialize_runtime_config,
    list_inference_profile_ids,
    match_inference_profile,
)
from stack_toolkit.models.settings import RuntimeConfig, Settings, load_settings

__all__ = [
    "RuntimeConfig",
    "Settings",
    "initialize_runtime_config",
    "list_inference_profile_ids",
    "load_settings",
    "match_inference_profile",
]
