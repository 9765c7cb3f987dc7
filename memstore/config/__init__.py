"""Configuration models and loader."""

from .settings import (
    ExtractorCfg,
    LLMCfg,
    SearchCfg,
    ServerCfg,
    Settings,
    StoreCfg,
    apply_env_overrides,
    load_settings,
)

__all__ = [
    "ExtractorCfg",
    "LLMCfg",
    "SearchCfg",
    "ServerCfg",
    "Settings",
    "StoreCfg",
    "apply_env_overrides",
    "load_settings",
]
