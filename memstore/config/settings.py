"""
Application settings and configuration loading.

Precedence:
1. Explicit path argument
2. Environment variable MEMSTORE_CONFIG
3. Built-in defaults (no file)

Environment variables prefixed ``MEMSTORE__`` override single values, with
``__`` separating nesting levels (e.g. MEMSTORE__STORE__DB_PATH=/tmp/m.db).
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, field_validator

ENV_PATH_VAR = "MEMSTORE_CONFIG"
ENV_PREFIX = "MEMSTORE__"


class StoreCfg(BaseModel):
    """Persistence configuration."""
    db_path: str = "data/memstore.db"
    busy_timeout: float = 10.0
    reserved_namespace: str = "system"


class SearchCfg(BaseModel):
    """Search configuration."""
    scorer: Literal["lexical", "vector"] = "lexical"
    default_limit: int = 10


class ExtractorCfg(BaseModel):
    """Extractor pipeline configuration."""
    enabled: List[str] = []
    dispatch_deadline: Optional[float] = 300.0
    embedding_model: str = "all-MiniLM-L6-v2"
    message_window: int = 12
    summary_target_chars: int = 1200

    @field_validator("enabled", mode="before")
    @classmethod
    def _split_enabled(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


class LLMCfg(BaseModel):
    """Generator used by LLM-driven extractors."""
    provider: Literal["mock", "ollama"] = "mock"
    model: str = "llama3"
    base_url: str = "http://localhost:11434"
    timeout: int = 60


class ServerCfg(BaseModel):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    json_logs: bool = True


class Settings(BaseModel):
    """Main application settings."""
    store: StoreCfg = StoreCfg()
    search: SearchCfg = SearchCfg()
    extractors: ExtractorCfg = ExtractorCfg()
    llm: LLMCfg = LLMCfg()
    server: ServerCfg = ServerCfg()


def _coerce(value: str) -> Any:
    """Parse simple scalar types from an environment string."""
    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"none", "null"}:
        return None
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def apply_env_overrides(cfg: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Apply MEMSTORE__SECTION__KEY=value overrides onto a raw config dict."""
    environ = os.environ if environ is None else environ
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for part in parts[:-1]:
            if not isinstance(sub.get(part), dict):
                sub[part] = {}
            sub = sub[part]
        sub[parts[-1]] = _coerce(value)
    return cfg


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """
    Load settings from YAML with environment overrides.

    Args:
        path: Optional YAML file. Falls back to $MEMSTORE_CONFIG, then defaults.
        environ: Environment mapping (defaults to os.environ)

    Raises:
        FileNotFoundError: If an explicitly named file does not exist
        RuntimeError: If the file is not valid YAML or not a mapping
    """
    environ = os.environ if environ is None else environ
    if path is None:
        path = environ.get(ENV_PATH_VAR)

    cfg: Dict[str, Any] = {}
    if path is not None:
        path_obj = Path(path)
        if not path_obj.exists():
            raise FileNotFoundError(f"config file not found: {path_obj}")
        with path_obj.open("r", encoding="utf-8") as f:
            try:
                cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e
        if not isinstance(cfg, dict):
            raise RuntimeError(f"Invalid config format in {path_obj}, expected mapping.")

    return Settings.model_validate(apply_env_overrides(cfg, environ))
