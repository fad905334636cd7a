from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    tavily_api_key: str | None
    google_places_api_key: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    max_rounds: int
    session_db_path: str
    max_turns: int
    session_ttl_seconds: int
    seen_ttl_seconds: int
    serialize_per_identity: bool
    tool_cache_capacity: int
    log_level: str
    log_consumers: list | None


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        provider_name=config.get("Provider", "anthropic").strip().lower(),
        model=config.get("Model", "claude-sonnet-4-20250514"),
        max_tokens=int(config.get("MaxTokens", 1500)),
        temperature=float(config.get("Temperature", 0.3)),
        max_rounds=max(1, int(config.get("MaxRounds", 3))),
        session_db_path=str(config.get("SessionDbPath", ".vet_agent/sessions.db")),
        max_turns=int(config.get("MaxTurns", 12)),
        session_ttl_seconds=int(config.get("SessionTtlSeconds", 6 * 60 * 60)),
        seen_ttl_seconds=int(config.get("SeenTtlSeconds", 60 * 60)),
        serialize_per_identity=_to_bool(config.get("SerializePerIdentity", False), default=False),
        tool_cache_capacity=int(config.get("ToolCacheCapacity", 100)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "openai":
        provider_env_var = "OPENAI_API_KEY"
    else:
        provider_env_var = "ANTHROPIC_API_KEY"

    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, ""),
        provider_env_var=provider_env_var,
        tavily_api_key=os.environ.get("TAVILY_API_KEY") or None,
        google_places_api_key=os.environ.get("GOOGLE_PLACES_API_KEY") or None,
    )
