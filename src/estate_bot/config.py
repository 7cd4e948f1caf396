"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    default_model: str
    max_tokens: int = 1024
    temperature: float = 0.7
    chat_timeout: float = 30.0
    tool_timeout: float = 60.0
    daily_message_limit: int = 1000
    max_retries: int = 0  # router fallback replaces SDK retries


def _default_anthropic() -> ProviderConfig:
    return ProviderConfig(default_model="claude-3-5-haiku-latest")


def _default_openai() -> ProviderConfig:
    return ProviderConfig(default_model="gpt-4o-mini")


def _default_gemini() -> ProviderConfig:
    return ProviderConfig(default_model="gemini-1.5-flash")


class ProvidersConfig(BaseModel):
    anthropic: ProviderConfig = Field(default_factory=_default_anthropic)
    openai: ProviderConfig = Field(default_factory=_default_openai)
    gemini: ProviderConfig = Field(default_factory=_default_gemini)


def _default_chains() -> dict[str, list[str]]:
    simple = ["openai:gpt-4o-mini", "gemini:gemini-1.5-flash", "anthropic:claude-3-5-haiku-latest"]
    return {
        "simple": simple,
        "property_search": ["openai:gpt-4o", "openai:gpt-4o-mini", "anthropic:claude-3-5-sonnet-latest"],
        "market_analysis": ["anthropic:claude-3-5-sonnet-latest", "openai:gpt-4o", "gemini:gemini-1.5-pro"],
        "general": list(simple),
    }


class RoutingConfig(BaseModel):
    enabled: bool = True
    cost_optimization: bool = True
    fallback_enabled: bool = True
    chains: dict[str, list[str]] = Field(default_factory=_default_chains)
    cost_ranks: dict[str, int] = Field(
        default_factory=lambda: {"gemini": 1, "openai": 2, "anthropic": 3}
    )


class FaqScoringConfig(BaseModel):
    text_weight: float = 0.4
    keyword_weight: float = 0.6
    question_mark_bonus: float = 0.1
    category_bonus: float = 0.1
    keyword_hit_bonus: float = 0.3


class CascadeConfig(BaseModel):
    high_confidence: float = 0.85
    medium_confidence: float = 0.65
    low_confidence: float = 0.40
    ai_confidence: float = 0.80
    cache_ttl_short: int = 3600
    cache_ttl_medium: int = 86400
    cache_ttl_long: int = 604800
    faq_scoring: FaqScoringConfig = Field(default_factory=FaqScoringConfig)


class StorageConfig(BaseModel):
    db_path: str = "./data/estate_bot.db"


class DataConfig(BaseModel):
    listings_path: str = "./data/listings.yaml"
    site_url: str = "https://example.com"


class BotConfig(BaseModel):
    name: str = "Estate Assistant"
    system_prompt: str = (
        "You are a helpful real-estate assistant. Answer questions about property "
        "listings, neighborhoods and the local market. Use the available tools to look "
        "up real data instead of guessing. Keep answers short and friendly."
    )
    history_limit: int = 20


class AppConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False
    data_dir: str = "./data"
    bot: BotConfig = Field(default_factory=BotConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    cascade: CascadeConfig = Field(default_factory=CascadeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    data: DataConfig = Field(default_factory=DataConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _drop_unresolved_keys(data: dict) -> dict:
    """Treat api_key values still holding a ``${VAR}`` placeholder as unset."""
    providers = data.get("providers") or {}
    for section in providers.values():
        if isinstance(section, dict):
            key = section.get("api_key")
            if isinstance(key, str) and _ENV_VAR_PATTERN.fullmatch(key.strip()):
                section["api_key"] = None
    return data


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other values as ${data_dir}
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**_drop_unresolved_keys(data))
