"""
Configuration management for PageScore using Pydantic.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

ProviderName = Literal["openai", "anthropic", "google"]

# Vendor conventions for API keys, used when no key is configured explicitly.
PROVIDER_KEY_ENV: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

# --- Nested Configuration Models ---


class ProviderConfig(BaseModel):
    """One LLM backend reachable through the model gateway."""

    name: ProviderName
    enabled: bool = Field(default=True, description="Whether this provider takes part in fallback.")
    api_key: Optional[str] = Field(default=None, description="API key; falls back to the vendor env var.")
    model: str = Field(description="Model identifier sent to the provider.")
    base_url: Optional[str] = Field(default=None, description="Override the provider API base URL.")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, gt=0)

    def resolved_api_key(self) -> Optional[str]:
        return self.api_key or os.getenv(PROVIDER_KEY_ENV[self.name])


def _default_providers() -> List[ProviderConfig]:
    return [
        ProviderConfig(name="openai", model="gpt-4o-mini"),
        ProviderConfig(name="anthropic", model="claude-3-haiku-20240307"),
        ProviderConfig(name="google", model="gemini-1.5-flash"),
    ]


class GatewayConfig(BaseModel):
    """Model provider gateway configuration."""

    providers: List[ProviderConfig] = Field(
        default_factory=_default_providers,
        description="Providers in fallback order.",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-provider call timeout.")

    @field_validator("providers")
    @classmethod
    def validate_unique_providers(cls, v: List[ProviderConfig]) -> List[ProviderConfig]:
        names = [p.name for p in v]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate provider names in gateway configuration: {names}")
        return v


class CategorizerConfig(BaseModel):
    """Page categorizer configuration."""

    content_preview_chars: int = Field(default=2000, gt=0, description="Characters of page text sent to the model.")
    fast_path_threshold: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="URL fast-path results above this confidence skip the model call.",
    )


class AnalysisConfig(BaseModel):
    """Rule execution configuration."""

    use_model_rules: bool = Field(default=True, description="Substitute model-backed rule variants when possible.")
    max_concurrent_pages: int = Field(default=5, gt=0, description="Pages analyzed at once by analyze_many.")
    model_content_chars: int = Field(default=15000, gt=0, description="Characters of page text sent to model rules.")


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None, description="Write JSON logs to this file instead of stdout.")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path


# --- Main Configuration Class ---


class Config(BaseSettings):
    """Root configuration, loaded from YAML and/or PAGESCORE_* environment variables."""

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    categorizer: CategorizerConfig = Field(default_factory=CategorizerConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="PAGESCORE_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        """Load configuration from a YAML file."""
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            config_data: Dict[str, Any] = yaml.safe_load(f) or {}

        log.debug("Loaded configuration from %s", path)
        return cls(**config_data)


def find_config_file() -> Path | None:
    """Look for a configuration file in the usual places."""
    env_path = os.getenv("PAGESCORE_CONFIG")
    candidates = [Path(env_path)] if env_path else []
    candidates += [
        Path.cwd() / "pagescore.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".pagescore" / "config.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None
