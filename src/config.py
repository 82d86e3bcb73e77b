"""Configuration management for Afkari."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "afkari.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/afkari/afkari.yml").expanduser(),
]
_USER_SECRETS_PATHS = [
    Path("~/.config/afkari/secrets.yml").expanduser(),
]
_DEFAULT_DATA_DIR = Path("~/.local/share/afkari").expanduser()


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge ``source`` into ``target`` recursively, returning ``target``."""
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _deep_merge(existing, value)
        else:
            target[key] = value
    return target


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            _deep_merge(merged, _load_yaml(path))
        return _apply_legacy_gemini_config(merged)

    return source


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "float":
        return float(raw)
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if kind == "json":
        return json.loads(raw)
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "GEMINI_API_KEY": ("llm.api_key", "str"),
        "LLM_MODEL": ("llm.model", "str"),
        "LLM_API_BASE": ("llm.api_base", "str"),
        "LLM_TIMEOUT": ("llm.timeout", "float"),
        "LLM_MAX_ATTEMPTS": ("llm.max_attempts", "int"),
        "DATABASE_URL": ("database.url", "str"),
        "PROMPT_VERSION": ("prompt.version", "str"),
        "AFKARI_LOCALE": ("prompt.locale", "str"),
        "LOG_LEVEL": ("log_level", "str"),
        "LOG_JSON": ("log_json", "bool"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


def _apply_legacy_gemini_config(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize the legacy top-level ``gemini`` section into ``llm``."""
    legacy = data.pop("gemini", None)
    if not isinstance(legacy, dict):
        return data
    llm = data.get("llm")
    if not isinstance(llm, dict):
        llm = {}
    for key in ("api_key", "model", "api_base", "timeout"):
        if legacy.get(key) is not None:
            llm.setdefault(key, legacy[key])
    data["llm"] = llm
    return data


class LlmConfig(BaseModel):
    """Generative backend endpoint and sampling settings."""

    model: str = "gemini-2.5-flash"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key: str | None = None
    timeout: float = 60.0
    connect_timeout: float = 10.0
    temperature: float = 0.4
    top_p: float = 0.9
    top_k: int = 40
    max_output_tokens: int | None = None
    max_attempts: int = 1

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, value: int) -> int:
        """Ensure max attempts is positive."""
        if value < 1:
            raise ValueError("llm.max_attempts must be >= 1.")
        return value

    @field_validator("timeout", "connect_timeout")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure timeouts are positive."""
        if value <= 0:
            raise ValueError("llm timeouts must be > 0.")
        return value

    @field_validator("api_key")
    @classmethod
    def blank_api_key_is_missing(cls, value: str | None) -> str | None:
        """Treat an empty API key the same as an absent one."""
        if value is None or not value.strip():
            return None
        return value.strip()


class DatabaseConfig(BaseModel):
    """Local decision store configuration."""

    url: str | None = None
    data_dir: str = str(_DEFAULT_DATA_DIR)

    @model_validator(mode="after")
    def populate_database_url(self) -> "DatabaseConfig":
        """Default to a SQLite file inside the data directory."""
        if self.url:
            return self
        self.url = f"sqlite:///{Path(self.data_dir).expanduser() / 'decisions.db'}"
        return self


class PromptConfig(BaseModel):
    """Prompt schema selection."""

    version: str = "v2.0"
    locale: str = "en"

    @field_validator("version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        """Ensure the prompt version is one the builder knows."""
        normalized = value.strip()
        if normalized not in {"v1.0", "v2.0"}:
            raise ValueError("prompt.version must be v1.0 or v2.0.")
        return normalized


class ExportConfig(BaseModel):
    """Export envelope settings."""

    version: str = "1.0"
    include_exported_at: bool = True
    filename: str = "afkari-export.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and YAML."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_SECRETS_PATHS),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    llm: LlmConfig = Field(default_factory=LlmConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize the log level name."""
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log_level: {value}")
        return normalized


# Global settings instance
settings = Settings()
