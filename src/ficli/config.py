"""Configuration management for fi."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, ValidationInfo, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from ficli.errors import ConfigurationError
from ficli.tools.shell import Allowlist

DEFAULT_MODEL = "openrouter/auto"
DEFAULT_MAX_STEPS = 8
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_TOOL_TIMEOUT_SECONDS = 10.0
DEFAULT_HISTORY_LINES = 50
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
CONFIG_FILE_NAMES = ("config.yaml", "config.yml", "config.json")


class ToolLimits(BaseModel):
    """Per-tool output budgets; non-positive values fall back to the defaults."""

    grep_max_results: int = 200
    grep_max_bytes: int = 20 * 1024
    shell_max_bytes: int = 20 * 1024
    web_max_bytes: int = 30 * 1024
    context_max_bytes: int = 80 * 1024
    max_file_bytes: int = 32 * 1024

    @field_validator("*", mode="after")
    @classmethod
    def _positive_or_default(cls, value: int, info: ValidationInfo) -> int:
        if value <= 0:
            return cls.model_fields[info.field_name].default
        return value


def config_file_path() -> Path | None:
    """Locate the optional config file.

    ``FI_CONFIG_FILE`` wins; otherwise the first existing
    ``$XDG_CONFIG_HOME/fi/config.{yaml,yml,json}`` (``~/.config`` by default).
    """
    explicit = os.getenv("FI_CONFIG_FILE")
    if explicit:
        path = Path(explicit).expanduser()
        return path if path.is_file() else None
    base = Path(os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config")
    for name in CONFIG_FILE_NAMES:
        candidate = base / "fi" / name
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FI_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model
    model: str = Field(default=DEFAULT_MODEL, description="Model name")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="OpenAI-compatible API base URL")
    http_referer: str | None = Field(default=None, description="Optional HTTP-Referer header")
    title: str | None = Field(default=None, description="Optional X-Title header")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("api_key", "fi_api_key", "openrouter_api_key", "openai_api_key"),
    )
    exa_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("exa_api_key", "fi_exa_api_key"),
    )
    mock_llm: bool = Field(default=False, description="Use the deterministic mock client")

    # Agent
    max_steps: int = Field(default=DEFAULT_MAX_STEPS, description="Maximum model round-trips")
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, description="Overall run deadline")
    tool_timeout_seconds: float = Field(default=DEFAULT_TOOL_TIMEOUT_SECONDS, description="Per tool call timeout")
    repo: Path = Field(default=Path("."), description="Repository path")
    unsafe_shell: bool = Field(default=False, description="Skip the shell allowlist and command denylist")
    shell_allow: Annotated[list[str], NoDecode] = Field(default_factory=list, description="Allowed command prefixes")
    tool_limits: ToolLimits = Field(default_factory=ToolLimits)

    # Output
    no_web: bool = False
    no_plan: bool = False
    quiet: bool = False
    json_output: bool = False
    verbose: bool = False
    log_profile: Literal["default", "rich"] = Field(default="default", description="stderr log sink style")
    log_file: Path | None = None
    history_lines: int = DEFAULT_HISTORY_LINES
    no_history: bool = False
    persist_runs: bool = False
    runs_dir: Path | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings, dotenv_settings]
        path = config_file_path()
        if path is not None:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=path))
        return tuple(sources)

    @field_validator("shell_allow", mode="before")
    @classmethod
    def _split_prefixes(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("max_steps", mode="after")
    @classmethod
    def _max_steps_default(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_MAX_STEPS

    @field_validator("timeout_seconds", mode="after")
    @classmethod
    def _timeout_default(cls, value: float) -> float:
        return value if value > 0 else DEFAULT_TIMEOUT_SECONDS

    @field_validator("tool_timeout_seconds", mode="after")
    @classmethod
    def _tool_timeout_default(cls, value: float) -> float:
        return value if value > 0 else DEFAULT_TOOL_TIMEOUT_SECONDS

    @field_validator("history_lines", mode="after")
    @classmethod
    def _history_not_negative(cls, value: int) -> int:
        return max(value, 0)

    @model_validator(mode="after")
    def _quiet_implies_no_plan(self) -> Settings:
        if self.quiet:
            self.no_plan = True
        return self

    def allowlist(self) -> Allowlist:
        return Allowlist.from_strings(self.shell_allow)

    def runs_path(self) -> Path:
        if self.runs_dir is not None:
            return self.runs_dir.expanduser()
        return Path.home() / ".local" / "share" / "fi" / "runs"


def load_settings(**overrides: Any) -> Settings:
    """Build settings with explicit overrides taking precedence.

    ``None`` overrides are ignored so unset CLI flags fall through to the
    environment and config file.

    Raises:
        ConfigurationError: the environment or config file holds invalid values.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid config file: {exc}") from exc
