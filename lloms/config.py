"""Configuration management for LLoms."""

import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from lloms.exceptions import ConfigurationError
from lloms.logging import get_logger

log = get_logger(__name__)


# Paths
DEFAULT_CONFIG_PATH = Path("~/.lloms/config.yml").expanduser()
LOCAL_CONFIG_FILENAMES = ("config.yml", "config.yaml")
DOTENV_FILENAME = ".env"

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_SYSTEM_PROMPT = "You are LLoms, a helpful assistant that answers briefly"
DEFAULT_HISTORY_LIMIT = 4
DEFAULT_NUM_CTX = 25920


class SamplingConfig(BaseModel):
    """Sampling parameters sent as Ollama request options."""

    temperature: float = 0.5
    repeat_last_n: int = 2
    repeat_penalty: float = 2.0
    num_ctx: int = DEFAULT_NUM_CTX
    mirostat: int = 1
    mirostat_tau: float = 5.0
    mirostat_eta: float = 0.1
    top_k: int | None = None
    top_p: float | None = None

    def to_options(self) -> dict[str, Any]:
        """Render as an Ollama `options` mapping, dropping unset keys."""
        return self.model_dump(exclude_none=True)


def _default_tools_sampling() -> SamplingConfig:
    return SamplingConfig(
        temperature=0.0,
        mirostat_tau=1.0,
        top_k=40,
        top_p=0.9,
    )


class MCPServerConfig(BaseModel):
    """Launch descriptor for a stdio MCP server."""

    name: str
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] | None = None


class MCPConfig(BaseModel):
    """MCP configuration."""

    servers: list[MCPServerConfig] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


# Plain environment variables that override single config keys.
ENV_OVERRIDES: tuple[tuple[str, tuple[str, ...], Callable[[str], Any]], ...] = (
    ("OLLAMA_HOST", ("ollama_url",), str),
    ("LLM_CHAT", ("chat_model",), str),
    ("LLM_WITH_TOOLS_SUPPORT", ("tools_model",), str),
    ("SYSTEM_PROMPT", ("system_prompt",), str),
    ("ENABLE_MCP", ("enable_mcp",), _parse_bool),
    ("HISTORY_LIMIT", ("history_limit",), int),
    ("TEMPERATURE", ("chat", "temperature"), float),
    ("REPEAT_LAST_N", ("chat", "repeat_last_n"), int),
    ("REPEAT_PENALTY", ("chat", "repeat_penalty"), float),
    ("TOOLS_TEMPERATURE", ("tools", "temperature"), float),
    ("TOOLS_REPEAT_LAST_N", ("tools", "repeat_last_n"), int),
    ("TOOLS_REPEAT_PENALTY", ("tools", "repeat_penalty"), float),
    ("LOG_LEVEL", ("logging", "level"), str),
)

# Flat keys of the original single-level config.yml layout.
LEGACY_FLAT_KEYS: dict[str, tuple[str, str]] = {
    "temperature": ("chat", "temperature"),
    "repeat_last_n": ("chat", "repeat_last_n"),
    "repeat_penalty": ("chat", "repeat_penalty"),
    "tools_temperature": ("tools", "temperature"),
    "tools_repeat_last_n": ("tools", "repeat_last_n"),
    "tools_repeat_penalty": ("tools", "repeat_penalty"),
}


def _map_legacy_flat_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Move flat sampling keys into their nested sections.

    Explicit nested values win over flat ones.
    """
    mapped = dict(data)
    for flat_key, (section, field_name) in LEGACY_FLAT_KEYS.items():
        if flat_key not in mapped:
            continue
        value = mapped.pop(flat_key)
        nested = mapped.get(section)
        if nested is None:
            nested = {}
        elif not isinstance(nested, dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping")
        else:
            nested = dict(nested)
        nested.setdefault(field_name, value)
        mapped[section] = nested
    return mapped


class Config(BaseSettings):
    """Main configuration for LLoms."""

    ollama_url: str = DEFAULT_OLLAMA_URL
    chat_model: str = "qwen2.5:3b"
    tools_model: str = "qwen2.5:0.5b"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    enable_mcp: bool = False
    history_limit: int = DEFAULT_HISTORY_LIMIT
    request_timeout: float = 120.0
    chat: SamplingConfig = Field(default_factory=SamplingConfig)
    tools: SamplingConfig = Field(default_factory=_default_tools_sampling)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="LLOMS_",
        env_file=DOTENV_FILENAME,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("tools", mode="before")
    @classmethod
    def fill_tools_defaults(cls, value: Any) -> Any:
        # A partial tools section only overrides the keys it names.
        if isinstance(value, dict):
            return {**_default_tools_sampling().model_dump(), **value}
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # LLOMS_* variables beat values read from the YAML file.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        for filename in LOCAL_CONFIG_FILENAMES:
            local_path = Path.cwd() / filename
            if local_path.exists():
                return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: the file is missing, unreadable or invalid.
        """
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid config format in {config_path}, expected a mapping")

        try:
            return cls(**_map_legacy_flat_keys(data))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration, letting environment variables win over YAML per key."""
        config = cls.from_yaml(path)
        environ: dict[str, str] = {
            key: value
            for key, value in dotenv_values(Path.cwd() / DOTENV_FILENAME).items()
            if value is not None
        }
        environ.update(os.environ)
        config.apply_env_overrides(environ)
        return config

    def apply_env_overrides(self, environ: Mapping[str, str]) -> None:
        """Apply plain environment overrides (OLLAMA_HOST, TEMPERATURE, ...).

        Empty values are ignored. Values that fail to parse keep the current
        setting.
        """
        for env_key, path, parse in ENV_OVERRIDES:
            raw = environ.get(env_key, "")
            if raw == "":
                continue
            try:
                value = parse(raw)
            except ValueError:
                log.warning("Ignoring unparseable environment override", key=env_key, value=raw)
                continue
            target: Any = self
            for part in path[:-1]:
                target = getattr(target, part)
            setattr(target, path[-1], value)

    def first_mcp_server(self) -> MCPServerConfig | None:
        """Server used for tool support, when MCP is enabled."""
        if not self.enable_mcp or not self.mcp.servers:
            return None
        return self.mcp.servers[0]
