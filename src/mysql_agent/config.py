"""Configuration models for the MySQL diagnostic agent.

Each section reads its own environment variables through pydantic-settings
(`MYSQL_*`, `DEEPSEEK_*`, `MYSQL_AGENT_*`). Environment values take priority
over values passed in, so a key exported as `DEEPSEEK_API_KEY` beats
`[llm].api_key` from the TOML file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

CONFIG_PATH_ENV = "MYSQL_AGENT_CONFIG"


class _EnvFirstSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings


class DatabaseConfig(_EnvFirstSettings):
    """Connection settings for the diagnosed MySQL instance."""

    model_config = SettingsConfigDict(env_prefix="MYSQL_")

    host: str = "localhost"
    port: int = Field(default=3306, ge=1, le=65535)
    user: str = "root"
    password: str = ""
    database: str = ""
    charset: str = "utf8mb4"
    pool_name: str = "mysql_agent"
    pool_size: int = Field(default=5, ge=1, le=32)
    connection_timeout: int = Field(default=10, ge=1)


class LLMConfig(_EnvFirstSettings):
    """Configures the OpenAI-compatible chat completion endpoint."""

    model_config = SettingsConfigDict(env_prefix="DEEPSEEK_")

    api_key: str = Field(default="", validation_alias="DEEPSEEK_API_KEY")
    base_url: str = Field(
        default="https://api.deepseek.com",
        validation_alias="DEEPSEEK_BASE_URL",
    )
    model: str = Field(default="deepseek-chat", validation_alias="DEEPSEEK_MODEL")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, ge=64)
    request_timeout_seconds: float = Field(default=120.0, gt=0.0)


class RequiredSignal(BaseModel):
    """A diagnostic fact whose presence must be tracked per query."""

    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    tool: str = Field(min_length=1)


DEFAULT_REQUIRED_SIGNALS: tuple[RequiredSignal, ...] = (
    RequiredSignal(
        key="threads_running",
        name="Running threads and server throughput",
        tool="mysql_global_status",
    ),
    RequiredSignal(
        key="connection_usage",
        name="Connection usage against max_connections",
        tool="mysql_connections",
    ),
    RequiredSignal(
        key="active_sessions",
        name="Active sessions and their states",
        tool="mysql_processlist",
    ),
    RequiredSignal(
        key="slow_queries",
        name="Top statement digests by total latency",
        tool="mysql_slow_queries",
    ),
    RequiredSignal(
        key="lock_waits",
        name="InnoDB lock waits and long transactions",
        tool="mysql_innodb_trx",
    ),
    RequiredSignal(
        key="deadlocks",
        name="Latest detected deadlock and engine state",
        tool="mysql_innodb_status",
    ),
    RequiredSignal(
        key="mutex_contention",
        name="InnoDB mutex contention",
        tool="mysql_innodb_mutex",
    ),
)


class AgentConfig(_EnvFirstSettings):
    """Configures the request deadline and tracked signals."""

    model_config = SettingsConfigDict(env_prefix="MYSQL_AGENT_")

    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        validation_alias="MYSQL_AGENT_TIMEOUT_SECONDS",
    )
    required_signals: list[RequiredSignal] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_SIGNALS)
    )


class ServerConfig(_EnvFirstSettings):
    """HTTP listener and logging settings."""

    model_config = SettingsConfigDict(env_prefix="MYSQL_AGENT_")

    host: str = "127.0.0.1"
    port: int = Field(default=8081, ge=1, le=65535)
    log_level: str = "INFO"


_SECTIONS: dict[str, type[BaseSettings]] = {
    "database": DatabaseConfig,
    "llm": LLMConfig,
    "agent": AgentConfig,
    "server": ServerConfig,
}


class Settings(BaseSettings):
    """Aggregate process configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Sections read the environment themselves.
        return (init_settings,)

    @field_validator("database", "llm", "agent", "server", mode="before")
    @classmethod
    def _build_section(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, dict):
            return _SECTIONS[info.field_name](**value)
        return value


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from an optional TOML file, with environment overrides.

    Without `path`, the file named by `MYSQL_AGENT_CONFIG` is used when set.
    """

    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or None

    data: dict[str, Any] = {}
    if path is not None and Path(path).is_file():
        data = TomlConfigSettingsSource(Settings, toml_file=Path(path))()
    return Settings(**data)
