"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables with
sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from toolrelay.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.execution.timeout_ms
    30000
    >>> [s.name for s in settings.servers()]
    ['rube']

    # Or with environment variables:
    # TOOLRELAY_EXECUTION_TIMEOUT_MS=60000
    # TOOLRELAY_MCP_SERVERS='[{"name": "search", "url": "https://mcp.example.com", "enabled": true}]'
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

import orjson
import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from toolrelay.runtime.observability.logging import get_logger

log = get_logger("toolrelay.config")

_SNAKE_CASE = re.compile(r"^[a-z][a-z0-9_]*$")
_TRUTHY = frozenset({"true", "1", "yes", "on"})

DEFAULT_CONNECTION_TIMEOUT_MS = 5_000
DEFAULT_REQUEST_TIMEOUT_MS = 30_000


# ─────────────────────────────────────────────────────────────────────────────
# MCP Servers
# ─────────────────────────────────────────────────────────────────────────────


class McpServerConfig(BaseModel):
    """Connection parameters for one remote MCP tool server.

    A disabled server may carry an empty URL; discovery uses the record only
    to drop that server's tools.
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
        populate_by_name=True,
        json_schema_extra={
            "title": "MCP Server",
            "examples": [{"name": "rube", "url": "https://rube.app/mcp", "enabled": True}],
        },
    )

    name: Annotated[str, Field(min_length=1)]
    url: str = ""
    enabled: bool = False
    bearer_token: SecretStr | None = Field(default=None, alias="bearerToken", repr=False)
    connection_timeout_ms: PositiveInt = Field(default=DEFAULT_CONNECTION_TIMEOUT_MS, alias="connectionTimeoutMs")
    request_timeout_ms: PositiveInt = Field(default=DEFAULT_REQUEST_TIMEOUT_MS, alias="requestTimeoutMs")
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _snake_case_name(cls, v: str) -> str:
        if not _SNAKE_CASE.match(v) or "__" in v:
            raise ValueError(f"server name must be snake_case without '__': {v!r}")
        return v

    @computed_field
    @property
    def has_url(self) -> bool:
        return bool(self.url)

    @property
    def token(self) -> str:
        """Plain bearer token, empty when unset."""
        return self.bearer_token.get_secret_value() if self.bearer_token else ""


def _parse_enabled(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in _TRUTHY  # type: ignore[union-attr]


def servers_from_env(environ: dict[str, str] | None = None) -> list[McpServerConfig]:
    """Single-server surface: RUBE_MCP_URL / RUBE_API_KEY / RUBE_MCP_ENABLED.

    The server is always returned (enabled or not) so a disabled server still
    has its tools removed on the next discovery pass.
    """
    env = os.environ if environ is None else environ
    return [
        McpServerConfig(
            name="rube",
            url=env.get("RUBE_MCP_URL", ""),
            enabled=_parse_enabled(env.get("RUBE_MCP_ENABLED")),
            bearer_token=SecretStr(env["RUBE_API_KEY"]) if env.get("RUBE_API_KEY") else None,
        )
    ]


def load_server_configs(path: str | Path) -> list[McpServerConfig]:
    """Load ``{"mcp_servers": {name: {...}}}`` from a YAML or JSON file.

    ``.json`` files are parsed with orjson; anything else (``.orion/config.yaml``)
    with yaml.safe_load. Missing file or missing section yields an empty list
    (logged, not raised). Malformed entries raise pydantic.ValidationError.
    """
    config_path = Path(path)
    try:
        content = config_path.read_bytes()
    except FileNotFoundError:
        log.warning("mcp_config_not_found", path=str(config_path))
        return []
    raw = orjson.loads(content) if config_path.suffix == ".json" else yaml.safe_load(content)

    servers = raw.get("mcp_servers") if isinstance(raw, dict) else None
    if not servers:
        log.warning("mcp_config_empty", path=str(config_path))
        return []

    configs = [McpServerConfig.model_validate({**entry, "name": name}) for name, entry in servers.items()]
    log.info("mcp_config_loaded", server_count=len(configs), servers=[c.name for c in configs if c.enabled])
    return configs


# ─────────────────────────────────────────────────────────────────────────────
# Component Settings
# ─────────────────────────────────────────────────────────────────────────────


class ExecutionSettings(BaseSettings):
    """Per-call execution defaults."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_EXECUTION_", extra="ignore")

    timeout_ms: PositiveInt = Field(default=30_000, description="Deadline per tool attempt")
    max_retries: Annotated[int, Field(ge=1, le=10)] = Field(default=3, description="Total attempts per call")


class RetrySettings(BaseSettings):
    """Backoff configuration."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_RETRY_", extra="ignore")

    base_delay: PositiveFloat = Field(default=1.0, description="First backoff delay in seconds")
    multiplier: PositiveFloat = Field(default=2.0, description="Exponential growth factor")
    rate_limit_delay: PositiveFloat = Field(default=30.0, description="Flat delay after RATE_LIMITED, seconds")
    jitter: bool = False


class DiscoverySettings(BaseSettings):
    """Tool discovery cache."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_DISCOVERY_", extra="ignore")

    ttl_ms: NonNegativeInt = Field(default=5 * 60 * 1000, description="Re-discover a server after this long")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "json"


class TracingSettings(BaseSettings):
    """Observability/tracing configuration."""

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_TRACING_", extra="ignore")

    enabled: bool = False
    service_name: str = "toolrelay"
    exporter: Literal["console", "json", "otlp", "none"] = "none"
    otlp_endpoint: str | None = Field(default=None, description="OpenTelemetry collector endpoint")


class ToolrelaySettings(BaseSettings):
    """Root settings.

    Loads configuration from environment variables with TOOLRELAY_ prefix.

    Example environment variables:
        TOOLRELAY_EXECUTION_TIMEOUT_MS=60000
        TOOLRELAY_RETRY_RATE_LIMIT_DELAY=10
        TOOLRELAY_LOG_FORMAT=console
        TOOLRELAY_MCP_SERVERS='[{"name": "search", "url": "https://...", "enabled": true}]'
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLRELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    mcp_servers: list[McpServerConfig] = Field(default_factory=list)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)

    def servers(self) -> list[McpServerConfig]:
        """Explicit servers, or the RUBE_* env surface when none are configured."""
        return list(self.mcp_servers) if self.mcp_servers else servers_from_env()


@lru_cache(maxsize=1)
def get_settings() -> ToolrelaySettings:
    """Get the global settings instance (cached)."""
    return ToolrelaySettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
