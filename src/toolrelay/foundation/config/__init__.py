"""Configuration: MCP server records and pydantic-settings driven defaults."""

from .settings import (
    DEFAULT_CONNECTION_TIMEOUT_MS,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DiscoverySettings,
    ExecutionSettings,
    LoggingSettings,
    McpServerConfig,
    RetrySettings,
    ToolrelaySettings,
    TracingSettings,
    clear_settings_cache,
    get_settings,
    load_server_configs,
    servers_from_env,
)

__all__ = [
    "McpServerConfig",
    "DEFAULT_CONNECTION_TIMEOUT_MS",
    "DEFAULT_REQUEST_TIMEOUT_MS",
    "ToolrelaySettings",
    "ExecutionSettings",
    "RetrySettings",
    "DiscoverySettings",
    "LoggingSettings",
    "TracingSettings",
    "get_settings",
    "clear_settings_cache",
    "load_server_configs",
    "servers_from_env",
]
