"""Shared fixtures: captured logs/spans, a fake clock, a scripted MCP server."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from toolrelay.foundation.config import McpServerConfig, clear_settings_cache
from toolrelay.foundation.registry import ToolRegistry
from toolrelay.foundation.testing import MockMcpServer
from toolrelay.runtime.observability import MemoryExporter, MemoryRenderer, configure_logging, configure_tracing, reset_tracing


class FakeClock:
    """Seconds since the epoch, advanced by hand."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def logs() -> Iterator[MemoryRenderer]:
    renderer = MemoryRenderer()
    configure_logging(level="DEBUG", renderer=renderer)
    yield renderer
    configure_logging(format="none")


@pytest.fixture(autouse=True)
def _reset_globals() -> Iterator[None]:
    clear_settings_cache()
    yield
    reset_tracing()
    clear_settings_cache()


@pytest.fixture
def spans() -> MemoryExporter:
    exporter = MemoryExporter()
    configure_tracing(service_name="toolrelay-tests", exporter=exporter)
    return exporter


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> ToolRegistry:
    return ToolRegistry(clock=clock)


@pytest.fixture
def server_config() -> McpServerConfig:
    return McpServerConfig(name="rube", url="https://mcp.test/rpc", enabled=True, bearer_token="secret")


@pytest.fixture
def mcp_server() -> MockMcpServer:
    return MockMcpServer()
