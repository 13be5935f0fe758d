from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import anyio
import pytest
from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool

from mcp_hub.mcp.transport import Transport, select_transport


@pytest.fixture
def anyio_backend():
    return "asyncio"


@dataclass
class FakeUpstream:
    """Scripted behaviour of one fake MCP server."""

    tools: List[Tool] = field(default_factory=list)
    fail_open: bool = False
    fail_initialize: bool = False
    fail_list: bool = False
    fail_close: bool = False
    malformed_listing: bool = False
    initialize_gate: Optional[anyio.Event] = None
    list_calls: int = 0
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    closed: bool = False


class FakeClientSession:
    """Stands in for mcp.ClientSession, answering from a FakeUpstream."""

    def __init__(self, read_stream, write_stream, server_name: str, upstream: FakeUpstream):
        self.read_stream = read_stream
        self.write_stream = write_stream
        self.server_name = server_name
        self.upstream = upstream

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.upstream.closed = True
        if self.upstream.fail_close:
            raise RuntimeError("upstream refused to shut down")

    async def initialize(self):
        if self.upstream.initialize_gate is not None:
            await self.upstream.initialize_gate.wait()
        if self.upstream.fail_initialize:
            raise RuntimeError("handshake rejected")
        return SimpleNamespace(serverInfo=SimpleNamespace(name=self.server_name))

    async def list_tools(self):
        self.upstream.list_calls += 1
        if self.upstream.fail_list:
            raise RuntimeError("connection reset by peer")
        if self.upstream.malformed_listing:
            return SimpleNamespace(tools=None)
        return ListToolsResult(tools=list(self.upstream.tools))

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None):
        self.upstream.tool_calls.append({"name": name, "arguments": arguments})
        return CallToolResult(content=[TextContent(type="text", text=f"called {name}")])


class FakeTransport(Transport):
    """Wraps a really selected transport but opens in-memory streams instead."""

    def __init__(self, selected: Transport, upstream: FakeUpstream):
        self.server_name = selected.server_name
        self.selected = selected
        self.upstream = upstream

    @property
    def kind(self) -> str:
        return self.selected.kind

    @asynccontextmanager
    async def open(self):
        if self.upstream.fail_open:
            raise OSError(f"No such file or directory: '{self.server_name}'")
        send_stream, receive_stream = anyio.create_memory_object_stream(0)
        async with send_stream, receive_stream:
            yield receive_stream, send_stream


class FakeNetwork:
    """Fake upstream servers keyed by server name, plus factories wiring them in."""

    def __init__(self):
        self.upstreams: Dict[str, FakeUpstream] = {}

    def add(self, server_name: str, **kwargs: Any) -> FakeUpstream:
        upstream = FakeUpstream(**kwargs)
        self.upstreams[server_name] = upstream
        return upstream

    def _upstream(self, server_name: str) -> FakeUpstream:
        return self.upstreams.setdefault(server_name, FakeUpstream())

    def client_session_factory(self, read_stream, write_stream, server_name):
        return FakeClientSession(
            read_stream, write_stream, server_name, self._upstream(server_name)
        )

    def transport_selector(self, server_name, params, environ=None):
        selected = select_transport(server_name, params, environ)
        return FakeTransport(selected, self._upstream(server_name))

    def registry_kwargs(self) -> Dict[str, Any]:
        return {
            "client_session_factory": self.client_session_factory,
            "transport_selector": self.transport_selector,
        }


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()

