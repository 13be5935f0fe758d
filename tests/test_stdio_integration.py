import sys
from pathlib import Path

import pytest

from mcp_hub.errors import ServerConnectionError
from mcp_hub.mcp.query import ToolQueryEngine
from mcp_hub.mcp.registry import SessionRegistry

pytestmark = pytest.mark.anyio

ECHO_SERVER = Path(__file__).parent / "servers" / "echo_server.py"


def _echo_params(**extra):
    return {"command": sys.executable, "args": [str(ECHO_SERVER)], **extra}


async def test_stdio_server_round_trip(monkeypatch):
    monkeypatch.setenv("FOO", "base")

    async with SessionRegistry() as registry:
        session = await registry.connect("echo", _echo_params(env={"FOO": "override"}))
        assert session.server_info.serverInfo.name == "echo-server"

        query = ToolQueryEngine(registry)
        tool = await query.get_tool("echo", "echo")
        assert "text" in tool.inputSchema["properties"]

        found = await query.find_tools("ENV")
        assert [summary.name for summary in found["echo"]] == ["read_env"]

        result = await query.call_tool("echo", "echo", {"text": "hello"})
        assert result.content[0].text == "hello"

        result = await query.call_tool("echo", "read_env", {"name": "FOO"})
        assert result.content[0].text == "override"

        await registry.disconnect("echo")
        assert registry.list() == []


async def test_missing_executable_fails_to_connect():
    async with SessionRegistry() as registry:
        with pytest.raises(ServerConnectionError) as exc_info:
            await registry.connect("ghost", {"command": "/nonexistent/mcp-hub-test-server"})

        assert exc_info.value.server_name == "ghost"
        assert registry.list() == []
