import anyio
import pytest

from mcp_hub.errors import (
    AlreadyConnectedError,
    ConfigError,
    DisconnectError,
    NotConnectedError,
    ServerConnectionError,
    UpstreamError,
)
from mcp_hub.mcp.registry import SessionRegistry
from mcp_hub.mcp.session import SessionState

pytestmark = pytest.mark.anyio

STDIO = {"command": "fake-server"}


async def test_connect_registers_session_once(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        session = await registry.connect("files", STDIO)

        assert registry.list() == ["files"]
        assert "files" in registry
        assert session.state is SessionState.CONNECTED
        assert registry.get("files") is session


async def test_second_connect_under_same_name_keeps_existing_session(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        first = await registry.connect("files", STDIO)

        with pytest.raises(AlreadyConnectedError) as exc_info:
            await registry.connect("files", {"url": "http://localhost:9000/mcp"})

        assert exc_info.value.server_name == "files"
        assert registry.list() == ["files"]
        assert registry.get("files") is first
        assert first.state is SessionState.CONNECTED


async def test_concurrent_connects_under_same_name_admit_only_one(network):
    gate = anyio.Event()
    network.add("files", initialize_gate=gate)

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        async with anyio.create_task_group() as tg:
            tg.start_soon(registry.connect, "files", STDIO)
            await anyio.wait_all_tasks_blocked()

            with pytest.raises(AlreadyConnectedError):
                await registry.connect("files", STDIO)

            # Still mid-handshake, so not listed yet
            assert registry.list() == []
            gate.set()

        assert registry.list() == ["files"]


async def test_cancelled_connect_releases_transport(network):
    upstream = network.add("files", initialize_gate=anyio.Event())

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        with anyio.move_on_after(0.1) as scope:
            await registry.connect("files", STDIO)

        assert scope.cancelled_caught
        assert upstream.closed
        assert registry.list() == []

        # A retry under the same name gets a fresh session
        upstream.initialize_gate = None
        upstream.closed = False
        session = await registry.connect("files", STDIO)

        assert session.state is SessionState.CONNECTED
        assert registry.list() == ["files"]


async def test_list_preserves_connection_order(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        for name in ("charlie", "alpha", "bravo"):
            await registry.connect(name, STDIO)

        assert registry.list() == ["charlie", "alpha", "bravo"]
        assert len(registry) == 3


async def test_validation_failure_leaves_registry_untouched(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        with pytest.raises(ConfigError, match="requires a URL"):
            await registry.connect("remote", {"url": "not a url"})

        assert registry.list() == []
        # The name is free again after the failed attempt
        await registry.connect("remote", {"url": "https://example.com/mcp"})
        assert registry.list() == ["remote"]


async def test_spawn_failure_raises_connection_error(network):
    network.add("broken", fail_open=True)

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        with pytest.raises(ServerConnectionError) as exc_info:
            await registry.connect("broken", STDIO)

        assert exc_info.value.server_name == "broken"
        assert "No such file or directory" in str(exc_info.value)
        assert registry.list() == []


async def test_handshake_failure_raises_connection_error(network):
    upstream = network.add("grumpy", fail_initialize=True)

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        with pytest.raises(ServerConnectionError, match="handshake rejected"):
            await registry.connect("grumpy", STDIO)

        assert "grumpy" not in registry
        assert upstream.closed


async def test_get_unknown_server_raises_not_connected(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        with pytest.raises(NotConnectedError) as exc_info:
            registry.get("ghost")

        assert exc_info.value.server_name == "ghost"


async def test_disconnect_closes_and_removes(network):
    upstream = network.add("files")

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        session = await registry.connect("files", STDIO)
        await registry.disconnect("files")

        assert registry.list() == []
        assert upstream.closed
        assert session.state is SessionState.CLOSED
        with pytest.raises(UpstreamError):
            await session.list_tools()


async def test_disconnect_unknown_server_raises_not_connected(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        with pytest.raises(NotConnectedError):
            await registry.disconnect("ghost")


async def test_failed_close_keeps_session_registered(network):
    network.add("sticky", fail_close=True)

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        await registry.connect("sticky", STDIO)

        with pytest.raises(DisconnectError, match="refused to shut down"):
            await registry.disconnect("sticky")

        assert registry.list() == ["sticky"]

        # Nothing is left to release, so a retry clears the entry
        await registry.disconnect("sticky")
        assert registry.list() == []


async def test_disconnect_all_is_fail_fast(network):
    network.add("alpha")
    network.add("bravo", fail_close=True)
    network.add("charlie")

    async with SessionRegistry(**network.registry_kwargs()) as registry:
        for name in ("alpha", "bravo", "charlie"):
            await registry.connect(name, STDIO)

        with pytest.raises(DisconnectError) as exc_info:
            await registry.disconnect_all()

        assert exc_info.value.server_name == "bravo"
        assert registry.list() == ["bravo", "charlie"]
        assert not network.upstreams["charlie"].closed


async def test_disconnect_all_closes_everything(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        for name in ("alpha", "bravo"):
            await registry.connect(name, STDIO)

        await registry.disconnect_all()

        assert registry.list() == []
        assert all(upstream.closed for upstream in network.upstreams.values())


async def test_exit_closes_remaining_sessions(network):
    async with SessionRegistry(**network.registry_kwargs()) as registry:
        await registry.connect("alpha", STDIO)
        await registry.connect("bravo", STDIO)

    assert network.upstreams["alpha"].closed
    assert network.upstreams["bravo"].closed
    assert registry.list() == []


async def test_connect_outside_context_is_rejected(network):
    registry = SessionRegistry(**network.registry_kwargs())

    with pytest.raises(RuntimeError, match="async context"):
        await registry.connect("files", STDIO)


async def test_environment_is_passed_to_transport_selection(network):
    registry = SessionRegistry(environ={"FOO": "base", "KEEP": "1"}, **network.registry_kwargs())

    async with registry:
        session = await registry.connect(
            "files", {"command": "fake-server", "env": {"FOO": "override"}}
        )

        env = session.transport.selected.parameters.env
        assert env["FOO"] == "override"
        assert env["KEEP"] == "1"
