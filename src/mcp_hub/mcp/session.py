"""
A live connection to one upstream MCP server.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from anyio import CancelScope, Event
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import ClientSession
from mcp.types import CallToolResult, InitializeResult, Tool

from mcp_hub.errors import DisconnectError, ServerConnectionError, UpstreamError
from mcp_hub.mcp.client_session import HubClientSession
from mcp_hub.mcp.transport import Transport
from mcp_hub.utils.logging import get_logger

logger = get_logger(__name__)

ClientSessionFactory = Callable[
    [MemoryObjectReceiveStream, MemoryObjectSendStream, str],
    ClientSession,
]
"""Builds a client session from the transport streams and the server name."""


class SessionState(str, Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def describe_error(exc: BaseException) -> str:
    """Message for an exception, looking through single-member exception groups."""
    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    return str(exc) or type(exc).__name__


class UpstreamSession:
    """
    Represents a long-lived connection to one upstream server.

    The transport and client session live inside a lifecycle task started in
    the registry's task group, so they are opened and closed by the same
    task. ``connect`` waits for the handshake; ``close`` signals the task to
    unwind and waits for it.

    Failures of this upstream are reported per call and never change the
    session's state; only ``close`` does.
    """

    def __init__(
        self,
        server_name: str,
        transport: Transport,
        client_session_factory: ClientSessionFactory = HubClientSession,
    ):
        self.server_name = server_name
        self.transport = transport
        self.state = SessionState.UNCONNECTED
        self.server_info: InitializeResult | None = None
        self._client: ClientSession | None = None
        self._client_session_factory = client_session_factory

        # Set once the handshake succeeded or the lifecycle task failed
        self._initialized_event = Event()
        self._shutdown_event = Event()
        self._closed_event = Event()
        # Cancelled when a connect attempt is abandoned before the handshake ends
        self._lifecycle_scope = CancelScope()

        self._error: Exception | None = None
        self._close_error: Exception | None = None
        self._closing = False

    async def connect(self, task_group: TaskGroup) -> None:
        """
        Open the transport and perform the protocol handshake.

        Args:
            task_group: Task group that hosts the session's lifecycle task.

        Raises:
            ServerConnectionError: If spawning, dialing or the handshake fails.
        """
        if self.state is not SessionState.UNCONNECTED:
            raise ServerConnectionError(
                f"Session for server '{self.server_name}' cannot connect from state "
                f"'{self.state.value}'.",
                self.server_name,
            )

        self.state = SessionState.CONNECTING
        logger.info(f"{self.server_name}: Connecting using {self.transport.kind} transport...")
        task_group.start_soon(self._lifecycle_task, name=f"mcp-hub:{self.server_name}")

        try:
            await self._initialized_event.wait()
        except BaseException:
            logger.warning(f"{self.server_name}: Connect abandoned; releasing transport")
            self._closing = True
            self._lifecycle_scope.cancel()
            with CancelScope(shield=True):
                await self._closed_event.wait()
            self.state = SessionState.CLOSED
            raise

        if self._client is None:
            self.state = SessionState.CLOSED
            cause = describe_error(self._error) if self._error else "lifecycle task exited"
            raise ServerConnectionError(
                f"Failed to connect to server '{self.server_name}': {cause}",
                self.server_name,
            ) from self._error

        self.state = SessionState.CONNECTED
        logger.info(f"{self.server_name}: Up and running!")

    async def _lifecycle_task(self) -> None:
        try:
            with self._lifecycle_scope:
                async with self.transport.open() as (read_stream, write_stream):
                    client = self._client_session_factory(
                        read_stream, write_stream, self.server_name
                    )
                    async with client:
                        logger.info(f"{self.server_name}: Initializing server...")
                        self.server_info = await client.initialize()
                        self._client = client
                        self._initialized_event.set()

                        await self._shutdown_event.wait()
        except Exception as exc:
            if self._closing:
                self._close_error = exc
                logger.error(
                    f"{self.server_name}: Error while closing connection: {describe_error(exc)}"
                )
            else:
                self._error = exc
                logger.error(
                    f"{self.server_name}: Lifecycle task encountered an error: "
                    f"{describe_error(exc)}",
                    exc_info=True,
                )
        finally:
            self._client = None
            # Make sure connect() and close() never hang on a dead task
            self._initialized_event.set()
            self._closed_event.set()

    def _require_client(self) -> ClientSession:
        if self.state is not SessionState.CONNECTED:
            raise UpstreamError(
                f"Session for server '{self.server_name}' is {self.state.value}.",
                self.server_name,
            )
        if self._client is None:
            cause = f": {describe_error(self._error)}" if self._error else ""
            raise UpstreamError(
                f"Connection to server '{self.server_name}' is no longer running{cause}",
                self.server_name,
            )
        return self._client

    async def list_tools(self) -> List[Tool]:
        """
        Fetch the upstream's full tool listing.

        Raises:
            UpstreamError: If the request fails or the response has no tool list.
        """
        client = self._require_client()
        try:
            result = await client.list_tools()
        except Exception as exc:
            raise UpstreamError(
                f"Failed to list tools on server '{self.server_name}': {describe_error(exc)}",
                self.server_name,
            ) from exc

        tools = getattr(result, "tools", None)
        if not isinstance(tools, list):
            raise UpstreamError(
                f"Server '{self.server_name}' returned a malformed tool listing.",
                self.server_name,
            )
        return tools

    async def call_tool(
        self, tool_name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> CallToolResult:
        """
        Invoke a tool on the upstream and return its result unmodified.

        Raises:
            UpstreamError: If the request fails.
        """
        client = self._require_client()
        logger.debug(f"{self.server_name}: Calling tool '{tool_name}'", data=arguments)
        try:
            return await client.call_tool(name=tool_name, arguments=arguments)
        except Exception as exc:
            raise UpstreamError(
                f"Failed to call tool '{tool_name}' on server '{self.server_name}': "
                f"{describe_error(exc)}",
                self.server_name,
            ) from exc

    async def close(self) -> None:
        """
        Shut the connection down and wait for the transport to be released.

        Raises:
            DisconnectError: If tearing down the client or transport failed.
        """
        if self.state is SessionState.CLOSED:
            logger.debug(f"{self.server_name}: Session already closed")
            return
        if self.state is SessionState.UNCONNECTED:
            self.state = SessionState.CLOSED
            return

        logger.info(f"{self.server_name}: Closing connection to server...")
        self._closing = True
        self._shutdown_event.set()
        await self._closed_event.wait()
        self.state = SessionState.CLOSED

        if self._close_error is not None:
            raise DisconnectError(
                f"Failed to disconnect from server '{self.server_name}': "
                f"{describe_error(self._close_error)}",
                self.server_name,
            ) from self._close_error

        logger.info(f"{self.server_name}: Closed connection to server")
