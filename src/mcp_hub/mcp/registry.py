"""
Name-keyed registry of live upstream sessions.
"""

from typing import Dict, List, Mapping, Optional, Set

from anyio import Lock, create_task_group
from anyio.abc import TaskGroup

from mcp_hub.errors import AlreadyConnectedError, DisconnectError, NotConnectedError
from mcp_hub.mcp.client_session import HubClientSession
from mcp_hub.mcp.session import ClientSessionFactory, UpstreamSession
from mcp_hub.mcp.transport import ServerParams, TransportSelector, select_transport
from mcp_hub.utils.logging import get_logger

logger = get_logger(__name__)


class SessionRegistry:
    """
    Owns every upstream session, keyed by server name.

    At most one session exists per name: connecting under a name that is
    live, or still mid-connect, fails with AlreadyConnectedError instead of
    replacing the existing session. Sessions only leave the registry after
    they closed successfully.

    Must be used as an async context manager; the task group it opens hosts
    each session's lifecycle task.

    Example:
        async with SessionRegistry() as registry:
            await registry.connect("files", {"command": "mcp-server-files"})
            tools = await registry.get("files").list_tools()
    """

    def __init__(
        self,
        client_session_factory: ClientSessionFactory = HubClientSession,
        environ: Optional[Mapping[str, str]] = None,
        transport_selector: TransportSelector = select_transport,
    ):
        """
        Args:
            client_session_factory: Builds the client session for each connection.
            environ: Environment inherited by stdio servers. Defaults to os.environ.
            transport_selector: Validates settings and builds the unopened transport.
        """
        self._sessions: Dict[str, UpstreamSession] = {}
        self._pending: Set[str] = set()
        self._lock = Lock()
        self._tg: TaskGroup | None = None
        self._client_session_factory = client_session_factory
        self._environ = environ
        self._transport_selector = transport_selector

    async def __aenter__(self):
        self._tg = create_task_group()
        await self._tg.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        logger.debug("SessionRegistry: shutting down all sessions...")
        try:
            for server_name in self.list():
                if server_name not in self._sessions:
                    continue
                try:
                    await self.disconnect(server_name)
                except DisconnectError as e:
                    logger.error(f"{server_name}: {e.message}")
        finally:
            tg, self._tg = self._tg, None
            if tg is not None:
                # Any session whose close failed is torn down with the group
                tg.cancel_scope.cancel()
                await tg.__aexit__(None, None, None)
            self._sessions.clear()
            self._pending.clear()

    async def connect(self, server_name: str, params: ServerParams) -> UpstreamSession:
        """
        Connect to a server and register the session under ``server_name``.

        Args:
            server_name: Unique name for the server.
            params: The server's connection settings.

        Returns:
            The connected session.

        Raises:
            AlreadyConnectedError: If the name is connected or being connected.
            ConfigError: If the settings fail validation.
            ServerConnectionError: If the connection or handshake fails.
        """
        if self._tg is None:
            raise RuntimeError(
                "SessionRegistry must be used inside an async context "
                "(i.e. 'async with' or after __aenter__)."
            )

        async with self._lock:
            if server_name in self._sessions or server_name in self._pending:
                raise AlreadyConnectedError(server_name)
            self._pending.add(server_name)

        try:
            transport = self._transport_selector(server_name, params, self._environ)
            session = UpstreamSession(
                server_name,
                transport,
                client_session_factory=self._client_session_factory,
            )
            await session.connect(self._tg)
            await self.add(server_name, session)
        finally:
            self._pending.discard(server_name)

        return session

    async def add(self, server_name: str, session: UpstreamSession) -> None:
        """
        Register a connected session.

        Raises:
            AlreadyConnectedError: If a session is already registered under the name.
        """
        async with self._lock:
            if server_name in self._sessions:
                raise AlreadyConnectedError(server_name)
            self._sessions[server_name] = session
        logger.debug(f"{server_name}: Registered session")

    def get(self, server_name: str) -> UpstreamSession:
        """
        Look up the session for a server.

        Raises:
            NotConnectedError: If no session is registered under the name.
        """
        session = self._sessions.get(server_name)
        if session is None:
            raise NotConnectedError(server_name)
        return session

    async def remove(self, server_name: str) -> Optional[UpstreamSession]:
        """Drop a server's entry; only called once its session closed."""
        async with self._lock:
            return self._sessions.pop(server_name, None)

    async def disconnect(self, server_name: str) -> None:
        """
        Close a server's session and remove it from the registry.

        Raises:
            NotConnectedError: If the server is not connected.
            DisconnectError: If closing failed; the entry is kept.
        """
        logger.info(f"{server_name}: Disconnecting from server...")
        session = self.get(server_name)
        await session.close()
        await self.remove(server_name)
        logger.info(f"{server_name}: Disconnected.")

    async def disconnect_all(self) -> None:
        """
        Disconnect every server connected when the call starts.

        Fail-fast: the first DisconnectError propagates and the remaining
        servers are left connected.
        """
        logger.info("Disconnecting all server connections...")
        for server_name in self.list():
            if server_name not in self._sessions:
                continue
            await self.disconnect(server_name)
        logger.info("All server connections closed.")

    def list(self) -> List[str]:
        """Names of the connected servers, in connection order."""
        return list(self._sessions)

    def __contains__(self, server_name: object) -> bool:
        return server_name in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
