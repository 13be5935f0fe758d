"""
Main entry point of the MCP hub.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import anyio
from mcp.types import CallToolResult, Tool

from mcp_hub.config import find_config_path
from mcp_hub.errors import ConfigError
from mcp_hub.mcp.client_session import HubClientSession
from mcp_hub.mcp.loader import load_from_config as load_servers_from_config
from mcp_hub.mcp.query import SearchField, ToolQueryEngine, ToolSearchResult, ToolSummary
from mcp_hub.mcp.registry import SessionRegistry
from mcp_hub.mcp.session import ClientSessionFactory
from mcp_hub.mcp.transport import ServerParams, TransportSelector, select_transport
from mcp_hub.utils.logging import get_logger


class MCPHub:
    """
    Connects to many MCP servers and routes tool queries and calls to them.

    Bundles a SessionRegistry, a ToolQueryEngine and config loading behind
    one async context manager.

    Example usage:
        async with MCPHub(auto_load=True) as hub:
            print(hub.list_servers())
            matches = await hub.find_tools("file")
            result = await hub.call_tool("files", "read_file", {"path": "README.md"})
    """

    def __init__(
        self,
        name: str = "mcp_hub",
        config_path: Optional[Union[str, Path]] = None,
        auto_load: bool = False,
        environ: Optional[Mapping[str, str]] = None,
        client_session_factory: ClientSessionFactory = HubClientSession,
        transport_selector: TransportSelector = select_transport,
    ):
        """
        Args:
            name: Name of the hub, used for its logger.
            config_path: Config file to load from. If None, resolved from
                MCP_CONFIG_PATH, --config-path or the default file names.
            auto_load: Connect to the configured servers on enter. A failed
                load is logged and the hub starts with no servers.
            environ: Environment inherited by stdio servers and used for
                config resolution. Defaults to os.environ.
            client_session_factory: Builds the client session for each connection.
            transport_selector: Validates settings and builds the unopened transport.
        """
        self.name = name
        self.auto_load = auto_load
        self._environ = environ
        self._config_path = config_path or find_config_path(environ=environ)
        self._client_session_factory = client_session_factory
        self._transport_selector = transport_selector
        self.logger = get_logger(f"mcp_hub.{name}")

        self._registry: SessionRegistry | None = None
        self._query: ToolQueryEngine | None = None

    @property
    def registry(self) -> SessionRegistry:
        """Get the session registry."""
        if self._registry is None:
            raise RuntimeError(
                "MCPHub not started. Use 'async with hub:' or 'async with hub.run():'."
            )
        return self._registry

    @property
    def query(self) -> ToolQueryEngine:
        """Get the tool query engine."""
        if self._query is None:
            raise RuntimeError(
                "MCPHub not started. Use 'async with hub:' or 'async with hub.run():'."
            )
        return self._query

    @property
    def config_path(self) -> Optional[Union[str, Path]]:
        return self._config_path

    async def __aenter__(self):
        registry = SessionRegistry(
            client_session_factory=self._client_session_factory,
            environ=self._environ,
            transport_selector=self._transport_selector,
        )
        await registry.__aenter__()
        self._registry = registry
        self._query = ToolQueryEngine(registry)
        self.logger.info(f"MCPHub started - name: {self.name}")

        if self.auto_load and self._config_path:
            try:
                await self.load_from_config()
            except ConfigError as e:
                self.logger.error(
                    f"Failed to load servers from configuration file: {e.message}"
                )
            except BaseException:
                with anyio.CancelScope(shield=True):
                    await self.__aexit__(None, None, None)
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.logger.info(f"MCPHub shutting down - name: {self.name}")
        registry, self._registry, self._query = self._registry, None, None
        if registry is not None:
            await registry.__aexit__(exc_type, exc_val, exc_tb)

    @asynccontextmanager
    async def run(self):
        """
        Run the hub as an async context manager.

        Yields:
            The started hub.
        """
        async with self:
            yield self

    async def load_from_config(
        self, config_path: Optional[Union[str, Path]] = None
    ) -> List[str]:
        """
        Connect to the servers declared in a config file.

        The file's logging section is applied. Servers already connected are
        skipped; servers that fail to connect are logged and skipped.

        Returns:
            Names of the servers connected by this call.

        Raises:
            ConfigError: If no config path is known or the file cannot be loaded.
        """
        return await load_servers_from_config(
            self.registry, config_path or self._config_path, environ=self._environ
        )

    async def connect_to_server(self, server_name: str, params: ServerParams) -> None:
        """Connect to a server; see SessionRegistry.connect."""
        await self.registry.connect(server_name, params)

    async def disconnect_server(self, server_name: str) -> None:
        """Disconnect from a server; see SessionRegistry.disconnect."""
        await self.registry.disconnect(server_name)

    async def disconnect_all(self) -> None:
        await self.registry.disconnect_all()

    def list_servers(self) -> List[str]:
        return self.registry.list()

    async def list_tools(self, server_name: str) -> List[Tool]:
        return await self.query.list_tools(server_name)

    async def list_tools_in_server(self, server_name: str) -> List[Tool]:
        return await self.query.list_tools_in_server(server_name)

    async def get_tool(self, server_name: str, tool_name: str) -> Tool:
        return await self.query.get_tool(server_name, tool_name)

    async def find_tools_in_server(
        self,
        server_name: str,
        pattern: str,
        search_in: Union[SearchField, str] = SearchField.BOTH,
        case_sensitive: bool = False,
    ) -> List[ToolSummary]:
        return await self.query.find_tools_in_server(
            server_name, pattern, search_in=search_in, case_sensitive=case_sensitive
        )

    async def find_tools(
        self,
        pattern: str,
        search_in: Union[SearchField, str] = SearchField.BOTH,
        case_sensitive: bool = False,
    ) -> Dict[str, List[ToolSearchResult]]:
        return await self.query.find_tools(
            pattern, search_in=search_in, case_sensitive=case_sensitive
        )

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> CallToolResult:
        return await self.query.call_tool(server_name, tool_name, arguments)
