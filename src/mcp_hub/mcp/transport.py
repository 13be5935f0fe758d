"""
Transport selection for MCP server connections.

Turns a server's declared connection settings into an unopened transport.
Selecting a transport never spawns a process or touches the network; the
session opens the transport when it connects.
"""

import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncContextManager,
    AsyncGenerator,
    Callable,
    Dict,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.client.stdio import StdioServerParameters
from mcp.client.streamable_http import streamablehttp_client
from pydantic import ValidationError

from mcp_hub.config import (
    ConnectionParams,
    LocalProcessParams,
    MCPServerSettings,
    NetworkStreamParams,
)
from mcp_hub.errors import ConfigError
from mcp_hub.utils.logging import get_logger
from mcp_hub.utils.stdio import stdio_client_with_logged_stderr

logger = get_logger(__name__)

STDIO = "stdio"
HTTP = "http"

TransportStreams = Tuple[MemoryObjectReceiveStream, MemoryObjectSendStream]

ServerParams = Union[ConnectionParams, MCPServerSettings, Mapping[str, Any]]


class Transport(ABC):
    """An unopened connection medium to one upstream server."""

    server_name: str

    @property
    @abstractmethod
    def kind(self) -> str:
        """The transport kind, "stdio" or "http"."""

    @abstractmethod
    def open(self) -> AsyncContextManager[TransportStreams]:
        """
        Open the transport.

        Returns:
            An async context manager yielding (read_stream, write_stream) and
            tearing the transport down on exit.
        """


@dataclass
class StdioTransport(Transport):
    """Spawns the server as a child process and talks to it over its stdio pipes."""

    server_name: str
    parameters: StdioServerParameters

    @property
    def kind(self) -> str:
        return STDIO

    def open(self) -> AsyncContextManager[TransportStreams]:
        return stdio_client_with_logged_stderr(
            self.parameters, server_name=self.server_name
        )


@dataclass
class StreamableHttpTransport(Transport):
    """Talks to the server over streamable HTTP, sending ``headers`` on every request."""

    server_name: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return HTTP

    @asynccontextmanager
    async def open(self) -> AsyncGenerator[TransportStreams, None]:
        async with streamablehttp_client(
            self.url, headers=self.headers or None
        ) as (read_stream, write_stream, _get_session_id):
            yield read_stream, write_stream


def resolve_connection_params(server_name: str, params: ServerParams) -> ConnectionParams:
    """
    Resolve a server's settings into a tagged connection parameter variant.

    The kind is taken from an explicit ``type`` if present, otherwise a
    ``command`` means stdio and its absence means http.

    Args:
        server_name: Name of the server, used in error messages.
        params: Config-file settings, a plain mapping, or already resolved params.

    Returns:
        LocalProcessParams or NetworkStreamParams.

    Raises:
        ConfigError: If the kind is unknown or its required field is missing or invalid.
    """
    if isinstance(params, (LocalProcessParams, NetworkStreamParams)):
        return params

    if not isinstance(params, MCPServerSettings):
        try:
            params = MCPServerSettings.model_validate(params)
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid settings for server '{server_name}': {exc}", server_name
            ) from exc

    kind = params.type or (STDIO if params.command else HTTP)

    if kind == HTTP:
        if not params.url:
            raise ConfigError(
                f"HTTP server '{server_name}' requires a URL.", server_name
            )
        try:
            return NetworkStreamParams(url=params.url, headers=params.headers or {})
        except ValidationError as exc:
            raise ConfigError(
                f"HTTP server '{server_name}' requires a URL; "
                f"'{params.url}' is not a valid absolute URL.",
                server_name,
            ) from exc

    if kind == STDIO:
        if not params.command:
            raise ConfigError(
                f"Stdio server '{server_name}' requires a command.", server_name
            )
        return LocalProcessParams(
            command=params.command,
            args=params.args or [],
            env=params.env or {},
        )

    raise ConfigError(
        f"Unsupported transport '{kind}' for server '{server_name}'.", server_name
    )


def build_environment(
    environ: Optional[Mapping[str, str]], overrides: Mapping[str, str]
) -> Dict[str, str]:
    """Overlay ``overrides`` on the inherited environment; overrides win."""
    base = os.environ if environ is None else environ
    return {**base, **overrides}


def select_transport(
    server_name: str,
    params: ServerParams,
    environ: Optional[Mapping[str, str]] = None,
) -> Transport:
    """
    Pick and build the transport for a server.

    Args:
        server_name: Name of the server.
        params: The server's connection settings.
        environ: Environment inherited by stdio servers. Defaults to os.environ.

    Returns:
        An unopened Transport.

    Raises:
        ConfigError: If the settings fail validation. No I/O has happened.
    """
    resolved = resolve_connection_params(server_name, params)

    if isinstance(resolved, NetworkStreamParams):
        logger.debug(f"{server_name}: Selected streamable HTTP transport for {resolved.url}")
        return StreamableHttpTransport(
            server_name=server_name,
            url=resolved.url,
            headers=dict(resolved.headers),
        )

    logger.debug(f"{server_name}: Selected stdio transport for '{resolved.command}'")
    return StdioTransport(
        server_name=server_name,
        parameters=StdioServerParameters(
            command=resolved.command,
            args=list(resolved.args),
            env=build_environment(environ, resolved.env),
        ),
    )


TransportSelector = Callable[[str, ServerParams, Optional[Mapping[str, str]]], Transport]
"""Signature of select_transport, for callers that substitute their own."""
