"""
MCP connectivity for the MCP hub.

This module provides the components for connecting to MCP servers, keeping
one live session per server, and querying and calling their tools.
"""

from .client_session import HubClientSession
from .transport import (
    StdioTransport,
    StreamableHttpTransport,
    Transport,
    resolve_connection_params,
    select_transport,
)
from .session import ClientSessionFactory, SessionState, UpstreamSession
from .registry import SessionRegistry
from .query import SearchField, ToolQueryEngine, ToolSearchError, ToolSummary
from .loader import connect_servers, load_from_config

__all__ = [
    "HubClientSession",
    "StdioTransport",
    "StreamableHttpTransport",
    "Transport",
    "resolve_connection_params",
    "select_transport",
    "ClientSessionFactory",
    "SessionState",
    "UpstreamSession",
    "SessionRegistry",
    "SearchField",
    "ToolQueryEngine",
    "ToolSearchError",
    "ToolSummary",
    "connect_servers",
    "load_from_config",
]
