"""
MCP Hub - one registry and router for tools on many MCP servers.
"""

__version__ = "0.1.0"

# Errors
from mcp_hub.errors import (
    AlreadyConnectedError,
    ConfigError,
    DisconnectError,
    InvalidPatternError,
    MCPHubError,
    NotConnectedError,
    ServerConnectionError,
    ToolNotFoundError,
    UpstreamError,
)

# MCP connectivity
from mcp_hub.mcp.registry import SessionRegistry
from mcp_hub.mcp.session import SessionState, UpstreamSession
from mcp_hub.mcp.query import SearchField, ToolQueryEngine, ToolSearchError, ToolSummary
from mcp_hub.mcp.transport import select_transport

# Configuration
from mcp_hub.config import MCPHubConfig, MCPServerSettings, find_config_path, load_config

from mcp_hub.hub import MCPHub

__all__ = [
    "AlreadyConnectedError",
    "ConfigError",
    "DisconnectError",
    "InvalidPatternError",
    "MCPHubError",
    "NotConnectedError",
    "ServerConnectionError",
    "ToolNotFoundError",
    "UpstreamError",
    "SessionRegistry",
    "SessionState",
    "UpstreamSession",
    "SearchField",
    "ToolQueryEngine",
    "ToolSearchError",
    "ToolSummary",
    "select_transport",
    "MCPHubConfig",
    "MCPServerSettings",
    "find_config_path",
    "load_config",
    "MCPHub",
]
