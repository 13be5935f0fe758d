"""
Error types raised by the MCP hub.

Every error carries the name of the upstream server it concerns (when there
is one) so callers routing across many servers can report which one failed.
"""

from typing import Optional


class MCPHubError(Exception):
    """Base class for all MCP hub errors."""

    def __init__(self, message: str, server_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.server_name = server_name


class ConfigError(MCPHubError):
    """Connection parameters or a config file are malformed or incomplete."""


class ServerConnectionError(MCPHubError):
    """Spawning, dialing or the protocol handshake with an upstream failed."""


class AlreadyConnectedError(MCPHubError):
    """A session is already registered under the requested server name."""

    def __init__(self, server_name: str):
        super().__init__(
            f"Already connected to server '{server_name}'.", server_name
        )


class NotConnectedError(MCPHubError):
    """No session is registered under the requested server name."""

    def __init__(self, server_name: str):
        super().__init__(f"Not connected to server '{server_name}'.", server_name)


class UpstreamError(MCPHubError):
    """A connected upstream failed a request or answered with a malformed response."""


class ToolNotFoundError(MCPHubError):
    """No tool with the exact requested name exists on the upstream."""

    def __init__(self, server_name: str, tool_name: str):
        super().__init__(
            f"Tool '{tool_name}' not found on server '{server_name}'", server_name
        )
        self.tool_name = tool_name


class InvalidPatternError(MCPHubError):
    """A search pattern failed to compile as a regular expression."""

    def __init__(self, pattern: str, diagnostic: str):
        super().__init__(f"Invalid regex pattern: {diagnostic}")
        self.pattern = pattern


class DisconnectError(MCPHubError):
    """Closing a session failed; the session stays registered."""
