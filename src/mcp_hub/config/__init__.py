"""
Configuration management for the MCP hub.
"""

from .settings import (
    ConnectionParams,
    LocalProcessParams,
    LoggingSettings,
    MCPHubConfig,
    MCPServerSettings,
    NetworkStreamParams,
    find_config_path,
    load_config,
)

__all__ = [
    "ConnectionParams",
    "LocalProcessParams",
    "LoggingSettings",
    "MCPHubConfig",
    "MCPServerSettings",
    "NetworkStreamParams",
    "find_config_path",
    "load_config",
]
