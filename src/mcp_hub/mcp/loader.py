"""
Connects a registry to every server declared in a config file.
"""

from pathlib import Path
from typing import List, Mapping, Optional, Union

from mcp_hub.config import MCPHubConfig, find_config_path, load_config
from mcp_hub.errors import ConfigError, ServerConnectionError
from mcp_hub.mcp.registry import SessionRegistry
from mcp_hub.utils.logging import configure_logging_from_settings, get_logger

logger = get_logger(__name__)


async def connect_servers(registry: SessionRegistry, config: MCPHubConfig) -> List[str]:
    """
    Connect to every server in a loaded config.

    Servers already connected are skipped. A server that fails validation or
    connection is logged and skipped; the rest are still attempted.

    Returns:
        Names of the servers connected by this call.
    """
    if not config.mcp_servers:
        logger.warning("No server information in configuration file.")
        return []

    connected: List[str] = []
    for server_name, server_config in config.mcp_servers.items():
        if server_name in registry:
            logger.debug(f"{server_name}: Already connected, skipping")
            continue

        try:
            await registry.connect(server_name, server_config)
        except (ConfigError, ServerConnectionError) as e:
            logger.error(
                f"Failed to connect to server '{server_name}' from configuration file: "
                f"{e.message}"
            )
            continue

        connected.append(server_name)

    logger.info(
        f"Connected to {len(connected)} of {len(config.mcp_servers)} configured servers"
    )
    return connected


async def load_from_config(
    registry: SessionRegistry,
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """
    Load a config file and connect the registry to the servers it declares.

    The file's logging section is applied before any server is connected.

    Args:
        registry: Registry to connect.
        config_path: Config file. If None, resolved with find_config_path.
        environ: Environment used for config path resolution and overrides.

    Returns:
        Names of the servers connected by this call.

    Raises:
        ConfigError: If no config file is found, or it cannot be read or parsed.
    """
    path = config_path or find_config_path(environ=environ)
    if not path:
        raise ConfigError("Configuration file path not specified.")

    logger.info(f"Loading servers from configuration file: {path}")
    config = load_config(path, environ=environ)
    configure_logging_from_settings(config.logging)
    return await connect_servers(registry, config)
