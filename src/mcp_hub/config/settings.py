"""
Settings models for the MCP hub.
"""

import json
import os
import sys
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Sequence, Union

import yaml
from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

from mcp_hub.errors import ConfigError

CONFIG_PATH_ENV_VAR = "MCP_CONFIG_PATH"
CONFIG_PATH_ARG = "--config-path"
DEFAULT_CONFIG_FILENAMES = ["mcp-config.json", "mcp-config.yaml"]

_url_adapter = TypeAdapter(AnyUrl)


class MCPServerSettings(BaseModel):
    """
    Connection settings for an MCP server as written in a config file.

    This is the loose shape of a config entry. The transport kind is either
    given explicitly with ``type`` or inferred from which fields are present;
    see ``mcp_hub.mcp.transport.resolve_connection_params``.
    """

    type: Optional[str] = None
    command: Optional[str] = None
    args: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None

    model_config = {"extra": "allow"}


class LocalProcessParams(BaseModel):
    """Parameters for an upstream spawned as a local process speaking over stdio."""

    kind: Literal["stdio"] = "stdio"
    command: str = Field(min_length=1)
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)


class NetworkStreamParams(BaseModel):
    """Parameters for an upstream reached over streamable HTTP."""

    kind: Literal["http"] = "http"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        # Validate only; the URL is kept exactly as written.
        _url_adapter.validate_python(value)
        return value


ConnectionParams = Annotated[
    Union[LocalProcessParams, NetworkStreamParams], Field(discriminator="kind")
]


class LoggingSettings(BaseModel):
    """Settings for logging configuration."""

    level: str = "info"
    file_path: Optional[str] = None


class MCPHubConfig(BaseModel):
    """
    Root config document: ``{"mcpServers": {name: settings}}``.

    Server entries are kept raw; each one is validated when it is connected,
    so a malformed entry only fails that server.
    """

    mcp_servers: Dict[str, Any] = Field(
        default_factory=dict, alias="mcpServers"
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "populate_by_name": True,
        "extra": "allow",
    }


def find_config_path(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve the config file path.

    Checked in order: the MCP_CONFIG_PATH environment variable, a
    ``--config-path <path>`` argument, then the first default file that exists.

    Args:
        argv: Command line arguments. Defaults to sys.argv.
        environ: Environment to read. Defaults to os.environ.
        cwd: Directory for the default paths. Defaults to the current directory.

    Returns:
        The resolved path, or None if nothing was found.
    """
    environ = os.environ if environ is None else environ
    argv = sys.argv if argv is None else argv
    cwd = os.getcwd() if cwd is None else cwd

    if environ.get(CONFIG_PATH_ENV_VAR):
        return environ[CONFIG_PATH_ENV_VAR]

    argv = list(argv)
    if CONFIG_PATH_ARG in argv:
        index = argv.index(CONFIG_PATH_ARG)
        if index < len(argv) - 1:
            return argv[index + 1]

    for filename in DEFAULT_CONFIG_FILENAMES:
        for candidate in (os.path.join(".", filename), os.path.join(cwd, filename)):
            if os.path.exists(candidate):
                return candidate

    return None


def load_config(
    config_path: Union[str, Path],
    environ: Optional[Mapping[str, str]] = None,
) -> MCPHubConfig:
    """
    Load and validate the configuration from a JSON or YAML file.

    Args:
        config_path: Path to the config file. Files ending in .yaml or .yml are
            read as YAML, anything else as JSON.
        environ: Environment used for LOG_LEVEL / LOG_FILE overrides.

    Returns:
        MCPHubConfig: Validated configuration object.

    Raises:
        ConfigError: If the file cannot be read or is not a valid config document.
    """
    path = Path(config_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
        if path.suffix in (".yaml", ".yml"):
            config_data = yaml.safe_load(content)
        else:
            config_data = json.loads(content)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(
            f"Failed to load configuration file '{config_path}': {exc}"
        ) from exc

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigError(
            f"Failed to load configuration file '{config_path}': "
            f"expected a mapping at the top level, got {type(config_data).__name__}"
        )

    # Environment variables override file settings
    env_config = _load_from_env(os.environ if environ is None else environ)
    if env_config:
        _merge_dicts(config_data, env_config)

    try:
        return MCPHubConfig.model_validate(config_data)
    except ValidationError as exc:
        raise ConfigError(
            f"Failed to load configuration file '{config_path}': {exc}"
        ) from exc


def _load_from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Load configuration overrides from environment variables.

    Returns:
        Dict with configuration loaded from environment variables.
    """
    config: Dict[str, Any] = {}

    _set_nested_dict(config, ["logging", "level"], environ.get("LOG_LEVEL"))
    _set_nested_dict(config, ["logging", "file_path"], environ.get("LOG_FILE"))

    return config


def _set_nested_dict(d: Dict[str, Any], path: List[str], value: Any) -> None:
    """
    Set a value in a nested dictionary based on a path.

    Args:
        d: Dictionary to set value in.
        path: List of keys defining the path.
        value: Value to set.
    """
    if value is None:
        return

    if len(path) == 1:
        d[path[0]] = value
        return

    if path[0] not in d:
        d[path[0]] = {}

    _set_nested_dict(d[path[0]], path[1:], value)


def _merge_dicts(target: Dict, source: Dict) -> None:
    """
    Recursively merge source dictionary into target dictionary.
    Values in source will override values in target.
    """
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge_dicts(target[key], value)
        else:
            target[key] = value
