"""
Logging utilities for the MCP hub.
"""

import logging
from typing import TYPE_CHECKING, Dict, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from mcp_hub.config.settings import LoggingSettings


# Global logger configuration
_loggers: Dict[str, logging.Logger] = {}
_console = Console(stderr=True)
_log_level = logging.INFO
_log_handlers = [RichHandler(console=_console, rich_tracebacks=True)]


def configure_logging(
    level: Union[int, str] = logging.INFO, add_file_handler: Optional[str] = None
) -> None:
    """
    Configure the logging system.

    Args:
        level: Logging level, either a number or a name such as "debug".
        add_file_handler: If provided, also log to this file.
    """
    global _log_level, _log_handlers

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    _log_level = level
    _log_handlers = [RichHandler(console=_console, rich_tracebacks=True)]

    if add_file_handler:
        file_handler = logging.FileHandler(add_file_handler)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))
        _log_handlers.append(file_handler)

    # Update existing loggers
    for logger in _loggers.values():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        for handler in _log_handlers:
            logger.addHandler(handler)

        logger.setLevel(_log_level)


def configure_logging_from_settings(settings: "LoggingSettings") -> None:
    """Apply the logging section of a loaded config."""
    configure_logging(level=settings.level, add_file_handler=settings.file_path)


class PatchedLogger(logging.Logger):
    """
    A logger that supports the 'data' parameter for structured context.
    """

    def _log(
        self,
        level,
        msg,
        args,
        exc_info=None,
        extra=None,
        stack_info=False,
        stacklevel=1,
        data=None,
    ):
        if data is not None:
            msg = f"{msg} {data}"

        super()._log(level, msg, args, exc_info, extra, stack_info, stacklevel)


# Register our custom logger class
logging.setLoggerClass(PatchedLogger)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(_log_level)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    # Add our handlers
    for handler in _log_handlers:
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger
