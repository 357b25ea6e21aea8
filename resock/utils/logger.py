# Logger - Centralized Logging System
# One configured logger per client component

"""
Logger Module

Responsibilities:
- Setup centralized logging with a per-name registry
- Configure log levels
- Configure log handlers (console, rotating file)
- Log formatting
- Prevent duplicate handler registration when several clients share a name
"""

import logging
import os
import sys
import atexit
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

# Registry of configured loggers, keyed by name
_configured_loggers = {}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _attach_file_handler(logger: logging.Logger, log_file: str):
    """Add a rotating file handler unless one already writes to log_file"""
    path = os.path.abspath(log_file)
    for handler in logger.handlers:
        if getattr(handler, 'baseFilename', None) == path:
            return

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        path,
        maxBytes=10485760,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)


def setup_logger(name: str = "resock", level: str = "INFO", log_file: Optional[str] = None):
    """
    Setup logger with console and file handlers

    Returns the existing logger if this name was configured before, so
    reconnect cycles and repeated client construction never stack handlers.
    The level is applied on every call and a new log_file is added alongside
    any existing one.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path

    Returns:
        Configured logger instance (existing or new)
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if name in _configured_loggers or logger.handlers:
        if log_file:
            _attach_file_handler(logger, log_file)
        _configured_loggers[name] = logger
        return logger

    logger.propagate = False

    # Console handler; the logger level does the filtering
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    # File handler with rotation (if specified)
    if log_file:
        _attach_file_handler(logger, log_file)

    _configured_loggers[name] = logger

    return logger


def setup_component_logger(name: str, level: str = "INFO", log_file: Optional[str] = None):
    """
    Logger for one client component at one level

    Components share the handlers of ``name`` but log through a child per
    level (``ReconnectingSocketClient.DEBUG``), so two clients built with
    different levels keep their own threshold.

    Args:
        name: Component name
        level: Log level for this component instance
        log_file: Optional log file path

    Returns:
        Child logger of the shared component logger
    """
    parent = setup_logger(name, "DEBUG")
    child = parent.getChild(level.upper())
    child.setLevel(getattr(logging, level.upper()))
    if log_file:
        _attach_file_handler(child, log_file)
    _configured_loggers[child.name] = child
    return child


def _cleanup_handlers():
    """Close all handlers on interpreter exit."""
    for name, logger in list(_configured_loggers.items()):
        for handler in logger.handlers[:]:
            try:
                handler.close()
                logger.removeHandler(handler)
            except Exception as e:
                sys.stderr.write(f"Failed to close log handler for {name}: {e}\n")


atexit.register(_cleanup_handlers)


def is_valid_level(level: str) -> bool:
    """Check that a level name is one logging understands"""
    return isinstance(level, str) and isinstance(logging.getLevelName(level.upper()), int)
