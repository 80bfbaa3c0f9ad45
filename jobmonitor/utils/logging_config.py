"""Centralized logging configuration with environment variable support."""

from __future__ import annotations

import logging
import os
from typing import Literal


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

LOG_LEVEL_ENV = "JOBMONITOR_LOG_LEVEL"


def get_log_level_from_env(
    default: int = logging.INFO,
    env_var: str = LOG_LEVEL_ENV,
) -> int:
    """Get log level from environment variable.

    Args:
        default: Default log level if environment variable is not set or invalid
        env_var: Name of environment variable to read (default: JOBMONITOR_LOG_LEVEL)

    Returns:
        Logging level constant (e.g., logging.DEBUG, logging.INFO)
    """
    level_str = os.getenv(env_var, "").upper()

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    return level_map.get(level_str, default)


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    level: int | None = None,
    format: str = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s",
    datefmt: str = "%Y-%m-%d %H:%M:%S",
    respect_env: bool = True,
) -> None:
    """Configure logging with optional environment variable support.

    Priority (highest to lowest):
        1. Explicit `level` parameter
        2. `debug` flag (if True)
        3. `verbose` flag (if True)
        4. Environment variable JOBMONITOR_LOG_LEVEL (if set and respect_env=True)
        5. Default (WARNING)

    The thread name is part of the default format, since the watcher and the
    periodic activities log from different threads.
    """
    if level is not None:
        final_level = level
    elif debug:
        final_level = logging.DEBUG
    elif verbose:
        final_level = logging.INFO
    elif respect_env:
        final_level = get_log_level_from_env(default=logging.WARNING)
    else:
        final_level = logging.WARNING

    logging.basicConfig(
        level=final_level,
        format=format,
        datefmt=datefmt,
        force=True,  # Reconfigure if already configured
    )
    # The Kubernetes client logs every request at DEBUG level.
    if final_level <= logging.DEBUG:
        logging.getLogger("kubernetes").setLevel(logging.INFO)


__all__ = ["LOG_LEVEL_ENV", "LogLevel", "configure_logging", "get_log_level_from_env"]
