"""Entry point for the signal-relay serve command."""

import asyncio
import logging
import sys
from dataclasses import replace
from typing import Optional

from loguru import logger

from signal_relay.config import ServerConfig, get_config
from signal_relay.server import RelayServer


def setup_logging(level: str = "INFO") -> None:
    """Send loguru output to stderr at ``level``.

    Also silences the websockets library below WARNING so per-frame debug
    output does not drown the relay's own log lines.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)


def resolve_server_config(
    host: Optional[str] = None,
    port: Optional[int] = None,
    path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> ServerConfig:
    """Merge CLI overrides on top of the loaded configuration.

    Raises:
        ValueError: If the merged configuration is invalid.
    """
    server_config = get_config().server

    overrides = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if path is not None:
        overrides["path"] = path
    if log_level is not None:
        overrides["log_level"] = log_level.upper()

    return replace(server_config, **overrides) if overrides else server_config


def run_relay(server_config: ServerConfig) -> None:
    """Create a RelayServer and run it until interrupted.

    Args:
        server_config: Listener settings.
    """
    setup_logging(server_config.log_level)
    server = RelayServer(server_config)

    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Relay interrupted by user. Shutting down...")
    finally:
        logger.info("Relay exiting...")
