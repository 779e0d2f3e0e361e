"""Unified CLI for signal-relay using Click."""

import sys

import click
from loguru import logger

from signal_relay.config import VALID_LOG_LEVELS, get_config
from signal_relay.relay import resolve_server_config, run_relay


@click.group()
def cli():
    pass


@cli.command()
@click.option(
    "--host",
    type=str,
    required=False,
    help="Interface to bind to. Overrides config file and SIGNAL_RELAY_HOST.",
)
@click.option(
    "--port",
    "-p",
    type=int,
    required=False,
    help="Port to listen on (default: 8080).",
)
@click.option(
    "--path",
    type=str,
    required=False,
    help="HTTP path that accepts websocket upgrades (default: /ws).",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(sorted(VALID_LOG_LEVELS), case_sensitive=False),
    required=False,
    help="Log level (default: INFO).",
)
def serve(host, port, path, log_level):
    """Start the signaling relay.

    Clients connect to ws://HOST:PORT/PATH, receive their assigned identity,
    and exchange sdp and candidate envelopes addressed to each other.

    Example:
        signal-relay serve --port 9000
    """
    try:
        server_config = resolve_server_config(
            host=host, port=port, path=path, log_level=log_level
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    run_relay(server_config)


# =============================================================================
# Config Commands (subgroup)
# =============================================================================


@cli.group()
def config():
    """Inspect relay configuration."""
    pass


@config.command(name="show")
def config_show():
    """Show the effective configuration.

    Includes the selected environment, the config file in use (if any) and
    every listener setting after environment variable overrides.
    """
    try:
        cfg = get_config()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    server = cfg.server
    click.echo(f"Environment:      {cfg.environment}")
    click.echo(f"Config file:      {cfg.config_file or '(none)'}")
    click.echo(f"URL:              {server.get_websocket_url()}")
    click.echo(f"Host:             {server.host}")
    click.echo(f"Port:             {server.port}")
    click.echo(f"Path:             {server.path}")
    click.echo(f"Allowed origins:  {', '.join(server.allowed_origins) or '(any)'}")
    click.echo(f"Max message size: {server.max_message_size}")
    click.echo(f"Log level:        {server.log_level}")
