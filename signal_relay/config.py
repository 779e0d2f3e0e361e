"""Configuration management for the signaling relay.

This module handles loading configuration from multiple sources with the following priority:
1. CLI arguments (handled by caller)
2. Environment variables (SIGNAL_RELAY_HOST, SIGNAL_RELAY_PORT, SIGNAL_RELAY_PATH,
   SIGNAL_RELAY_LOG_LEVEL)
3. TOML configuration file
4. Default values

Configuration files are loaded from:
- signal-relay.toml in current working directory
- ~/.signal-relay/config.toml

Settings live under ``[environments.<name>]``. Environment selection via
SIGNAL_RELAY_ENV (development, staging, production). Defaults to production if
not set.

Example ``signal-relay.toml``::

    [environments.production]
    host = "0.0.0.0"
    port = 8080
    path = "/ws"
    allowed_origins = ["https://app.example.com"]
"""

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional

from loguru import logger

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_PATH = "/ws"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_MESSAGE_SIZE = 2**20

# Valid environment names
VALID_ENVIRONMENTS = {"development", "staging", "production"}

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ServerConfig:
    """Settings for the relay listener.

    Attributes:
        host: Interface to bind to.
        port: TCP port to bind to.
        path: The one HTTP path that accepts websocket upgrades.
        allowed_origins: Accepted ``Origin`` header values. Empty accepts any.
        max_message_size: Largest inbound message in bytes.
        log_level: Loguru level name.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    path: str = DEFAULT_PATH
    allowed_origins: List[str] = field(default_factory=list)
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        """Validate server configuration after initialization."""
        if not isinstance(self.port, int) or isinstance(self.port, bool):
            raise ValueError(f"Port must be an integer, got {self.port!r}")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")
        if not isinstance(self.host, str) or not self.host:
            raise ValueError(f"Host must be a non-empty string, got {self.host!r}")
        if not isinstance(self.path, str) or not self.path.startswith("/"):
            raise ValueError(f"Path must start with '/': {self.path!r}")
        if not isinstance(self.max_message_size, int) or self.max_message_size <= 0:
            raise ValueError("max_message_size must be positive")
        if str(self.log_level).upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{self.log_level}'. "
                f"Valid values are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "ServerConfig":
        """Create ServerConfig from a TOML environment section.

        Unknown keys are ignored.

        Args:
            data: Dictionary from a TOML [environments.<name>] section.

        Returns:
            ServerConfig instance.
        """
        known = {
            "host",
            "port",
            "path",
            "allowed_origins",
            "max_message_size",
            "log_level",
        }
        values = {k: v for k, v in data.items() if k in known}
        if "allowed_origins" in values:
            values["allowed_origins"] = list(values["allowed_origins"])
        return cls(**values)

    def get_websocket_url(self) -> str:
        """Get the websocket URL clients connect to."""
        return f"ws://{self.host}:{self.port}{self.path}"


def parse_port(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Port must be an integer, got {value!r}") from None


class Config:
    """Configuration manager for the signaling relay."""

    def __init__(self):
        """Initialize configuration with defaults."""
        self.server: ServerConfig = ServerConfig()
        self.environment: str = "production"
        self.config_file: Optional[Path] = None
        self._config_data: dict = {}

    def load(self) -> None:
        """Load configuration from all sources.

        Priority order:
        1. Environment variables
        2. TOML configuration file
        3. Default values
        """
        self.environment = self._get_environment()

        config_file = self._find_config_file()
        if config_file:
            self._load_config_file(config_file)

        self._apply_env_overrides()

    def _get_environment(self) -> str:
        """Get the current environment from SIGNAL_RELAY_ENV.

        Returns:
            Environment name (development, staging, or production).
            Defaults to production if not set or invalid.
        """
        env = os.getenv("SIGNAL_RELAY_ENV", "production").lower()
        if env not in VALID_ENVIRONMENTS:
            logger.warning(
                f"Invalid SIGNAL_RELAY_ENV value '{env}'. "
                f"Valid values are: {', '.join(sorted(VALID_ENVIRONMENTS))}. "
                f"Defaulting to 'production'."
            )
            env = "production"
        return env

    def _home_config_path(self) -> Path:
        return Path.home() / ".signal-relay" / "config.toml"

    def _find_config_file(self) -> Optional[Path]:
        """Find the configuration file.

        Searches in order:
        1. signal-relay.toml in current working directory
        2. ~/.signal-relay/config.toml

        Returns:
            Path to config file if found, None otherwise.
        """
        cwd_config = Path.cwd() / "signal-relay.toml"
        if cwd_config.exists():
            logger.info(f"Loading config from {cwd_config}")
            return cwd_config

        home_config = self._home_config_path()
        if home_config.exists():
            logger.info(f"Loading config from {home_config}")
            return home_config

        logger.debug("No config file found, using defaults")
        return None

    def _load_config_file(self, config_file: Path) -> None:
        """Load configuration from TOML file.

        A file that cannot be read or holds invalid values is reported and
        ignored.

        Args:
            config_file: Path to the TOML configuration file.
        """
        try:
            with open(config_file, "rb") as f:
                self._config_data = tomllib.load(f)

            environments = self._config_data.get("environments", {})
            env_config = environments.get(self.environment, {})

            if not env_config:
                logger.debug(
                    f"No configuration found for environment '{self.environment}' "
                    f"in {config_file}, using defaults"
                )
                return

            self.server = ServerConfig.from_dict(env_config)
            self.config_file = config_file
            logger.debug(f"Loaded server config from {config_file}: {self.server}")

        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
            logger.warning(
                f"Failed to load config file {config_file}: {e}. Using defaults."
            )

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides.

        Environment variables take precedence over config file settings
        but are overridden by CLI arguments (handled by caller).

        Raises:
            ValueError: If an override holds an invalid value.
        """
        overrides = {}

        host = os.getenv("SIGNAL_RELAY_HOST")
        if host:
            overrides["host"] = host

        port = os.getenv("SIGNAL_RELAY_PORT")
        if port:
            overrides["port"] = parse_port(port)

        path = os.getenv("SIGNAL_RELAY_PATH")
        if path:
            overrides["path"] = path

        log_level = os.getenv("SIGNAL_RELAY_LOG_LEVEL")
        if log_level:
            overrides["log_level"] = log_level.upper()

        if overrides:
            self.server = replace(self.server, **overrides)
            logger.info(f"Overriding server config from env: {sorted(overrides)}")


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Loads configuration on first call.

    Returns:
        Global Config instance.
    """
    global _config
    if _config is None:
        _config = Config()
        _config.load()
    return _config


def reload_config() -> Config:
    """Reload configuration from sources.

    Useful for testing or runtime reconfiguration.

    Returns:
        Reloaded Config instance.
    """
    global _config
    _config = Config()
    _config.load()
    return _config
