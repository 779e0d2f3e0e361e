"""Tests for relay configuration loading and validation."""

import pytest

from signal_relay.config import (
    DEFAULT_PATH,
    DEFAULT_PORT,
    Config,
    ServerConfig,
    get_config,
    reload_config,
)

ENV_VARS = [
    "SIGNAL_RELAY_ENV",
    "SIGNAL_RELAY_HOST",
    "SIGNAL_RELAY_PORT",
    "SIGNAL_RELAY_PATH",
    "SIGNAL_RELAY_LOG_LEVEL",
]


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """Run in an empty directory with no relay env vars and no home config."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(Config, "_home_config_path", lambda self: tmp_path / "home.toml")
    return tmp_path


def write_config(directory, text):
    path = directory / "signal-relay.toml"
    path.write_text(text)
    return path


class TestServerConfig:
    """Tests for ServerConfig dataclass."""

    def test_defaults(self):
        config = ServerConfig()
        assert config.port == DEFAULT_PORT
        assert config.path == DEFAULT_PATH
        assert config.allowed_origins == []
        assert config.get_websocket_url() == "ws://0.0.0.0:8080/ws"

    def test_port_out_of_range_raises(self):
        with pytest.raises(ValueError, match="out of range"):
            ServerConfig(port=70000)

    def test_non_integer_port_raises(self):
        with pytest.raises(ValueError, match="must be an integer"):
            ServerConfig(port="8080")

    def test_path_must_be_absolute(self):
        with pytest.raises(ValueError, match="must start with"):
            ServerConfig(path="ws")

    def test_invalid_log_level_raises(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            ServerConfig(log_level="LOUD")

    def test_from_dict_ignores_unknown_keys(self):
        config = ServerConfig.from_dict({"port": 9000, "colour": "blue"})
        assert config.port == 9000


class TestConfigLoading:
    """Tests for Config.load() source priority."""

    def test_defaults_without_file(self, clean_env):
        config = Config()
        config.load()
        assert config.environment == "production"
        assert config.server == ServerConfig()
        assert config.config_file is None

    def test_loads_environment_section(self, clean_env):
        write_config(
            clean_env,
            """
[environments.production]
port = 9001
path = "/signal"
allowed_origins = ["https://app.example.com"]

[environments.development]
port = 9999
""",
        )
        config = Config()
        config.load()
        assert config.server.port == 9001
        assert config.server.path == "/signal"
        assert config.server.allowed_origins == ["https://app.example.com"]
        assert config.config_file == clean_env / "signal-relay.toml"

    def test_selects_environment_from_env_var(self, clean_env, monkeypatch):
        write_config(clean_env, "[environments.development]\nport = 9999\n")
        monkeypatch.setenv("SIGNAL_RELAY_ENV", "development")
        config = Config()
        config.load()
        assert config.environment == "development"
        assert config.server.port == 9999

    def test_invalid_environment_falls_back(self, clean_env, monkeypatch):
        monkeypatch.setenv("SIGNAL_RELAY_ENV", "moon")
        config = Config()
        config.load()
        assert config.environment == "production"

    def test_home_config_used_when_no_local_file(self, clean_env):
        (clean_env / "home.toml").write_text("[environments.production]\nport = 7000\n")
        config = Config()
        config.load()
        assert config.server.port == 7000

    def test_malformed_file_keeps_defaults(self, clean_env):
        write_config(clean_env, "[environments.production\nport = ")
        config = Config()
        config.load()
        assert config.server == ServerConfig()

    def test_invalid_values_in_file_keep_defaults(self, clean_env):
        write_config(clean_env, "[environments.production]\nport = 123456\n")
        config = Config()
        config.load()
        assert config.server.port == DEFAULT_PORT

    def test_env_overrides_file(self, clean_env, monkeypatch):
        write_config(clean_env, "[environments.production]\nport = 9001\nhost = \"10.0.0.1\"\n")
        monkeypatch.setenv("SIGNAL_RELAY_PORT", "9500")
        monkeypatch.setenv("SIGNAL_RELAY_LOG_LEVEL", "debug")
        config = Config()
        config.load()
        assert config.server.port == 9500
        assert config.server.host == "10.0.0.1"
        assert config.server.log_level == "DEBUG"

    def test_invalid_env_port_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("SIGNAL_RELAY_PORT", "eighty")
        config = Config()
        with pytest.raises(ValueError, match="must be an integer"):
            config.load()


class TestGlobalConfig:
    def test_get_config_is_cached_until_reload(self, clean_env, monkeypatch):
        first = reload_config()
        assert get_config() is first
        monkeypatch.setenv("SIGNAL_RELAY_PORT", "9100")
        second = reload_config()
        assert second is not first
        assert get_config().server.port == 9100
