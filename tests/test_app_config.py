import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from config.app_config import AppConfig, PathsConfig
from core.exceptions import ConfigurationError

ENV_VARS = [
    "MTPROXY_DIR", "MTPROXY_CONFIG_DIR", "MTPROXY_SCRIPTS_DIR", "MTPROXY_PORT",
    "MTPROXY_STATS_PORT", "MTPROXY_ALLOW_DUPLICATE_USERS", "MTPROXY_PUBLIC_HOST",
    "MTPROXY_REGENERATE_SECRET", "MTPROXY_SERVICE_GROUP", "MTPROXY_SETTLE_SECONDS",
    "MTPROXY_LOCK_TIMEOUT", "LOG_LEVEL", "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_match_installed_layout():
    config = AppConfig.from_env()

    assert config.paths.proxy_dir == "/usr/local/mtproto-proxy"
    assert config.paths.config_dir == "/usr/local/mtproto-proxy/config"
    assert config.paths.users_file == "/usr/local/mtproto-proxy/config/users.conf"
    assert config.paths.binary_path == "/usr/local/mtproto-proxy/mtproto-proxy"
    assert config.paths.unit_dir == "/etc/systemd/system"
    assert config.proxy.port == 443
    assert config.proxy.stats_port == 8888
    assert config.registry.allow_duplicates is False
    assert config.service.group is None
    config.validate()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MTPROXY_DIR", "/opt/mtp")
    monkeypatch.setenv("MTPROXY_PORT", "8443")
    monkeypatch.setenv("MTPROXY_ALLOW_DUPLICATE_USERS", "true")
    monkeypatch.setenv("MTPROXY_PUBLIC_HOST", "proxy.example.org")

    config = AppConfig.from_env()

    assert config.paths.secret_file == "/opt/mtp/config/secret.conf"
    assert config.paths.scripts_dir == "/opt/mtp/scripts"
    assert config.proxy.port == 8443
    assert config.registry.allow_duplicates is True
    assert config.proxy.public_host == "proxy.example.org"


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("MTPROXY_STATS_PORT=9999\nMTPROXY_SERVICE_GROUP=proxy\n")

    try:
        config = AppConfig.from_env(str(env_file))
    finally:
        # load_dotenv writes into os.environ
        os.environ.pop("MTPROXY_STATS_PORT", None)
        os.environ.pop("MTPROXY_SERVICE_GROUP", None)

    assert config.proxy.stats_port == 9999
    assert config.service.group == "proxy"


def test_missing_env_file_is_ignored(tmp_path):
    config = AppConfig.from_env(str(tmp_path / "absent.env"))
    assert config.proxy.port == 443


def test_non_integer_port_is_configuration_error(monkeypatch):
    monkeypatch.setenv("MTPROXY_PORT", "https")
    with pytest.raises(ConfigurationError, match="MTPROXY_PORT"):
        AppConfig.from_env()


def test_validate_rejects_shared_ports(monkeypatch):
    monkeypatch.setenv("MTPROXY_PORT", "8888")
    with pytest.raises(ConfigurationError, match="different"):
        AppConfig.from_env().validate()


def test_validate_rejects_relative_dir():
    config = AppConfig(paths=PathsConfig(proxy_dir="relative/dir"))
    with pytest.raises(ConfigurationError, match="absolute"):
        config.validate()


def test_validate_rejects_unknown_log_format(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "xml")
    with pytest.raises(ConfigurationError, match="LOG_FORMAT"):
        AppConfig.from_env().validate()


def test_fractional_timeouts(monkeypatch):
    monkeypatch.setenv("MTPROXY_SETTLE_SECONDS", "1.5")
    monkeypatch.setenv("MTPROXY_LOCK_TIMEOUT", "0.25")

    config = AppConfig.from_env()

    assert config.service.settle_seconds == 1.5
    assert config.registry.lock_timeout == 0.25


def test_non_numeric_timeout_is_configuration_error(monkeypatch):
    monkeypatch.setenv("MTPROXY_LOCK_TIMEOUT", "soon")
    with pytest.raises(ConfigurationError, match="MTPROXY_LOCK_TIMEOUT"):
        AppConfig.from_env()
