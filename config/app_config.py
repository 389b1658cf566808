"""
Centralized application configuration management.
Provides type-safe configuration with environment variable support.
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

from config.constants import ProxyConstants
from core.exceptions import ConfigurationError

DEFAULT_ENV_FILE = "/etc/mtproxy/.env"

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")

def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")

@dataclass
class PathsConfig:
    """Filesystem layout of an installation."""
    proxy_dir: str = "/usr/local/mtproto-proxy"
    config_dir: str = ""
    scripts_dir: str = ""
    build_dir: str = "/tmp/MTProxy"
    unit_dir: str = ProxyConstants.SYSTEMD_UNIT_DIR
    sysctl_file: str = ProxyConstants.SYSCTL_FILE

    def __post_init__(self):
        """Initialize computed fields after dataclass creation."""
        if not self.config_dir:
            self.config_dir = os.path.join(self.proxy_dir, "config")
        if not self.scripts_dir:
            self.scripts_dir = os.path.join(self.proxy_dir, "scripts")

    @property
    def binary_path(self) -> str:
        return os.path.join(self.proxy_dir, ProxyConstants.BINARY_NAME)

    @property
    def secret_file(self) -> str:
        return os.path.join(self.config_dir, ProxyConstants.SECRET_FILE)

    @property
    def proxy_config_file(self) -> str:
        return os.path.join(self.config_dir, ProxyConstants.PROXY_CONFIG_FILE)

    @property
    def users_file(self) -> str:
        return os.path.join(self.config_dir, ProxyConstants.USERS_FILE)

@dataclass
class ProxySettings:
    """Relay operating parameters, before a secret is attached."""
    port: int = 443
    stats_port: int = 8888
    max_connections: int = 20
    expire_time: int = 2592000
    data_limit: int = 1073741824
    stats_enabled: bool = True
    public_host: Optional[str] = None
    regenerate_secret: bool = False

@dataclass
class ServiceConfig:
    """systemd unit settings."""
    name: str = ProxyConstants.SERVICE_NAME
    user: str = "nobody"
    group: Optional[str] = None
    settle_seconds: float = ProxyConstants.SETTLE_SECONDS
    journal_lines: int = ProxyConstants.JOURNAL_TAIL_LINES

@dataclass
class BuildConfig:
    """Where the relay source comes from."""
    repo_url: str = ProxyConstants.SOURCE_REPO_URL
    command_timeout: int = 1800

@dataclass
class RegistryConfig:
    """User registry behaviour."""
    allow_duplicates: bool = False
    lock_timeout: float = 30.0

@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    log_level: str = "INFO"
    log_format: str = "console"

@dataclass
class AppConfig:
    """Main application configuration."""
    paths: PathsConfig = field(default_factory=PathsConfig)
    proxy: ProxySettings = field(default_factory=ProxySettings)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'AppConfig':
        """Load configuration from environment variables."""
        if env_file and os.path.exists(env_file):
            load_dotenv(env_file)

        return cls(
            paths=PathsConfig(
                proxy_dir=os.getenv("MTPROXY_DIR", "/usr/local/mtproto-proxy"),
                config_dir=os.getenv("MTPROXY_CONFIG_DIR", ""),
                scripts_dir=os.getenv("MTPROXY_SCRIPTS_DIR", ""),
                build_dir=os.getenv("MTPROXY_BUILD_DIR", "/tmp/MTProxy"),
                unit_dir=os.getenv("MTPROXY_UNIT_DIR", ProxyConstants.SYSTEMD_UNIT_DIR),
                sysctl_file=os.getenv("MTPROXY_SYSCTL_FILE", ProxyConstants.SYSCTL_FILE),
            ),
            proxy=ProxySettings(
                port=_env_int("MTPROXY_PORT", 443),
                stats_port=_env_int("MTPROXY_STATS_PORT", 8888),
                max_connections=_env_int("MTPROXY_MAX_CONNECTIONS", 20),
                expire_time=_env_int("MTPROXY_EXPIRE_TIME", 2592000),
                data_limit=_env_int("MTPROXY_DATA_LIMIT", 1073741824),
                stats_enabled=_env_bool("MTPROXY_STATS_ENABLED", "true"),
                public_host=os.getenv("MTPROXY_PUBLIC_HOST") or None,
                regenerate_secret=_env_bool("MTPROXY_REGENERATE_SECRET", "false"),
            ),
            service=ServiceConfig(
                name=os.getenv("MTPROXY_SERVICE_NAME", ProxyConstants.SERVICE_NAME),
                user=os.getenv("MTPROXY_SERVICE_USER", "nobody"),
                group=os.getenv("MTPROXY_SERVICE_GROUP") or None,
                settle_seconds=_env_float("MTPROXY_SETTLE_SECONDS", ProxyConstants.SETTLE_SECONDS),
                journal_lines=_env_int("MTPROXY_JOURNAL_LINES", ProxyConstants.JOURNAL_TAIL_LINES),
            ),
            build=BuildConfig(
                repo_url=os.getenv("MTPROXY_REPO_URL", ProxyConstants.SOURCE_REPO_URL),
                command_timeout=_env_int("MTPROXY_COMMAND_TIMEOUT", 1800),
            ),
            registry=RegistryConfig(
                allow_duplicates=_env_bool("MTPROXY_ALLOW_DUPLICATE_USERS", "false"),
                lock_timeout=_env_float("MTPROXY_LOCK_TIMEOUT", 30.0),
            ),
            logging=LoggingConfig(
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                log_format=os.getenv("LOG_FORMAT", "console"),
            ),
        )

    def validate(self) -> None:
        """Validate configuration settings."""
        for name in ("port", "stats_port"):
            value = getattr(self.proxy, name)
            if not (1 <= value <= 65535):
                raise ConfigurationError(f"{name} must be between 1 and 65535, got {value}")
        if self.proxy.port == self.proxy.stats_port:
            raise ConfigurationError("port and stats_port must be different")
        if self.proxy.max_connections <= 0:
            raise ConfigurationError("max_connections must be positive")
        if self.logging.log_format not in ("console", "json"):
            raise ConfigurationError(f"LOG_FORMAT must be 'console' or 'json', got '{self.logging.log_format}'")
        if not os.path.isabs(self.paths.proxy_dir):
            raise ConfigurationError(f"MTPROXY_DIR must be an absolute path, got '{self.paths.proxy_dir}'")

# Global configuration instance
_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        env_file = os.getenv("MTPROXY_ENV_FILE", DEFAULT_ENV_FILE)
        _config = AppConfig.from_env(env_file)
        _config.validate()
    return _config

def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
