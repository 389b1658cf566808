"""
Type definitions for MTProto Proxy Manager.
Provides typed values for the proxy configuration and the service unit.
"""

import re
import shlex
from typing import List, Tuple
from dataclasses import dataclass, field
from enum import Enum

from core.exceptions import ValidationError

Username = str
Secret = str
FilePath = str
ConfigData = str
Port = int
PortRule = Tuple[Port, str]

SECRET_PATTERN = re.compile(r"^[0-9a-f]{32}$")

class OSKind(Enum):
    """Package manager families the installer supports."""
    DEBIAN = "debian"
    REDHAT = "redhat"

class Protocol(Enum):
    """Network protocols supported."""
    UDP = "udp"
    TCP = "tcp"

class ServiceState(Enum):
    """Active states reported by `systemctl is-active`."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, text: str) -> "ServiceState":
        try:
            return cls(text.strip())
        except ValueError:
            return cls.UNKNOWN


def validate_secret(secret: str, field_name: str = "secret") -> Secret:
    """Check that a secret is exactly 32 lowercase hex characters."""
    if not isinstance(secret, str) or not SECRET_PATTERN.match(secret):
        raise ValidationError(field_name, str(secret), "Must be exactly 32 lowercase hex characters")
    return secret

def validate_port(port: int, field_name: str = "port") -> Port:
    """Validate a TCP port number."""
    if isinstance(port, bool) or not isinstance(port, int) or not (1 <= port <= 65535):
        raise ValidationError(field_name, str(port), "Port must be between 1 and 65535")
    return port


@dataclass(frozen=True)
class ProxyConfig:
    """Operating parameters of the relay, rendered into proxy.conf."""
    secret: Secret
    port: Port = 443
    max_connections: int = 20
    expire_time: int = 2592000
    data_limit: int = 1073741824
    stats_enabled: bool = True
    stats_port: Port = 8888

    def __post_init__(self):
        validate_secret(self.secret)
        validate_port(self.port, "port")
        validate_port(self.stats_port, "stats_port")
        if self.port == self.stats_port:
            raise ValidationError("stats_port", str(self.stats_port), "Must differ from the proxy port")
        if self.max_connections <= 0:
            raise ValidationError("max_connections", str(self.max_connections), "Must be a positive integer")
        if self.expire_time < 0:
            raise ValidationError("expire_time", str(self.expire_time), "Must not be negative")
        if self.data_limit < 0:
            raise ValidationError("data_limit", str(self.data_limit), "Must not be negative")

    def port_rules(self) -> List[PortRule]:
        """Inbound rules the relay needs: proxy port on TCP and UDP, stats port on TCP."""
        return [
            (self.port, Protocol.TCP.value),
            (self.port, Protocol.UDP.value),
            (self.stats_port, Protocol.TCP.value),
        ]


@dataclass(frozen=True)
class ServiceDescriptor:
    """A systemd unit definition for the relay process."""
    name: str
    description: str
    exec_path: FilePath
    args: Tuple[str, ...] = ()
    user: str = "nobody"
    group: str = "nogroup"
    working_directory: FilePath = "/"
    after: str = "network.target"
    restart: str = "on-failure"
    restart_sec: int = 5
    kill_mode: str = "mixed"
    timeout_stop_sec: int = 5
    wanted_by: str = "multi-user.target"

    @property
    def exec_start(self) -> str:
        return shlex.join([self.exec_path, *self.args])

    @property
    def unit_file_name(self) -> str:
        return f"{self.name}.service"

    @classmethod
    def for_proxy(cls, name: str, exec_path: FilePath, config_path: FilePath,
                  proxy_config: ProxyConfig, user: str, group: str,
                  working_directory: FilePath) -> "ServiceDescriptor":
        """Build the relay unit binding the run-as user, ports, secret and config path."""
        args = (
            "-u", user,
            "-p", str(proxy_config.stats_port),
            "-H", str(proxy_config.port),
            "-S", proxy_config.secret,
            "--aes-pwd", config_path,
        )
        return cls(
            name=name,
            description="MTProto Proxy Service",
            exec_path=exec_path,
            args=args,
            user=user,
            group=group,
            working_directory=working_directory,
        )


@dataclass(frozen=True)
class ConnectionInfo:
    """What the operator needs to share the proxy after installation."""
    host: str
    port: Port
    secret: Secret
    link: str
    management_commands: Tuple[str, ...] = field(default_factory=tuple)
