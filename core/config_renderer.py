"""
Text generation for every file the installer writes.
All functions are pure: typed value in, text out, no filesystem access.
"""

import shlex
from typing import Optional

from config.constants import ProxyConstants
from core.exceptions import ValidationError
from core.types import ProxyConfig, ServiceDescriptor, Secret, Port, ConfigData, validate_secret

PROXY_CONFIG_TEMPLATE = """# MTProto Proxy Configuration
port={port}
secret={secret}
max-connections={max_connections}
expire-time={expire_time}
data-limit={data_limit}
enable-stats={stats_enabled}
stats-port={stats_port}
"""

SERVICE_UNIT_TEMPLATE = """[Unit]
Description={description}
After={after}

[Service]
Type=simple
User={user}
Group={group}
WorkingDirectory={working_directory}
ExecStart={exec_start}
Restart={restart}
RestartSec={restart_sec}
KillMode={kill_mode}
TimeoutStopSec={timeout_stop_sec}

[Install]
WantedBy={wanted_by}
"""

LAUNCHER_TEMPLATE = """#!/bin/sh
cd {project_root} || exit 1
exec {python} -m {module} "$@"
"""

def render_proxy_config(cfg: ProxyConfig) -> ConfigData:
    return PROXY_CONFIG_TEMPLATE.format(
        port=cfg.port,
        secret=cfg.secret,
        max_connections=cfg.max_connections,
        expire_time=cfg.expire_time,
        data_limit=cfg.data_limit,
        stats_enabled="true" if cfg.stats_enabled else "false",
        stats_port=cfg.stats_port,
    )

def render_secret_file(secret: Secret) -> ConfigData:
    return f"SECRET={validate_secret(secret)}\n"

def parse_secret_file(text: str) -> Optional[Secret]:
    """Return the secret stored in secret.conf, or None if absent or malformed."""
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if sep and key.strip() == "SECRET":
            value = value.strip().strip('"').strip("'")
            try:
                return validate_secret(value)
            except ValidationError:
                return None
    return None

def render_service_unit(descriptor: ServiceDescriptor) -> ConfigData:
    return SERVICE_UNIT_TEMPLATE.format(
        description=descriptor.description,
        after=descriptor.after,
        user=descriptor.user,
        group=descriptor.group,
        working_directory=descriptor.working_directory,
        exec_start=descriptor.exec_start,
        restart=descriptor.restart,
        restart_sec=descriptor.restart_sec,
        kill_mode=descriptor.kill_mode,
        timeout_stop_sec=descriptor.timeout_stop_sec,
        wanted_by=descriptor.wanted_by,
    )

def render_launcher(python: str, module: str, project_root: str) -> ConfigData:
    """Shell wrapper that runs an operator CLI module with the installer's interpreter."""
    return LAUNCHER_TEMPLATE.format(
        python=shlex.quote(python),
        module=module,
        project_root=shlex.quote(project_root),
    )

def build_connection_link(host: str, port: Port, secret: Secret) -> str:
    return ProxyConstants.TELEGRAM_LINK.format(host=host, port=port, secret=secret)
