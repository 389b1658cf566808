"""
System constants for MTProto Proxy Manager.
These values describe the host layout and the relay build; they are not
meant to be changed per installation.
"""

class ProxyConstants:
    """Immutable system paths and constants."""

    SERVICE_NAME = "mtproto-proxy"
    BINARY_NAME = "mtproto-proxy"
    SOURCE_REPO_URL = "https://github.com/TelegramMessenger/MTProxy.git"
    # Candidate locations of the built executable, relative to the checkout
    BUILD_OUTPUTS = ("objs/bin/mtproto-proxy", "mtproto-proxy")

    # File names inside the config directory
    SECRET_FILE = "secret.conf"
    PROXY_CONFIG_FILE = "proxy.conf"
    USERS_FILE = "users.conf"

    # Installed operator tools: launcher name -> python module
    LAUNCHERS = {
        "user-manager": "cli.user_manager",
        "monitoring": "cli.monitoring",
    }

    # systemd
    SYSTEMD_UNIT_DIR = "/etc/systemd/system"
    SETTLE_SECONDS = 3
    JOURNAL_TAIL_LINES = 50

    # OS detection markers
    REDHAT_RELEASE_FILE = "/etc/redhat-release"
    DEBIAN_VERSION_FILE = "/etc/debian_version"

    # Group name of the unprivileged run-as user per OS family
    NOBODY_GROUP = {
        "debian": "nogroup",
        "redhat": "nobody",
    }

    # Registry defaults for `add`
    DEFAULT_USER_MAX_CONNECTIONS = 10
    DEFAULT_USER_EXPIRE_TIME = 2592000  # 30 days
    DEFAULT_USER_DATA_LIMIT = 1073741824  # 1 GiB
    ADMIN_USERNAME = "admin"
    ADMIN_MAX_CONNECTIONS = 50

    # Kernel tunables for throughput (BBR + larger socket buffers)
    SYSCTL_FILE = "/etc/sysctl.conf"
    SYSCTL_TUNABLES = {
        "net.core.default_qdisc": "fq",
        "net.ipv4.tcp_congestion_control": "bbr",
        "net.ipv4.tcp_fastopen": "3",
        "net.ipv4.tcp_low_latency": "1",
        "net.core.rmem_max": "134217728",
        "net.core.wmem_max": "134217728",
    }

    PUBLIC_IP_URL = "https://api.ipify.org"
    TELEGRAM_LINK = "https://t.me/proxy?server={host}&port={port}&secret={secret}"


class PackageSets:
    """Build dependencies per OS family."""

    DEBIAN_PACKAGES = ["build-essential", "libssl-dev", "git", "curl", "wget", "ufw"]
    REDHAT_PACKAGES = ["gcc", "make", "openssl-devel", "git", "curl", "wget", "firewalld"]
    REDHAT_GROUPS = ["Development Tools"]
