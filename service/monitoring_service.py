import os
from dataclasses import dataclass, field
from typing import List, Optional

import psutil

from config.app_config import AppConfig
from config.constants import ProxyConstants
from core.logging_config import LoggerMixin
from core.service_manager import ServiceUnitManager
from core.types import ServiceState

@dataclass
class ProcessUsage:
    pid: int
    rss_bytes: int
    cmdline: str

@dataclass
class StatusReport:
    """Snapshot of the relay service and its resource usage."""
    service: str
    state: ServiceState
    status_text: str
    active_connections: Optional[int]
    processes: List[ProcessUsage] = field(default_factory=list)
    disk_usage_bytes: int = 0

    @property
    def memory_bytes(self) -> int:
        return sum(p.rss_bytes for p in self.processes)

class MonitoringService(LoggerMixin):
    """Read-only queries against the live relay service."""

    def __init__(self, service_manager: ServiceUnitManager, proxy_dir: str,
                 proxy_port: int, binary_name: str = ProxyConstants.BINARY_NAME):
        self.service_manager = service_manager
        self.proxy_dir = proxy_dir
        self.proxy_port = proxy_port
        self.binary_name = binary_name

    @classmethod
    def from_config(cls, config: AppConfig) -> "MonitoringService":
        service_manager = ServiceUnitManager(
            config.service.name,
            config.paths.unit_dir,
            settle_seconds=config.service.settle_seconds,
            journal_lines=config.service.journal_lines,
        )
        return cls(service_manager, config.paths.proxy_dir, config.proxy.port)

    def count_connections(self) -> Optional[int]:
        """Established connections on the proxy port, or None without permission."""
        try:
            connections = psutil.net_connections(kind="inet")
        except psutil.AccessDenied:
            self.logger.warning("Not permitted to list connections")
            return None
        return sum(
            1 for conn in connections
            if conn.laddr and conn.laddr.port == self.proxy_port
            and conn.status == psutil.CONN_ESTABLISHED
        )

    def relay_processes(self) -> List[ProcessUsage]:
        usages = []
        for proc in psutil.process_iter(["pid", "name", "cmdline", "memory_info"]):
            info = proc.info
            cmdline = info.get("cmdline") or []
            name = info.get("name") or ""
            if name != self.binary_name and not any(
                    os.path.basename(arg) == self.binary_name for arg in cmdline[:1]):
                continue
            memory = info.get("memory_info")
            usages.append(ProcessUsage(
                pid=info["pid"],
                rss_bytes=memory.rss if memory else 0,
                cmdline=" ".join(cmdline),
            ))
        return usages

    def disk_usage(self) -> int:
        total = 0
        for root, _dirs, files in os.walk(self.proxy_dir):
            for name in files:
                try:
                    total += os.lstat(os.path.join(root, name)).st_size
                except OSError:
                    continue
        return total

    def status(self) -> StatusReport:
        return StatusReport(
            service=self.service_manager.service_name,
            state=self.service_manager.get_state(),
            status_text=self.service_manager.status_text(),
            active_connections=self.count_connections(),
            processes=self.relay_processes(),
            disk_usage_bytes=self.disk_usage(),
        )

    def follow_logs(self) -> int:
        return self.service_manager.follow_logs()
