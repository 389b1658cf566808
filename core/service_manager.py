import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from core.config_renderer import render_service_unit
from core.exceptions import ServiceError, ServiceStartFailedError
from core.logging_config import LoggerMixin
from core.process_manager import ProcessManager, get_process_manager
from core.types import ServiceDescriptor, ServiceState

@dataclass(frozen=True)
class ServiceTransition:
    """What a lifecycle command did and the state observed afterwards."""
    service: str
    action: str
    command_succeeded: bool
    state: ServiceState
    verified: bool = False

    @property
    def is_active(self) -> bool:
        return self.state == ServiceState.ACTIVE

class ServiceUnitManager(LoggerMixin):
    """Lifecycle of the relay's systemd unit."""

    def __init__(self, service_name: str, unit_dir: str,
                 process_manager: Optional[ProcessManager] = None,
                 settle_seconds: float = 3, journal_lines: int = 50,
                 sleep: Callable[[float], None] = time.sleep):
        self.service_name = service_name
        self.unit_dir = unit_dir
        self.process_manager = process_manager or get_process_manager()
        self.settle_seconds = settle_seconds
        self.journal_lines = journal_lines
        self._sleep = sleep

    @property
    def unit_path(self) -> str:
        return os.path.join(self.unit_dir, f"{self.service_name}.service")

    def install(self, descriptor: ServiceDescriptor) -> str:
        """Write the unit file, reload systemd and enable start-on-boot."""
        self.logger.info("Installing service unit", unit=self.unit_path)
        os.makedirs(self.unit_dir, exist_ok=True)
        with open(self.unit_path, "w") as f:
            f.write(render_service_unit(descriptor))
        result = self.process_manager.run_command(["systemctl", "daemon-reload"])
        if not result.success:
            raise ServiceError(self.service_name, "daemon-reload", result.output or f"exit {result.return_code}")
        result = self.process_manager.run_systemctl_command("enable", self.service_name)
        if not result.success:
            raise ServiceError(self.service_name, "enable", result.output or f"exit {result.return_code}")
        return self.unit_path

    def get_state(self) -> ServiceState:
        result = self.process_manager.run_systemctl_command("is-active", self.service_name)
        # is-active exits non-zero for anything but "active" and still prints the state
        return ServiceState.parse(result.stdout)

    def journal_tail(self, lines: Optional[int] = None) -> str:
        result = self.process_manager.run_command(
            ["journalctl", "-u", self.service_name, "--no-pager", "-n", str(lines or self.journal_lines)]
        )
        return result.stdout.strip() if result.success else result.output

    def status_text(self) -> str:
        result = self.process_manager.run_command(
            ["systemctl", "status", self.service_name, "--no-pager", "-l"]
        )
        # systemctl status exits 3 for an inactive unit but still reports it
        return result.stdout.strip() or result.stderr.strip()

    def follow_logs(self) -> int:
        """Stream the unit's journal until the operator interrupts."""
        return self.process_manager.stream_command(["journalctl", "-u", self.service_name, "-f"])

    def _verify_active(self, action: str, command_succeeded: bool) -> ServiceTransition:
        self._sleep(self.settle_seconds)
        state = self.get_state()
        if state != ServiceState.ACTIVE:
            diagnostics = self.journal_tail()
            self.logger.error("Service did not become active", service=self.service_name,
                              action=action, state=state.value)
            raise ServiceStartFailedError(self.service_name, state.value, diagnostics)
        return ServiceTransition(self.service_name, action, command_succeeded, state, verified=True)

    def start(self) -> ServiceTransition:
        """Start the unit and confirm it is active after the settle period."""
        self.logger.info("Starting service", service=self.service_name)
        result = self.process_manager.run_systemctl_command("start", self.service_name)
        if not result.success:
            self.logger.warning("systemctl start failed", service=self.service_name, output=result.output)
        return self._verify_active("start", result.success)

    def restart(self, verify: bool = False) -> ServiceTransition:
        """Restart the unit.

        Without `verify` this does not wait for the new process generation; the
        returned transition carries the state seen right after the command.
        """
        self.logger.info("Restarting service", service=self.service_name, verify=verify)
        result = self.process_manager.run_systemctl_command("restart", self.service_name)
        if verify:
            return self._verify_active("restart", result.success)
        if not result.success:
            self.logger.warning("systemctl restart failed", service=self.service_name, output=result.output)
        return ServiceTransition(self.service_name, "restart", result.success, self.get_state())
