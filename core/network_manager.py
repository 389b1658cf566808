import os
from typing import Iterable, List, Mapping, Optional, Tuple
from core.exceptions import FirewallError, TuningError
from core.logging_config import LoggerMixin
from core.process_manager import CommandResult, ProcessManager, get_process_manager
from core.types import PortRule

class FirewallManager(LoggerMixin):
    """Opens inbound ports through firewalld or ufw, whichever is installed."""

    FIREWALLD = "firewalld"
    UFW = "ufw"

    def __init__(self, process_manager: Optional[ProcessManager] = None):
        self.process_manager = process_manager or get_process_manager()

    def detect_backend(self) -> str:
        if self.process_manager.which("firewall-cmd"):
            return self.FIREWALLD
        if self.process_manager.which("ufw"):
            return self.UFW
        raise FirewallError("No supported firewall found (expected firewall-cmd or ufw)")

    def _require(self, result: CommandResult) -> None:
        if not result.success:
            raise FirewallError(f"'{result.command}' failed: {result.output or f'exit {result.return_code}'}")

    def open(self, ports: Iterable[PortRule]) -> str:
        rules = sorted(set((int(port), proto.lower()) for port, proto in ports))
        backend = self.detect_backend()
        self.logger.info("Opening firewall ports", backend=backend,
                         rules=[f"{port}/{proto}" for port, proto in rules])
        if backend == self.FIREWALLD:
            self._open_firewalld(rules)
        else:
            self._open_ufw(rules)
        return backend

    def _open_firewalld(self, rules: List[Tuple[int, str]]) -> None:
        run = self.process_manager.run_command
        changed = False
        for port, proto in rules:
            rule = f"{port}/{proto}"
            if run(["firewall-cmd", "--permanent", f"--query-port={rule}"]).success:
                self.logger.debug("Port already open", rule=rule)
                continue
            self._require(run(["firewall-cmd", "--permanent", f"--add-port={rule}"]))
            changed = True
        if changed:
            self._require(run(["firewall-cmd", "--reload"]))

    def _open_ufw(self, rules: List[Tuple[int, str]]) -> None:
        run = self.process_manager.run_command
        # ufw skips rules that already exist, so re-running is harmless
        for port, proto in rules:
            self._require(run(["ufw", "allow", f"{port}/{proto}"]))
        self._require(run(["ufw", "--force", "enable"]))

class SystemTuner(LoggerMixin):
    """Keeps kernel networking tunables in the persistent sysctl file."""

    def __init__(self, sysctl_file: str = "/etc/sysctl.conf",
                 process_manager: Optional[ProcessManager] = None):
        self.sysctl_file = sysctl_file
        self.process_manager = process_manager or get_process_manager()

    @staticmethod
    def _key_of(line: str) -> Optional[str]:
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", ";")) or "=" not in stripped:
            return None
        return stripped.split("=", 1)[0].strip()

    def merge(self, content: str, tunables: Mapping[str, str]) -> str:
        """Return `content` with exactly one `key=value` line per tunable."""
        wanted = {key: str(value) for key, value in tunables.items()}
        written = set()
        lines = []
        for line in content.splitlines():
            key = self._key_of(line)
            if key in wanted:
                if key not in written:
                    lines.append(f"{key}={wanted[key]}")
                    written.add(key)
                continue
            lines.append(line)
        for key, value in wanted.items():
            if key not in written:
                lines.append(f"{key}={value}")
        return "\n".join(lines) + "\n"

    def apply(self, tunables: Mapping[str, str]) -> None:
        self.logger.info("Applying kernel tunables", file=self.sysctl_file, keys=sorted(tunables))
        content = ""
        if os.path.exists(self.sysctl_file):
            with open(self.sysctl_file, "r") as f:
                content = f.read()
        merged = self.merge(content, tunables)
        if merged != content:
            os.makedirs(os.path.dirname(self.sysctl_file) or ".", exist_ok=True)
            with open(self.sysctl_file, "w") as f:
                f.write(merged)
        result = self.process_manager.run_command(["sysctl", "-p", self.sysctl_file])
        if not result.success:
            raise TuningError(f"sysctl reload failed: {result.output or f'exit {result.return_code}'}")
