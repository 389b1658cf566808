import os
import shutil
import shlex
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from core.logging_config import LoggerMixin

@dataclass
class CommandResult:
    """Outcome of one external command."""
    args: List[str]
    return_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.return_code == 0

    @property
    def command(self) -> str:
        return shlex.join(self.args)

    @property
    def output(self) -> str:
        """Combined diagnostic output, stderr first."""
        return "\n".join(part for part in (self.stderr.strip(), self.stdout.strip()) if part)

class ProcessManager(LoggerMixin):
    """Runs host commands. Every effector goes through here so tests can substitute it."""

    def run_command(self, args: Sequence[str], cwd: Optional[str] = None,
                    env: Optional[Dict[str, str]] = None,
                    timeout: Optional[float] = None) -> CommandResult:
        args = list(args)
        self.logger.debug("Running command", command=shlex.join(args), cwd=cwd)
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)
        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            return CommandResult(args, 127, "", str(e))
        except subprocess.TimeoutExpired:
            return CommandResult(args, 124, "", f"timed out after {timeout} seconds")
        result = CommandResult(args, completed.returncode, completed.stdout or "", completed.stderr or "")
        if not result.success:
            self.logger.debug("Command failed", command=result.command, return_code=result.return_code)
        return result

    def run_systemctl_command(self, action: str, service: str) -> CommandResult:
        return self.run_command(["systemctl", action, service])

    def stream_command(self, args: Sequence[str]) -> int:
        """Run a command attached to the terminal and return its exit status.

        Blocks until the command exits; KeyboardInterrupt propagates to the caller.
        A missing executable yields 127, as with run_command.
        """
        args = list(args)
        try:
            process = subprocess.Popen(args)
        except FileNotFoundError as e:
            self.logger.error("Command not found", command=shlex.join(args), error=str(e))
            return 127
        try:
            return process.wait()
        finally:
            if process.poll() is None:
                process.terminate()
                process.wait()

    def which(self, program: str) -> Optional[str]:
        return shutil.which(program)

_process_manager: Optional[ProcessManager] = None

def get_process_manager() -> ProcessManager:
    """Get the shared process manager instance."""
    global _process_manager
    if _process_manager is None:
        _process_manager = ProcessManager()
    return _process_manager
