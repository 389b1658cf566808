import os
import shutil
from typing import List, Optional, Sequence

from config.constants import ProxyConstants, PackageSets
from core.exceptions import UnsupportedOSError, DependencyInstallError, BuildError
from core.logging_config import LoggerMixin
from core.process_manager import ProcessManager, get_process_manager
from core.types import OSKind, FilePath

def detect_os(redhat_release: FilePath = ProxyConstants.REDHAT_RELEASE_FILE,
              debian_version: FilePath = ProxyConstants.DEBIAN_VERSION_FILE) -> OSKind:
    """Identify the package-manager family from its release marker file."""
    if os.path.exists(redhat_release):
        return OSKind.REDHAT
    if os.path.exists(debian_version):
        return OSKind.DEBIAN
    raise UnsupportedOSError(f"Unsupported OS: neither {redhat_release} nor {debian_version} present")

class DependencyInstaller(LoggerMixin):
    """Installs compiler, build tools, TLS headers, git and the firewall package."""

    def __init__(self, process_manager: Optional[ProcessManager] = None, timeout: Optional[float] = None):
        self.process_manager = process_manager or get_process_manager()
        self.timeout = timeout

    def commands_for(self, os_kind: OSKind) -> List[List[str]]:
        if os_kind == OSKind.REDHAT:
            commands = [
                ["yum", "update", "-y"],
                ["yum", "install", "-y", *PackageSets.REDHAT_PACKAGES],
            ]
            for group in PackageSets.REDHAT_GROUPS:
                commands.append(["yum", "groupinstall", "-y", group])
            commands.append(["systemctl", "enable", "firewalld"])
            commands.append(["systemctl", "start", "firewalld"])
            return commands
        if os_kind == OSKind.DEBIAN:
            return [
                ["apt-get", "update", "-y"],
                ["apt-get", "install", "-y", *PackageSets.DEBIAN_PACKAGES],
            ]
        raise UnsupportedOSError(f"No package set for {os_kind}")

    def install_build_tools(self, os_kind: OSKind) -> None:
        self.logger.info("Installing dependencies", os=os_kind.value)
        env = {"DEBIAN_FRONTEND": "noninteractive"} if os_kind == OSKind.DEBIAN else None
        for args in self.commands_for(os_kind):
            result = self.process_manager.run_command(args, env=env, timeout=self.timeout)
            if not result.success:
                raise DependencyInstallError(result.command, result.return_code, result.output)

class SourceBuilder(LoggerMixin):
    """Clones the relay source, builds it and installs the executable."""

    def __init__(self, build_dir: FilePath, install_path: FilePath,
                 process_manager: Optional[ProcessManager] = None,
                 build_outputs: Sequence[str] = ProxyConstants.BUILD_OUTPUTS,
                 timeout: Optional[float] = None):
        self.build_dir = build_dir
        self.install_path = install_path
        self.process_manager = process_manager or get_process_manager()
        self.build_outputs = tuple(build_outputs)
        self.timeout = timeout

    def _run(self, args: List[str], cwd: Optional[str] = None) -> None:
        result = self.process_manager.run_command(args, cwd=cwd, timeout=self.timeout)
        if not result.success:
            raise BuildError(result.command, result.return_code, result.output)

    def _find_output(self) -> FilePath:
        for relative in self.build_outputs:
            candidate = os.path.join(self.build_dir, relative)
            if os.path.isfile(candidate):
                return candidate
        raise BuildError("make", 0, f"no executable found in {self.build_dir} (looked for {', '.join(self.build_outputs)})")

    def fetch_and_build(self, repo_url: str) -> FilePath:
        self.logger.info("Downloading relay source", repo=repo_url, build_dir=self.build_dir)
        if os.path.exists(self.build_dir):
            shutil.rmtree(self.build_dir)
        os.makedirs(os.path.dirname(self.build_dir) or ".", exist_ok=True)
        self._run(["git", "clone", "--depth", "1", repo_url, self.build_dir])
        self.logger.info("Building relay binary")
        self._run(["make"], cwd=self.build_dir)
        built = self._find_output()
        os.makedirs(os.path.dirname(self.install_path), exist_ok=True)
        shutil.copy2(built, self.install_path)
        os.chmod(self.install_path, 0o755)
        self.logger.info("Relay binary installed", path=self.install_path)
        return self.install_path
