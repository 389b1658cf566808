"""
Provisioning state machine.

Runs the install steps strictly in order; the first failure aborts the run
with a ProvisioningStepError naming the step. Every step is safe to re-run,
so recovery from a failed run is running it again from the beginning.
"""

import os
import sys
import urllib.request
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from config.app_config import AppConfig, PathsConfig
from config.constants import ProxyConstants
from core.config_renderer import (
    render_proxy_config,
    render_secret_file,
    parse_secret_file,
    render_launcher,
    build_connection_link,
)
from core.exceptions import ProxyManagerError, PrivilegeError, ProvisioningStepError
from core.installation_manager import DependencyInstaller, SourceBuilder, detect_os
from core.logging_config import LoggerMixin, log_step
from core.network_manager import FirewallManager, SystemTuner
from core.process_manager import ProcessManager, get_process_manager
from core.secret_generator import SecretGenerator
from core.service_manager import ServiceUnitManager, ServiceTransition
from core.types import OSKind, ProxyConfig, ServiceDescriptor, ServiceState, ConnectionInfo, Secret
from data.user_registry import UserRegistry

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

class ProvisioningStep(Enum):
    CHECK_PRIVILEGE = "CheckPrivilege"
    DETECT_OS = "DetectOS"
    INSTALL_DEPS = "InstallDeps"
    CREATE_DIRS = "CreateDirs"
    BUILD_BINARY = "BuildBinary"
    GENERATE_ADMIN_SECRET = "GenerateAdminSecret"
    RENDER_CONFIGS = "RenderConfigs"
    OPEN_FIREWALL = "OpenFirewall"
    INSTALL_SERVICE = "InstallService"
    WRITE_MONITORING_TOOLS = "WriteMonitoringTools"
    APPLY_TUNING = "ApplyTuning"
    START_SERVICE = "StartService"
    REPORT_CONNECTION_INFO = "ReportConnectionInfo"

STEP_ORDER = list(ProvisioningStep)

@dataclass
class ProvisioningContext:
    """Everything one provisioning run knows, passed from step to step."""
    paths: PathsConfig
    os_kind: Optional[OSKind] = None
    binary_path: Optional[str] = None
    secret: Optional[Secret] = None
    proxy_config: Optional[ProxyConfig] = None
    descriptor: Optional[ServiceDescriptor] = None
    service_transition: Optional[ServiceTransition] = None
    launchers: List[str] = field(default_factory=list)
    connection_info: Optional[ConnectionInfo] = None
    completed_steps: List[ProvisioningStep] = field(default_factory=list)

def fetch_public_ip(url: str = ProxyConstants.PUBLIC_IP_URL, timeout: float = 10) -> str:
    with urllib.request.urlopen(url, timeout=timeout) as response:
        return response.read().decode("utf8").strip()

def is_root() -> bool:
    return os.geteuid() == 0

class Orchestrator(LoggerMixin):
    """Sequences the effectors into one provisioning run."""

    def __init__(self, config: AppConfig,
                 installer: DependencyInstaller,
                 builder: SourceBuilder,
                 secret_generator: SecretGenerator,
                 registry: UserRegistry,
                 firewall: FirewallManager,
                 tuner: SystemTuner,
                 service_manager: ServiceUnitManager,
                 is_privileged: Callable[[], bool] = is_root,
                 os_detector: Callable[[], OSKind] = detect_os,
                 public_ip_resolver: Callable[[], str] = fetch_public_ip,
                 progress: Optional[Callable[[str], None]] = None):
        self.config = config
        self.installer = installer
        self.builder = builder
        self.secret_generator = secret_generator
        self.registry = registry
        self.firewall = firewall
        self.tuner = tuner
        self.service_manager = service_manager
        self.is_privileged = is_privileged
        self.os_detector = os_detector
        self.public_ip_resolver = public_ip_resolver
        self.progress = progress or (lambda _: None)
        self._handlers = {
            ProvisioningStep.CHECK_PRIVILEGE: self.check_privilege,
            ProvisioningStep.DETECT_OS: self.detect_os,
            ProvisioningStep.INSTALL_DEPS: self.install_deps,
            ProvisioningStep.CREATE_DIRS: self.create_dirs,
            ProvisioningStep.BUILD_BINARY: self.build_binary,
            ProvisioningStep.GENERATE_ADMIN_SECRET: self.generate_admin_secret,
            ProvisioningStep.RENDER_CONFIGS: self.render_configs,
            ProvisioningStep.OPEN_FIREWALL: self.open_firewall,
            ProvisioningStep.INSTALL_SERVICE: self.install_service,
            ProvisioningStep.WRITE_MONITORING_TOOLS: self.write_monitoring_tools,
            ProvisioningStep.APPLY_TUNING: self.apply_tuning,
            ProvisioningStep.START_SERVICE: self.start_service,
            ProvisioningStep.REPORT_CONNECTION_INFO: self.report_connection_info,
        }

    @classmethod
    def from_config(cls, config: AppConfig, process_manager: Optional[ProcessManager] = None,
                    **kwargs) -> "Orchestrator":
        pm = process_manager or get_process_manager()
        paths = config.paths
        secret_generator = SecretGenerator()
        return cls(
            config=config,
            installer=DependencyInstaller(pm, timeout=config.build.command_timeout),
            builder=SourceBuilder(paths.build_dir, paths.binary_path, pm,
                                  timeout=config.build.command_timeout),
            secret_generator=secret_generator,
            registry=UserRegistry(paths.users_file, secret_generator,
                                  allow_duplicates=config.registry.allow_duplicates,
                                  lock_timeout=config.registry.lock_timeout),
            firewall=FirewallManager(pm),
            tuner=SystemTuner(paths.sysctl_file, pm),
            service_manager=ServiceUnitManager(config.service.name, paths.unit_dir, pm,
                                               settle_seconds=config.service.settle_seconds,
                                               journal_lines=config.service.journal_lines),
            **kwargs,
        )

    def run(self) -> ProvisioningContext:
        ctx = ProvisioningContext(paths=self.config.paths)
        self.logger.info("Starting MTProto Proxy installation")
        total = len(STEP_ORDER)
        for index, step in enumerate(STEP_ORDER, start=1):
            self.progress(f"[{index}/{total}] {step.value}")
            try:
                self._handlers[step](ctx)
            except (ProxyManagerError, OSError) as e:
                raise ProvisioningStepError(step.value, e) from e
            ctx.completed_steps.append(step)
        self.logger.info("Installation complete", steps=len(ctx.completed_steps))
        return ctx

    # --- steps ---

    @log_step
    def check_privilege(self, ctx: ProvisioningContext) -> None:
        if not self.is_privileged():
            raise PrivilegeError("Please run as root")

    @log_step
    def detect_os(self, ctx: ProvisioningContext) -> None:
        ctx.os_kind = self.os_detector()
        self.logger.info("Detected OS", os=ctx.os_kind.value)

    @log_step
    def install_deps(self, ctx: ProvisioningContext) -> None:
        self.installer.install_build_tools(ctx.os_kind)

    @log_step
    def create_dirs(self, ctx: ProvisioningContext) -> None:
        for path in (ctx.paths.proxy_dir, ctx.paths.config_dir, ctx.paths.scripts_dir):
            os.makedirs(path, exist_ok=True)

    @log_step
    def build_binary(self, ctx: ProvisioningContext) -> None:
        ctx.binary_path = self.builder.fetch_and_build(self.config.build.repo_url)

    def _existing_secret(self, ctx: ProvisioningContext) -> Optional[Secret]:
        if not os.path.exists(ctx.paths.secret_file):
            return None
        with open(ctx.paths.secret_file, "r") as f:
            return parse_secret_file(f.read())

    @log_step
    def generate_admin_secret(self, ctx: ProvisioningContext) -> None:
        secret = None if self.config.proxy.regenerate_secret else self._existing_secret(ctx)
        if secret:
            self.logger.info("Reusing existing admin secret", path=ctx.paths.secret_file)
        else:
            secret = self.secret_generator.generate()
            self.logger.info("Generated admin secret")
        ctx.secret = secret

    def _write_file(self, path: str, content: str, mode: int) -> None:
        with open(path, "w") as f:
            f.write(content)
        os.chmod(path, mode)

    @log_step
    def render_configs(self, ctx: ProvisioningContext) -> None:
        settings = self.config.proxy
        ctx.proxy_config = ProxyConfig(
            secret=ctx.secret,
            port=settings.port,
            max_connections=settings.max_connections,
            expire_time=settings.expire_time,
            data_limit=settings.data_limit,
            stats_enabled=settings.stats_enabled,
            stats_port=settings.stats_port,
        )
        self._write_file(ctx.paths.secret_file, render_secret_file(ctx.secret), 0o600)
        self._write_file(ctx.paths.proxy_config_file, render_proxy_config(ctx.proxy_config), 0o644)
        self.registry.ensure_admin(ctx.secret)

    @log_step
    def open_firewall(self, ctx: ProvisioningContext) -> None:
        self.firewall.open(ctx.proxy_config.port_rules())

    @log_step
    def install_service(self, ctx: ProvisioningContext) -> None:
        group = self.config.service.group or ProxyConstants.NOBODY_GROUP[ctx.os_kind.value]
        ctx.descriptor = ServiceDescriptor.for_proxy(
            name=self.config.service.name,
            exec_path=ctx.binary_path,
            config_path=ctx.paths.proxy_config_file,
            proxy_config=ctx.proxy_config,
            user=self.config.service.user,
            group=group,
            working_directory=ctx.paths.proxy_dir,
        )
        self.service_manager.install(ctx.descriptor)

    @log_step
    def write_monitoring_tools(self, ctx: ProvisioningContext) -> None:
        ctx.launchers = []
        for name, module in ProxyConstants.LAUNCHERS.items():
            path = os.path.join(ctx.paths.scripts_dir, name)
            self._write_file(path, render_launcher(sys.executable, module, PROJECT_ROOT), 0o755)
            ctx.launchers.append(path)

    @log_step
    def apply_tuning(self, ctx: ProvisioningContext) -> None:
        self.tuner.apply(ProxyConstants.SYSCTL_TUNABLES)

    @log_step
    def start_service(self, ctx: ProvisioningContext) -> None:
        # A re-run must pick up the freshly rendered unit and config
        if self.service_manager.get_state() == ServiceState.ACTIVE:
            ctx.service_transition = self.service_manager.restart(verify=True)
        else:
            ctx.service_transition = self.service_manager.start()

    def _resolve_host(self) -> str:
        if self.config.proxy.public_host:
            return self.config.proxy.public_host
        try:
            return self.public_ip_resolver()
        except Exception as e:
            self.logger.warning("Could not detect public IP", error=str(e))
            return "<server-ip>"

    @log_step
    def report_connection_info(self, ctx: ProvisioningContext) -> None:
        host = self._resolve_host()
        user_manager, monitoring = (os.path.join(ctx.paths.scripts_dir, name)
                                    for name in ProxyConstants.LAUNCHERS)
        ctx.connection_info = ConnectionInfo(
            host=host,
            port=ctx.proxy_config.port,
            secret=ctx.secret,
            link=build_connection_link(host, ctx.proxy_config.port, ctx.secret),
            management_commands=(
                f"{user_manager} add username [max_conn] [expire] [data_limit]",
                f"{user_manager} remove username",
                f"{user_manager} list",
                f"{monitoring} status",
                f"{monitoring} logs",
            ),
        )
