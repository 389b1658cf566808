from typing import Optional

from config.app_config import AppConfig
from config.constants import ProxyConstants
from core.logging_config import LoggerMixin
from core.service_manager import ServiceUnitManager, ServiceTransition
from core.types import Username
from data.models import UserRecord
from data.user_registry import UserRegistry, RegistryScan

class UserService(LoggerMixin):
    """Registry mutations plus the relay restart that makes them take effect.

    The running relay reads users.conf only at startup, so every change is
    followed by a restart. Restarts are fire-and-forget: a failed restart is
    logged and reported through the returned transition, never raised.
    """

    def __init__(self, registry: UserRegistry, service_manager: ServiceUnitManager):
        self.registry = registry
        self.service_manager = service_manager
        self.last_transition: Optional[ServiceTransition] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "UserService":
        registry = UserRegistry(
            config.paths.users_file,
            allow_duplicates=config.registry.allow_duplicates,
            lock_timeout=config.registry.lock_timeout,
        )
        service_manager = ServiceUnitManager(
            config.service.name,
            config.paths.unit_dir,
            settle_seconds=config.service.settle_seconds,
            journal_lines=config.service.journal_lines,
        )
        return cls(registry, service_manager)

    def _restart(self) -> ServiceTransition:
        transition = self.service_manager.restart()
        if not transition.command_succeeded:
            self.logger.warning("Proxy restart failed; changes apply on next start",
                                service=transition.service, state=transition.state.value)
        self.last_transition = transition
        return transition

    def add_user(self, username: Username,
                 max_connections: int = ProxyConstants.DEFAULT_USER_MAX_CONNECTIONS,
                 expire_time: int = ProxyConstants.DEFAULT_USER_EXPIRE_TIME,
                 data_limit: int = ProxyConstants.DEFAULT_USER_DATA_LIMIT) -> UserRecord:
        record = self.registry.add(username, max_connections, expire_time, data_limit)
        self._restart()
        return record

    def remove_user(self, username: Username) -> bool:
        removed = self.registry.remove(username)
        if removed:
            self._restart()
        return removed

    def list_users(self) -> RegistryScan:
        return self.registry.scan()
