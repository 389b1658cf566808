# Configuration module exports
from .app_config import AppConfig, get_config, set_config
from .constants import ProxyConstants, PackageSets

__all__ = [
    'AppConfig',
    'get_config',
    'set_config',
    'ProxyConstants',
    'PackageSets'
]
