# Core module exports
from .types import *
from .exceptions import *

__all__ = [
    'ProxyConfig',
    'ServiceDescriptor',
    'ServiceState',
    'OSKind',
    'ProxyManagerError',
    'ProvisioningError',
    'ProvisioningStepError',
    'DuplicateUserError',
    'RegistryParseError',
    'ConfigurationError',
    'ValidationError'
]
