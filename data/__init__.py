# Data module exports
from .models import UserRecord
from .user_registry import UserRegistry, RegistryScan

__all__ = [
    'UserRecord',
    'UserRegistry',
    'RegistryScan'
]
