"""
Core Account Components
"""

from .directory import UserDirectory
from .events import EventPublisher, KafkaEventPublisher, LoggingEventPublisher
from .login import LoginFlow
from .passwords import PasswordHasher
from .registration import RegistrationFlow
from .storage import DatabaseStorage, UserStore
from .subjects import Credential, RegisterRequest, TokenResponse, UserIdentity, UserResponse
from .tokens import TokenIssuer

__all__ = [
    "Credential",
    "DatabaseStorage",
    "EventPublisher",
    "KafkaEventPublisher",
    "LoggingEventPublisher",
    "LoginFlow",
    "PasswordHasher",
    "RegisterRequest",
    "RegistrationFlow",
    "TokenIssuer",
    "TokenResponse",
    "UserDirectory",
    "UserIdentity",
    "UserResponse",
    "UserStore",
]
