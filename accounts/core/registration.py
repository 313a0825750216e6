"""
Registration Flow
Validates, hashes, signs and persists a new user identity
"""

import asyncio
import re
from typing import Optional

import structlog

from accounts.errors import AccountsError, StorageError, ValidationError
from .events import EventPublisher, LoggingEventPublisher
from .passwords import MAX_PASSWORD_BYTES, PasswordHasher
from .storage import UserStore
from .subjects import RegisterRequest, UserIdentity
from .tokens import TokenIssuer

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


class RegistrationFlow:
    """Single-pass user registration; no retries"""

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        events: Optional[EventPublisher] = None,
        min_password_length: int = 1,
        max_name_length: int = 64,
        max_email_length: int = 255,
    ):
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.events = events or LoggingEventPublisher()
        self.min_password_length = min_password_length
        self.max_name_length = max_name_length
        self.max_email_length = max_email_length

    def validate(self, request: RegisterRequest) -> UserIdentity:
        """Check required fields and formats, returning the identity to create"""
        name = request.name.strip()
        email = request.email.strip()
        password = request.password

        if not name:
            raise ValidationError("No username provided.")
        if not email:
            raise ValidationError("No email provided.")
        if not password:
            raise ValidationError("No password provided.")

        if len(name) > self.max_name_length:
            raise ValidationError(f"Username must be at most {self.max_name_length} characters.")
        if len(email) > self.max_email_length:
            raise ValidationError(f"Email must be at most {self.max_email_length} characters.")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Email address is not valid.")
        if len(password) < self.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.min_password_length} characters."
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        return UserIdentity(name=name, email=email, password=password)

    async def register(self, request: RegisterRequest) -> UserIdentity:
        """Create a user, returning the stored identity with its token"""
        identity = self.validate(request)

        identity.password_digest = await asyncio.to_thread(self.hasher.hash, identity.password)
        identity.password = ""

        identity.token = self.issuer.issue(identity.name, identity.email)

        try:
            user = await self.store.create(identity)
        except AccountsError:
            raise
        except Exception as e:
            logger.error("Unexpected storage failure", error=str(e), error_type=type(e).__name__)
            raise StorageError(str(e)) from e

        logger.info("Registered user", user_id=user.id, name=user.name)
        self._notify_created(user)
        return user

    def _notify_created(self, user: UserIdentity) -> None:
        # Publishing must never fail the registration
        try:
            self.events.publish_user_created(user.id)
        except Exception as e:
            logger.error("User created notification failed", user_id=user.id, error=str(e))
