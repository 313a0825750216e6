"""
Login Flow
Checks submitted credentials against the stored digest
"""

import asyncio
import secrets

import structlog

from accounts.errors import AuthFailure, NotFoundError
from .passwords import PasswordHasher
from .storage import UserStore
from .subjects import Credential, TokenResponse

logger = structlog.get_logger()


class LoginFlow:
    """Credential lookup and comparison

    Unknown users and wrong passwords both raise the same AuthFailure, and
    both pay for one bcrypt comparison. The token returned is the one issued
    at registration; it is not rotated.
    """

    def __init__(self, store: UserStore, hasher: PasswordHasher):
        self.store = store
        self.hasher = hasher
        # Compared against when the username is unknown; matches nothing
        self.dummy_digest = hasher.hash(secrets.token_urlsafe(32))

    async def login(self, credential: Credential) -> TokenResponse:
        logger.info("Login attempt", username=credential.username)

        if not credential.username or not credential.password:
            raise AuthFailure()

        try:
            user = await self.store.find_by_name(credential.username)
        except NotFoundError:
            await asyncio.to_thread(self.hasher.verify, self.dummy_digest, credential.password)
            logger.info("Login failed", username=credential.username)
            raise AuthFailure()

        matches = await asyncio.to_thread(
            self.hasher.verify, user.password_digest, credential.password
        )
        if not matches:
            logger.info("Login failed", username=credential.username)
            raise AuthFailure()

        logger.info("Login succeeded", user_id=user.id)
        return TokenResponse(
            id=str(user.id),
            name=user.name,
            email=user.email,
            token=user.token,
        )
