"""
User Directory
Read-side operations: listing users and resolving the caller from a token
"""

from typing import List

import structlog

from accounts.errors import InvalidTokenError, NotFoundError
from .storage import UserStore
from .subjects import UserIdentity
from .tokens import TokenIssuer

logger = structlog.get_logger()


class UserDirectory:
    def __init__(self, store: UserStore, issuer: TokenIssuer):
        self.store = store
        self.issuer = issuer

    async def list_users(self) -> List[UserIdentity]:
        """All users, with other people's tokens cleared"""
        users = await self.store.list_all()
        return [user.model_copy(update={"token": ""}) for user in users]

    async def current_user(self, token: str) -> UserIdentity:
        """Verify a bearer token and load the identity it names"""
        claims = self.issuer.verify(token)

        try:
            user = await self.store.find_by_name(claims["name"])
        except NotFoundError:
            logger.warning("Token names unknown user", name=claims["name"])
            raise InvalidTokenError()

        if user.email != claims["email"]:
            logger.warning("Token claims do not match stored user", user_id=user.id)
            raise InvalidTokenError()

        return user
