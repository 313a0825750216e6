"""
Token Issuer
Signs and verifies the bearer tokens handed out at registration
"""

from typing import Any, Dict, Optional
from datetime import datetime, timedelta, timezone

import jwt
import structlog

from accounts.errors import InvalidTokenError, SigningError

logger = structlog.get_logger()

REQUIRED_CLAIMS = ("name", "email")


class TokenIssuer:
    """JWT issuance over a single shared secret"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        ttl_seconds: Optional[int] = None,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        # None keeps tokens free of an exp claim
        self.ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None

    def issue(self, name: str, email: str) -> str:
        """Create a signed token carrying name and email claims"""
        if not self.secret_key:
            raise SigningError("no signing secret configured")

        payload: Dict[str, Any] = {"name": name, "email": email}
        if self.ttl is not None:
            payload["exp"] = datetime.now(timezone.utc) + self.ttl

        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error("Token signing failed", algorithm=self.algorithm, error=str(e))
            raise SigningError(str(e)) from e

    def verify(self, token: str) -> Dict[str, Any]:
        """Verify signature (and expiry, if present) and return the claims"""
        if not token:
            raise InvalidTokenError("Authentication required")
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token expired")
        except jwt.InvalidTokenError as e:
            logger.debug("Token verification failed", error=str(e))
            raise InvalidTokenError()

        missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
        if missing:
            logger.debug("Token missing claims", missing=missing)
            raise InvalidTokenError()

        return payload
