"""
Password Hashing
Salted bcrypt digests with a fixed work factor
"""

import bcrypt
import structlog

from accounts.errors import HashingError

logger = structlog.get_logger()

DEFAULT_ROUNDS = 10
# bcrypt ignores (or refuses) input past this many bytes
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """One-way salted hashing and constant-time verification"""

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, plaintext: str) -> bytes:
        """Hash a plaintext password into a salted digest"""
        try:
            return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        except (ValueError, TypeError, MemoryError) as e:
            logger.error("Password hashing failed", error_type=type(e).__name__)
            raise HashingError(str(e)) from e

    def verify(self, digest: bytes, plaintext: str) -> bool:
        """Check plaintext against a digest; a malformed digest is just a mismatch"""
        if not digest:
            return False
        if isinstance(digest, (memoryview, bytearray)):
            digest = bytes(digest)
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), digest)
        except (ValueError, TypeError):
            return False
