"""
Database Storage
Handles user record persistence and retrieval
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extras import RealDictCursor
import structlog

from accounts.errors import ConflictError, NotFoundError, StorageError
from .subjects import UserIdentity

logger = structlog.get_logger()

# Unique constraints on the users table and the field each one guards
CONSTRAINT_FIELDS = {
    "users_name_key": "name",
    "users_email_key": "email",
}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    password_digest BYTEA NOT NULL,
    jwt_token TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT users_name_key UNIQUE (name),
    CONSTRAINT users_email_key UNIQUE (email)
)
"""


def conflict_field(constraint_name: Optional[str], message: str = "") -> Optional[str]:
    """Name the field behind a unique violation, or None if it can't be told"""
    if constraint_name:
        field = CONSTRAINT_FIELDS.get(constraint_name)
        if field:
            return field
    # Older servers and poolers may not report the constraint name
    text = (message or "").lower()
    if "email" in text:
        return "email"
    if "name" in text:
        return "name"
    return None


class UserStore(ABC):
    """Persistence boundary for user identities"""

    @abstractmethod
    async def create(self, identity: UserIdentity) -> UserIdentity:
        """Insert a new identity, raising ConflictError on a unique violation"""
        pass

    @abstractmethod
    async def find_by_name(self, name: str) -> UserIdentity:
        """Return the stored identity for name, raising NotFoundError if absent"""
        pass

    @abstractmethod
    async def list_all(self) -> List[UserIdentity]:
        """Return every stored identity"""
        pass

    async def ensure_schema(self) -> None:
        """Create backing tables if the store needs them"""
        return None


class DatabaseStorage(UserStore):
    """PostgreSQL storage for user identities"""

    def __init__(self, database_url: str):
        self.database_url = database_url

    def get_connection(self):
        """Get database connection"""
        return psycopg2.connect(self.database_url)

    # psycopg2 blocks, so every call runs in a worker thread
    async def ensure_schema(self) -> None:
        await asyncio.to_thread(self._ensure_schema)

    async def create(self, identity: UserIdentity) -> UserIdentity:
        return await asyncio.to_thread(self._create, identity)

    async def find_by_name(self, name: str) -> UserIdentity:
        return await asyncio.to_thread(self._find_by_name, name)

    async def list_all(self) -> List[UserIdentity]:
        return await asyncio.to_thread(self._list_all)

    def _ensure_schema(self) -> None:
        try:
            conn = self.get_connection()
            try:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA_SQL)
                conn.commit()
            finally:
                conn.close()
        except psycopg2.Error as e:
            logger.error("Error creating users table", error=str(e))
            raise StorageError(str(e)) from e

        logger.info("Users table ready")

    def _create(self, identity: UserIdentity) -> UserIdentity:
        try:
            conn = self.get_connection()
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute("""
                        INSERT INTO users (name, email, password_digest, jwt_token)
                        VALUES (%s, %s, %s, %s)
                        RETURNING *
                    """, (
                        identity.name,
                        identity.email,
                        psycopg2.Binary(identity.password_digest),
                        identity.token,
                    ))
                    user_row = cur.fetchone()
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise
            finally:
                conn.close()

        except pg_errors.UniqueViolation as e:
            constraint = getattr(getattr(e, "diag", None), "constraint_name", None)
            field = conflict_field(constraint, str(e))
            logger.info("User already exists", constraint=constraint, field=field)
            raise ConflictError(field, detail=str(e)) from e
        except psycopg2.Error as e:
            logger.error("Error creating user", error=str(e))
            raise StorageError(str(e)) from e

        return self._to_identity(user_row)

    def _find_by_name(self, name: str) -> UserIdentity:
        try:
            conn = self.get_connection()
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        "SELECT * FROM users WHERE name = %s",
                        (name,)
                    )
                    user_row = cur.fetchone()
            finally:
                conn.close()
        except psycopg2.Error as e:
            logger.error("Error fetching user", name=name, error=str(e))
            raise StorageError(str(e)) from e

        if not user_row:
            raise NotFoundError()

        return self._to_identity(user_row)

    def _list_all(self) -> List[UserIdentity]:
        try:
            conn = self.get_connection()
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute("SELECT * FROM users ORDER BY id")
                    rows = cur.fetchall()
            finally:
                conn.close()
        except psycopg2.Error as e:
            logger.error("Error listing users", error=str(e))
            raise StorageError(str(e)) from e

        return [self._to_identity(row) for row in rows]

    @staticmethod
    def _to_identity(user_row: Dict[str, Any]) -> UserIdentity:
        digest = user_row["password_digest"]
        return UserIdentity(
            id=user_row["id"],
            name=user_row["name"],
            email=user_row["email"],
            password_digest=bytes(digest) if digest is not None else None,
            token=user_row.get("jwt_token") or "",
            created_at=user_row.get("created_at"),
        )
