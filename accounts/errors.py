"""
Error Taxonomy
Failures raised by the accounts core and the HTTP status each maps to
"""

from typing import Optional

INTERNAL_ERROR_MESSAGE = "Internal server error"
AUTH_FAILURE_MESSAGE = "wrong username or password"


class AccountsError(Exception):
    """Base class for every failure the core reports to the transport layer"""
    status_code = 500
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Text that is safe to put in a response body"""
        return self.message


class ValidationError(AccountsError):
    """Missing or malformed input the caller can correct"""
    status_code = 422
    default_message = "Invalid request"


class ConflictError(AccountsError):
    """A uniqueness constraint already satisfied by an existing record"""

    messages = {
        "name": "Username already in use.",
        "email": "Email already in use.",
    }

    def __init__(self, field: Optional[str] = None, detail: Optional[str] = None):
        self.field = field if field in self.messages else None
        self.detail = detail
        super().__init__(self.messages.get(self.field, "Account already exists."))

    @property
    def status_code(self) -> int:
        return 400 if self.field else 409


class AuthFailure(AccountsError):
    """Unknown user or wrong password; the two are never told apart"""
    status_code = 401
    default_message = AUTH_FAILURE_MESSAGE

    def __init__(self):
        super().__init__(AUTH_FAILURE_MESSAGE)


class InvalidTokenError(AccountsError):
    """Bearer token is missing, malformed, expired or badly signed"""
    status_code = 401
    default_message = "Invalid or expired token"


class NotFoundError(AccountsError):
    """No stored identity matches the lookup"""
    status_code = 404
    default_message = "User not found"


class InternalError(AccountsError):
    """Fatal-for-the-request failure; detail stays in the logs"""
    status_code = 500

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(INTERNAL_ERROR_MESSAGE)


class HashingError(InternalError):
    """Password hashing failed"""


class SigningError(InternalError):
    """Token signing failed or no signing secret is configured"""


class StorageError(InternalError):
    """The backing store failed for a reason other than a conflict"""
