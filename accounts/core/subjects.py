"""
User Subject Models
Stored identities and the request/response payloads built from them
"""

from typing import Optional
from datetime import datetime
from pydantic import AliasChoices, BaseModel, Field, computed_field


class UserIdentity(BaseModel):
    """User identity as stored, including its digest"""
    id: Optional[int] = None
    name: str = ""
    email: str = ""
    # Never persisted and never serialized
    password: str = Field(default="", exclude=True, repr=False)
    password_digest: Optional[bytes] = Field(default=None, exclude=True, repr=False)
    token: str = ""
    created_at: Optional[datetime] = None

    def public(self) -> "UserResponse":
        """Outward projection with no password material"""
        return UserResponse(
            id=self.id,
            name=self.name,
            email=self.email,
            token=self.token,
        )


class UserResponse(BaseModel):
    id: Optional[int] = None
    name: str
    email: str
    token: str = ""

    @computed_field
    @property
    def jwt_token(self) -> str:
        """Same value as token, under the key existing clients read"""
        return self.token


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class Credential(BaseModel):
    """User submitted login credentials"""
    username: str = Field(default="", validation_alias=AliasChoices("username", "name"))
    password: str = ""


class TokenResponse(BaseModel):
    """Payload returned after a successful login"""
    id: str
    name: str
    email: str
    token: str

    @computed_field
    @property
    def jwt_token(self) -> str:
        return self.token
