"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, EmailStr, Field


class User(BaseModel):
    """A registered user of the recipes app."""

    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class MagicLinkPayload(BaseModel):
    """Data carried inside an encrypted magic link. Immutable."""

    email: EmailStr
    nonce: str = Field(..., min_length=1)
    issued_at: AwareDatetime

    model_config = {"frozen": True, "extra": "forbid"}


class Session(BaseModel):
    """
    Cookie-backed browser session.

    Holds the nonce of the in-flight login attempt and, once a magic link
    has been validated, the authenticated user id.
    """

    pending_nonce: str | None = None
    user_id: UUID | None = None


class LoginRequest(BaseModel):
    """Request payload for the login form."""

    email: EmailStr


class SignupRequest(BaseModel):
    """Profile details collected the first time an email logs in."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
