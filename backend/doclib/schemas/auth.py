"""Authentication schemas."""

from pydantic import Field

from doclib.schemas.base import BaseSchema


class AuthUser(BaseSchema):
    """Authenticated user as reported by the backend."""

    id: str
    email: str | None = None


class Session(BaseSchema):
    """Signed-in session held by the data service."""

    user: AuthUser
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = Field(None, description="Token expiry in seconds")


class LoginRequest(BaseSchema):
    """Request schema for password login."""

    identifier: str = Field(..., min_length=1, description="Email address, or the admin alias")
    password: str = Field(..., min_length=1)


class LoginResult(BaseSchema):
    """Outcome of a login attempt. Rejected credentials are not an exception."""

    success: bool
    message: str
    token: str | None = None


class SessionStatus(BaseSchema):
    """Whether a session is currently active."""

    logged_in: bool
    email: str | None = None


class ThemePreference(BaseSchema):
    """UI theme preference."""

    theme: str = Field(..., min_length=1, max_length=32)
