"""
JWT access tokens for admin sessions.

Token payload contains only:
- sub: the user id as a string (standard JWT subject claim)
- exp: expiration timestamp

Tokens are stateless; the API additionally requires the presented token to
be the one held by the current session, so signing out revokes it.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from doclib.config import Settings


def create_access_token(user_id: UUID | str, settings: Settings) -> str:
    """Create a signed access token for ``user_id``."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(user_id),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> str | None:
    """
    Decode and validate an access token.

    Returns the subject if the signature and expiry check out, None otherwise.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    return payload.get("sub")
