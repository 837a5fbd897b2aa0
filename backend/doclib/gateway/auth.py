"""
Password authentication against the ``admin_users`` table.

Security notes:
- Passwords are stored as passlib pbkdf2_sha256 hashes, never in clear text
- Access tokens are short JWTs (sub + exp) signed with the app secret
- The session lives in this client only; sign-out drops it and notifies listeners
"""

import logging
from collections.abc import Callable
from passlib.hash import pbkdf2_sha256
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from doclib.config import Settings
from doclib.db.models import AdminUser
from doclib.errors import AuthFailed, BackendUnavailable, GatewayError
from doclib.gateway.protocols import AuthResponse, AuthStateCallback
from doclib.schemas.auth import AuthUser, Session
from doclib.security import create_access_token

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password for storage in ``admin_users.password_hash``."""
    return pbkdf2_sha256.hash(password)


class SqlAuthClient:
    """Auth client backed by the SQL database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings):
        self._session_factory = session_factory
        self._settings = settings
        self._session: Session | None = None
        self._listeners: list[AuthStateCallback] = []

    async def get_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    async def sign_in_with_password(self, *, email: str, password: str) -> AuthResponse:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(AdminUser).where(AdminUser.email == email.lower()))
                admin = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise BackendUnavailable(f"Failed to look up credentials: {e}") from e

        if admin is None or not pbkdf2_sha256.verify(password, admin.password_hash):
            logger.warning("Rejected sign-in for %s", email)
            return AuthResponse(error=AuthFailed("Invalid login credentials"))

        user = AuthUser(id=str(admin.id), email=admin.email)
        self._session = Session(
            user=user,
            access_token=create_access_token(admin.id, self._settings),
            expires_in=self._settings.jwt_expire_minutes * 60,
        )
        self._emit("SIGNED_IN", self._session)
        return AuthResponse(user=user, session=self._session)

    async def sign_out(self) -> None:
        self._session = None
        self._emit("SIGNED_OUT", None)

    async def create_admin(self, email: str, password: str) -> AuthUser:
        """Register an administrator account."""
        admin = AdminUser(email=email.lower(), password_hash=hash_password(password))
        try:
            async with self._session_factory() as db:
                db.add(admin)
                await db.commit()
                await db.refresh(admin)
        except IntegrityError as e:
            raise GatewayError(f"Admin already exists: {email}") from e
        except SQLAlchemyError as e:
            raise BackendUnavailable(f"Failed to create admin: {e}") from e
        return AuthUser(id=str(admin.id), email=admin.email)

    def _emit(self, event: str, session: Session | None) -> None:
        for listener in list(self._listeners):
            listener(event, session)
