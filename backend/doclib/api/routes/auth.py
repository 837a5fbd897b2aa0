"""
Authentication Routes

Endpoints:
- POST /auth/login - Sign in with email (or the admin alias) and password
- POST /auth/logout - Drop the session and clear cached lists (bearer token required)
- GET /auth/session - Whether someone is signed in

Rejected credentials come back as ``success: false`` with status 200; only
backend failures produce error statuses.
"""

from fastapi import APIRouter, status

from doclib.api.deps import AdminSession, Service
from doclib.schemas.auth import LoginRequest, LoginResult, SessionStatus

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResult)
async def login(request: LoginRequest, service: Service) -> LoginResult:
    """Sign in and return the access token on success."""
    return await service.login(request.identifier, request.password)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(service: AdminSession) -> None:
    """Sign out."""
    await service.logout()


@router.get("/session", response_model=SessionStatus)
async def get_session(service: Service) -> SessionStatus:
    """Report the current session."""
    user = service.current_user
    return SessionStatus(logged_in=user is not None, email=user.email if user else None)
