"""
FastAPI dependencies.

Key patterns:
1. One DataService per application, stored on ``app.state`` by the lifespan
2. Write routes depend on ``AdminSession``, which needs the bearer token of the current session

Security model:
- Login returns a signed JWT; clients send it as ``Authorization: Bearer <token>``
- The token must decode against the app secret AND equal the session's token,
  so a token from before a sign-out is rejected
"""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from doclib.security import decode_access_token
from doclib.services.data_service import DataService


def get_data_service(request: Request) -> DataService:
    """Return the application's DataService."""
    return request.app.state.data_service


Service = Annotated[DataService, Depends(get_data_service)]


async def get_token_from_request(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin(
    service: Service,
    token: Annotated[str, Depends(get_token_from_request)],
) -> DataService:
    """
    Require the signed-in administrator's token.

    Raises 401 if:
    - No one is signed in
    - The token is invalid or expired
    - The token is not the one issued for the current session
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not await service.verify_admin() or service.session is None:
        raise credentials_exception

    subject = decode_access_token(token, service.settings)
    if subject is None or subject != str(service.session.user.id):
        raise credentials_exception

    if not secrets.compare_digest(token, service.session.access_token):
        raise credentials_exception

    return service


AdminSession = Annotated[DataService, Depends(require_admin)]
