"""
Backend gateway contracts.

The data service talks to its backend only through these protocols, so any
implementation (the in-memory gateway, the SQL + S3 gateway, a test double)
can be injected at construction time.

Failures are reported as values: every table query and bucket call resolves
to a ``GatewayResponse`` whose ``error`` holds a ``GatewayError`` instead of
raising it. Callers decide whether to raise.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from doclib.errors import AuthFailed, GatewayError
from doclib.schemas.auth import AuthUser, Session

AuthStateCallback = Callable[[str, Session | None], None]


@dataclass
class GatewayResponse:
    """Result of a gateway call: ``data`` on success, ``error`` on failure."""

    data: Any = None
    error: GatewayError | None = None


@dataclass
class AuthResponse:
    """Result of a password sign-in."""

    user: AuthUser | None = None
    session: Session | None = None
    error: AuthFailed | None = None


class TableQuery(Protocol):
    """Filtered query builder over one record collection."""

    def select(self, columns: str = "*") -> "TableQuery": ...

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> "TableQuery": ...

    def update(self, values: dict[str, Any]) -> "TableQuery": ...

    def delete(self) -> "TableQuery": ...

    def eq(self, column: str, value: Any) -> "TableQuery": ...

    def order(self, column: str, *, desc: bool = False) -> "TableQuery": ...

    def or_(self, *conditions: tuple[str, str, Any]) -> "TableQuery": ...

    def single(self) -> "TableQuery": ...

    def execute(self) -> Awaitable[GatewayResponse]: ...


class StorageBucket(Protocol):
    """Blob storage bucket."""

    async def upload(
        self, path: str, data: bytes, *, content_type: str, upsert: bool = False
    ) -> GatewayResponse: ...

    def get_public_url(self, path: str) -> str: ...

    async def remove(self, paths: list[str]) -> GatewayResponse: ...


class AuthClient(Protocol):
    """Session-based authentication."""

    async def get_session(self) -> Session | None: ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]: ...

    async def sign_in_with_password(self, *, email: str, password: str) -> AuthResponse: ...

    async def sign_out(self) -> None: ...


class BackendGateway(Protocol):
    """Everything the data service needs from its backend."""

    auth: AuthClient

    def table(self, name: str) -> TableQuery: ...

    def storage(self, bucket: str) -> StorageBucket: ...

    async def close(self) -> None: ...
