"""
In-memory backend gateway.

Used for local development (``BACKEND=memory``) and as the injectable
backend in tests. Tables are lists of dicts; every executed table query and
bucket call is appended to ``calls`` as ``(target, action)``.
"""

import copy
import re
import secrets
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from doclib.config import Settings
from doclib.errors import AuthFailed, GatewayError
from doclib.gateway.protocols import AuthResponse, AuthStateCallback, GatewayResponse
from doclib.gateway.query import Query, QueryPlan, shape_single
from doclib.schemas.auth import AuthUser, Session
from doclib.security import create_access_token

# Column defaults applied on insert, per table
TABLE_DEFAULTS: dict[str, dict[str, Any]] = {
    "subjects": {"description": "", "image": None},
    "documents": {"description": "", "is_storage_file": False, "file_size": 0},
}

# child table -> (foreign key column, parent table)
FOREIGN_KEYS: dict[str, tuple[str, str]] = {
    "documents": ("subject_id", "subjects"),
}


def _ilike(value: Any, pattern: str) -> bool:
    """SQL ILIKE semantics: % any run, _ any single character, case-insensitive."""
    if value is None:
        return False
    regex = "".join(
        ".*" if char == "%" else "." if char == "_" else re.escape(char) for char in pattern
    )
    return re.fullmatch(regex, str(value), flags=re.IGNORECASE | re.DOTALL) is not None


def _same(left: Any, right: Any) -> bool:
    # ids may arrive as UUID objects or strings
    return left == right or (left is not None and right is not None and str(left) == str(right))


class MemoryBucket:
    """Blob bucket kept in a dict of path -> (bytes, content type)."""

    def __init__(self, name: str, public_url_base: str, calls: list[tuple[str, str]]):
        self.name = name
        self.objects: dict[str, tuple[bytes, str]] = {}
        self._public_url_base = public_url_base.rstrip("/")
        self._calls = calls

    async def upload(
        self, path: str, data: bytes, *, content_type: str, upsert: bool = False
    ) -> GatewayResponse:
        self._calls.append((f"storage:{self.name}", "upload"))
        if path in self.objects and not upsert:
            return GatewayResponse(error=GatewayError(f"The resource already exists: {path}"))
        self.objects[path] = (bytes(data), content_type)
        return GatewayResponse(data={"path": path})

    def get_public_url(self, path: str) -> str:
        return f"{self._public_url_base}/{self.name}/{path}"

    async def remove(self, paths: list[str]) -> GatewayResponse:
        self._calls.append((f"storage:{self.name}", "remove"))
        removed = [path for path in paths if self.objects.pop(path, None) is not None]
        return GatewayResponse(data=removed)


class MemoryAuthClient:
    """
    Password auth against a fixed email -> password map.

    With ``settings`` the access token is a signed JWT, as the SQL client
    issues; without, it is an opaque random string.
    """

    def __init__(self, users: dict[str, str] | None = None, settings: Settings | None = None):
        self._settings = settings
        self._users = {email.lower(): password for email, password in (users or {}).items()}
        self._session: Session | None = None
        self._listeners: list[AuthStateCallback] = []

    async def get_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    async def sign_in_with_password(self, *, email: str, password: str) -> AuthResponse:
        expected = self._users.get(email.lower())
        if expected is None or not secrets.compare_digest(expected, password):
            return AuthResponse(error=AuthFailed("Invalid login credentials"))

        user = AuthUser(id=email.lower(), email=email.lower())
        if self._settings is not None:
            token = create_access_token(user.id, self._settings)
        else:
            token = secrets.token_urlsafe(32)
        self._session = Session(user=user, access_token=token)
        self._emit("SIGNED_IN", self._session)
        return AuthResponse(user=user, session=self._session)

    async def sign_out(self) -> None:
        self._session = None
        self._emit("SIGNED_OUT", None)

    def _emit(self, event: str, session: Session | None) -> None:
        for listener in list(self._listeners):
            listener(event, session)


class MemoryGateway:
    """Backend gateway holding every table and bucket in process memory."""

    def __init__(
        self,
        *,
        users: dict[str, str] | None = None,
        settings: Settings | None = None,
        public_url_base: str = "memory://storage",
    ):
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLE_DEFAULTS}
        self.calls: list[tuple[str, str]] = []
        self.auth = MemoryAuthClient(users, settings)
        self._buckets: dict[str, MemoryBucket] = {}
        self._public_url_base = public_url_base
        self._sequence = 0

    def table(self, name: str) -> Query:
        return Query(name, self._execute)

    def storage(self, bucket: str) -> MemoryBucket:
        if bucket not in self._buckets:
            self._buckets[bucket] = MemoryBucket(bucket, self._public_url_base, self.calls)
        return self._buckets[bucket]

    async def close(self) -> None:
        return None

    async def _execute(self, plan: QueryPlan) -> GatewayResponse:
        self.calls.append((plan.table, plan.action))
        rows = self.tables.get(plan.table)
        if rows is None:
            return GatewayResponse(error=GatewayError(f"Unknown table: {plan.table}"))

        if plan.action == "insert":
            error = self._check_parents(plan.table, plan.rows)
            if error is not None:
                return GatewayResponse(error=error)
            affected = [self._insert(plan.table, row) for row in plan.rows]
        elif plan.action == "update":
            error = self._check_parents(plan.table, [plan.values])
            if error is not None:
                return GatewayResponse(error=error)
            affected = [row for row in rows if self._matches(row, plan)]
            for row in affected:
                row.update(plan.values)
        elif plan.action == "delete":
            affected = [row for row in rows if self._matches(row, plan)]
            error = self._check_references(plan.table, affected)
            if error is not None:
                return GatewayResponse(error=error)
            removed = {id(row) for row in affected}
            self.tables[plan.table] = [row for row in rows if id(row) not in removed]
        else:
            affected = [row for row in rows if self._matches(row, plan)]
            if plan.order_by is not None:
                column, descending = plan.order_by
                affected = sorted(
                    affected,
                    key=lambda row: (row.get(column) is not None, row.get(column), row["_seq"]),
                    reverse=descending,
                )

        if plan.action != "select" and not plan.returning:
            return GatewayResponse(data=None)

        data = [self._project(row, plan.columns) for row in affected]
        if plan.single:
            return shape_single(data)
        return GatewayResponse(data=data)

    def _insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        self._sequence += 1
        record = {
            **TABLE_DEFAULTS[table],
            "id": uuid4(),
            "created_at": now,
            "updated_at": now,
            **row,
            "_seq": self._sequence,
        }
        self.tables[table].append(record)
        return record

    @staticmethod
    def _matches(row: dict[str, Any], plan: QueryPlan) -> bool:
        if not all(_same(row.get(column), value) for column, value in plan.filters):
            return False
        if not plan.any_of:
            return True
        return any(
            _ilike(row.get(column), value) if operator == "ilike" else _same(row.get(column), value)
            for column, operator, value in plan.any_of
        )

    def _check_parents(self, table: str, rows: list[dict[str, Any]]) -> GatewayError | None:
        if table not in FOREIGN_KEYS:
            return None
        column, parent = FOREIGN_KEYS[table]
        parent_ids = {str(row["id"]) for row in self.tables[parent]}
        for row in rows:
            if column in row and str(row[column]) not in parent_ids:
                return GatewayError(
                    f'insert or update on table "{table}" violates foreign key constraint on column "{column}"'
                )
        return None

    def _check_references(self, table: str, deleted: list[dict[str, Any]]) -> GatewayError | None:
        for child, (column, parent) in FOREIGN_KEYS.items():
            if parent != table:
                continue
            deleted_ids = {str(row["id"]) for row in deleted}
            if any(str(row.get(column)) in deleted_ids for row in self.tables[child]):
                return GatewayError(
                    f'delete on table "{table}" violates foreign key constraint on table "{child}"'
                )
        return None

    @staticmethod
    def _project(row: dict[str, Any], columns: list[str] | None) -> dict[str, Any]:
        visible = {key: value for key, value in row.items() if not key.startswith("_")}
        if columns is not None:
            visible = {key: visible.get(key) for key in columns}
        return copy.deepcopy(visible)
