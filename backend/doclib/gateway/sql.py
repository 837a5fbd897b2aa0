"""SQL backend gateway: SQLAlchemy async tables, S3 blob storage, password auth."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import Table, Uuid, delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from doclib.config import Settings
from doclib.db.models import Document, Subject
from doclib.db.session import create_engine_from_settings, create_session_factory
from doclib.errors import BackendUnavailable, GatewayError
from doclib.gateway.auth import SqlAuthClient
from doclib.gateway.protocols import GatewayResponse, StorageBucket
from doclib.gateway.query import Query, QueryPlan, shape_single
from doclib.gateway.s3 import S3Bucket

logger = logging.getLogger(__name__)

TABLES: dict[str, Table] = {
    "subjects": Subject.__table__,
    "documents": Document.__table__,
}


def _coerce(table: Table, column: str, value: Any) -> Any:
    """Parse string ids for UUID columns; the non-native Uuid type only binds UUID objects."""
    if isinstance(value, str) and isinstance(_column(table, column).type, Uuid):
        try:
            return UUID(value)
        except ValueError:
            raise GatewayError(f"Invalid UUID for column {column}: {value!r}") from None
    return value


def _column(table: Table, name: str):
    if name not in table.c:
        raise GatewayError(f"Unknown column {name!r} on table {table.name!r}")
    return table.c[name]


class SqlGateway:
    """
    Backend gateway over a SQL database.

    Each ``execute()`` runs in its own session and commits on success, so a
    query builder maps to exactly one transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        auth: SqlAuthClient,
        buckets: dict[str, StorageBucket],
        engine: AsyncEngine | None = None,
    ):
        self._session_factory = session_factory
        self._buckets = buckets
        self._engine = engine
        self.auth = auth

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlGateway":
        """Build engine, S3 bucket and auth client from application settings."""
        engine = create_engine_from_settings(settings)
        session_factory = create_session_factory(engine)
        return cls(
            session_factory,
            auth=SqlAuthClient(session_factory, settings),
            buckets={settings.storage_bucket: S3Bucket.from_settings(settings)},
            engine=engine,
        )

    def table(self, name: str) -> Query:
        return Query(name, self._execute)

    def storage(self, bucket: str) -> StorageBucket:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise GatewayError(f"Storage bucket not configured: {bucket}") from None

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def _execute(self, plan: QueryPlan) -> GatewayResponse:
        table = TABLES.get(plan.table)
        if table is None:
            return GatewayResponse(error=GatewayError(f"Unknown table: {plan.table}"))

        try:
            async with self._session_factory() as db:
                rows = await self._run(db, table, plan)
                await db.commit()
        except GatewayError as e:
            return GatewayResponse(error=e)
        except IntegrityError as e:
            logger.warning("Rejected %s on %s: %s", plan.action, plan.table, e.orig)
            return GatewayResponse(error=GatewayError(str(e.orig)))
        except (SQLAlchemyError, OSError) as e:
            logger.error("Database %s on %s failed: %s", plan.action, plan.table, str(e), exc_info=True)
            return GatewayResponse(error=BackendUnavailable(f"Database request failed: {e}"))

        if rows is None:
            return GatewayResponse(data=None)
        if plan.single:
            return shape_single(rows)
        return GatewayResponse(data=rows)

    async def _run(self, db: AsyncSession, table: Table, plan: QueryPlan) -> list[dict[str, Any]] | None:
        columns = [_column(table, name) for name in plan.columns] if plan.columns else list(table.c)
        conditions = [_column(table, name) == _coerce(table, name, value) for name, value in plan.filters]
        if plan.any_of:
            conditions.append(
                or_(
                    *(
                        _column(table, name).ilike(value)
                        if operator == "ilike"
                        else _column(table, name) == _coerce(table, name, value)
                        for name, operator, value in plan.any_of
                    )
                )
            )

        if plan.action == "select":
            query = select(*columns).where(*conditions)
            if plan.order_by is not None:
                name, descending = plan.order_by
                column = _column(table, name)
                query = query.order_by(column.desc() if descending else column.asc())
            result = await db.execute(query)
            return [dict(row) for row in result.mappings()]

        if plan.action == "insert":
            inserted: list[dict[str, Any]] = []
            for row in plan.rows:
                values = {name: _coerce(table, name, value) for name, value in row.items()}
                statement = insert(table).values(**values)
                if plan.returning:
                    result = await db.execute(statement.returning(*columns))
                    inserted.extend(dict(r) for r in result.mappings())
                else:
                    await db.execute(statement)
            return inserted if plan.returning else None

        if plan.action == "update":
            values = {name: _coerce(table, name, value) for name, value in plan.values.items()}
            statement = update(table).where(*conditions).values(**values)
        else:
            statement = delete(table).where(*conditions)

        if plan.returning:
            result = await db.execute(statement.returning(*columns))
            return [dict(row) for row in result.mappings()]
        await db.execute(statement)
        return None
