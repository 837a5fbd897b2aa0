"""Chainable query builder shared by the gateway implementations."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from doclib.errors import GatewayError
from doclib.gateway.protocols import GatewayResponse

Action = Literal["select", "insert", "update", "delete"]

# Operators accepted inside or_() conditions
OR_OPERATORS = ("eq", "ilike")


@dataclass
class QueryPlan:
    """Everything a gateway needs to run one table query."""

    table: str
    action: Action | None = None
    columns: list[str] | None = None  # None means every column
    rows: list[dict[str, Any]] = field(default_factory=list)
    values: dict[str, Any] = field(default_factory=dict)
    filters: list[tuple[str, Any]] = field(default_factory=list)
    any_of: list[tuple[str, str, Any]] = field(default_factory=list)
    order_by: tuple[str, bool] | None = None  # (column, descending)
    returning: bool = False
    single: bool = False


def parse_columns(columns: str) -> list[str] | None:
    """Turn a ``select()`` column list ("*" or "a, b") into names."""
    names = [name.strip() for name in columns.split(",") if name.strip()]
    if not names or names == ["*"]:
        return None
    return names


class Query:
    """
    Builder returned by ``gateway.table(name)``.

    ``select()`` starts a read; called after ``insert()``/``update()``/``delete()``
    it asks for the affected rows back instead. ``execute()`` hands the
    collected ``QueryPlan`` to the gateway's runner.
    """

    def __init__(self, table: str, runner: Callable[[QueryPlan], Awaitable[GatewayResponse]]):
        self.plan = QueryPlan(table=table)
        self._runner = runner

    def select(self, columns: str = "*") -> "Query":
        if self.plan.action is None:
            self.plan.action = "select"
        else:
            self.plan.returning = True
        self.plan.columns = parse_columns(columns)
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> "Query":
        self.plan.action = "insert"
        self.plan.rows = [rows] if isinstance(rows, dict) else list(rows)
        return self

    def update(self, values: dict[str, Any]) -> "Query":
        self.plan.action = "update"
        self.plan.values = dict(values)
        return self

    def delete(self) -> "Query":
        self.plan.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "Query":
        self.plan.filters.append((column, value))
        return self

    def order(self, column: str, *, desc: bool = False) -> "Query":
        self.plan.order_by = (column, desc)
        return self

    def or_(self, *conditions: tuple[str, str, Any]) -> "Query":
        """Match rows satisfying any of ``(column, operator, value)``; operators: eq, ilike."""
        for _column, operator, _value in conditions:
            if operator not in OR_OPERATORS:
                raise ValueError(f"Unsupported operator in or_(): {operator}")
        self.plan.any_of.extend(conditions)
        return self

    def single(self) -> "Query":
        self.plan.single = True
        return self

    async def execute(self) -> GatewayResponse:
        if self.plan.action is None:
            self.plan.action = "select"
        return await self._runner(self.plan)


def shape_single(rows: list[dict[str, Any]]) -> GatewayResponse:
    """Collapse a result for ``single()``: no row gives ``data=None``, several is an error."""
    if not rows:
        return GatewayResponse(data=None)
    if len(rows) > 1:
        return GatewayResponse(error=GatewayError(f"Expected a single row, got {len(rows)}"))
    return GatewayResponse(data=rows[0])
