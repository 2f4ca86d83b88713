"""Shared fixtures: a scripted in-memory executor standing in for PostgreSQL."""

from collections.abc import Callable, Sequence
from typing import Any

import pytest

from pgstats.executor import QueryResult

Rows = list[dict[str, Any]] | Callable[[str, list[Any] | None], list[dict[str, Any]]]


class FakeExecutor:
    """Answers queries by the first registered SQL fragment they contain.

    Every ``(sql, params)`` pair is recorded in ``calls``. Register more
    specific fragments before general ones.
    """

    def __init__(self) -> None:
        self.rules: list[tuple[str, Rows | None, Exception | None]] = []
        self.calls: list[tuple[str, list[Any] | None]] = []
        self.columns: dict[str, str] = {}
        self.table_exists = True

    def with_columns(self, **types: str) -> "FakeExecutor":
        """Declare catalog columns as name=data_type."""
        self.columns.update(types)
        return self

    def on(self, fragment: str, rows: Rows | None = None, *, error: Exception | None = None) -> "FakeExecutor":
        self.rules.append((fragment, rows, error))
        return self

    def queries(self, fragment: str = "") -> list[tuple[str, list[Any] | None]]:
        """Recorded non-catalog calls whose SQL contains `fragment`."""
        return [
            (sql, params)
            for sql, params in self.calls
            if "information_schema" not in sql and fragment in sql
        ]

    async def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        params = list(params) if params is not None else None
        self.calls.append((sql, params))

        if "information_schema.columns" in sql:
            column = params[2]
            if column not in self.columns:
                return QueryResult()
            rows = [{"column_name": column, "data_type": self.columns[column]}]
            return QueryResult(rows=rows, row_count=1)
        if "information_schema.tables" in sql:
            rows = [{"?column?": 1}] if self.table_exists else []
            return QueryResult(rows=rows, row_count=len(rows))

        for fragment, rows, error in self.rules:
            if fragment in sql:
                if error is not None:
                    raise error
                data = rows(sql, params) if callable(rows) else list(rows or [])
                return QueryResult(rows=data, row_count=len(data))
        return QueryResult()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def scores(executor: FakeExecutor) -> FakeExecutor:
    """Catalog for a `scores` table with numeric, temporal and text columns."""
    return executor.with_columns(
        value="double precision",
        weight="integer",
        amount="numeric",
        created_at="timestamp with time zone",
        day="date",
        name="text",
        region="text",
    )
