"""The query executor contract consumed by the analysis handlers."""

from collections.abc import Sequence
from typing import Any, Protocol

from pydantic import BaseModel


class QueryResult(BaseModel):
    rows: list[dict[str, Any]] = []
    row_count: int = 0


class QueryExecutor(Protocol):
    async def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Run one statement with positional `%s` parameters and return its rows."""
        ...
