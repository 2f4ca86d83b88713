"""Catalog lookups that guard every analysis before its first real query."""

import logging
from typing import Literal

from pydantic import BaseModel

from pgstats.analysis.constants import NUMERIC_TYPES, TEMPORAL_TYPES
from pgstats.errors import ColumnNotFoundError, TableNotFoundError, TypeMismatchError
from pgstats.executor import QueryExecutor

log = logging.getLogger(__name__)

_COLUMN_TYPE_SQL = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = %s
      AND table_name = %s
      AND column_name = %s
"""

_TABLE_EXISTS_SQL = """
    SELECT 1
    FROM information_schema.tables
    WHERE table_schema = %s AND table_name = %s
"""


class ColumnTypeFact(BaseModel):
    column_name: str
    data_type: str
    category: Literal["numeric", "temporal", "other"]


def categorize(data_type: str) -> Literal["numeric", "temporal", "other"]:
    if data_type in NUMERIC_TYPES:
        return "numeric"
    if data_type in TEMPORAL_TYPES:
        return "temporal"
    return "other"


async def fetch_column_type(
    executor: QueryExecutor, table: str, column: str, schema: str
) -> ColumnTypeFact | None:
    result = await executor.execute(_COLUMN_TYPE_SQL, [schema, table, column])
    if not result.rows:
        return None
    data_type = str(result.rows[0]["data_type"])
    return ColumnTypeFact(column_name=column, data_type=data_type, category=categorize(data_type))


async def validate_table_exists(executor: QueryExecutor, table: str, schema: str) -> None:
    result = await executor.execute(_TABLE_EXISTS_SQL, [schema, table])
    if not result.rows:
        raise TableNotFoundError(schema, table)


async def _require_column(
    executor: QueryExecutor, table: str, column: str, schema: str
) -> ColumnTypeFact:
    fact = await fetch_column_type(executor, table, column, schema)
    if fact is None:
        # Distinguish a missing table from a missing column
        await validate_table_exists(executor, table, schema)
        raise ColumnNotFoundError(schema, table, column)
    return fact


async def validate_numeric_column(
    executor: QueryExecutor,
    table: str,
    column: str,
    schema: str,
    purpose: str = "statistical analysis",
) -> ColumnTypeFact:
    """Raise unless `schema.table.column` exists and has a numeric type."""
    fact = await _require_column(executor, table, column, schema)
    if fact.category != "numeric":
        raise TypeMismatchError(column, fact.data_type, "a numeric type", purpose)
    log.debug("Validated numeric column %s.%s.%s (%s)", schema, table, column, fact.data_type)
    return fact


async def validate_temporal_column(
    executor: QueryExecutor,
    table: str,
    column: str,
    schema: str,
    purpose: str = "time series analysis",
) -> ColumnTypeFact:
    """Raise unless `schema.table.column` exists and is a date, time or timestamp."""
    fact = await _require_column(executor, table, column, schema)
    if fact.category != "temporal":
        raise TypeMismatchError(column, fact.data_type, "a timestamp or date type", purpose)
    log.debug("Validated temporal column %s.%s.%s (%s)", schema, table, column, fact.data_type)
    return fact
