"""Error types raised by the analysis engine.

Validation and lookup failures are raised before any analytical query runs.
Insufficient-data outcomes are not errors; handlers return them inline.
"""

import logging
import re
from typing import Any

log = logging.getLogger(__name__)


class StatsError(Exception):
    """Base class for all engine errors."""

    code = "STATS_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(StatsError):
    """The request is malformed or incomplete."""

    code = "VALIDATION_ERROR"


class NotFoundError(StatsError):
    code = "NOT_FOUND"


class TableNotFoundError(NotFoundError):
    def __init__(self, schema: str, table: str) -> None:
        super().__init__(
            f'Table "{schema}.{table}" not found',
            {"schema": schema, "table": table},
        )


class ColumnNotFoundError(NotFoundError):
    def __init__(self, schema: str, table: str, column: str) -> None:
        super().__init__(
            f'Column "{column}" not found in table "{schema}.{table}"',
            {"schema": schema, "table": table, "column": column},
        )


class TypeMismatchError(StatsError):
    """The column exists but has the wrong class of type for the analysis."""

    code = "TYPE_MISMATCH"

    def __init__(self, column: str, data_type: str, expected: str, purpose: str) -> None:
        super().__init__(
            f'Column "{column}" is type "{data_type}" but must be {expected} for {purpose}',
            {"column": column, "data_type": data_type, "expected": expected},
        )


class ExecutorError(StatsError):
    """A data source failure rephrased into something a caller can act on."""

    code = "QUERY_ERROR"


# (pattern, message template) pairs applied to data source error messages.
# Templates are formatted with the pattern's groups.
FRIENDLY_MESSAGES: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"cannot call (\w+) on (?:an? )?(array|scalar|object)", re.IGNORECASE),
        "{0} cannot be applied to {1} values; check the column's JSON shape",
    ),
    (
        re.compile(r'column "([^"]+)" does not exist', re.IGNORECASE),
        'Column "{0}" does not exist; check the where and groupBy arguments',
    ),
    (
        re.compile(r"function (\w+)\(.*\) does not exist", re.IGNORECASE),
        "Function {0} does not accept the column types in this request",
    ),
    (
        re.compile(r'syntax error at or near "([^"]*)"', re.IGNORECASE),
        'Syntax error near "{0}" in the where clause',
    ),
]


def rewrite_executor_error(exc: Exception) -> ExecutorError | None:
    """Return a friendlier ExecutorError for known messages, or None."""
    text = str(exc)
    for pattern, template in FRIENDLY_MESSAGES:
        match = pattern.search(text)
        if match:
            log.warning("Rewriting data source error: %s", text)
            return ExecutorError(template.format(*match.groups()), {"original": text})
    return None
