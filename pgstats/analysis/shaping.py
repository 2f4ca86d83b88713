"""Result shaping: numeric coercion, grouping and truncation metadata.

The driver hands back NUMERIC aggregates as Decimal and some casts as text,
so every value that leaves a handler as a number passes through here.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any


def to_number(value: Any) -> int | float | None:
    """Coerce a driver value to int/float. None stays None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        # bigint counts arrive as Decimal with no fractional digits
        if value.is_finite() and value.as_tuple().exponent >= 0:
            return int(value)
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return float(text)
    raise TypeError(f"Cannot convert {type(value).__name__} to a number")


def to_float(value: Any) -> float | None:
    number = to_number(value)
    return None if number is None else float(number)


def to_int(value: Any) -> int:
    """Counts: None (no rows) becomes 0."""
    number = to_number(value)
    return 0 if number is None else int(number)


def round6(value: float | None) -> float | None:
    if value is None:
        return None
    return round(value, 6)


def to_float6(value: Any) -> float | None:
    """Aggregates come back as unbounded NUMERIC; six decimals are kept."""
    return round6(to_float(value))


def to_plain(value: Any) -> Any:
    """Decimals become numbers; other values are left for JSON serialization."""
    return to_number(value) if isinstance(value, Decimal) else value


def coerce_row(row: dict[str, Any]) -> dict[str, Any]:
    return {k: to_plain(v) for k, v in row.items()}


def partition_rows(
    rows: Iterable[dict[str, Any]], key: str = "group_key"
) -> dict[Any, list[dict[str, Any]]]:
    """Split rows by `key`, keeping groups in first-occurrence order."""
    groups: dict[Any, list[dict[str, Any]]] = {}
    for row in rows:
        groups.setdefault(row[key], []).append(row)
    return groups


def truncation_metadata(returned: int, total: int) -> dict[str, Any]:
    return {"truncated": returned < total, "total_count": total}


def limit_groups(keys: list[Any], group_limit: int) -> tuple[list[Any], dict[str, Any]]:
    """Keep the first `group_limit` keys (0 = all) and describe any cut."""
    if group_limit == 0 or len(keys) <= group_limit:
        return keys, {}
    return keys[:group_limit], {"truncated": True, "total_group_count": len(keys)}
