"""Small helpers for assembling analysis SQL."""


def quote_ident(name: str) -> str:
    """Quote a PostgreSQL identifier, doubling any embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def qualified_table(schema: str, table: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(table)}"


def where_clause(*conditions: str | None) -> str:
    """Join the non-empty conditions with AND into a WHERE clause ("" if none).

    Caller-supplied predicates are wrapped in parentheses so an OR inside them
    cannot escape an added group filter.
    """
    parts = [f"({c})" for c in conditions if c]
    if not parts:
        return ""
    return "WHERE " + " AND ".join(parts)
