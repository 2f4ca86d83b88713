import importlib
import logging
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import BaseModel

from pgstats.errors import ValidationError, rewrite_executor_error
from pgstats.executor import QueryExecutor, QueryResult

log = logging.getLogger(__name__)

_REGISTRY: dict[str, Callable] = {}

# Analysis modules, imported at the bottom so their @register calls run
_MODULES = [
    "pgstats.analysis.basic",
    "pgstats.analysis.advanced",
]


def register(name: str):
    """Decorator to register an analysis function."""

    def decorator(fn):
        _REGISTRY[name] = fn
        return fn

    return decorator


def available_analyses() -> list[str]:
    return sorted(_REGISTRY)


async def run_query(
    executor: QueryExecutor, sql: str, params: Sequence[Any] | None = None
) -> QueryResult:
    """Execute an analytical query, rephrasing known unfriendly data source errors."""
    try:
        return await executor.execute(sql, list(params) if params else None)
    except Exception as exc:
        friendly = rewrite_executor_error(exc)
        if friendly is None:
            raise
        raise friendly from exc


async def run_analysis(
    analysis_type: str, params: dict, executor: QueryExecutor | None = None
) -> BaseModel:
    """Dispatch to the registered analysis function."""
    fn = _REGISTRY.get(analysis_type)
    if not fn:
        raise ValidationError(
            f"Unknown analysis type: {analysis_type}. "
            f"Available: {', '.join(sorted(_REGISTRY))}"
        )
    if executor is None:
        from pgstats import db

        executor = db.get_executor()
    log.info("Running analysis: %s with params %s", analysis_type, params)
    return await fn(params, executor)


# Auto-import modules to trigger @register decorators
for _mod in _MODULES:
    importlib.import_module(_mod)
