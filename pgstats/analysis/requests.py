"""Request normalization: alias resolution, canonical values, frozen request models.

Callers are loose about argument names (``tableName``, ``col``, ``x``,
``sigma``...). Every synonym is listed in ``ALIASES`` so the accepted set can
be audited in one place; ``normalize_request`` folds them into the canonical
field names before the pydantic models validate the values.
"""

import logging
import math
import re
from collections.abc import Mapping
from typing import Any, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from pgstats.analysis.constants import (
    AGGREGATIONS,
    DEFAULT_AGGREGATION,
    DEFAULT_BUCKETS,
    DEFAULT_INTERVAL,
    DEFAULT_PERCENTILES,
    DEFAULT_SAMPLING_METHOD,
    INTERVAL_SHORTHANDS,
    SAMPLING_METHODS,
    VALID_INTERVALS,
)
from pgstats.config import settings
from pgstats.errors import ValidationError

log = logging.getLogger(__name__)

# alias -> canonical field. Within a kind, the first alias present wins, and an
# alias never overrides a canonical field the caller already set.
COMMON_ALIASES: dict[str, str] = {
    "tableName": "table",
    "table_name": "table",
    "schema": "schema_name",
    "schemaName": "schema_name",
    "filter": "where",
    "params": "where_params",
    "groupBy": "group_by",
}

ALIASES: dict[str, dict[str, str]] = {
    "descriptive": {"col": "column"},
    "percentiles": {"col": "column"},
    "correlation": {
        "x": "column1",
        "col1": "column1",
        "y": "column2",
        "col2": "column2",
    },
    "regression": {
        "xColumn": "x_column",
        "x": "x_column",
        "column1": "x_column",
        "yColumn": "y_column",
        "y": "y_column",
        "column2": "y_column",
    },
    "time_series": {
        "valueColumn": "value_column",
        "column": "value_column",
        "value": "value_column",
        "timeColumn": "time_column",
        "time": "time_column",
        "bucket": "interval",
        "groupLimit": "group_limit",
    },
    "distribution": {
        "col": "column",
        "groupLimit": "group_limit",
    },
    "hypothesis": {
        "col": "column",
        "testType": "test_type",
        "hypothesizedMean": "hypothesized_mean",
        "mean": "hypothesized_mean",
        "expected": "hypothesized_mean",
        "populationStdDev": "population_std_dev",
        "sigma": "population_std_dev",
    },
    "sampling": {
        "columns": "select",
        "sampleSize": "sample_size",
    },
}

_INTERVAL_PHRASE = re.compile(r"^\d+\s*(\w+?)s?$")
_T_TEST = re.compile(r"^t[-_]?test$")
_Z_TEST = re.compile(r"^z[-_]?test$")


def aliases_for(kind: str) -> dict[str, str]:
    return {**COMMON_ALIASES, **ALIASES.get(kind, {})}


def resolve_aliases(kind: str, raw: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of `raw` with every synonym folded into its canonical key."""
    data = {k: v for k, v in raw.items() if v is not None}
    for alias, canonical in aliases_for(kind).items():
        if alias not in data:
            continue
        value = data.pop(alias)
        if canonical not in data:
            data[canonical] = value
    return data


def split_schema_table(table: str, schema: str | None = None) -> tuple[str, str]:
    """Split ``schema.table``; an embedded schema beats the explicit one."""
    if "." in table:
        parts = table.split(".")
        if len(parts) == 2 and parts[0] and parts[1]:
            return parts[0], parts[1]
    return schema or settings.db.schema_, table


def canonicalize_interval(value: str | None) -> str:
    """'1 day', 'days', 'DAY', 'daily' -> 'day'. Defaults to 'day'."""
    if value is None:
        return DEFAULT_INTERVAL
    interval = str(value).lower().strip()
    interval = INTERVAL_SHORTHANDS.get(interval, interval)

    match = _INTERVAL_PHRASE.match(interval)
    if match:
        interval = match.group(1)

    if interval.endswith("s") and interval[:-1] in VALID_INTERVALS:
        interval = interval[:-1]

    if interval not in VALID_INTERVALS:
        raise ValidationError(
            f"Invalid interval '{value}'. Valid intervals: {', '.join(VALID_INTERVALS)}",
            {"field": "interval", "value": value},
        )
    return interval


def canonicalize_test_type(value: str | None, population_std_dev: Any = None) -> str:
    """'t', 'ttest', 't-test', 'T_TEST' -> 't_test' (likewise for z).

    Without an explicit value a known population stddev selects the z-test.
    """
    if value is None:
        return "z_test" if population_std_dev is not None else "t_test"
    normalized = str(value).lower().strip()
    if normalized == "t" or _T_TEST.match(normalized):
        return "t_test"
    if normalized == "z" or _Z_TEST.match(normalized):
        return "z_test"
    raise ValidationError(
        f"Invalid testType '{value}'. Use t_test or z_test (shorthand: t, z, ttest, ztest)",
        {"field": "test_type", "value": value},
    )


def percentile_key(p: float) -> str:
    """0.25 -> 'p25'. Halves round up."""
    return f"p{math.floor(p * 100 + 0.5)}"


def normalize_percentiles(values: Any) -> tuple[Any, str | None]:
    """Bring percentiles to the 0-1 scale. Returns (percentiles, scale warning)."""
    if values is None:
        return DEFAULT_PERCENTILES, None
    values = list(values)
    if not values:
        return DEFAULT_PERCENTILES, None

    numbers = [p for p in values if isinstance(p, (int, float)) and not isinstance(p, bool)]
    in_unit_range = any(0 < p <= 1 for p in numbers)
    over_one = any(p > 1 for p in numbers)
    over_hundred = any(p > 100 for p in numbers)

    warning = None
    if in_unit_range and over_one and not over_hundred:
        warning = (
            "Mixed percentile scales detected: some values appear to be in 0-1 format while "
            "others are in 0-100 format. When max > 1, all values are treated as 0-100 scale. "
            "For example, [0.1, 50] produces p0 and p50, not p10 and p50. "
            "Use consistent scale (all 0-1 or all 0-100) for expected results."
        )

    # Values over 100 are left alone and rejected by range validation
    if over_one and not over_hundred:
        values = [p / 100 if p in numbers else p for p in values]
    return tuple(values), warning


class AnalysisRequest(BaseModel):
    """Fields shared by every analysis request. Immutable once normalized."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    table: str = Field(min_length=1)
    schema_name: str = Field(default_factory=lambda: settings.db.schema_, min_length=1)
    where: str | None = None
    where_params: tuple[Any, ...] = ()
    group_by: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _split_table(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("table"), str) and "." in data["table"]:
            schema, table = split_schema_table(data["table"], data.get("schema_name"))
            data = {**data, "table": table, "schema_name": schema}
        return data

    @property
    def display_table(self) -> str:
        return f"{self.schema_name}.{self.table}"


class DescriptiveRequest(AnalysisRequest):
    column: str


class PercentilesRequest(AnalysisRequest):
    column: str
    percentiles: tuple[float, ...] = DEFAULT_PERCENTILES
    scale_warning: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_scale(cls, data: Any) -> Any:
        if isinstance(data, dict):
            percentiles, warning = normalize_percentiles(data.get("percentiles"))
            data = {**data, "percentiles": percentiles}
            if warning:
                data["scale_warning"] = warning
        return data

    @field_validator("percentiles")
    @classmethod
    def _check_range(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if any(p < 0 or p > 1 for p in value):
            raise ValueError("All percentiles must be between 0 and 1")

        # Each result key holds one percentile; exact repeats collapse
        seen: dict[str, float] = {}
        for p in value:
            key = percentile_key(p)
            if key in seen and seen[key] != p:
                raise ValueError(
                    f"Percentiles {seen[key]:g} and {p:g} both map to {key}; "
                    "request values at least 0.01 apart"
                )
            seen.setdefault(key, p)
        return tuple(seen.values())


class CorrelationRequest(AnalysisRequest):
    column1: str
    column2: str


class RegressionRequest(AnalysisRequest):
    x_column: str
    y_column: str


class TimeSeriesRequest(AnalysisRequest):
    value_column: str
    time_column: str
    interval: str = DEFAULT_INTERVAL
    aggregation: str = DEFAULT_AGGREGATION
    limit: int | None = Field(default=None, ge=0)
    group_limit: int | None = Field(default=None, ge=0)

    @field_validator("interval", mode="before")
    @classmethod
    def _canonical_interval(cls, value: Any) -> str:
        return canonicalize_interval(value)

    @field_validator("aggregation", mode="before")
    @classmethod
    def _canonical_aggregation(cls, value: Any) -> str:
        agg = str(value).lower().strip()
        if agg not in AGGREGATIONS:
            raise ValueError(f"aggregation must be one of: {', '.join(AGGREGATIONS)}")
        return agg


class DistributionRequest(AnalysisRequest):
    column: str
    buckets: int = Field(default=DEFAULT_BUCKETS, gt=0)
    group_limit: int | None = Field(default=None, ge=0)


class HypothesisRequest(AnalysisRequest):
    column: str
    test_type: Literal["t_test", "z_test"]
    hypothesized_mean: float = 0.0
    population_std_dev: float | None = Field(default=None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _canonical_test_type(cls, data: Any) -> Any:
        if isinstance(data, dict):
            test_type = canonicalize_test_type(data.get("test_type"), data.get("population_std_dev"))
            data = {**data, "test_type": test_type}
        return data


class SamplingRequest(AnalysisRequest):
    method: Literal["random", "bernoulli", "system"] = DEFAULT_SAMPLING_METHOD
    sample_size: int | None = Field(default=None, gt=0)
    percentage: float | None = Field(default=None, ge=0, le=100)
    select: tuple[str, ...] = ()

    @field_validator("method", mode="before")
    @classmethod
    def _lower_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            method = value.lower().strip()
            if method not in SAMPLING_METHODS:
                raise ValueError(f"method must be one of: {', '.join(SAMPLING_METHODS)}")
            return method
        return value


REQUEST_MODELS: dict[str, type[AnalysisRequest]] = {
    "descriptive": DescriptiveRequest,
    "percentiles": PercentilesRequest,
    "correlation": CorrelationRequest,
    "regression": RegressionRequest,
    "time_series": TimeSeriesRequest,
    "distribution": DistributionRequest,
    "hypothesis": HypothesisRequest,
    "sampling": SamplingRequest,
}


def _required_message(kind: str, field: str) -> str:
    wire = "table" if field == "table" else to_camel(field)
    synonyms = [a for a, c in aliases_for(kind).items() if c == field and a != wire]
    if synonyms:
        listed = ", ".join(f"'{a}'" for a in synonyms)
        return f"{wire} (or alias {listed}) is required"
    return f"{wire} is required"


def _describe_errors(kind: str, exc: pydantic.ValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else ""
        if error["type"] == "missing":
            messages.append(_required_message(kind, field))
        else:
            msg = error["msg"].removeprefix("Value error, ")
            messages.append(f"{to_camel(field)}: {msg}" if field else msg)
    return "; ".join(messages)


def normalize_request(kind: str, raw: Mapping[str, Any]) -> AnalysisRequest:
    """Turn a loosely shaped request into the canonical, frozen model for `kind`."""
    model = REQUEST_MODELS.get(kind)
    if model is None:
        raise ValidationError(f"Unknown analysis type: {kind}", {"kind": kind})
    if not isinstance(raw, Mapping):
        raise ValidationError("Analysis parameters must be an object", {"kind": kind})

    data = resolve_aliases(kind, raw)
    log.debug("Normalized %s request fields: %s", kind, sorted(data))
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(_describe_errors(kind, exc), {"kind": kind}) from exc
