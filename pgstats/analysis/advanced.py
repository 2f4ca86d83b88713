"""Time series, distribution, hypothesis testing and sampling."""

import logging
import math
from typing import Any

from pgstats.analysis import register, run_query
from pgstats.analysis.catalog import (
    validate_numeric_column,
    validate_table_exists,
    validate_temporal_column,
)
from pgstats.analysis.constants import (
    DEFAULT_GROUP_LIMIT,
    DEFAULT_LIMIT,
    DEFAULT_PERCENTAGE,
    DEFAULT_SAMPLE_SIZE,
    HISTOGRAM_EPSILON,
    SMALL_SAMPLE_THRESHOLD,
)
from pgstats.analysis.models import (
    AnalysisError,
    DistributionGroup,
    DistributionResult,
    HistogramBin,
    HypothesisGroup,
    HypothesisResult,
    HypothesisTestResult,
    MomentSummary,
    SamplingResult,
    TimeBucket,
    TimeSeriesGroup,
    TimeSeriesResult,
    ValueRange,
)
from pgstats.analysis.pvalues import t_test_p_value, z_test_p_value
from pgstats.analysis.requests import HypothesisRequest, normalize_request
from pgstats.analysis.shaping import (
    coerce_row,
    limit_groups,
    partition_rows,
    round6,
    to_float,
    to_float6,
    to_int,
    to_plain,
    truncation_metadata,
)
from pgstats.executor import QueryExecutor
from pgstats.sql import qualified_table, quote_ident, where_clause

log = logging.getLogger(__name__)


# ── time series ──


def _map_bucket(row: dict[str, Any]) -> TimeBucket:
    return TimeBucket(
        time_bucket=row["time_bucket"],
        value=to_float6(row["value"]),
        count=to_int(row["count"]),
    )


@register("time_series")
async def time_series(params: dict, executor: QueryExecutor) -> TimeSeriesResult:
    req = normalize_request("time_series", params)
    await validate_temporal_column(executor, req.table, req.time_column, req.schema_name)
    await validate_numeric_column(
        executor, req.table, req.value_column, req.schema_name, purpose="time series aggregation"
    )

    # None -> default cap, 0 -> no cap
    using_default_limit = req.limit is None
    effective_limit = DEFAULT_LIMIT if req.limit is None else (req.limit or None)

    source = qualified_table(req.schema_name, req.table)
    where = where_clause(req.where)
    bucket_expr = f"DATE_TRUNC('{req.interval}', {quote_ident(req.time_column)})"
    value_expr = f"{req.aggregation.upper()}({quote_ident(req.value_column)})::numeric"

    if req.group_by is not None:
        group = quote_ident(req.group_by)
        sql = f"""
            SELECT
                {group} AS group_key,
                {bucket_expr} AS time_bucket,
                {value_expr} AS value,
                COUNT(*) AS count
            FROM {source}
            {where}
            GROUP BY {group}, {bucket_expr}
            ORDER BY {group}, time_bucket DESC
        """
        result = await run_query(executor, sql, req.where_params)
        partitions = partition_rows(result.rows)

        group_limit = DEFAULT_GROUP_LIMIT if req.group_limit is None else req.group_limit
        keys, group_meta = limit_groups(list(partitions), group_limit)
        groups = [
            TimeSeriesGroup(
                group_key=to_plain(key),
                buckets=[_map_bucket(row) for row in partitions[key][:effective_limit]],
            )
            for key in keys
        ]
        return TimeSeriesResult(
            table=req.display_table,
            value_column=req.value_column,
            time_column=req.time_column,
            interval=req.interval,
            aggregation=req.aggregation,
            group_by=req.group_by,
            groups=groups,
            count=len(groups),
            **group_meta,
        )

    limit_sql = f"LIMIT {effective_limit}" if effective_limit is not None else ""
    sql = f"""
        SELECT
            {bucket_expr} AS time_bucket,
            {value_expr} AS value,
            COUNT(*) AS count
        FROM {source}
        {where}
        GROUP BY {bucket_expr}
        ORDER BY time_bucket DESC
        {limit_sql}
    """
    result = await run_query(executor, sql, req.where_params)
    buckets = [_map_bucket(row) for row in result.rows]

    meta: dict[str, Any] = {}
    if using_default_limit:
        total = len(buckets)
        if len(buckets) == effective_limit:
            count_sql = f"""
                SELECT COUNT(DISTINCT {bucket_expr}) AS total_buckets
                FROM {source}
                {where}
            """
            count_result = await run_query(executor, count_sql, req.where_params)
            if count_result.rows:
                total = to_int(count_result.rows[0]["total_buckets"])
        meta = truncation_metadata(len(buckets), total)

    return TimeSeriesResult(
        table=req.display_table,
        value_column=req.value_column,
        time_column=req.time_column,
        interval=req.interval,
        aggregation=req.aggregation,
        buckets=buckets,
        **meta,
    )


# ── distribution ──


async def _compute_moments(
    executor: QueryExecutor,
    source: str,
    col: str,
    where: str,
    params: list[Any],
) -> MomentSummary | None:
    """Range, skewness and excess kurtosis, or None when there are no values."""
    # Filters apply inside `filtered` only; the join sees nothing but CTE columns
    sql = f"""
        WITH filtered AS (
            SELECT {col} AS v
            FROM {source}
            {where}
        ),
        stats AS (
            SELECT
                MIN(v) AS min_val,
                MAX(v) AS max_val,
                AVG(v) AS mean,
                STDDEV_POP(v) AS stddev,
                COUNT(v) AS n
            FROM filtered
        )
        SELECT
            s.min_val,
            s.max_val,
            CASE WHEN s.stddev > 0 AND s.n > 2 THEN
                (SUM(POWER((f.v - s.mean) / s.stddev, 3)) / s.n)::numeric
            ELSE NULL END AS skewness,
            CASE WHEN s.stddev > 0 AND s.n > 3 THEN
                ((SUM(POWER((f.v - s.mean) / s.stddev, 4)) / s.n) - 3)::numeric
            ELSE NULL END AS kurtosis
        FROM filtered f CROSS JOIN stats s
        GROUP BY s.min_val, s.max_val, s.mean, s.stddev, s.n
    """
    result = await run_query(executor, sql, params)
    row = result.rows[0] if result.rows else None
    if row is None or row["min_val"] is None or row["max_val"] is None:
        return None
    return MomentSummary(
        min_val=to_float(row["min_val"]),
        max_val=to_float(row["max_val"]),
        skewness=to_float6(row["skewness"]),
        kurtosis=to_float6(row["kurtosis"]),
    )


async def _histogram(
    executor: QueryExecutor,
    source: str,
    col: str,
    where: str,
    params: list[Any],
    min_val: float,
    max_val: float,
    buckets: int,
) -> list[HistogramBin]:
    upper = float(max_val + HISTOGRAM_EPSILON)
    bucket_expr = f"WIDTH_BUCKET({col}, {float(min_val)!r}, {upper!r}, {buckets})"
    sql = f"""
        SELECT
            {bucket_expr} AS bucket,
            COUNT(*) AS frequency,
            MIN({col}) AS bucket_min,
            MAX({col}) AS bucket_max
        FROM {source}
        {where}
        GROUP BY 1
        ORDER BY 1
    """
    result = await run_query(executor, sql, params)
    return [
        HistogramBin(
            bucket=to_int(row["bucket"]),
            frequency=to_int(row["frequency"]),
            range_min=to_float(row["bucket_min"]),
            range_max=to_float(row["bucket_max"]),
        )
        for row in result.rows
    ]


def bucket_width(min_val: float, max_val: float, buckets: int) -> float:
    return round6((max_val - min_val) / buckets)


@register("distribution")
async def distribution(params: dict, executor: QueryExecutor) -> DistributionResult | AnalysisError:
    req = normalize_request("distribution", params)
    await validate_numeric_column(executor, req.table, req.column, req.schema_name)

    col = quote_ident(req.column)
    source = qualified_table(req.schema_name, req.table)
    not_null = f"{col} IS NOT NULL"
    where_params = list(req.where_params)

    if req.group_by is not None:
        group = quote_ident(req.group_by)
        keys_sql = f"""
            SELECT DISTINCT {group} AS group_key
            FROM {source}
            {where_clause(req.where)}
            ORDER BY 1
        """
        keys_result = await run_query(executor, keys_sql, where_params)
        group_limit = DEFAULT_GROUP_LIMIT if req.group_limit is None else req.group_limit
        keys, group_meta = limit_groups([row["group_key"] for row in keys_result.rows], group_limit)

        group_filter = f"{group} IS NOT DISTINCT FROM %s"
        groups: list[DistributionGroup] = []
        for key in keys:
            group_params = [*where_params, key]
            moments = await _compute_moments(
                executor, source, col, where_clause(req.where, group_filter), group_params
            )
            if moments is None:
                log.debug("Skipping group %r: no values in %s", key, req.column)
                continue
            histogram = await _histogram(
                executor,
                source,
                col,
                where_clause(req.where, group_filter, not_null),
                group_params,
                moments.min_val,
                moments.max_val,
                req.buckets,
            )
            groups.append(
                DistributionGroup(
                    group_key=to_plain(key),
                    range=ValueRange(min=moments.min_val, max=moments.max_val),
                    bucket_width=bucket_width(moments.min_val, moments.max_val, req.buckets),
                    skewness=moments.skewness,
                    kurtosis=moments.kurtosis,
                    histogram=histogram,
                )
            )

        return DistributionResult(
            table=req.display_table,
            column=req.column,
            group_by=req.group_by,
            groups=groups,
            count=len(groups),
            **group_meta,
        )

    moments = await _compute_moments(executor, source, col, where_clause(req.where), where_params)
    if moments is None:
        return AnalysisError(error="No data or all nulls in column")

    histogram = await _histogram(
        executor,
        source,
        col,
        where_clause(req.where, not_null),
        where_params,
        moments.min_val,
        moments.max_val,
        req.buckets,
    )
    return DistributionResult(
        table=req.display_table,
        column=req.column,
        range=ValueRange(min=moments.min_val, max=moments.max_val),
        bucket_width=bucket_width(moments.min_val, moments.max_val, req.buckets),
        skewness=moments.skewness,
        kurtosis=moments.kurtosis,
        histogram=histogram,
    )


# ── hypothesis test ──

# (upper bound, interpretation); the first bound the p-value is under wins
SIGNIFICANCE_BANDS: list[tuple[float, str]] = [
    (0.001, "Highly significant (p < 0.001): Strong evidence against the null hypothesis"),
    (0.01, "Very significant (p < 0.01): Strong evidence against the null hypothesis"),
    (0.05, "Significant (p < 0.05): Evidence against the null hypothesis at α=0.05 level"),
    (0.1, "Marginally significant (p < 0.1): Weak evidence against the null hypothesis"),
]
NOT_SIGNIFICANT = "Not significant (p ≥ 0.1): Insufficient evidence to reject the null hypothesis"

DEFAULT_NOTE = "Two-tailed p-value calculated using numerical approximation"
Z_TEST_FALLBACK_NOTE = "No populationStdDev provided; using sample stddev (less accurate for z-test)"


def interpret_p_value(p_value: float) -> str:
    for bound, interpretation in SIGNIFICANCE_BANDS:
        if p_value < bound:
            return interpretation
    return NOT_SIGNIFICANT


def compute_test(
    req: HypothesisRequest,
    n: int,
    sample_mean: float | None,
    sample_std_dev: float | None,
) -> HypothesisResult | AnalysisError:
    """One-sample t- or z-test from summary statistics."""
    if (
        n < 2
        or sample_mean is None
        or sample_std_dev is None
        or math.isnan(sample_std_dev)
        or sample_std_dev == 0
    ):
        return AnalysisError(error="Insufficient data or zero variance", sample_size=n)

    stddev_note = None
    if req.test_type == "z_test" and req.population_std_dev is not None:
        stddev_used = req.population_std_dev
    else:
        stddev_used = sample_std_dev
        if req.test_type == "z_test":
            stddev_note = Z_TEST_FALLBACK_NOTE

    standard_error = stddev_used / math.sqrt(n)
    test_statistic = (sample_mean - req.hypothesized_mean) / standard_error
    degrees_of_freedom = n - 1

    if req.test_type == "z_test":
        p_value = z_test_p_value(test_statistic)
    else:
        p_value = t_test_p_value(test_statistic, degrees_of_freedom)
    p_value = round(p_value, 6)

    note = stddev_note or DEFAULT_NOTE
    if n < SMALL_SAMPLE_THRESHOLD:
        note = f"Small sample size (n={n}): results may be less reliable. {note}"

    return HypothesisResult(
        sample_size=n,
        sample_mean=sample_mean,
        sample_std_dev=sample_std_dev,
        population_std_dev=req.population_std_dev if req.test_type == "z_test" else None,
        standard_error=standard_error,
        test_statistic=test_statistic,
        p_value=p_value,
        degrees_of_freedom=degrees_of_freedom if req.test_type == "t_test" else None,
        interpretation=interpret_p_value(p_value),
        note=note,
    )


def _test_from_row(req: HypothesisRequest, row: dict[str, Any]) -> HypothesisResult | AnalysisError:
    return compute_test(req, to_int(row["n"]), to_float6(row["mean"]), to_float6(row["stddev"]))


@register("hypothesis")
async def hypothesis_test(params: dict, executor: QueryExecutor) -> HypothesisTestResult | AnalysisError:
    req = normalize_request("hypothesis", params)
    await validate_numeric_column(executor, req.table, req.column, req.schema_name)

    col = quote_ident(req.column)
    source = qualified_table(req.schema_name, req.table)
    where = where_clause(req.where)
    aggregates = f"""
        COUNT({col}) AS n,
        AVG({col})::numeric AS mean,
        STDDEV_SAMP({col})::numeric AS stddev
    """
    header = {
        "table": req.display_table,
        "column": req.column,
        "test_type": req.test_type,
        "hypothesized_mean": req.hypothesized_mean,
    }

    if req.group_by is not None:
        group = quote_ident(req.group_by)
        sql = f"""
            SELECT {group} AS group_key, {aggregates}
            FROM {source}
            {where}
            GROUP BY {group}
            ORDER BY {group}
        """
        result = await run_query(executor, sql, req.where_params)
        groups = [
            HypothesisGroup(group_key=to_plain(row["group_key"]), results=_test_from_row(req, row))
            for row in result.rows
        ]
        return HypothesisTestResult(**header, group_by=req.group_by, groups=groups, count=len(groups))

    sql = f"""
        SELECT {aggregates}
        FROM {source}
        {where}
    """
    result = await run_query(executor, sql, req.where_params)
    if not result.rows:
        return AnalysisError(error="No data found")

    outcome = _test_from_row(req, result.rows[0])
    if isinstance(outcome, AnalysisError):
        return outcome
    return HypothesisTestResult(**header, results=outcome)


# ── sampling ──


@register("sampling")
async def sampling(params: dict, executor: QueryExecutor) -> SamplingResult:
    req = normalize_request("sampling", params)
    await validate_table_exists(executor, req.table, req.schema_name)

    source = qualified_table(req.schema_name, req.table)
    columns = ", ".join(quote_ident(c) for c in req.select) if req.select else "*"
    where = where_clause(req.where)
    method = req.method.upper()
    note: str | None = None

    # TABLESAMPLE is percentage based, so an exact row count needs ORDER BY RANDOM()
    if req.sample_size is not None:
        sql = f"""
            SELECT {columns}
            FROM {source}
            {where}
            ORDER BY RANDOM()
            LIMIT {req.sample_size}
        """
        if req.percentage is not None:
            note = (
                f"sampleSize ({req.sample_size}) takes precedence over percentage ({req.percentage:g}%). "
                "Using ORDER BY RANDOM() LIMIT for exact row count."
            )
        elif req.method != "random":
            note = (
                f"Using ORDER BY RANDOM() LIMIT for exact {req.sample_size} row count. "
                f"TABLESAMPLE {method} is percentage-based and cannot guarantee exact counts."
            )
    elif req.method == "random":
        sql = f"""
            SELECT {columns}
            FROM {source}
            {where}
            ORDER BY RANDOM()
            LIMIT {DEFAULT_SAMPLE_SIZE}
        """
        if req.percentage is not None:
            note = (
                f"percentage ({req.percentage:g}%) is ignored for random method. "
                "Use method:'bernoulli' or method:'system' for percentage-based sampling, "
                "or use sampleSize for exact row count."
            )
    else:
        pct = DEFAULT_PERCENTAGE if req.percentage is None else req.percentage
        sql = f"""
            SELECT {columns}
            FROM {source}
            TABLESAMPLE {method} ({float(pct)!r})
            {where}
        """
        note = (
            f"TABLESAMPLE {method}({pct:g}%) returns approximately {pct:g}% of rows. "
            "Actual count varies based on table size and sampling algorithm."
        )

    result = await run_query(executor, sql, req.where_params)
    rows = [coerce_row(row) for row in result.rows]

    if req.sample_size is not None and len(rows) < req.sample_size:
        shortfall = f"Requested {req.sample_size} rows but only {len(rows)} available."
        note = f"{note} {shortfall}" if note else shortfall

    extra: dict[str, Any] = {}
    if note is not None:
        extra["note"] = note
    return SamplingResult(
        table=req.display_table,
        method=req.method,
        sample_size=len(rows),
        rows=rows,
        **extra,
    )
