"""Descriptive statistics, percentiles, correlation and linear regression.

All four push the arithmetic into PostgreSQL aggregates and only reshape the
single (or per-group) row that comes back.
"""

from typing import Any

from pgstats.analysis import register, run_query
from pgstats.analysis.catalog import validate_numeric_column
from pgstats.analysis.models import (
    AnalysisError,
    CorrelationGroup,
    CorrelationResult,
    DescriptiveGroup,
    DescriptiveResult,
    DescriptiveStatistics,
    PercentilesGroup,
    PercentilesResult,
    RegressionGroup,
    RegressionResult,
    RegressionStats,
)
from pgstats.analysis.requests import normalize_request, percentile_key
from pgstats.analysis.shaping import round6, to_float, to_float6, to_int, to_plain
from pgstats.executor import QueryExecutor
from pgstats.sql import qualified_table, quote_ident, where_clause


def _map_statistics(row: dict[str, Any]) -> DescriptiveStatistics:
    return DescriptiveStatistics(
        count=to_int(row["count"]),
        min=to_float(row["min"]),
        max=to_float(row["max"]),
        avg=to_float6(row["avg"]),
        stddev=to_float6(row["stddev"]),
        variance=to_float6(row["variance"]),
        sum=to_float6(row["sum"]),
        mode=to_float(row.get("mode")),
    )


@register("descriptive")
async def descriptive_statistics(
    params: dict, executor: QueryExecutor
) -> DescriptiveResult | AnalysisError:
    req = normalize_request("descriptive", params)
    await validate_numeric_column(executor, req.table, req.column, req.schema_name)

    col = quote_ident(req.column)
    source = qualified_table(req.schema_name, req.table)
    where = where_clause(req.where)
    aggregates = f"""
        COUNT({col}) AS count,
        MIN({col}) AS min,
        MAX({col}) AS max,
        AVG({col})::numeric AS avg,
        STDDEV({col})::numeric AS stddev,
        VARIANCE({col})::numeric AS variance,
        SUM({col})::numeric AS sum,
        MODE() WITHIN GROUP (ORDER BY {col}) AS mode
    """

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
            DescriptiveGroup(group_key=to_plain(row["group_key"]), statistics=_map_statistics(row))
            for row in result.rows
        ]
        return DescriptiveResult(
            table=req.display_table,
            column=req.column,
            group_by=req.group_by,
            groups=groups,
            count=len(groups),
        )

    sql = f"""
        SELECT {aggregates}
        FROM {source}
        {where}
    """
    result = await run_query(executor, sql, req.where_params)
    if not result.rows:
        return AnalysisError(error="No stats found")
    return DescriptiveResult(
        table=req.display_table,
        column=req.column,
        statistics=_map_statistics(result.rows[0]),
    )


@register("percentiles")
async def percentiles(params: dict, executor: QueryExecutor) -> PercentilesResult:
    req = normalize_request("percentiles", params)
    await validate_numeric_column(executor, req.table, req.column, req.schema_name)

    col = quote_ident(req.column)
    source = qualified_table(req.schema_name, req.table)
    where = where_clause(req.where)
    keys = [percentile_key(p) for p in req.percentiles]
    selects = ",\n".join(
        f"PERCENTILE_CONT({float(p)}) WITHIN GROUP (ORDER BY {col}) AS {key}"
        for p, key in zip(req.percentiles, keys)
    )

    def map_percentiles(row: dict[str, Any]) -> dict[str, float | None]:
        return {key: round6(to_float(row.get(key))) for key in keys}

    extra: dict[str, Any] = {}
    if req.scale_warning:
        extra["warning"] = req.scale_warning

    if req.group_by is not None:
        group = quote_ident(req.group_by)
        sql = f"""
            SELECT {group} AS group_key,
                {selects}
            FROM {source}
            {where}
            GROUP BY {group}
            ORDER BY {group}
        """
        result = await run_query(executor, sql, req.where_params)
        groups = [
            PercentilesGroup(group_key=to_plain(row["group_key"]), percentiles=map_percentiles(row))
            for row in result.rows
        ]
        return PercentilesResult(
            table=req.display_table,
            column=req.column,
            group_by=req.group_by,
            groups=groups,
            count=len(groups),
            **extra,
        )

    sql = f"""
        SELECT
            {selects}
        FROM {source}
        {where}
    """
    result = await run_query(executor, sql, req.where_params)
    row = result.rows[0] if result.rows else {}
    return PercentilesResult(
        table=req.display_table,
        column=req.column,
        percentiles=map_percentiles(row),
        **extra,
    )


def interpret_correlation(corr: float | None) -> str:
    if corr is None:
        return "N/A"
    magnitude = abs(corr)
    if magnitude >= 0.9:
        interpretation = "Very strong"
    elif magnitude >= 0.7:
        interpretation = "Strong"
    elif magnitude >= 0.5:
        interpretation = "Moderate"
    elif magnitude >= 0.3:
        interpretation = "Weak"
    else:
        interpretation = "Very weak or no correlation"
    return interpretation + (" (negative)" if corr < 0 else " (positive)")


def _map_correlation(row: dict[str, Any]) -> dict[str, Any]:
    corr = to_float6(row["correlation"])
    return {
        "correlation": corr,
        "interpretation": interpret_correlation(corr),
        "covariance_population": to_float6(row["covariance_pop"]),
        "covariance_sample": to_float6(row["covariance_sample"]),
        "sample_size": to_int(row["sample_size"]),
    }


@register("correlation")
async def correlation(params: dict, executor: QueryExecutor) -> CorrelationResult | AnalysisError:
    req = normalize_request("correlation", params)
    for column in (req.column1, req.column2):
        await validate_numeric_column(
            executor, req.table, column, req.schema_name, purpose="correlation analysis"
        )

    c1, c2 = quote_ident(req.column1), quote_ident(req.column2)
    source = qualified_table(req.schema_name, req.table)
    where = where_clause(req.where)
    aggregates = f"""
        CORR({c1}, {c2})::numeric AS correlation,
        COVAR_POP({c1}, {c2})::numeric AS covariance_pop,
        COVAR_SAMP({c1}, {c2})::numeric AS covariance_sample,
        COUNT(*) AS sample_size
    """
    columns = [req.column1, req.column2]

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
            CorrelationGroup(group_key=to_plain(row["group_key"]), **_map_correlation(row))
            for row in result.rows
        ]
        return CorrelationResult(
            table=req.display_table,
            columns=columns,
            group_by=req.group_by,
            groups=groups,
            count=len(groups),
        )

    sql = f"""
        SELECT {aggregates}
        FROM {source}
        {where}
    """
    result = await run_query(executor, sql, req.where_params)
    if not result.rows:
        return AnalysisError(error="No correlation data found")

    extra: dict[str, Any] = {}
    if req.column1 == req.column2:
        extra["note"] = "Self-correlation always equals 1.0"
    return CorrelationResult(
        table=req.display_table,
        columns=columns,
        **_map_correlation(result.rows[0]),
        **extra,
    )


def regression_equation(slope: float | None, intercept: float | None) -> str:
    """'y = 2.0000x - 5.0000'; the sign of the intercept is written out."""
    if slope is None or intercept is None:
        return "N/A"
    sign = "+" if intercept >= 0 else "-"
    return f"y = {slope:.4f}x {sign} {abs(intercept):.4f}"


def _map_regression(row: dict[str, Any]) -> RegressionStats:
    slope = to_float6(row["slope"])
    intercept = to_float6(row["intercept"])
    extra: dict[str, Any] = {}
    for key in ("sum_squares_x", "sum_squares_y", "sum_products"):
        if key in row:
            extra[key] = to_float6(row[key])
    return RegressionStats(
        slope=slope,
        intercept=intercept,
        r_squared=to_float6(row["r_squared"]),
        equation=regression_equation(slope, intercept),
        avg_x=to_float6(row["avg_x"]),
        avg_y=to_float6(row["avg_y"]),
        sample_size=to_int(row["sample_size"]),
        **extra,
    )


@register("regression")
async def regression(params: dict, executor: QueryExecutor) -> RegressionResult | AnalysisError:
    req = normalize_request("regression", params)
    for column in (req.x_column, req.y_column):
        await validate_numeric_column(
            executor, req.table, column, req.schema_name, purpose="regression analysis"
        )

    x, y = quote_ident(req.x_column), quote_ident(req.y_column)
    source = qualified_table(req.schema_name, req.table)
    where = where_clause(req.where)
    aggregates = f"""
        REGR_SLOPE({y}, {x})::numeric AS slope,
        REGR_INTERCEPT({y}, {x})::numeric AS intercept,
        REGR_R2({y}, {x})::numeric AS r_squared,
        REGR_AVGX({y}, {x})::numeric AS avg_x,
        REGR_AVGY({y}, {x})::numeric AS avg_y,
        REGR_COUNT({y}, {x}) AS sample_size
    """

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
            RegressionGroup(group_key=to_plain(row["group_key"]), regression=_map_regression(row))
            for row in result.rows
        ]
        return RegressionResult(
            table=req.display_table,
            x_column=req.x_column,
            y_column=req.y_column,
            group_by=req.group_by,
            groups=groups,
            count=len(groups),
        )

    sql = f"""
        SELECT {aggregates},
            REGR_SXX({y}, {x})::numeric AS sum_squares_x,
            REGR_SYY({y}, {x})::numeric AS sum_squares_y,
            REGR_SXY({y}, {x})::numeric AS sum_products
        FROM {source}
        {where}
    """
    result = await run_query(executor, sql, req.where_params)
    if not result.rows:
        return AnalysisError(error="No regression data found")

    extra: dict[str, Any] = {}
    if req.x_column == req.y_column:
        extra["note"] = "Self-regression always returns slope=1, r²=1"
    return RegressionResult(
        table=req.display_table,
        x_column=req.x_column,
        y_column=req.y_column,
        regression=_map_regression(result.rows[0]),
        **extra,
    )
