"""Result models. Python attributes are snake_case; payloads are camelCase."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def to_payload(result: BaseModel) -> dict[str, Any]:
    """JSON-ready camelCase dict. Optional fields that were never set are left out."""
    return result.model_dump(mode="json", by_alias=True, exclude_unset=True)


class AnalysisError(ResultModel):
    """An analysis that ran but had nothing to compute on."""

    error: str
    sample_size: int | None = None


# ── descriptive / percentiles ──


class DescriptiveStatistics(ResultModel):
    count: int
    min: float | None
    max: float | None
    avg: float | None
    stddev: float | None
    variance: float | None
    sum: float | None
    mode: float | None


class DescriptiveGroup(ResultModel):
    group_key: Any
    statistics: DescriptiveStatistics


class DescriptiveResult(ResultModel):
    table: str
    column: str
    statistics: DescriptiveStatistics | None = None
    group_by: str | None = None
    groups: list[DescriptiveGroup] | None = None
    count: int | None = None


class PercentilesGroup(ResultModel):
    group_key: Any
    percentiles: dict[str, float | None]


class PercentilesResult(ResultModel):
    table: str
    column: str
    percentiles: dict[str, float | None] | None = None
    group_by: str | None = None
    groups: list[PercentilesGroup] | None = None
    count: int | None = None
    warning: str | None = None


# ── correlation / regression ──


class CorrelationGroup(ResultModel):
    group_key: Any
    correlation: float | None
    interpretation: str
    covariance_population: float | None
    covariance_sample: float | None
    sample_size: int


class CorrelationResult(ResultModel):
    table: str
    columns: list[str]
    correlation: float | None = None
    interpretation: str | None = None
    covariance_population: float | None = None
    covariance_sample: float | None = None
    sample_size: int | None = None
    group_by: str | None = None
    groups: list[CorrelationGroup] | None = None
    count: int | None = None
    note: str | None = None


class RegressionStats(ResultModel):
    slope: float | None
    intercept: float | None
    r_squared: float | None
    equation: str
    avg_x: float | None
    avg_y: float | None
    sample_size: int
    sum_squares_x: float | None = None
    sum_squares_y: float | None = None
    sum_products: float | None = None


class RegressionGroup(ResultModel):
    group_key: Any
    regression: RegressionStats


class RegressionResult(ResultModel):
    table: str
    x_column: str
    y_column: str
    regression: RegressionStats | None = None
    group_by: str | None = None
    groups: list[RegressionGroup] | None = None
    count: int | None = None
    note: str | None = None


# ── time series ──


class TimeBucket(ResultModel):
    time_bucket: Any  # datetime, date or time, depending on the column
    value: float | None
    count: int


class TimeSeriesGroup(ResultModel):
    group_key: Any
    buckets: list[TimeBucket]


class TimeSeriesResult(ResultModel):
    table: str
    value_column: str
    time_column: str
    interval: str
    aggregation: str
    buckets: list[TimeBucket] | None = None
    group_by: str | None = None
    groups: list[TimeSeriesGroup] | None = None
    count: int | None = None
    truncated: bool | None = None
    total_count: int | None = None
    total_group_count: int | None = None


# ── distribution ──


class MomentSummary(ResultModel):
    min_val: float | None
    max_val: float | None
    skewness: float | None
    kurtosis: float | None


class HistogramBin(ResultModel):
    bucket: int
    frequency: int
    range_min: float
    range_max: float


class ValueRange(ResultModel):
    min: float
    max: float


class DistributionGroup(ResultModel):
    group_key: Any
    range: ValueRange
    bucket_width: float
    skewness: float | None
    kurtosis: float | None
    histogram: list[HistogramBin]


class DistributionResult(ResultModel):
    table: str
    column: str
    range: ValueRange | None = None
    bucket_width: float | None = None
    skewness: float | None = None
    kurtosis: float | None = None
    histogram: list[HistogramBin] | None = None
    group_by: str | None = None
    groups: list[DistributionGroup] | None = None
    count: int | None = None
    truncated: bool | None = None
    total_group_count: int | None = None


# ── hypothesis test ──


class HypothesisResult(ResultModel):
    sample_size: int
    sample_mean: float
    sample_std_dev: float
    population_std_dev: float | None
    standard_error: float
    test_statistic: float
    p_value: float
    degrees_of_freedom: int | None
    interpretation: str
    note: str


class HypothesisGroup(ResultModel):
    group_key: Any
    results: HypothesisResult | AnalysisError


class HypothesisTestResult(ResultModel):
    table: str
    column: str
    test_type: str
    hypothesized_mean: float
    results: HypothesisResult | None = None
    group_by: str | None = None
    groups: list[HypothesisGroup] | None = None
    count: int | None = None


# ── sampling ──


class SamplingResult(ResultModel):
    table: str
    method: str
    sample_size: int
    rows: list[dict[str, Any]]
    note: str | None = None
