from pgstats.config import settings

DEFAULT_LIMIT: int = settings.analysis.default_limit
DEFAULT_BUCKETS: int = settings.analysis.default_buckets
DEFAULT_SAMPLE_SIZE: int = settings.analysis.default_sample_size
DEFAULT_PERCENTAGE: float = settings.analysis.default_sample_percentage
DEFAULT_GROUP_LIMIT: int = settings.analysis.default_group_limit
SMALL_SAMPLE_THRESHOLD: int = settings.analysis.small_sample_threshold

DEFAULT_PERCENTILES: tuple[float, ...] = (0.25, 0.5, 0.75)

# Added to the histogram upper bound so the maximum lands in the last bin
HISTOGRAM_EPSILON = 0.0001

VALID_INTERVALS = ("second", "minute", "hour", "day", "week", "month", "year")
DEFAULT_INTERVAL = "day"

INTERVAL_SHORTHANDS: dict[str, str] = {
    "daily": "day",
    "hourly": "hour",
    "weekly": "week",
    "monthly": "month",
    "yearly": "year",
    "minutely": "minute",
}

AGGREGATIONS = ("sum", "avg", "min", "max", "count")
DEFAULT_AGGREGATION = "avg"

SAMPLING_METHODS = ("random", "bernoulli", "system")
DEFAULT_SAMPLING_METHOD = "random"

NUMERIC_TYPES = frozenset(
    {
        "integer",
        "bigint",
        "smallint",
        "numeric",
        "decimal",
        "real",
        "double precision",
        "money",
    }
)

TEMPORAL_TYPES = frozenset(
    {
        "timestamp without time zone",
        "timestamp with time zone",
        "date",
        "time",
        "time without time zone",
        "time with time zone",
    }
)
