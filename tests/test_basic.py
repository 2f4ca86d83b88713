from decimal import Decimal

import pytest

from pgstats.analysis.basic import (
    correlation,
    descriptive_statistics,
    interpret_correlation,
    percentile_key,
    percentiles,
    regression,
    regression_equation,
)
from pgstats.analysis.models import AnalysisError, to_payload
from pgstats.errors import ColumnNotFoundError, TypeMismatchError, ValidationError

STATS_ROW = {
    "count": 4,
    "min": 1.0,
    "max": 10.0,
    "avg": Decimal("4.500000"),
    "stddev": Decimal("3.872983"),
    "variance": Decimal("15.000000"),
    "sum": Decimal("18.000000"),
    "mode": 1.0,
}


class TestDescriptive:
    @pytest.mark.asyncio
    async def test_ungrouped(self, scores):
        scores.on("MODE() WITHIN GROUP", [STATS_ROW])
        result = await descriptive_statistics({"table": "scores", "column": "value"}, scores)

        assert result.table == "public.scores"
        assert result.statistics.avg == 4.5
        assert result.statistics.count == 4
        payload = to_payload(result)
        assert payload == {
            "table": "public.scores",
            "column": "value",
            "statistics": {
                "count": 4,
                "min": 1.0,
                "max": 10.0,
                "avg": 4.5,
                "stddev": 3.872983,
                "variance": 15.0,
                "sum": 18.0,
                "mode": 1.0,
            },
        }

    @pytest.mark.asyncio
    async def test_grouped_orders_by_group_and_passes_params(self, scores):
        scores.on(
            "GROUP BY",
            [
                {**STATS_ROW, "group_key": "east"},
                {**STATS_ROW, "group_key": "west", "count": 2},
            ],
        )
        result = await descriptive_statistics(
            {"table": "scores", "column": "value", "groupBy": "region", "where": "weight > %s", "params": [5]},
            scores,
        )

        assert result.count == 2
        assert [g.group_key for g in result.groups] == ["east", "west"]
        assert to_payload(result)["groupBy"] == "region"
        sql, params = scores.queries()[0]
        assert 'ORDER BY "region"' in sql
        assert "WHERE (weight > %s)" in sql
        assert params == [5]

    @pytest.mark.asyncio
    async def test_no_row(self, scores):
        result = await descriptive_statistics({"table": "scores", "column": "value"}, scores)
        assert isinstance(result, AnalysisError)
        assert result.error == "No stats found"

    @pytest.mark.asyncio
    async def test_missing_column_runs_no_analysis(self, scores):
        with pytest.raises(ColumnNotFoundError, match="missing"):
            await descriptive_statistics({"table": "scores", "column": "missing"}, scores)
        assert scores.queries() == []

    @pytest.mark.asyncio
    async def test_text_column_rejected(self, scores):
        with pytest.raises(TypeMismatchError):
            await descriptive_statistics({"table": "scores", "column": "name"}, scores)

    @pytest.mark.asyncio
    async def test_large_aggregates_are_not_capped(self, scores):
        row = {**STATS_ROW, "sum": Decimal("123456789012345678.123456789"), "avg": Decimal("4.50000049")}
        scores.on("MODE() WITHIN GROUP", [row])
        result = await descriptive_statistics({"table": "scores", "column": "value"}, scores)

        assert result.statistics.sum == pytest.approx(1.2345678901234568e17)
        assert result.statistics.avg == 4.5
        sql, _ = scores.queries()[0]
        assert 'SUM("value")::numeric AS sum' in sql
        assert "numeric(" not in sql


class TestPercentiles:
    def test_keys(self):
        assert [percentile_key(p) for p in (0.25, 0.5, 0.75, 0.995, 0.001)] == ["p25", "p50", "p75", "p100", "p0"]

    @pytest.mark.asyncio
    async def test_defaults_and_rounding(self, scores):
        scores.on("PERCENTILE_CONT", [{"p25": 1.12345678, "p50": Decimal("2"), "p75": None}])
        result = await percentiles({"table": "scores", "column": "value"}, scores)

        assert result.percentiles == {"p25": 1.123457, "p50": 2.0, "p75": None}
        assert "warning" not in to_payload(result)
        sql, _ = scores.queries()[0]
        assert "PERCENTILE_CONT(0.25)" in sql

    @pytest.mark.asyncio
    async def test_hundred_scale_with_warning(self, scores):
        scores.on("PERCENTILE_CONT", [{"p10": 1, "p50": 5}])
        result = await percentiles({"table": "scores", "column": "value", "percentiles": [0.1, 50]}, scores)
        assert set(result.percentiles) == {"p0", "p50"}
        assert "Mixed percentile scales" in to_payload(result)["warning"]

    @pytest.mark.asyncio
    async def test_colliding_keys_rejected_before_querying(self, scores):
        with pytest.raises(ValidationError, match="both map to p25"):
            await percentiles({"table": "scores", "column": "value", "percentiles": [0.25, 0.251]}, scores)
        assert scores.queries() == []

    @pytest.mark.asyncio
    async def test_grouped(self, scores):
        scores.on(
            "GROUP BY",
            [
                {"group_key": 1, "p25": 1, "p50": 2, "p75": 3},
                {"group_key": 2, "p25": 4, "p50": 5, "p75": 6},
            ],
        )
        result = await percentiles({"table": "scores", "column": "value", "groupBy": "weight"}, scores)
        assert result.count == 2
        assert result.groups[1].percentiles["p50"] == 5


class TestCorrelation:
    @pytest.mark.parametrize(
        "corr,expected",
        [
            (0.95, "Very strong (positive)"),
            (-0.75, "Strong (negative)"),
            (0.5, "Moderate (positive)"),
            (-0.3, "Weak (negative)"),
            (0.1, "Very weak or no correlation (positive)"),
            (None, "N/A"),
        ],
    )
    def test_interpretation(self, corr, expected):
        assert interpret_correlation(corr) == expected

    @pytest.mark.asyncio
    async def test_ungrouped(self, scores):
        scores.on(
            "CORR(",
            [{"correlation": Decimal("0.812345"), "covariance_pop": 2.5, "covariance_sample": 3.0, "sample_size": 40}],
        )
        result = await correlation({"table": "scores", "x": "value", "y": "weight"}, scores)
        payload = to_payload(result)
        assert payload["columns"] == ["value", "weight"]
        assert payload["correlation"] == 0.812345
        assert payload["interpretation"] == "Strong (positive)"
        assert payload["covariancePopulation"] == 2.5
        assert payload["sampleSize"] == 40
        assert "note" not in payload

    @pytest.mark.asyncio
    async def test_self_correlation_note(self, scores):
        scores.on("CORR(", [{"correlation": 1, "covariance_pop": 1, "covariance_sample": 1, "sample_size": 3}])
        result = await correlation({"table": "scores", "column1": "value", "column2": "value"}, scores)
        assert result.note == "Self-correlation always equals 1.0"

    @pytest.mark.asyncio
    async def test_second_column_validated(self, scores):
        with pytest.raises(TypeMismatchError, match="correlation analysis"):
            await correlation({"table": "scores", "column1": "value", "column2": "region"}, scores)

    @pytest.mark.asyncio
    async def test_grouped(self, scores):
        scores.on(
            "GROUP BY",
            [{"group_key": "a", "correlation": None, "covariance_pop": None, "covariance_sample": None, "sample_size": 1}],
        )
        result = await correlation({"table": "scores", "col1": "value", "col2": "weight", "groupBy": "region"}, scores)
        assert result.groups[0].interpretation == "N/A"
        assert result.count == 1

    @pytest.mark.asyncio
    async def test_no_row(self, scores):
        result = await correlation({"table": "scores", "column1": "value", "column2": "weight"}, scores)
        assert result == AnalysisError(error="No correlation data found")


class TestRegression:
    def test_equation(self):
        assert regression_equation(2, -5) == "y = 2.0000x - 5.0000"
        assert regression_equation(0.5, 1.25) == "y = 0.5000x + 1.2500"
        assert regression_equation(None, 1) == "N/A"

    @pytest.mark.asyncio
    async def test_ungrouped_includes_sums_of_squares(self, scores):
        scores.on(
            "REGR_SLOPE",
            [
                {
                    "slope": Decimal("2.000000"),
                    "intercept": Decimal("-5.000000"),
                    "r_squared": Decimal("0.980000"),
                    "avg_x": 10,
                    "avg_y": 15,
                    "sample_size": 20,
                    "sum_squares_x": 100,
                    "sum_squares_y": 410,
                    "sum_products": 200,
                }
            ],
        )
        result = await regression({"table": "scores", "xColumn": "weight", "yColumn": "value"}, scores)
        payload = to_payload(result)
        assert payload["xColumn"] == "weight"
        assert payload["regression"]["equation"] == "y = 2.0000x - 5.0000"
        assert payload["regression"]["rSquared"] == 0.98
        assert payload["regression"]["sumSquaresX"] == 100.0
        sql, _ = scores.queries()[0]
        assert 'REGR_SLOPE("value", "weight")' in sql

    @pytest.mark.asyncio
    async def test_grouped_omits_sums_of_squares(self, scores):
        scores.on(
            "GROUP BY",
            [{"group_key": "a", "slope": 1, "intercept": 0, "r_squared": 1, "avg_x": 1, "avg_y": 1, "sample_size": 2}],
        )
        result = await regression({"table": "scores", "x": "weight", "y": "value", "groupBy": "region"}, scores)
        payload = to_payload(result)
        assert "sumSquaresX" not in payload["groups"][0]["regression"]
        assert "REGR_SXX" not in scores.queries()[0][0]

    @pytest.mark.asyncio
    async def test_self_regression_note(self, scores):
        scores.on(
            "REGR_SLOPE",
            [{"slope": 1, "intercept": 0, "r_squared": 1, "avg_x": 1, "avg_y": 1, "sample_size": 2}],
        )
        result = await regression({"table": "scores", "x": "value", "y": "value"}, scores)
        assert result.note == "Self-regression always returns slope=1, r²=1"

    @pytest.mark.asyncio
    async def test_no_row(self, scores):
        result = await regression({"table": "scores", "x": "weight", "y": "value"}, scores)
        assert result.error == "No regression data found"
