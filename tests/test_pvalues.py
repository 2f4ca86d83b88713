import math

import pytest
from scipy import special, stats

from pgstats.analysis.pvalues import (
    incomplete_beta,
    log_gamma,
    normal_cdf,
    t_distribution_cdf,
    t_test_p_value,
    z_test_p_value,
)


@pytest.mark.parametrize("a,b", [(0.5, 0.5), (1, 1), (2.5, 0.5), (10, 3), (50, 0.5)])
def test_incomplete_beta_endpoints(a, b):
    assert incomplete_beta(a, b, 0) == 0
    assert incomplete_beta(a, b, 1) == 1


@pytest.mark.parametrize("a,b,x", [(0.5, 0.5, 0.3), (2, 3, 0.4), (5, 0.5, 0.9), (12.5, 0.5, 0.7)])
def test_incomplete_beta_matches_scipy(a, b, x):
    assert incomplete_beta(a, b, x) == pytest.approx(special.betainc(a, b, x), abs=1e-8)


@pytest.mark.parametrize("x", [0.5, 1, 3.7, 10, 42])
def test_log_gamma_matches_math(x):
    assert log_gamma(x) == pytest.approx(math.lgamma(x), abs=1e-9)


@pytest.mark.parametrize("df", [1, 2, 5, 29, 100])
def test_t_p_value_is_one_at_zero(df):
    assert t_test_p_value(0, df) == pytest.approx(1.0)


@pytest.mark.parametrize("t,df", [(2.357, 49), (-1.2, 7), (0.3, 3), (4.5, 120)])
def test_t_p_value_matches_scipy(t, df):
    expected = 2 * stats.t.sf(abs(t), df)
    assert t_test_p_value(t, df) == pytest.approx(expected, abs=1e-7)


def test_t_cdf_is_monotonic():
    values = [t_distribution_cdf(t, 10) for t in (-3, -1, 0, 1, 3)]
    assert values == sorted(values)
    assert t_distribution_cdf(0, 10) == pytest.approx(0.5)


@pytest.mark.parametrize("z", [0.0, 0.5, 1.96, 2.58, 4.0])
def test_z_p_value_is_symmetric(z):
    assert z_test_p_value(z) == pytest.approx(z_test_p_value(-z))


@pytest.mark.parametrize("z", [-2.5, -1, 0.25, 1.96, 3.1])
def test_normal_cdf_within_approximation_error(z):
    assert normal_cdf(z) == pytest.approx(stats.norm.cdf(z), abs=2e-7)


def test_z_p_value_at_196_is_about_five_percent():
    assert z_test_p_value(1.96) == pytest.approx(0.05, abs=1e-3)
