"""P-value calculation for one-sample t- and z-tests.

The t-distribution CDF is derived from the regularized incomplete beta
function, evaluated with Lentz's continued fraction. The normal CDF uses the
Abramowitz & Stegun 7.1.26 approximation of the error function (|error| < 1.5e-7).
"""

import math

# Lanczos coefficients (g = 5, n = 6)
_LANCZOS = (
    76.18009172947146,
    -86.50532032941677,
    24.01409824083091,
    -1.231739572450155,
    0.1208650973866179e-2,
    -0.5395239384953e-5,
)
_LANCZOS_SERIES_START = 1.000000000190015
_SQRT_2PI = 2.5066282746310005

_MAX_ITERATIONS = 200
_EPSILON = 1e-14
_TINY = 1e-30

# Abramowitz & Stegun 7.1.26
_ERF_P = 0.3275911
_ERF_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)


def log_gamma(x: float) -> float:
    """ln Γ(x) for x > 0 (Lanczos approximation)."""
    tmp = x + 5.5
    tmp -= (x + 0.5) * math.log(tmp)
    ser = _LANCZOS_SERIES_START
    y = x
    for c in _LANCZOS:
        y += 1
        ser += c / y
    return -tmp + math.log(_SQRT_2PI * ser / x)


def incomplete_beta(a: float, b: float, x: float) -> float:
    """Regularized incomplete beta function I_x(a, b)."""
    if x <= 0:
        return 0.0
    if x >= 1:
        return 1.0

    # The continued fraction converges fastest below this point
    if x > (a + 1) / (a + b + 2):
        return 1.0 - incomplete_beta(b, a, 1 - x)

    ln_beta = log_gamma(a) + log_gamma(b) - log_gamma(a + b)
    front = math.exp(math.log(x) * a + math.log(1 - x) * b - ln_beta - math.log(a))

    c = 1.0
    d = 1 - (a + b) * x / (a + 1)
    if abs(d) < _TINY:
        d = _TINY
    d = 1 / d
    h = d

    for m in range(1, _MAX_ITERATIONS + 1):
        m2 = 2 * m

        # even step
        aa = m * (b - m) * x / ((a + m2 - 1) * (a + m2))
        d = 1 + aa * d
        if abs(d) < _TINY:
            d = _TINY
        c = 1 + aa / c
        if abs(c) < _TINY:
            c = _TINY
        d = 1 / d
        h *= d * c

        # odd step
        aa = -(a + m) * (a + b + m) * x / ((a + m2) * (a + m2 + 1))
        d = 1 + aa * d
        if abs(d) < _TINY:
            d = _TINY
        c = 1 + aa / c
        if abs(c) < _TINY:
            c = _TINY
        d = 1 / d
        delta = d * c
        h *= delta

        if abs(delta - 1) < _EPSILON:
            break

    return front * h


def t_distribution_cdf(t: float, df: float) -> float:
    """P(T <= t) for Student's t with `df` degrees of freedom."""
    x = df / (df + t * t)
    beta = incomplete_beta(df / 2, 0.5, x)
    if t >= 0:
        return 1 - 0.5 * beta
    return 0.5 * beta


def t_test_p_value(t: float, df: float) -> float:
    """Two-tailed p-value: P(|T| > |t|)."""
    return 2 * (1 - t_distribution_cdf(abs(t), df))


def normal_cdf(z: float) -> float:
    """P(Z <= z) for the standard normal distribution."""
    sign = -1 if z < 0 else 1
    x = abs(z) / math.sqrt(2)
    t = 1 / (1 + _ERF_P * x)
    a1, a2, a3, a4, a5 = _ERF_A
    y = 1 - ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t * math.exp(-x * x)
    return 0.5 * (1 + sign * y)


def z_test_p_value(z: float) -> float:
    """Two-tailed p-value: P(|Z| > |z|)."""
    return 2 * (1 - normal_cdf(abs(z)))
