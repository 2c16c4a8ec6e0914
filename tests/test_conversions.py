import math

import numpy as np
import pytest

from markov_cea.conversions import (
    annual_prob_to_monthly_prob,
    annual_prob_to_monthly_rate,
    annual_rate_to_monthly_prob,
    annual_rate_to_monthly_rate,
    compose_hazard,
    compose_sequential_hazard,
    monthly_prob_to_annual_prob,
)
from markov_cea.errors import DomainError


def test_annual_rate_to_monthly():
    assert annual_rate_to_monthly_rate(0.12) == pytest.approx(0.01)
    assert annual_rate_to_monthly_prob(0.12) == pytest.approx(1 - math.exp(-0.01))
    assert annual_rate_to_monthly_prob(0.0) == 0.0


def test_annual_prob_to_monthly():
    assert annual_prob_to_monthly_rate(0.1) == pytest.approx(-math.log(0.9) / 12)
    # 12 months at the monthly probability reproduce the annual probability
    assert annual_prob_to_monthly_prob(0.1) == pytest.approx(1 - 0.9 ** (1 / 12))


@pytest.mark.parametrize("x", [1e-6, 0.01, 0.2, 0.5, 0.7])
def test_round_trip(x):
    assert annual_prob_to_monthly_prob(monthly_prob_to_annual_prob(x)) == pytest.approx(x, rel=1e-7)
    assert monthly_prob_to_annual_prob(annual_prob_to_monthly_prob(x)) == pytest.approx(x, rel=1e-7)


def test_compose_hazard_scales_rate_not_probability():
    rate = 0.3 / 12
    assert compose_hazard(rate, 1.0) == pytest.approx(1 - math.exp(-rate))
    assert compose_hazard(rate, 2.0) == pytest.approx(1 - math.exp(-2 * rate))
    assert compose_hazard(rate, 0.0) == 0.0
    assert compose_hazard(rate, 2.0) < 2 * compose_hazard(rate, 1.0)


def test_sequential_hazard_composes_multiplicatively():
    rate = 0.05
    once = compose_hazard(rate, 1.5)
    assert compose_sequential_hazard(once, 1.0) == pytest.approx(once)
    assert compose_sequential_hazard(once, 0.5) == pytest.approx(compose_hazard(rate, 0.75))


def test_array_inputs_keep_shape():
    rates = np.array([0.0, 0.12, 1.2])
    probs = annual_rate_to_monthly_prob(rates)
    assert isinstance(probs, np.ndarray)
    assert probs.shape == (3,)
    np.testing.assert_allclose(compose_hazard(rates / 12, np.array([1.0, 2.0, 0.5])),
                               1 - np.exp(-(rates / 12) * [1.0, 2.0, 0.5]))


@pytest.mark.parametrize("func, value", [
    (annual_prob_to_monthly_rate, 1.0),
    (annual_prob_to_monthly_rate, 1.5),
    (annual_prob_to_monthly_prob, -0.1),
    (monthly_prob_to_annual_prob, 1.0),
    (annual_rate_to_monthly_prob, -0.5),
    (annual_rate_to_monthly_rate, float("nan")),
    (annual_rate_to_monthly_prob, float("inf")),
])
def test_out_of_domain_values_raise(func, value):
    with pytest.raises(DomainError):
        func(value)


def test_invalid_hazard_ratio_raises():
    with pytest.raises(DomainError):
        compose_hazard(0.01, -1.0)
    with pytest.raises(DomainError):
        compose_sequential_hazard(1.0, 0.5)


def test_one_bad_element_fails_the_array():
    with pytest.raises(DomainError, match="1.0"):
        annual_prob_to_monthly_prob(np.array([0.1, 1.0, 0.2]))


def test_domain_error_is_value_error():
    with pytest.raises(ValueError):
        annual_prob_to_monthly_rate(1.0)
