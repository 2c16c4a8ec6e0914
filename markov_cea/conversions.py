"""
Rate / probability conversions for a monthly-cycle Markov model.

All functions accept scalars or numpy arrays and return the same shape.
Hazard ratios always scale the underlying *rate* (exponential hazard model),
never the probability directly:

    rate  = -ln(1 - p)
    p     = 1 - exp(-rate)
    p_adj = 1 - exp(-(rate * HR))
"""
import numpy as np

from .errors import DomainError

MONTHS_PER_YEAR = 12


# ==========================================
# INPUT CHECKS
# ==========================================

def _as_float(values):
    return np.asarray(values, dtype=float)


def _check_non_negative(values, name):
    arr = _as_float(values)
    bad = ~np.isfinite(arr) | (arr < 0)
    if np.any(bad):
        raise DomainError(f"{name} must be finite and non-negative, got {arr[bad].tolist() if arr.ndim else arr.item()}")
    return arr


def _check_probability(values, name):
    arr = _as_float(values)
    # A probability of exactly 1 has no finite rate (ln(0))
    bad = ~np.isfinite(arr) | (arr < 0) | (arr >= 1)
    if np.any(bad):
        raise DomainError(f"{name} must lie in [0, 1), got {arr[bad].tolist() if arr.ndim else arr.item()}")
    return arr


def _result(arr):
    # Hand scalars back as plain floats
    return arr.item() if arr.ndim == 0 else arr


# ==========================================
# CONVERSIONS
# ==========================================

def annual_rate_to_monthly_rate(rate):
    """Annual event rate -> monthly event rate."""
    return _result(_check_non_negative(rate, "annual rate") / MONTHS_PER_YEAR)


def annual_rate_to_monthly_prob(rate):
    """
    Convert an annual rate into the probability of the event within one month.

    Example:
        annual rate 0.12 -> monthly rate 0.01 -> 1 - e^-0.01 = 0.00995
    """
    monthly_rate = _check_non_negative(rate, "annual rate") / MONTHS_PER_YEAR
    return _result(-np.expm1(-monthly_rate))


def annual_prob_to_monthly_rate(prob):
    """Annual probability -> monthly rate, -ln(1 - p) / 12."""
    p = _check_probability(prob, "annual probability")
    return _result(-np.log1p(-p) / MONTHS_PER_YEAR)


def annual_prob_to_monthly_prob(prob):
    """
    Annual probability -> monthly probability by way of the implied monthly rate.

    Used for the background (life table) mortality series.
    """
    monthly_rate = _as_float(annual_prob_to_monthly_rate(prob))
    return _result(-np.expm1(-monthly_rate))


def monthly_prob_to_annual_prob(prob):
    """Monthly probability -> annual probability, 1 - (1 - p)^12."""
    p = _check_probability(prob, "monthly probability")
    return _result(1 - (1 - p) ** MONTHS_PER_YEAR)


def compose_hazard(monthly_rate, hr):
    """
    Apply a hazard ratio to a monthly rate and return the monthly probability.

    Args:
        monthly_rate (float | np.ndarray): Baseline monthly rate
        hr (float | np.ndarray): Hazard ratio multiplying the rate

    Returns:
        float | np.ndarray: 1 - exp(-(monthly_rate * hr))
    """
    rate = _check_non_negative(monthly_rate, "monthly rate")
    ratio = _check_non_negative(hr, "hazard ratio")
    return _result(-np.expm1(-(rate * ratio)))


def compose_sequential_hazard(prob, hr):
    """
    Apply a second hazard ratio on top of an already adjusted probability.

    The implied rate is recovered from the probability, scaled by the hazard
    ratio and converted back: 1 - exp(ln(1 - prob) * hr).
    """
    p = _check_probability(prob, "probability")
    ratio = _check_non_negative(hr, "hazard ratio")
    return _result(-np.expm1(np.log1p(-p) * ratio))
