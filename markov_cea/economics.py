# ==========================================
# DISCOUNTING & ICER
# ==========================================
# Turns one arm's state membership and reward array into discounted totals,
# then compares the two arms.
#
#   Total Cost = Σ_cycles Σ_states (membership × cost) × discount factor
#   QALYs      = Σ_cycles Σ_states (membership × QALY weight) × discount factor
#   ICER       = (Cost_treat - Cost_control) / (QALY_treat - QALY_control)

import logging
from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd

from .errors import ConfigurationError, UndefinedICERError
from .rewards import COST, PAYOFFS, QALY

logger = logging.getLogger(__name__)

ICER_UNDEFINED_LABEL = "Undefined"


def monthly_discount_rate(annual_rate):
    """Effective monthly rate with the same annual compounding: (1 + r)^(1/12) - 1."""
    if annual_rate < 0:
        raise ConfigurationError(f"Discount rate cannot be negative, got {annual_rate}")
    return (1.0 + annual_rate) ** (1.0 / 12.0) - 1.0


def discount_factors(n_cycles, annual_rate):
    """
    Discount factor per cycle: [1, 1/(1+r_m), 1/(1+r_m)^2, ...].

    Args:
        n_cycles (int): Number of monthly cycles
        annual_rate (float): Annual discount rate as a fraction (0.03 = 3%)
    """
    r_month = monthly_discount_rate(annual_rate)
    return (1.0 + r_month) ** -np.arange(n_cycles, dtype=float)


def reward_trace(membership, rewards):
    """
    Expected reward per cycle: membership[c] · rewards[:, :, c] for every cycle.

    Returns:
        np.ndarray: shape (n_cycles, 2), columns Cost and QALY
    """
    if membership.shape[0] != rewards.shape[2] or membership.shape[1] != rewards.shape[0]:
        raise ValueError(
            f"Membership {membership.shape} does not match reward array {rewards.shape}"
        )
    # trace[c, p] = Σ_s membership[c, s] * rewards[s, p, c]
    return np.einsum("cs,spc->cp", membership, rewards)


def discount_trace(trace, factors):
    """Apply per-cycle discount factors to both payoff columns."""
    return trace * factors[:, np.newaxis]


def discounted_totals(trace, factors):
    """(total cost, total QALYs) of one arm after discounting."""
    discounted = discount_trace(trace, factors)
    return float(discounted[:, COST].sum()), float(discounted[:, QALY].sum())


def trace_frame(trace):
    frame = pd.DataFrame(trace, columns=list(PAYOFFS))
    frame.index.name = "cycle"
    return frame


def compute_icer(inccost, incqaly):
    """
    Incremental cost per QALY gained.

    Raises:
        UndefinedICERError: incremental QALYs are zero
    """
    if incqaly == 0:
        raise UndefinedICERError(f"Incremental QALYs are zero (incremental cost {inccost:,.2f}); ICER is undefined")
    return inccost / incqaly


@dataclass(frozen=True)
class EconomicOutput:
    """
    Final totals of a control vs treatment comparison.

    `icer` is None when incremental QALYs are zero.
    """
    totalcost_control: float
    totalcost_treat: float
    totalqaly_control: float
    totalqaly_treat: float
    inccost: float
    incqaly: float
    icer: float = None

    @property
    def icer_defined(self):
        return self.icer is not None

    def icer_label(self, fmt="{:,.2f}"):
        return fmt.format(self.icer) if self.icer_defined else ICER_UNDEFINED_LABEL

    def as_dict(self):
        return asdict(self)

    def to_frame(self):
        """Result table in the layout shown on the dashboard."""
        return pd.DataFrame(
            {
                "Control": [self.totalcost_control, self.totalqaly_control],
                "Treatment": [self.totalcost_treat, self.totalqaly_treat],
                "Incremental": [self.inccost, self.incqaly],
            },
            index=["Total cost", "Total QALYs"],
        )


def summarize(cost_control, qaly_control, cost_treat, qaly_treat):
    """
    Compare the two arms.

    An ICER that cannot be computed is reported as None (and logged) rather
    than raised: equal QALYs are a valid, if degenerate, result.
    """
    inccost = cost_treat - cost_control
    incqaly = qaly_treat - qaly_control
    try:
        icer = compute_icer(inccost, incqaly)
    except UndefinedICERError as exc:
        logger.warning("%s", exc)
        icer = None

    output = EconomicOutput(
        totalcost_control=cost_control,
        totalcost_treat=cost_treat,
        totalqaly_control=qaly_control,
        totalqaly_treat=qaly_treat,
        inccost=inccost,
        incqaly=incqaly,
        icer=icer,
    )
    logger.info("Incremental cost %.2f, incremental QALYs %.6f, ICER %s",
                inccost, incqaly, output.icer_label())
    return output
