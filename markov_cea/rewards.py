"""
Reward arrays: cost and QALY per state and per cycle for one arm.

Array layout is [state, payoff, cycle] with payoff 0 = Cost and 1 = QALY.
Costs are per cycle; utilities are annual and are turned into a monthly
QALY weight (utility / 12) scaled by the age multiplier of each cycle.
"""
import logging

import numpy as np
import pandas as pd

from .errors import ConfigurationError, MissingRewardError
from .inputs import COST_COLUMNS, MULTIPLIER_COLUMNS, UTILITY_COLUMNS, check_columns, check_known_states, check_unique

logger = logging.getLogger(__name__)

PAYOFFS = ("Cost", "QALY")
COST, QALY = range(len(PAYOFFS))


def _lookup(table, value_column, state_space, name):
    """State -> value from a States/<value> table; every state must be present and numeric."""
    check_known_states(table["States"], state_space, name)
    check_unique(table, ["States"], name)
    values = dict(zip(table["States"], pd.to_numeric(table[value_column], errors="coerce")))
    out = np.zeros(state_space.n_states)
    for idx, state in enumerate(state_space):
        if state not in values:
            raise MissingRewardError(f"No {value_column.lower()} given in the {name} table", state=state)
        if pd.isna(values[state]):
            raise MissingRewardError(f"{value_column} in the {name} table is missing or not a number", state=state)
        out[idx] = values[state]
    return out


def _treatment_costs(table, state_space):
    """Incremental treatment cost per state; states not listed cost nothing extra."""
    if table is None or table.empty:
        return np.zeros(state_space.n_states)
    check_columns(table, COST_COLUMNS, "Treatment cost")
    check_known_states(table["States"], state_space, "Treatment cost")
    check_unique(table, ["States"], "Treatment cost")
    extra = dict(zip(table["States"], pd.to_numeric(table["Cost"], errors="coerce")))
    out = np.zeros(state_space.n_states)
    for idx, state in enumerate(state_space):
        value = extra.get(state, 0.0)
        if pd.isna(value):
            raise MissingRewardError("Cost in the Treatment cost table is missing or not a number", state=state)
        out[idx] = value
    return out


def utility_multiplier_series(table, n_cycles):
    """First n_cycles age multipliers as an array."""
    check_columns(table, MULTIPLIER_COLUMNS, "Utility multiplier")
    if len(table) < n_cycles:
        raise ConfigurationError(
            f"Utility multiplier table has {len(table)} rows but the model runs {n_cycles} cycles"
        )
    values = pd.to_numeric(table["Multiplier"], errors="coerce").to_numpy(dtype=float)[:n_cycles]
    bad = np.flatnonzero(np.isnan(values))
    if bad.size:
        raise ConfigurationError("Utility multiplier is missing or not a number", cycle=int(bad[0]))
    return values


def half_cycle_correction(rewards):
    """
    Halve the first and last cycle of a reward array.

    Returns a new array; the input is left untouched. With a single cycle the
    one cycle is halved once.
    """
    corrected = np.array(rewards, dtype=float, copy=True)
    corrected[:, :, 0] *= 0.5
    if corrected.shape[2] > 1:
        corrected[:, :, -1] *= 0.5
    return corrected


def build_reward_array(state_space, costs, utilities, multipliers, n_cycles,
                       costs_treat=None, half_cycle=True):
    """
    Build the [state, payoff, cycle] reward array for one arm.

    Args:
        state_space (StateSpace): Model states
        costs (pd.DataFrame): States, Cost (cost per cycle)
        utilities (pd.DataFrame): States, Utility (annual utility)
        multipliers (pd.DataFrame): Multiplier, one row per cycle
        n_cycles (int): Number of cycles
        costs_treat (pd.DataFrame): Extra treatment cost per state; pass only for the treatment arm
        half_cycle (bool): Apply the half-cycle correction

    Returns:
        np.ndarray: shape (n_states, 2, n_cycles)

    Raises:
        MissingRewardError: A state has no cost or utility
        ConfigurationError: Duplicate or unknown states, too few multipliers
    """
    check_columns(costs, COST_COLUMNS, "Cost")
    check_columns(utilities, UTILITY_COLUMNS, "Utility")

    cost = _lookup(costs, "Cost", state_space, "Cost")
    cost = cost + _treatment_costs(costs_treat, state_space)
    utility = _lookup(utilities, "Utility", state_space, "Utility")
    age_mult = utility_multiplier_series(multipliers, n_cycles)

    rewards = np.zeros((state_space.n_states, len(PAYOFFS), n_cycles))
    rewards[:, COST, :] = cost[:, np.newaxis]
    rewards[:, QALY, :] = (utility / 12.0)[:, np.newaxis] * age_mult[np.newaxis, :]

    if half_cycle:
        rewards = half_cycle_correction(rewards)

    logger.debug("Built reward array %s (half-cycle correction %s)", rewards.shape, "on" if half_cycle else "off")
    rewards.flags.writeable = False
    return rewards
