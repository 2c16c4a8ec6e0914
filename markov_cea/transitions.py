"""
Transition matrix builder.

Produces, for one arm, a stack of row-stochastic monthly transition matrices
indexed [from-state, to-state, cycle]. The build has two phases:

1. collect every known cell into a sparse mapping (from, to) -> per-cycle
   probabilities (rate table, hazard ratios, background mortality);
2. materialise the dense array once, balance each row with its residual
   cell, check it, and row-normalise.

Only the transitions into the absorbing state vary over cycles (background
mortality ages with the cohort); every other cell is constant.
"""
import logging

import numpy as np
import pandas as pd

from .conversions import (
    annual_rate_to_monthly_prob,
    annual_rate_to_monthly_rate,
    compose_hazard,
    compose_sequential_hazard,
)
from .errors import ConfigurationError, DomainError
from .inputs import HR_COLUMNS, RATE_COLUMNS, check_columns, check_known_states, check_unique, empty_hazard_table
from .mortality import (
    adjust_background_mortality,
    background_mortality_series,
    disease_mortality_hrs,
    mortality_for_state,
)

logger = logging.getLogger(__name__)

# Rounding slack allowed when a row's specified probabilities are summed
ROW_SUM_TOLERANCE = 1e-9


# ==========================================
# STEP 1: MONTHLY PROBABILITIES FROM THE RATE TABLE
# ==========================================

def _check_hazard_table(table, state_space, name):
    if table is None:
        return empty_hazard_table()
    check_columns(table, HR_COLUMNS, name)
    check_known_states(table["From"], state_space, name)
    check_known_states(table["To"], state_space, name)
    check_unique(table, ["From", "To"], name)
    return table[HR_COLUMNS]


def monthly_transition_probs(rates, hazard_ratios=None, hazard_ratios_treat=None):
    """
    Convert annual rates into hazard-adjusted monthly probabilities.

    Rows whose AnnualRate is empty are residual cells: they get their value
    later, when the row is balanced.

    Args:
        rates (pd.DataFrame): From, To, AnnualRate
        hazard_ratios (pd.DataFrame): Disease hazard ratios (From, To, HR)
        hazard_ratios_treat (pd.DataFrame): Treatment hazard ratios, treatment arm only

    Returns:
        pd.DataFrame: the rate rows plus MonthlyRate, MonthlyProb, HR,
        AdjustedMonthlyProb, HR_treat, Prob and Residual
    """
    hrs = hazard_ratios if hazard_ratios is not None else empty_hazard_table()
    treat = hazard_ratios_treat if hazard_ratios_treat is not None else empty_hazard_table()

    table = rates[RATE_COLUMNS].merge(hrs[HR_COLUMNS], on=["From", "To"], how="left")
    table = table.merge(
        treat[HR_COLUMNS].rename(columns={"HR": "HR_treat"}), on=["From", "To"], how="left"
    )
    table["Residual"] = table["AnnualRate"].isna()

    monthly_rate, monthly_prob, adjusted, final = [], [], [], []
    for row in table.itertuples(index=False):
        if row.Residual:
            if not (pd.isna(row.HR) and pd.isna(row.HR_treat)):
                raise ConfigurationError(
                    f"Hazard ratio given for the residual transition {row.From} -> {row.To}", state=row.From
                )
            monthly_rate.append(np.nan)
            monthly_prob.append(np.nan)
            adjusted.append(np.nan)
            final.append(np.nan)
            continue
        try:
            rate = annual_rate_to_monthly_rate(row.AnnualRate)
            prob = annual_rate_to_monthly_prob(row.AnnualRate)
            # Disease HR scales the rate; missing HR means no adjustment
            adj = prob if pd.isna(row.HR) else compose_hazard(rate, row.HR)
            # Treatment HR is layered on top of the disease-adjusted probability
            out = adj if pd.isna(row.HR_treat) else compose_sequential_hazard(adj, row.HR_treat)
        except DomainError as exc:
            raise DomainError(f"Transition {row.From} -> {row.To}: {exc}", state=row.From) from exc
        monthly_rate.append(rate)
        monthly_prob.append(prob)
        adjusted.append(adj)
        final.append(out)

    table["MonthlyRate"] = monthly_rate
    table["MonthlyProb"] = monthly_prob
    table["AdjustedMonthlyProb"] = adjusted
    table["Prob"] = final
    return table


def _check_orphan_hazards(hazards, rates, absorbing, has_background, name):
    # A hazard ratio must scale something: a rate row, or background mortality
    known = set(zip(rates["From"], rates["To"]))
    for row in hazards.itertuples(index=False):
        if (row.From, row.To) in known:
            continue
        if row.To == absorbing and has_background:
            continue
        raise ConfigurationError(
            f"{name} table has a hazard ratio for {row.From} -> {row.To} but no such transition exists",
            state=row.From,
        )


# ==========================================
# TRANSITION MATRIX BUILDER
# ==========================================

def build_transition_matrix(state_space, rates, n_cycles, hazard_ratios=None,
                            background=None, hazard_ratios_treat=None):
    """
    Build the [from, to, cycle] transition matrix for one arm.

    Args:
        state_space (StateSpace): Model states
        rates (pd.DataFrame): From, To, AnnualRate
        n_cycles (int): Number of monthly cycles
        hazard_ratios (pd.DataFrame): Disease hazard ratios
        background (pd.DataFrame): Background mortality (AnnualProb per cycle), optional
        hazard_ratios_treat (pd.DataFrame): Treatment hazard ratios; pass only for the treatment arm

    Returns:
        np.ndarray: read-only array of shape (n_states, n_states, n_cycles)

    Raises:
        ConfigurationError: Unknown states, rows summing above 1, rows with no transitions
        DomainError: Invalid rates, probabilities or hazard ratios
    """
    sp = state_space
    absorbing = sp.absorbing

    check_columns(rates, RATE_COLUMNS, "Transition rate")
    check_known_states(rates["From"], sp, "Transition rate")
    check_known_states(rates["To"], sp, "Transition rate")
    check_unique(rates, ["From", "To"], "Transition rate")
    hazard_ratios = _check_hazard_table(hazard_ratios, sp, "Hazard ratio")
    treat_hrs = _check_hazard_table(hazard_ratios_treat, sp, "Treatment hazard ratio")

    leaving_death = rates[rates["From"] == absorbing]
    if not leaving_death.empty:
        raise ConfigurationError("The absorbing state cannot have outgoing transitions", state=absorbing)

    has_background = background is not None
    _check_orphan_hazards(hazard_ratios, rates, absorbing, has_background, "Hazard ratio")
    _check_orphan_hazards(treat_hrs, rates, absorbing, has_background, "Treatment hazard ratio")

    # ------------------------------------------
    # Phase 1: sparse cells
    # ------------------------------------------
    probs = monthly_transition_probs(rates, hazard_ratios, treat_hrs)
    cells = {}
    residual = {}
    for row in probs.itertuples(index=False):
        if row.Residual:
            if row.From in residual:
                raise ConfigurationError(
                    f"More than one residual transition ({residual[row.From]}, {row.To})", state=row.From
                )
            residual[row.From] = row.To
        else:
            cells[(row.From, row.To)] = np.full(n_cycles, row.Prob, dtype=float)

    if has_background:
        series = background_mortality_series(background, n_cycles)
        adjusted = adjust_background_mortality(series, disease_mortality_hrs(hazard_ratios, absorbing))
        treat_mortality = disease_mortality_hrs(treat_hrs, absorbing)
        for state in sp.living_states:
            if (state, absorbing) in cells or residual.get(state) == absorbing:
                raise ConfigurationError(
                    "Mortality is given both in the rate table and by background mortality", state=state
                )
            death = mortality_for_state(state, series, adjusted)
            if state in treat_mortality:
                try:
                    death = np.asarray(compose_sequential_hazard(death, treat_mortality[state]), dtype=float)
                except DomainError as exc:
                    raise DomainError(f"Treatment mortality hazard ratio: {exc}", state=state) from exc
            cells[(state, absorbing)] = death

    # ------------------------------------------
    # Phase 2: dense matrix
    # ------------------------------------------
    n = sp.n_states
    matrix = np.zeros((n, n, n_cycles))

    for state in sp.living_states:
        i = sp.index(state)
        row_cells = {to: v for (frm, to), v in cells.items() if frm == state}

        # Residual cell: the marked one, else "stay" unless stay is explicit
        target = residual.get(state)
        if target is None and row_cells and state not in row_cells:
            target = state

        specified = np.zeros(n_cycles)
        for to, values in row_cells.items():
            specified += values
            matrix[i, sp.index(to), :] = values

        over = np.flatnonzero(specified > 1 + ROW_SUM_TOLERANCE)
        if over.size:
            c = int(over[0])
            raise ConfigurationError(
                f"Outgoing transition probabilities sum to {specified[c]:.6f}, more than 1", state=state, cycle=c
            )

        if target is not None:
            # floored at 0 to absorb rounding
            matrix[i, sp.index(target), :] = np.maximum(0.0, 1.0 - specified)

    a = sp.index(absorbing)
    matrix[a, :, :] = 0.0
    matrix[a, a, :] = 1.0

    row_sums = matrix.sum(axis=1)  # (n_states, n_cycles)
    empty = np.argwhere(row_sums == 0)
    if empty.size:
        state_idx, c = empty[0]
        raise ConfigurationError("State has no outgoing transitions", state=sp.states[state_idx], cycle=int(c))

    off = np.abs(row_sums - 1.0) > ROW_SUM_TOLERANCE
    if np.any(off):
        state_idx, c = np.argwhere(off)[0]
        logger.warning("Row for %s sums to %.6f in cycle %d; renormalising",
                       sp.states[state_idx], row_sums[state_idx, c], c)

    matrix = matrix / row_sums[:, np.newaxis, :]
    matrix.flags.writeable = False

    logger.debug("Built transition matrix %s (%s treatment HRs)", matrix.shape,
                 "with" if hazard_ratios_treat is not None else "without")
    return matrix


# ==========================================
# CHECKS & DISPLAY
# ==========================================

def check_row_stochastic(matrix, state_space, atol=1e-9):
    """
    Verify every cycle slice is row-stochastic and the absorbing row is absorbing.

    Raises:
        ConfigurationError: naming the first state/cycle that breaks the invariant
    """
    sp = state_space
    if np.any(matrix < 0) or np.any(matrix > 1 + atol):
        state_idx, _, c = np.argwhere((matrix < 0) | (matrix > 1 + atol))[0]
        raise ConfigurationError("Transition probability outside [0, 1]", state=sp.states[state_idx], cycle=int(c))

    row_sums = matrix.sum(axis=1)
    bad = np.abs(row_sums - 1.0) > atol
    if np.any(bad):
        state_idx, c = np.argwhere(bad)[0]
        raise ConfigurationError(
            f"Row sums to {row_sums[state_idx, c]:.9f}", state=sp.states[state_idx], cycle=int(c)
        )

    a = sp.index(sp.absorbing)
    if not np.all(matrix[a, a, :] == 1.0):
        raise ConfigurationError("Absorbing state can be left", state=sp.absorbing)
    return True


def matrix_frame(matrix, state_space, cycle=0):
    """One cycle of the transition matrix as a labelled DataFrame (rows = from, columns = to)."""
    return pd.DataFrame(matrix[:, :, cycle], index=list(state_space), columns=list(state_space))
