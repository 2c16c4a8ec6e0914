"""
Background mortality series and their disease-specific adjustments.

The background table holds one annual death probability per monthly cycle
(an aging cohort). Each disease state with a mortality hazard ratio gets its
own copy of the series with the monthly rate scaled by that hazard ratio;
states without one share the unadjusted series.
"""
import logging

import numpy as np
import pandas as pd

from .conversions import annual_prob_to_monthly_rate, compose_hazard
from .errors import ConfigurationError, DomainError
from .inputs import HR_COLUMNS, MORTALITY_COLUMNS, check_columns

logger = logging.getLogger(__name__)


def background_mortality_series(table, n_cycles):
    """
    Build the cycle-indexed background mortality series.

    Args:
        table (pd.DataFrame): Rows of AnnualProb, one per cycle
        n_cycles (int): Number of model cycles; extra rows are ignored

    Returns:
        pd.DataFrame: Index = cycle, columns AnnualProb, MonthlyRate, MonthlyProb
    """
    check_columns(table, MORTALITY_COLUMNS, "Background mortality")
    if len(table) < n_cycles:
        raise ConfigurationError(
            f"Background mortality table has {len(table)} rows but the model runs {n_cycles} cycles"
        )

    annual = table["AnnualProb"].to_numpy(dtype=float)[:n_cycles]
    try:
        monthly_rate = np.asarray(annual_prob_to_monthly_rate(annual), dtype=float)
    except DomainError:
        cycle = int(np.flatnonzero(~np.isfinite(annual) | (annual < 0) | (annual >= 1))[0])
        raise DomainError(f"Background mortality AnnualProb={annual[cycle]} is not a valid probability", cycle=cycle)

    series = pd.DataFrame({
        "AnnualProb": annual,
        "MonthlyRate": monthly_rate,
        "MonthlyProb": -np.expm1(-monthly_rate),
    })
    series.index.name = "cycle"
    return series


def disease_mortality_hrs(hazard_ratios, absorbing="Death"):
    """Map state -> hazard ratio for hazard-ratio rows into the absorbing state."""
    if hazard_ratios is None or hazard_ratios.empty:
        return {}
    check_columns(hazard_ratios, HR_COLUMNS, "Hazard ratio")
    rows = hazard_ratios[hazard_ratios["To"] == absorbing]
    return {row.From: float(row.HR) for row in rows.itertuples(index=False)}


def adjust_background_mortality(series, hrs):
    """
    Scale the background monthly rate of each state by its mortality hazard ratio.

    Args:
        series (pd.DataFrame): Output of background_mortality_series
        hrs (dict): state -> hazard ratio

    Returns:
        dict: state -> np.ndarray of monthly death probabilities (length n_cycles)
    """
    monthly_rate = series["MonthlyRate"].to_numpy()
    adjusted = {}
    for state, hr in hrs.items():
        try:
            adjusted[state] = np.asarray(compose_hazard(monthly_rate, hr), dtype=float)
        except DomainError as exc:
            raise DomainError(f"Invalid mortality hazard ratio {hr}: {exc}", state=state) from exc
        logger.debug("Adjusted background mortality for %s with HR %.3f", state, hr)
    return adjusted


def mortality_for_state(state, series, adjusted):
    """The adjusted series when `state` has a mortality HR, else the shared background series."""
    if state in adjusted:
        return adjusted[state]
    return series["MonthlyProb"].to_numpy()
