# ==========================================
# BACKGROUND PARAMETERS (DEMONSTRATION MODEL)
# ==========================================
# A small hypertension model used when no tables are uploaded in the
# dashboard. Values are illustrative round numbers, not estimates from a
# specific study. Rates are annual; costs are per monthly cycle.

import numpy as np
import pandas as pd

from .inputs import ModelInputs, StateSpace

DEFAULT_N_CYCLES = 240        # 20 years of monthly cycles
DEFAULT_DISCOUNT_PCT = 3      # % per year
MAX_CYCLES = 600              # 50 years; length of the generated life table

BASE_PARAMS = {
    'states': ["Hypertension", "Stroke", "CHD", "CKD", "Death"],

    # --- TRANSITIONS (annual rates) ---
    'transition_rates': {
        ('Hypertension', 'Stroke'): 0.010,   # first stroke
        ('Hypertension', 'CHD'): 0.012,      # first coronary event
        ('Hypertension', 'CKD'): 0.008,      # progression to chronic kidney disease
        ('CKD', 'CHD'): 0.030,               # CKD raises cardiac risk
        ('CKD', 'Stroke'): 0.015,
        ('CHD', 'Stroke'): 0.012,
    },

    # --- DISEASE MORTALITY (hazard ratios on background mortality) ---
    'hazard_ratios': {
        ('Stroke', 'Death'): 2.5,
        ('CHD', 'Death'): 2.0,
        ('CKD', 'Death'): 1.8,
    },

    # --- TREATMENT EFFECT (hazard ratios on the disease-adjusted risk) ---
    'hazard_ratios_treat': {
        ('Hypertension', 'Stroke'): 0.64,
        ('Hypertension', 'CHD'): 0.80,
        ('Hypertension', 'CKD'): 0.85,
        ('Hypertension', 'Death'): 0.95,
    },

    # --- COSTS (per month) ---
    'costs': {'Hypertension': 20, 'Stroke': 900, 'CHD': 600, 'CKD': 450, 'Death': 0},
    'costs_treat': {'Hypertension': 35, 'Stroke': 35, 'CHD': 35, 'CKD': 35},

    # --- UTILITIES (annual, 0-1 scale) ---
    'utilities': {'Hypertension': 0.90, 'Stroke': 0.63, 'CHD': 0.72, 'CKD': 0.70, 'Death': 0.0},

    # --- COHORT ---
    'start_age': 55,
    # Gompertz life table: annual hazard = a * exp(b * age)
    'gompertz_a': 4.25e-5,
    'gompertz_b': 0.09,
    # Utility declines 0.4% per year of age, never below half
    'utility_decline': 0.004,
}


def _pairs_frame(pairs, value_column):
    return pd.DataFrame(
        [(frm, to, value) for (frm, to), value in pairs.items()],
        columns=["From", "To", value_column],
    )


def _states_frame(values, value_column):
    return pd.DataFrame(list(values.items()), columns=["States", value_column])


def life_table(params=BASE_PARAMS, n_cycles=MAX_CYCLES):
    """Annual death probability for each monthly cycle of an aging cohort."""
    age = params['start_age'] + np.arange(n_cycles) / 12.0
    hazard = params['gompertz_a'] * np.exp(params['gompertz_b'] * age)
    return pd.DataFrame({"AnnualProb": -np.expm1(-hazard)})


def utility_multipliers(params=BASE_PARAMS, n_cycles=MAX_CYCLES):
    years = np.arange(n_cycles) / 12.0
    return pd.DataFrame({"Multiplier": np.maximum(0.5, 1.0 - params['utility_decline'] * years)})


def demo_inputs(params=BASE_PARAMS, n_cycles=MAX_CYCLES):
    """
    Build ModelInputs from a BASE_PARAMS style dictionary.

    Args:
        params (dict): Parameter dictionary (BASE_PARAMS or a modified copy)
        n_cycles (int): Rows to generate for the per-cycle tables
    """
    return ModelInputs(
        state_space=StateSpace(tuple(params['states'])),
        transition_rates=_pairs_frame(params['transition_rates'], "AnnualRate"),
        hazard_ratios=_pairs_frame(params['hazard_ratios'], "HR"),
        hazard_ratios_treat=_pairs_frame(params['hazard_ratios_treat'], "HR"),
        costs=_states_frame(params['costs'], "Cost"),
        costs_treat=_states_frame(params['costs_treat'], "Cost"),
        utilities=_states_frame(params['utilities'], "Utility"),
        utility_multipliers=utility_multipliers(params, n_cycles),
        background_mortality=life_table(params, n_cycles),
    )
