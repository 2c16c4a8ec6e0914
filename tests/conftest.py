import pandas as pd
import pytest

from markov_cea import ModelInputs, ModelSettings, StateSpace


def rates_frame(rows):
    return pd.DataFrame(rows, columns=["From", "To", "AnnualRate"])


def hr_frame(rows):
    return pd.DataFrame(rows, columns=["From", "To", "HR"])


def cost_frame(values):
    return pd.DataFrame(list(values.items()), columns=["States", "Cost"])


def utility_frame(values):
    return pd.DataFrame(list(values.items()), columns=["States", "Utility"])


def multipliers(n, value=1.0):
    return pd.DataFrame({"Multiplier": [value] * n})


def mortality(n, prob=0.02):
    return pd.DataFrame({"AnnualProb": [prob + 0.001 * i for i in range(n)]})


@pytest.fixture
def two_states():
    return StateSpace(("Hypertension", "Death"))


@pytest.fixture
def four_states():
    return StateSpace(("Hypertension", "Stroke", "CKD", "Death"))


@pytest.fixture
def scenario_a(two_states):
    """Hypertension -> Death at annual rate 0.01, 12 cycles, no hazard ratios."""
    return ModelInputs(
        state_space=two_states,
        transition_rates=rates_frame([("Hypertension", "Death", 0.01)]),
        costs=cost_frame({"Hypertension": 100.0, "Death": 0.0}),
        costs_treat=cost_frame({"Hypertension": 50.0}),
        utilities=utility_frame({"Hypertension": 1.0, "Death": 0.0}),
        utility_multipliers=multipliers(12),
    )


@pytest.fixture
def four_state_inputs(four_states):
    n = 24
    return ModelInputs(
        state_space=four_states,
        transition_rates=rates_frame([
            ("Hypertension", "Stroke", 0.05),
            ("Hypertension", "CKD", 0.03),
            ("CKD", "Stroke", 0.04),
        ]),
        hazard_ratios=hr_frame([
            ("Hypertension", "Stroke", 1.2),
            ("Stroke", "Death", 3.0),
            ("CKD", "Death", 2.0),
        ]),
        hazard_ratios_treat=hr_frame([
            ("Hypertension", "Stroke", 0.6),
            ("Hypertension", "Death", 0.9),
            ("CKD", "Death", 0.8),
        ]),
        costs=cost_frame({"Hypertension": 10.0, "Stroke": 500.0, "CKD": 300.0, "Death": 0.0}),
        costs_treat=cost_frame({"Hypertension": 25.0, "CKD": 25.0}),
        utilities=utility_frame({"Hypertension": 0.9, "Stroke": 0.6, "CKD": 0.7, "Death": 0.0}),
        utility_multipliers=multipliers(n, 0.98),
        background_mortality=mortality(n),
    )


@pytest.fixture
def settings_12():
    return ModelSettings(n_cycles=12, discount_rate=0.0)
