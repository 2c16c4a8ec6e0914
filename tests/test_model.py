import math

import numpy as np
import pytest

from conftest import cost_frame, hr_frame, mortality, multipliers, rates_frame, utility_frame
from markov_cea import (
    CONTROL,
    TREATMENT,
    ConfigurationError,
    MarkovArm,
    MissingRewardError,
    ModelInputs,
    ModelSettings,
    run_cea,
)
from markov_cea.defaults import DEFAULT_N_CYCLES, demo_inputs


# ------------------------------------------
# Scenario A: two states, constant death rate
# ------------------------------------------

def test_scenario_a_control_totals(scenario_a, settings_12):
    arm = MarkovArm(scenario_a, settings_12, CONTROL).run()

    p = 1 - math.exp(-0.01 / 12)
    alive = (1 - p) ** np.arange(12)
    weights = np.ones(12)
    weights[[0, -1]] = 0.5
    assert arm.costs == pytest.approx(100.0 * np.sum(weights * alive))
    assert arm.qalys == pytest.approx(np.sum(weights * alive) / 12)


def test_scenario_a_cumulative_mortality_increases(scenario_a, settings_12):
    arm = MarkovArm(scenario_a, settings_12, CONTROL).run()
    dead = arm.trace[:, scenario_a.state_space.index("Death")]
    assert dead[0] == 0.0
    assert np.all(np.diff(dead) > 0)


def test_scenario_a_icer_with_differing_treatment(scenario_a, settings_12):
    scenario_a.hazard_ratios_treat = hr_frame([("Hypertension", "Death", 0.5)])
    result = run_cea(scenario_a, settings_12)
    out = result.output
    assert out.icer_defined
    assert np.isfinite(out.icer)
    assert out.incqaly > 0
    assert out.inccost > 0


def test_same_qalys_when_only_costs_differ(scenario_a, settings_12):
    out = run_cea(scenario_a, settings_12).output
    assert out.incqaly == 0.0
    assert out.inccost > 0
    assert out.icer is None


# ------------------------------------------
# Scenario B: identical arms
# ------------------------------------------

def test_scenario_b_identical_arms(two_states):
    n = 24
    inputs = ModelInputs(
        state_space=two_states,
        transition_rates=rates_frame([]),
        costs=cost_frame({"Hypertension": 100.0, "Death": 0.0}),
        utilities=utility_frame({"Hypertension": 0.85, "Death": 0.0}),
        utility_multipliers=multipliers(n),
        background_mortality=mortality(n),
    )
    out = run_cea(inputs, ModelSettings(n, 0.03)).output
    assert out.inccost == 0
    assert out.incqaly == 0
    assert out.icer is None
    assert out.icer_label() == "Undefined"


# ------------------------------------------
# Scenario C: treatment lowers mortality at a higher cost
# ------------------------------------------

def test_scenario_c_treatment_reduces_mortality(two_states):
    n = 60
    inputs = ModelInputs(
        state_space=two_states,
        transition_rates=rates_frame([]),
        hazard_ratios=hr_frame([("Hypertension", "Death", 1.5)]),
        hazard_ratios_treat=hr_frame([("Hypertension", "Death", 0.7)]),
        costs=cost_frame({"Hypertension": 50.0, "Death": 0.0}),
        costs_treat=cost_frame({"Hypertension": 30.0}),
        utilities=utility_frame({"Hypertension": 0.8, "Death": 0.0}),
        utility_multipliers=multipliers(n),
        background_mortality=mortality(n, prob=0.05),
    )
    result = run_cea(inputs, ModelSettings.from_percent(n, 3))
    out = result.output
    assert out.incqaly > 0
    assert out.inccost > 0
    assert out.icer_defined and 0 < out.icer < math.inf

    d = two_states.index("Death")
    assert np.all(result.treatment.trace[1:, d] < result.control.trace[1:, d])


def test_discounting_lowers_totals(four_state_inputs):
    flat = run_cea(four_state_inputs, ModelSettings(24, 0.0)).output
    discounted = run_cea(four_state_inputs, ModelSettings(24, 0.05)).output
    assert discounted.totalcost_control < flat.totalcost_control
    assert discounted.totalqaly_treat < flat.totalqaly_treat


# ------------------------------------------
# Pipeline behaviour
# ------------------------------------------

def test_arms_do_not_share_arrays(four_state_inputs):
    result = run_cea(four_state_inputs, ModelSettings(24, 0.03))
    assert result.control.matrix is not result.treatment.matrix
    assert not np.allclose(result.control.matrix, result.treatment.matrix)
    for arm in (result.control, result.treatment):
        np.testing.assert_allclose(arm.trace.sum(axis=1), 1.0, atol=1e-12)
        assert arm.reward_trace.shape == (24, 2)
        assert sum(arm.state_distribution.values()) == pytest.approx(24)


def test_arm_labels(four_state_inputs):
    result = run_cea(four_state_inputs, ModelSettings(24))
    assert result.control.label == CONTROL
    assert result.treatment.label == TREATMENT
    assert result.treatment.is_treatment
    with pytest.raises(ValueError):
        MarkovArm(four_state_inputs, ModelSettings(24), "Placebo")


def test_missing_utility_aborts_run(scenario_a, settings_12):
    scenario_a.utilities = utility_frame({"Hypertension": 1.0})
    with pytest.raises(MissingRewardError):
        run_cea(scenario_a, settings_12)


def test_unknown_cost_state_is_configuration_error(scenario_a, settings_12):
    scenario_a.costs_treat = cost_frame({"Stroke": 10.0})
    with pytest.raises(ConfigurationError):
        run_cea(scenario_a, settings_12)


def test_demo_model_runs():
    inputs = demo_inputs()
    result = run_cea(inputs, ModelSettings.from_percent(DEFAULT_N_CYCLES, 3))
    out = result.output
    assert out.incqaly > 0
    assert out.icer_defined
    assert out.totalqaly_control > 0
    sp = inputs.state_space
    assert result.control.trace[-1, sp.index("Death")] > 0
