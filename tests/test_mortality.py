import numpy as np
import pandas as pd
import pytest

from conftest import hr_frame
from markov_cea.conversions import compose_hazard
from markov_cea.errors import ConfigurationError, DomainError
from markov_cea.mortality import (
    adjust_background_mortality,
    background_mortality_series,
    disease_mortality_hrs,
    mortality_for_state,
)


@pytest.fixture
def table():
    return pd.DataFrame({"AnnualProb": [0.01, 0.02, 0.03, 0.04, 0.05]})


def test_series_columns_and_values(table):
    series = background_mortality_series(table, 4)
    assert list(series.columns) == ["AnnualProb", "MonthlyRate", "MonthlyProb"]
    assert len(series) == 4
    np.testing.assert_allclose(series["MonthlyRate"], -np.log(1 - series["AnnualProb"]) / 12)
    np.testing.assert_allclose(series["MonthlyProb"], 1 - (1 - series["AnnualProb"]) ** (1 / 12))


def test_series_too_short(table):
    with pytest.raises(ConfigurationError, match="5 rows"):
        background_mortality_series(table, 6)


def test_series_invalid_probability_names_cycle():
    bad = pd.DataFrame({"AnnualProb": [0.01, 0.02, 1.0]})
    with pytest.raises(DomainError) as info:
        background_mortality_series(bad, 3)
    assert info.value.cycle == 2


def test_disease_mortality_hrs_only_uses_death_rows():
    hrs = hr_frame([("Stroke", "Death", 3.0), ("Hypertension", "Stroke", 1.4), ("CKD", "Death", 2.0)])
    assert disease_mortality_hrs(hrs) == {"Stroke": 3.0, "CKD": 2.0}
    assert disease_mortality_hrs(None) == {}


def test_adjusted_series_per_state(table):
    series = background_mortality_series(table, 5)
    adjusted = adjust_background_mortality(series, {"Stroke": 3.0, "CKD": 1.0})
    assert set(adjusted) == {"Stroke", "CKD"}
    np.testing.assert_allclose(adjusted["Stroke"], compose_hazard(series["MonthlyRate"].to_numpy(), 3.0))
    np.testing.assert_allclose(adjusted["CKD"], series["MonthlyProb"])
    # mortality rises as the cohort ages
    assert np.all(np.diff(adjusted["Stroke"]) > 0)


def test_states_without_hr_share_background(table):
    series = background_mortality_series(table, 5)
    adjusted = adjust_background_mortality(series, {"Stroke": 3.0})
    np.testing.assert_array_equal(mortality_for_state("Hypertension", series, adjusted), series["MonthlyProb"])
    np.testing.assert_array_equal(mortality_for_state("Stroke", series, adjusted), adjusted["Stroke"])


def test_negative_hr_names_state(table):
    series = background_mortality_series(table, 5)
    with pytest.raises(DomainError) as info:
        adjust_background_mortality(series, {"Stroke": -2.0})
    assert info.value.state == "Stroke"
