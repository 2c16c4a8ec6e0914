"""
Model inputs: the state space, the parameter tables and the two run settings.

The tables are plain pandas DataFrames with these columns:

    transition_rates     From, To, AnnualRate   (AnnualRate empty = residual cell)
    hazard_ratios        From, To, HR           (disease related)
    hazard_ratios_treat  From, To, HR           (treatment related)
    background_mortality AnnualProb             (one row per monthly cycle)
    costs / costs_treat  States, Cost           (cost per cycle)
    utilities            States, Utility        (annual utility)
    utility_multipliers  Multiplier             (one row per monthly cycle)
"""
from dataclasses import dataclass, field

import pandas as pd

from .errors import ConfigurationError

RATE_COLUMNS = ["From", "To", "AnnualRate"]
HR_COLUMNS = ["From", "To", "HR"]
COST_COLUMNS = ["States", "Cost"]
UTILITY_COLUMNS = ["States", "Utility"]
MORTALITY_COLUMNS = ["AnnualProb"]
MULTIPLIER_COLUMNS = ["Multiplier"]


# ==========================================
# TABLE CHECKS
# ==========================================

def check_columns(table, columns, name):
    """Raise ConfigurationError when `table` lacks any of `columns`."""
    missing = [c for c in columns if c not in table.columns]
    if missing:
        raise ConfigurationError(f"{name} table is missing column(s) {missing}")


def check_known_states(values, state_space, name):
    """Every state referenced by a table must exist in the state space."""
    for value in pd.unique(pd.Series(values, dtype=object)):
        if value not in state_space:
            raise ConfigurationError(f"{name} table references a state not in the model", state=value)


def check_unique(table, keys, name):
    """Duplicate keys make lookups ambiguous, so they are rejected."""
    dupes = table[table.duplicated(subset=keys, keep=False)]
    if not dupes.empty:
        first = dupes.iloc[0]
        label = " -> ".join(str(first[k]) for k in keys)
        raise ConfigurationError(f"{name} table has duplicate rows for {label}", state=first[keys[0]])


def empty_hazard_table():
    return pd.DataFrame({"From": pd.Series(dtype=object), "To": pd.Series(dtype=object), "HR": pd.Series(dtype=float)})


# ==========================================
# STATE SPACE
# ==========================================

@dataclass(frozen=True)
class StateSpace:
    """
    Ordered set of health states.

    Args:
        states (tuple): State names; the order defines matrix rows and columns
        absorbing (str): The absorbing state (default "Death")
        initial (str): State holding the whole cohort at cycle 0 (default "Hypertension")
    """
    states: tuple
    absorbing: str = "Death"
    initial: str = "Hypertension"

    def __post_init__(self):
        object.__setattr__(self, "states", tuple(self.states))
        if len(set(self.states)) != len(self.states):
            raise ConfigurationError(f"Duplicate state names in {list(self.states)}")
        for role, name in (("absorbing", self.absorbing), ("initial", self.initial)):
            if name not in self.states:
                raise ConfigurationError(f"The {role} state is not in the state space", state=name)
        if self.absorbing == self.initial:
            raise ConfigurationError("The initial state cannot be the absorbing state", state=self.initial)

    def __contains__(self, name):
        return name in self.states

    def __iter__(self):
        return iter(self.states)

    def __len__(self):
        return len(self.states)

    @property
    def n_states(self):
        return len(self.states)

    def index(self, name):
        if name not in self.states:
            raise ConfigurationError("Unknown state", state=name)
        return self.states.index(name)

    @property
    def living_states(self):
        """All states except the absorbing one."""
        return [s for s in self.states if s != self.absorbing]


# ==========================================
# SETTINGS
# ==========================================

@dataclass(frozen=True)
class ModelSettings:
    """
    The two scalar run settings.

    Args:
        n_cycles (int): Number of monthly cycles
        discount_rate (float): Annual discount rate as a fraction (0.03 = 3%)
    """
    n_cycles: int
    discount_rate: float = 0.0

    def __post_init__(self):
        if int(self.n_cycles) != self.n_cycles or self.n_cycles < 1:
            raise ConfigurationError(f"n_cycles must be a positive integer, got {self.n_cycles}")
        if not 0 <= self.discount_rate <= 1:
            raise ConfigurationError(f"discount_rate must be a fraction in [0, 1], got {self.discount_rate}")
        object.__setattr__(self, "n_cycles", int(self.n_cycles))

    @classmethod
    def from_percent(cls, n_cycles, discount_pct):
        """Build settings from the percentage entered in the dashboard (3 -> 0.03)."""
        if not 0 <= discount_pct <= 100:
            raise ConfigurationError(f"Discount rate must be between 0 and 100 percent, got {discount_pct}")
        return cls(n_cycles=n_cycles, discount_rate=discount_pct / 100.0)


# ==========================================
# MODEL INPUTS
# ==========================================

@dataclass
class ModelInputs:
    """
    All parameter tables for one model run (both arms).

    `background_mortality` is optional: without it, deaths come only from
    transition_rates rows into the absorbing state.
    """
    state_space: StateSpace
    transition_rates: pd.DataFrame
    costs: pd.DataFrame
    utilities: pd.DataFrame
    utility_multipliers: pd.DataFrame
    hazard_ratios: pd.DataFrame = field(default_factory=empty_hazard_table)
    hazard_ratios_treat: pd.DataFrame = field(default_factory=empty_hazard_table)
    costs_treat: pd.DataFrame = None
    background_mortality: pd.DataFrame = None

    def __post_init__(self):
        if self.hazard_ratios is None:
            self.hazard_ratios = empty_hazard_table()
        if self.hazard_ratios_treat is None:
            self.hazard_ratios_treat = empty_hazard_table()
        if self.costs_treat is None:
            self.costs_treat = pd.DataFrame({"States": pd.Series(dtype=object), "Cost": pd.Series(dtype=float)})

    def validate(self):
        """
        Check columns, state references and duplicate keys of every table.

        Raises:
            ConfigurationError: On the first inconsistency found
        """
        sp = self.state_space

        check_columns(self.transition_rates, RATE_COLUMNS, "Transition rate")
        check_known_states(self.transition_rates["From"], sp, "Transition rate")
        check_known_states(self.transition_rates["To"], sp, "Transition rate")
        check_unique(self.transition_rates, ["From", "To"], "Transition rate")

        for name, table in (("Hazard ratio", self.hazard_ratios),
                            ("Treatment hazard ratio", self.hazard_ratios_treat)):
            check_columns(table, HR_COLUMNS, name)
            check_known_states(table["From"], sp, name)
            check_known_states(table["To"], sp, name)
            check_unique(table, ["From", "To"], name)

        for name, table, columns in (("Cost", self.costs, COST_COLUMNS),
                                     ("Treatment cost", self.costs_treat, COST_COLUMNS),
                                     ("Utility", self.utilities, UTILITY_COLUMNS)):
            check_columns(table, columns, name)
            check_known_states(table["States"], sp, name)
            check_unique(table, ["States"], name)

        check_columns(self.utility_multipliers, MULTIPLIER_COLUMNS, "Utility multiplier")
        if self.background_mortality is not None:
            check_columns(self.background_mortality, MORTALITY_COLUMNS, "Background mortality")
        return self
