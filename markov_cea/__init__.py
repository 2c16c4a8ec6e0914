"""Markov cohort cost-effectiveness model: control vs treatment, monthly cycles."""
from .errors import CEAError, ConfigurationError, DomainError, MissingRewardError, UndefinedICERError
from .economics import EconomicOutput
from .inputs import ModelInputs, ModelSettings, StateSpace
from .model import CONTROL, TREATMENT, CEAResult, MarkovArm, run_cea

__version__ = "0.1.0"

__all__ = [
    "CEAError",
    "CEAResult",
    "CONTROL",
    "ConfigurationError",
    "DomainError",
    "EconomicOutput",
    "MarkovArm",
    "MissingRewardError",
    "ModelInputs",
    "ModelSettings",
    "StateSpace",
    "TREATMENT",
    "UndefinedICERError",
    "run_cea",
]
