# ==========================================
# MARKOV MODEL ENGINE
# ==========================================
# One MarkovArm per strategy (control, treatment). Each arm runs the same
# forward pipeline on its own copy of the results:
#
#   rates + hazard ratios + background mortality -> transition matrix
#   transition matrix                            -> cohort trace
#   costs + utilities                            -> reward array
#   trace × rewards × discount                   -> total cost, total QALYs
#
# run_cea() runs both arms and compares them.

import logging
from dataclasses import dataclass

from .cohort import propagate, state_distribution
from .economics import discount_factors, discount_trace, discounted_totals, reward_trace, summarize
from .rewards import build_reward_array
from .transitions import build_transition_matrix, check_row_stochastic

logger = logging.getLogger(__name__)

CONTROL = "Control"
TREATMENT = "Treatment"


class MarkovArm:
    """
    A single arm of the cohort model.

    Key outputs after run():
    - matrix: transition probabilities [from, to, cycle]
    - trace: share of the cohort in each state per cycle [cycle, state]
    - rewards: cost and QALY weight per state per cycle [state, payoff, cycle]
    - reward_trace / discounted_trace: expected cost and QALYs per cycle
    - costs, qalys: discounted totals
    """

    def __init__(self, inputs, settings, label=CONTROL):
        """
        Args:
            inputs (ModelInputs): Parameter tables shared by both arms
            settings (ModelSettings): Cycle count and discount rate
            label (str): CONTROL or TREATMENT; the treatment arm also uses the
                treatment hazard ratios and treatment costs
        """
        if label not in (CONTROL, TREATMENT):
            raise ValueError(f"Unknown arm {label!r}")
        self.inputs = inputs
        self.settings = settings
        self.label = label
        self.matrix = None
        self.trace = None
        self.rewards = None
        self.reward_trace = None
        self.discounted_trace = None
        self.costs = 0.0
        self.qalys = 0.0
        self.state_distribution = {}

    @property
    def is_treatment(self):
        return self.label == TREATMENT

    def __repr__(self):
        return f"MarkovArm({self.label}, n_cycles={self.settings.n_cycles})"

    def run(self):
        inputs = self.inputs
        sp = inputs.state_space
        n_cycles = self.settings.n_cycles
        logger.info("Running %s arm for %d cycles", self.label, n_cycles)

        self.matrix = build_transition_matrix(
            sp,
            inputs.transition_rates,
            n_cycles,
            hazard_ratios=inputs.hazard_ratios,
            background=inputs.background_mortality,
            hazard_ratios_treat=inputs.hazard_ratios_treat if self.is_treatment else None,
        )
        check_row_stochastic(self.matrix, sp)

        self.trace = propagate(self.matrix, sp)

        self.rewards = build_reward_array(
            sp,
            inputs.costs,
            inputs.utilities,
            inputs.utility_multipliers,
            n_cycles,
            costs_treat=inputs.costs_treat if self.is_treatment else None,
        )

        factors = discount_factors(n_cycles, self.settings.discount_rate)
        self.reward_trace = reward_trace(self.trace, self.rewards)
        self.discounted_trace = discount_trace(self.reward_trace, factors)
        self.costs, self.qalys = discounted_totals(self.reward_trace, factors)
        self.state_distribution = state_distribution(self.trace, sp)

        logger.info("%s arm: total cost %.2f, total QALYs %.6f", self.label, self.costs, self.qalys)
        return self


@dataclass
class CEAResult:
    """Economic summary plus both finished arms (for traces and charts)."""
    output: object
    control: MarkovArm
    treatment: MarkovArm


def run_cea(inputs, settings):
    """
    Run the control and treatment arms and compute incremental outcomes.

    Args:
        inputs (ModelInputs): Parameter tables
        settings (ModelSettings): Cycle count and discount rate

    Returns:
        CEAResult

    Raises:
        CEAError: Any input, conversion or reward error aborts the whole run
    """
    inputs.validate()

    control = MarkovArm(inputs, settings, CONTROL).run()
    treatment = MarkovArm(inputs, settings, TREATMENT).run()

    output = summarize(control.costs, control.qalys, treatment.costs, treatment.qalys)
    return CEAResult(output=output, control=control, treatment=treatment)
