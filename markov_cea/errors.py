# ==========================================
# ERROR TAXONOMY
# ==========================================
# Every failure the model can raise derives from CEAError so the dashboard
# can catch one type and show the message to the user.


class CEAError(Exception):
    """
    Base class for cost-effectiveness model errors.

    Args:
        message (str): Human readable description of the problem
        state (str): Health state the problem was found in, if any
        cycle (int): Model cycle the problem was found in, if any
    """

    def __init__(self, message, state=None, cycle=None):
        self.state = state
        self.cycle = cycle
        location = []
        if state is not None:
            location.append(f"state={state!r}")
        if cycle is not None:
            location.append(f"cycle={cycle}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)


class DomainError(CEAError, ValueError):
    """A rate, probability or hazard ratio is outside its valid range."""


class ConfigurationError(CEAError, ValueError):
    """The model inputs are inconsistent (unknown states, rows summing above 1, duplicates)."""


class MissingRewardError(CEAError, LookupError):
    """A health state has no cost or utility value."""


class UndefinedICERError(CEAError, ZeroDivisionError):
    """
    Incremental QALYs are zero, so the ICER cannot be computed.

    This is a soft error: the aggregator catches it and reports the ICER as
    undefined instead of failing the run.
    """
