"""
Exception types raised by the switching-time pipeline.
"""


class SwitchingTimesError(Exception):
    """Base class for all errors raised by this package."""


class ProblemSetupError(SwitchingTimesError, ValueError):
    """Inconsistent problem data detected before a solve starts."""


class PhaseError(SwitchingTimesError, RuntimeError):
    """Operation not allowed in the current phase of the NLP adapter."""


class IntegrationError(SwitchingTimesError, RuntimeError):
    """The simulated state became non-finite."""


class TapeError(SwitchingTimesError, RuntimeError):
    """The objective tape could not be recorded or evaluated."""


class SolverError(SwitchingTimesError, RuntimeError):
    """Ipopt could not be set up for the problem."""


class SolveAbortedError(SolverError):
    """A solve was aborted because an evaluation failed."""
