from .exceptions import (
    IntegrationError,
    PhaseError,
    ProblemSetupError,
    SolveAbortedError,
    SolverError,
    SwitchingTimesError,
    TapeError,
)
from .dynamics import model
from .objective import objective
from .simulator import simulate, simulate_trajectory
from .tape import DifferentiationCache, ObjectiveTape, TapeState
from .problem import Phase, SolverResult, SwitchingTimesProblem
from .solver import IPOPT_RETURN_CODES, IpoptSettings, SwitchingTimesSolver, solve
from .scenario import (
    AerationScenario,
    build_problem,
    chain_switching_times,
    day_ahead_parameters,
    default_aeration_scenario,
    load_scenario,
)
from .diagnostics import GradientCheck, check_gradient

__version__ = "0.1.0"
