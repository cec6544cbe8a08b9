"""
Problem set-up: the aeration scenario, day-ahead price vectors and a feasible
chained initial guess for the switch times.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields

import numpy as np

from .constants import N_CONSTANT_PARAMETERS
from .exceptions import ProblemSetupError
from .problem import SwitchingTimesProblem

logger = logging.getLogger(__name__)

# Reference plant: dilution rate, influent ammonium, nitrification and
# denitrification rates, half-saturations, aeration power, discharge taxes
# and the three sigmoid sharpnesses (see ``constants``).
REFERENCE_CONSTANTS = (0.00067, 36.9, 0.073, 0.1, 2.0, 0.3, 7.84, 0.5, 0.0, 1.0, 1.0, 1.0)
REFERENCE_X0 = (1.12, 0.87, 0.0, 0.0)
REFERENCE_PRICE = 10.0
REFERENCE_N_PRICES = 48


def day_ahead_parameters(prices, slot_length, padding):
    """
    Build ``p_dynamic`` from a sequence of slot prices.

    Breakpoints are ``k * slot_length`` for ``k = 0..m``; the first is moved
    back and the last moved forward by ``padding`` so that the smoothed price
    stays flat at the ends of the horizon.
    """
    prices = np.asarray(prices, dtype=float).flatten()
    if prices.size == 0:
        raise ProblemSetupError("At least one day-ahead price is required.")
    if slot_length <= 0:
        raise ProblemSetupError(f"slot_length must be positive, got {slot_length}.")
    if padding < 0:
        raise ProblemSetupError(f"padding must be non-negative, got {padding}.")

    times = np.arange(prices.size + 1, dtype=float) * slot_length
    times[0] -= padding
    times[-1] += padding
    return np.concatenate([prices, times])


def chain_switching_times(n, on_bound, off_bound, start=0.0, margin=1.0):
    """
    Increasing switch times that satisfy the minimum durations.

    ``off_k = on_k + on_bound[0] + margin`` and
    ``on_{k+1} = off_k + off_bound[0] + margin``. Returns ``[on..., off...]``.
    """
    if n <= 0:
        raise ProblemSetupError(f"Number of switches must be positive, got {n}.")
    on_min = float(on_bound[0])
    off_min = float(off_bound[0])
    on = np.empty(n)
    off = np.empty(n)
    t = float(start)
    for k in range(n):
        on[k] = t
        off[k] = on[k] + on_min + margin
        t = off[k] + off_min + margin
    return np.concatenate([on, off])


@dataclass
class AerationScenario:
    """
    All inputs of an aeration switching-time problem.

    ``upper`` defaults to ``tf`` and ``initial_guess`` to a chained guess
    starting at ``t0``.
    """
    p_const: list = field(default_factory=lambda: list(REFERENCE_CONSTANTS))
    prices: list = field(default_factory=lambda: [REFERENCE_PRICE] * REFERENCE_N_PRICES)
    slot_length: float = 60.0
    padding: float = 60.0
    x0: list = field(default_factory=lambda: list(REFERENCE_X0))
    t0: float = 0.0
    tf: float = 360.0
    dt: float = 0.2
    n_switches: int = 10
    lower: float = 0.0
    upper: float = None
    on_bound: list = field(default_factory=lambda: [6.0, 60.0])
    off_bound: list = field(default_factory=lambda: [20.0, 120.0])
    margin: float = 1.0
    initial_guess: list = None

    def __post_init__(self):
        if len(self.p_const) != N_CONSTANT_PARAMETERS:
            raise ProblemSetupError(
                f"p_const must have {N_CONSTANT_PARAMETERS} entries, got {len(self.p_const)}."
            )
        if self.upper is None:
            self.upper = self.tf

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ProblemSetupError(f"Unknown scenario keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self):
        return asdict(self)

    def p_dynamic(self):
        return day_ahead_parameters(self.prices, self.slot_length, self.padding)

    def starting_point(self):
        if self.initial_guess is not None:
            return np.asarray(self.initial_guess, dtype=float)
        return chain_switching_times(self.n_switches, self.on_bound, self.off_bound,
                                     start=self.t0, margin=self.margin)

    def build_problem(self):
        """Return a validated ``SwitchingTimesProblem`` in the setup phase."""
        n_vars = 2 * self.n_switches
        problem = SwitchingTimesProblem()
        problem.set_p_const(self.p_const)
        problem.set_p_dynamic(self.p_dynamic())
        problem.set_p_optimize(self.starting_point())
        problem.set_x0(self.x0)
        problem.set_t0(self.t0)
        problem.set_tf(self.tf)
        problem.set_dt(self.dt)
        problem.set_lower_bound(np.full(n_vars, self.lower))
        problem.set_upper_bound(np.full(n_vars, self.upper))
        problem.set_on_bound(self.on_bound)
        problem.set_off_bound(self.off_bound)
        problem.validate()
        logger.info(
            f"Built aeration problem: {self.n_switches} switches over [{self.t0}, {self.tf}] "
            f"with dt={self.dt}."
        )
        return problem


def default_aeration_scenario():
    """Reference scenario: ten aeration cycles over six hours at a flat price."""
    return AerationScenario()


def load_scenario(path):
    """Read an ``AerationScenario`` from a JSON file of its fields."""
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ProblemSetupError(f"Scenario file {path} must contain a JSON object.")
    logger.debug(f"Loaded scenario from {path}.")
    return AerationScenario.from_dict(data)


def build_problem(scenario=None):
    """Problem for ``scenario``, or for the default scenario."""
    if scenario is None:
        scenario = default_aeration_scenario()
    return scenario.build_problem()
