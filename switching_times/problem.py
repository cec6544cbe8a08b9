"""
NLP adapter for the switching-time problem.

``SwitchingTimesProblem`` owns the problem data and the objective tape, and
answers the queries an Ipopt-style solver issues: dimensions, bounds, starting
point, objective value and gradient, constraint values and Jacobian.

Constraints (n switches, x = [on_0..on_{n-1}, off_0..off_{n-1}]):

    on_bound[0]  <= off_k     - on_k  <= on_bound[1]     k = 0..n-1
    off_bound[0] <= on_{k+1}  - off_k <= off_bound[1]    k = 0..n-2
"""

import logging
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .constants import N_CONSTANT_PARAMETERS, N_STATES
from .dynamics import n_prices, split_day_ahead
from .exceptions import PhaseError, ProblemSetupError
from .objective import objective
from .simulator import simulate
from .tape import DifferentiationCache

logger = logging.getLogger(__name__)

ProblemDimensions = namedtuple('ProblemDimensions', ['n_vars', 'n_constraints', 'nnz_jac_g', 'nnz_h_lag'])
ProblemBounds = namedtuple('ProblemBounds', ['x_l', 'x_u', 'g_l', 'g_u'])


class Phase(Enum):
    SETUP = "setup"
    SOLVING = "solving"
    FINALIZED = "finalized"


@dataclass(frozen=True, eq=False)
class SolverResult:
    """Optimized switch times and the Ipopt status codes of one solve."""
    p_opt: np.ndarray
    status_init: int
    status_solve: int
    return_status: str = ""
    objective: float = float('nan')
    success: bool = False

    @property
    def n_switches(self):
        return self.p_opt.size // 2

    @property
    def on(self):
        return self.p_opt[:self.n_switches]

    @property
    def off(self):
        return self.p_opt[self.n_switches:]


def _as_vector(values, name):
    try:
        vector = np.array(values, dtype=float).flatten()
    except (TypeError, ValueError) as e:
        raise ProblemSetupError(f"{name} must be a numeric vector: {e}") from e
    return vector


class SwitchingTimesProblem:
    """
    Optimal switching-time problem exposed through solver callbacks.

    Mutations are only accepted in the setup phase. During a solve the solver
    may call the query methods any number of times in any order; they do not
    change the problem data.
    """
    def __init__(self):
        self._p_const = np.zeros(0)
        self._p_dynamic = np.zeros(0)
        self._p_opt = np.zeros(0)
        self._p_opt_ipopt = np.zeros(0)
        self._lower_bound = np.zeros(0)
        self._upper_bound = np.zeros(0)
        self._on_bound = np.zeros(0)
        self._off_bound = np.zeros(0)
        self._t0 = 0.0
        self._tf = 0.0
        self._dt = 0.0
        self._x0 = np.zeros(0)

        self.status_init = None
        self.status_solve = None
        self.return_status = ""
        self.final_objective = float('nan')
        self.phase = Phase.SETUP

        self.cache = DifferentiationCache(self._record_objective)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def _require_setup(self, action):
        if self.phase is not Phase.SETUP:
            raise PhaseError(f"Cannot {action} in phase '{self.phase.value}'.")

    def set_p_const(self, p_const):
        self._require_setup("set constant parameters")
        p_const = _as_vector(p_const, "p_const")
        if p_const.size != self._p_const.size:
            self.cache.invalidate_structure()
        elif self.cache.tape is not None and not np.array_equal(p_const, self._p_const):
            logger.warning(
                "Constant parameters are embedded in the recorded tape; gradients keep the "
                "previous values until the next retape."
            )
        self._p_const = p_const

    def set_p_dynamic(self, p_dynamic):
        self._require_setup("set dynamic parameters")
        p_dynamic = _as_vector(p_dynamic, "p_dynamic")
        if p_dynamic.size != self._p_dynamic.size:
            self.cache.invalidate_structure()
        self.cache.invalidate_parameters()
        self._p_dynamic = p_dynamic

    def set_p_optimize(self, p_opt):
        self._require_setup("set decision variables")
        p_opt = _as_vector(p_opt, "p_opt")
        if p_opt.size != self._p_opt.size:
            self.cache.invalidate_structure()
        self._p_opt = p_opt
        self._p_opt_ipopt = np.zeros(p_opt.size)

    def set_x0(self, x0):
        self._require_setup("set the initial state")
        x0 = _as_vector(x0, "x0")
        if x0.size != self._x0.size:
            self.cache.invalidate_structure()
        elif not np.array_equal(x0, self._x0):
            self.cache.invalidate_parameters()
        self._x0 = x0

    def _set_horizon(self, name, value):
        self._require_setup(f"set {name}")
        value = float(value)
        if value != getattr(self, f"_{name}"):
            # The number of recorded steps depends on the horizon.
            self.cache.invalidate_structure()
        setattr(self, f"_{name}", value)

    def set_t0(self, t0):
        self._set_horizon("t0", t0)

    def set_tf(self, tf):
        self._set_horizon("tf", tf)

    def set_dt(self, dt):
        self._set_horizon("dt", dt)

    def set_lower_bound(self, lower_bound):
        self._require_setup("set variable bounds")
        self._lower_bound = _as_vector(lower_bound, "lower_bound")

    def set_upper_bound(self, upper_bound):
        self._require_setup("set variable bounds")
        self._upper_bound = _as_vector(upper_bound, "upper_bound")

    def set_on_bound(self, on_bound):
        self._require_setup("set on-duration bounds")
        self._on_bound = _as_vector(on_bound, "on_bound")

    def set_off_bound(self, off_bound):
        self._require_setup("set off-duration bounds")
        self._off_bound = _as_vector(off_bound, "off_bound")

    # Read-only views
    @property
    def p_const(self):
        return self._p_const.copy()

    @property
    def p_dynamic(self):
        return self._p_dynamic.copy()

    @property
    def p_optimize(self):
        return self._p_opt.copy()

    @property
    def p_optimize_ipopt(self):
        return self._p_opt_ipopt.copy()

    @property
    def t0(self):
        return self._t0

    @property
    def tf(self):
        return self._tf

    @property
    def dt(self):
        return self._dt

    @property
    def x0(self):
        return self._x0.copy()

    @property
    def lower_bound(self):
        return self._lower_bound.copy()

    @property
    def upper_bound(self):
        return self._upper_bound.copy()

    @property
    def on_bound(self):
        return self._on_bound.copy()

    @property
    def off_bound(self):
        return self._off_bound.copy()

    @property
    def n_switches(self):
        return self._p_opt.size // 2

    def validate(self):
        """Reject inconsistent problem data before a solve starts."""
        n_opt = self._p_opt.size
        if n_opt == 0 or n_opt % 2 != 0:
            raise ProblemSetupError(
                f"p_opt must hold n on-times followed by n off-times, got length {n_opt}."
            )
        if self._p_const.size != N_CONSTANT_PARAMETERS:
            raise ProblemSetupError(
                f"p_const must have {N_CONSTANT_PARAMETERS} entries, got {self._p_const.size}."
            )
        if self._p_dynamic.size < 3 or self._p_dynamic.size % 2 != 1:
            raise ProblemSetupError(
                f"p_dynamic must hold m prices and m + 1 breakpoints, got length {self._p_dynamic.size}."
            )
        if self._x0.size != N_STATES:
            raise ProblemSetupError(f"x0 must have {N_STATES} entries, got {self._x0.size}.")
        for name, bound in (("lower_bound", self._lower_bound), ("upper_bound", self._upper_bound)):
            if bound.size != n_opt:
                raise ProblemSetupError(
                    f"{name} has length {bound.size}, expected {n_opt} (length of p_opt)."
                )
        if np.any(self._lower_bound > self._upper_bound):
            raise ProblemSetupError("lower_bound exceeds upper_bound.")
        for name, bound in (("on_bound", self._on_bound), ("off_bound", self._off_bound)):
            if bound.size != 2:
                raise ProblemSetupError(f"{name} must be a (min, max) pair, got length {bound.size}.")
            if bound[0] > bound[1]:
                raise ProblemSetupError(f"{name} minimum {bound[0]} exceeds maximum {bound[1]}.")
        if self._dt <= 0:
            raise ProblemSetupError(f"dt must be positive, got {self._dt}.")
        if self._tf <= self._t0:
            raise ProblemSetupError(f"tf={self._tf} must be larger than t0={self._t0}.")

        vectors = (self._p_const, self._p_dynamic, self._p_opt, self._x0, self._on_bound, self._off_bound)
        if not all(np.all(np.isfinite(v)) for v in vectors):
            raise ProblemSetupError("Problem data contains non-finite values.")

        _, times = split_day_ahead(self._p_dynamic)
        if np.any(np.diff(times) <= 0):
            raise ProblemSetupError("Day-ahead breakpoints must be strictly increasing.")
        if times[0] > self._t0 or times[-1] < self._tf:
            raise ProblemSetupError(
                f"Day-ahead breakpoints [{times[0]}, {times[-1]}] do not bracket the horizon "
                f"[{self._t0}, {self._tf}]."
            )
        logger.debug(
            f"Problem validated: {self.n_switches} switches, {n_prices(self._p_dynamic)} prices."
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def begin_solve(self):
        self._require_setup("start a solve")
        self.validate()
        self.status_init = None
        self.status_solve = None
        self.phase = Phase.SOLVING

    def abort_solve(self):
        if self.phase is Phase.SOLVING:
            self.phase = Phase.SETUP

    def finalize(self, status, x, objective_value=None, return_status=""):
        """Store the solver's final iterate; the problem becomes read-only."""
        if self.phase is not Phase.SOLVING:
            raise PhaseError(f"Cannot finalize in phase '{self.phase.value}'.")
        x = self._variables(x)
        x.setflags(write=False)
        self._p_opt_ipopt = x
        self.status_solve = int(status)
        self.return_status = return_status
        if objective_value is not None:
            self.final_objective = float(objective_value)
        self.phase = Phase.FINALIZED

    @property
    def result(self):
        if self.phase is not Phase.FINALIZED:
            raise PhaseError("No result before the solve is finalized.")
        return SolverResult(
            p_opt=self._p_opt_ipopt,
            status_init=self.status_init,
            status_solve=self.status_solve,
            return_status=self.return_status,
            objective=self.final_objective,
            success=self.status_solve in (0, 1),
        )

    # ------------------------------------------------------------------
    # Solver queries
    # ------------------------------------------------------------------
    def _variables(self, x):
        x = np.array(x, dtype=float).flatten()
        if x.size != self._p_opt.size:
            raise ValueError(f"Expected {self._p_opt.size} variables, got {x.size}.")
        return x

    def dimensions(self):
        n_vars = self._p_opt.size
        n_constraints = n_vars - 1
        return ProblemDimensions(n_vars, n_constraints, 2 * n_constraints, 0)

    def bounds(self):
        n = self.n_switches
        g_l = np.empty(2 * n - 1)
        g_u = np.empty(2 * n - 1)
        g_l[:n] = self._on_bound[0]
        g_u[:n] = self._on_bound[1]
        g_l[n:] = self._off_bound[0]
        g_u[n:] = self._off_bound[1]
        return ProblemBounds(self._lower_bound.copy(), self._upper_bound.copy(), g_l, g_u)

    def starting_point(self):
        return self._p_opt.copy()

    def tape_constants(self):
        """Dynamic parameters followed by the initial state."""
        return np.concatenate([self._p_dynamic, self._x0])

    def _record_objective(self, p_opt, p_dynamic_x0):
        n_dynamic = self._p_dynamic.size
        n_x = self._x0.size
        if p_dynamic_x0.shape[0] != n_dynamic + n_x:
            raise ValueError(
                f"Tape constants have length {p_dynamic_x0.shape[0]}, expected {n_dynamic + n_x}."
            )
        p_dynamic = p_dynamic_x0[0:n_dynamic]
        x0 = p_dynamic_x0[n_dynamic:n_dynamic + n_x]
        xf = simulate(x0, self._t0, self._tf, self._dt, p_dynamic, p_opt, self._p_const)
        return objective(xf, p_dynamic, p_opt, self._p_const)

    def objective_value(self, x):
        x = self._variables(x)
        xf = simulate(self._x0, self._t0, self._tf, self._dt, self._p_dynamic, x, self._p_const)
        return float(objective(xf, self._p_dynamic, x, self._p_const))

    def objective_gradient(self, x):
        x = self._variables(x)
        return self.cache.gradient(x, self.tape_constants())

    def constraint_values(self, x):
        x = self._variables(x)
        n = self.n_switches
        on_durations = x[n:2 * n] - x[0:n]
        off_durations = x[1:n] - x[n:2 * n - 1]
        return np.concatenate([on_durations, off_durations])

    def constraint_jacobian(self, x=None, values=None):
        """
        Sparse Jacobian of the constraints in triplet form.

        With ``values=None`` the structure ``(rows, cols)`` is returned. Given a
        float buffer of length ``nnz_jac_g`` the nonzeros are written into it and
        the buffer is returned. The constraints are affine, so neither part
        depends on ``x``.
        """
        n = self.n_switches
        nnz = self.dimensions().nnz_jac_g
        if values is None:
            rows = np.empty(nnz, dtype=int)
            cols = np.empty(nnz, dtype=int)
            k = np.arange(n)
            rows[0:2 * n:2] = k
            cols[0:2 * n:2] = k
            rows[1:2 * n:2] = k
            cols[1:2 * n:2] = n + k
            k = np.arange(n - 1)
            rows[2 * n::2] = n + k
            cols[2 * n::2] = k + 1
            rows[2 * n + 1::2] = n + k
            cols[2 * n + 1::2] = n + k
            return rows, cols

        if not isinstance(values, np.ndarray) or values.shape != (nnz,):
            raise ValueError(f"values must be a numpy buffer of length {nnz}.")
        values[0:2 * n:2] = -1.0
        values[1:2 * n:2] = 1.0
        values[2 * n::2] = 1.0
        values[2 * n + 1::2] = -1.0
        return values

    def hessian(self, *args):
        """No exact Hessian is supplied; the solver must approximate it."""
        return None
