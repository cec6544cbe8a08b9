"""
Ipopt driver for ``SwitchingTimesProblem``.

The problem's callbacks are wrapped in CasADi ``Callback`` objects so that
Ipopt, called through ``nlpsol``, queries the adapter for every objective,
gradient, constraint and constraint-Jacobian evaluation. No Hessian is
supplied, so Ipopt runs with a limited-memory quasi-Newton approximation.
"""

from casadi import DM, MX, Callback, Sparsity, nlpsol
import numpy as np
import logging
from dataclasses import dataclass, field

from .exceptions import IntegrationError, SolveAbortedError, SolverError, TapeError
from .problem import SwitchingTimesProblem

logger = logging.getLogger(__name__)

# Ipopt ApplicationReturnStatus codes, keyed by the names CasADi reports in
# solver.stats()['return_status'].
IPOPT_RETURN_CODES = {
    'Solve_Succeeded': 0,
    'Solved_To_Acceptable_Level': 1,
    'Infeasible_Problem_Detected': 2,
    'Search_Direction_Becomes_Too_Small': 3,
    'Diverging_Iterates': 4,
    'User_Requested_Stop': 5,
    'Feasible_Point_Found': 6,
    'Maximum_Iterations_Exceeded': -1,
    'Restoration_Failed': -2,
    'Error_In_Step_Computation': -3,
    'Maximum_CpuTime_Exceeded': -4,
    'Maximum_WallTime_Exceeded': -5,
    'Not_Enough_Degrees_Of_Freedom': -10,
    'Invalid_Problem_Definition': -11,
    'Invalid_Option': -12,
    'Invalid_Number_Detected': -13,
    'Unrecoverable_Exception': -100,
    'NonIpopt_Exception_Thrown': -101,
    'Insufficient_Memory': -102,
    'Internal_Error': -199,
}
SOLVE_SUCCEEDED = IPOPT_RETURN_CODES['Solve_Succeeded']
INVALID_OPTION = IPOPT_RETURN_CODES['Invalid_Option']


def ipopt_status_code(return_status):
    """Integer Ipopt status for a CasADi ``return_status`` name."""
    code = IPOPT_RETURN_CODES.get(return_status)
    if code is None:
        logger.warning(f"Unknown Ipopt return status '{return_status}'.")
        return IPOPT_RETURN_CODES['Internal_Error']
    return code


@dataclass
class IpoptSettings:
    """
    Options passed to Ipopt. The adapter supplies no Hessian, so only the
    limited-memory Hessian approximation is accepted.
    """
    tol: float = 1e-4
    hessian_approximation: str = 'limited-memory'
    print_level: int = 5
    max_iter: int = 3000
    extra: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.hessian_approximation != 'limited-memory':
            raise ValueError(
                "No exact Hessian is available; hessian_approximation must be 'limited-memory', "
                f"got '{self.hessian_approximation}'."
            )
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}.")

    def to_options(self):
        opts = {
            'ipopt.tol': self.tol,
            'ipopt.hessian_approximation': self.hessian_approximation,
            'ipopt.print_level': self.print_level,
            'ipopt.max_iter': self.max_iter,
            'ipopt.sb': 'yes',
            'print_time': bool(self.print_level > 0),
        }
        opts.update(self.extra)
        return opts


class _ProblemCallback(Callback):
    """
    Base class for callbacks evaluating the adapter. Evaluation failures are
    recorded in ``errors`` before they are handed to CasADi.
    """
    def __init__(self, name, problem, errors, opts=None):
        Callback.__init__(self)
        self.problem = problem
        self.errors = errors
        dims = problem.dimensions()
        self.n_vars = dims.n_vars
        self.n_constraints = dims.n_constraints
        self.construct(name, opts or {})

    def _variables(self, arg):
        return arg[0].full().flatten()

    def _guarded(self, evaluate, *args):
        try:
            return evaluate(*args)
        except (IntegrationError, TapeError) as e:
            logger.error(f"{self.name()} failed: {e}")
            self.errors.append(e)
            raise


class ObjectiveCallback(_ProblemCallback):
    def get_n_in(self):
        return 1

    def get_n_out(self):
        return 1

    def get_sparsity_in(self, i):
        return Sparsity.dense(self.n_vars, 1)

    def get_sparsity_out(self, i):
        return Sparsity.dense(1, 1)

    def eval(self, arg):
        x = self._variables(arg)
        return [DM(self._guarded(self.problem.objective_value, x))]

    def has_jacobian(self):
        return True

    def get_jacobian(self, name, inames, onames, opts):
        # Keep a reference; CasADi does not own Python callbacks.
        self.jacobian_callback = ObjectiveGradientCallback(name, self.problem, self.errors, opts)
        return self.jacobian_callback


class ObjectiveGradientCallback(_ProblemCallback):
    """Jacobian of the objective: inputs ``(x, f)``, output ``df/dx`` (1 x n)."""
    def get_n_in(self):
        return 2

    def get_n_out(self):
        return 1

    def get_sparsity_in(self, i):
        if i == 0:
            return Sparsity.dense(self.n_vars, 1)
        return Sparsity.dense(1, 1)

    def get_sparsity_out(self, i):
        return Sparsity.dense(1, self.n_vars)

    def eval(self, arg):
        x = self._variables(arg)
        grad_f = self._guarded(self.problem.objective_gradient, x)
        return [DM(grad_f.reshape(1, -1))]


class ConstraintCallback(_ProblemCallback):
    def get_n_in(self):
        return 1

    def get_n_out(self):
        return 1

    def get_sparsity_in(self, i):
        return Sparsity.dense(self.n_vars, 1)

    def get_sparsity_out(self, i):
        return Sparsity.dense(self.n_constraints, 1)

    def eval(self, arg):
        x = self._variables(arg)
        return [DM(self.problem.constraint_values(x))]

    def has_jacobian(self):
        return True

    def get_jacobian(self, name, inames, onames, opts):
        self.jacobian_callback = ConstraintJacobianCallback(name, self.problem, self.errors, opts)
        return self.jacobian_callback


class ConstraintJacobianCallback(_ProblemCallback):
    """
    Jacobian of the constraints with the adapter's fixed triplet structure.
    Inputs ``(x, g)``, output ``dg/dx`` (m x n, sparse).
    """
    def __init__(self, name, problem, errors, opts=None):
        rows, cols = problem.constraint_jacobian()
        self.rows = rows.tolist()
        self.cols = cols.tolist()
        self.values = np.zeros(len(self.rows))
        _ProblemCallback.__init__(self, name, problem, errors, opts)

    def get_n_in(self):
        return 2

    def get_n_out(self):
        return 1

    def get_sparsity_in(self, i):
        if i == 0:
            return Sparsity.dense(self.n_vars, 1)
        return Sparsity.dense(self.n_constraints, 1)

    def get_sparsity_out(self, i):
        return Sparsity.triplet(self.n_constraints, self.n_vars, self.rows, self.cols)

    def eval(self, arg):
        x = self._variables(arg)
        self.problem.constraint_jacobian(x, self.values)
        return [DM.triplet(self.rows, self.cols, DM(self.values), self.n_constraints, self.n_vars)]


class SwitchingTimesSolver:
    """
    Solve a ``SwitchingTimesProblem`` with Ipopt.

    The problem is borrowed for the duration of ``solve``; afterwards it holds
    the optimized switch times and the status codes.
    """
    def __init__(self, problem, settings=None):
        if not isinstance(problem, SwitchingTimesProblem):
            raise TypeError("problem must be a SwitchingTimesProblem.")
        self.problem = problem
        self.settings = settings if settings is not None else IpoptSettings()
        self.errors = []
        self.stats = {}
        self._callbacks = []

    def _build_solver(self):
        dims = self.problem.dimensions()
        objective_cb = ObjectiveCallback('switching_times_f', self.problem, self.errors)
        constraint_cb = ConstraintCallback('switching_times_g', self.problem, self.errors)
        self._callbacks = [objective_cb, constraint_cb]

        p_opt = MX.sym('p_opt', dims.n_vars)
        nlp_prob = {'x': p_opt, 'f': objective_cb(p_opt), 'g': constraint_cb(p_opt)}
        return nlpsol('switching_times', 'ipopt', nlp_prob, self.settings.to_options())

    def solve(self):
        problem = self.problem
        problem.begin_solve()
        self.errors.clear()
        dims = problem.dimensions()
        logger.info(
            f"Solving switching-time problem: {dims.n_vars} variables, {dims.n_constraints} constraints."
        )

        try:
            solver = self._build_solver()
        except RuntimeError as e:
            problem.status_init = INVALID_OPTION
            problem.abort_solve()
            logger.error(f"Failed to initialize Ipopt: {e}")
            raise SolverError(f"Failed to initialize Ipopt: {e}") from e
        problem.status_init = SOLVE_SUCCEEDED

        bounds = problem.bounds()
        try:
            sol = solver(
                x0=problem.starting_point(),
                lbx=bounds.x_l,
                ubx=bounds.x_u,
                lbg=bounds.g_l,
                ubg=bounds.g_u
            )
        except RuntimeError as e:
            problem.abort_solve()
            logger.error(f"Error during NLP solve: {e}")
            cause = self.errors[0] if self.errors else e
            raise SolveAbortedError(f"Ipopt solve aborted: {cause}") from cause

        if self.errors:
            problem.abort_solve()
            logger.error(f"Solve aborted after {len(self.errors)} failed evaluation(s).")
            raise SolveAbortedError(f"Evaluation failed during solve: {self.errors[0]}") from self.errors[0]

        self.stats = solver.stats()
        return_status = self.stats.get('return_status', 'Unknown')
        status = ipopt_status_code(return_status)
        if not self.stats.get('success', False):
            logger.warning(f"Ipopt did not converge: {return_status}")

        p_opt = sol['x'].full().flatten()
        problem.finalize(status, p_opt, float(sol['f']), return_status)
        result = problem.result
        logger.info(
            f"Ipopt finished with status {status} ({return_status}), objective {result.objective:.6g}."
        )
        return result


def solve(problem, settings=None):
    """Solve ``problem`` with Ipopt and return its ``SolverResult``."""
    return SwitchingTimesSolver(problem, settings).solve()
