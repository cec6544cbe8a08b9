"""
Finite-difference check of the taped objective gradient.
"""

import logging
from collections import namedtuple

import numpy as np
from scipy.optimize import approx_fprime

logger = logging.getLogger(__name__)

GradientCheck = namedtuple('GradientCheck', ['analytic', 'finite_difference', 'max_abs_error'])


def check_gradient(problem, x, step=1e-4):
    """
    Compare ``problem.objective_gradient`` with a forward-difference
    approximation of ``problem.objective_value`` at ``x``.
    """
    x = np.asarray(x, dtype=float).flatten()
    analytic = problem.objective_gradient(x)
    finite_difference = approx_fprime(x, problem.objective_value, step)
    max_abs_error = float(np.max(np.abs(analytic - finite_difference)))
    logger.info(f"Gradient check at {x.size} variables: max abs error {max_abs_error:.3e}")
    return GradientCheck(analytic, finite_difference, max_abs_error)
