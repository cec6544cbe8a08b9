"""
Numeric primitives shared by the plain and the differentiable code paths.

The dynamics and the objective are written once against these helpers. Plain
numbers and numpy arrays are handled by numpy; CasADi ``SX``/``MX`` values are
handled by CasADi, so the same expressions can be evaluated directly or
recorded into a tape.
"""

import numpy as np
import casadi

from .constants import CEXP_CAP

SYMBOLIC_TYPES = (casadi.SX, casadi.MX)


def is_symbolic(*values):
    return any(isinstance(v, SYMBOLIC_TYPES) for v in values)


def cexp(x, cap=CEXP_CAP):
    """
    Capped exponential ``exp(min(x, cap))``.

    The cap keeps the value finite for arbitrarily large arguments, on both
    code paths.
    """
    if is_symbolic(x):
        return casadi.exp(casadi.fmin(x, cap))
    return np.exp(np.minimum(x, cap))


def soft_sign(x, cap=CEXP_CAP):
    """
    Smooth sign function ``(1 - e^-x) / (1 + e^-x)`` built on ``cexp``.

    Saturates to -1 for very negative and to +1 for very positive arguments.
    """
    e = cexp(-x, cap)
    return (1.0 - e) / (1.0 + e)


def soft_step(x, sharpness):
    """Smooth Heaviside step in [0, 1]; ``sharpness`` scales the argument."""
    return 0.5 * (1.0 + soft_sign(sharpness * x))


def total(x):
    if is_symbolic(x):
        return casadi.sum1(x)
    return np.sum(x)


def stack(components):
    """Collect scalar components into a state vector of the matching type."""
    if is_symbolic(*components):
        return casadi.vertcat(*components)
    return np.array(components, dtype=float)
