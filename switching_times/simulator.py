"""
Simulation of the aeration model over a fixed horizon.

``simulate`` is the single entry point for both code paths: with numeric
inputs it steps a numpy state and checks it for divergence, with CasADi
inputs it chains a compiled Dormand-Prince step function and returns the
symbolic terminal state used to record the objective tape.
"""

import logging

import numpy as np
from casadi import SX, Function

from .dynamics import constant_values, model
from .exceptions import IntegrationError
from .integrators import integrate_const, rk5_step
from .scalar import is_symbolic

logger = logging.getLogger(__name__)


def _check_finite(x, t):
    if not np.all(np.isfinite(x)):
        raise IntegrationError(f"Non-finite state {x} at t={t:.6g}.")


def build_step_function(n_x, n_dynamic, n_opt, p_const):
    """
    Compile one Dormand-Prince step of the model into a CasADi Function.

    Inputs are ``(x, t, h, p_dynamic, p_opt)``; the constant parameters are
    embedded as literals.
    """
    c = constant_values(p_const)
    x = SX.sym('x', n_x)
    t = SX.sym('t')
    h = SX.sym('h')
    p_dynamic = SX.sym('p_dynamic', n_dynamic)
    p_opt = SX.sym('p_opt', n_opt)

    def rhs(x_i, t_i):
        return model(x_i, t_i, p_dynamic, p_opt, c)

    x_next = rk5_step(rhs, x, t, h)
    return Function(
        'rk5_step',
        [x, t, h, p_dynamic, p_opt],
        [x_next],
        ['x', 't', 'h', 'p_dynamic', 'p_opt'],
        ['x_next']
    )


def simulate(x0, t0, tf, dt, p_dynamic, p_opt, p_const):
    """
    Integrate the model from ``t0`` to ``tf`` and return the terminal state.

    Raises ``IntegrationError`` when a numeric simulation produces a
    non-finite state.
    """
    if is_symbolic(x0, p_dynamic, p_opt):
        step_fn = build_step_function(x0.shape[0], p_dynamic.shape[0], p_opt.shape[0], p_const)

        def stepper(x, t, h):
            return step_fn(x, t, h, p_dynamic, p_opt)

        return integrate_const(stepper, x0, t0, tf, dt)

    c = constant_values(p_const)
    p_dynamic = np.asarray(p_dynamic, dtype=float)
    p_opt = np.asarray(p_opt, dtype=float)

    def rhs(x, t):
        return model(x, t, p_dynamic, p_opt, c)

    def stepper(x, t, h):
        return rk5_step(rhs, x, t, h)

    x = np.array(x0, dtype=float)
    return integrate_const(stepper, x, t0, tf, dt, observer=_check_finite)


def simulate_trajectory(x0, t0, tf, dt, p_dynamic, p_opt, p_const):
    """
    Numeric simulation that keeps every intermediate state.

    Returns
    -------
    times : ndarray (n_steps + 1,)
    states : ndarray (n_steps + 1, n_x)
    """
    c = constant_values(p_const)
    p_dynamic = np.asarray(p_dynamic, dtype=float)
    p_opt = np.asarray(p_opt, dtype=float)
    times = []
    states = []

    def rhs(x, t):
        return model(x, t, p_dynamic, p_opt, c)

    def stepper(x, t, h):
        return rk5_step(rhs, x, t, h)

    def observer(x, t):
        _check_finite(x, t)
        times.append(t)
        states.append(np.array(x, dtype=float))

    integrate_const(stepper, np.array(x0, dtype=float), t0, tf, dt, observer=observer)
    logger.debug(f"Simulated {len(times) - 1} steps from t={t0} to t={tf}.")
    return np.array(times), np.array(states)
