"""
Fixed-step explicit Runge-Kutta integration.

``rk5_step`` advances a state with the fifth-order Dormand-Prince formula.
It only uses arithmetic on the state, so it works on numpy arrays as well as
on CasADi expressions.
"""

import numpy as np

from .constants import STEP_EPSILON

# Dormand-Prince 5(4) tableau. The last stage of the method is only needed for
# the embedded error estimate and is omitted for fixed stepping.
DOPRI5_C = (0.0, 1.0 / 5.0, 3.0 / 10.0, 4.0 / 5.0, 8.0 / 9.0, 1.0)
DOPRI5_A = (
    (),
    (1.0 / 5.0,),
    (3.0 / 40.0, 9.0 / 40.0),
    (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0),
    (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0),
    (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0),
)
DOPRI5_B = (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0)


def rk5_step(rhs, x, t, h):
    """
    Advance ``x`` from ``t`` to ``t + h``.

    ``rhs(x, t)`` must return the state derivative.
    """
    k = []
    for c_i, a_i in zip(DOPRI5_C, DOPRI5_A):
        x_i = x
        for a_ij, k_j in zip(a_i, k):
            x_i = x_i + (h * a_ij) * k_j
        k.append(rhs(x_i, t + c_i * h))

    increment = None
    for b_i, k_i in zip(DOPRI5_B, k):
        if b_i == 0.0:
            continue
        term = b_i * k_i
        increment = term if increment is None else increment + term
    return x + h * increment


def step_sizes(t0, tf, dt):
    """
    Split ``[t0, tf]`` into steps of ``dt``.

    Returns a list of ``(t, h)`` pairs. When ``(tf - t0) / dt`` is not an
    integer a final shorter step ends exactly at ``tf``, instead of stopping at
    the last full step before it.
    """
    if dt <= 0:
        raise ValueError(f"Step size must be positive, got dt={dt}.")
    if tf < t0:
        raise ValueError(f"End time {tf} lies before start time {t0}.")

    n_full = int(np.floor((tf - t0) / dt + STEP_EPSILON))
    steps = [(t0 + k * dt, dt) for k in range(n_full)]
    remainder = (tf - t0) - n_full * dt
    if remainder > STEP_EPSILON * dt:
        steps.append((t0 + n_full * dt, remainder))
    return steps


def integrate_const(stepper, x, t0, tf, dt, observer=None):
    """
    Integrate from ``t0`` to ``tf`` with constant steps of ``dt``.

    ``stepper(x, t, h)`` returns the state at ``t + h``. ``observer(x, t)`` is
    called for the initial state and after every step; it may raise to stop the
    integration.
    """
    if observer is not None:
        observer(x, t0)
    for t, h in step_sizes(t0, tf, dt):
        x = stepper(x, t, h)
        if observer is not None:
            observer(x, t + h)
    return x
