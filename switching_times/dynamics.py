"""
Hybrid aeration dynamics with smoothly gated on/off regimes.

State ``x = [NH, NO, C_E, C_T]``: ammonium and nitrate concentrations, the
accumulated electricity cost of aeration and the accumulated discharge tax.
Aeration is "on" between ``on[k]`` and ``off[k]``; the regime is selected with
smooth steps so that the right-hand side is differentiable in the switch
times.

All functions here accept either numpy values or CasADi symbols.
"""

from .constants import (
    AERATION_POWER,
    AMMONIUM,
    AMMONIUM_HALF_SATURATION,
    AMMONIUM_TAX,
    DAY_AHEAD_SHARPNESS,
    DENITRIFICATION_RATE,
    DILUTION_RATE,
    INFLUENT_AMMONIUM,
    NITRATE,
    NITRATE_HALF_SATURATION,
    NITRATE_TAX,
    NITRIFICATION_RATE,
    PRICE_SCALE,
    SWITCH_OFF_SHARPNESS,
    SWITCH_ON_SHARPNESS,
)
from .scalar import soft_step, stack, total


def constant_values(p_const):
    """Return ``p_const`` as plain floats so they enter a tape as literals."""
    return [float(v) for v in p_const]


def n_switches(p_opt):
    return p_opt.shape[0] // 2


def split_switching_times(p_opt):
    """Split the decision vector into its on-time and off-time segments."""
    n = n_switches(p_opt)
    return p_opt[0:n], p_opt[n:2 * n]


def n_prices(p_dynamic):
    return (p_dynamic.shape[0] - 1) // 2


def split_day_ahead(p_dynamic):
    """Split the dynamic parameters into prices and their breakpoints."""
    m = n_prices(p_dynamic)
    return p_dynamic[0:m], p_dynamic[m:2 * m + 1]


def regime(t, p_opt, p_const):
    """
    Smooth aeration gate at time ``t``.

    ``sum_k S(t - on[k]) - S(t - off[k])``: close to 1 inside an on-interval
    and close to 0 outside when the switch times are ordered.
    """
    on, off = split_switching_times(p_opt)
    gate = (soft_step(t - on, float(p_const[SWITCH_ON_SHARPNESS]))
            - soft_step(t - off, float(p_const[SWITCH_OFF_SHARPNESS])))
    return total(gate)


def day_ahead_price(t, p_dynamic, p_const):
    """Smoothed piecewise-constant day-ahead price at time ``t``."""
    prices, times = split_day_ahead(p_dynamic)
    m = n_prices(p_dynamic)
    sharpness = float(p_const[DAY_AHEAD_SHARPNESS])
    window = (soft_step(t - times[0:m], sharpness)
              - soft_step(t - times[1:m + 1], sharpness))
    return total(prices * window)


def model(x, t, p_dynamic, p_opt, p_const):
    """
    Right-hand side ``dx/dt`` of the aeration model.

    Parameters
    ----------
    x : state vector (4,)
    t : time [min]
    p_dynamic : day-ahead prices followed by their breakpoints
    p_opt : on-times followed by off-times
    p_const : constant parameters, see ``constants``
    """
    c = constant_values(p_const)
    nh = x[AMMONIUM]
    no = x[NITRATE]
    dilution = c[DILUTION_RATE]

    u = regime(t, p_opt, c)
    price = day_ahead_price(t, p_dynamic, c)

    nitrification = u * c[NITRIFICATION_RATE] * nh / (c[AMMONIUM_HALF_SATURATION] + nh)
    denitrification = (1.0 - u) * c[DENITRIFICATION_RATE] * no / (c[NITRATE_HALF_SATURATION] + no)

    return stack([
        dilution * (c[INFLUENT_AMMONIUM] - nh) - nitrification,
        -dilution * no + nitrification - denitrification,
        u * c[AERATION_POWER] * price / PRICE_SCALE,
        dilution * (c[AMMONIUM_TAX] * nh + c[NITRATE_TAX] * no),
    ])
