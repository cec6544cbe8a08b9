"""
End-point (Mayer) cost of the aeration problem.
"""

from .constants import DISCHARGE_TAX, ENERGY_COST


def objective(x, p_dynamic, p_opt, p_const):
    """
    Total cost at the end of the horizon: accumulated electricity cost plus
    accumulated discharge tax. Only the terminal state ``x`` enters.
    """
    return x[ENERGY_COST] + x[DISCHARGE_TAX]
