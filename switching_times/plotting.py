"""
Figure of a switching schedule: concentrations, accumulated costs, the
aeration gate and the day-ahead price over the horizon.
"""

import logging

import numpy as np
import matplotlib.pyplot as plt

from .constants import AMMONIUM, DISCHARGE_TAX, ENERGY_COST, NITRATE
from .dynamics import day_ahead_price, regime
from .simulator import simulate_trajectory

logger = logging.getLogger(__name__)


def plot_schedule(problem, p_opt, path=None):
    """
    Simulate ``problem`` with the switch times ``p_opt`` and plot the result.

    The figure is saved to ``path`` when given. Returns the figure.
    """
    p_opt = np.asarray(p_opt, dtype=float).flatten()
    p_const = problem.p_const
    p_dynamic = problem.p_dynamic
    times, states = simulate_trajectory(
        problem.x0, problem.t0, problem.tf, problem.dt, p_dynamic, p_opt, p_const
    )
    gate = np.array([regime(t, p_opt, p_const) for t in times])
    price = np.array([day_ahead_price(t, p_dynamic, p_const) for t in times])
    n = p_opt.size // 2

    fig, axs = plt.subplots(4, 1, figsize=(10, 10), sharex=True)

    axs[0].plot(times, states[:, AMMONIUM], label='NH')
    axs[0].plot(times, states[:, NITRATE], label='NO')
    axs[1].plot(times, states[:, ENERGY_COST], label='Electricity')
    axs[1].plot(times, states[:, DISCHARGE_TAX], label='Discharge tax')
    axs[2].plot(times, gate, 'k')
    axs[3].step(times, price, 'r', where='post')

    for on, off in zip(p_opt[:n], p_opt[n:]):
        for ax in axs:
            ax.axvspan(on, off, color='tab:blue', alpha=0.1)

    axs[0].set_ylabel('Concentration')
    axs[1].set_ylabel('Cost')
    axs[2].set_ylabel('Aeration')
    axs[3].set_ylabel('Price')
    axs[3].set_xlabel('Time [min]')
    axs[0].legend()
    axs[1].legend()

    plt.tight_layout()
    if path is not None:
        fig.savefig(path)
        logger.info(f"Schedule plot saved to {path}")
    return fig
