import sys
import os
import numpy as np
import logging

# Path setup
script_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.append(os.path.join(script_dir, '../..'))  # switching_times

from switching_times import IpoptSettings, SwitchingTimesSolver, default_aeration_scenario
from switching_times.plotting import plot_schedule


def main():
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)
    logger.info("Starting switching-time optimization for intermittent aeration")

    # 1. Setup Problem
    scenario = default_aeration_scenario()
    problem = scenario.build_problem()
    p_start = problem.starting_point()
    n = problem.n_switches

    logger.info(f"Initial objective: {problem.objective_value(p_start):.6g}")

    # 2. Solve
    solver = SwitchingTimesSolver(problem, IpoptSettings(tol=1e-4, print_level=5))
    result = solver.solve()

    # 3. Report
    print(f"Status (init/solve): {result.status_init} / {result.status_solve} ({result.return_status})")
    print(f"Objective: {result.objective:.6g}")
    print(f"{'k':>3} {'on':>10} {'on_0':>10} {'off':>10} {'off_0':>10}")
    for k in range(n):
        print(f"{k:>3} {result.on[k]:>10.3f} {p_start[k]:>10.3f} "
              f"{result.off[k]:>10.3f} {p_start[n + k]:>10.3f}")

    g = problem.constraint_values(result.p_opt)
    bounds = problem.bounds()
    violation = np.max(np.maximum(bounds.g_l - g, 0.0) + np.maximum(g - bounds.g_u, 0.0))
    logger.info(f"Max constraint violation: {violation:.3e}")

    # 4. Plot
    plot_schedule(problem, result.p_opt, path='aeration_switching_times.png')
    print("Results saved to aeration_switching_times.png")


if __name__ == "__main__":
    main()
