import casadi as ca
import numpy as np
import pytest

from switching_times.constants import ENERGY_COST, N_STATES, NITRATE, NITRATE_TAX
from switching_times.exceptions import IntegrationError
from switching_times.integrators import integrate_const, rk5_step, step_sizes
from switching_times.simulator import build_step_function, simulate, simulate_trajectory


class TestIntegrator:

    def test_step_sizes_whole_steps(self):
        steps = step_sizes(0.0, 1.0, 0.25)
        assert len(steps) == 4
        assert [h for _, h in steps] == pytest.approx([0.25] * 4)

    def test_step_sizes_trailing_partial_step(self):
        steps = step_sizes(0.0, 1.0, 0.3)
        assert len(steps) == 4
        t_last, h_last = steps[-1]
        assert t_last == pytest.approx(0.9)
        assert h_last == pytest.approx(0.1)
        assert t_last + h_last == pytest.approx(1.0)

    def test_step_sizes_rejects_bad_input(self):
        with pytest.raises(ValueError):
            step_sizes(0.0, 1.0, 0.0)
        with pytest.raises(ValueError):
            step_sizes(1.0, 0.0, 0.1)

    def test_rk5_accuracy_on_linear_decay(self):
        def stepper(x, t, h):
            return rk5_step(lambda x_i, t_i: -x_i, x, t, h)
        x = integrate_const(stepper, np.array([1.0]), 0.0, 1.0, 0.1)
        assert x[0] == pytest.approx(np.exp(-1.0), abs=1e-6)

    def test_observer_sees_every_step(self):
        seen = []
        def stepper(x, t, h):
            return x + h
        integrate_const(stepper, 0.0, 0.0, 1.0, 0.3, observer=lambda x, t: seen.append(t))
        assert seen == pytest.approx([0.0, 0.3, 0.6, 0.9, 1.0])


class TestSimulate:

    def test_numeric_simulation_is_finite(self, small_problem):
        p = small_problem
        xf = simulate(p.x0, p.t0, p.tf, p.dt, p.p_dynamic, p.starting_point(), p.p_const)
        assert xf.shape == (N_STATES,)
        assert np.all(np.isfinite(xf))
        assert xf[ENERGY_COST] > 0.0

    def test_symbolic_matches_numeric(self, small_problem):
        p = small_problem
        p_opt = ca.MX.sym('p_opt', 6)
        xf_sym = simulate(ca.MX(p.x0), p.t0, p.tf, p.dt, ca.MX(p.p_dynamic), p_opt, p.p_const)
        f = ca.Function('xf', [p_opt], [xf_sym])
        x = p.starting_point()
        expected = simulate(p.x0, p.t0, p.tf, p.dt, p.p_dynamic, x, p.p_const)
        assert f(x).full().flatten() == pytest.approx(expected, rel=1e-9, abs=1e-12)

    def test_step_function_signature(self, small_problem):
        step_fn = build_step_function(N_STATES, small_problem.p_dynamic.size, 6, small_problem.p_const)
        assert step_fn.n_in() == 5
        assert step_fn.name_in() == ['x', 't', 'h', 'p_dynamic', 'p_opt']
        assert step_fn.size1_out(0) == N_STATES

    def test_non_finite_state_raises(self, small_problem):
        p = small_problem
        x0 = p.x0
        x0[0] = np.nan
        with pytest.raises(IntegrationError):
            simulate(x0, p.t0, p.tf, p.dt, p.p_dynamic, p.starting_point(), p.p_const)

    def test_divergence_raises(self, small_problem):
        p = small_problem
        x0 = p.x0
        x0[NITRATE] = 1e308
        p_const = p.p_const
        p_const[NITRATE_TAX] = 1e10
        with pytest.raises(IntegrationError):
            with np.errstate(over="ignore", invalid="ignore"):
                simulate(x0, p.t0, p.tf, p.dt, p.p_dynamic, p.starting_point(), p_const)

    def test_trajectory_ends_at_terminal_state(self, small_problem):
        p = small_problem
        x = p.starting_point()
        times, states = simulate_trajectory(p.x0, p.t0, p.tf, p.dt, p.p_dynamic, x, p.p_const)
        assert times[0] == p.t0
        assert times[-1] == pytest.approx(p.tf)
        assert states.shape == (times.size, N_STATES)
        assert states[0] == pytest.approx(p.x0)
        xf = simulate(p.x0, p.t0, p.tf, p.dt, p.p_dynamic, x, p.p_const)
        assert states[-1] == pytest.approx(xf)
