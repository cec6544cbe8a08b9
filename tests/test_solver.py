import logging

import numpy as np
import pytest

from switching_times import (
    IntegrationError,
    IpoptSettings,
    Phase,
    SolveAbortedError,
    SolverError,
    SwitchingTimesSolver,
    default_aeration_scenario,
)
from switching_times.solver import IPOPT_RETURN_CODES, ipopt_status_code


def _assert_feasible(problem, x, tol=1e-4):
    bounds = problem.bounds()
    g = problem.constraint_values(x)
    assert np.all(x >= bounds.x_l - tol)
    assert np.all(x <= bounds.x_u + tol)
    assert np.all(g >= bounds.g_l - tol)
    assert np.all(g <= bounds.g_u + tol)


class TestSettings:

    def test_defaults(self):
        opts = IpoptSettings().to_options()
        assert opts['ipopt.tol'] == 1e-4
        assert opts['ipopt.hessian_approximation'] == 'limited-memory'
        assert opts['ipopt.print_level'] == 5
        assert opts['ipopt.sb'] == 'yes'

    def test_extra_options_are_merged(self):
        opts = IpoptSettings(print_level=0, extra={'ipopt.acceptable_tol': 1e-3}).to_options()
        assert opts['ipopt.acceptable_tol'] == 1e-3
        assert opts['print_time'] is False

    def test_exact_hessian_rejected(self):
        with pytest.raises(ValueError):
            IpoptSettings(hessian_approximation='exact')

    def test_non_positive_tolerance_rejected(self):
        with pytest.raises(ValueError):
            IpoptSettings(tol=0.0)


class TestReturnCodes:

    def test_known_codes(self):
        assert ipopt_status_code('Solve_Succeeded') == 0
        assert ipopt_status_code('Solved_To_Acceptable_Level') == 1
        assert ipopt_status_code('Maximum_Iterations_Exceeded') == -1
        assert ipopt_status_code('Invalid_Option') == -12

    def test_unknown_code_maps_to_internal_error(self, caplog):
        with caplog.at_level(logging.WARNING, logger='switching_times.solver'):
            assert ipopt_status_code('Something_Else') == IPOPT_RETURN_CODES['Internal_Error']
        assert "Something_Else" in caplog.text


class TestSolve:

    def test_small_problem_solves(self, small_problem):
        solver = SwitchingTimesSolver(small_problem, IpoptSettings(print_level=0))
        result = solver.solve()

        assert small_problem.phase is Phase.FINALIZED
        assert result.status_init == 0
        assert result.success
        assert result.status_solve in (0, 1)
        assert result.p_opt.shape == (6,)
        _assert_feasible(small_problem, result.p_opt)
        assert result.objective == pytest.approx(small_problem.objective_value(result.p_opt), rel=1e-6)
        assert np.array_equal(small_problem.p_optimize_ipopt, result.p_opt)

    def test_problem_must_be_an_adapter(self):
        with pytest.raises(TypeError):
            SwitchingTimesSolver(object())

    def test_invalid_option_rolls_back(self, small_problem):
        solver = SwitchingTimesSolver(small_problem, IpoptSettings(print_level=0, extra={'no_such_option': 1}))
        with pytest.raises(SolverError):
            solver.solve()
        assert small_problem.status_init == IPOPT_RETURN_CODES['Invalid_Option']
        assert small_problem.phase is Phase.SETUP

    def test_evaluation_failure_aborts(self, small_problem, monkeypatch):
        def failing(x):
            raise IntegrationError("state diverged")
        monkeypatch.setattr(small_problem, 'objective_value', failing)

        solver = SwitchingTimesSolver(small_problem, IpoptSettings(print_level=0))
        with pytest.raises(SolveAbortedError) as excinfo:
            solver.solve()
        assert isinstance(excinfo.value.__cause__, IntegrationError)
        assert small_problem.phase is Phase.SETUP
        assert solver.errors

    def test_invalid_setup_is_rejected_before_ipopt(self, small_problem):
        small_problem.set_dt(-1.0)
        with pytest.raises(ValueError):
            SwitchingTimesSolver(small_problem).solve()
        assert small_problem.phase is Phase.SETUP


@pytest.mark.slow
def test_reference_scenario():
    problem = default_aeration_scenario().build_problem()
    result = SwitchingTimesSolver(problem, IpoptSettings(print_level=0)).solve()

    assert result.success
    assert result.n_switches == 10
    _assert_feasible(problem, result.p_opt)
    assert result.objective == pytest.approx(problem.objective_value(result.p_opt), rel=1e-6)
