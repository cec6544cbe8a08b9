import numpy as np
import pytest

from switching_times import check_gradient


def _central_difference(problem, x, step=1e-4):
    grad = np.zeros(x.size)
    for i in range(x.size):
        e = np.zeros(x.size)
        e[i] = step
        grad[i] = (problem.objective_value(x + e) - problem.objective_value(x - e)) / (2 * step)
    return grad


@pytest.fixture
def evaluation_points(small_problem, mid_point):
    start = small_problem.starting_point()
    return [start, start + 3.0, mid_point]


def test_gradient_matches_central_differences(small_problem, evaluation_points):
    for x in evaluation_points:
        analytic = small_problem.objective_gradient(x)
        numeric = _central_difference(small_problem, x)
        scale = np.max(np.abs(numeric))
        assert scale > 0.0
        assert np.max(np.abs(analytic - numeric)) <= 1e-4 * scale
    # One recording serves every point.
    assert small_problem.cache.n_retapes == 1


def test_check_gradient(small_problem, mid_point):
    check = check_gradient(small_problem, mid_point, step=1e-5)
    assert check.analytic.shape == (6,)
    assert check.finite_difference.shape == (6,)
    assert check.max_abs_error < 1e-3 * np.max(np.abs(check.analytic))
