import json

import numpy as np
import pytest

from switching_times import (
    AerationScenario,
    ProblemSetupError,
    build_problem,
    chain_switching_times,
    day_ahead_parameters,
    default_aeration_scenario,
    load_scenario,
)


def test_day_ahead_layout():
    p_dynamic = day_ahead_parameters([10.0, 20.0, 30.0], 60.0, 15.0)
    assert list(p_dynamic) == [10.0, 20.0, 30.0, -15.0, 60.0, 120.0, 195.0]


def test_day_ahead_rejects_bad_input():
    with pytest.raises(ProblemSetupError):
        day_ahead_parameters([], 60.0, 60.0)
    with pytest.raises(ProblemSetupError):
        day_ahead_parameters([10.0], 0.0, 60.0)


def test_chained_guess_is_feasible():
    on_bound = [6.0, 60.0]
    off_bound = [20.0, 120.0]
    x = chain_switching_times(10, on_bound, off_bound)
    on, off = x[:10], x[10:]
    assert on[0] == 0.0
    assert list(off - on) == [7.0] * 10
    assert list(on[1:] - off[:-1]) == [21.0] * 9
    assert np.all(np.diff(np.concatenate([on, off]).reshape(2, -1).T.flatten()) > 0)


def test_chained_guess_rejects_no_switches():
    with pytest.raises(ProblemSetupError):
        chain_switching_times(0, [6.0, 60.0], [20.0, 120.0])


def test_default_scenario():
    scenario = default_aeration_scenario()
    problem = scenario.build_problem()
    p_dynamic = problem.p_dynamic
    assert p_dynamic.size == 97
    assert list(p_dynamic[:48]) == [10.0] * 48
    assert p_dynamic[48] == -60.0
    assert p_dynamic[49] == 60.0
    assert p_dynamic[-1] == 48 * 60.0 + 60.0
    assert problem.dimensions().n_vars == 20
    assert list(problem.x0) == [1.12, 0.87, 0.0, 0.0]
    assert problem.dt == 0.2
    assert list(problem.upper_bound) == [360.0] * 20

    x = problem.starting_point()
    bounds = problem.bounds()
    g = problem.constraint_values(x)
    assert np.all(g >= bounds.g_l) and np.all(g <= bounds.g_u)
    assert np.all(x >= bounds.x_l) and np.all(x <= bounds.x_u)


def test_build_problem_defaults_to_reference():
    assert build_problem().n_switches == 10


def test_explicit_initial_guess(small_scenario, mid_point):
    small_scenario.initial_guess = list(mid_point)
    assert list(small_scenario.build_problem().starting_point()) == list(mid_point)


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ProblemSetupError):
        AerationScenario.from_dict({'n_switches': 3, 'horizon': 100})


def test_wrong_constant_count():
    with pytest.raises(ProblemSetupError):
        AerationScenario(p_const=[1.0] * 3)


def test_load_scenario(tmp_path, small_scenario):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(small_scenario.to_dict()))
    loaded = load_scenario(path)
    assert loaded == small_scenario
    assert loaded.build_problem().dimensions() == small_scenario.build_problem().dimensions()


def test_load_scenario_requires_object(tmp_path):
    path = tmp_path / "scenario.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ProblemSetupError):
        load_scenario(path)


def test_plot_schedule(tmp_path, small_problem):
    from switching_times.plotting import plot_schedule

    path = tmp_path / "schedule.png"
    fig = plot_schedule(small_problem, small_problem.starting_point(), path=path)
    assert path.exists()
    assert len(fig.axes) == 4
