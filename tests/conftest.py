import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from switching_times import AerationScenario

SMALL_PRICES = [10.0, 30.0, 20.0, 15.0]


@pytest.fixture
def small_scenario():
    """Three aeration cycles over two hours at four hourly prices."""
    return AerationScenario(
        prices=list(SMALL_PRICES),
        slot_length=60.0,
        padding=60.0,
        tf=120.0,
        dt=0.5,
        n_switches=3,
    )


@pytest.fixture
def small_problem(small_scenario):
    return small_scenario.build_problem()


@pytest.fixture
def mid_point():
    # on = [5, 40, 70], off = [20, 65, 100]
    return np.array([5.0, 40.0, 70.0, 20.0, 65.0, 100.0])
