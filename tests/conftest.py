import matplotlib

matplotlib.use("Agg")

import pytest

from mrclam_prep.config import ArenaLimits, SimulationConfig
from mrclam_prep.data.store import Dataset

# Robot 1 -> barcode 5, robot 2 -> barcode 14, landmark 3 -> barcode 72
BARCODES = {1: 5, 2: 14, 3: 72}
LANDMARKS = [(3, 3.0, 0.0, 0.001, 0.002)]


def make_dataset(states=None, odometry=None, measurements=None, sample_period=1.0):
    """
    Two robots driving along the x axis for one second and one landmark at
    (3, 0).

    Robot 1 moves from (0, 0) to (1, 0) and robot 2 from (0, 0) to (2, 0). At
    t = 1 s robot 1 observes robot 2 and robot 2 observes the landmark, both
    1 m straight ahead.
    """
    if states is None:
        states = {
            1: [(0.0, 0.0, 0.0, 0.0), (1.0, 1.0, 0.0, 0.0)],
            2: [(0.0, 0.0, 0.0, 0.0), (1.0, 2.0, 0.0, 0.0)],
        }
    if odometry is None:
        odometry = {
            1: [(0.0, 1.0, 0.0), (1.0, 1.0, 0.0)],
            2: [(0.0, 2.0, 0.0), (1.0, 2.0, 0.0)],
        }
    if measurements is None:
        measurements = {
            1: [(1.0, 14, 1.1, 0.05)],
            2: [(1.0, 72, 0.9, -0.05)],
        }
    return Dataset.from_records(
        BARCODES, LANDMARKS, states, odometry, measurements, sample_period
    )


@pytest.fixture
def two_robot_dataset():
    return make_dataset()


@pytest.fixture
def simulation_config():
    """Small arena with plenty of observations per robot."""
    return SimulationConfig(
        data_points=6000,
        number_of_robots=2,
        number_of_landmarks=3,
        limits=ArenaLimits(width=12.0, height=10.0),
        max_range=6.0,
        seed=7,
    )
