import itertools

import numpy as np
import pytest

from mrclam_prep.config import ArenaLimits, SimulationConfig
from mrclam_prep.errors import PlacementError, PreconditionViolation
from mrclam_prep.simulation.simulator import Simulator
from mrclam_prep.utils.geometry import distance


@pytest.fixture
def simulated(simulation_config):
    return Simulator(simulation_config).run()


@pytest.mark.parametrize("seed", range(50))
def test_landmarks_never_closer_than_separation(seed):
    config = SimulationConfig(
        data_points=2, number_of_robots=1, number_of_landmarks=2, seed=seed
    )
    simulator = Simulator(config)
    dataset = simulator.create_dataset()
    simulator.place_landmarks(dataset)
    first, second = dataset.landmarks
    assert distance(first.x, first.y, second.x, second.y) >= 2.0
    for landmark in dataset.landmarks:
        assert 0.5 <= landmark.x <= 14.5
        assert 0.5 <= landmark.y <= 7.5


@pytest.mark.parametrize("seed", range(10))
def test_initial_poses_respect_separations(seed):
    config = SimulationConfig(data_points=2, number_of_landmarks=8, seed=seed)
    simulator = Simulator(config)
    dataset = simulator.create_dataset()
    simulator.place_landmarks(dataset)
    simulator.place_robots(dataset)

    landmarks = dataset.landmarks
    for first, second in itertools.combinations(landmarks, 2):
        assert distance(first.x, first.y, second.x, second.y) >= 2.0
    poses = [robot.groundtruth.states[0] for robot in dataset.robots]
    for pose in poses:
        assert 1.0 <= pose.x <= 14.0
        assert 1.0 <= pose.y <= 7.0
        assert -np.pi <= pose.orientation <= np.pi
        for landmark in landmarks:
            assert distance(pose.x, pose.y, landmark.x, landmark.y) >= 2.0
    for first, second in itertools.combinations(poses, 2):
        assert distance(first.x, first.y, second.x, second.y) >= 1.0


def test_ids_and_barcodes():
    dataset = Simulator(SimulationConfig(number_of_robots=3, number_of_landmarks=4)).create_dataset()
    assert [robot.id for robot in dataset.robots] == [1, 2, 3]
    assert [landmark.id for landmark in dataset.landmarks] == [4, 5, 6, 7]
    assert dataset.barcodes.as_dict() == {i: i for i in range(1, 8)}


def test_trajectory_shape(simulated, simulation_config):
    period = simulation_config.sample_period
    limits = simulation_config.limits
    for robot in simulated.robots:
        states = robot.groundtruth.states
        odometry = robot.groundtruth.odometry
        assert len(states) == len(odometry) == simulation_config.data_points
        assert [state.time for state in states] == [k * period for k in range(len(states))]
        assert all(-np.pi < state.orientation <= np.pi for state in states)
        assert all(0.0 <= sample.forward_velocity <= limits.forward_velocity for sample in odometry)
        assert all(abs(sample.angular_velocity) <= limits.angular_velocity for sample in odometry)


def test_unicycle_model(simulated, simulation_config):
    period = simulation_config.sample_period
    robot = simulated.robot(1)
    for k in (0, 100, 2000):
        state, command = robot.groundtruth.states[k], robot.groundtruth.odometry[k]
        following = robot.groundtruth.states[k + 1]
        assert following.x == pytest.approx(
            state.x + command.forward_velocity * period * np.cos(state.orientation)
        )
        assert following.y == pytest.approx(
            state.y + command.forward_velocity * period * np.sin(state.orientation)
        )


def test_robots_stay_near_arena(simulated, simulation_config):
    limits = simulation_config.limits
    for robot in simulated.robots:
        xs = [state.x for state in robot.groundtruth.states]
        ys = [state.y for state in robot.groundtruth.states]
        assert -1.0 < min(xs) and max(xs) < limits.width + 1.0
        assert -1.0 < min(ys) and max(ys) < limits.height + 1.0


def test_measurements_within_sensor_limits(simulated, simulation_config):
    ratio = simulation_config.measurement_ratio
    period = simulation_config.sample_period
    for robot in simulated.robots:
        assert robot.groundtruth.measurements
        for measurement in robot.groundtruth.measurements:
            step = round(measurement.time / period)
            assert step % ratio == 0
            assert robot.barcode not in measurement.subjects
            assert all(r <= simulation_config.max_range for r in measurement.ranges)
            assert all(
                abs(b) <= simulation_config.field_of_view / 2 for b in measurement.bearings
            )


def test_noise_added_to_synced(simulated):
    for robot in simulated.robots:
        assert robot.noise is not None
        assert len(robot.synced.odometry) == len(robot.groundtruth.odometry)
        residual = np.array(
            [truth.forward_velocity - noisy.forward_velocity
             for truth, noisy in zip(robot.groundtruth.odometry, robot.synced.odometry)]
        )
        assert np.var(residual, ddof=1) == pytest.approx(robot.noise.forward_velocity, rel=0.2)
        assert [m.subjects for m in robot.synced.measurements] == [
            m.subjects for m in robot.groundtruth.measurements
        ]


def test_raw_holds_reader_shaped_copies(simulated):
    for robot in simulated.robots:
        assert robot.raw.states == robot.groundtruth.states
        assert robot.raw.states[0] is not robot.groundtruth.states[0]
        assert robot.raw.odometry == robot.synced.odometry
        assert all(len(measurement) == 1 for measurement in robot.raw.measurements)
        assert len(robot.raw.measurements) == sum(
            len(measurement) for measurement in robot.synced.measurements
        )


def test_landmark_uncertainty_drawn(simulated, simulation_config):
    low, high = simulation_config.noise.landmark_std_dev
    for landmark in simulated.landmarks:
        assert low <= landmark.x_std_dev <= high
        assert low <= landmark.y_std_dev <= high


def test_same_seed_same_data(simulation_config):
    first = Simulator(simulation_config).run()
    second = Simulator(simulation_config).run()
    assert first.robot(2).groundtruth.states == second.robot(2).groundtruth.states
    assert first.robot(2).synced.measurements == second.robot(2).synced.measurements


def test_rng_overrides_seed(simulation_config):
    first = Simulator(simulation_config, rng=np.random.default_rng(1)).run()
    second = Simulator(simulation_config, rng=np.random.default_rng(2)).run()
    assert first.robot(1).groundtruth.states[0] != second.robot(1).groundtruth.states[0]


def test_run_into_existing_dataset(simulation_config):
    simulator = Simulator(simulation_config)
    dataset = simulator.create_dataset()
    assert simulator.run(dataset) is dataset
    assert dataset.synced_step_count == simulation_config.data_points - 1


def test_over_constrained_arena():
    config = SimulationConfig(
        number_of_landmarks=15,
        limits=ArenaLimits(width=3.0, height=3.0),
        max_placement_attempts=100,
        seed=0,
    )
    with pytest.raises(PlacementError):
        Simulator(config).run()


class TestPreconditions:
    @pytest.fixture
    def simulator(self):
        return Simulator(SimulationConfig(data_points=50, number_of_landmarks=8, seed=0))

    def test_robots_before_landmarks(self, simulator):
        with pytest.raises(PreconditionViolation):
            simulator.place_robots(simulator.create_dataset())

    def test_trajectories_before_initial_poses(self, simulator):
        with pytest.raises(PreconditionViolation):
            simulator.generate_trajectories(simulator.create_dataset())

    def test_measurements_before_trajectories(self, simulator):
        dataset = simulator.create_dataset()
        simulator.place_landmarks(dataset)
        simulator.place_robots(dataset)
        with pytest.raises(PreconditionViolation):
            simulator.generate_measurements(dataset)

    def test_noise_before_variances(self, simulator):
        dataset = simulator.create_dataset()
        simulator.place_landmarks(dataset)
        simulator.place_robots(dataset)
        simulator.generate_trajectories(dataset)
        simulator.generate_measurements(dataset)
        with pytest.raises(PreconditionViolation):
            simulator.add_noise(dataset)

    def test_noise_before_measurements(self, simulator):
        dataset = simulator.create_dataset()
        simulator.draw_noise(dataset)
        simulator.place_landmarks(dataset)
        simulator.place_robots(dataset)
        simulator.generate_trajectories(dataset)
        with pytest.raises(PreconditionViolation, match="generate_measurements"):
            simulator.add_noise(dataset)
        assert all(robot.synced.measurements == [] for robot in dataset.robots)

    def test_raw_before_noise(self, simulator):
        dataset = simulator.create_dataset()
        with pytest.raises(PreconditionViolation, match="add_noise"):
            simulator.fill_raw(dataset)

    def test_robots_without_landmarks_need_placement_step(self):
        simulator = Simulator(SimulationConfig(data_points=50, number_of_landmarks=0, seed=0))
        dataset = simulator.create_dataset()
        with pytest.raises(PreconditionViolation, match="place_landmarks"):
            simulator.place_robots(dataset)
        simulator.place_landmarks(dataset)
        simulator.place_robots(dataset)
        assert all(len(robot.groundtruth.states) == 1 for robot in dataset.robots)

    def test_landmark_at_origin_counts_as_placed(self, simulator):
        dataset = simulator.create_dataset()
        simulator.place_landmarks(dataset)
        for landmark in dataset.landmarks:
            landmark.x, landmark.y = 0.0, 0.0
        simulator.place_robots(dataset)
        assert dataset.simulation_steps == {"place_landmarks", "place_robots"}

    def test_run_records_every_step(self, simulator):
        dataset = simulator.run()
        assert dataset.simulation_steps == {
            "draw_noise", "place_landmarks", "place_robots", "generate_trajectories",
            "generate_measurements", "add_noise", "fill_raw",
        }


@pytest.mark.parametrize("field", ["data_points", "number_of_robots", "measurement_ratio"])
def test_invalid_config(field):
    with pytest.raises(ValueError):
        SimulationConfig(**{field: 0})
