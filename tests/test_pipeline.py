import copy
import logging

import pytest

from conftest import make_dataset
from mrclam_prep.errors import DegenerateSample, IncompleteDataset
from mrclam_prep.pipeline import load_dataset, process_dataset, simulate
from mrclam_prep.simulation.simulator import Simulator


def test_simulate_recovers_noise_variances(simulation_config):
    dataset = simulate(simulation_config)
    for robot in dataset.robots:
        noise = robot.noise
        assert robot.forward_velocity_error.variance == pytest.approx(
            noise.forward_velocity, rel=0.2
        )
        assert robot.angular_velocity_error.variance == pytest.approx(
            noise.angular_velocity, rel=0.2
        )
        assert robot.range_error.variance == pytest.approx(noise.range, rel=0.5)
        assert robot.bearing_error.variance == pytest.approx(noise.bearing, rel=0.5)
        assert abs(robot.forward_velocity_error.mean) < 0.01


def test_simulate_derives_exact_groundtruth_odometry(simulation_config):
    dataset = simulate(simulation_config)
    robot = dataset.robot(1)
    simulated_commands = Simulator(simulation_config).run().robot(1).groundtruth.odometry
    derived = robot.groundtruth.odometry
    for k in (0, 10, 1000):
        assert derived[k].forward_velocity == pytest.approx(
            simulated_commands[k].forward_velocity, abs=1e-9
        )
        assert derived[k].angular_velocity == pytest.approx(
            simulated_commands[k].angular_velocity, abs=1e-9
        )


def test_process_simulated_raw_data(simulation_config):
    dataset = Simulator(simulation_config).run()
    expected = [list(robot.synced.odometry) for robot in dataset.robots]
    expected_bundles = [len(robot.synced.measurements) for robot in dataset.robots]

    process_dataset(dataset)

    for robot, odometry, bundles in zip(dataset.robots, expected, expected_bundles):
        assert len(robot.synced.odometry) == len(odometry)
        assert robot.synced.odometry[5].forward_velocity == pytest.approx(
            odometry[5].forward_velocity
        )
        assert len(robot.synced.measurements) == bundles
        assert robot.range_error.variance > 0


def snapshot(dataset):
    return [
        (
            copy.deepcopy(robot.synced),
            copy.deepcopy(robot.groundtruth),
            copy.deepcopy(robot.error),
            robot.forward_velocity_error,
            robot.angular_velocity_error,
            robot.range_error,
            robot.bearing_error,
        )
        for robot in dataset.robots
    ]


def test_process_dataset_is_idempotent(simulation_config):
    dataset = Simulator(simulation_config).run()
    process_dataset(dataset)
    first = snapshot(dataset)
    assert first[0][2].odometry and first[0][2].measurements

    process_dataset(dataset)
    assert snapshot(dataset) == first
    assert dataset.synced_step_count == simulation_config.data_points - 1


def test_process_dataset_logs_and_reraises(caplog):
    # One synced step leaves a single odometry error sample
    dataset = make_dataset()
    with caplog.at_level(logging.ERROR), pytest.raises(DegenerateSample):
        process_dataset(dataset)
    assert "failed" in caplog.text


def test_process_dataset_incomplete(caplog):
    dataset = make_dataset(measurements={1: [(1.0, 14, 1.0, 0.0)], 2: []})
    with pytest.raises(IncompleteDataset):
        process_dataset(dataset)


def test_load_dataset_missing(tmp_path, caplog):
    with pytest.raises(FileNotFoundError):
        load_dataset(str(tmp_path / "missing"))
    assert "Failed to read dataset" in caplog.text
