import numpy as np
import pytest

from conftest import make_dataset
from mrclam_prep.config import SyncConfig
from mrclam_prep.data.models import Measurement, Odometry, State
from mrclam_prep.errors import IncompleteDataset
from mrclam_prep.processing.synchronization import (
    group_measurements,
    interpolate_odometry,
    interpolate_states,
    synced_step,
    synchronize,
)


class TestSynchronize:
    def test_two_robot_timeline(self, two_robot_dataset):
        timeline = synchronize(two_robot_dataset)
        np.testing.assert_allclose(timeline, [0.0, 1.0])
        assert two_robot_dataset.synced_step_count == 1
        assert two_robot_dataset.time_origin == 0.0

        robot = two_robot_dataset.robot(2)
        assert robot.groundtruth.states == [
            State(0.0, 0.0, 0.0, 0.0),
            State(1.0, 2.0, 0.0, 0.0),
        ]
        assert [odometry.forward_velocity for odometry in robot.synced.odometry] == [2.0, 2.0]
        assert robot.synced.measurements == [Measurement(1.0, [72], [0.9], [-0.05])]

    def test_horizon_is_shortest_robot(self):
        dataset = make_dataset(
            states={
                1: [(0.0, 0.0, 0.0, 0.0), (10.0, 10.0, 0.0, 0.0)],
                2: [(0.0, 0.0, 0.0, 0.0), (4.0, 4.0, 0.0, 0.0)],
            },
            odometry={1: [(0.0, 1.0, 0.0)], 2: [(0.0, 1.0, 0.0)]},
            measurements={1: [(0.5, 14, 1.0, 0.0)], 2: [(0.5, 5, 1.0, 0.0)]},
        )
        timeline = synchronize(dataset)
        assert len(timeline) == 5
        assert dataset.synced_step_count == 4
        for robot in dataset.robots:
            assert len(robot.groundtruth.states) == 5
            assert len(robot.synced.odometry) == 5
        assert dataset.robot(1).groundtruth.states[-1].x == pytest.approx(4.0)

    def test_time_origin_is_subtracted_without_mutating_raw(self):
        dataset = make_dataset(
            states={
                1: [(100.0, 0.0, 0.0, 0.0), (101.0, 1.0, 0.0, 0.0)],
                2: [(100.5, 0.0, 0.0, 0.0), (101.0, 2.0, 0.0, 0.0)],
            },
            odometry={1: [(100.0, 1.0, 0.0)], 2: [(100.0, 2.0, 0.0)]},
            measurements={1: [(101.0, 14, 1.0, 0.0)], 2: [(101.0, 72, 1.0, 0.0)]},
        )
        synchronize(dataset, SyncConfig(sample_period=0.5))
        assert dataset.time_origin == 100.0
        assert dataset.robot(1).raw.states[0].time == 100.0
        assert [state.time for state in dataset.robot(2).groundtruth.states] == [0.0, 0.5, 1.0]
        # Robot 2 is stationary at its first pose before its first sample
        assert dataset.robot(2).groundtruth.states[0].x == 0.0
        assert dataset.robot(2).synced.measurements[0].time == pytest.approx(1.0)

    def test_is_idempotent(self, simulation_config):
        from mrclam_prep.simulation.simulator import Simulator

        dataset = Simulator(simulation_config).run()
        synchronize(dataset)
        first = [
            (list(robot.groundtruth.states), list(robot.synced.odometry),
             [measurement.copy() for measurement in robot.synced.measurements])
            for robot in dataset.robots
        ]
        synchronize(dataset)
        second = [
            (robot.groundtruth.states, robot.synced.odometry, robot.synced.measurements)
            for robot in dataset.robots
        ]
        assert first == second

    def test_timestamps_evenly_spaced(self, simulation_config):
        from mrclam_prep.simulation.simulator import Simulator

        dataset = Simulator(simulation_config).run()
        timeline = synchronize(dataset)
        np.testing.assert_allclose(np.diff(timeline), dataset.sample_period)
        for robot in dataset.robots:
            times = [state.time for state in robot.groundtruth.states]
            assert times == list(timeline)
            assert [odometry.time for odometry in robot.synced.odometry] == times
            bundle_times = [measurement.time for measurement in robot.synced.measurements]
            assert all(later > earlier for earlier, later in zip(bundle_times, bundle_times[1:]))
            for measurement in robot.synced.measurements:
                assert len(measurement.subjects) == len(measurement.ranges) == len(measurement.bearings) > 0

    def test_orientations_wrapped(self, simulation_config):
        from mrclam_prep.simulation.simulator import Simulator

        dataset = Simulator(simulation_config).run()
        synchronize(dataset)
        orientations = np.array(
            [state.orientation for robot in dataset.robots for state in robot.groundtruth.states]
        )
        assert np.all(orientations > -np.pi)
        assert np.all(orientations <= np.pi)

    @pytest.mark.parametrize("stream", ["states", "odometry", "measurements"])
    def test_empty_stream_raises(self, stream):
        dataset = make_dataset()
        getattr(dataset.robot(2).raw, stream).clear()
        with pytest.raises(IncompleteDataset) as excinfo:
            synchronize(dataset)
        assert excinfo.value.robot_id == 2
        assert excinfo.value.stream == stream
        assert dataset.robot(1).groundtruth.states == []


class TestInterpolateStates:
    def test_linear_interpolation(self):
        raw = [State(0.0, 0.0, 0.0, 0.0), State(1.0, 2.0, 4.0, 0.2)]
        (state,) = interpolate_states(raw, np.array([0.5]))
        assert state.x == pytest.approx(1.0)
        assert state.y == pytest.approx(2.0)
        assert state.orientation == pytest.approx(0.1)

    def test_clamped_outside_raw_span(self):
        raw = [State(1.0, 1.0, 1.0, 0.5), State(2.0, 2.0, 2.0, 0.7)]
        before, after = interpolate_states(raw, np.array([0.0, 3.0]))
        assert (before.time, before.x, before.y) == (0.0, 1.0, 1.0)
        assert before.orientation == pytest.approx(0.5)
        assert (after.time, after.x, after.y) == (3.0, 2.0, 2.0)
        assert after.orientation == pytest.approx(0.7)

    def test_shortest_arc_through_pi(self):
        raw = [State(0.0, 0.0, 0.0, 3.0), State(1.0, 0.0, 0.0, -3.0)]
        quarter, three_quarters = interpolate_states(raw, np.array([0.25, 0.75]))
        step = (2 * np.pi - 6.0) / 4
        assert quarter.orientation == pytest.approx(3.0 + step)
        assert three_quarters.orientation == pytest.approx(3.0 + 3 * step - 2 * np.pi)

    def test_time_origin(self):
        raw = [State(10.0, 0.0, 0.0, 0.0), State(11.0, 1.0, 0.0, 0.0)]
        (state,) = interpolate_states(raw, np.array([0.5]), time_origin=10.0)
        assert state.time == 0.5
        assert state.x == pytest.approx(0.5)


class TestInterpolateOdometry:
    def test_zero_outside_raw_span(self):
        raw = [Odometry(1.0, 0.2, 0.1), Odometry(2.0, 0.4, 0.3)]
        samples = interpolate_odometry(raw, np.array([0.0, 1.0, 1.5, 2.0, 2.5]))
        assert [sample.forward_velocity for sample in samples] == pytest.approx(
            [0.0, 0.2, 0.3, 0.4, 0.0]
        )
        assert [sample.angular_velocity for sample in samples] == pytest.approx(
            [0.0, 0.1, 0.2, 0.3, 0.0]
        )


class TestGroupMeasurements:
    def test_rounds_to_nearest_step(self):
        (bundle,) = group_measurements([Measurement.single(0.03, 7, 2.0, 0.1)], 0.02)
        assert bundle.time == pytest.approx(0.04)
        assert bundle.subjects == [7]
        assert bundle.ranges == [2.0]
        assert bundle.bearings == [0.1]

    def test_merges_equal_steps(self):
        raw = [
            Measurement.single(0.01, 7, 1.0, 0.1),
            Measurement.single(0.025, 8, 2.0, 0.2),
            Measurement.single(0.061, 9, 3.0, 0.3),
        ]
        first, second = group_measurements(raw, 0.02)
        assert first.time == pytest.approx(0.02)
        assert first.subjects == [7, 8]
        assert first.ranges == [1.0, 2.0]
        assert second.time == pytest.approx(0.06)
        assert second.subjects == [9]

    def test_drops_beyond_horizon(self):
        raw = [Measurement.single(0.0, 7, 1.0, 0.0), Measurement.single(0.1, 8, 1.0, 0.0)]
        bundles = group_measurements(raw, 0.02, step_count=1)
        assert [bundle.subjects for bundle in bundles] == [[7]]

    def test_warns_on_unsorted_input(self, caplog):
        raw = [Measurement.single(0.1, 7, 1.0, 0.0), Measurement.single(0.0, 8, 1.0, 0.0)]
        group_measurements(raw, 0.02)
        assert "not in time order" in caplog.text

    def test_synced_step(self):
        assert synced_step(0.03, 0.02) == 2
        assert synced_step(0.029, 0.02) == 1
        assert synced_step(0.0, 0.02) == 0
