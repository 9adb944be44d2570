"""
Trajectory and measurement simulator.

Generates data in the same form as the UTIAS multi-robot cooperative
localization and mapping (MRCLAM) dataset when no recorded dataset is at hand,
or when the true noise characteristics of the sensors must be known.
"""

import logging
import time

import numpy as np

from mrclam_prep.config import SimulationConfig
from mrclam_prep.data.models import (
    Landmark,
    Measurement,
    Odometry,
    Robot,
    SensorNoise,
    State,
)
from mrclam_prep.data.store import Dataset
from mrclam_prep.errors import PlacementError, PreconditionViolation
from mrclam_prep.utils.geometry import distance, normalise_angle, range_bearing

logger = logging.getLogger(__name__)


class Simulator:
    """
    Procedural generator of multi-robot trajectories and range-bearing data.

    A simulation run goes through the following steps, each of which writes
    into the :class:`Dataset` it is given:

    1. **Landmark placement**: landmarks are drawn uniformly inside the arena
       with a small margin, and rejected until every landmark is at least
       ``landmark_separation`` from the previous ones.
    2. **Initial poses**: robots are drawn uniformly inside the boundary margin
       with a uniform orientation, at least ``robot_landmark_separation`` from
       every landmark and ``robot_separation`` from every other robot.
    3. **Trajectories**: every robot follows a random walk. A forward velocity
       adjustment and an angular velocity command are held for a random number
       of steps. Outside the boundary margin the angular command steers the
       robot back towards the arena centre. The pose is advanced with the
       unicycle model

           x_{k+1} = x_k + v_k · Δt · cos(θ_k)
           y_{k+1} = y_k + v_k · Δt · sin(θ_k)
           θ_{k+1} = θ_k + ω_k · Δt

    4. **Measurements**: every ``measurement_ratio`` steps each robot observes
       the other robots and the landmarks that are within ``max_range`` and
       inside its field of view.
    5. **Noise**: zero-mean Gaussian noise with per-robot variances is added to
       the odometry and the measurements.

    The noise-free values are written to ``groundtruth`` and the noisy ones to
    ``synced``. The ``raw`` record set receives the true poses, the noisy
    odometry and the noisy measurements split into single-subject records, as a
    dataset reader would have produced them.

    Parameters
    ----------
    config : SimulationConfig, optional
        Simulation parameters.
    rng : numpy.random.Generator, optional
        Random generator. Defaults to ``np.random.default_rng(config.seed)``.

    Examples
    --------
    >>> simulator = Simulator(SimulationConfig(data_points=500, seed=3))
    >>> dataset = simulator.run()
    >>> len(dataset.robot(1).groundtruth.states)
    500
    """

    def __init__(self, config=None, rng=None):
        self.config = config if config is not None else SimulationConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

    def create_dataset(self):
        """
        Empty dataset with the configured number of robots and landmarks.

        Robots get IDs ``1..N`` and landmarks ``N+1..N+M``. The barcode of every
        subject equals its ID.
        """
        config = self.config
        robots = [
            Robot(id=robot_id, barcode=robot_id)
            for robot_id in range(1, config.number_of_robots + 1)
        ]
        first_landmark = config.number_of_robots + 1
        landmarks = [
            Landmark(id=landmark_id, barcode=landmark_id, x=0.0, y=0.0)
            for landmark_id in range(first_landmark, first_landmark + config.number_of_landmarks)
        ]
        return Dataset(robots, landmarks, sample_period=config.sample_period)

    def run(self, dataset=None):
        """
        Run every simulation step in order.

        Parameters
        ----------
        dataset : Dataset, optional
            Dataset to populate. Its robots and landmarks are overwritten. A
            new one is created by :meth:`create_dataset` if omitted.

        Returns
        -------
        Dataset
        """
        start = time.perf_counter()
        if dataset is None:
            dataset = self.create_dataset()
        dataset.clear_derived()
        dataset.simulation_steps = set()
        dataset.sample_period = self.config.sample_period
        dataset.time_origin = 0.0

        self.draw_noise(dataset)
        self.place_landmarks(dataset)
        self.place_robots(dataset)
        self.generate_trajectories(dataset)
        self.generate_measurements(dataset)
        self.add_noise(dataset)
        self.fill_raw(dataset)
        dataset.synced_step_count = self.config.data_points - 1

        logger.info(
            "Simulated %d robots and %d landmarks over %d steps [%.0f ms]",
            dataset.number_of_robots, dataset.number_of_landmarks,
            self.config.data_points, (time.perf_counter() - start) * 1000.0,
        )
        return dataset

    def draw_noise(self, dataset):
        """Draw the sensor variances of every robot and the landmark uncertainty."""
        ranges = self.config.noise
        for landmark in dataset.landmarks:
            landmark.x_std_dev = float(self.rng.uniform(*ranges.landmark_std_dev))
            landmark.y_std_dev = float(self.rng.uniform(*ranges.landmark_std_dev))
        for robot in dataset.robots:
            robot.noise = SensorNoise(
                forward_velocity=float(self.rng.uniform(*ranges.forward_velocity)),
                angular_velocity=float(self.rng.uniform(*ranges.angular_velocity)),
                range=float(self.rng.uniform(*ranges.range)),
                bearing=float(self.rng.uniform(*ranges.bearing)),
            )
        dataset.simulation_steps.add("draw_noise")

    @staticmethod
    def _require(dataset, step, caller):
        if step not in dataset.simulation_steps:
            raise PreconditionViolation(
                f"{step} has not been run on this dataset: call it before {caller}"
            )

    def _draw_position(self, low, high, obstacles, what):
        """
        Rejection-sample a position in the box ``[low, high]``.

        ``obstacles`` is a list of ``(positions, separation)``: the position is
        accepted once it lies at least ``separation`` from each of
        ``positions``.
        """
        for _ in range(self.config.max_placement_attempts):
            x, y = self.rng.uniform(low, high)
            if all(
                distance(x, y, other_x, other_y) >= separation
                for positions, separation in obstacles
                for other_x, other_y in positions
            ):
                return float(x), float(y)
        raise PlacementError(
            f"Could not place {what} after {self.config.max_placement_attempts} "
            "attempts: the arena is too small for the requested separations"
        )

    def place_landmarks(self, dataset):
        """Uniform landmark positions with a minimum landmark separation."""
        config = self.config
        margin = config.landmark_margin
        low = (margin, margin)
        high = (config.limits.width - margin, config.limits.height - margin)

        placed = []
        for landmark in dataset.landmarks:
            landmark.x, landmark.y = self._draw_position(
                low, high, [(placed, config.landmark_separation)],
                f"landmark {landmark.id}",
            )
            placed.append((landmark.x, landmark.y))
        dataset.simulation_steps.add("place_landmarks")

    def place_robots(self, dataset):
        """
        Initial robot poses away from the landmarks and from each other.

        Raises
        ------
        PreconditionViolation
            If the landmarks have not been placed.
        """
        config = self.config
        self._require(dataset, "place_landmarks", "place_robots")

        margin = config.boundary_margin
        low = (margin, margin)
        high = (config.limits.width - margin, config.limits.height - margin)
        landmarks = [(landmark.x, landmark.y) for landmark in dataset.landmarks]

        placed = []
        for robot in dataset.robots:
            x, y = self._draw_position(
                low, high,
                [(landmarks, config.robot_landmark_separation),
                 (placed, config.robot_separation)],
                f"robot {robot.id}",
            )
            orientation = float(self.rng.uniform(-np.pi, np.pi))
            robot.groundtruth.states = [State(0.0, x, y, orientation)]
            placed.append((x, y))
        dataset.simulation_steps.add("place_robots")

    def _steer_to_centre(self, state):
        """Angular command turning the robot towards the arena centre."""
        limits = self.config.limits
        bearing = normalise_angle(
            np.arctan2(limits.height / 2.0 - state.y, limits.width / 2.0 - state.x)
            - state.orientation
        )
        return bearing / (np.pi / limits.angular_velocity)

    def _outside_boundary(self, state):
        limits, margin = self.config.limits, self.config.boundary_margin
        return (
            state.x < margin or state.x > limits.width - margin
            or state.y < margin or state.y > limits.height - margin
        )

    def _draw_walk_duration(self):
        shortest, longest = self.config.walk_duration
        return int(self.rng.integers(shortest, longest + 1))

    def generate_trajectories(self, dataset):
        """
        Random-walk odometry commands and the poses they produce.

        Every robot gets ``data_points`` poses and ``data_points`` noise-free
        odometry samples, all ``sample_period`` apart. The command at step k
        moves the robot from pose k to pose k+1; the command at the last step
        has no successor pose.

        Raises
        ------
        PreconditionViolation
            If a robot has no initial pose.
        """
        config = self.config
        limits = config.limits
        period = config.sample_period

        for robot in dataset.robots:
            if not robot.groundtruth.states:
                raise PreconditionViolation(
                    f"The initial state of robot {robot.id} was not set: call "
                    "place_robots before generate_trajectories"
                )
            state = robot.groundtruth.states[0]
            states = [state]
            odometry = []

            forward_velocity = float(
                self.rng.uniform(limits.forward_velocity / 2.0, limits.forward_velocity)
            )
            angular_input = 0.0
            walk_duration = self._draw_walk_duration()

            for k in range(config.data_points):
                forward_adjustment = 0.0
                if k > 0:
                    if self._outside_boundary(state):
                        angular_input = self._steer_to_centre(state)
                    elif k % walk_duration == 0:
                        forward_adjustment = float(
                            self.rng.uniform(-config.forward_adjustment, config.forward_adjustment)
                        )
                        angular_input = float(
                            self.rng.uniform(-limits.angular_velocity, limits.angular_velocity)
                        )
                        walk_duration = self._draw_walk_duration()

                # Robots cannot reverse
                forward_velocity = float(
                    np.clip(forward_velocity + forward_adjustment, 0.0, limits.forward_velocity)
                )
                angular_velocity = float(
                    np.clip(angular_input, -limits.angular_velocity, limits.angular_velocity)
                )
                odometry.append(Odometry(k * period, forward_velocity, angular_velocity))

                if k == config.data_points - 1:
                    break
                state = State(
                    (k + 1) * period,
                    state.x + forward_velocity * period * np.cos(state.orientation),
                    state.y + forward_velocity * period * np.sin(state.orientation),
                    normalise_angle(state.orientation + angular_velocity * period),
                )
                states.append(state)

            robot.groundtruth.states = states
            robot.groundtruth.odometry = odometry
            logger.debug(
                "Robot %d: trajectory ends at (%.2f, %.2f)", robot.id, state.x, state.y
            )
        dataset.simulation_steps.add("generate_trajectories")

    def generate_measurements(self, dataset):
        """
        Noise-free range-bearing measurements between robots and to landmarks.

        Raises
        ------
        PreconditionViolation
            If the trajectories have not been generated.
        """
        config = self.config
        half_field_of_view = config.field_of_view / 2.0
        for robot in dataset.robots:
            if len(robot.groundtruth.states) != config.data_points:
                raise PreconditionViolation(
                    f"Robot {robot.id} has no trajectory: call generate_trajectories "
                    "before generate_measurements"
                )

        for robot in dataset.robots:
            robot.groundtruth.measurements = []
            for k in range(0, config.data_points, config.measurement_ratio):
                observer = robot.groundtruth.states[k]
                subjects = [
                    (other.barcode, other.groundtruth.states[k])
                    for other in dataset.robots
                    if other.id != robot.id
                ] + [(landmark.barcode, landmark) for landmark in dataset.landmarks]

                bundle = Measurement(observer.time)
                for barcode, subject in subjects:
                    measured_range, bearing = range_bearing(
                        observer.x, observer.y, observer.orientation, subject.x, subject.y
                    )
                    if measured_range <= config.max_range and abs(bearing) <= half_field_of_view:
                        bundle.append(barcode, measured_range, bearing)
                if bundle.subjects:
                    robot.groundtruth.measurements.append(bundle)

            logger.debug(
                "Robot %d: %d measurement bundles", robot.id, len(robot.groundtruth.measurements)
            )
        dataset.simulation_steps.add("generate_measurements")

    def add_noise(self, dataset):
        """
        Synced odometry and measurements: groundtruth plus Gaussian noise.

        Raises
        ------
        PreconditionViolation
            If the noise variances have not been drawn, or the groundtruth
            odometry or measurements have not been generated.
        """
        self._require(dataset, "generate_measurements", "add_noise")
        for robot in dataset.robots:
            if robot.noise is None:
                raise PreconditionViolation(
                    f"Noise variances of robot {robot.id} not set: call draw_noise "
                    "before add_noise"
                )
            if not robot.groundtruth.odometry:
                raise PreconditionViolation(
                    f"Robot {robot.id} has no groundtruth odometry: call "
                    "generate_trajectories before add_noise"
                )
            noise = robot.noise

            truth = robot.groundtruth.odometry
            forward_noise = self.rng.normal(0.0, np.sqrt(noise.forward_velocity), len(truth))
            angular_noise = self.rng.normal(0.0, np.sqrt(noise.angular_velocity), len(truth))
            robot.synced.odometry = [
                Odometry(odometry.time, odometry.forward_velocity + float(v_noise),
                         odometry.angular_velocity + float(w_noise))
                for odometry, v_noise, w_noise in zip(truth, forward_noise, angular_noise)
            ]

            robot.synced.measurements = []
            for measurement in robot.groundtruth.measurements:
                count = len(measurement)
                ranges = np.asarray(measurement.ranges) + self.rng.normal(
                    0.0, np.sqrt(noise.range), count
                )
                bearings = normalise_angle(
                    np.asarray(measurement.bearings)
                    + self.rng.normal(0.0, np.sqrt(noise.bearing), count)
                )
                robot.synced.measurements.append(
                    Measurement(measurement.time, list(measurement.subjects),
                                ranges.tolist(), bearings.tolist())
                )
        dataset.simulation_steps.add("add_noise")

    def fill_raw(self, dataset):
        """
        Copy the simulated data into ``raw`` in the form a reader produces.

        Raises
        ------
        PreconditionViolation
            If the noisy synced data has not been generated.
        """
        self._require(dataset, "add_noise", "fill_raw")
        for robot in dataset.robots:
            robot.raw.states = [
                State(state.time, state.x, state.y, state.orientation)
                for state in robot.groundtruth.states
            ]
            robot.raw.odometry = [
                Odometry(odometry.time, odometry.forward_velocity, odometry.angular_velocity)
                for odometry in robot.synced.odometry
            ]
            robot.raw.measurements = [
                Measurement.single(measurement.time, subject, measured_range, bearing)
                for measurement in robot.synced.measurements
                for subject, measured_range, bearing in zip(
                    measurement.subjects, measurement.ranges, measurement.bearings
                )
            ]
        dataset.simulation_steps.add("fill_raw")
