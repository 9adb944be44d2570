"""
Groundtruth odometry and measurements derived from the synchronised poses.

The MRCLAM dataset provides groundtruth poses only. The odometry and the
range-bearing measurements a perfect sensor would have reported are derived
here from the synchronised groundtruth poses, so that the sensor error can be
characterised as the difference between the two.
"""

import logging
import time

import numpy as np

from mrclam_prep.data.models import Measurement, Odometry
from mrclam_prep.errors import PreconditionViolation, UnresolvedIdentity
from mrclam_prep.utils.geometry import TWO_PI, angle_difference, range_bearing

logger = logging.getLogger(__name__)

# Sentinel written in place of a groundtruth observation whose subject barcode
# could not be resolved. Such observations are excluded from the error
# statistics.
INVALID_RANGE = -1.0
INVALID_BEARING = TWO_PI

# Tolerance [s] when matching a measurement timestamp to a synced pose.
TIME_MATCH_TOLERANCE = 1e-6


def is_invalid_observation(measured_range, bearing):
    """True for the sentinel written for unresolvable subjects."""
    return measured_range == INVALID_RANGE and bearing == INVALID_BEARING


def derive_groundtruth(dataset):
    """Derive both the groundtruth odometry and the groundtruth measurements."""
    start = time.perf_counter()
    derive_groundtruth_odometry(dataset)
    derive_groundtruth_measurements(dataset)
    logger.info(
        "Derived groundtruth odometry and measurements for %d robots [%.0f ms]",
        dataset.number_of_robots, (time.perf_counter() - start) * 1000.0,
    )


def derive_groundtruth_odometry(dataset):
    """
    Odometry that reproduces the synchronised groundtruth poses.

    For consecutive poses k and k+1 sampled ``Δt`` apart:

        v_k = sqrt((x_{k+1} - x_k)^2 + (y_{k+1} - y_k)^2) / Δt
        ω_k = atan2(sin(θ_{k+1} - θ_k), cos(θ_{k+1} - θ_k)) / Δt

    The last sample has no successor and is copied from the synced (measured)
    odometry at that step.

    Raises
    ------
    PreconditionViolation
        If a robot has no groundtruth poses or no synced odometry.
    """
    period = dataset.sample_period
    for robot in dataset.robots:
        states = robot.groundtruth.states
        if not states:
            raise PreconditionViolation(
                f"Robot {robot.id} has no groundtruth states: synchronise the "
                "dataset before deriving the groundtruth odometry"
            )
        if len(robot.synced.odometry) != len(states):
            raise PreconditionViolation(
                f"Robot {robot.id} has {len(robot.synced.odometry)} synced odometry "
                f"samples for {len(states)} groundtruth states"
            )

        times = np.array([state.time for state in states])
        xs = np.array([state.x for state in states])
        ys = np.array([state.y for state in states])
        orientations = np.array([state.orientation for state in states])

        forward_velocity = np.hypot(np.diff(xs), np.diff(ys)) / period
        angular_velocity = angle_difference(orientations[1:], orientations[:-1]) / period

        odometry = [
            Odometry(float(t), float(v), float(w))
            for t, v, w in zip(times[:-1], forward_velocity, angular_velocity)
        ]
        last = robot.synced.odometry[-1]
        odometry.append(Odometry(last.time, last.forward_velocity, last.angular_velocity))
        robot.groundtruth.odometry = odometry


def find_state_index(states, timestamp, start=0):
    """
    Index of the synced state recorded at ``timestamp``.

    The search starts at ``start`` since measurements are visited in time order.

    Raises
    ------
    PreconditionViolation
        If no state carries that timestamp.
    """
    for index in range(start, len(states)):
        if abs(states[index].time - timestamp) <= TIME_MATCH_TOLERANCE:
            return index
        if states[index].time > timestamp:
            break
    raise PreconditionViolation(
        f"No synchronised state at t = {timestamp:.3f} s: measurements and "
        "states are not on the same clock"
    )


def derive_groundtruth_measurements(dataset):
    """
    Range and bearing each synced observation would have had without noise.

    For an observing robot i and a subject j at the same synced timestep:

        r_ij = sqrt((x_j - x_i)^2 + (y_j - y_i)^2)
        φ_ij = atan2(y_j - y_i, x_j - x_i) - θ_i

    The groundtruth bundles have the same subjects in the same order as the
    synced bundles. Subjects whose barcode does not resolve get the sentinel
    ``(INVALID_RANGE, INVALID_BEARING)``.
    """
    unresolved = set()
    for robot in dataset.robots:
        robot.groundtruth.measurements = []
        states = robot.groundtruth.states
        if not states:
            raise PreconditionViolation(
                f"Robot {robot.id} has no groundtruth states: synchronise the "
                "dataset before deriving the groundtruth measurements"
            )

        index = 0
        for measurement in robot.synced.measurements:
            index = find_state_index(states, measurement.time, index)
            observer = states[index]
            bundle = Measurement(measurement.time)

            for subject in measurement.subjects:
                try:
                    identity = dataset.barcodes.resolve(subject)
                except UnresolvedIdentity:
                    unresolved.add(subject)
                    bundle.append(subject, INVALID_RANGE, INVALID_BEARING)
                    continue

                if identity.is_robot:
                    target = dataset.robot(identity.id).groundtruth.states[index]
                else:
                    target = dataset.landmark(identity.id)
                measured_range, bearing = range_bearing(
                    observer.x, observer.y, observer.orientation, target.x, target.y
                )
                bundle.append(subject, measured_range, bearing)

            robot.groundtruth.measurements.append(bundle)

    if unresolved:
        logger.warning(
            "Unresolved subject barcodes %s replaced by invalid observations",
            sorted(unresolved),
        )
