"""
Time synchronisation of the raw robot streams onto one shared clock.

The MRCLAM robots log groundtruth (Vicon, 100 Hz), odometry (~67 Hz) and
camera measurements (event driven) with their own timestamps. Filters that fuse
information between robots need every robot sampled at the same instants, so
this module resamples each robot onto a fixed-period clock that starts at the
earliest sample of the dataset.

Pose and odometry are linearly interpolated. Measurements are not interpolated:
each observation keeps its range and bearing and is only re-labelled with the
nearest synced timestamp, after which observations sharing a timestamp are
merged into one bundle.
"""

import logging
import math
import time

import numpy as np

from mrclam_prep.config import SyncConfig
from mrclam_prep.data.models import Measurement, Odometry, State
from mrclam_prep.errors import IncompleteDataset
from mrclam_prep.utils.geometry import TWO_PI, normalise_angle

logger = logging.getLogger(__name__)

# Guards floor() against a horizon that is an exact multiple of the period
# but lands a few ulps short of it after division.
_STEP_TOLERANCE = 1e-9


def synchronize(dataset, config=None):
    """
    Resample every robot of ``dataset`` onto the shared synchronised clock.

    Populates ``robot.groundtruth.states``, ``robot.synced.odometry`` and
    ``robot.synced.measurements`` for every robot. All derived record sets are
    cleared first, so calling this function twice gives identical results.

    Parameters
    ----------
    dataset : Dataset
        Dataset with populated ``raw`` record sets.
    config : SyncConfig, optional
        Synchronisation parameters. Defaults to ``SyncConfig()`` with the
        dataset's sample period.

    Returns
    -------
    ndarray
        The synchronised timestamps [s].

    Raises
    ------
    IncompleteDataset
        If any robot has an empty raw pose, odometry or measurement stream.
    """
    if config is None:
        config = SyncConfig(sample_period=dataset.sample_period)
    start = time.perf_counter()
    period = config.sample_period

    for robot in dataset.robots:
        for stream in ("states", "odometry", "measurements"):
            if not getattr(robot.raw, stream):
                raise IncompleteDataset(robot.id, stream)

    dataset.clear_derived()
    dataset.sample_period = period
    dataset.time_origin = find_time_origin(dataset.robots)
    horizon = find_horizon(dataset.robots) - dataset.time_origin
    step_count = int(math.floor(horizon / period + _STEP_TOLERANCE))
    dataset.synced_step_count = step_count
    timeline = np.arange(step_count + 1) * period

    for robot in dataset.robots:
        robot.groundtruth.states = interpolate_states(
            robot.raw.states, timeline, dataset.time_origin,
            config.orientation_wrap_threshold,
        )
        robot.synced.odometry = interpolate_odometry(
            robot.raw.odometry, timeline, dataset.time_origin
        )
        robot.synced.measurements = group_measurements(
            robot.raw.measurements, period, dataset.time_origin, step_count
        )
        logger.debug(
            "Robot %d: %d synced states, %d measurement bundles",
            robot.id, len(robot.groundtruth.states), len(robot.synced.measurements),
        )

    elapsed = (time.perf_counter() - start) * 1000.0
    logger.info(
        "Synchronised %d robots onto %d timesteps of %.3f s [%.0f ms]",
        dataset.number_of_robots, len(timeline), period, elapsed,
    )
    return timeline


def find_time_origin(robots):
    """Earliest first-sample time over every robot and every raw stream."""
    return min(
        min(robot.raw.states[0].time, robot.raw.odometry[0].time,
            robot.raw.measurements[0].time)
        for robot in robots
    )


def find_horizon(robots):
    """
    Latest time covered by every robot.

    For each robot the latest sample across its raw streams is taken; the
    horizon is the earliest of these, so no robot is extrapolated past the end
    of all of its recordings.
    """
    return min(
        max(robot.raw.states[-1].time, robot.raw.odometry[-1].time,
            robot.raw.measurements[-1].time)
        for robot in robots
    )


def _segments(times, timeline):
    """
    Index of the first raw sample strictly later than each synced time, and
    the interpolation factor within the preceding segment.
    """
    upper = np.searchsorted(times, timeline, side="right")
    lower = np.clip(upper - 1, 0, len(times) - 1)
    upper_clipped = np.clip(upper, 0, len(times) - 1)
    span = times[upper_clipped] - times[lower]
    with np.errstate(divide="ignore", invalid="ignore"):
        factor = np.where(span > 0, (timeline - times[lower]) / span, 0.0)
    return upper, lower, upper_clipped, factor


def interpolate_states(raw_states, timeline, time_origin=0.0,
                       wrap_threshold=np.pi):
    """
    Linearly interpolate raw poses onto the synced timeline.

    Before the first raw pose the robot is assumed stationary at that pose, and
    after the last raw pose it is assumed stationary at the last one. The
    orientation is interpolated along the shortest arc: a raw jump larger than
    ``wrap_threshold`` is treated as a wrap through ±π.

    Parameters
    ----------
    raw_states : list of State
        Raw poses in increasing time order.
    timeline : ndarray
        Synced timestamps [s], relative to ``time_origin``.
    time_origin : float
        Offset subtracted from the raw timestamps.
    wrap_threshold : float
        Orientation jump [rad] treated as a wrap.

    Returns
    -------
    list of State
    """
    times = np.array([state.time for state in raw_states]) - time_origin
    xs = np.array([state.x for state in raw_states])
    ys = np.array([state.y for state in raw_states])
    orientations = np.array([state.orientation for state in raw_states])

    upper, lower, upper_clipped, factor = _segments(times, timeline)

    previous = orientations[lower]
    following = orientations[upper_clipped]
    delta = following - previous
    following = np.where(delta > wrap_threshold, following - TWO_PI, following)
    following = np.where(delta < -wrap_threshold, following + TWO_PI, following)

    x = xs[lower] + factor * (xs[upper_clipped] - xs[lower])
    y = ys[lower] + factor * (ys[upper_clipped] - ys[lower])
    orientation = normalise_angle(previous + factor * (following - previous))

    before = upper == 0
    after = upper == len(times)
    x[before], y[before] = xs[0], ys[0]
    orientation[before] = normalise_angle(orientations[0])
    x[after], y[after] = xs[-1], ys[-1]
    orientation[after] = normalise_angle(orientations[-1])

    return [
        State(float(t), float(x_k), float(y_k), float(theta))
        for t, x_k, y_k, theta in zip(timeline, x, y, orientation)
    ]


def interpolate_odometry(raw_odometry, timeline, time_origin=0.0):
    """
    Linearly interpolate raw odometry onto the synced timeline.

    Outside the time span of the raw odometry the velocity is undefined and set
    to zero; it is never extrapolated.

    Returns
    -------
    list of Odometry
    """
    times = np.array([odometry.time for odometry in raw_odometry]) - time_origin
    forward = np.array([odometry.forward_velocity for odometry in raw_odometry])
    angular = np.array([odometry.angular_velocity for odometry in raw_odometry])

    upper, lower, upper_clipped, factor = _segments(times, timeline)

    forward_velocity = forward[lower] + factor * (forward[upper_clipped] - forward[lower])
    angular_velocity = angular[lower] + factor * (angular[upper_clipped] - angular[lower])

    outside = (timeline < times[0]) | (timeline > times[-1])
    forward_velocity[outside] = 0.0
    angular_velocity[outside] = 0.0

    return [
        Odometry(float(t), float(v), float(w))
        for t, v, w in zip(timeline, forward_velocity, angular_velocity)
    ]


def synced_step(measurement_time, period):
    """Index of the synced timestep nearest to ``measurement_time`` (ties round up)."""
    return int(math.floor(measurement_time / period + 0.5))


def group_measurements(raw_measurements, period, time_origin=0.0, step_count=None):
    """
    Re-label raw measurements with the nearest synced timestamp and merge
    consecutive measurements that share it.

    Raw measurements are expected in non-decreasing time order, as they are
    logged. A measurement whose nearest timestep lies beyond ``step_count`` has
    no synced pose to be compared against and is dropped.

    Parameters
    ----------
    raw_measurements : list of Measurement
        Raw measurements, one or more subjects each.
    period : float
        Synced sample period [s].
    time_origin : float
        Offset subtracted from the raw timestamps.
    step_count : int, optional
        Last valid synced step index. ``None`` keeps every measurement.

    Returns
    -------
    list of Measurement

    Examples
    --------
    >>> raw = [Measurement.single(0.03, 7, 2.0, 0.1)]
    >>> group_measurements(raw, 0.02)[0].time
    0.04
    """
    grouped = []
    last_step = None
    dropped = 0
    previous_time = -np.inf
    for raw in raw_measurements:
        relative_time = raw.time - time_origin
        if relative_time < previous_time:
            logger.warning(
                "Raw measurements are not in time order (%.3f s after %.3f s)",
                relative_time, previous_time,
            )
        previous_time = relative_time

        step = synced_step(relative_time, period)
        if step < 0 or (step_count is not None and step > step_count):
            dropped += len(raw)
            continue

        if step == last_step:
            for subject, measured_range, bearing in zip(raw.subjects, raw.ranges, raw.bearings):
                grouped[-1].append(subject, measured_range, bearing)
        else:
            grouped.append(
                Measurement(step * period, list(raw.subjects), list(raw.ranges), list(raw.bearings))
            )
            last_step = step

    if dropped:
        logger.debug("Dropped %d observations outside the synchronised horizon", dropped)
    return grouped
