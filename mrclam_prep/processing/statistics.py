"""
Sensor error and error statistics.

The error of a sensor channel is the groundtruth value minus the synced
(measured) value. Bayesian filters commonly assume the error is zero-mean white
Gaussian noise, so the sample mean and variance of each channel are estimated
here. The measurement channels contain outliers caused by incorrect data
association (a barcode read as another robot's barcode); these are removed with
an interquartile-range rule before the statistics are computed.
"""

import logging
import math
import time
from functools import reduce

import numpy as np
import pandas as pd

from mrclam_prep.config import OutlierConfig, StatisticsConfig
from mrclam_prep.data.models import ErrorStatistics, Measurement, Odometry, State
from mrclam_prep.errors import DataError, DegenerateSample, PreconditionViolation
from mrclam_prep.processing.groundtruth import is_invalid_observation
from mrclam_prep.utils.geometry import angle_difference

logger = logging.getLogger(__name__)


def calculate_odometry_error(robot):
    """
    Groundtruth minus synced odometry for every synced step but the last.

    The last groundtruth odometry sample is a copy of the synced one and is
    therefore left out. The angular velocity error is wrapped to (-π, π].

    Raises
    ------
    PreconditionViolation
        If the groundtruth or synced odometry have not been set, or differ in
        length.
    """
    groundtruth, synced = robot.groundtruth.odometry, robot.synced.odometry
    if not groundtruth:
        raise PreconditionViolation(
            f"Groundtruth odometry values for robot {robot.id} have not been set"
        )
    if not synced:
        raise PreconditionViolation(
            f"Synced odometry values for robot {robot.id} have not been set"
        )
    if len(groundtruth) != len(synced):
        raise PreconditionViolation(
            f"Robot {robot.id} has {len(groundtruth)} groundtruth and "
            f"{len(synced)} synced odometry samples"
        )

    robot.error.odometry = [
        Odometry(
            truth.time,
            truth.forward_velocity - measured.forward_velocity,
            angle_difference(truth.angular_velocity, measured.angular_velocity),
        )
        for truth, measured in zip(groundtruth[:-1], synced[:-1])
    ]
    return robot.error.odometry


def calculate_measurement_error(robot):
    """
    Groundtruth minus synced range and bearing for every valid observation.

    Observations holding the invalid sentinel are skipped and bundles left
    without observations are not kept. The bearing error is wrapped to
    (-π, π].

    Raises
    ------
    PreconditionViolation
        If the groundtruth measurements have not been derived.
    DataError
        If a groundtruth bundle does not match its synced bundle.
    """
    groundtruth, synced = robot.groundtruth.measurements, robot.synced.measurements
    if len(groundtruth) != len(synced):
        raise PreconditionViolation(
            f"Groundtruth measurement values for robot {robot.id} have not been set"
        )

    errors = []
    for truth, measured in zip(groundtruth, synced):
        if truth.subjects != measured.subjects:
            raise DataError(
                f"Robot {robot.id}: groundtruth subjects {truth.subjects} do not match "
                f"synced subjects {measured.subjects} at t = {truth.time:.3f} s"
            )
        bundle = Measurement(truth.time)
        for subject, true_range, true_bearing, measured_range, measured_bearing in zip(
            truth.subjects, truth.ranges, truth.bearings, measured.ranges, measured.bearings
        ):
            if is_invalid_observation(true_range, true_bearing):
                continue
            bundle.append(
                subject,
                true_range - measured_range,
                angle_difference(true_bearing, measured_bearing),
            )
        if bundle.subjects:
            errors.append(bundle)

    robot.error.measurements = errors
    return errors


def calculate_state_error(robot):
    """
    Groundtruth minus synced states.

    The synced states are not produced by this package; they are written by a
    localisation filter under evaluation. The orientation error is wrapped to
    (-π, π].

    Raises
    ------
    PreconditionViolation
        If no synced states have been set.
    """
    if not robot.synced.states:
        raise PreconditionViolation(f"Synced states for robot {robot.id} have not been set")
    if len(robot.synced.states) > len(robot.groundtruth.states):
        raise PreconditionViolation(
            f"Robot {robot.id} has more synced states than groundtruth states"
        )

    robot.error.states = [
        State(
            truth.time,
            truth.x - estimate.x,
            truth.y - estimate.y,
            angle_difference(truth.orientation, estimate.orientation),
        )
        for truth, estimate in zip(robot.groundtruth.states, robot.synced.states)
    ]
    return robot.error.states


def sample_mean_variance(values):
    """
    Sample mean and Bessel-corrected sample variance.

        x̄ = Σ x_i / n
        s² = Σ (x_i - x̄)² / (n - 1)

    Raises
    ------
    DegenerateSample
        If fewer than two values are given.

    Examples
    --------
    >>> sample_mean_variance([1.0, 2.0, 3.0])
    (2.0, 1.0)
    """
    values = list(values)
    count = len(values)
    if count < 2:
        raise DegenerateSample(count)
    mean = reduce(lambda total, value: total + value, values, 0.0) / count
    squared = reduce(lambda total, value: total + (value - mean) ** 2, values, 0.0)
    return mean, squared / (count - 1)


def _median_index(lower, upper):
    """Index of the (lower) median of the sorted slice ``[lower, upper]``."""
    return lower + math.ceil((upper - lower + 1) / 2) - 1


def quartiles(values):
    """
    Median, first quartile, third quartile and interquartile range.

    With the values sorted and ``m = ceil(n/2) - 1`` the index of the median
    (the lower median for even ``n``), Q1 is the median of ``s[0..m]`` and Q3
    is the median of ``s[m..n-1]`` for odd ``n`` and of ``s[m+1..n-1]`` for
    even ``n``.

    Returns
    -------
    tuple of float
        ``(median, q1, q3, iqr)``

    Raises
    ------
    DegenerateSample
        If fewer than two values are given.

    Examples
    --------
    >>> quartiles([1.0, 2.0, 3.0, 4.0])
    (2.0, 1.0, 3.0, 2.0)
    """
    ordered = sorted(values)
    count = len(ordered)
    if count < 2:
        raise DegenerateSample(count)
    median_index = _median_index(0, count - 1)
    upper_start = median_index if count % 2 else median_index + 1
    median = ordered[median_index]
    q1 = ordered[_median_index(0, median_index)]
    q3 = ordered[_median_index(upper_start, count - 1)]
    return median, q1, q3, q3 - q1


def error_statistics(values, with_quartiles=True):
    """:class:`ErrorStatistics` of one error channel."""
    mean, variance = sample_mean_variance(values)
    statistics = ErrorStatistics(mean=mean, variance=variance)
    if with_quartiles:
        statistics.median, statistics.q1, statistics.q3, statistics.iqr = quartiles(values)
    return statistics


def outlier_bounds(statistics, multiplier):
    """
    Acceptance window ``[Q1 - k·IQR, Q3 + k·IQR]``.

    Examples
    --------
    >>> outlier_bounds(ErrorStatistics(q1=1.0, q3=2.0, iqr=1.0), 10)
    (-9.0, 12.0)
    """
    if statistics.iqr is None:
        raise PreconditionViolation("Quartiles have not been computed")
    return (
        statistics.q1 - multiplier * statistics.iqr,
        statistics.q3 + multiplier * statistics.iqr,
    )


def remove_outliers(measurements, range_statistics, bearing_statistics, config=None):
    """
    Drop measurement-error observations outside the IQR acceptance windows.

    An observation is removed together with its subject when either its range
    or its bearing error is outside its window. Bundles that lose every
    observation are removed.

    Parameters
    ----------
    measurements : list of Measurement
        Measurement errors.
    range_statistics, bearing_statistics : ErrorStatistics
        Statistics carrying the quartiles of the range and bearing errors.
    config : OutlierConfig, optional
        IQR multipliers.

    Returns
    -------
    list of Measurement
        New bundles; the input is not modified.
    """
    if config is None:
        config = OutlierConfig()
    range_low, range_high = outlier_bounds(range_statistics, config.range_multiplier)
    bearing_low, bearing_high = outlier_bounds(bearing_statistics, config.bearing_multiplier)

    kept_bundles = []
    removed = 0
    for measurement in measurements:
        bundle = Measurement(measurement.time)
        for subject, range_error, bearing_error in zip(
            measurement.subjects, measurement.ranges, measurement.bearings
        ):
            if (range_low <= range_error <= range_high
                    and bearing_low <= bearing_error <= bearing_high):
                bundle.append(subject, range_error, bearing_error)
            else:
                removed += 1
        if bundle.subjects:
            kept_bundles.append(bundle)

    if removed:
        logger.debug("Removed %d measurement outliers", removed)
    return kept_bundles


def _flatten(measurements, attribute):
    return [value for measurement in measurements for value in getattr(measurement, attribute)]


def calculate_sensor_error(robot, config=None):
    """
    Sensor error, outlier removal and error statistics of one robot.

    Sets ``robot.error.odometry``, ``robot.error.measurements`` and the four
    :class:`ErrorStatistics` of the robot. The measurement statistics are
    computed after the outliers have been removed.
    """
    if config is None:
        config = StatisticsConfig()

    odometry_error = calculate_odometry_error(robot)
    measurement_error = calculate_measurement_error(robot)

    robot.forward_velocity_error = error_statistics(
        [odometry.forward_velocity for odometry in odometry_error]
    )
    robot.angular_velocity_error = error_statistics(
        [odometry.angular_velocity for odometry in odometry_error]
    )

    range_quartiles = error_statistics(_flatten(measurement_error, "ranges"))
    bearing_quartiles = error_statistics(_flatten(measurement_error, "bearings"))
    robot.error.measurements = remove_outliers(
        measurement_error, range_quartiles, bearing_quartiles, config.outliers
    )

    robot.range_error = error_statistics(_flatten(robot.error.measurements, "ranges"))
    robot.bearing_error = error_statistics(_flatten(robot.error.measurements, "bearings"))


def calculate_error_statistics(dataset, config=None):
    """Run :func:`calculate_sensor_error` for every robot of the dataset."""
    start = time.perf_counter()
    for robot in dataset.robots:
        try:
            calculate_sensor_error(robot, config)
        except DegenerateSample:
            logger.error("Robot %d has too few valid samples for error statistics", robot.id)
            raise
        logger.debug(
            "Robot %d: v error %.5f ± %.5f, ω error %.5f ± %.5f, "
            "range error %.5f ± %.5f, bearing error %.5f ± %.5f",
            robot.id,
            robot.forward_velocity_error.mean, robot.forward_velocity_error.variance,
            robot.angular_velocity_error.mean, robot.angular_velocity_error.variance,
            robot.range_error.mean, robot.range_error.variance,
            robot.bearing_error.mean, robot.bearing_error.variance,
        )
    logger.info(
        "Calculated error statistics for %d robots [%.0f ms]",
        dataset.number_of_robots, (time.perf_counter() - start) * 1000.0,
    )


def error_pdf(values, bin_size=None):
    """
    Discretised probability density function of an error channel.

    Each value contributes ``1 / (n · bin_size)`` to its bin, so the bar areas
    sum to one. ``bin_size`` defaults to
    :attr:`StatisticsConfig.histogram_bin_size`.

    Returns
    -------
    pandas.DataFrame
        Columns ``['centre', 'width', 'density']`` sorted by bin centre.
    """
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        raise DegenerateSample(0, required=1)
    if bin_size is None:
        bin_size = StatisticsConfig().histogram_bin_size
    if bin_size <= 0:
        raise ValueError(f"bin_size must be positive, got {bin_size}")

    bins = np.floor(values / bin_size).astype(int)
    indices, counts = np.unique(bins, return_counts=True)
    return pd.DataFrame(
        {
            "centre": (indices + 0.5) * bin_size,
            "width": bin_size,
            "density": counts / (values.size * bin_size),
        }
    )
