"""
Data transformation utilities.

Converts the record sets of a robot into pandas DataFrames indexed by time,
for analysis, plotting and export.
"""

import numpy as np
import pandas as pd

STATE_COLUMNS = ["stamp", "x", "y", "orientation"]
ODOMETRY_COLUMNS = ["stamp", "forward_velocity", "angular_velocity"]
MEASUREMENT_COLUMNS = ["stamp", "subject", "range", "bearing"]

RECORD_SETS = ("raw", "synced", "groundtruth", "error")


def build_timeseries(data, cols, unit="s"):
    """
    Convert a numpy array to a pandas DataFrame with a time index.

    Parameters
    ----------
    data : ndarray
        Input data array whose first column holds timestamps.
    cols : list of str
        Column names for the DataFrame. The first column must be ``'stamp'``.
    unit : str or None, optional
        Unit of the timestamps. With a unit the index is converted to
        ``pandas.Timedelta`` (relative timestamps) so that pandas time series
        operations work; with ``None`` the float timestamps are kept.

    Returns
    -------
    pandas.DataFrame
        DataFrame indexed by ``stamp`` holding the remaining columns.

    Examples
    --------
    >>> data = np.array([[0.00, 0.0, 0.0, 0.0], [0.02, 0.1, 0.0, 0.1]])
    >>> build_timeseries(data, cols=STATE_COLUMNS).index[1]
    Timedelta('0 days 00:00:00.020000')
    """
    timeseries = pd.DataFrame(data, columns=cols)
    if unit is not None:
        timeseries["stamp"] = pd.to_timedelta(timeseries["stamp"], unit=unit)
    timeseries = timeseries.set_index("stamp")
    return timeseries


def states_to_array(states):
    """``(n, 4)`` array of ``[time, x, y, orientation]``."""
    return np.array(
        [[state.time, state.x, state.y, state.orientation] for state in states],
        dtype=float,
    ).reshape(-1, 4)


def odometry_to_array(odometry):
    """``(n, 3)`` array of ``[time, forward velocity, angular velocity]``."""
    return np.array(
        [[sample.time, sample.forward_velocity, sample.angular_velocity] for sample in odometry],
        dtype=float,
    ).reshape(-1, 3)


def measurements_to_array(measurements):
    """``(n, 4)`` array of ``[time, subject, range, bearing]``, one row per observation."""
    return np.array(
        [
            [measurement.time, subject, measured_range, bearing]
            for measurement in measurements
            for subject, measured_range, bearing in zip(
                measurement.subjects, measurement.ranges, measurement.bearings
            )
        ],
        dtype=float,
    ).reshape(-1, 4)


def to_dataframes(robot, unit=None):
    """
    Every record set of a robot as DataFrames.

    Parameters
    ----------
    robot : Robot
    unit : str or None, optional
        Passed to :func:`build_timeseries`. The default keeps float seconds.

    Returns
    -------
    dict
        ``{record_set: {"states": df, "odometry": df, "measurements": df}}`` for
        the record sets ``raw``, ``synced``, ``groundtruth`` and ``error``.
        Measurements have one row per observation with an integer ``subject``
        column.

    Examples
    --------
    >>> frames = to_dataframes(dataset.robot(1))  # doctest: +SKIP
    >>> frames["error"]["odometry"].describe()  # doctest: +SKIP
    """
    frames = {}
    for name in RECORD_SETS:
        record_set = getattr(robot, name)
        measurements = build_timeseries(
            measurements_to_array(record_set.measurements), MEASUREMENT_COLUMNS, unit
        )
        measurements["subject"] = measurements["subject"].astype(int)
        frames[name] = {
            "states": build_timeseries(states_to_array(record_set.states), STATE_COLUMNS, unit),
            "odometry": build_timeseries(
                odometry_to_array(record_set.odometry), ODOMETRY_COLUMNS, unit
            ),
            "measurements": measurements,
        }
    return frames


def error_statistics_frame(dataset):
    """
    Error statistics of every robot in one table.

    Returns
    -------
    pandas.DataFrame
        Indexed by ``(robot, channel)`` with the columns of
        :class:`ErrorStatistics`.
    """
    rows = []
    for robot in dataset.robots:
        for channel in ("forward_velocity", "angular_velocity", "range", "bearing"):
            statistics = getattr(robot, f"{channel}_error")
            rows.append(
                {
                    "robot": robot.id,
                    "channel": channel,
                    "mean": statistics.mean,
                    "variance": statistics.variance,
                    "median": statistics.median,
                    "q1": statistics.q1,
                    "q3": statistics.q3,
                    "iqr": statistics.iqr,
                    "simulated_variance": (
                        getattr(robot.noise, channel) if robot.noise is not None else np.nan
                    ),
                }
            )
    return pd.DataFrame(rows).set_index(["robot", "channel"])
