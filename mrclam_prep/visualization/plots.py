"""
Matplotlib figures of synchronised datasets and their sensor error.

Every function draws onto the given axes, or onto a new figure when none is
given, and returns the figure so that notebooks can display or save it.
"""

import matplotlib.pyplot as plt
import numpy as np
from scipy import stats

from mrclam_prep.config import StatisticsConfig
from mrclam_prep.processing.statistics import error_pdf
from mrclam_prep.utils.data_utils import (
    measurements_to_array,
    odometry_to_array,
    states_to_array,
)

ERROR_CHANNELS = {
    "forward_velocity": ("Forward velocity error", "m/s"),
    "angular_velocity": ("Angular velocity error", "rad/s"),
    "range": ("Range error", "m"),
    "bearing": ("Bearing error", "rad"),
}


def _axes(ax):
    if ax is None:
        fig, ax = plt.subplots()
        return fig, ax
    return ax.figure, ax


def plot_dataset(dataset, ax=None, record_set="groundtruth"):
    """
    Trajectories of every robot together with the landmark map.

    Start points are drawn as green crosses, end points as red crosses and
    landmarks as black stars labelled with their ID.
    """
    fig, ax = _axes(ax)
    for robot in dataset.robots:
        states = states_to_array(getattr(robot, record_set).states)
        if len(states) == 0:
            continue
        ax.plot(states[:, 1], states[:, 2], label=f"Robot {robot.id}")
        ax.plot(states[0, 1], states[0, 2], "gx")
        ax.plot(states[-1, 1], states[-1, 2], "rx")

    # Landmark ground truth locations and indexes
    landmark_xs = [landmark.x for landmark in dataset.landmarks]
    landmark_ys = [landmark.y for landmark in dataset.landmarks]
    for landmark in dataset.landmarks:
        ax.text(landmark.x, landmark.y, str(landmark.id), alpha=0.5, fontsize=10)
    ax.scatter(
        landmark_xs, landmark_ys, s=200, c="k", alpha=0.2, marker="*",
        label="Landmark Locations",
    )

    ax.set_xlabel("x [m]")
    ax.set_ylabel("y [m]")
    ax.set_aspect("equal")
    ax.set_title("Robot Groundtruth and Map")
    ax.legend(bbox_to_anchor=(1.05, 1), loc=2, borderaxespad=0.0)
    return fig


def plot_odometry(robot, axes=None):
    """Synced and groundtruth forward and angular velocity of one robot."""
    if axes is None:
        fig, axes = plt.subplots(2, 1, sharex=True)
    else:
        fig = axes[0].figure

    synced = odometry_to_array(robot.synced.odometry)
    groundtruth = odometry_to_array(robot.groundtruth.odometry)
    for column, (ax, ylabel) in enumerate(
        zip(axes, ("Forward velocity [m/s]", "Angular velocity [rad/s]")), start=1
    ):
        ax.plot(synced[:, 0], synced[:, column], "r", alpha=0.6, label="Synced")
        ax.plot(groundtruth[:, 0], groundtruth[:, column], "b", label="Groundtruth")
        ax.set_ylabel(ylabel)
        ax.legend(loc="upper right")
    axes[-1].set_xlabel("Time [s]")
    axes[0].set_title(f"Robot {robot.id} odometry")
    return fig


def plot_measurements(robot, subject=None, axes=None):
    """
    Synced and groundtruth range and bearing of one robot.

    Parameters
    ----------
    subject : int, optional
        Only plot observations of this barcode.
    """
    if axes is None:
        fig, axes = plt.subplots(2, 1, sharex=True)
    else:
        fig = axes[0].figure

    synced = measurements_to_array(robot.synced.measurements)
    groundtruth = measurements_to_array(robot.groundtruth.measurements)
    if subject is not None:
        synced = synced[synced[:, 1] == subject]
        groundtruth = groundtruth[groundtruth[:, 1] == subject]
    # Observations of unresolved subjects carry a negative sentinel range
    groundtruth = groundtruth[groundtruth[:, 2] >= 0]

    for column, (ax, ylabel) in zip((2, 3), zip(axes, ("Range [m]", "Bearing [rad]"))):
        ax.plot(synced[:, 0], synced[:, column], "r.", markersize=2, label="Synced")
        ax.plot(groundtruth[:, 0], groundtruth[:, column], "b.", markersize=2, label="Groundtruth")
        ax.set_ylabel(ylabel)
        ax.legend(loc="upper right")
    axes[-1].set_xlabel("Time [s]")
    title = f"Robot {robot.id} measurements"
    if subject is not None:
        title += f" of barcode {subject}"
    axes[0].set_title(title)
    return fig


def plot_error_pdf(values, statistics=None, bin_size=None, ax=None, label="Error"):
    """
    Discretised PDF of an error channel with a Gaussian fit overlaid.

    Parameters
    ----------
    values : array_like
        Error samples.
    statistics : ErrorStatistics, optional
        Mean and variance of the Gaussian overlay. Estimated from ``values`` if
        omitted.
    bin_size : float, optional
        Histogram bin width. Defaults to the
        :class:`StatisticsConfig` bin size.
    """
    fig, ax = _axes(ax)
    pdf = error_pdf(values, bin_size)
    ax.bar(pdf["centre"], pdf["density"], width=pdf["width"], alpha=0.5, label="Sample PDF")

    if statistics is not None:
        mean, std_dev = statistics.mean, np.sqrt(statistics.variance)
    else:
        mean, std_dev = stats.norm.fit(values)
    if std_dev > 0:
        width = pdf["width"].iloc[0]
        x = np.linspace(pdf["centre"].min() - width, pdf["centre"].max() + width, 500)
        ax.plot(x, stats.norm.pdf(x, mean, std_dev), "r",
                label=f"N({mean:.4f}, {std_dev ** 2:.5f})")

    ax.set_xlabel(label)
    ax.set_ylabel("Probability density")
    ax.legend(loc="upper right")
    return fig


def plot_error_distributions(robot, config=None):
    """
    PDFs of the four sensor error channels of one robot on a 2x2 grid.

    The bin width is ``config.histogram_bin_size`` (:class:`StatisticsConfig`).
    """
    if config is None:
        config = StatisticsConfig()
    fig, axes = plt.subplots(2, 2, figsize=(10, 7))
    samples = {
        "forward_velocity": [odometry.forward_velocity for odometry in robot.error.odometry],
        "angular_velocity": [odometry.angular_velocity for odometry in robot.error.odometry],
        "range": [r for measurement in robot.error.measurements for r in measurement.ranges],
        "bearing": [b for measurement in robot.error.measurements for b in measurement.bearings],
    }
    for ax, (channel, (title, unit)) in zip(axes.flat, ERROR_CHANNELS.items()):
        if samples[channel]:
            plot_error_pdf(
                samples[channel], getattr(robot, f"{channel}_error"),
                config.histogram_bin_size, ax, label=f"{title} [{unit}]",
            )
        ax.set_title(title)
    fig.suptitle(f"Robot {robot.id} sensor error")
    fig.tight_layout()
    return fig
