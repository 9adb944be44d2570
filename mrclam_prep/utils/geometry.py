"""
Geometric helpers shared by the synchronisation engine, the groundtruth
derivation and the simulator.

Angles are wrapped to the half-open interval (-π, π], so +π is kept as +π and
-π is mapped to +π. Every function accepts scalars as well as numpy arrays.
"""

import numpy as np

TWO_PI = 2.0 * np.pi


def normalise_angle(angle):
    """
    Wrap an angle, or an array of angles, to (-π, π].

    Parameters
    ----------
    angle : float or ndarray
        Angle(s) in radians, any magnitude.

    Returns
    -------
    float or ndarray
        Wrapped angle(s), same shape as the input.

    Examples
    --------
    >>> normalise_angle(3 * np.pi / 2)
    -1.5707963267948966
    >>> normalise_angle(-np.pi)
    3.141592653589793
    """
    wrapped = np.pi - np.mod(np.pi - np.asarray(angle, dtype=float), TWO_PI)
    # np.mod can round a tiny negative up to 2π
    wrapped = np.where(wrapped <= -np.pi, wrapped + TWO_PI, wrapped)
    if np.ndim(wrapped) == 0:
        return float(wrapped)
    return wrapped


def angle_difference(target, source):
    """Shortest signed rotation from ``source`` to ``target`` in (-π, π]."""
    return normalise_angle(np.arctan2(np.sin(target - source), np.cos(target - source)))


def distance(x1, y1, x2, y2):
    """Euclidean distance between two points."""
    return np.hypot(x2 - x1, y2 - y1)


def range_bearing(observer_x, observer_y, observer_orientation, subject_x, subject_y):
    """
    Range and bearing of a subject as seen from an observer pose.

    The bearing is measured in the observer's body frame:

        r = sqrt((x_s - x_o)^2 + (y_s - y_o)^2)
        φ = atan2(y_s - y_o, x_s - x_o) - θ_o

    Returns
    -------
    tuple of (float, float)
        ``(range, bearing)`` with the bearing wrapped to (-π, π].
    """
    x_difference = subject_x - observer_x
    y_difference = subject_y - observer_y
    measured_range = np.hypot(x_difference, y_difference)
    bearing = normalise_angle(
        np.arctan2(y_difference, x_difference) - observer_orientation
    )
    return measured_range, bearing
