"""
Configuration parameters for synchronisation, error statistics and simulation.

Every parameter is a plain scalar with a default so the processing functions
can be called without any configuration at all. The simulation defaults are
taken from the UTIAS multi-robot cooperative localization and mapping dataset
paper (Leung et al., 2011, DOI: 10.1177/0278364911398404).
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class SyncConfig:
    """
    Parameters of the time synchronisation engine.

    Attributes
    ----------
    sample_period : float
        Period [s] of the shared synchronised clock.
    orientation_wrap_threshold : float
        Raw orientation jump [rad] between two consecutive samples above which
        the jump is treated as a wrap through ±π rather than a real turn.
    """

    sample_period: float = 0.02
    orientation_wrap_threshold: float = np.pi

    def __post_init__(self):
        if self.sample_period <= 0:
            raise ValueError(f"sample_period must be positive, got {self.sample_period}")


@dataclass(frozen=True)
class OutlierConfig:
    """IQR multipliers used to reject measurement-error outliers."""

    range_multiplier: float = 10.0
    bearing_multiplier: float = 20.0


@dataclass(frozen=True)
class StatisticsConfig:
    """Parameters of the error statistics engine."""

    outliers: OutlierConfig = field(default_factory=OutlierConfig)
    histogram_bin_size: float = 0.001


@dataclass(frozen=True)
class ArenaLimits:
    """Arena size [m] and robot velocity limits of the simulation."""

    width: float = 15.0
    height: float = 8.0
    forward_velocity: float = 0.16
    angular_velocity: float = 0.35


@dataclass(frozen=True)
class NoiseRanges:
    """
    Uniform ranges from which the per-robot sensor variances are drawn.

    The landmark entry holds standard deviations [m], every other entry holds
    variances.
    """

    forward_velocity: Tuple[float, float] = (0.0007, 0.0016)
    angular_velocity: Tuple[float, float] = (0.0183, 0.0399)
    range: Tuple[float, float] = (0.0162, 0.045)
    bearing: Tuple[float, float] = (0.00062, 0.00596)
    landmark_std_dev: Tuple[float, float] = (0.00004964, 0.00041465)


@dataclass(frozen=True)
class SimulationConfig:
    """
    Parameters of the trajectory and measurement simulator.

    Attributes
    ----------
    data_points : int
        Number of synchronised samples simulated for every robot.
    measurement_ratio : int
        Number of odometry steps per measurement step.
    max_range : float
        Maximum sensing range [m].
    field_of_view : float
        Full angular field of view [rad] of the camera.
    max_placement_attempts : int
        Upper bound on rejection-sampling draws per landmark or robot.
    seed : int, optional
        Seed of the random generator. ``None`` draws fresh entropy.
    """

    data_points: int = 10000
    sample_period: float = 0.02
    number_of_robots: int = 5
    number_of_landmarks: int = 15
    limits: ArenaLimits = field(default_factory=ArenaLimits)
    noise: NoiseRanges = field(default_factory=NoiseRanges)
    measurement_ratio: int = 5
    max_range: float = 4.0
    field_of_view: float = 1.04
    landmark_separation: float = 2.0
    robot_landmark_separation: float = 2.0
    robot_separation: float = 1.0
    landmark_margin: float = 0.5
    boundary_margin: float = 1.0
    walk_duration: Tuple[int, int] = (20, 500)
    forward_adjustment: float = 0.05
    max_placement_attempts: int = 10000
    seed: Optional[int] = None

    def __post_init__(self):
        if self.data_points < 2:
            raise ValueError(f"data_points must be at least 2, got {self.data_points}")
        if self.sample_period <= 0:
            raise ValueError(f"sample_period must be positive, got {self.sample_period}")
        if self.number_of_robots < 1:
            raise ValueError("At least one robot is required")
        if self.measurement_ratio < 1:
            raise ValueError("measurement_ratio must be a positive integer")
