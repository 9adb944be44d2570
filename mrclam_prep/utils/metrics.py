"""
Trajectory and dataset metrics.

Absolute trajectory error of an estimator that wrote its estimates into
``robot.synced.states``, and summary characteristics of a dataset that are
useful when selecting datasets or interpreting results. Trajectory metrics
operate on pandas DataFrames with timestamp indices for temporal alignment.
"""

import logging

import numpy as np
import pandas as pd

from mrclam_prep.utils.data_utils import STATE_COLUMNS, build_timeseries, states_to_array

logger = logging.getLogger(__name__)


def _align(estimated_states, groundtruth_states):
    for name, frame in (("estimated_states", estimated_states),
                        ("groundtruth_states", groundtruth_states)):
        if not isinstance(frame, pd.DataFrame):
            raise ValueError(f"{name} must be a DataFrame, got {type(frame).__name__}")
        for col in ("x", "y"):
            if col not in frame.columns:
                raise ValueError(
                    f"{name} missing required column '{col}'. "
                    f"Available columns: {list(frame.columns)}"
                )

    # Inner join so that only synchronised timestamps are compared
    aligned = estimated_states[["x", "y"]].join(
        groundtruth_states[["x", "y"]], how="inner", rsuffix="_gt"
    )
    if len(aligned) == 0:
        raise RuntimeError(
            "Timestamp alignment produced 0 matching frames! "
            f"Estimated time range: [{estimated_states.index.min()}, {estimated_states.index.max()}], "
            f"Ground truth time range: [{groundtruth_states.index.min()}, {groundtruth_states.index.max()}]"
        )
    return aligned


def compute_trajectory_stats(estimated_states: pd.DataFrame,
                             groundtruth_states: pd.DataFrame) -> dict:
    """
    Position error statistics of an estimated trajectory.

    Parameters
    ----------
    estimated_states : pd.DataFrame
        Estimated trajectory with a time index and columns ``['x', 'y']``.
    groundtruth_states : pd.DataFrame
        Groundtruth trajectory with a time index and columns ``['x', 'y']``.

    Returns
    -------
    dict
        - 'ate': Absolute Trajectory Error (RMSE of the position error)
        - 'mean_error', 'std_error', 'median_error', 'max_error', 'min_error'
        - 'aligned_frames': Number of temporally aligned frames
        - 'alignment_ratio': Fraction of the estimates that were aligned

    Raises
    ------
    ValueError
        If an input is not a DataFrame or lacks the position columns.
    RuntimeError
        If no timestamps match.
    """
    aligned = _align(estimated_states, groundtruth_states)
    errors = np.sqrt(
        (aligned["x"] - aligned["x_gt"]) ** 2 + (aligned["y"] - aligned["y_gt"]) ** 2
    )
    alignment_ratio = len(aligned) / len(estimated_states)
    if alignment_ratio < 0.9:
        logger.warning(
            f"Only {alignment_ratio:.1%} of frames aligned! Check timestamp synchronization."
        )

    return {
        "ate": float(np.sqrt(np.mean(errors ** 2))),
        "mean_error": float(np.mean(errors)),
        "std_error": float(np.std(errors)),
        "median_error": float(np.median(errors)),
        "max_error": float(np.max(errors)),
        "min_error": float(np.min(errors)),
        "aligned_frames": len(aligned),
        "alignment_ratio": alignment_ratio,
    }


def compute_ate(estimated_states: pd.DataFrame, groundtruth_states: pd.DataFrame) -> float:
    """
    Absolute Trajectory Error: RMSE of the position error over matching
    timestamps.

    Examples
    --------
    >>> frames = to_dataframes(dataset.robot(1))  # doctest: +SKIP
    >>> compute_ate(frames["synced"]["states"], frames["groundtruth"]["states"])  # doctest: +SKIP
    0.156
    """
    stats = compute_trajectory_stats(estimated_states, groundtruth_states)
    logger.info(
        f"ATE (RMSE): {stats['ate']:.4f} m over {stats['aligned_frames']} frames"
    )
    return stats["ate"]


def compute_robot_ate(robot) -> float:
    """ATE of the estimates in ``robot.synced.states`` against its groundtruth."""
    estimated = build_timeseries(states_to_array(robot.synced.states), STATE_COLUMNS, None)
    groundtruth = build_timeseries(states_to_array(robot.groundtruth.states), STATE_COLUMNS, None)
    return compute_ate(estimated, groundtruth)


def compute_dataset_metrics(dataset) -> pd.DataFrame:
    """
    Key characteristics of every robot of a synchronised dataset.

    Parameters
    ----------
    dataset : Dataset
        Dataset whose groundtruth states have been computed.

    Returns
    -------
    pandas.DataFrame
        Indexed by robot ID with the columns:

        - 'path_length': Total distance travelled (m)
        - 'duration': Time from first to last groundtruth state (s)
        - 'distance': Direct start-to-end distance (m)
        - 'n_measurements': Number of synced observations
        - 'm_density': Observations per metre travelled
        - 'n_landmarks': Number of static landmarks in the dataset

    Notes
    -----
    Observations of barcodes that resolve to no robot or landmark are not
    counted.
    """
    rows = {}
    for robot in dataset.robots:
        gt = states_to_array(robot.groundtruth.states)
        if len(gt) == 0:
            raise ValueError(f"Robot {robot.id} has no groundtruth states")

        path_length = float(np.sum(np.hypot(np.diff(gt[:, 1]), np.diff(gt[:, 2]))))
        n_measurements = sum(
            1
            for measurement in robot.synced.measurements
            for subject in measurement.subjects
            if dataset.is_known_barcode(subject)
        )
        rows[robot.id] = {
            "path_length": path_length,
            "duration": float(gt[-1, 0] - gt[0, 0]),
            "distance": float(np.linalg.norm(gt[-1, 1:3] - gt[0, 1:3])),
            "n_measurements": n_measurements,
            "m_density": n_measurements / path_length if path_length > 0 else 0.0,
            "n_landmarks": dataset.number_of_landmarks,
        }

    metrics = pd.DataFrame.from_dict(rows, orient="index")
    metrics.index.name = "robot"
    logger.debug(f"Dataset metrics:\n{metrics}")
    return metrics
