"""
MRCLAM dataset reader.

Loads the plain-text files of a UTIAS multi-robot cooperative localization and
mapping (MRCLAM) dataset directory into a :class:`Dataset` holding the raw
record sets of every robot.

References
----------
.. [1] Leung, K. Y. K., Halpern, Y., Barfoot, T. D., & Liu, H. H. T. (2011).
       The UTIAS multi-robot cooperative localization and mapping dataset.
       IJRR, 30(8), 969-974.
"""

import logging
import os
import re

import numpy as np

from mrclam_prep.data.store import Dataset

logger = logging.getLogger(__name__)

_ROBOT_FILE = re.compile(r"^Robot(\d+)_Groundtruth\.dat$")


def _load(path, columns, allow_empty=False):
    """
    Load a whitespace separated data file as a 2D array.

    Lines starting with ``#`` are skipped. A file holding a single row is
    returned with shape ``(1, columns)``.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is malformed, has fewer than ``columns`` columns or is
        empty while ``allow_empty`` is false.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Missing dataset file: {path}")
    data = np.loadtxt(path, comments="#", ndmin=2)
    if data.size == 0:
        if allow_empty:
            return np.empty((0, columns))
        raise ValueError(f"Dataset file {path} holds no records")
    if data.shape[1] < columns:
        raise ValueError(
            f"Dataset file {path} has {data.shape[1]} columns, expected {columns}"
        )
    return data


def read_dataset(path, sample_period=0.02):
    """
    Read an MRCLAM dataset directory.

    The directory must contain:

    - ``Barcodes.dat``: ``[subject, barcode]``
    - ``Landmark_Groundtruth.dat``: ``[subject, x, y, x std-dev, y std-dev]``
    - ``Robot<i>_Groundtruth.dat``: ``[time, x, y, orientation]``
    - ``Robot<i>_Odometry.dat``: ``[time, forward velocity, angular velocity]``
    - ``Robot<i>_Measurement.dat``: ``[time, barcode, range, bearing]``

    The robots are the subjects ``i`` with a groundtruth file. Odometry files
    with an extra subject column (``[time, subject, v, ω]``) are also accepted.

    Parameters
    ----------
    path : str
        Dataset directory, e.g. ``"data/MRCLAM_Dataset1"``.
    sample_period : float
        Period [s] of the synchronised clock to use for this dataset.

    Returns
    -------
    Dataset
        Dataset with populated ``raw`` record sets.

    Raises
    ------
    FileNotFoundError
        If the directory or a required file is missing.
    ValueError
        If a file is malformed.

    Examples
    --------
    >>> dataset = read_dataset("data/MRCLAM_Dataset1")  # doctest: +SKIP
    >>> dataset.number_of_robots  # doctest: +SKIP
    5
    """
    if not os.path.isdir(path):
        raise FileNotFoundError(f"Dataset directory not found: {path}")

    # Barcodes: [Subject#, Barcode#]
    barcodes_data = _load(os.path.join(path, "Barcodes.dat"), 2)
    barcodes = {int(subject): int(barcode) for subject, barcode in barcodes_data[:, :2]}

    # Landmark ground truth: [Subject#, x[m], y[m], x std-dev[m], y std-dev[m]]
    landmark_data = _load(os.path.join(path, "Landmark_Groundtruth.dat"), 3)
    landmarks = []
    for row in landmark_data:
        x_std_dev, y_std_dev = (row[3], row[4]) if len(row) >= 5 else (0.0, 0.0)
        landmarks.append((int(row[0]), row[1], row[2], x_std_dev, y_std_dev))

    robot_ids = sorted(
        int(match.group(1))
        for match in map(_ROBOT_FILE.match, os.listdir(path))
        if match
    )
    if not robot_ids:
        raise FileNotFoundError(f"No Robot<i>_Groundtruth.dat files in {path}")

    states, odometry, measurements = {}, {}, {}
    for robot_id in robot_ids:
        prefix = os.path.join(path, f"Robot{robot_id}")
        # Ground truth: [Time[s], x[m], y[m], orientation[rad]]
        states[robot_id] = _load(prefix + "_Groundtruth.dat", 4)[:, :4].tolist()

        # Odometry: [Time[s], forward_V[m/s], angular_v[rad/s]]
        odometry_data = _load(prefix + "_Odometry.dat", 3)
        if odometry_data.shape[1] == 4:
            # [Time, Subject#, v, omega] -> [Time, v, omega]
            odometry_data = odometry_data[:, [0, 2, 3]]
        odometry[robot_id] = odometry_data[:, :3].tolist()

        # Measurement: [Time[s], Subject#, range[m], bearing[rad]]
        measurements[robot_id] = _load(
            prefix + "_Measurement.dat", 4, allow_empty=True
        )[:, :4].tolist()

        logger.debug(
            "Robot %d: %d poses, %d odometry samples, %d measurements",
            robot_id, len(states[robot_id]), len(odometry[robot_id]),
            len(measurements[robot_id]),
        )

    dataset = Dataset.from_records(
        barcodes, landmarks, states, odometry, measurements, sample_period
    )
    logger.info("Read %r from %s", dataset, path)
    return dataset
