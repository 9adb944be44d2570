"""
End-to-end data preparation.

Either a recorded dataset is synchronised or a synthetic one is simulated; the
groundtruth odometry and measurements are then derived and the sensor error
statistics computed.

Examples
--------
>>> from mrclam_prep.pipeline import load_dataset, process_dataset
>>> dataset = process_dataset(load_dataset("data/MRCLAM_Dataset1"))  # doctest: +SKIP
>>> dataset.robot(1).range_error  # doctest: +SKIP
"""

import logging
import time

from mrclam_prep.config import SimulationConfig, StatisticsConfig, SyncConfig
from mrclam_prep.data.reader import read_dataset
from mrclam_prep.errors import DataError
from mrclam_prep.processing.groundtruth import derive_groundtruth
from mrclam_prep.processing.statistics import calculate_error_statistics
from mrclam_prep.processing.synchronization import synchronize
from mrclam_prep.simulation.simulator import Simulator

logger = logging.getLogger(__name__)


def load_dataset(path, sample_period=0.02):
    """Read an MRCLAM dataset directory, see :func:`read_dataset`."""
    try:
        return read_dataset(path, sample_period)
    except (FileNotFoundError, ValueError) as error:
        logger.error("Failed to read dataset %s: %s", path, error)
        raise


def process_dataset(dataset, sync_config=None, statistics_config=None):
    """
    Synchronise a recorded dataset, derive its groundtruth and compute the
    sensor error statistics.

    Parameters
    ----------
    dataset : Dataset
        Dataset with populated ``raw`` record sets.
    sync_config : SyncConfig, optional
        Defaults to the dataset's sample period.
    statistics_config : StatisticsConfig, optional

    Returns
    -------
    Dataset
        The same dataset, with every derived record set recomputed.

    Raises
    ------
    DataError
        If any step fails; the failure is logged before it propagates.
    """
    if sync_config is None:
        sync_config = SyncConfig(sample_period=dataset.sample_period)
    if statistics_config is None:
        statistics_config = StatisticsConfig()

    start = time.perf_counter()
    try:
        synchronize(dataset, sync_config)
        derive_groundtruth(dataset)
        calculate_error_statistics(dataset, statistics_config)
    except DataError as error:
        logger.error("Processing %r failed: %s", dataset, error)
        raise

    logger.info(
        "Processed %r [%.0f ms]", dataset, (time.perf_counter() - start) * 1000.0
    )
    return dataset


def simulate(config=None, statistics_config=None, rng=None):
    """
    Simulate a dataset, derive its groundtruth and compute the sensor error
    statistics.

    Parameters
    ----------
    config : SimulationConfig, optional
    statistics_config : StatisticsConfig, optional
    rng : numpy.random.Generator, optional
        Overrides ``config.seed``.

    Returns
    -------
    Dataset
    """
    if config is None:
        config = SimulationConfig()
    if statistics_config is None:
        statistics_config = StatisticsConfig()

    start = time.perf_counter()
    try:
        dataset = Simulator(config, rng).run()
        derive_groundtruth(dataset)
        calculate_error_statistics(dataset, statistics_config)
    except DataError as error:
        logger.error("Simulation failed: %s", error)
        raise

    logger.info(
        "Simulated and processed %r [%.0f ms]", dataset, (time.perf_counter() - start) * 1000.0
    )
    return dataset
