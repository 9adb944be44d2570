"""Synchronisation, groundtruth derivation, error statistics and simulation of
multi-robot localisation datasets."""

from .config import SimulationConfig, StatisticsConfig, SyncConfig
from .data.store import Dataset
from .pipeline import load_dataset, process_dataset, simulate

__all__ = [
    "Dataset",
    "SimulationConfig",
    "StatisticsConfig",
    "SyncConfig",
    "load_dataset",
    "process_dataset",
    "simulate",
]
