"""Processing stages: synchronisation, groundtruth derivation, error statistics."""

from .groundtruth import derive_groundtruth
from .statistics import calculate_error_statistics, calculate_sensor_error
from .synchronization import synchronize

__all__ = [
    "calculate_error_statistics",
    "calculate_sensor_error",
    "derive_groundtruth",
    "synchronize",
]
