"""
Error taxonomy for dataset synchronisation, groundtruth derivation and
simulation.

All errors derive from :class:`DataError` so callers can catch every
data-preparation failure with a single ``except`` clause while still being able
to react to the individual kinds.
"""


class DataError(Exception):
    """Base class for all data-preparation errors."""


class IncompleteDataset(DataError):
    """
    A robot has an empty stream that is needed to establish the synchronised
    horizon or to interpolate.

    Parameters
    ----------
    robot_id : int
        Identifier of the robot with the missing stream.
    stream : str
        Name of the empty stream ("states", "odometry" or "measurements").
    """

    def __init__(self, robot_id, stream):
        self.robot_id = robot_id
        self.stream = stream
        super().__init__(
            f"Robot {robot_id} has no raw {stream}: "
            "unable to establish a synchronised horizon"
        )


class UnresolvedIdentity(DataError):
    """A barcode matches neither a known robot nor a known landmark."""

    def __init__(self, barcode):
        self.barcode = barcode
        super().__init__(f"Barcode {barcode} does not belong to any robot or landmark")


class PreconditionViolation(DataError):
    """A derivation or simulation step was run before its required predecessor."""


class DegenerateSample(DataError):
    """A statistic was requested over fewer data points than it needs."""

    def __init__(self, size, required=2):
        self.size = size
        self.required = required
        super().__init__(
            f"At least {required} values are required, got {size}"
        )


class PlacementError(DataError):
    """Rejection sampling could not satisfy the separation constraints."""
