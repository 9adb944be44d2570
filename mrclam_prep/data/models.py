"""
Record types of the multi-robot localisation data model.

The records mirror the MRCLAM data files: a robot has a pose (``State``),
odometry inputs (``Odometry``) and range-bearing observations grouped per
timestamp (``Measurement``). Each robot carries four parallel record sets:

- ``raw``: the data as read from the dataset (or generated), one subject per
  measurement record and agent-local timestamps.
- ``synced``: odometry and measurements resampled onto the shared clock.
- ``groundtruth``: pose on the shared clock and the odometry/measurements
  derived from it.
- ``error``: groundtruth minus synced.

Subjects are referred to by barcode. The ``BarcodeTable`` resolves a barcode to
an explicit ``Identity`` (robot or landmark) once, so no numeric-range
convention on the IDs is needed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from mrclam_prep.errors import UnresolvedIdentity


@dataclass
class State:
    """Robot pose: time [s], x [m], y [m], orientation [rad]."""

    time: float
    x: float
    y: float
    orientation: float


@dataclass
class Odometry:
    """Odometry input: time [s], forward velocity [m/s], angular velocity [rad/s]."""

    time: float
    forward_velocity: float
    angular_velocity: float


@dataclass
class Measurement:
    """
    Range-bearing observations sharing one timestamp.

    ``subjects``, ``ranges`` and ``bearings`` are parallel lists: the i-th range
    and bearing belong to the i-th subject barcode.
    """

    time: float
    subjects: List[int] = field(default_factory=list)
    ranges: List[float] = field(default_factory=list)
    bearings: List[float] = field(default_factory=list)

    def __post_init__(self):
        if not len(self.subjects) == len(self.ranges) == len(self.bearings):
            raise ValueError(
                "subjects, ranges and bearings must have equal lengths, got "
                f"{len(self.subjects)}, {len(self.ranges)}, {len(self.bearings)}"
            )

    @classmethod
    def single(cls, time, subject, measured_range, bearing):
        """Measurement with exactly one subject, as stored in the raw record set."""
        return cls(float(time), [int(subject)], [float(measured_range)], [float(bearing)])

    def append(self, subject, measured_range, bearing):
        self.subjects.append(int(subject))
        self.ranges.append(float(measured_range))
        self.bearings.append(float(bearing))

    def copy(self):
        return Measurement(
            self.time, list(self.subjects), list(self.ranges), list(self.bearings)
        )

    def __len__(self):
        return len(self.subjects)


@dataclass
class RobotData:
    """One record set of a robot (raw, synced, groundtruth or error)."""

    states: List[State] = field(default_factory=list)
    odometry: List[Odometry] = field(default_factory=list)
    measurements: List[Measurement] = field(default_factory=list)

    def clear(self):
        self.states.clear()
        self.odometry.clear()
        self.measurements.clear()


@dataclass
class ErrorStatistics:
    """
    Sample statistics of one scalar error channel.

    ``variance`` uses Bessel's correction. The quartile fields are ``None``
    until quartiles have been computed.
    """

    mean: float = 0.0
    variance: float = 0.0
    median: Optional[float] = None
    q1: Optional[float] = None
    q3: Optional[float] = None
    iqr: Optional[float] = None


@dataclass
class SensorNoise:
    """Variances of the zero-mean Gaussian noise injected by the simulator."""

    forward_velocity: float
    angular_velocity: float
    range: float
    bearing: float


@dataclass
class Robot:
    """All data related to one robot of a multi-robot dataset."""

    id: int
    barcode: int
    raw: RobotData = field(default_factory=RobotData)
    synced: RobotData = field(default_factory=RobotData)
    groundtruth: RobotData = field(default_factory=RobotData)
    error: RobotData = field(default_factory=RobotData)
    forward_velocity_error: ErrorStatistics = field(default_factory=ErrorStatistics)
    angular_velocity_error: ErrorStatistics = field(default_factory=ErrorStatistics)
    range_error: ErrorStatistics = field(default_factory=ErrorStatistics)
    bearing_error: ErrorStatistics = field(default_factory=ErrorStatistics)
    noise: Optional[SensorNoise] = None

    def clear_derived(self):
        """Drop every derived record set so it can be recomputed from scratch."""
        self.synced.clear()
        self.groundtruth.clear()
        self.error.clear()
        self.forward_velocity_error = ErrorStatistics()
        self.angular_velocity_error = ErrorStatistics()
        self.range_error = ErrorStatistics()
        self.bearing_error = ErrorStatistics()


@dataclass
class Landmark:
    """Static landmark: position [m] and positional standard deviation [m]."""

    id: int
    barcode: int
    x: float
    y: float
    x_std_dev: float = 0.0
    y_std_dev: float = 0.0


class IdentityKind(Enum):
    ROBOT = "robot"
    LANDMARK = "landmark"


@dataclass(frozen=True)
class Identity:
    """Resolved subject of a measurement: a robot or a landmark and its ID."""

    kind: IdentityKind
    id: int

    @property
    def is_robot(self):
        return self.kind is IdentityKind.ROBOT

    @property
    def is_landmark(self):
        return self.kind is IdentityKind.LANDMARK


class BarcodeTable:
    """
    Read-only lookup between subject IDs, barcodes and identities.

    The table is built once from the robots and landmarks of a dataset and is
    never modified afterwards.

    Examples
    --------
    >>> table = BarcodeTable.from_pairs(robots=[(1, 5)], landmarks=[(6, 72)])
    >>> table.resolve(72)
    Identity(kind=<IdentityKind.LANDMARK: 'landmark'>, id=6)
    >>> table.barcode_of(1)
    5
    """

    def __init__(self, identities: Dict[int, Identity]):
        self._identities = dict(identities)
        self._barcodes = {identity.id: barcode for barcode, identity in identities.items()}

    @classmethod
    def from_pairs(cls, robots, landmarks):
        """
        Build the table from ``(id, barcode)`` pairs.

        Raises
        ------
        ValueError
            If a barcode or an ID is used twice.
        """
        identities = {}
        ids = set()
        for kind, pairs in ((IdentityKind.ROBOT, robots), (IdentityKind.LANDMARK, landmarks)):
            for subject_id, barcode in pairs:
                subject_id, barcode = int(subject_id), int(barcode)
                if barcode in identities:
                    raise ValueError(f"Barcode {barcode} is assigned more than once")
                if subject_id in ids:
                    raise ValueError(f"Subject ID {subject_id} is assigned more than once")
                identities[barcode] = Identity(kind, subject_id)
                ids.add(subject_id)
        return cls(identities)

    def resolve(self, barcode) -> Identity:
        """
        Identity associated with a barcode.

        Raises
        ------
        UnresolvedIdentity
            If the barcode belongs to no robot or landmark.
        """
        try:
            return self._identities[int(barcode)]
        except KeyError:
            raise UnresolvedIdentity(barcode) from None

    def barcode_of(self, subject_id) -> int:
        return self._barcodes[int(subject_id)]

    def as_dict(self):
        """``{id: barcode}`` for all robots and landmarks, ordered by ID."""
        return dict(sorted(self._barcodes.items()))

    def __contains__(self, barcode):
        return int(barcode) in self._identities

    def __len__(self):
        return len(self._identities)
