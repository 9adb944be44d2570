"""
Agent and landmark store shared by the synchronisation engine, the groundtruth
derivation, the error statistics and the simulator.
"""

import logging
from typing import List

from mrclam_prep.data.models import (
    BarcodeTable,
    Landmark,
    Measurement,
    Odometry,
    Robot,
    State,
)
from mrclam_prep.errors import UnresolvedIdentity

logger = logging.getLogger(__name__)


class Dataset:
    """
    Robots, landmarks and the barcode table of one dataset or simulation run.

    The barcode table and the landmarks are populated once and treated as
    read-only afterwards. Robot ``raw`` data is filled by the reader or the
    simulator; the ``synced``, ``groundtruth`` and ``error`` record sets are
    always recomputed from scratch.

    Parameters
    ----------
    robots : list of Robot
        Robots ordered by ID.
    landmarks : list of Landmark
        Landmarks ordered by ID.
    sample_period : float
        Period [s] of the synchronised clock.

    Attributes
    ----------
    barcodes : BarcodeTable
        Barcode lookup built from the robots and landmarks.
    time_origin : float
        Time [s] subtracted from the raw timestamps during synchronisation.
    synced_step_count : int
        Number of sample periods spanned by the synchronised timeline.
    simulation_steps : set of str
        Names of the :class:`Simulator` steps already run on this dataset.
    """

    def __init__(self, robots: List[Robot], landmarks: List[Landmark], sample_period=0.02):
        self.robots = list(robots)
        self.landmarks = list(landmarks)
        self.sample_period = sample_period
        self.time_origin = 0.0
        self.synced_step_count = 0
        self.simulation_steps = set()
        self.barcodes = BarcodeTable.from_pairs(
            robots=[(robot.id, robot.barcode) for robot in self.robots],
            landmarks=[(landmark.id, landmark.barcode) for landmark in self.landmarks],
        )
        self._robots_by_id = {robot.id: robot for robot in self.robots}
        self._landmarks_by_id = {landmark.id: landmark for landmark in self.landmarks}

    @classmethod
    def from_records(cls, barcodes, landmarks, states, odometry, measurements,
                     sample_period=0.02):
        """
        Build a dataset from plain records, as supplied by a file reader.

        Parameters
        ----------
        barcodes : dict
            ``{id: barcode}`` for every robot and landmark.
        landmarks : iterable of tuple
            ``(id, x, y, x_std_dev, y_std_dev)`` per landmark. Every landmark ID
            must appear in ``barcodes``.
        states, odometry, measurements : dict
            ``{robot_id: records}`` with ``(time, x, y, orientation)``,
            ``(time, forward_velocity, angular_velocity)`` and
            ``(time, subject_barcode, range, bearing)`` tuples respectively.
            The keys of ``states`` define the robots.

        Examples
        --------
        >>> dataset = Dataset.from_records(
        ...     barcodes={1: 5, 2: 14, 3: 72},
        ...     landmarks=[(3, 1.0, 2.0, 0.001, 0.001)],
        ...     states={1: [(0.0, 0.0, 0.0, 0.0)], 2: [(0.0, 1.0, 0.0, 0.0)]},
        ...     odometry={1: [(0.0, 0.1, 0.0)], 2: [(0.0, 0.1, 0.0)]},
        ...     measurements={1: [(0.0, 72, 2.2, 1.1)], 2: []},
        ... )
        >>> [robot.barcode for robot in dataset.robots]
        [5, 14]
        """
        robots = []
        for robot_id in sorted(states):
            if robot_id not in barcodes:
                raise ValueError(f"No barcode listed for robot {robot_id}")
            robot = Robot(id=int(robot_id), barcode=int(barcodes[robot_id]))
            robot.raw.states = [State(*map(float, record)) for record in states[robot_id]]
            robot.raw.odometry = [
                Odometry(*map(float, record)) for record in odometry.get(robot_id, [])
            ]
            robot.raw.measurements = [
                Measurement.single(*record) for record in measurements.get(robot_id, [])
            ]
            robots.append(robot)

        landmark_list = []
        for landmark_id, x, y, x_std_dev, y_std_dev in landmarks:
            if landmark_id not in barcodes:
                raise ValueError(f"No barcode listed for landmark {landmark_id}")
            landmark_list.append(
                Landmark(
                    id=int(landmark_id),
                    barcode=int(barcodes[landmark_id]),
                    x=float(x),
                    y=float(y),
                    x_std_dev=float(x_std_dev),
                    y_std_dev=float(y_std_dev),
                )
            )
        landmark_list.sort(key=lambda landmark: landmark.id)
        return cls(robots, landmark_list, sample_period)

    def robot(self, robot_id) -> Robot:
        return self._robots_by_id[robot_id]

    def landmark(self, landmark_id) -> Landmark:
        return self._landmarks_by_id[landmark_id]

    def resolve(self, barcode):
        """
        Robot or landmark observed under ``barcode``.

        Raises
        ------
        UnresolvedIdentity
            If the barcode is unknown.
        """
        identity = self.barcodes.resolve(barcode)
        if identity.is_robot:
            return self._robots_by_id[identity.id]
        return self._landmarks_by_id[identity.id]

    def is_known_barcode(self, barcode):
        try:
            self.barcodes.resolve(barcode)
        except UnresolvedIdentity:
            return False
        return True

    def clear_derived(self):
        for robot in self.robots:
            robot.clear_derived()
        self.synced_step_count = 0

    @property
    def number_of_robots(self):
        return len(self.robots)

    @property
    def number_of_landmarks(self):
        return len(self.landmarks)

    def __repr__(self):
        return (
            f"Dataset(robots={self.number_of_robots}, landmarks={self.number_of_landmarks}, "
            f"sample_period={self.sample_period})"
        )
