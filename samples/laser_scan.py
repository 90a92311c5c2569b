import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Protocol

import numpy as np
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)


class LaserRangeError(IntEnum):
    """Range values below END_LASER_RANGE_ERRORS encode why a beam is invalid."""

    TOO_FAR = 1
    TOO_NEAR = 2
    MEASUREMENT_ERROR = 3
    OTHER_RANGE_ERRORS = 4
    MAX_RANGE_ERROR = 5
    END_LASER_RANGE_ERRORS = 6


class PoseProvider(Protocol):
    def get(self, timestamp: float, allow_extrapolation: bool) -> Optional[np.ndarray]:
        """4x4 transform of the sensor at ``timestamp``, or None if unknown."""


@dataclass
class LaserScan:
    """
    One sweep of a rotating laser range finder.

    Args:
        time: Time at which the beam passed the zero step (s)
        start_angle: Angle of the first range, counter-clockwise from the front (rad)
        angular_resolution: Angle between two consecutive ranges (rad)
        speed: Rotation speed of the beam (rad/s)
        ranges: Distances to obstacles (mm)
        min_range: Smallest valid range (mm)
        max_range: Largest valid range (mm)
        remission: Raw, unnormalized remission values
    """

    time: float = 0.0
    start_angle: float = 0.0
    angular_resolution: float = 0.0
    speed: float = 0.0
    ranges: List[int] = field(default_factory=list)
    min_range: int = 0
    max_range: int = 0
    remission: List[float] = field(default_factory=list)

    def reset(self):
        self.speed = 0.0
        self.start_angle = 0.0
        self.min_range = 0
        self.max_range = 0
        self.ranges.clear()
        self.remission.clear()

    def is_range_valid(self, range_mm: int) -> bool:
        return (self.min_range <= range_mm <= self.max_range
                and range_mm >= LaserRangeError.END_LASER_RANGE_ERRORS)

    def is_valid_beam(self, i: int) -> bool:
        if not 0 <= i < len(self.ranges):
            raise IndexError(f"Invalid beam index {i} for {len(self.ranges)} ranges")
        return self.is_range_valid(self.ranges[i])

    def point_from_beam(self, i: int) -> Optional[np.ndarray]:
        """
        Point hit by beam ``i`` in the sensor frame (x forward, y left, z up), in meters.

        Returns:
            [x, y, z] or None if the beam is invalid
        """
        if not self.is_valid_beam(i):
            return None
        rotation = Rotation.from_euler('z', self.start_angle + i * self.angular_resolution)
        return rotation.apply([self.ranges[i] / 1000.0, 0.0, 0.0])

    def beam_time(self, i: int, start_time: float) -> float:
        """
        Time at which beam ``i`` was measured in a sweep started at ``start_time``.

        Raises:
            ValueError: If the angular resolution or the rotation speed is zero
        """
        if self.angular_resolution == 0.0 or self.speed == 0.0:
            raise ValueError(f"beam times need a nonzero angular resolution and speed, got "
                             f"{self.angular_resolution} rad and {self.speed} rad/s")
        return start_time + (self.start_angle / self.angular_resolution + i) * (
            self.angular_resolution / self.speed)

    def convert_to_point_cloud(self, transform: Optional[np.ndarray] = None,
                               skip_invalid_points: bool = True) -> np.ndarray:
        """
        Convert the scan into points.

        Args:
            transform: 4x4 homogeneous transform applied to every point,
                identity (sensor frame) if None
            skip_invalid_points: Drop invalid beams; otherwise they become
                NaN rows so that rows stay aligned with ``remission``

        Returns:
            Array of shape (N, 3)
        """
        if transform is None:
            transform = np.eye(4)

        points = []
        for i in range(len(self.ranges)):
            point = self.point_from_beam(i)
            if point is not None:
                points.append(transform[:3, :3] @ point + transform[:3, 3])
            elif not skip_invalid_points:
                points.append(np.full(3, np.nan))

        return np.array(points, dtype=float).reshape(-1, 3)

    def convert_to_point_cloud_interpolated(self, pose_provider: PoseProvider,
                                            start_time: float,
                                            skip_invalid_points: bool = True) -> np.ndarray:
        """
        Convert the scan into points, compensating the sensor motion during the sweep.

        Each beam is transformed by the pose the provider reports at the time
        the beam was measured. Beams without a pose are handled like invalid
        beams.
        """
        points = []
        converted = 0
        for i in range(len(self.ranges)):
            point = self.point_from_beam(i)
            pose = None
            if point is not None:
                pose = pose_provider.get(self.beam_time(i, start_time), False)

            if pose is not None:
                points.append(pose[:3, :3] @ point + pose[:3, 3])
                converted += 1
            elif not skip_invalid_points:
                points.append(np.full(3, np.nan))

        logger.debug("Converted %d of %d beams with interpolated poses",
                     converted, len(self.ranges))
        return np.array(points, dtype=float).reshape(-1, 3)
