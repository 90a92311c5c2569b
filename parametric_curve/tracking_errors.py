"""
Path-tracking errors of a vehicle with respect to a fitted curve.

These are the per-tick quantities a path-following controller consumes:
the signed lateral distance to the curve, the heading error, and the curve
parameter they were measured at.
"""

import math
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from .parametric_curve_3d import ParametricCurve3D


class PoseError(NamedTuple):
    distance_error: float
    heading_error: float
    param: float


def _wrap_once(angle: float) -> float:
    # one full turn at most, angles are expected in (-2*pi, 2*pi)
    if angle > math.pi:
        return angle - 2.0 * math.pi
    if angle <= -math.pi:
        return angle + 2.0 * math.pi
    return angle


def heading_error(curve: "ParametricCurve3D", actual_heading: float, param: float) -> float:
    """
    Heading error between the vehicle and the curve.

    Args:
        curve: Fitted curve
        actual_heading: Vehicle heading (rotation about z) in radians
        param: Curve parameter the error is measured at

    Returns:
        actual_heading - curve heading, wrapped into (-pi, pi]
    """
    return _wrap_once(actual_heading - curve.heading_at(param))


def distance_error(curve: "ParametricCurve3D", point, param: float) -> float:
    """
    Signed lateral distance between ``point`` and the curve point at ``param``.

    The vertical component is ignored. The distance is positive when the
    point lies to the left of the curve heading and negative to the right.
    """
    error = np.asarray(point, dtype=float).reshape(-1)[:2] - curve.point_at(param)[:2]
    norm = float(np.linalg.norm(error))
    if norm == 0.0:
        return 0.0

    angle = _wrap_once(math.atan2(error[1], error[0]) - curve.heading_at(param))
    return norm if angle >= 0.0 else -norm


def pose_error(curve: "ParametricCurve3D", point, actual_heading: float,
               search_start: float, search_length: float) -> PoseError:
    """
    Match the vehicle pose against the curve and return its tracking errors.

    The closest point is searched locally, starting at ``search_start`` and
    covering ``search_length`` of arc length ahead of it.

    Args:
        curve: Fitted curve
        point: Vehicle position [x, y, z]
        actual_heading: Vehicle heading in radians
        search_start: Curve parameter matched on the previous tick
        search_length: Arc length to search ahead of ``search_start``

    Returns:
        PoseError(distance_error, heading_error, param)
    """
    search_end = search_start + curve.unit_parameter() * search_length
    param = curve.local_closest_point_search(point, search_start, search_start, search_end)

    return PoseError(distance_error(curve, point, param),
                     heading_error(curve, actual_heading, param),
                     param)
