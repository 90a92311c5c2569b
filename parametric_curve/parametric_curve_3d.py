import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import curve_math
from .curve_math import CurveHandle, CurveMathError
from .exceptions import (
    DomainError,
    EvaluationError,
    FitError,
    FitQueryError,
    LengthError,
    NoClosestPointError,
    SearchError,
    SimplifyError,
)
from . import tracking_errors
from .tracking_errors import PoseError

logger = logging.getLogger(__name__)

SIMPLIFY_ITERATIONS = 10


def _as_point(point) -> np.ndarray:
    point = np.asarray(point, dtype=float).reshape(-1)
    if point.shape != (curve_math.DIM,):
        raise ValueError(f"Points must have 3 coordinates, got {point.shape[0]}")
    return point


class ParametricCurve3D:
    """
    Smooth 3D curve interpolating an ordered list of control points.

    The curve is not built when points are added: fit() has to be called to
    (re)build it. Until then, and after clear(), every query that needs the
    curve fails. Curve length and maximum curvature are computed on demand
    and cached until the next fit() or clear().

    Parameters run over [start_param, end_param]; start_param is 0 and
    end_param is the cumulative chord length of the control points.
    """

    def __init__(self, geometric_resolution: float = 0.01, order: int = 3,
                 points: Optional[Sequence] = None, curve: Optional[CurveHandle] = None):
        """
        Initialize the curve.

        Args:
            geometric_resolution: Default tolerance of length, search and
                simplification queries
            order: Spline order (degree + 1), at least 2
            points: Initial control points, each [x, y, z]
            curve: Already fitted curve to take ownership of
        """
        if not geometric_resolution > 0.0:
            raise ValueError("Geometric resolution must be positive")
        if order < 2:
            raise ValueError("Curve order must be at least 2")

        self.geometric_resolution = float(geometric_resolution)
        self.order = int(order)
        self.control_points: List[np.ndarray] = [_as_point(p) for p in (points if points is not None else [])]

        self._curve = curve
        self._start_param: Optional[float] = None
        self._end_param: Optional[float] = None
        self._curve_length: Optional[float] = None
        self._curvature_max: Optional[float] = None

        if curve is not None:
            try:
                self._start_param, self._end_param = curve_math.parameter_range(curve)
            except CurveMathError as exc:
                raise FitQueryError("cannot get the curve start & end parameters") from exc

    @classmethod
    def from_settings(cls, settings, points: Optional[Sequence] = None) -> "ParametricCurve3D":
        """Create a curve from a CurveSettings instance."""
        return cls(settings.resolution, settings.order, points)

    def copy(self) -> "ParametricCurve3D":
        """Copy of this curve owning its own copy of the fitted curve."""
        duplicate = self.__class__.__new__(self.__class__)
        duplicate.geometric_resolution = self.geometric_resolution
        duplicate.order = self.order
        duplicate.control_points = [p.copy() for p in self.control_points]
        duplicate._curve = curve_math.copy_curve(self._curve) if self._curve is not None else None
        duplicate._start_param = self._start_param
        duplicate._end_param = self._end_param
        duplicate._curve_length = self._curve_length
        duplicate._curvature_max = self._curvature_max
        return duplicate

    __copy__ = copy

    def __deepcopy__(self, memo):
        return self.copy()

    # Control points and fitting

    def add_point(self, point):
        """Append a control point. The fitted curve is left as it is."""
        self.control_points.append(_as_point(point))

    def get_point_count(self) -> int:
        return len(self.control_points)

    def get_control_points(self) -> np.ndarray:
        """Control points as an (N, 3) array."""
        return np.array(self.control_points, dtype=float).reshape(-1, curve_math.DIM)

    def fit(self):
        """
        Build the curve through the current control points.

        Replaces any previous curve and drops the cached length and maximum
        curvature. On failure the previous curve is kept.

        Raises:
            FitError: If the curve cannot be built from the control points
        """
        try:
            result = curve_math.fit_curve(self.get_control_points(), self.order, start_param=0.0)
        except CurveMathError as exc:
            raise FitError(f"cannot generate the curve: {exc}") from exc

        self._release_curve()
        self._curve = result.curve
        self._start_param, self._end_param = 0.0, result.end_param
        self._invalidate_caches()
        logger.debug("Fitted order %d curve through %d points, parameters 0 -> %g",
                     self.order, self.get_point_count(), self._end_param)

    def clear(self):
        """Release the fitted curve and remove all control points."""
        self._release_curve()
        self.control_points.clear()

    def _release_curve(self):
        if self._curve is not None:
            curve_math.free_curve(self._curve)
            self._curve = None
            self._start_param = None
            self._end_param = None
        self._invalidate_caches()

    def _invalidate_caches(self):
        self._curve_length = None
        self._curvature_max = None

    @property
    def is_fitted(self) -> bool:
        return self._curve is not None

    @property
    def start_param(self) -> Optional[float]:
        return self._start_param

    @property
    def end_param(self) -> Optional[float]:
        return self._end_param

    @property
    def domain(self) -> Tuple[float, float]:
        if self._curve is None:
            raise DomainError("the curve is not fitted")
        return self._start_param, self._end_param

    def get_curve(self) -> Optional[CurveHandle]:
        """The fitted curve handle, still owned by this object."""
        return self._curve

    def _tolerance(self, tolerance: Optional[float]) -> float:
        return self.geometric_resolution if tolerance is None else tolerance

    # Evaluation

    def _check_param(self, param: float):
        if self._curve is None:
            raise DomainError("the curve is not fitted")
        if not np.isfinite(param) or param < self._start_param or param > self._end_param:
            raise DomainError(f"{param} is not in the [{self._start_param}, "
                              f"{self._end_param}] range")

    def point_at(self, param: float) -> np.ndarray:
        """
        Point of the curve at ``param``.

        Raises:
            DomainError: If ``param`` is outside [start_param, end_param]
        """
        self._check_param(param)
        try:
            return curve_math.evaluate_position(self._curve, param)
        except CurveMathError as exc:
            raise EvaluationError(f"error while computing a curve point: {exc}") from exc

    def curvature_at(self, param: float) -> float:
        self._check_param(param)
        try:
            return curve_math.evaluate_curvature(self._curve, param)
        except CurveMathError as exc:
            raise EvaluationError(f"error while computing a curvature: {exc}") from exc

    def curvature_derivative_at(self, param: float) -> float:
        """Variation of curvature (dkappa/ds) at ``param``."""
        self._check_param(param)
        try:
            return curve_math.evaluate_curvature_derivative(self._curve, param)
        except CurveMathError as exc:
            raise EvaluationError(f"error while computing a variation of curvature: {exc}") from exc

    def frenet_frame_at(self, param: float) -> np.ndarray:
        """
        Frenet frame at ``param``.

        The parameter is not checked against the domain; outside of it the
        frame of the extrapolated curve is returned.

        Returns:
            3x3 array whose rows are the tangent, normal and binormal
        """
        if self._curve is None:
            raise DomainError("the curve is not fitted")
        try:
            tangent, normal, binormal = curve_math.evaluate_frenet_frame(self._curve, param)
        except CurveMathError as exc:
            raise EvaluationError(f"error while computing a Frenet frame: {exc}") from exc
        return np.vstack([tangent, normal, binormal])

    def heading_at(self, param: float) -> float:
        """
        Angle of the tangent projected on the horizontal plane, in radians.

        Raises:
            EvaluationError: If the tangent is vertical and has no heading
        """
        frame = self.frenet_frame_at(param)
        horizontal = np.linalg.norm(frame[0, :2])
        if horizontal <= 1e-12:
            raise EvaluationError(f"the tangent at {param} is vertical, no heading is defined")
        return math.atan2(frame[0, 1] / horizontal, frame[0, 0] / horizontal)

    # Cached scalars

    def curve_length(self) -> float:
        """
        Arc length of the curve, integrated to the geometric resolution.

        Raises:
            LengthError: If no curve is fitted or the integration failed
        """
        if self._curve_length is not None:
            return self._curve_length
        if self._curve is None:
            raise LengthError("the curve is not fitted")

        try:
            result = curve_math.integrate_length(self._curve, self.geometric_resolution)
        except CurveMathError as exc:
            raise LengthError(f"cannot get the curve length: {exc}") from exc
        if result.status != 0:
            raise LengthError(f"cannot get the curve length (status {result.status})")

        self._curve_length = result.length
        logger.debug("Curve length: %g", self._curve_length)
        return self._curve_length

    def unit_parameter(self) -> float:
        """Parameter increment per unit of arc length."""
        length = self.curve_length()
        return (self._end_param - self._start_param) / length

    def curvature_sample_parameters(self) -> List[float]:
        """Parameters at which curvature_max() samples the curvature."""
        step = self.unit_parameter() * self.geometric_resolution
        params = []
        p = self._start_param
        while p <= self._end_param:
            params.append(p)
            p += step
        if params[-1] < self._end_param:
            params.append(self._end_param)
        return params

    def curvature_max(self) -> float:
        """
        Maximum curvature over the curve.

        Sampled every geometric_resolution of arc length, so this is an
        estimate whose accuracy depends on the resolution.
        """
        if self._curvature_max is not None:
            return self._curvature_max

        curvature_max = 0.0
        for p in self.curvature_sample_parameters():
            curvature_max = max(curvature_max, self.curvature_at(p))

        self._curvature_max = curvature_max
        return self._curvature_max

    # Closest point search

    def find_closest_points(self, target, tolerance: Optional[float] = None
                            ) -> Tuple[List[float], List[Tuple[float, float]]]:
        """
        Global search for the points of the curve closest to ``target``.

        Args:
            target: Point [x, y, z]
            tolerance: Geometric tolerance, geometric_resolution if None

        Returns:
            Tuple of (params, intervals): parameters of isolated closest points,
            closest first, and (param_start, param_end) pairs of stretches
            staying at a constant distance from the target

        Raises:
            SearchError: If no curve is fitted or the search failed
        """
        if self._curve is None:
            raise SearchError("the curve is not fitted")
        try:
            result = curve_math.find_closest_global(self._curve, target, self._tolerance(tolerance))
        except CurveMathError as exc:
            raise SearchError(f"failed to find the closest points: {exc}") from exc
        if result.status != 0:
            raise SearchError(f"failed to find the closest points (status {result.status})")

        return result.points, result.intervals

    def find_one_closest_point(self, target, tolerance: Optional[float] = None) -> float:
        """
        Parameter of one closest point to ``target``.

        Raises:
            NoClosestPointError: If the search returned nothing
        """
        points, intervals = self.find_closest_points(target, tolerance)
        if points:
            return points[0]
        if intervals:
            return intervals[0][0]
        raise NoClosestPointError(f"no closest point returned for {np.asarray(target).tolist()}")

    def local_closest_point_search(self, target, guess: float, range_start: float,
                                   range_end: float, tolerance: Optional[float] = None) -> float:
        """
        Closest point search restricted to [range_start, range_end].

        Warnings of the underlying search (iteration limit, minimum on the
        range boundary) are accepted; the best parameter found is returned.

        Raises:
            SearchError: If no curve is fitted or the search failed
        """
        if self._curve is None:
            raise SearchError("the curve is not fitted")
        try:
            result = curve_math.find_closest_local(self._curve, target, guess, range_start,
                                                   range_end, self._tolerance(tolerance))
        except CurveMathError as exc:
            raise SearchError(f"failed to find the closest point: {exc}") from exc
        if result.status < 0:
            raise SearchError(f"failed to find the closest point (status {result.status})")

        return result.param

    # Simplification

    def simplify(self, tolerance: Optional[float] = None) -> np.ndarray:
        """
        Replace the fitted curve by one with fewer coefficients.

        Args:
            tolerance: Maximum deviation along each axis, geometric_resolution if None

        Returns:
            Achieved maximum deviation along x, y and z

        Raises:
            SimplifyError: If no curve is fitted or the tolerance cannot be met
        """
        if self._curve is None:
            raise SimplifyError("the curve is not initialized")

        tolerance = self._tolerance(tolerance)
        try:
            result = curve_math.simplify_curve(self._curve, (tolerance,) * curve_math.DIM,
                                               self.order, SIMPLIFY_ITERATIONS)
        except CurveMathError as exc:
            raise SimplifyError(f"error while simplifying a curve: {exc}") from exc
        if result.status != 0:
            curve_math.free_curve(result.curve)
            raise SimplifyError(f"error while simplifying a curve (status {result.status}), "
                                f"max error {result.max_error.tolist()}")

        before = self._curve.coefficient_count
        self._release_curve()
        self._curve = result.curve
        self._start_param, self._end_param = curve_math.parameter_range(result.curve)
        logger.info("Simplified curve from %d to %d coefficients, max error %s",
                    before, result.curve.coefficient_count, result.max_error)
        return result.max_error

    # Path tracking

    def heading_error(self, actual_heading: float, param: float) -> float:
        return tracking_errors.heading_error(self, actual_heading, param)

    def distance_error(self, point, param: float) -> float:
        return tracking_errors.distance_error(self, point, param)

    def pose_error(self, point, actual_heading: float, search_start: float,
                   search_length: float) -> PoseError:
        """See tracking_errors.pose_error."""
        return tracking_errors.pose_error(self, point, actual_heading, search_start,
                                          search_length)

    # Inspection

    def sample(self, num_points: int = 100) -> Dict[str, np.ndarray]:
        """
        Sample the curve at evenly spaced parameters.

        Returns:
            Dictionary containing:
            - 'params': parameter values
            - 'positions': [x, y, z] points
            - 'curvatures': curvature values
            - 'headings': heading angles in radians
        """
        if self._curve is None:
            raise DomainError("the curve is not fitted")
        params = np.linspace(self._start_param, self._end_param, num_points)

        return {
            'params': params,
            'positions': np.array([self.point_at(p) for p in params]),
            'curvatures': np.array([self.curvature_at(p) for p in params]),
            'headings': np.array([self.heading_at(p) for p in params]),
        }

    def curve_properties(self) -> Dict[str, object]:
        if self._curve is None:
            raise DomainError("the curve is not fitted")
        return {
            'point_count': self.get_point_count(),
            'coefficient_count': self._curve.coefficient_count,
            'order': self._curve.order,
            'dimension': self._curve.dimension,
            'parameters': (self._start_param, self._end_param),
            'length': self.curve_length(),
        }

    def print_curve_properties(self):
        properties = self.curve_properties()
        logger.info("Curve properties: %d points, %d coefficients, order %d, dimension %d, "
                    "parameters %g -> %g, length %g",
                    properties['point_count'], properties['coefficient_count'],
                    properties['order'], properties['dimension'],
                    properties['parameters'][0], properties['parameters'][1],
                    properties['length'])

    def __repr__(self):
        state = f"[{self._start_param}, {self._end_param}]" if self.is_fitted else "not fitted"
        return (f"{self.__class__.__name__}(points={self.get_point_count()}, "
                f"order={self.order}, {state})")
