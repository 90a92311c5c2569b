"""
B-spline curve math used by ParametricCurve3D.

This module is the numerical backend of the curve engine. It builds
interpolating B-splines through 3D points with chord-length parameterization
and answers evaluation, length, closest-point and data-reduction queries on
them. All spline work is delegated to scipy:

- scipy.interpolate for construction, evaluation and least-squares reduction
- scipy.integrate.quad for arc length
- scipy.optimize for closest-point root finding

Hard failures raise CurveMathError. Recoverable conditions are reported
through the ``status`` field of the returned named tuples:
0 means ok, a positive value is a warning.
"""

import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from scipy.integrate import quad
from scipy.interpolate import BSpline, make_interp_spline
from scipy.optimize import brentq, minimize_scalar

logger = logging.getLogger(__name__)

DIM = 3

STATUS_OK = 0
STATUS_NOT_CONVERGED = 1
STATUS_ON_BOUNDARY = 2

STATUS_RELEASED = -101
STATUS_BAD_INPUT = -102
STATUS_DEGENERATE = -103
STATUS_EMPTY_RANGE = -104

_EPS = 1e-12
_SEARCH_SAMPLES_PER_SPAN = 16
_SIMPLIFY_SAMPLES_PER_SPAN = 32
_INTERVAL_MIN_EXTENT = 10.0
_MAX_NEWTON_ITERATIONS = 50


class CurveMathError(RuntimeError):
    """Raised when the curve math cannot produce a result."""

    def __init__(self, message: str, status: int = STATUS_BAD_INPUT):
        super().__init__(message)
        self.status = status


class CurveHandle:
    """
    Opaque handle on a fitted B-spline curve.

    A handle is released with free_curve(); any later use raises
    CurveMathError.
    """

    def __init__(self, spline: BSpline):
        self._spline = spline

    @property
    def released(self) -> bool:
        return self._spline is None

    @property
    def spline(self) -> BSpline:
        if self._spline is None:
            raise CurveMathError("curve handle has been released", STATUS_RELEASED)
        return self._spline

    @property
    def order(self) -> int:
        return self.spline.k + 1

    @property
    def coefficient_count(self) -> int:
        return self.spline.c.shape[0]

    @property
    def dimension(self) -> int:
        return self.spline.c.shape[1]

    def __repr__(self):
        if self.released:
            return "CurveHandle(released)"
        return f"CurveHandle(order={self.order}, coefficients={self.coefficient_count})"


class FitResult(NamedTuple):
    curve: CurveHandle
    end_param: float


class LengthResult(NamedTuple):
    length: float
    status: int


class GlobalSearchResult(NamedTuple):
    points: List[float]
    intervals: List[Tuple[float, float]]
    status: int


class LocalSearchResult(NamedTuple):
    param: float
    status: int


class SimplifyResult(NamedTuple):
    curve: CurveHandle
    max_error: np.ndarray
    status: int


def _domain(spline: BSpline) -> Tuple[float, float]:
    return float(spline.t[spline.k]), float(spline.t[len(spline.t) - spline.k - 1])


def _breakpoints(spline: BSpline) -> np.ndarray:
    """Distinct knot values inside the curve domain, ends included."""
    return np.unique(spline.t[spline.k:len(spline.t) - spline.k])


def _sample_parameters(spline: BSpline, per_span: int) -> np.ndarray:
    breaks = _breakpoints(spline)
    samples = [np.linspace(a, b, per_span, endpoint=False)
               for a, b in zip(breaks[:-1], breaks[1:])]
    samples.append(breaks[-1:])
    return np.concatenate(samples)


def _derivative(spline: BSpline, u, nu: int) -> np.ndarray:
    # scipy rejects derivative orders above the degree; those vanish anyway
    if nu > spline.k:
        return np.zeros(np.shape(u) + (spline.c.shape[1],))
    return np.asarray(spline(u, nu=nu), dtype=float)


def _as_target(target) -> np.ndarray:
    target = np.asarray(target, dtype=float).reshape(-1)
    if target.shape != (DIM,) or not np.all(np.isfinite(target)):
        raise CurveMathError("target must be a finite 3D point", STATUS_BAD_INPUT)
    return target


def _check_tolerance(tolerance: float):
    if not np.isfinite(tolerance) or tolerance <= 0.0:
        raise CurveMathError(f"tolerance must be positive, got {tolerance}", STATUS_BAD_INPUT)


def fit_curve(points, order: int, start_param: float = 0.0) -> FitResult:
    """
    Interpolate an open B-spline curve through ordered 3D points.

    Points are parameterized by cumulative chord length starting at
    ``start_param``. When there are fewer points than ``order`` the degree is
    lowered to the highest one the points support.

    Args:
        points: Array of shape (N, 3), all treated as ordinary points
        order: Spline order (degree + 1), at least 2
        start_param: Parameter assigned to the first point

    Returns:
        FitResult with the new curve handle and the parameter of the last point
    """
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] != DIM:
        raise CurveMathError("points must be of shape (N, 3)", STATUS_BAD_INPUT)
    if len(points) < 2:
        raise CurveMathError(f"need at least 2 points to fit a curve, got {len(points)}",
                             STATUS_BAD_INPUT)
    if order < 2:
        raise CurveMathError(f"curve order must be at least 2, got {order}", STATUS_BAD_INPUT)
    if not np.all(np.isfinite(points)):
        raise CurveMathError("points must be finite", STATUS_BAD_INPUT)

    chords = np.linalg.norm(np.diff(points, axis=0), axis=1)
    if np.any(chords <= _EPS):
        raise CurveMathError("consecutive points coincide", STATUS_DEGENERATE)

    params = start_param + np.concatenate(([0.0], np.cumsum(chords)))
    degree = min(order - 1, len(points) - 1)
    if degree < order - 1:
        logger.debug("Lowering curve degree to %d for %d points", degree, len(points))

    spline = make_interp_spline(params, points, k=degree)
    return FitResult(CurveHandle(spline), float(params[-1]))


def parameter_range(curve: CurveHandle) -> Tuple[float, float]:
    """Return the (start, end) parameter interval of the curve."""
    return _domain(curve.spline)


def evaluate_position(curve: CurveHandle, param: float) -> np.ndarray:
    return np.asarray(curve.spline(param), dtype=float)


def evaluate_curvature(curve: CurveHandle, param: float) -> float:
    spline = curve.spline
    d1 = _derivative(spline, param, 1)
    d2 = _derivative(spline, param, 2)
    speed = np.linalg.norm(d1)
    if speed <= _EPS:
        raise CurveMathError(f"degenerate tangent at parameter {param}", STATUS_DEGENERATE)

    # kappa = |r' x r''| / |r'|^3
    return float(np.linalg.norm(np.cross(d1, d2)) / speed**3)


def evaluate_curvature_derivative(curve: CurveHandle, param: float) -> float:
    """
    Variation of curvature: derivative of curvature with respect to arc length.
    """
    spline = curve.spline
    d1 = _derivative(spline, param, 1)
    d2 = _derivative(spline, param, 2)
    d3 = _derivative(spline, param, 3)
    speed = np.linalg.norm(d1)
    if speed <= _EPS:
        raise CurveMathError(f"degenerate tangent at parameter {param}", STATUS_DEGENERATE)

    cross = np.cross(d1, d2)
    cross_norm = np.linalg.norm(cross)
    # d|r' x r''|/du, taken as zero where the curve is locally straight
    if cross_norm > _EPS:
        cross_norm_rate = np.dot(cross, np.cross(d1, d3)) / cross_norm
    else:
        cross_norm_rate = 0.0

    dkappa_du = cross_norm_rate / speed**3 - 3.0 * cross_norm * np.dot(d1, d2) / speed**5
    return float(dkappa_du / speed)


def evaluate_frenet_frame(curve: CurveHandle,
                          param: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Frenet frame (tangent, normal, binormal) at ``param``.

    The spline extrapolates outside its domain, so parameters out of range
    give a frame of the polynomial continuation. On straight stretches the
    normal is taken horizontal, to the left of the tangent.
    """
    spline = curve.spline
    d1 = _derivative(spline, param, 1)
    d2 = _derivative(spline, param, 2)
    speed = np.linalg.norm(d1)
    if speed <= _EPS:
        raise CurveMathError(f"degenerate tangent at parameter {param}", STATUS_DEGENERATE)
    tangent = d1 / speed

    cross = np.cross(d1, d2)
    cross_norm = np.linalg.norm(cross)
    if cross_norm > _EPS * speed**2:
        binormal = cross / cross_norm
        normal = np.cross(binormal, tangent)
    else:
        reference = np.array([0.0, 0.0, 1.0])
        if abs(tangent[2]) > 0.9:
            reference = np.array([1.0, 0.0, 0.0])
        normal = np.cross(reference, tangent)
        normal /= np.linalg.norm(normal)
        binormal = np.cross(tangent, normal)

    return tangent, normal, binormal


def integrate_length(curve: CurveHandle, tolerance: float) -> LengthResult:
    """Arc length over the whole domain, integrated span by span."""
    _check_tolerance(tolerance)
    spline = curve.spline
    breaks = _breakpoints(spline)
    spans = len(breaks) - 1

    def speed(u):
        return float(np.linalg.norm(spline(u, nu=1)))

    length = 0.0
    status = STATUS_OK
    for a, b in zip(breaks[:-1], breaks[1:]):
        result = quad(speed, a, b, epsabs=tolerance / spans, limit=100, full_output=1)
        length += result[0]
        # quad appends a message only when the integration had trouble
        if len(result) > 3:
            logger.warning("Arc length integration on [%g, %g]: %s", a, b, result[3])
            status = STATUS_NOT_CONVERGED

    return LengthResult(length, status)


def _coincident_intervals(params: np.ndarray, positions: np.ndarray, distances: np.ndarray,
                          tangential: np.ndarray,
                          tolerance: float) -> List[Tuple[float, float]]:
    """Runs of samples where the curve keeps a constant distance to the target."""
    flat = np.abs(tangential) <= tolerance
    intervals = []
    i = 0
    n = len(params)
    while i < n:
        if not flat[i]:
            i += 1
            continue
        j = i
        while j + 1 < n and flat[j + 1]:
            j += 1
        if j > i:
            run_length = np.sum(np.linalg.norm(np.diff(positions[i:j + 1], axis=0), axis=1))
            spread = np.ptp(distances[i:j + 1])
            if run_length > _INTERVAL_MIN_EXTENT * tolerance and spread <= tolerance:
                intervals.append((float(params[i]), float(params[j])))
        i = j + 1
    return intervals


def find_closest_global(curve: CurveHandle, target, tolerance: float) -> GlobalSearchResult:
    """
    Find every local closest point of the curve to ``target``.

    The tangential offset (P(u) - target) . T(u) is sampled along the curve.
    Its sign changes from negative to positive bracket isolated minima of the
    distance, refined with Brent's method. Stretches where the offset stays
    within ``tolerance`` and the distance is constant are returned as
    intervals instead.

    Returns:
        GlobalSearchResult, points sorted by increasing distance to the target
    """
    spline = curve.spline
    target = _as_target(target)
    _check_tolerance(tolerance)

    params = _sample_parameters(spline, _SEARCH_SAMPLES_PER_SPAN)
    positions = spline(params)
    tangents = spline(params, nu=1)
    speeds = np.linalg.norm(tangents, axis=1)
    if np.any(speeds <= _EPS):
        raise CurveMathError("curve has a degenerate tangent", STATUS_DEGENERATE)

    offsets = positions - target
    tangential = np.einsum("ij,ij->i", offsets, tangents) / speeds
    distances = np.linalg.norm(offsets, axis=1)

    intervals = _coincident_intervals(params, positions, distances, tangential, tolerance)

    def tangential_offset(u):
        d1 = spline(u, nu=1)
        return float(np.dot(spline(u) - target, d1) / np.linalg.norm(d1))

    status = STATUS_OK
    last = len(params) - 1
    candidates = []
    if tangential[0] > 0.0:
        candidates.append(params[0])
    if tangential[last] < 0.0:
        candidates.append(params[last])
    for i in range(last):
        f0, f1 = tangential[i], tangential[i + 1]
        if f0 == 0.0 and i > 0 and tangential[i - 1] < 0.0 < f1:
            candidates.append(params[i])
        elif f0 < 0.0 < f1:
            root, info = brentq(tangential_offset, params[i], params[i + 1],
                                full_output=True, disp=False)
            if not info.converged:
                logger.warning("Closest point refinement did not converge near %g", root)
                status = STATUS_NOT_CONVERGED
            candidates.append(root)

    candidates.sort(key=lambda u: np.linalg.norm(spline(u) - target))
    points = []
    for u in candidates:
        if any(a <= u <= b for a, b in intervals):
            continue
        position = spline(u)
        if any(np.linalg.norm(position - spline(p)) <= tolerance for p in points):
            continue
        points.append(float(u))

    return GlobalSearchResult(points, intervals, status)


def find_closest_local(curve: CurveHandle, target, guess: float, start: float, end: float,
                       tolerance: float) -> LocalSearchResult:
    """
    Newton search for the closest point, seeded at ``guess``, within [start, end].

    The search range is clipped to the curve domain. Newton's method minimizes
    ||P(u) - target||^2; where the objective is not convex around the iterate
    a bounded scalar minimization over the whole range takes over.

    Returns:
        LocalSearchResult; status STATUS_NOT_CONVERGED when the iteration
        limit was reached, STATUS_ON_BOUNDARY when the minimum lies on the
        edge of the range
    """
    spline = curve.spline
    target = _as_target(target)
    _check_tolerance(tolerance)
    if not (np.isfinite(guess) and np.isfinite(start) and np.isfinite(end)):
        raise CurveMathError("search parameters must be finite", STATUS_BAD_INPUT)
    if start > end:
        raise CurveMathError(f"empty search range [{start}, {end}]", STATUS_EMPTY_RANGE)

    lo, hi = _domain(spline)
    a, b = max(start, lo), min(end, hi)
    if a > b:
        raise CurveMathError(f"search range [{start}, {end}] is outside the curve domain",
                             STATUS_EMPTY_RANGE)

    u = float(np.clip(guess, a, b))
    status = STATUS_NOT_CONVERGED
    for _ in range(_MAX_NEWTON_ITERATIONS):
        point = spline(u)
        first_deriv = _derivative(spline, u, 1)
        second_deriv = _derivative(spline, u, 2)
        speed = np.linalg.norm(first_deriv)
        if speed <= _EPS:
            raise CurveMathError(f"degenerate tangent at parameter {u}", STATUS_DEGENERATE)

        diff = point - target
        f = np.dot(diff, first_deriv)
        f_prime = np.dot(first_deriv, first_deriv) + np.dot(diff, second_deriv)

        # also catches a distance maximum, where f vanishes too
        if f_prime <= _EPS:
            result = minimize_scalar(lambda p: np.sum((spline(p) - target) ** 2),
                                     bounds=(a, b), method="bounded",
                                     options={"xatol": tolerance * 1e-3 / speed})
            u = float(result.x)
            status = STATUS_OK if result.success else STATUS_NOT_CONVERGED
            break

        if abs(f) / speed <= tolerance * 1e-3:
            status = STATUS_OK
            break

        u_new = float(np.clip(u - f / f_prime, a, b))
        if abs(u_new - u) * speed <= tolerance * 1e-3:
            u = u_new
            status = STATUS_OK
            break
        u = u_new

    if status == STATUS_OK and (u <= a or u >= b):
        # the distance still decreases when leaving the range
        f = np.dot(spline(u) - target, _derivative(spline, u, 1))
        if (u <= a and f > 0.0) or (u >= b and f < 0.0):
            status = STATUS_ON_BOUNDARY

    if status != STATUS_OK:
        logger.debug("Local closest point search ended with status %d at %g", status, u)
    return LocalSearchResult(u, status)


def _end_coefficients(spline: BSpline, knots: np.ndarray, degree: int,
                      count: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    First and last ``count`` coefficients of a clamped spline on ``knots``
    sharing the derivatives 0 .. count-1 of ``spline`` at both ends.

    Only the first (last) ``count`` basis functions have nonzero derivatives
    of order below ``count`` at the start (end), so each end is a small
    triangular system.
    """
    n = len(knots) - degree - 1
    coefficients = []
    for indices, x in ((range(count), knots[0]), (range(n - count, n), knots[-1])):
        basis = np.empty((count, count))
        for column, i in enumerate(indices):
            unit = np.zeros(n)
            unit[i] = 1.0
            element = BSpline(knots, unit, degree)
            for nu in range(count):
                basis[nu, column] = element(x, nu=nu)
        derivatives = np.array([_derivative(spline, x, nu) for nu in range(count)])
        coefficients.append(np.linalg.solve(basis, derivatives))
    return coefficients[0], coefficients[1]


def _fit_with_fixed_ends(spline: BSpline, samples: np.ndarray, reference: np.ndarray,
                         knots: np.ndarray, degree: int, count: int) -> BSpline:
    """Least-squares fit of the inner coefficients, end coefficients pinned to ``spline``."""
    n = len(knots) - degree - 1
    head, tail = _end_coefficients(spline, knots, degree, count)
    design = BSpline.design_matrix(samples, knots, degree).toarray()

    coefficients = np.empty((n, DIM))
    coefficients[:count] = head
    coefficients[n - count:] = tail
    if n > 2 * count:
        residual = reference - design[:, :count] @ head - design[:, n - count:] @ tail
        inner, *_ = np.linalg.lstsq(design[:, count:n - count], residual, rcond=None)
        coefficients[count:n - count] = inner
    return BSpline(knots, coefficients, degree)


def simplify_curve(curve: CurveHandle, tolerance_box: Sequence[float], order: int,
                   iterations: int) -> SimplifyResult:
    """
    Approximate the curve with fewer coefficients.

    Starts from the coarsest knot vector able to hold the end conditions and
    splits the knot spans whose fit leaves the per-axis tolerance box, for at
    most ``iterations`` rounds. The reduced curve keeps the domain of the
    input, has a degree of at most ``order - 1``, and matches the position
    and the derivatives up to that degree minus one at both ends.

    Returns:
        SimplifyResult with the per-axis maximum deviation; status
        STATUS_NOT_CONVERGED when the tolerance could not be met
    """
    spline = curve.spline
    tolerance_box = np.asarray(tolerance_box, dtype=float).reshape(-1)
    if tolerance_box.shape != (DIM,) or np.any(tolerance_box <= 0.0):
        raise CurveMathError("tolerance box must hold 3 positive values", STATUS_BAD_INPUT)
    if order < 2:
        raise CurveMathError(f"curve order must be at least 2, got {order}", STATUS_BAD_INPUT)
    if iterations < 1:
        raise CurveMathError(f"need at least one iteration, got {iterations}", STATUS_BAD_INPUT)

    start, end = _domain(spline)
    degree = min(order - 1, spline.k)
    fixed = degree
    samples = _sample_parameters(spline, _SIMPLIFY_SAMPLES_PER_SPAN)
    reference = spline(samples)

    # 2 * fixed coefficients need degree - 1 inner knots
    interior = np.linspace(start, end, degree + 1)[1:-1]
    candidate: Optional[BSpline] = None
    max_error = None
    for iteration in range(iterations):
        if len(interior) + degree + 1 >= spline.c.shape[0]:
            break
        knots = np.concatenate(([start] * (degree + 1), interior, [end] * (degree + 1)))
        try:
            candidate = _fit_with_fixed_ends(spline, samples, reference, knots, degree, fixed)
        except (np.linalg.LinAlgError, ValueError):
            logger.debug("Knot vector not supported by the samples after %d iterations", iteration)
            candidate = None
            break

        errors = np.abs(candidate(samples) - reference)
        max_error = errors.max(axis=0)
        if np.all(max_error <= tolerance_box):
            logger.debug("Reduced curve from %d to %d coefficients in %d iterations",
                         spline.c.shape[0], candidate.c.shape[0], iteration + 1)
            return SimplifyResult(CurveHandle(candidate), max_error, STATUS_OK)

        breaks = np.concatenate(([start], interior, [end]))
        exceeded = np.any(errors > tolerance_box, axis=1)
        spans = np.unique(np.clip(np.searchsorted(breaks, samples[exceeded], side="right") - 1,
                                  0, len(breaks) - 2))
        interior = np.sort(np.concatenate((interior, (breaks[spans] + breaks[spans + 1]) / 2.0)))
    else:
        return SimplifyResult(CurveHandle(candidate), max_error, STATUS_NOT_CONVERGED)

    # no smaller curve fits, the input itself is the best approximation
    return SimplifyResult(copy_curve(curve), np.zeros(DIM), STATUS_OK)


def copy_curve(curve: CurveHandle) -> CurveHandle:
    spline = curve.spline
    return CurveHandle(BSpline(spline.t.copy(), spline.c.copy(), spline.k,
                               extrapolate=spline.extrapolate))


def free_curve(curve: CurveHandle):
    """Release the handle. Releasing twice is an error."""
    if curve.released:
        raise CurveMathError("curve handle released twice", STATUS_RELEASED)
    curve._spline = None
