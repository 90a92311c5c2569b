import numpy as np
import pytest

from parametric_curve import curve_math
from parametric_curve.curve_math import (
    STATUS_NOT_CONVERGED,
    STATUS_OK,
    STATUS_ON_BOUNDARY,
    CurveMathError,
)


@pytest.fixture
def zigzag_points():
    return np.array([
        [0, 0, 0],
        [5, 2, 1],
        [10, 3, 2],
        [15, 1, 2],
        [20, -2, 1],
        [25, 0, 0],
        [30, 3, 0]
    ], dtype=float)


class TestFitCurve:
    def test_chord_length_parameters(self):
        points = np.array([[0, 0, 0], [3, 4, 0], [3, 4, 12]], dtype=float)

        result = curve_math.fit_curve(points, 3, start_param=1.0)

        assert result.end_param == pytest.approx(1.0 + 5.0 + 12.0)
        assert curve_math.parameter_range(result.curve) == pytest.approx((1.0, 18.0))
        np.testing.assert_allclose(curve_math.evaluate_position(result.curve, 6.0), [3, 4, 0],
                                   atol=1e-9)

    def test_order_lowered_for_few_points(self):
        points = np.array([[0, 0, 0], [1, 1, 0]], dtype=float)

        curve = curve_math.fit_curve(points, 4).curve

        assert curve.order == 2

    def test_keeps_requested_order(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve

        assert curve.order == 4
        assert curve.dimension == 3
        assert curve.coefficient_count == len(zigzag_points)

    @pytest.mark.parametrize(
        "points, order",
        [
            ([[0, 0, 0]], 3),
            ([[0, 0, 0], [1, 0, 0]], 1),
            ([[0, 0], [1, 0]], 3),
            ([[0, 0, 0], [0, 0, 0], [1, 0, 0]], 3),
            ([[0, 0, 0], [np.nan, 0, 0]], 2),
        ],
    )
    def test_invalid_input(self, points, order):
        with pytest.raises(CurveMathError) as excinfo:
            curve_math.fit_curve(np.array(points, dtype=float), order)

        assert excinfo.value.status < 0


class TestHandles:
    def test_released_handle_cannot_be_used(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve

        curve_math.free_curve(curve)

        assert curve.released
        with pytest.raises(CurveMathError):
            curve_math.evaluate_position(curve, 0.0)

    def test_double_free(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve
        curve_math.free_curve(curve)

        with pytest.raises(CurveMathError):
            curve_math.free_curve(curve)

    def test_copy_is_independent(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve
        expected = curve_math.evaluate_position(curve, 12.0)

        duplicate = curve_math.copy_curve(curve)
        curve_math.free_curve(curve)

        np.testing.assert_allclose(curve_math.evaluate_position(duplicate, 12.0), expected)


class TestLength:
    def test_length_of_polyline_curve(self):
        points = np.array([[0, 0, 0], [3, 4, 0], [3, 4, 12]], dtype=float)
        curve = curve_math.fit_curve(points, 2).curve

        result = curve_math.integrate_length(curve, 1e-6)

        assert result.status == STATUS_OK
        assert result.length == pytest.approx(17.0, abs=1e-6)

    def test_length_at_least_chord_length(self, zigzag_points):
        result = curve_math.fit_curve(zigzag_points, 4)

        length = curve_math.integrate_length(result.curve, 1e-4).length

        assert length >= result.end_param - 1e-4

    def test_invalid_tolerance(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve

        with pytest.raises(CurveMathError):
            curve_math.integrate_length(curve, 0.0)


class TestClosestPoints:
    def test_global_search_finds_all_local_minima(self):
        # V shape: both arms are equally close to a target above the tip
        points = np.array([[-5, 5, 0], [0, 0, 0], [5, 5, 0]], dtype=float)
        curve = curve_math.fit_curve(points, 2).curve

        result = curve_math.find_closest_global(curve, [0, 3, 0], 1e-6)

        assert result.status == STATUS_OK
        assert result.intervals == []
        assert len(result.points) == 2
        for param in result.points:
            position = curve_math.evaluate_position(curve, param)
            assert np.linalg.norm(position - [0, 3, 0]) == pytest.approx(3 / np.sqrt(2))

    def test_local_search_status(self):
        points = np.array([[0, 0, 0], [10, 0, 0]], dtype=float)
        curve = curve_math.fit_curve(points, 2).curve

        inside = curve_math.find_closest_local(curve, [4, 1, 0], 2.0, 0.0, 10.0, 1e-6)
        boundary = curve_math.find_closest_local(curve, [4, 1, 0], 6.0, 5.0, 10.0, 1e-6)

        assert inside.status == STATUS_OK
        assert inside.param == pytest.approx(4.0)
        assert boundary.status == STATUS_ON_BOUNDARY
        assert boundary.param == pytest.approx(5.0)

    def test_local_search_invalid_range(self):
        points = np.array([[0, 0, 0], [10, 0, 0]], dtype=float)
        curve = curve_math.fit_curve(points, 2).curve

        with pytest.raises(CurveMathError) as excinfo:
            curve_math.find_closest_local(curve, [4, 1, 0], 5.0, 6.0, 5.0, 1e-6)
        assert excinfo.value.status < 0

    def test_local_search_from_far_side_of_circle(self):
        angles = np.linspace(0.0, 2 * np.pi, 73)
        points = np.column_stack([np.cos(angles), np.sin(angles), np.zeros_like(angles)])
        curve = curve_math.fit_curve(points, 4).curve
        start, end = curve_math.parameter_range(curve)

        # the target is inside the circle, Newton steps from the guess are not convex
        result = curve_math.find_closest_local(curve, [0.5, 0, 0], end / 2, start, end, 1e-6)

        assert result.status >= 0
        position = curve_math.evaluate_position(curve, result.param)
        assert np.linalg.norm(position - [0.5, 0, 0]) == pytest.approx(0.5, abs=1e-3)


class TestSimplify:
    def test_reduces_dense_curve(self):
        x = np.linspace(0.0, 20.0, 81)
        points = np.column_stack([x, np.sin(x / 4.0), np.zeros_like(x)])
        curve = curve_math.fit_curve(points, 4).curve

        result = curve_math.simplify_curve(curve, (0.01, 0.01, 0.01), 4, 10)

        assert result.status == STATUS_OK
        assert np.all(result.max_error <= 0.01)
        assert result.curve.coefficient_count < curve.coefficient_count
        assert curve_math.parameter_range(result.curve) == pytest.approx(
            curve_math.parameter_range(curve))

    def test_iteration_limit(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve

        result = curve_math.simplify_curve(curve, (1e-6, 1e-6, 1e-6), 4, 1)

        assert result.status == STATUS_NOT_CONVERGED
        assert np.any(result.max_error > 1e-6)

    def test_invalid_tolerance_box(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve

        with pytest.raises(CurveMathError):
            curve_math.simplify_curve(curve, (0.1, 0.1), 4, 10)

    def test_keeps_end_derivatives(self):
        x = np.linspace(0.0, 20.0, 81)
        points = np.column_stack([x, np.sin(x / 4.0), 0.1 * x])
        curve = curve_math.fit_curve(points, 4).curve

        result = curve_math.simplify_curve(curve, (0.01, 0.01, 0.01), 4, 10)

        assert result.status == STATUS_OK
        assert result.curve.coefficient_count < curve.coefficient_count
        for param in curve_math.parameter_range(curve):
            for nu in range(3):
                np.testing.assert_allclose(result.curve.spline(param, nu=nu),
                                           curve.spline(param, nu=nu), atol=1e-8)

    def test_needs_an_iteration(self, zigzag_points):
        curve = curve_math.fit_curve(zigzag_points, 4).curve

        with pytest.raises(CurveMathError):
            curve_math.simplify_curve(curve, (0.1, 0.1, 0.1), 4, 0)
