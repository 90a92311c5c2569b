import numpy as np
import pytest

from parametric_curve import ParametricCurve3D


ARC_RADIUS = 5.0


@pytest.fixture
def short_line_curve():
    """Order 3 curve through three collinear points, parameters 0 -> 2."""
    curve = ParametricCurve3D(1e-3, 3, [[0, 0, 0], [1, 0, 0], [2, 0, 0]])
    curve.fit()
    return curve


@pytest.fixture
def line_curve():
    """Straight curve along x from (0, 0, 0) to (10, 0, 0)."""
    curve = ParametricCurve3D(1e-3, 3, [[0, 0, 0], [10, 0, 0]])
    curve.fit()
    return curve


@pytest.fixture
def arc_curve():
    """Half circle of radius 5 around the origin, counter-clockwise from (5, 0, 0)."""
    angles = np.linspace(0.0, np.pi, 37)
    points = np.column_stack([ARC_RADIUS * np.cos(angles),
                              ARC_RADIUS * np.sin(angles),
                              np.zeros_like(angles)])
    curve = ParametricCurve3D(0.05, 4, points)
    curve.fit()
    return curve


@pytest.fixture
def winding_curve():
    """Planar cubic curve with bends in both directions."""
    points = np.array([
        [0, 0, 0],
        [5, 2, 0],
        [10, 3, 0],
        [15, 1, 0],
        [20, -2, 0],
        [25, 0, 0],
        [30, 3, 0]
    ], dtype=float)
    curve = ParametricCurve3D(0.01, 4, points)
    curve.fit()
    return curve
