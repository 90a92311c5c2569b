import numpy as np

def create_test_path():
    """Create a test path with control points on flat ground."""
    control_points = np.array([
        [0, 0, 0],
        [5, 2, 0],
        [10, 3, 0],
        [15, 1, 0],
        [20, -2, 0],
        [25, 0, 0],
        [30, 3, 0]
    ], dtype=float)
    return control_points

def create_straight_line_path():
    """Create a straight path along x, its curvature is zero everywhere."""
    control_points = np.array([
        [0, 0, 0],
        [5, 0, 0],
        [10, 0, 0],
        [15, 0, 0],
        [20, 0, 0],
        [25, 0, 0],
        [30, 0, 0]
    ], dtype=float)
    return control_points

def create_arc_path(radius=5.0, sweep=np.pi, num_points=37):
    """Create control points on a circular arc centered at the origin, counter-clockwise."""
    angles = np.linspace(0.0, sweep, num_points)
    control_points = np.column_stack([
        radius * np.cos(angles),
        radius * np.sin(angles),
        np.zeros(num_points)
    ])
    return control_points

def create_ramp_path():
    """Create a path climbing a ramp between two flat sections."""
    control_points = np.array([
        # Lower level
        [0, 0, 0],
        [5, 0, 0],
        [10, 1, 0],

        # Ramp
        [15, 3, 0.5],
        [20, 5, 1.5],
        [25, 6, 2.5],

        # Upper level
        [30, 6, 3],
        [35, 5, 3],
        [40, 3, 3]
    ], dtype=float)
    return control_points
