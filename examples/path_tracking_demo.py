#!/usr/bin/env python3
"""
Path tracking demonstration.

Fits a curve through a test path, inspects it, and drives a simple
kinematic vehicle along it using the pose error of every tick.
"""

import numpy as np
import matplotlib.pyplot as plt
import sys
import os

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from parametric_curve import ParametricCurve3D, SearchError
from parametric_curve.logging_config import setup_logging
from paths import create_test_path


def simulate_tracking(curve, initial_pose, speed=2.0, dt=0.1, search_length=2.0,
                      k_distance=0.8, k_heading=1.5, max_ticks=1000):
    """
    Drive a unicycle vehicle along the curve.

    Returns:
        Dictionary with the vehicle positions, distance errors, heading errors
        and matched parameters of every tick
    """
    x, y, heading = initial_pose
    param = curve.start_param

    positions, distance_errors, heading_errors, params = [], [], [], []
    for _ in range(max_ticks):
        if param >= curve.end_param - curve.unit_parameter() * speed * dt:
            break
        try:
            error = curve.pose_error([x, y, 0.0], heading, param, search_length)
        except SearchError as exc:
            print(f"   Lost the path: {exc}")
            break
        param = error.param

        # Steer back towards the path
        yaw_rate = -k_distance * error.distance_error - k_heading * error.heading_error
        heading += yaw_rate * dt
        x += speed * np.cos(heading) * dt
        y += speed * np.sin(heading) * dt

        positions.append([x, y])
        distance_errors.append(error.distance_error)
        heading_errors.append(error.heading_error)
        params.append(param)

    return {
        'positions': np.array(positions),
        'distance_errors': np.array(distance_errors),
        'heading_errors': np.array(heading_errors),
        'params': np.array(params)
    }


def main():
    """Demonstrate curve fitting and path tracking."""
    setup_logging()
    print("=== Path Tracking Demo ===\n")

    print("1. Fitting curve through test path...")
    control_points = create_test_path()
    curve = ParametricCurve3D(geometric_resolution=0.01, order=4, points=control_points)
    curve.fit()
    curve.print_curve_properties()
    print(f"   Curve length: {curve.curve_length():.2f}")
    print(f"   Max curvature: {curve.curvature_max():.4f}")

    print("\n2. Simplifying a copy of the curve...")
    simplified = curve.copy()
    max_error = simplified.simplify(0.05)
    print(f"   Coefficients: {curve.get_curve().coefficient_count} -> "
          f"{simplified.get_curve().coefficient_count}, max error {max_error}")

    print("\n3. Tracking the curve...")
    result = simulate_tracking(curve, initial_pose=(0.0, 1.5, 0.0))
    print(f"   Simulated {len(result['params'])} ticks")
    print(f"   Final distance error: {result['distance_errors'][-1]:.3f}")

    print("\n4. Creating visualizations...")
    trajectory = curve.sample(num_points=300)
    fig, axes = plt.subplots(2, 1, figsize=(10, 10))

    ax1 = axes[0]
    ax1.plot(control_points[:, 0], control_points[:, 1], 'ro', markersize=8, label='Control Points')
    ax1.plot(trajectory['positions'][:, 0], trajectory['positions'][:, 1],
             'g-', linewidth=2, label='Fitted Curve')
    ax1.plot(result['positions'][:, 0], result['positions'][:, 1],
             'b--', linewidth=2, label='Vehicle')
    ax1.set_xlabel('X [m]')
    ax1.set_ylabel('Y [m]')
    ax1.set_title('Path Tracking')
    ax1.legend()
    ax1.grid(True, alpha=0.3)
    ax1.axis('equal')

    ax2 = axes[1]
    ax2.plot(result['params'], result['distance_errors'], 'b-', label='Distance error [m]')
    ax2.plot(result['params'], result['heading_errors'], 'r-', label='Heading error [rad]')
    ax2.set_xlabel('Curve parameter')
    ax2.set_title('Tracking Errors')
    ax2.legend()
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()

    print("\n=== Path Tracking Demo Completed ===")


if __name__ == "__main__":
    main()
