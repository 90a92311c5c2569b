#!/usr/bin/env python3
"""
Curve inspection demonstration.

Fits a curve through a ramp, evaluates its geometry, and matches the
points of a simulated laser scan against it.
"""

import numpy as np
import matplotlib.pyplot as plt
import sys
import os

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from parametric_curve import ParametricCurve3D, load_settings, NoClosestPointError
from parametric_curve.logging_config import setup_logging
from samples import LaserScan
from paths import create_ramp_path


def make_scan():
    """Half circle of beams 3 m around the sensor."""
    resolution = np.deg2rad(5.0)
    return LaserScan(
        time=0.0,
        start_angle=-np.pi / 2,
        angular_resolution=resolution,
        speed=2 * np.pi * 10,
        ranges=[3000] * 37,
        min_range=100,
        max_range=30000,
    )


def main():
    """Demonstrate curve evaluation and closest point search."""
    setup_logging()
    print("=== Curve Inspection Demo ===\n")

    print("1. Fitting curve through ramp...")
    settings = load_settings(os.path.join(os.path.dirname(__file__), "curve_settings.yaml"))
    control_points = create_ramp_path()
    curve = ParametricCurve3D.from_settings(settings, control_points)
    curve.fit()
    curve.print_curve_properties()

    print("\n2. Evaluating geometry...")
    trajectory = curve.sample(num_points=200)
    mid = 0.5 * (curve.start_param + curve.end_param)
    frame = curve.frenet_frame_at(mid)
    print(f"   Point at {mid:.2f}: {np.round(curve.point_at(mid), 3)}")
    print(f"   Tangent: {np.round(frame[0], 3)}, normal: {np.round(frame[1], 3)}")
    print(f"   Max curvature: {curve.curvature_max():.4f}")

    print("\n3. Matching laser scan points against the curve...")
    scan_points = make_scan().convert_to_point_cloud()
    matches = []
    for point in scan_points:
        try:
            param = curve.find_one_closest_point(point)
        except NoClosestPointError:
            continue
        matches.append((point, curve.point_at(param)))
    print(f"   Matched {len(matches)} of {len(scan_points)} scan points")

    print("\n4. Creating visualizations...")
    fig, axes = plt.subplots(2, 1, figsize=(10, 10))

    ax1 = axes[0]
    ax1.plot(control_points[:, 0], control_points[:, 1], 'ro', markersize=8, label='Control Points')
    ax1.plot(trajectory['positions'][:, 0], trajectory['positions'][:, 1],
             'g-', linewidth=2, label='Fitted Curve')
    ax1.plot(scan_points[:, 0], scan_points[:, 1], 'k.', label='Scan')
    for point, closest in matches:
        ax1.plot([point[0], closest[0]], [point[1], closest[1]], 'b-', alpha=0.3)
    ax1.set_xlabel('X [m]')
    ax1.set_ylabel('Y [m]')
    ax1.set_title('Closest Points')
    ax1.legend()
    ax1.grid(True, alpha=0.3)
    ax1.axis('equal')

    ax2 = axes[1]
    ax2.plot(trajectory['params'], trajectory['curvatures'], 'b-', label='Curvature [1/m]')
    ax2.plot(trajectory['params'], trajectory['positions'][:, 2], 'r-', label='Height [m]')
    ax2.set_xlabel('Curve parameter')
    ax2.set_title('Curvature and Height Profile')
    ax2.legend()
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()

    print("\n=== Curve Inspection Demo Completed ===")


if __name__ == "__main__":
    main()
