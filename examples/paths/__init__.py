"""
Path generation utilities for the curve examples.

This module contains control point sets for fitting curves with different
shapes.
"""

from .path_generators import (
    create_test_path,
    create_straight_line_path,
    create_arc_path,
    create_ramp_path
)

__all__ = [
    'create_test_path',
    'create_straight_line_path',
    'create_arc_path',
    'create_ramp_path'
]
