"""Sensor samples that provide point sets for curve fitting."""

from .laser_scan import LaserRangeError, LaserScan, PoseProvider

__all__ = ['LaserRangeError', 'LaserScan', 'PoseProvider']
