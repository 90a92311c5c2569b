"""
Curve settings loaded from YAML.

A settings file may hold the values at top level or under a
``parametric_curve`` section::

    parametric_curve:
      resolution: 0.01
      order: 3
      search_length: 2.0

Missing keys keep their defaults.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurveSettings:
    """
    Args:
        resolution: Geometric resolution of the curve (m)
        order: Spline order (degree + 1)
        search_length: Arc length searched ahead of the last match by pose_error (m)
    """

    resolution: float = 0.01
    order: int = 3
    search_length: float = 2.0

    def __post_init__(self):
        if self.resolution <= 0.0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        if self.order < 2:
            raise ValueError(f"order must be at least 2, got {self.order}")
        if self.search_length <= 0.0:
            raise ValueError(f"search_length must be positive, got {self.search_length}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurveSettings":
        section = data.get("parametric_curve", data)
        defaults = cls()
        return cls(
            resolution=float(section.get("resolution", defaults.resolution)),
            order=int(section.get("order", defaults.order)),
            search_length=float(section.get("search_length", defaults.search_length)),
        )


def load_settings(path: Optional[Union[str, Path]] = None) -> CurveSettings:
    """
    Load settings from a YAML file, falling back to the defaults.

    Raises:
        ValueError: If a value in the file is out of range
    """
    if path is None:
        return CurveSettings()

    path = Path(path)
    if not path.exists():
        logger.warning("Settings file not found: %s, using defaults", path)
        return CurveSettings()

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        logger.warning("Invalid settings format in %s, using defaults", path)
        return CurveSettings()

    settings = CurveSettings.from_dict(data)
    logger.info("Curve settings loaded from %s", path)
    return settings
