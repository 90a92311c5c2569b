from .parametric_curve_3d import ParametricCurve3D
from .tracking_errors import PoseError, distance_error, heading_error, pose_error
from .config import CurveSettings, load_settings
from .exceptions import (
    CurveError,
    DomainError,
    EvaluationError,
    FitError,
    FitQueryError,
    LengthError,
    NoClosestPointError,
    SearchError,
    SimplifyError,
)

__all__ = [
    'ParametricCurve3D', 'PoseError', 'distance_error', 'heading_error', 'pose_error',
    'CurveSettings', 'load_settings',
    'CurveError', 'DomainError', 'EvaluationError', 'FitError', 'FitQueryError',
    'LengthError', 'NoClosestPointError', 'SearchError', 'SimplifyError',
]
