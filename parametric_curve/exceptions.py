"""Errors raised by the parametric curve engine."""


class CurveError(Exception):
    """Base class of all curve engine errors."""


class DomainError(CurveError, ValueError):
    """Parameter outside [start_param, end_param], or no fitted curve to evaluate."""


class FitError(CurveError):
    """The curve could not be built from the control points."""


class FitQueryError(CurveError):
    """The parameter range of an existing curve could not be queried."""


class EvaluationError(CurveError):
    """A point, curvature or frame could not be evaluated."""


class LengthError(CurveError):
    """The curve length could not be computed."""


class SearchError(CurveError):
    """A closest point search failed."""


class NoClosestPointError(CurveError):
    """A closest point search returned neither points nor intervals."""


class SimplifyError(CurveError):
    """The curve could not be simplified, or no curve is fitted."""
