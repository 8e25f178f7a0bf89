"""Central module containing types, enums and exceptions for curve geometry."""

from __future__ import annotations

from enum import Enum, auto
from typing import List, Optional, Tuple

###############################################################################
# Types
###############################################################################


Point = Tuple[float, float]  # 2D point (x, y)

# Sequence of points where None marks a discontinuity:
# consecutive None-delimited runs are independent polylines.
PointSequence = List[Optional[Point]]


###############################################################################
# Enums
###############################################################################


class ConicKind(Enum):
    """Enum to classify the conic section described by a rational quadratic curve."""

    LINE = auto()
    ELLIPSE = auto()
    PARABOLA = auto()
    HYPERBOLA = auto()


###############################################################################
# Exceptions
###############################################################################


class CurveError(Exception):
    """Base exception for curve-related errors."""


class InfiniteCurveError(CurveError):
    """Raised when an operation needs a finite curve but the curve has infinite branches."""
