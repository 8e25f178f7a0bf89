"""Rational quadratic Bezier curves (conic arcs).

A rational quadratic curve carries a weight w on its control point:

    B(t) = ((1-t)^2*P1 + 2*(1-t)*t*w*C + t^2*P2) / ((1-t)^2 + 2*(1-t)*t*w + t^2)

    w == 1        plain quadratic Bezier curve (parabola arc)
    w == 0        straight segment P1-P2
    |w| < 1       ellipse arc
    |w| > 1       hyperbola arc
    w <= -1       the denominator has roots in (0, 1), the curve runs through infinity

Negative weights describe the complement of the arc described by -w.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from avcurve.bezier import QuadraticCurve, solve_quadratic
from avcurve.common import ConicKind, InfiniteCurveError, Point, PointSequence
from avcurve.consts import (
    BISECTION_ITERATIONS,
    BOUNDING_POSITION_EPSILON,
    CLIP_SAMPLES,
    DEFAULT_TOLERANCE,
    INFINITE_BOUNDS_EXTENT,
    MAX_SUBDIVISION_DEPTH,
    SMOOTHNESS_FACTOR,
)
from avcurve.geom import AvBox, GeomMath

logger = logging.getLogger(__name__)


def infinite_bounds() -> AvBox:
    """A new box standing in for the whole plane when clipping infinite curves."""
    return AvBox(-INFINITE_BOUNDS_EXTENT, -INFINITE_BOUNDS_EXTENT, INFINITE_BOUNDS_EXTENT, INFINITE_BOUNDS_EXTENT)


###############################################################################
# RationalQuadraticCurve
###############################################################################
@dataclass(frozen=True)
class RationalQuadraticCurve:
    """
    Rational quadratic Bezier curve with start point p1, control point c,
    end point p2 and the weight of the control point.

    Instances are immutable; all operations return new values.
    Affine transformations act on the points only, the weight is invariant.
    """

    p1: Point
    c: Point
    p2: Point
    weight: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "p1", GeomMath.to_point(self.p1))
        object.__setattr__(self, "c", GeomMath.to_point(self.c))
        object.__setattr__(self, "p2", GeomMath.to_point(self.p2))
        weight = float(self.weight)
        if not math.isfinite(weight):
            raise ValueError(f"Weight must be finite, got {self.weight}")
        object.__setattr__(self, "weight", weight)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]], weight: float = 1.0) -> RationalQuadraticCurve:
        """Create a curve from a sequence of exactly 3 points (start, control, end) and a weight."""
        if len(points) != 3:
            raise ValueError(f"Rational quadratic curve needs 3 points, got {len(points)}")
        return cls(points[0], points[1], points[2], weight)

    @classmethod
    def from_circular_arc(
        cls, center: Point, radius: float, start_angle: float, sweep_angle: float
    ) -> RationalQuadraticCurve:
        """
        Create the exact representation of a circular arc.

        Args:
            center: Center of the circle
            radius: Radius of the circle, must be positive
            start_angle: Angle of the start point in radians
            sweep_angle: Signed angle covered by the arc in radians, |sweep_angle| < pi

        Returns:
            RationalQuadraticCurve: arc with weight cos(sweep_angle / 2)

        Raises:
            ValueError: If radius or sweep_angle are out of range
        """
        if not (radius > 0.0 and math.isfinite(radius)):
            raise ValueError(f"Radius must be positive and finite, got {radius}")
        if not abs(sweep_angle) < math.pi:
            raise ValueError(f"Sweep angle must be within (-pi, pi), got {sweep_angle}")
        half_sweep = sweep_angle * 0.5
        weight = math.cos(half_sweep)
        mid_angle = start_angle + half_sweep
        end_angle = start_angle + sweep_angle
        control_distance = radius / weight
        return cls(
            (center[0] + radius * math.cos(start_angle), center[1] + radius * math.sin(start_angle)),
            (center[0] + control_distance * math.cos(mid_angle), center[1] + control_distance * math.sin(mid_angle)),
            (center[0] + radius * math.cos(end_angle), center[1] + radius * math.sin(end_angle)),
            weight,
        )

    @property
    def points(self) -> Tuple[Point, Point, Point]:
        """The control polygon (p1, c, p2)."""
        return self.p1, self.c, self.p2

    @property
    def is_infinite(self) -> bool:
        """True if the curve has branches running to infinity (weight <= -1)."""
        return self.weight <= -1.0

    @property
    def conic_kind(self) -> ConicKind:
        """The kind of conic section the curve is a part of."""
        if self.weight == 0.0:
            return ConicKind.LINE
        magnitude = abs(self.weight)
        if magnitude < 1.0:
            return ConicKind.ELLIPSE
        if magnitude == 1.0:
            return ConicKind.PARABOLA
        return ConicKind.HYPERBOLA

    def to_quadratic(self) -> QuadraticCurve:
        """The equivalent plain quadratic curve, only available for weight 1."""
        if self.weight != 1.0:
            raise ValueError(f"Only a curve with weight 1 is a plain quadratic curve, weight is {self.weight}")
        return QuadraticCurve(self.p1, self.c, self.p2)

    def point_at(self, t: float) -> Optional[Point]:
        """
        Evaluate the curve at parameter t.

        Returns None where the denominator vanishes (asymptote of an infinite curve).
        """
        if self.weight == 1.0:
            return self.to_quadratic().point_at(t)
        omt = 1.0 - t
        w0 = omt * omt
        w1 = 2.0 * omt * t * self.weight
        w2 = t * t
        denominator = w0 + w1 + w2
        if denominator == 0.0:
            return None
        return (
            (w0 * self.p1[0] + w1 * self.c[0] + w2 * self.p2[0]) / denominator,
            (w0 * self.p1[1] + w1 * self.c[1] + w2 * self.p2[1]) / denominator,
        )

    def get_bounding_positions(self, sort: bool = True) -> List[float]:
        """
        Parameters in [0, 1] where the curve starts, ends or has an axis-aligned tangent.

        With P1 moved to the origin, the numerator of the derivative along one axis
        reduces to the quadratic (w-1)*p*t^2 + (p - 2*w*c)*t + w*c, where c and p
        are the translated coordinates of the control point and P2.
        Between two consecutive positions the curve is monotonic in both axes.

        Args:
            sort: Sort the positions ascending

        Returns:
            List[float]: 0.0, 1.0 and the interior roots, values closer than 1e-6 merged
        """
        weight = self.weight
        positions = [0.0, 1.0]
        for axis in (0, 1):
            c = self.c[axis] - self.p1[axis]
            p = self.p2[axis] - self.p1[axis]
            for t in solve_quadratic((weight - 1.0) * p, p - 2.0 * weight * c, weight * c):
                if not 0.0 < t < 1.0:
                    continue
                if any(abs(t - known) < BOUNDING_POSITION_EPSILON for known in positions):
                    continue
                positions.append(t)

        if sort:
            for i in range(1, len(positions)):
                value = positions[i]
                j = i - 1
                while j >= 0 and positions[j] > value:
                    positions[j + 1] = positions[j]
                    j -= 1
                positions[j + 1] = value
        return positions

    def to_points(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        include_first_point: bool = True,
        bounds: Optional[AvBox] = None,
    ) -> PointSequence:
        """
        Flatten the curve into a polyline by adaptive subdivision.

        Infinite curves are clipped to _bounds_; a None entry is inserted
        wherever the curve leaves the bounds and the polyline has to break.

        Args:
            tolerance: Maximum deviation between the curve and the polyline
            include_first_point: If False, p1 is omitted (to chain curve segments)
            bounds: Viewport for infinite curves, defaults to a very large box

        Returns:
            PointSequence: points, possibly containing None discontinuity markers
        """
        if not tolerance > 0.0:
            raise ValueError(f"Tolerance must be positive, got {tolerance}")
        if self.weight == 1.0:
            return self.to_quadratic().to_points(tolerance, include_first_point)
        if self.weight == 0.0:
            return [self.p1, self.p2] if include_first_point else [self.p2]

        if not self.is_infinite:
            points: PointSequence = [self.p1]
            self._flatten_range(0.0, 1.0, tolerance, points)
            points[-1] = self.p2
            return points if include_first_point else points[1:]

        pieces = self._finite_pieces(bounds if bounds is not None else infinite_bounds())
        logger.debug("Infinite curve with weight %s split into %d finite pieces", self.weight, len(pieces))
        points = []
        for index, (t_start, t_end) in enumerate(pieces):
            if index > 0:
                points.append(None)
            points.append(self.point_at(t_start))
            self._flatten_range(t_start, t_end, tolerance, points)
        if not include_first_point and pieces and pieces[0][0] == 0.0:
            return points[1:]
        return points

    def _flatten_range(self, t_start: float, t_end: float, tolerance: float, points: PointSequence) -> None:
        """Append the flattened points of (t_start, t_end], split at the bounding positions first."""
        boundaries = [t for t in self.get_bounding_positions() if t_start < t < t_end]
        boundaries.append(t_end)
        t_left = t_start
        p_left = self.point_at(t_start)
        for t_right in boundaries:
            p_right = self.point_at(t_right)
            self._subdivide(t_left, p_left, t_right, p_right, tolerance, points, 0)
            points.append(p_right)
            t_left, p_left = t_right, p_right

    def _subdivide(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        t_left: float,
        p_left: Point,
        t_right: float,
        p_right: Point,
        tolerance: float,
        points: PointSequence,
        depth: int,
    ) -> None:
        """Recursive bisection on the deviation of the midpoint from the chord."""
        t_mid = (t_left + t_right) * 0.5
        p_mid = self.point_at(t_mid)
        if p_mid is None:
            return
        deviation = GeomMath.line_deviation(p_mid, p_left, p_right)
        if deviation > tolerance and depth < MAX_SUBDIVISION_DEPTH:
            self._subdivide(t_left, p_left, t_mid, p_mid, tolerance, points, depth + 1)
            points.append(p_mid)
            self._subdivide(t_mid, p_mid, t_right, p_right, tolerance, points, depth + 1)
        elif deviation >= SMOOTHNESS_FACTOR * tolerance:
            points.append(p_mid)

    def _asymptotes(self) -> Tuple[float, float]:
        """Parameters t1 <= t2 where the denominator of an infinite curve vanishes."""
        delta = 1.0 - 2.0 / (1.0 - self.weight)
        root = math.sqrt(max(0.0, delta))
        return (1.0 - root) * 0.5, (1.0 + root) * 0.5

    def _finite_pieces(self, bounds: AvBox) -> List[Tuple[float, float]]:
        """
        Parameter ranges of an infinite curve lying inside _bounds_, in ascending order.

        Each continuous branch [0, t1), (t1, t2) and (t2, 1] is sampled to find
        where it enters and leaves the bounds; every crossing is refined by
        bisection, so a branch may contribute several ranges or none.
        """
        t1, t2 = self._asymptotes()
        branches = [(0.0, t1)]
        if t1 < t2:
            branches.append((t1, t2))
        branches.append((t2, 1.0))

        pieces: List[Tuple[float, float]] = []
        for t_start, t_end in branches:
            runs = self._inside_runs(t_start, t_end, bounds)
            if not runs:
                logger.debug("Branch (%s, %s) of weight %s lies outside %s", t_start, t_end, self.weight, bounds)
            pieces.extend(runs)
        return pieces

    def _inside_runs(self, t_start: float, t_end: float, bounds: AvBox) -> List[Tuple[float, float]]:
        """Parameter runs of one branch inside the bounds; branch ends at an asymptote count as outside."""
        params = [float(t) for t in np.linspace(t_start, t_end, CLIP_SAMPLES + 1)]
        inside = []
        for index, t in enumerate(params):
            if (index == 0 and t_start != 0.0) or (index == CLIP_SAMPLES and t_end != 1.0):
                inside.append(False)
                continue
            point = self.point_at(t)
            inside.append(point is not None and bounds.contains(point))

        runs: List[Tuple[float, float]] = []
        run_start = params[0] if inside[0] else None
        for i in range(1, len(params)):
            if inside[i] and not inside[i - 1]:
                run_start = self._bisect_exit(params[i], params[i - 1], bounds)
            elif inside[i - 1] and not inside[i]:
                runs.append((run_start, self._bisect_exit(params[i - 1], params[i], bounds)))
                run_start = None
        if run_start is not None:
            runs.append((run_start, params[-1]))
        return runs

    def _bisect_exit(self, t_inside: float, t_outside: float, bounds: AvBox) -> float:
        """Last parameter between t_inside and t_outside whose point is still inside the bounds."""
        for _ in range(BISECTION_ITERATIONS):
            t_mid = (t_inside + t_outside) * 0.5
            point = self.point_at(t_mid)
            if point is not None and bounds.contains(point):
                t_inside = t_mid
            else:
                t_outside = t_mid
        return t_inside

    def length(self, tolerance: float = DEFAULT_TOLERANCE) -> Optional[float]:
        """
        Length of the curve.

        Returns None for infinite curves, the exact length for weight 1 and the
        length of the adaptively flattened polyline otherwise.
        """
        if self.weight == 1.0:
            return self.to_quadratic().length(tolerance)
        if self.is_infinite:
            return None
        return GeomMath.polyline_length(self.to_points(tolerance))

    def get_bounds(self) -> Optional[AvBox]:
        """Axis-aligned bounding box of the curve, None for infinite curves."""
        if self.weight == 1.0:
            return self.to_quadratic().get_bounds()
        if self.is_infinite:
            return None
        box = AvBox(self.p1[0], self.p1[1], self.p2[0], self.p2[1])
        for t in self.get_bounding_positions(sort=False):
            box.include_point(self.point_at(t))
        return box

    def split(self) -> Tuple[RationalQuadraticCurve, RationalQuadraticCurve]:
        """
        Split the curve at t=0.5 into two rational quadratic curves.

        The tangent at the split point M is parallel to the chord, so the new
        control points lie on the start and end tangents. The new weight follows
        from where the ray from the new control point through the midpoint of
        its chord meets the curve.

        Returns:
            Tuple[RationalQuadraticCurve, RationalQuadraticCurve]: left and right half sharing point_at(0.5)

        Raises:
            InfiniteCurveError: If the curve has infinite branches
        """
        if self.is_infinite:
            raise InfiniteCurveError(f"Cannot split a curve with infinite branches (weight {self.weight})")

        mid = self.point_at(0.5)
        chord_mid = GeomMath.midpoint(self.p1, self.p2)

        if self.weight == 1.0:
            left, right = self.to_quadratic().split()
            return RationalQuadraticCurve(*left.points, 1.0), RationalQuadraticCurve(*right.points, 1.0)
        if chord_mid == self.c:
            return (
                RationalQuadraticCurve(self.p1, GeomMath.midpoint(self.p1, self.c), mid, 1.0),
                RationalQuadraticCurve(mid, GeomMath.midpoint(self.c, self.p2), self.p2, 1.0),
            )
        if self.weight == 0.0:
            logger.debug("Splitting straight rational curve %s", self)
            return (
                RationalQuadraticCurve(self.p1, self.c, mid, 0.0),
                RationalQuadraticCurve(mid, self.c, self.p2, 0.0),
            )

        alpha = GeomMath.distance(chord_mid, mid) / GeomMath.distance(chord_mid, self.c)
        if self.weight < 0.0:
            alpha = -alpha
        left_c = GeomMath.lerp(self.p1, self.c, alpha)
        right_c = GeomMath.lerp(self.p2, self.c, alpha)

        left_chord_mid = GeomMath.midpoint(self.p1, mid)
        shoulder = self._ray_intersection(left_c, left_chord_mid)
        weight = GeomMath.distance(left_chord_mid, left_c) / GeomMath.distance(shoulder, left_c) - 1.0

        return (
            RationalQuadraticCurve(self.p1, left_c, mid, weight),
            RationalQuadraticCurve(mid, right_c, self.p2, weight),
        )

    def _ray_intersection(self, origin: Point, through: Point) -> Point:
        """Point of the left half (t in [0, 0.5]) on the line from _origin_ through _through_."""
        direction = (through[0] - origin[0], through[1] - origin[1])

        def side(t: float) -> float:
            point = self.point_at(t)
            return GeomMath.cross(direction, (point[0] - origin[0], point[1] - origin[1]))

        t_low, t_high = 0.0, 0.5
        low_negative = side(t_low) < 0.0
        for _ in range(BISECTION_ITERATIONS):
            t_mid = (t_low + t_high) * 0.5
            if (side(t_mid) < 0.0) == low_negative:
                t_low = t_mid
            else:
                t_high = t_mid
        return self.point_at((t_low + t_high) * 0.5)

    def reversed(self) -> RationalQuadraticCurve:
        """The same curve traversed from p2 to p1."""
        return RationalQuadraticCurve(self.p2, self.c, self.p1, self.weight)

    def transform_affine(self, affine_trafo: Sequence[Union[int, float]]) -> RationalQuadraticCurve:
        """Apply the affine transformation [a00, a01, a10, a11, b0, b1] to the points, keeping the weight."""
        p1, c, p2 = (GeomMath.transform_point(affine_trafo, point) for point in self.points)
        return RationalQuadraticCurve(p1, c, p2, self.weight)
