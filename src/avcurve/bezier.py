"""Quadratic and cubic Bezier curves: evaluation, flattening, length, bounds and splitting."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from avcurve.common import Point, PointSequence
from avcurve.consts import DEFAULT_TOLERANCE, EPSILON
from avcurve.geom import AvBox, GeomMath

logger = logging.getLogger(__name__)

# Squared fitting errors below this value cannot be improved by re-parameterization
_FIT_ERROR_EPS: float = 1.0e-14

# Up to this many samples only the uniform parameterization is tried when fitting
_FIT_UNIFORM_ONLY_SAMPLES: int = 10


###############################################################################
# Helpers
###############################################################################


def subdivision_count(points: Sequence[Point], tolerance: float) -> int:
    """
    Estimate the number of segments for uniform-parameter flattening.

    Takes the longest edge of the control polygon and returns
    round((max_squared_edge_length / tolerance) ** 0.25), at least 1.
    This is a cheap heuristic, not an error bound.

    Args:
        points: 2 to 4 control points
        tolerance: Maximum allowed deviation, must be positive

    Returns:
        int: Number of segments (>= 1)

    Raises:
        ValueError: If tolerance is not positive
    """
    if not tolerance > 0.0:
        raise ValueError(f"Tolerance must be positive, got {tolerance}")
    max_sq = 0.0
    for start, end in zip(points[:-1], points[1:]):
        max_sq = max(max_sq, GeomMath.distance_sq(start, end))
    count = int(round((max_sq / tolerance) ** 0.25))
    return max(1, count)


def solve_quadratic(a: float, b: float, c: float) -> List[float]:
    """
    Real roots of a*t^2 + b*t + c = 0.

    Degrades to the linear solution if _a_ is (numerically) zero and returns
    an empty list if the equation has no real or no unique solution.
    """
    if abs(a) < EPSILON:
        if abs(b) < EPSILON:
            return []
        return [-c / b]
    discriminant = b * b - 4.0 * a * c
    if discriminant < 0.0:
        return []
    if discriminant == 0.0:
        return [-b / (2.0 * a)]
    root = math.sqrt(discriminant)
    return [(-b - root) / (2.0 * a), (-b + root) / (2.0 * a)]


def _sample_polynomial(
    coefficients: Sequence[Point], segments: int
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Evaluate the power-basis polynomial sum(k_i * t^i) at segments+1 uniform parameters (Horner form)."""
    t = np.linspace(0.0, 1.0, segments + 1, dtype=np.float64)
    x = np.full_like(t, coefficients[-1][0])
    y = np.full_like(t, coefficients[-1][1])
    for kx, ky in reversed(coefficients[:-1]):
        x = x * t + kx
        y = y * t + ky
    return x, y


def _points_from_samples(
    x: NDArray[np.float64], y: NDArray[np.float64], first: Point, last: Point, include_first_point: bool
) -> PointSequence:
    """Convert sampled coordinates into a point list with exact endpoints."""
    points: PointSequence = [(float(px), float(py)) for px, py in zip(x, y)]
    points[0] = first
    points[-1] = last
    if not include_first_point:
        return points[1:]
    return points


def _as_xy_array(points: Union[Sequence[Sequence[float]], NDArray[np.float64]]) -> NDArray[np.float64]:
    """Return an (n, 2) float array of the given (x, y) or (x, y, ...) samples."""
    if isinstance(points, np.ndarray) and points.dtype == np.float64:
        points_array = points
    else:
        points_array = np.asarray(points, dtype=np.float64)
    if points_array.ndim != 2 or points_array.shape[1] < 2:
        raise ValueError("Curve fitting requires (x, y) formatted points.")
    return points_array[:, :2]


def _fit_parameterizations(xy_points: NDArray[np.float64]) -> List[NDArray[np.float64]]:
    """Uniform parameterization first, chord-length parameterization for larger inputs."""
    num_points = xy_points.shape[0]
    candidates = [np.linspace(0.0, 1.0, num_points, dtype=np.float64)]
    if num_points > _FIT_UNIFORM_ONLY_SAMPLES:
        deltas = np.diff(xy_points, axis=0)
        diffs = np.hypot(deltas[:, 0], deltas[:, 1])
        total_length = float(np.sum(diffs))
        if total_length > 0.0 and math.isfinite(total_length):
            cumulative = np.empty(num_points, dtype=np.float64)
            cumulative[0] = 0.0
            cumulative[1:] = np.cumsum(diffs) / total_length
            candidates.append(cumulative)
    return candidates


###############################################################################
# QuadraticCurve
###############################################################################
@dataclass(frozen=True)
class QuadraticCurve:
    """
    Quadratic Bezier curve with start point p1, control point c and end point p2.

    Instances are immutable; all operations return new values.
    """

    p1: Point
    c: Point
    p2: Point

    def __post_init__(self):
        object.__setattr__(self, "p1", GeomMath.to_point(self.p1))
        object.__setattr__(self, "c", GeomMath.to_point(self.c))
        object.__setattr__(self, "p2", GeomMath.to_point(self.p2))

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> QuadraticCurve:
        """Create a curve from a sequence of exactly 3 points (start, control, end)."""
        if len(points) != 3:
            raise ValueError(f"Quadratic curve needs 3 points, got {len(points)}")
        return cls(points[0], points[1], points[2])

    @property
    def points(self) -> Tuple[Point, Point, Point]:
        """The control polygon (p1, c, p2)."""
        return self.p1, self.c, self.p2

    def _coefficients(self) -> Tuple[Point, Point, Point]:
        """Power-basis coefficients k0 + k1*t + k2*t^2."""
        (x1, y1), (cx, cy), (x2, y2) = self.p1, self.c, self.p2
        return (
            (x1, y1),
            (2.0 * (cx - x1), 2.0 * (cy - y1)),
            (x1 - 2.0 * cx + x2, y1 - 2.0 * cy + y2),
        )

    def point_at(self, t: float) -> Point:
        """
        Evaluate the curve at parameter t.

        B(t) = (1-t)^2*P1 + 2*(1-t)*t*C + t^2*P2, defined for all real t.
        """
        omt = 1.0 - t
        w0 = omt * omt
        w1 = 2.0 * omt * t
        w2 = t * t
        return (
            w0 * self.p1[0] + w1 * self.c[0] + w2 * self.p2[0],
            w0 * self.p1[1] + w1 * self.c[1] + w2 * self.p2[1],
        )

    def split(self) -> Tuple[QuadraticCurve, QuadraticCurve]:
        """
        Split the curve at t=0.5 using de Casteljau's construction.

        Returns:
            Tuple[QuadraticCurve, QuadraticCurve]: left and right half sharing point_at(0.5)
        """
        left_c = GeomMath.midpoint(self.p1, self.c)
        right_c = GeomMath.midpoint(self.c, self.p2)
        mid = GeomMath.midpoint(left_c, right_c)
        return QuadraticCurve(self.p1, left_c, mid), QuadraticCurve(mid, right_c, self.p2)

    def length(self, tolerance: float = DEFAULT_TOLERANCE) -> float:  # pylint: disable=unused-argument
        """
        Exact arc length of the curve.

        Uses the closed form of the parabolic arc length. Straight and
        backtracking colinear curves are handled by dedicated fallbacks.

        Args:
            tolerance: Accepted for interface symmetry with the other curve types

        Returns:
            float: Length of the curve
        """
        (x1, y1), (cx, cy), (x2, y2) = self.p1, self.c, self.p2
        ax = x1 - 2.0 * cx + x2
        ay = y1 - 2.0 * cy + y2
        bx = 2.0 * (cx - x1)
        by = 2.0 * (cy - y1)
        a_sq = ax * ax + ay * ay
        b_sq = bx * bx + by * by
        if a_sq < EPSILON or b_sq < EPSILON:
            return GeomMath.distance(self.p1, self.p2)

        # |B'(t)|^2 = big_a*t^2 + big_b*t + big_c
        big_a = 4.0 * a_sq
        big_b = 4.0 * (ax * bx + ay * by)
        big_c = b_sq

        s_abc = 2.0 * math.sqrt(max(0.0, big_a + big_b + big_c))
        a_2 = math.sqrt(big_a)
        a_32 = 2.0 * big_a * a_2
        c_2 = 2.0 * math.sqrt(big_c)
        b_a = big_b / a_2

        divisor = b_a + c_2
        dividend = 2.0 * a_2 + b_a + s_abc
        if divisor <= 0.0 or dividend <= 0.0:
            logger.debug("Quadratic length: log argument not positive, measuring as colinear curve")
            return self._colinear_length(ax, ay)

        return (
            a_32 * s_abc
            + a_2 * big_b * (s_abc - c_2)
            + (4.0 * big_c * big_a - big_b * big_b) * math.log(dividend / divisor)
        ) / (4.0 * a_32)

    def _colinear_length(self, ax: float, ay: float) -> float:
        """Length of a colinear curve that may run past an endpoint and turn back."""
        (x1, y1), (cx, cy), (x2, y2) = self.p1, self.c, self.p2
        chord = (x2 - x1, y2 - y1)
        denominator = GeomMath.dot((ax, ay), chord)
        if abs(denominator) < EPSILON:
            logger.debug("Quadratic length: no extremum along chord, using straight distance")
            return GeomMath.distance(self.p1, self.p2)
        t = -GeomMath.dot((cx - x1, cy - y1), chord) / denominator
        if t <= 0.0 or t >= 1.0:
            logger.debug("Quadratic length: extremum t=%s outside (0, 1), using straight distance", t)
            return GeomMath.distance(self.p1, self.p2)
        extremum = self.point_at(t)
        return GeomMath.distance(self.p1, extremum) + GeomMath.distance(extremum, self.p2)

    def to_points(self, tolerance: float = DEFAULT_TOLERANCE, include_first_point: bool = True) -> PointSequence:
        """
        Flatten the curve into a polyline by uniform parameter sampling.

        Args:
            tolerance: Deviation tolerance driving the number of samples
            include_first_point: If False, p1 is omitted (to chain curve segments)

        Returns:
            PointSequence: sampled points, the last one is exactly p2
        """
        segments = max(2, subdivision_count(self.points, tolerance))
        x, y = _sample_polynomial(self._coefficients(), segments)
        return _points_from_samples(x, y, self.p1, self.p2, include_first_point)

    def get_bounds(self) -> AvBox:
        """Axis-aligned bounding box of the curve between t=0 and t=1."""
        box = AvBox(self.p1[0], self.p1[1], self.p2[0], self.p2[1])
        for axis in (0, 1):
            denominator = self.p1[axis] - 2.0 * self.c[axis] + self.p2[axis]
            if abs(denominator) < EPSILON:
                continue
            t = (self.p1[axis] - self.c[axis]) / denominator
            if 0.0 < t < 1.0:
                box.include_point(self.point_at(t))
        return box

    def reversed(self) -> QuadraticCurve:
        """The same curve traversed from p2 to p1."""
        return QuadraticCurve(self.p2, self.c, self.p1)

    def transform_affine(self, affine_trafo: Sequence[Union[int, float]]) -> QuadraticCurve:
        """Apply the affine transformation [a00, a01, a10, a11, b0, b1] to all control points."""
        return QuadraticCurve(*(GeomMath.transform_point(affine_trafo, point) for point in self.points))

    @classmethod
    def fit(cls, points: Union[Sequence[Sequence[float]], NDArray[np.float64]]) -> QuadraticCurve:
        """Fit a quadratic Bezier curve to sampled curve points.

        Uses a least-squares fit assuming the first and last points are the start and
        end of the desired curve. The remaining points are used to compute the single
        control point that best fits the samples.

        Args:
            points: Sampled points along the curve as (x, y) or (x, y, ...) rows.

        Returns:
            QuadraticCurve: The fitted curve.

        Raises:
            ValueError: If fewer than three points are provided, the input does not
                contain at least two coordinate columns, or no solution exists.
        """
        xy_points = _as_xy_array(points)
        if xy_points.shape[0] < 3:
            raise ValueError("At least three points are required to fit a quadratic curve.")
        start = GeomMath.to_point(xy_points[0])
        end = GeomMath.to_point(xy_points[-1])

        best: Optional[QuadraticCurve] = None
        best_error = float("inf")
        for params in _fit_parameterizations(xy_points):
            control = cls._fit_solve_control(params, xy_points, start, end)
            if control is None:
                continue
            candidate = cls(start, control, end)
            error = candidate._fit_error(params, xy_points)
            if error < best_error:
                best, best_error = candidate, error
            if best_error <= _FIT_ERROR_EPS:
                break

        if best is None:
            logger.debug("Quadratic fit failed for %d samples", xy_points.shape[0])
            raise ValueError("Unable to fit a quadratic control point to the provided samples.")
        return best

    @staticmethod
    def _fit_solve_control(
        params: NDArray[np.float64], xy_points: NDArray[np.float64], start: Point, end: Point
    ) -> Optional[Point]:
        """Control point solver for a given parameterization."""
        t_values = params[1:-1]
        omt = 1.0 - t_values
        weights = 2.0 * omt * t_values

        denominator = float(np.dot(weights, weights))
        if denominator <= 0.0 or not math.isfinite(denominator):
            return None

        base_x = omt * omt * start[0] + t_values * t_values * end[0]
        base_y = omt * omt * start[1] + t_values * t_values * end[1]
        ctrl_x = float(np.dot(weights, xy_points[1:-1, 0] - base_x)) / denominator
        ctrl_y = float(np.dot(weights, xy_points[1:-1, 1] - base_y)) / denominator

        if not (math.isfinite(ctrl_x) and math.isfinite(ctrl_y)):
            return None
        return (ctrl_x, ctrl_y)

    def _fit_error(self, params: NDArray[np.float64], xy_points: NDArray[np.float64]) -> float:
        """Sum of squared distances between the samples and the curve at the given parameters."""
        omt = 1.0 - params
        w0 = omt * omt
        w1 = 2.0 * omt * params
        w2 = params * params
        rx = xy_points[:, 0] - (w0 * self.p1[0] + w1 * self.c[0] + w2 * self.p2[0])
        ry = xy_points[:, 1] - (w0 * self.p1[1] + w1 * self.c[1] + w2 * self.p2[1])
        return float(np.dot(rx, rx) + np.dot(ry, ry))


###############################################################################
# CubicCurve
###############################################################################
@dataclass(frozen=True)
class CubicCurve:
    """
    Cubic Bezier curve with start point p1, control points c1, c2 and end point p2.

    Instances are immutable; all operations return new values.
    """

    p1: Point
    c1: Point
    c2: Point
    p2: Point

    def __post_init__(self):
        object.__setattr__(self, "p1", GeomMath.to_point(self.p1))
        object.__setattr__(self, "c1", GeomMath.to_point(self.c1))
        object.__setattr__(self, "c2", GeomMath.to_point(self.c2))
        object.__setattr__(self, "p2", GeomMath.to_point(self.p2))

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> CubicCurve:
        """Create a curve from a sequence of exactly 4 points (start, control1, control2, end)."""
        if len(points) != 4:
            raise ValueError(f"Cubic curve needs 4 points, got {len(points)}")
        return cls(points[0], points[1], points[2], points[3])

    @property
    def points(self) -> Tuple[Point, Point, Point, Point]:
        """The control polygon (p1, c1, c2, p2)."""
        return self.p1, self.c1, self.c2, self.p2

    def _coefficients(self) -> Tuple[Point, Point, Point, Point]:
        """Power-basis coefficients k0 + k1*t + k2*t^2 + k3*t^3."""
        (x1, y1), (c1x, c1y), (c2x, c2y), (x2, y2) = self.points
        return (
            (x1, y1),
            (3.0 * (c1x - x1), 3.0 * (c1y - y1)),
            (3.0 * (x1 - 2.0 * c1x + c2x), 3.0 * (y1 - 2.0 * c1y + c2y)),
            (x2 - x1 + 3.0 * (c1x - c2x), y2 - y1 + 3.0 * (c1y - c2y)),
        )

    def point_at(self, t: float) -> Point:
        """
        Evaluate the curve at parameter t.

        B(t) = (1-t)^3*P1 + 3*(1-t)^2*t*C1 + 3*(1-t)*t^2*C2 + t^3*P2,
        computed in Horner form from the power-basis coefficients.
        """
        (k0x, k0y), (k1x, k1y), (k2x, k2y), (k3x, k3y) = self._coefficients()
        return (
            ((k3x * t + k2x) * t + k1x) * t + k0x,
            ((k3y * t + k2y) * t + k1y) * t + k0y,
        )

    def split(self) -> Tuple[CubicCurve, CubicCurve]:
        """
        Split the curve at t=0.5 using de Casteljau's construction.

        Returns:
            Tuple[CubicCurve, CubicCurve]: left and right half sharing point_at(0.5)
        """
        left_c1 = GeomMath.midpoint(self.p1, self.c1)
        mid_c = GeomMath.midpoint(self.c1, self.c2)
        right_c2 = GeomMath.midpoint(self.c2, self.p2)
        left_c2 = GeomMath.midpoint(left_c1, mid_c)
        right_c1 = GeomMath.midpoint(mid_c, right_c2)
        mid = GeomMath.midpoint(left_c2, right_c1)
        return CubicCurve(self.p1, left_c1, left_c2, mid), CubicCurve(mid, right_c1, right_c2, self.p2)

    def length(self, tolerance: float = DEFAULT_TOLERANCE) -> float:
        """
        Approximate arc length of the curve.

        No closed form exists, so the curve is sampled uniformly with the
        segment count estimated for half the given tolerance.

        Args:
            tolerance: Deviation tolerance driving the number of samples

        Returns:
            float: Length of the sampled polyline
        """
        segments = max(2, subdivision_count(self.points, tolerance * 0.5))
        x, y = _sample_polynomial(self._coefficients(), segments)
        x[0], y[0] = self.p1
        x[-1], y[-1] = self.p2
        return float(np.sum(np.hypot(np.diff(x), np.diff(y))))

    def to_points(self, tolerance: float = DEFAULT_TOLERANCE, include_first_point: bool = True) -> PointSequence:
        """
        Flatten the curve into a polyline by uniform parameter sampling.

        Args:
            tolerance: Deviation tolerance driving the number of samples
            include_first_point: If False, p1 is omitted (to chain curve segments)

        Returns:
            PointSequence: sampled points, the last one is exactly p2
        """
        segments = max(2, subdivision_count(self.points, tolerance))
        x, y = _sample_polynomial(self._coefficients(), segments)
        return _points_from_samples(x, y, self.p1, self.p2, include_first_point)

    def get_bounds(self) -> AvBox:
        """Axis-aligned bounding box of the curve between t=0 and t=1."""
        box = AvBox(self.p1[0], self.p1[1], self.p2[0], self.p2[1])
        for axis in (0, 1):
            p1, c1, c2, p2 = self.p1[axis], self.c1[axis], self.c2[axis], self.p2[axis]
            # Derivative of the cubic along this axis: a*t^2 + b*t + c
            a = -3.0 * p1 + 9.0 * c1 - 9.0 * c2 + 3.0 * p2
            b = 6.0 * p1 - 12.0 * c1 + 6.0 * c2
            c = 3.0 * c1 - 3.0 * p1
            for t in solve_quadratic(a, b, c):
                if 0.0 < t < 1.0:
                    box.include_point(self.point_at(t))
        return box

    def reversed(self) -> CubicCurve:
        """The same curve traversed from p2 to p1."""
        return CubicCurve(self.p2, self.c2, self.c1, self.p1)

    def transform_affine(self, affine_trafo: Sequence[Union[int, float]]) -> CubicCurve:
        """Apply the affine transformation [a00, a01, a10, a11, b0, b1] to all control points."""
        return CubicCurve(*(GeomMath.transform_point(affine_trafo, point) for point in self.points))

    @classmethod
    def fit(cls, points: Union[Sequence[Sequence[float]], NDArray[np.float64]]) -> CubicCurve:
        """Fit a cubic Bezier curve to sampled curve points.

        Uses a least-squares fit assuming the first and last points are the start and
        end of the desired curve. The remaining points are used to compute the two
        control points that best fit the samples.

        Args:
            points: Sampled points along the curve as (x, y) or (x, y, ...) rows.

        Returns:
            CubicCurve: The fitted curve.

        Raises:
            ValueError: If fewer than four points are provided, the input does not
                contain at least two coordinate columns, or no solution exists.
        """
        xy_points = _as_xy_array(points)
        if xy_points.shape[0] < 4:
            raise ValueError("At least four points are required to fit a cubic curve.")
        start = GeomMath.to_point(xy_points[0])
        end = GeomMath.to_point(xy_points[-1])

        best: Optional[CubicCurve] = None
        best_error = float("inf")
        for params in _fit_parameterizations(xy_points):
            controls = cls._fit_solve_controls(params, xy_points, start, end)
            if controls is None:
                continue
            candidate = cls(start, controls[0], controls[1], end)
            error = candidate._fit_error(params, xy_points)
            if error < best_error:
                best, best_error = candidate, error
            if best_error <= _FIT_ERROR_EPS:
                break

        if best is None:
            logger.debug("Cubic fit failed for %d samples", xy_points.shape[0])
            raise ValueError("Unable to fit cubic control points to the provided samples.")
        return best

    @staticmethod
    def _fit_solve_controls(
        params: NDArray[np.float64], xy_points: NDArray[np.float64], start: Point, end: Point
    ) -> Optional[Tuple[Point, Point]]:
        """Solve the 2x2 normal equations for both control points."""
        t_values = params[1:-1]
        omt = 1.0 - t_values
        omt2 = omt * omt
        t2 = t_values * t_values

        w1 = 3.0 * omt2 * t_values
        w2 = 3.0 * omt * t2

        s11 = float(np.dot(w1, w1))
        s12 = float(np.dot(w1, w2))
        s22 = float(np.dot(w2, w2))

        det = s11 * s22 - s12 * s12
        if det <= 0.0 or not math.isfinite(det):
            return None

        base_x = omt2 * omt * start[0] + t2 * t_values * end[0]
        base_y = omt2 * omt * start[1] + t2 * t_values * end[1]
        residual_x = xy_points[1:-1, 0] - base_x
        residual_y = xy_points[1:-1, 1] - base_y

        r1x = float(np.dot(w1, residual_x))
        r2x = float(np.dot(w2, residual_x))
        r1y = float(np.dot(w1, residual_y))
        r2y = float(np.dot(w2, residual_y))

        inv_det = 1.0 / det
        ctrl1 = ((r1x * s22 - r2x * s12) * inv_det, (r1y * s22 - r2y * s12) * inv_det)
        ctrl2 = ((r2x * s11 - r1x * s12) * inv_det, (r2y * s11 - r1y * s12) * inv_det)

        if not all(math.isfinite(value) for value in ctrl1 + ctrl2):
            return None
        return ctrl1, ctrl2

    def _fit_error(self, params: NDArray[np.float64], xy_points: NDArray[np.float64]) -> float:
        """Sum of squared distances between the samples and the curve at the given parameters."""
        omt = 1.0 - params
        t2 = params * params
        omt2 = omt * omt

        w0 = omt2 * omt
        w1 = 3.0 * omt2 * params
        w2 = 3.0 * omt * t2
        w3 = t2 * params

        bx = w0 * self.p1[0] + w1 * self.c1[0] + w2 * self.c2[0] + w3 * self.p2[0]
        by = w0 * self.p1[1] + w1 * self.c1[1] + w2 * self.c2[1] + w3 * self.p2[1]
        rx = xy_points[:, 0] - bx
        ry = xy_points[:, 1] - by
        return float(np.dot(rx, rx) + np.dot(ry, ry))
