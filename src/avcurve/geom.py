"""Handling geometries"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from avcurve.common import Point, PointSequence


###############################################################################
# GeomMath
###############################################################################
class GeomMath:
    """Class to provide various static methods related to geometry handling."""

    @staticmethod
    def transform_point(
        affine_trafo: Sequence[Union[int, float]], point: Sequence[Union[int, float]]
    ) -> Tuple[float, float]:
        """
        Perform an affine transformation on the given 2D point.

        The given _affine_trafo_ is a list of 6 floats, performing an affine transformation.
        The transformation is defined as:
            | x' | = | a00 a01 b0 |   | x |
            | y' | = | a10 a11 b1 | * | y |
            | 1  | = |  0   0  1  |   | 1 |
        with
            affine_trafo = [a00, a01, a10, a11, b0, b1]
        See also shapely - Affine Transformations

        Args:
            affine_trafo (Tuple/List[float]): Affine transformation - [a00, a01, a10, a11, b0, b1]
            point (Tuple/List[float]): 2D point - (x, y)

        Returns:
            Tuple[float, float]: the transformed point
        """
        x_new = float(affine_trafo[0] * point[0] + affine_trafo[1] * point[1] + affine_trafo[4])
        y_new = float(affine_trafo[2] * point[0] + affine_trafo[3] * point[1] + affine_trafo[5])
        return (x_new, y_new)

    @staticmethod
    def to_point(point: Sequence[Union[int, float]]) -> Point:
        """Convert any (x, y) sequence (tuple, list, numpy row) into a float tuple."""
        return (float(point[0]), float(point[1]))

    @staticmethod
    def midpoint(p: Point, q: Point) -> Point:
        """Midpoint between p and q."""
        return ((p[0] + q[0]) * 0.5, (p[1] + q[1]) * 0.5)

    @staticmethod
    def lerp(p: Point, q: Point, t: float) -> Point:
        """Linear interpolation p + t * (q - p)."""
        return (p[0] + t * (q[0] - p[0]), p[1] + t * (q[1] - p[1]))

    @staticmethod
    def dot(u: Point, v: Point) -> float:
        """Dot product of two vectors."""
        return u[0] * v[0] + u[1] * v[1]

    @staticmethod
    def cross(u: Point, v: Point) -> float:
        """2D cross product (determinant) u.x * v.y - u.y * v.x."""
        return u[0] * v[1] - u[1] * v[0]

    @staticmethod
    def distance_sq(p: Point, q: Point) -> float:
        """Squared euclidean distance between p and q."""
        dx = q[0] - p[0]
        dy = q[1] - p[1]
        return dx * dx + dy * dy

    @staticmethod
    def distance(p: Point, q: Point) -> float:
        """Euclidean distance between p and q."""
        return math.hypot(q[0] - p[0], q[1] - p[1])

    @staticmethod
    def line_deviation(point: Point, start: Point, end: Point) -> float:
        """
        Perpendicular distance of _point_ from the infinite line through _start_ and _end_.

        If _start_ and _end_ coincide the plain distance to _start_ is returned.
        """
        dx = end[0] - start[0]
        dy = end[1] - start[1]
        chord = math.hypot(dx, dy)
        if chord == 0.0:
            return math.hypot(point[0] - start[0], point[1] - start[1])
        return abs(dx * (point[1] - start[1]) - dy * (point[0] - start[0])) / chord

    @staticmethod
    def concat_points(*sequences: Iterable[Optional[Point]]) -> PointSequence:
        """Concatenate several point sequences into one list."""
        result: PointSequence = []
        for sequence in sequences:
            result.extend(sequence)
        return result

    @staticmethod
    def split_polylines(points: Iterable[Optional[Point]]) -> List[NDArray[np.float64]]:
        """
        Split a point sequence at its None markers into independent polylines.

        Args:
            points: Sequence of points, None entries mark discontinuities

        Returns:
            List[NDArray[np.float64]]: one array of shape (n, 2) per non-empty run
        """
        polylines: List[NDArray[np.float64]] = []
        run: List[Point] = []
        for point in points:
            if point is None:
                if run:
                    polylines.append(np.array(run, dtype=np.float64))
                    run = []
                continue
            run.append(point)
        if run:
            polylines.append(np.array(run, dtype=np.float64))
        return polylines

    @staticmethod
    def polyline_length(points: Iterable[Optional[Point]]) -> float:
        """Sum of the segment lengths of a point sequence, never connecting across None markers."""
        total = 0.0
        for polyline in GeomMath.split_polylines(points):
            if len(polyline) > 1:
                deltas = np.diff(polyline, axis=0)
                total += float(np.sum(np.hypot(deltas[:, 0], deltas[:, 1])))
        return total


###############################################################################
# AvBox
###############################################################################
@dataclass
class AvBox:
    """
    Represents a rectangular box with coordinates and dimensions.

    The box can grow by including further points, which makes it usable as an
    accumulator when computing bounding boxes.

    Attributes:
        xmin (float): The minimum x-coordinate.
        ymin (float): The minimum y-coordinate.
        xmax (float): The maximum x-coordinate.
        ymax (float): The maximum y-coordinate.
    """

    _xmin: float
    _ymin: float
    _xmax: float
    _ymax: float

    def __init__(self, xmin: float, ymin: float, xmax: float, ymax: float):
        """Initialize AvBox with coordinates.

        Args:
            xmin: The minimum x-coordinate
            ymin: The minimum y-coordinate
            xmax: The maximum x-coordinate
            ymax: The maximum y-coordinate
        """
        self._xmin = float(xmin)
        self._ymin = float(ymin)
        self._xmax = float(xmax)
        self._ymax = float(ymax)

        # Normalize coordinates to ensure xmin ≤ xmax and ymin ≤ ymax
        if self._xmin > self._xmax:
            self._xmin, self._xmax = self._xmax, self._xmin
        if self._ymin > self._ymax:
            self._ymin, self._ymax = self._ymax, self._ymin

    @classmethod
    def from_points(cls, points: Iterable[Optional[Point]]) -> Optional[AvBox]:
        """
        Create the smallest box containing all given points.

        None entries are ignored. Returns None if no point is given.
        """
        box: Optional[AvBox] = None
        for point in points:
            if point is None:
                continue
            if box is None:
                box = cls(point[0], point[1], point[0], point[1])
            else:
                box.include_point(point)
        return box

    @property
    def xmin(self) -> float:
        """float: The minimum x-coordinate."""
        return self._xmin

    @property
    def ymin(self) -> float:
        """float: The minimum y-coordinate."""
        return self._ymin

    @property
    def xmax(self) -> float:
        """float: The maximum x-coordinate."""
        return self._xmax

    @property
    def ymax(self) -> float:
        """float: The maximum y-coordinate."""
        return self._ymax

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        """The extent of the box as Tuple (xmin, ymin, xmax, ymax)."""
        return self._xmin, self._ymin, self._xmax, self._ymax

    @property
    def width(self) -> float:
        """float: The width of the box (difference between xmax and xmin)."""

        return self._xmax - self._xmin

    @property
    def height(self) -> float:
        """float: The height of the box (difference between ymax and ymin)."""

        return self._ymax - self._ymin

    def include_point(self, point: Point) -> AvBox:
        """
        Grow the box in place so that it contains the given point.

        Args:
            point (Tuple[float, float]): 2D point - (x, y)

        Returns:
            AvBox: self, to allow chaining
        """
        x, y = point[0], point[1]
        if x < self._xmin:
            self._xmin = float(x)
        if x > self._xmax:
            self._xmax = float(x)
        if y < self._ymin:
            self._ymin = float(y)
        if y > self._ymax:
            self._ymax = float(y)
        return self

    def contains(self, point: Point) -> bool:
        """True if the point lies inside the box or on its border."""
        return self._xmin <= point[0] <= self._xmax and self._ymin <= point[1] <= self._ymax

    def __str__(self):
        """Returns a string representation of the AvBox instance."""
        return (
            f"AvBox(xmin={self.xmin}, ymin={self.ymin}, "
            f"xmax={self.xmax}, ymax={self.ymax}, "
            f"width={self.width}, height={self.height})"
        )
