"""Test module for CubicCurve in avcurve.bezier

The tests are run using pytest.
These tests ensure that all cubic curve methods and interfaces
remain working correctly after changes and refactoring.
"""

import numpy as np
import pytest

from avcurve.bezier import CubicCurve, solve_quadratic, subdivision_count
from avcurve.geom import AvBox


def bernstein(curve, t):
    """Reference evaluation with Bernstein weights."""
    omt = 1.0 - t
    w = (omt**3, 3.0 * omt * omt * t, 3.0 * omt * t * t, t**3)
    return tuple(sum(wi * p[axis] for wi, p in zip(w, curve.points)) for axis in (0, 1))


def dense_length(curve, samples=20000):
    """Reference length from a very fine polyline."""
    points = np.array([curve.point_at(t) for t in np.linspace(0.0, 1.0, samples + 1)])
    deltas = np.diff(points, axis=0)
    return float(np.sum(np.hypot(deltas[:, 0], deltas[:, 1])))


SYMMETRIC = CubicCurve((0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0))
S_CURVE = CubicCurve((0.0, 0.0), (5.0, 30.0), (15.0, -10.0), (20.0, 0.0))


###############################################################################
# Quadratic Equation Solver Tests
###############################################################################


class TestSolveQuadratic:
    """Tests for the real root solver used by the bounding box computations."""

    def test_two_roots(self):
        """Test (t - 1)(t - 3) = 0."""
        assert sorted(solve_quadratic(1.0, -4.0, 3.0)) == pytest.approx([1.0, 3.0])

    def test_double_root(self):
        """Test (t - 2)^2 = 0."""
        assert solve_quadratic(1.0, -4.0, 4.0) == pytest.approx([2.0])

    def test_no_real_root(self):
        """Test t^2 + 1 = 0."""
        assert solve_quadratic(1.0, 0.0, 1.0) == []

    def test_linear_fallback(self):
        """Test that a vanishing leading coefficient gives the linear root."""
        assert solve_quadratic(0.0, 2.0, -1.0) == pytest.approx([0.5])

    def test_constant(self):
        """Test that a constant equation has no roots."""
        assert solve_quadratic(0.0, 0.0, 1.0) == []


###############################################################################
# Cubic Evaluation Tests
###############################################################################


class TestCubicEvaluation:
    """Tests for construction and point evaluation."""

    def test_from_points(self):
        """Test creation from a point sequence."""
        curve = CubicCurve.from_points([(0, 0), (0, 1), (1, 1), (1, 0)])

        assert curve == SYMMETRIC
        assert curve.points == ((0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0))

    def test_from_points_wrong_count(self):
        """Test that a wrong number of points is rejected."""
        with pytest.raises(ValueError):
            CubicCurve.from_points([(0.0, 0.0), (1.0, 1.0), (2.0, 0.0)])

    def test_point_at_symmetric(self):
        """Test evaluation in the middle of a symmetric curve."""
        assert SYMMETRIC.point_at(0.5) == pytest.approx((0.5, 0.75))

    def test_point_at_endpoints(self):
        """Test that t=0 and t=1 give the endpoints."""
        assert S_CURVE.point_at(0.0) == S_CURVE.p1
        assert S_CURVE.point_at(1.0) == pytest.approx(S_CURVE.p2)

    def test_point_at_matches_bernstein(self):
        """Test the Horner evaluation against the Bernstein form, also outside [0, 1]."""
        for t in (-0.5, 0.0, 0.1, 0.33, 0.5, 0.9, 1.0, 1.7):
            assert S_CURVE.point_at(t) == pytest.approx(bernstein(S_CURVE, t))


###############################################################################
# Cubic Split Tests
###############################################################################


class TestCubicSplit:
    """Tests for de Casteljau splitting."""

    def test_split_shares_midpoint(self):
        """Test that both halves meet at point_at(0.5)."""
        left, right = SYMMETRIC.split()

        assert left.p2 == right.p1
        assert left.p2 == pytest.approx((0.5, 0.75))
        assert left.p1 == SYMMETRIC.p1
        assert right.p2 == SYMMETRIC.p2

    def test_split_control_points(self):
        """Test that the control points are successive midpoints."""
        left, right = SYMMETRIC.split()

        assert left.c1 == (0.0, 0.5)
        assert left.c2 == (0.25, 0.75)
        assert right.c1 == (0.75, 0.75)
        assert right.c2 == (1.0, 0.5)

    def test_split_halves_reproduce_curve(self):
        """Test that the halves trace the original curve."""
        left, right = S_CURVE.split()

        for t in np.linspace(0.0, 1.0, 11):
            assert left.point_at(t) == pytest.approx(S_CURVE.point_at(t * 0.5))
            assert right.point_at(t) == pytest.approx(S_CURVE.point_at(0.5 + t * 0.5))


###############################################################################
# Cubic Length Tests
###############################################################################


class TestCubicLength:
    """Tests for the sampled arc length."""

    def test_length_straight(self):
        """Test a straight cubic with evenly spaced control points."""
        curve = CubicCurve((0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (3.0, 0.0))

        assert curve.length() == pytest.approx(3.0)

    def test_length_of_point(self):
        """Test that a cubic collapsed to a point has no length."""
        curve = CubicCurve((10.0, 10.0), (10.0, 10.0), (10.0, 10.0), (10.0, 10.0))

        assert curve.length() == 0.0

    @pytest.mark.parametrize("curve", [SYMMETRIC, S_CURVE])
    def test_length_converges(self, curve):
        """Test that a tight tolerance approaches the true length."""
        assert curve.length(1e-8) == pytest.approx(dense_length(curve), rel=1e-3)

    @pytest.mark.parametrize("curve", [SYMMETRIC, S_CURVE])
    def test_length_never_exceeds_true_length(self, curve):
        """Test that chord sums underestimate the arc length."""
        assert curve.length(1.0) <= dense_length(curve) + 1e-9

    def test_length_samples_finer_than_points(self):
        """Test that the length uses half the tolerance."""
        tolerance = 0.01
        coarse = max(2, subdivision_count(S_CURVE.points, tolerance))
        fine = max(2, subdivision_count(S_CURVE.points, tolerance * 0.5))

        assert fine > coarse
        assert len(S_CURVE.to_points(tolerance)) == coarse + 1

    def test_length_invalid_tolerance(self):
        """Test that a non-positive tolerance is rejected."""
        with pytest.raises(ValueError):
            S_CURVE.length(-1.0)


###############################################################################
# Cubic Flattening Tests
###############################################################################


class TestCubicToPoints:
    """Tests for uniform flattening."""

    def test_to_points_endpoints_exact(self):
        """Test that the first and last points are exactly the curve endpoints."""
        curve = CubicCurve((0.1, 0.2), (5.3, 20.7), (15.1, 20.9), (20.7, 0.3))

        points = curve.to_points(0.001)

        assert points[0] == curve.p1
        assert points[-1] == curve.p2

    def test_to_points_skip_first(self):
        """Test omitting the first point for chaining."""
        with_first = S_CURVE.to_points(0.1)
        without_first = S_CURVE.to_points(0.1, include_first_point=False)

        assert without_first == with_first[1:]
        assert without_first[0] != S_CURVE.p1
        assert without_first[-1] == S_CURVE.p2

    def test_to_points_on_curve(self):
        """Test that the samples lie on the curve at uniform parameters."""
        points = S_CURVE.to_points(0.05)
        segments = len(points) - 1

        assert segments == subdivision_count(S_CURVE.points, 0.05)
        for i, point in enumerate(points):
            assert point == pytest.approx(S_CURVE.point_at(i / segments))

    def test_to_points_collinear(self):
        """Test that collinear control points give points on the line."""
        curve = CubicCurve((0.0, 0.0), (5.0, 0.0), (15.0, 0.0), (20.0, 0.0))

        points = curve.to_points(0.1)

        assert all(point[1] == 0.0 for point in points)

    def test_chained_segments(self):
        """Test chaining two halves without duplicate points."""
        left, right = S_CURVE.split()

        chained = left.to_points(0.1) + right.to_points(0.1, include_first_point=False)

        assert chained[0] == S_CURVE.p1
        assert chained[-1] == S_CURVE.p2
        assert all(a != b for a, b in zip(chained[:-1], chained[1:]))


###############################################################################
# Cubic Bounds Tests
###############################################################################


class TestCubicBounds:
    """Tests for the exact bounding box."""

    def test_bounds_symmetric(self):
        """Test the bounding box including the top of the arch."""
        assert SYMMETRIC.get_bounds().extent == pytest.approx((0.0, 0.0, 1.0, 0.75))

    def test_bounds_straight(self):
        """Test a straight curve."""
        curve = CubicCurve((0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (3.0, 0.0))

        assert curve.get_bounds() == AvBox(0.0, 0.0, 3.0, 0.0)

    def test_bounds_linear_derivative(self):
        """Test an axis where the derivative degrades to a linear function."""
        curve = CubicCurve((0.0, 0.0), (0.0, 3.0), (1.0, 3.0), (1.0, 0.0))

        # y-derivative: a = 0, b = -18, c = 9 -> t = 0.5, y = 2.25
        assert curve.get_bounds().extent == pytest.approx((0.0, 0.0, 1.0, 2.25))

    def test_bounds_s_curve(self):
        """Test that the box contains all points of an S-curve and is tight."""
        box = S_CURVE.get_bounds()
        samples = np.array([S_CURVE.point_at(t) for t in np.linspace(0.0, 1.0, 100001)])

        assert np.all(samples[:, 0] >= box.xmin - 1e-9)
        assert np.all(samples[:, 0] <= box.xmax + 1e-9)
        assert np.all(samples[:, 1] >= box.ymin - 1e-9)
        assert np.all(samples[:, 1] <= box.ymax + 1e-9)
        assert samples[:, 1].max() == pytest.approx(box.ymax, abs=1e-6)
        assert samples[:, 1].min() == pytest.approx(box.ymin, abs=1e-6)

    def test_bounds_loop_beyond_endpoints(self):
        """Test a curve overshooting both endpoints in x."""
        curve = CubicCurve((0.0, 0.0), (-10.0, 10.0), (20.0, 10.0), (10.0, 0.0))

        box = curve.get_bounds()

        assert box.xmin < 0.0
        assert box.xmax > 10.0
        assert box.ymax == pytest.approx(7.5)


###############################################################################
# Cubic Transformation and Fitting Tests
###############################################################################


class TestCubicTransform:
    """Tests for reversing and affine transformation."""

    def test_reversed(self):
        """Test that the reversed curve runs backwards."""
        reversed_curve = S_CURVE.reversed()

        for t in (0.0, 0.25, 0.5, 0.8, 1.0):
            assert reversed_curve.point_at(t) == pytest.approx(S_CURVE.point_at(1.0 - t))

    def test_transform_affine_translation(self):
        """Test a pure translation."""
        moved = SYMMETRIC.transform_affine([1, 0, 0, 1, 5.0, -2.0])

        assert moved.point_at(0.5) == pytest.approx((5.5, -1.25))
        assert moved.get_bounds().extent == pytest.approx((5.0, -2.0, 6.0, -1.25))


class TestCubicFit:
    """Tests for least-squares fitting."""

    def test_fit_reproduces_curve(self):
        """Test fitting uniformly sampled points of a known curve."""
        samples = [S_CURVE.point_at(t) for t in np.linspace(0.0, 1.0, 30)]

        fitted = CubicCurve.fit(samples)

        assert fitted.c1 == pytest.approx(S_CURVE.c1, abs=1e-6)
        assert fitted.c2 == pytest.approx(S_CURVE.c2, abs=1e-6)

    def test_fit_small_input(self):
        """Test fitting with only four samples."""
        samples = [SYMMETRIC.point_at(t) for t in np.linspace(0.0, 1.0, 4)]

        fitted = CubicCurve.fit(samples)

        assert fitted.c1 == pytest.approx(SYMMETRIC.c1, abs=1e-9)
        assert fitted.c2 == pytest.approx(SYMMETRIC.c2, abs=1e-9)

    def test_fit_too_few_points(self):
        """Test that three samples are rejected."""
        with pytest.raises(ValueError):
            CubicCurve.fit([(0.0, 0.0), (1.0, 1.0), (2.0, 0.0)])
