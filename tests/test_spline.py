"""
Tests for closed B-spline boundaries and the closure solver.

Verifies:
  1. Knot layout: starting sequence, padding, invariant checks.
  2. evaluate(): partition of unity, vectorization, domain and sorting
     errors, design-matrix parity.
  3. resolve_closure(): closes random curves, fails cleanly when the
     bracket holds no root.
"""

import math

import numpy as np
import pytest

from boundary import spline
from boundary.constants import TWO_PI, KNOT_PAD, CLOSURE_TOL, MIN_KNOTS
from boundary.errors import RootFindingFailure


# -----------------------------------------------------------------------
# Knot layout
# -----------------------------------------------------------------------
class TestKnotLayout:

    def test_initial_layout_has_18_knots(self):
        knots = spline.initial_knots()
        assert len(knots) == 18
        assert len(spline.interior(knots)) == 10

    def test_padding_replicated_outside_domain(self):
        knots = spline.initial_knots()
        assert np.all(knots[:4] == -KNOT_PAD)
        assert np.all(knots[-4:] == TWO_PI + KNOT_PAD)

    def test_interior_equally_spaced(self):
        inner = spline.interior(spline.initial_knots(10))
        assert np.allclose(np.diff(inner), TWO_PI / 11)
        assert inner[0] > 0 and inner[-1] < TWO_PI

    def test_initial_layout_is_valid(self):
        spline.validate_knots(spline.initial_knots())

    def test_minimum_layout(self):
        knots = spline.initial_knots(1)
        assert len(knots) == MIN_KNOTS
        spline.validate_knots(knots)

    def test_zero_interior_rejected(self):
        with pytest.raises(ValueError):
            spline.initial_knots(0)

    def test_duplicate_interior_knots_rejected(self):
        knots = spline.padded_knots([1.0, 2.0, 2.0, 3.0])
        with pytest.raises(ValueError, match="distinct"):
            spline.validate_knots(knots)

    def test_interior_knot_outside_domain_rejected(self):
        knots = spline.padded_knots([0.0, 2.0])
        with pytest.raises(ValueError):
            spline.validate_knots(knots)

    def test_too_short_rejected(self):
        with pytest.raises(ValueError):
            spline.validate_knots(spline.padded_knots([]))


# -----------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------
class TestEvaluate:

    def test_constant_coefficients_give_circle(self):
        """B-splines sum to one, so equal coefficients give r = const."""
        knots = spline.initial_knots()
        c = np.full(len(knots) - 4, 0.3)
        theta = np.linspace(0, TWO_PI, 50)
        assert np.allclose(spline.evaluate(theta, knots, c), 0.3)

    def test_scalar_in_scalar_out(self):
        knots = spline.initial_knots()
        c = np.full(len(knots) - 4, 0.25)
        r = spline.evaluate(1.0, knots, c)
        assert isinstance(r, float)
        assert r == pytest.approx(0.25)

    def test_vectorized_shape(self):
        knots = spline.initial_knots()
        c = np.linspace(0.1, 0.4, len(knots) - 4)
        r = spline.evaluate(np.linspace(0, 6, 17), knots, c)
        assert r.shape == (17,)

    def test_unsorted_knots_rejected(self):
        knots = spline.initial_knots()
        knots[6], knots[7] = knots[7], knots[6]
        with pytest.raises(ValueError, match="sorted"):
            spline.evaluate(1.0, knots, np.ones(len(knots) - 4))

    def test_wrong_coefficient_count_rejected(self):
        knots = spline.initial_knots()
        with pytest.raises(ValueError, match="coefficients"):
            spline.evaluate(1.0, knots, np.ones(len(knots) - 3))

    def test_theta_outside_domain_rejected(self):
        knots = spline.initial_knots()
        c = np.ones(len(knots) - 4)
        with pytest.raises(ValueError, match="domain"):
            spline.evaluate(-KNOT_PAD - 0.1, knots, c)
        with pytest.raises(ValueError, match="domain"):
            spline.evaluate(TWO_PI + KNOT_PAD + 0.1, knots, c)

    def test_design_matrix_matches_evaluate(self):
        rng = np.random.default_rng(0)
        knots = spline.initial_knots()
        c = rng.uniform(0.1, 0.4, len(knots) - 4)
        theta = rng.uniform(0, TWO_PI, 200)
        B = spline.design_matrix(theta, knots)
        assert B.shape == (200, len(knots) - 4)
        assert np.allclose(B @ c, spline.evaluate(theta, knots, c))

    def test_design_matrix_rows_sum_to_one(self):
        knots = spline.initial_knots()
        B = spline.design_matrix(np.linspace(0, TWO_PI, 30), knots)
        assert np.allclose(np.asarray(B.sum(axis=1)).ravel(), 1.0)


# -----------------------------------------------------------------------
# Closure
# -----------------------------------------------------------------------
class TestClosure:

    def test_constant_curve_closes_at_same_value(self):
        knots = spline.initial_knots()
        c = np.full(len(knots) - 4, 0.3)
        c[0] = 5.0  # ignored
        assert spline.resolve_closure(knots, c) == pytest.approx(0.3, abs=CLOSURE_TOL)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_random_curves_close(self, seed):
        rng = np.random.default_rng(seed)
        interior = np.sort(rng.uniform(0.05, TWO_PI - 0.05, 12))
        knots = spline.padded_knots(interior)
        c = spline.close_curve(knots, rng.uniform(0.1, 0.4, len(knots) - 4))
        assert spline.closure_gap(knots, c) < CLOSURE_TOL

    def test_close_curve_only_changes_first(self):
        knots = spline.initial_knots()
        c = np.linspace(0.1, 0.4, len(knots) - 4)
        closed = spline.close_curve(knots, c)
        assert np.array_equal(closed[1:], c[1:])
        assert c[0] == 0.1  # input untouched

    def test_no_root_in_bracket_raises(self):
        """A first knot hugging 0 makes c_0 nearly irrelevant at theta = 0."""
        knots = spline.padded_knots([1e-6, 2.0, 4.0])
        c = np.array([0.3, 0.3, 0.3, 0.3, 0.3, 0.3, 1.0])
        with pytest.raises(RootFindingFailure):
            spline.resolve_closure(knots, c)

    def test_closure_gap_of_open_curve(self):
        knots = spline.initial_knots()
        c = np.full(len(knots) - 4, 0.3)
        c[0] = 0.6
        assert spline.closure_gap(knots, c) > 0.01
        assert math.isfinite(spline.closure_gap(knots, c))
