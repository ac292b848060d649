"""
Tests for the Gibbs risk evaluator.

Uses a hand-built four-pixel image around the circle r = 0.3, one pixel
per (inside/outside) x (high/low) cell, so every risk value is known in
closed form.
"""

import numpy as np
import pytest

from boundary.observations import ObservationSet
from boundary.risk import RiskParameters, CalibrationContext, GibbsRiskEvaluator


RADII = [0.1, 0.5, 0.1, 0.5]
ANGLES = [0.3, 1.7, 3.1, 4.9]


def _evaluator(intensity, params):
    obs = ObservationSet(RADII, ANGLES, intensity)
    return GibbsRiskEvaluator(CalibrationContext(obs, params))


class TestRiskParameters:

    def test_binary_flag(self):
        assert RiskParameters(1.0, 1.0, None).binary
        assert not RiskParameters(1.0, 1.0, 0.5).binary

    def test_to_dict(self):
        d = RiskParameters(2, 3, 0.5).to_dict()
        assert d == {"k": 2.0, "c": 3.0, "threshold": 0.5, "binary": False}

    def test_immutable(self):
        params = RiskParameters(1.0, 1.0, None)
        with pytest.raises(AttributeError):
            params.k = 5.0


class TestBinaryRisk:
    """Labels: high inside, high outside, low inside, low outside."""

    LABELS = [1, 1, 0, 0]

    def test_weighted_count(self, constant_state):
        ev = _evaluator(self.LABELS, RiskParameters(2.0, 3.0, None))
        state = constant_state(0.3)
        # one missed high pixel (k) + one low pixel inside (c)
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(5.0)

    def test_everything_inside(self, constant_state):
        ev = _evaluator(self.LABELS, RiskParameters(2.0, 3.0, None))
        state = constant_state(0.9)
        # both low pixels now inside
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(6.0)

    def test_everything_outside(self, constant_state):
        ev = _evaluator(self.LABELS, RiskParameters(2.0, 3.0, None))
        state = constant_state(0.05)
        # both high pixels now outside
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(4.0)

    def test_deterministic(self, constant_state):
        ev = _evaluator(self.LABELS, RiskParameters(2.0, 3.0, None))
        state = constant_state(0.3)
        values = {ev.risk(state.knots, state.coefficients) for _ in range(5)}
        assert len(values) == 1

    def test_classify(self, constant_state):
        ev = _evaluator(self.LABELS, RiskParameters(1.0, 1.0, None))
        state = constant_state(0.3)
        inside = ev.classify(state.knots, state.coefficients)
        assert list(inside) == [True, False, True, False]


class TestContinuousRisk:

    INTENSITY = [5.0, 4.0, 1.0, 0.5]

    def test_threshold_splits_high_low(self, constant_state):
        ev = _evaluator(self.INTENSITY, RiskParameters(2.0, 3.0, 2.5))
        state = constant_state(0.3)
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(5.0)

    def test_threshold_is_inclusive(self, constant_state):
        """y == z counts as high."""
        ev = _evaluator(self.INTENSITY, RiskParameters(2.0, 3.0, 4.0))
        state = constant_state(0.3)
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(2.0 + 3.0)
        ev = _evaluator(self.INTENSITY, RiskParameters(2.0, 3.0, 4.5))
        # pixel 2 is now low and outside: no cost
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(3.0)

    def test_negative_weights_allowed(self, constant_state):
        ev = _evaluator(self.INTENSITY, RiskParameters(-1.0, 0.5, 2.5))
        state = constant_state(0.3)
        assert ev.risk(state.knots, state.coefficients) == pytest.approx(-0.5)

    def test_high_mask_read_only(self):
        ev = _evaluator(self.INTENSITY, RiskParameters(1.0, 1.0, 2.5))
        with pytest.raises(ValueError):
            ev.context.high[0] = False


class TestRiskFromBoundary:

    def test_matches_risk(self, circle_evaluator, constant_state):
        state = constant_state(0.3)
        r = circle_evaluator.boundary_at_pixels(state.knots, state.coefficients)
        assert circle_evaluator.risk_from_boundary(r) == \
            circle_evaluator.risk(state.knots, state.coefficients)

    def test_true_boundary_beats_wrong_ones(self, circle_evaluator, constant_state):
        risks = {}
        for r0 in (0.15, 0.3, 0.45):
            state = constant_state(r0)
            risks[r0] = circle_evaluator.risk(state.knots, state.coefficients)
        assert risks[0.3] < risks[0.15]
        assert risks[0.3] < risks[0.45]

    def test_observations_shared(self, circle_evaluator, circle_image):
        observations, _ = circle_image
        assert circle_evaluator.observations is observations
        assert np.all(circle_evaluator.observations.radius >= 0)
