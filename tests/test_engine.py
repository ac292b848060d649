"""
Tests for the BoundaryEngine pipeline.

Verifies:
  1. BoundaryConfig validates eagerly (before any computation).
  2. A small continuous run produces a full trace, both bands and a
     serializable response.
  3. The verbose response carries the config and the full trace.

These tests are independent of Flask and the API layer.
"""

import json

import numpy as np
import pytest

from boundary.calibration import CalibrationStrategy
from boundary.engine import BoundaryConfig, BoundaryEngine, BoundaryResult
from boundary.errors import ConfigurationError
from data.synthetic import generate_scenario


@pytest.fixture(scope="module")
def small_result():
    observations, _ = generate_scenario("circle_normal", n_obs=20, seed=3)
    config = BoundaryConfig(observations, "normal", "normal",
                            n_mcmc=30, n_burn=10, seed=1, num_angles=16)
    return BoundaryEngine(config).run()


# -----------------------------------------------------------------------
# BoundaryConfig
# -----------------------------------------------------------------------
class TestBoundaryConfig:

    def test_defaults(self, circle_image):
        observations, _ = circle_image
        config = BoundaryConfig(observations, "normal", "poisson")
        assert config.strategy is CalibrationStrategy.CONTINUOUS
        assert config.mu == 18.0
        assert config.n_mcmc == 4000
        assert config.n_burn == 1000
        assert config.level == 0.95

    def test_mismatched_families(self, circle_image):
        observations, _ = circle_image
        with pytest.raises(ConfigurationError):
            BoundaryConfig(observations, "bernoulli", "normal")

    @pytest.mark.parametrize("kwargs", [
        {"mu": 0},
        {"n_mcmc": 0},
        {"n_burn": -1},
        {"max_knots": 9},
        {"num_angles": 0},
        {"level": 1.0},
    ])
    def test_invalid_settings(self, circle_image, kwargs):
        observations, _ = circle_image
        with pytest.raises(ConfigurationError):
            BoundaryConfig(observations, "normal", "normal", **kwargs)

    def test_to_dict(self, circle_image):
        observations, _ = circle_image
        d = BoundaryConfig(observations, "normal", "normal", seed=5).to_dict()
        assert d["strategy"] == "continuous"
        assert d["seed"] == 5
        assert d["observations"]["n_pixels"] == 900
        assert d["observations"]["side"] == 30


# -----------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------
class TestBoundaryEngine:

    def test_result_structure(self, small_result):
        assert isinstance(small_result, BoundaryResult)
        assert len(small_result.trace) == 40
        assert len(small_result.run.posterior) == 30
        assert small_result.calibration.strategy is CalibrationStrategy.CONTINUOUS

    def test_bands_on_grid(self, small_result):
        theta, mean = small_result.mean_curve
        assert theta.shape == (16,)
        assert mean.shape == (16,)
        assert np.all(small_result.simultaneous.lower <= mean + 1e-12)
        assert np.all(small_result.simultaneous.upper >= mean - 1e-12)
        assert np.allclose(small_result.pointwise.mean, mean)

    def test_api_response(self, small_result):
        response = small_result.to_api_response()
        assert set(response) == {"calibration", "diagnostics", "knots",
                                 "final_state", "pointwise", "simultaneous"}
        assert "trace" not in response
        assert response["calibration"]["binary"] is False
        json.dumps(response)

    def test_verbose_response(self, small_result):
        response = small_result.to_verbose_response()
        assert len(response["trace"]) == 40
        assert response["config"]["n_mcmc"] == 30
        assert response["calibration_detail"]["strategy"] == "continuous"
        json.dumps(response)

    def test_seed_reproduces_run(self):
        observations, _ = generate_scenario("circle_normal", n_obs=20, seed=3)

        def once():
            config = BoundaryConfig(observations, "normal", "normal",
                                    n_mcmc=10, n_burn=0, seed=8, num_angles=8)
            return BoundaryEngine(config).run()

        a, b = once(), once()
        assert np.array_equal(a.simultaneous.mean, b.simultaneous.mean)
        assert a.simultaneous.half_width == b.simultaneous.half_width
