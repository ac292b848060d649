"""
Pytest fixtures for the GIBBS-BD test suite.
"""

import numpy as np
import pytest

from app import create_app
from boundary import spline
from boundary.risk import RiskParameters, CalibrationContext, GibbsRiskEvaluator
from boundary.sampler import ChainState
from data.synthetic import generate_scenario


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def circle_image():
    """Small continuous image: circle r0 = 0.3, N(4,1) inside, N(1,1) outside."""
    return generate_scenario("circle_normal", n_obs=30, seed=7)


@pytest.fixture
def ellipse_image():
    """Small binary image: ellipse, Bernoulli(0.5) inside, Bernoulli(0.2) outside."""
    return generate_scenario("ellipse_bernoulli", n_obs=30, seed=11)


@pytest.fixture
def circle_evaluator(circle_image):
    """Risk evaluator on the circle image with fixed, hand-picked weights."""
    observations, _ = circle_image
    params = RiskParameters(k=2.6, c=2.6, threshold=2.5)
    return GibbsRiskEvaluator(CalibrationContext(observations, params))


@pytest.fixture
def constant_state():
    """Factory: closed state whose boundary is the circle r = radius."""
    def make(radius, n_interior=10):
        knots = spline.initial_knots(n_interior)
        return ChainState(knots, np.full(len(knots) - 4, float(radius)))
    return make
