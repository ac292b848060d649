"""
Gibbs risk: the empirical misclassification cost of a candidate boundary.

The risk stands in for a likelihood in the RJ-MCMC acceptance ratio. For
a boundary r(theta) and pixels (radius_i, theta_i, y_i):

    R = sum_i  k * 1[high_i and radius_i >  r(theta_i)]
             + c * 1[low_i  and radius_i <= r(theta_i)]

where high_i is y_i == 1 for binary images and y_i >= z for continuous
images (z the calibrated threshold), and low_i is its complement. The
weights (k, c, z) come from the loss calibrator and never change during
sampling.

Classes:
    RiskParameters     - Immutable {k, c, threshold} record
    CalibrationContext - Observations + RiskParameters, shared read-only
    GibbsRiskEvaluator - Pure risk function over a CalibrationContext

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

from collections import namedtuple

import numpy as np

from boundary import spline


class RiskParameters(namedtuple("RiskParameters", ["k", "c", "threshold"])):
    """
    Calibrated loss weights.

    Attributes
    ----------
    k : float
        Weight of a high-intensity pixel classified outside.
    c : float
        Weight of a low-intensity pixel classified inside.
    threshold : float or None
        Intensity split z for continuous data; None for binary labels.
    """

    __slots__ = ()

    @property
    def binary(self):
        return self.threshold is None

    def to_dict(self):
        return {
            "k": float(self.k),
            "c": float(self.c),
            "threshold": None if self.threshold is None else float(self.threshold),
            "binary": self.binary,
        }


class CalibrationContext:
    """
    Read-only inputs shared by every risk evaluation in a run.

    The high/low split of the pixels is computed once here, so the
    evaluator never re-dispatches on the data type per call.
    """

    def __init__(self, observations, params):
        self.observations = observations
        self.params = params
        if params.binary:
            high = observations.intensity == 1
        else:
            high = observations.intensity >= params.threshold
        high.setflags(write=False)
        self.high = high


class GibbsRiskEvaluator:
    """
    Pure, deterministic Gibbs risk of candidate boundaries.

    Parameters
    ----------
    context : CalibrationContext
        Observations and calibrated weights.
    """

    def __init__(self, context):
        self.context = context

    @property
    def observations(self):
        return self.context.observations

    def boundary_at_pixels(self, knots, coefficients):
        """Boundary radius at every pixel angle."""
        return spline.evaluate(self.observations.theta, knots, coefficients)

    def risk_from_boundary(self, r_boundary):
        """
        Risk from precomputed boundary radii (one per pixel).

        Used by the sampler when many proposals share one design matrix.
        """
        params = self.context.params
        high = self.context.high
        outside = self.observations.radius > r_boundary
        missed = np.count_nonzero(high & outside)
        false_alarm = np.count_nonzero(~high & ~outside)
        return float(params.k * missed + params.c * false_alarm)

    def risk(self, knots, coefficients):
        """
        Gibbs risk of the boundary (knots, coefficients).

        Returns
        -------
        float
            Weighted misclassification count (continuous weights may be
            negative when the regimes are poorly separated).
        """
        return self.risk_from_boundary(self.boundary_at_pixels(knots, coefficients))

    def classify(self, knots, coefficients):
        """Boolean mask: True where the pixel lies inside the boundary."""
        r = self.boundary_at_pixels(knots, coefficients)
        return self.observations.radius <= r
