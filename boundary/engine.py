"""
BoundaryEngine: the estimation pipeline for GIBBS-BD.

ARCHITECTURE RULE: This module only wires the pipeline together
(config, calibration -> sampling -> summarization, result). Numerical
logic lives in its own module:

    boundary.spline       - closed B-spline curves and the closure solver
    boundary.risk         - Gibbs risk of a candidate boundary
    boundary.calibration  - loss weights / threshold before sampling
    boundary.sampler      - RJ-MCMC chain
    boundary.summary      - mean curve and credible bands

Services under boundary/services/* call BoundaryEngine; they do not call
the sampler directly.

This module provides:
    BoundaryConfig - Validated parameters of one run
    BoundaryEngine - Runs calibrate -> sample -> summarize
    BoundaryResult - Complete run output with serialization methods

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging

from boundary.calibration import calibrate, select_strategy
from boundary.constants import (
    DEFAULT_MU,
    DEFAULT_MAX_KNOTS,
    DEFAULT_N_MCMC,
    DEFAULT_N_BURN,
    DEFAULT_NUM_ANGLES,
    BAND_LEVEL,
    MIN_KNOTS,
)
from boundary.errors import ConfigurationError
from boundary.risk import CalibrationContext, GibbsRiskEvaluator
from boundary.sampler import RJMCMCSampler
from boundary.summary import (
    angle_grid,
    pointwise_bands,
    simultaneous_band,
    posterior_knot_summary,
)

log = logging.getLogger(__name__)


class BoundaryConfig:
    """
    Parameters of one estimation run.

    Validation is eager: every selector and count is checked here, before
    calibration or sampling start.

    Parameters
    ----------
    observations : ObservationSet
        Pixel data (read-only).
    inside_family, outside_family : str or DensityFamily
        Intensity families of the two regimes. Must agree on binary vs
        continuous.
    mu : float, optional
        Prior mean knot count (default 18).
    n_mcmc : int, optional
        Post-burn-in sweeps (default 4000).
    n_burn : int, optional
        Burn-in sweeps (default 1000).
    seed : int, optional
        Random seed of the chain.
    max_knots : int, optional
        Upper bound on the knot count.
    num_angles : int, optional
        Grid size for the credible bands.
    level : float, optional
        Credible level of the bands.
    """

    def __init__(self, observations, inside_family, outside_family,
                 mu=DEFAULT_MU, n_mcmc=DEFAULT_N_MCMC, n_burn=DEFAULT_N_BURN,
                 seed=None, max_knots=DEFAULT_MAX_KNOTS,
                 num_angles=DEFAULT_NUM_ANGLES, level=BAND_LEVEL):
        self.observations = observations
        self.strategy = select_strategy(inside_family, outside_family)
        self.inside_family = inside_family
        self.outside_family = outside_family
        self.mu = float(mu)
        self.n_mcmc = int(n_mcmc)
        self.n_burn = int(n_burn)
        self.seed = seed
        self.max_knots = int(max_knots)
        self.num_angles = int(num_angles)
        self.level = float(level)

        if self.mu <= 0:
            raise ConfigurationError("mu must be positive")
        if self.n_mcmc < 1:
            raise ConfigurationError("n_mcmc must be at least 1")
        if self.n_burn < 0:
            raise ConfigurationError("n_burn must be non-negative")
        if self.max_knots <= MIN_KNOTS:
            raise ConfigurationError(
                "max_knots must exceed {}".format(MIN_KNOTS))
        if self.num_angles < 1:
            raise ConfigurationError("num_angles must be positive")
        if not 0.0 < self.level < 1.0:
            raise ConfigurationError("level must lie in (0, 1)")

    def to_dict(self):
        """Serialize config for inclusion in verbose output."""
        return {
            "strategy": self.strategy.value,
            "observations": self.observations.summary(),
            "mu": self.mu,
            "n_mcmc": self.n_mcmc,
            "n_burn": self.n_burn,
            "seed": self.seed,
            "max_knots": self.max_knots,
            "num_angles": self.num_angles,
            "level": self.level,
        }


class BoundaryResult:
    """
    Complete pipeline output.

    Parameters
    ----------
    config : BoundaryConfig
    calibration : CalibrationResult
    run : SamplerRun
    pointwise : CredibleBand
    simultaneous : CredibleBand
    """

    def __init__(self, config, calibration, run, pointwise, simultaneous):
        self.config = config
        self.calibration = calibration
        self.run = run
        self.pointwise = pointwise
        self.simultaneous = simultaneous

    @property
    def trace(self):
        return self.run.trace

    @property
    def mean_curve(self):
        """(theta, mean radius) on the band grid."""
        return self.simultaneous.theta, self.simultaneous.mean

    def to_api_response(self):
        """
        Compact JSON response: calibration, diagnostics, bands.

        The trace itself is left out; see to_verbose_response().
        """
        center = self.config.observations.center
        return {
            "calibration": self.calibration.params.to_dict(),
            "diagnostics": self.run.diagnostics.to_dict(),
            "knots": posterior_knot_summary(self.trace, self.run.n_burn),
            "final_state": self.trace[-1].to_dict(),
            "pointwise": self.pointwise.to_dict(center),
            "simultaneous": self.simultaneous.to_dict(center),
        }

    def to_verbose_response(self):
        """Everything in to_api_response() plus config and full trace."""
        response = self.to_api_response()
        response["config"] = self.config.to_dict()
        response["calibration_detail"] = self.calibration.to_dict()
        response["trace"] = [s.to_dict() for s in self.trace]
        return response


class BoundaryEngine:
    """
    Orchestrates calibration, sampling and summarization for one config.

    Parameters
    ----------
    config : BoundaryConfig
    """

    def __init__(self, config):
        self.config = config

    def calibrate(self):
        cfg = self.config
        return calibrate(cfg.observations, cfg.inside_family, cfg.outside_family)

    def sampler(self, params):
        """Build a sampler over the calibrated risk."""
        cfg = self.config
        evaluator = GibbsRiskEvaluator(CalibrationContext(cfg.observations, params))
        return RJMCMCSampler(evaluator, mu=cfg.mu, max_knots=cfg.max_knots,
                             seed=cfg.seed)

    def run(self):
        """
        Run the pipeline.

        Returns
        -------
        BoundaryResult

        Raises
        ------
        CalibrationConvergenceFailure
            Calibration failed; nothing was sampled.
        RootFindingFailure
            The initial chain state could not be closed.
        """
        cfg = self.config
        calibration = self.calibrate()
        log.info("calibrated %s risk: %s", calibration.strategy.value,
                 calibration.params.to_dict())

        run = self.sampler(calibration.params).run(cfg.n_mcmc, cfg.n_burn)

        grid = angle_grid(cfg.num_angles)
        pointwise = pointwise_bands(run.trace, grid, run.n_burn, cfg.level)
        simultaneous = simultaneous_band(run.trace, grid, run.n_burn, cfg.level)
        return BoundaryResult(cfg, calibration, run, pointwise, simultaneous)
