"""
Loss calibration: choose the Gibbs risk weights before sampling.

The Gibbs posterior replaces the likelihood with exp(-R), so the scale and
asymmetry of the misclassification weights decide how concentrated the
posterior is. Two strategies, selected once from the density families of
the two regimes:

BINARY (both regimes Bernoulli)
    Fit a boundary with k = c = 1, classify pixels, measure the in-class
    error rate p_in (zeros inside) and out-class error rate p_out (ones
    outside), and set

        k_final = 2 / (p_in + p_out) - 1,   c_final = 1

CONTINUOUS (both regimes continuous-valued)
    For each quantile q in 0.05, 0.10, ..., 0.95 of the intensities, with
    threshold z = quantile(y, q): fit with k = q / (1 - q), c = 1, classify,
    and measure the empirical CDFs at z,

        F_z  = P(y < z | classified inside)
        Fc_z = P(y < z | classified outside)

    Keep the threshold maximizing |Fc_z - F_z| and set

        c_final = log(Fc_z / F_z)
        k_final = log((1 - F_z) / (1 - F_z * exp(c_final)))

    Rates are clipped into [RATE_FLOOR, 1 - RATE_FLOOR] first, so extreme
    splits still give finite constants.

Both strategies share fit_boundary(): a non-negative, bounded Powell
minimization of the weighted misclassification loss on the fixed starting
knot layout, with the curve closed at every evaluation.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging
import math
from enum import Enum

import numpy as np
from scipy.optimize import minimize

from boundary import spline
from boundary.constants import (
    QUANTILE_GRID,
    CALIBRATION_MAX_ITER,
    CALIBRATION_XTOL,
    CALIBRATION_FTOL,
    RATE_FLOOR,
)
from boundary.errors import (
    ConfigurationError,
    CalibrationConvergenceFailure,
    RootFindingFailure,
)
from boundary.risk import RiskParameters, CalibrationContext, GibbsRiskEvaluator

log = logging.getLogger(__name__)


class DensityFamily(Enum):
    """Intensity distribution of one regime (inside or outside)."""

    BERNOULLI = "bernoulli"
    NORMAL = "normal"
    POISSON = "poisson"

    @property
    def is_binary(self):
        return self is DensityFamily.BERNOULLI

    @classmethod
    def parse(cls, value):
        """Accept a DensityFamily or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                "Unknown density family '{}'. Expected one of: {}".format(
                    value, ", ".join(f.value for f in cls))
            ) from None


class CalibrationStrategy(Enum):
    BINARY = "binary"
    CONTINUOUS = "continuous"


def select_strategy(inside_family, outside_family):
    """
    Pick the calibration strategy for a pair of regime families.

    Raises
    ------
    ConfigurationError
        If a selector is unknown, or one regime is binary and the other
        is not.
    """
    inside = DensityFamily.parse(inside_family)
    outside = DensityFamily.parse(outside_family)
    if inside.is_binary != outside.is_binary:
        raise ConfigurationError(
            "Inside ({}) and outside ({}) families must both be binary or "
            "both be continuous".format(inside.value, outside.value)
        )
    if inside.is_binary:
        return CalibrationStrategy.BINARY
    return CalibrationStrategy.CONTINUOUS


# =====================================================================
# SHARED FIT
# =====================================================================

class CalibrationFit:
    """Boundary fitted during calibration, with its pixel classification."""

    def __init__(self, knots, coefficients, inside, loss, iterations):
        self.knots = knots
        self.coefficients = coefficients
        self.inside = inside
        self.loss = loss
        self.iterations = iterations


def _closed(knots, free):
    coefficients = np.concatenate([[0.0], free])
    coefficients[0] = spline.resolve_closure(knots, coefficients)
    return coefficients


def fit_boundary(observations, params, knots=None, basis=None):
    """
    Fit a boundary by minimizing the weighted misclassification loss.

    The free coefficients c_1 .. c_{J-5} are bounded below by zero and start
    from a uniform guess (all equal to the median pixel radius); c_0 is
    closed at every evaluation.

    Parameters
    ----------
    observations : ObservationSet
        Pixel data.
    params : RiskParameters
        Loss weights (and threshold) used for this fit.
    knots : numpy.ndarray, optional
        Knot sequence (default: the 18-knot starting layout).
    basis : sparse matrix, optional
        Precomputed design matrix of the pixel angles on these knots.

    Returns
    -------
    CalibrationFit

    Raises
    ------
    CalibrationConvergenceFailure
        If the optimizer stops without converging.
    """
    if knots is None:
        knots = spline.initial_knots()
    if basis is None:
        basis = spline.design_matrix(observations.theta, knots)
    evaluator = GibbsRiskEvaluator(CalibrationContext(observations, params))

    n_free = len(knots) - 5
    x0 = np.full(n_free, float(np.median(observations.radius)))

    def loss(free):
        try:
            coefficients = _closed(knots, free)
        except RootFindingFailure:
            return math.inf
        return evaluator.risk_from_boundary(basis @ coefficients)

    res = minimize(
        loss, x0, method="Powell",
        bounds=[(0.0, None)] * n_free,
        options={
            "maxiter": CALIBRATION_MAX_ITER,
            "xtol": CALIBRATION_XTOL,
            "ftol": CALIBRATION_FTOL,
        },
    )
    if not res.success or not np.isfinite(res.fun):
        raise CalibrationConvergenceFailure(
            "Calibration fit did not converge: {}".format(res.message)
        )

    try:
        coefficients = _closed(knots, res.x)
    except RootFindingFailure as e:
        raise CalibrationConvergenceFailure(
            "Calibration fit cannot be closed: {}".format(e)
        ) from e
    inside = observations.radius <= basis @ coefficients
    return CalibrationFit(knots, coefficients, inside, float(res.fun), int(res.nit))


# =====================================================================
# BINARY STRATEGY
# =====================================================================

def calibrate_binary(observations):
    """
    Calibrate the weights for 0/1 labelled pixels.

    Returns
    -------
    CalibrationResult
        k = 2 / (p_in + p_out) - 1, c = 1, threshold None.
    """
    fit = fit_boundary(observations, RiskParameters(1.0, 1.0, None))
    labels = observations.intensity
    p_in = _rate(labels[fit.inside] == 0)
    p_out = _rate(labels[~fit.inside] == 1)
    if p_in is None or p_out is None:
        raise CalibrationConvergenceFailure(
            "Calibration fit left one class empty; cannot estimate error rates"
        )
    denom = max(p_in + p_out, RATE_FLOOR)
    k_final = 2.0 / denom - 1.0
    log.info("binary calibration: p_in=%.4f p_out=%.4f k=%.4f",
             p_in, p_out, k_final)
    return CalibrationResult(
        CalibrationStrategy.BINARY,
        RiskParameters(k_final, 1.0, None),
        fit,
        diagnostics={"p_in": p_in, "p_out": p_out},
    )


# =====================================================================
# CONTINUOUS STRATEGY
# =====================================================================

def calibration_constants(F_z, Fc_z):
    """
    Risk weights (k, c) from the two CDF values at the chosen threshold.

    Both rates are clipped into [RATE_FLOOR, 1 - RATE_FLOOR], so the result
    is finite for every input in [0, 1].
    """
    F = min(max(F_z, RATE_FLOOR), 1.0 - RATE_FLOOR)
    Fc = min(max(Fc_z, RATE_FLOOR), 1.0 - RATE_FLOOR)
    c_final = math.log(Fc / F)
    # 1 - F * exp(c_final) == 1 - Fc, kept in this form for traceability
    k_final = math.log((1.0 - F) / (1.0 - F * math.exp(c_final)))
    return k_final, c_final


def calibrate_continuous(observations, quantiles=QUANTILE_GRID):
    """
    Calibrate the weights and threshold for continuous intensities.

    Parameters
    ----------
    observations : ObservationSet
        Pixel data.
    quantiles : sequence of float, optional
        Quantile levels to search (default 0.05 .. 0.95).

    Returns
    -------
    CalibrationResult
        Weights from the best-separating threshold; the per-threshold grid
        is kept in diagnostics["grid"].

    Raises
    ------
    CalibrationConvergenceFailure
        If a fit fails, or no threshold leaves both classes non-empty.
    """
    knots = spline.initial_knots()
    basis = spline.design_matrix(observations.theta, knots)
    intensity = observations.intensity

    grid = []
    best = None
    for q in quantiles:
        if not 0.0 < q < 1.0:
            raise ConfigurationError("quantile must lie in (0, 1): {}".format(q))
        z = float(np.quantile(intensity, q))
        fit = fit_boundary(observations, RiskParameters(q / (1.0 - q), 1.0, z),
                           knots, basis)
        below = intensity < z
        F_z = _rate(below[fit.inside])
        Fc_z = _rate(below[~fit.inside])
        entry = {"quantile": q, "threshold": z, "F": F_z, "Fc": Fc_z}
        grid.append(entry)
        if F_z is None or Fc_z is None:
            log.debug("quantile %.2f: one class empty, skipped", q)
            continue
        separation = abs(Fc_z - F_z)
        if best is None or separation > best[0]:
            best = (separation, entry, fit)

    if best is None:
        raise CalibrationConvergenceFailure(
            "No threshold produced a boundary with pixels on both sides"
        )

    _, entry, fit = best
    k_final, c_final = calibration_constants(entry["F"], entry["Fc"])
    log.info("continuous calibration: q=%.2f z=%.4f F=%.4f Fc=%.4f k=%.4f c=%.4f",
             entry["quantile"], entry["threshold"], entry["F"], entry["Fc"],
             k_final, c_final)
    return CalibrationResult(
        CalibrationStrategy.CONTINUOUS,
        RiskParameters(k_final, c_final, entry["threshold"]),
        fit,
        diagnostics={"quantile": entry["quantile"], "F": entry["F"],
                     "Fc": entry["Fc"], "grid": grid},
    )


def _rate(flags):
    """Fraction of True in flags, or None for an empty selection."""
    if flags.size == 0:
        return None
    return float(np.count_nonzero(flags)) / flags.size


# =====================================================================
# ENTRY POINT
# =====================================================================

_STRATEGIES = {
    CalibrationStrategy.BINARY: calibrate_binary,
    CalibrationStrategy.CONTINUOUS: calibrate_continuous,
}


class CalibrationResult:
    """
    Output of the loss calibrator.

    Parameters
    ----------
    strategy : CalibrationStrategy
    params : RiskParameters
        The calibrated, immutable risk weights.
    fit : CalibrationFit
        Boundary fitted at the selected setting.
    diagnostics : dict
        Error rates (and the threshold grid for continuous data).
    """

    def __init__(self, strategy, params, fit, diagnostics=None):
        self.strategy = strategy
        self.params = params
        self.fit = fit
        self.diagnostics = diagnostics or {}

    def to_dict(self):
        return {
            "strategy": self.strategy.value,
            "params": self.params.to_dict(),
            "diagnostics": self.diagnostics,
        }


def calibrate(observations, inside_family, outside_family):
    """
    Calibrate the Gibbs risk for an observation set.

    The family selectors are validated before any fitting starts.

    Raises
    ------
    ConfigurationError
        Invalid or mismatched family selectors, or binary calibration
        requested for non 0/1 intensities.
    CalibrationConvergenceFailure
        The calibration optimizer failed.
    """
    strategy = select_strategy(inside_family, outside_family)
    if strategy is CalibrationStrategy.BINARY and not observations.is_binary:
        raise ConfigurationError(
            "Bernoulli families require 0/1 intensities"
        )
    return _STRATEGIES[strategy](observations)
