"""
Boundary estimation service.

Endpoints:
    POST /api/boundary/estimate  - calibrate, sample and summarize
    POST /api/boundary/evaluate  - r(theta) for given knots/coefficients
    GET  /api/boundary/scenarios - named synthetic scenarios

An estimate request carries either explicit observations or a synthetic
scenario to generate them from:

    {"observations": [{"r", "theta", "y"}, ...],
     "inside_family": "normal", "outside_family": "normal", ...}

    {"scenario_id": "circle_normal", "n_obs": 50, ...}

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging

import numpy as np
from flask import jsonify, request

from boundary import spline
from boundary.constants import (
    DEFAULT_MU,
    DEFAULT_MAX_KNOTS,
    DEFAULT_NUM_ANGLES,
    BAND_LEVEL,
)
from boundary.engine import BoundaryConfig, BoundaryEngine
from boundary.errors import CalibrationConvergenceFailure, RootFindingFailure
from boundary.observations import ObservationSet
from boundary.services import BoundaryService
from data.synthetic import generate_scenario, get_all_scenarios, get_scenario_by_id

log = logging.getLogger(__name__)

# Request caps (the service is synchronous)
MAX_SWEEPS = 20000
MAX_N_OBS = 200
MAX_EVAL_ANGLES = 2000


def _seed(config, key):
    """Optional non-negative integer seed from a payload."""
    value = config.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("{} must be a non-negative integer".format(key))
    return value


class EstimationService(BoundaryService):
    """
    Runs the full Gibbs posterior pipeline on one image.
    """

    id = "estimation"
    name = "Boundary Estimation"
    description = "RJ-MCMC Gibbs posterior boundary with credible bands"
    endpoints = (
        "POST /boundary/estimate",
        "POST /boundary/evaluate",
        "GET /boundary/scenarios",
    )

    def validate(self, config):
        """Validate an estimate payload into a BoundaryConfig."""
        if not config:
            raise ValueError("Request body must be JSON")
        if not isinstance(config, dict):
            raise ValueError("Request body must be a JSON object")

        scenario_id = config.get("scenario_id")
        if scenario_id:
            scenario = get_scenario_by_id(scenario_id)
            if scenario is None:
                raise ValueError("Unknown scenario: %s" % scenario_id)
            n_obs = max(2, min(int(config.get("n_obs", 50)), MAX_N_OBS))
            observations, _ = generate_scenario(
                scenario_id, n_obs, _seed(config, "data_seed"))
            inside_family = scenario["inside"][0]
            outside_family = scenario["outside"][0]
        else:
            observations = ObservationSet.from_records(config.get("observations"))
            inside_family = config.get("inside_family")
            outside_family = config.get("outside_family")
            if not inside_family or not outside_family:
                raise ValueError("inside_family and outside_family are required")

        n_mcmc = int(config.get("n_mcmc", 1000))
        n_burn = int(config.get("n_burn", 200))
        if n_mcmc + n_burn > MAX_SWEEPS:
            raise ValueError("At most %d sweeps per request" % MAX_SWEEPS)

        return BoundaryConfig(
            observations,
            inside_family,
            outside_family,
            mu=float(config.get("mu", DEFAULT_MU)),
            n_mcmc=n_mcmc,
            n_burn=n_burn,
            seed=_seed(config, "seed"),
            max_knots=int(config.get("max_knots", DEFAULT_MAX_KNOTS)),
            num_angles=int(config.get("num_angles", DEFAULT_NUM_ANGLES)),
            level=float(config.get("level", BAND_LEVEL)),
        )

    def compute(self, config, verbose=False):
        """Run the pipeline and serialize the result."""
        result = BoundaryEngine(config).run()
        if verbose:
            return result.to_verbose_response()
        return result.to_api_response()

    def register_routes(self, bp):
        """Mount boundary API endpoints."""
        service = self

        @bp.route("/boundary/estimate", methods=["POST"])
        def boundary_estimate():
            """Estimate the boundary and its credible bands.

            Input JSON: see module docstring. Optional: mu, n_mcmc, n_burn,
            seed, max_knots, num_angles, level, verbose.
            """
            data = request.get_json(silent=True)
            try:
                config = service.validate(data)
            except (ValueError, TypeError) as e:
                return jsonify({"error": str(e)}), 400

            try:
                result = service.compute(config, bool(data.get("verbose")))
            except (CalibrationConvergenceFailure, RootFindingFailure) as e:
                log.warning("estimation failed: %s", e)
                return jsonify({"error": str(e)}), 422
            return jsonify(result)

        @bp.route("/boundary/evaluate", methods=["POST"])
        def boundary_evaluate():
            """Evaluate r(theta) and its Cartesian projection.

            Input JSON:
                knots: [...], coefficients: [...], theta: [...]
                center: [x, y] (optional)
            """
            data = request.get_json(silent=True)
            if not data or not isinstance(data, dict):
                return jsonify({"error": "Request body must be a JSON object"}), 400
            try:
                knots = np.asarray(data["knots"], dtype=float)
                coefficients = np.asarray(data["coefficients"], dtype=float)
                theta = np.asarray(data["theta"], dtype=float)
                cx, cy = data.get("center", (0.5, 0.5))
            except (KeyError, TypeError, ValueError):
                return jsonify({
                    "error": "knots, coefficients and theta are required"
                }), 400
            if theta.size > MAX_EVAL_ANGLES:
                return jsonify({
                    "error": "At most %d angles per request" % MAX_EVAL_ANGLES
                }), 400
            try:
                r = np.atleast_1d(spline.evaluate(theta, knots, coefficients))
                gap = spline.closure_gap(knots, coefficients)
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
            theta = np.atleast_1d(theta)
            return jsonify({
                "theta": [float(t) for t in theta],
                "r": [float(v) for v in r],
                "x": [float(v) for v in cx + r * np.cos(theta)],
                "y": [float(v) for v in cy + r * np.sin(theta)],
                "closure_gap": gap,
            })

        @bp.route("/boundary/scenarios", methods=["GET"])
        def boundary_scenarios():
            """List the named synthetic scenarios."""
            return jsonify(get_all_scenarios())
