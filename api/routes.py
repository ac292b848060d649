"""
Flask API routes for GIBBS-BD.

Shared endpoints:
  GET  /api/services   - list registered services
  GET  /api/constants  - sampler and calibration defaults

Service-owned endpoints are mounted by each registered service through
register_routes() (see boundary/services/estimation for /api/boundary/*).
"""

from flask import Blueprint, jsonify

from boundary import constants


def create_api_blueprint(registry):
    """
    Build the API blueprint and mount every registered service's routes.

    Parameters
    ----------
    registry : ServiceRegistry
        Populated service registry.

    Returns
    -------
    flask.Blueprint
    """
    api = Blueprint("api", __name__, url_prefix="/api")

    @api.route("/services", methods=["GET"])
    def list_services():
        """Return metadata for every registered service."""
        return jsonify(registry.list_all())

    @api.route("/constants", methods=["GET"])
    def get_constants():
        """Return the defaults used by the sampler and calibrator."""
        return jsonify({
            "MU": constants.DEFAULT_MU,
            "MIN_KNOTS": constants.MIN_KNOTS,
            "MAX_KNOTS": constants.DEFAULT_MAX_KNOTS,
            "INITIAL_KNOTS": constants.INITIAL_INTERIOR_KNOTS + 2 * constants.N_PAD,
            "COEF_PROPOSAL_SD": constants.COEF_PROPOSAL_SD,
            "COEF_PRIOR_RATE": constants.COEF_PRIOR_RATE,
            "CLOSURE_BRACKET": constants.CLOSURE_BRACKET,
            "CLOSURE_TOL": constants.CLOSURE_TOL,
            "QUANTILE_GRID": list(constants.QUANTILE_GRID),
            "BAND_LEVEL": constants.BAND_LEVEL,
        })

    for service in registry:
        service.register_routes(api)

    return api
