"""
Tests for Flask API endpoints.

Integration tests that validate the REST API returns correct status
codes and JSON structure. Estimation requests use tiny images and sweep
counts so the suite stays fast.
"""

import json
import math

import numpy as np
import pytest

from boundary import spline


def _post(client, url, payload):
    return client.post(url, data=json.dumps(payload),
                       content_type="application/json")


class TestRootAndServices:

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["name"] == "GIBBS-BD"
        assert "version" in data

    def test_list_services(self, client):
        resp = client.get("/api/services")
        assert resp.status_code == 200
        services = resp.get_json()
        ids = [s["id"] for s in services]
        assert "estimation" in ids
        estimation = next(s for s in services if s["id"] == "estimation")
        assert "POST /boundary/estimate" in estimation["endpoints"]

    def test_constants(self, client):
        resp = client.get("/api/constants")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["MU"] == 18.0
        assert data["MIN_KNOTS"] == 9
        assert data["INITIAL_KNOTS"] == 18
        assert len(data["QUANTILE_GRID"]) == 19


class TestEvaluateEndpoint:
    """Test POST /api/boundary/evaluate."""

    def test_constant_circle(self, client):
        knots = spline.initial_knots()
        payload = {
            "knots": knots.tolist(),
            "coefficients": [0.3] * (len(knots) - 4),
            "theta": [0.0, math.pi / 2, math.pi],
        }
        resp = _post(client, "/api/boundary/evaluate", payload)
        assert resp.status_code == 200
        data = resp.get_json()
        assert np.allclose(data["r"], 0.3)
        assert data["x"][0] == pytest.approx(0.8)
        assert data["y"][1] == pytest.approx(0.8)
        assert data["closure_gap"] < 1e-9

    def test_custom_center(self, client):
        knots = spline.initial_knots()
        payload = {
            "knots": knots.tolist(),
            "coefficients": [0.2] * (len(knots) - 4),
            "theta": [0.0],
            "center": [0.0, 0.0],
        }
        data = _post(client, "/api/boundary/evaluate", payload).get_json()
        assert data["x"][0] == pytest.approx(0.2)

    def test_missing_fields(self, client):
        resp = _post(client, "/api/boundary/evaluate", {"knots": [0, 1, 2]})
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_unsorted_knots(self, client):
        knots = spline.initial_knots().tolist()
        knots[6], knots[7] = knots[7], knots[6]
        payload = {"knots": knots, "coefficients": [0.3] * 14, "theta": [1.0]}
        resp = _post(client, "/api/boundary/evaluate", payload)
        assert resp.status_code == 400
        assert "sorted" in resp.get_json()["error"]

    def test_wrong_coefficient_count(self, client):
        payload = {"knots": spline.initial_knots().tolist(),
                   "coefficients": [0.3] * 5, "theta": [1.0]}
        resp = _post(client, "/api/boundary/evaluate", payload)
        assert resp.status_code == 400

    def test_empty_body(self, client):
        resp = client.post("/api/boundary/evaluate")
        assert resp.status_code == 400

    def test_non_object_body(self, client):
        resp = _post(client, "/api/boundary/evaluate", [1.0, 2.0])
        assert resp.status_code == 400


class TestEstimateEndpoint:
    """Test POST /api/boundary/estimate."""

    def test_scenario_run(self, client):
        payload = {"scenario_id": "circle_normal", "n_obs": 15, "data_seed": 2,
                   "n_mcmc": 15, "n_burn": 5, "seed": 1, "num_angles": 12}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["calibration"]["binary"] is False
        assert len(data["simultaneous"]["mean"]) == 12
        assert len(data["pointwise"]["half_width"]) == 12
        assert sum(data["diagnostics"]["proposed"].values()) == 20
        assert "trace" not in data

    def test_verbose_includes_trace(self, client):
        payload = {"scenario_id": "circle_normal", "n_obs": 12, "data_seed": 2,
                   "n_mcmc": 4, "n_burn": 2, "seed": 1, "num_angles": 8,
                   "verbose": True}
        data = _post(client, "/api/boundary/estimate", payload).get_json()
        assert len(data["trace"]) == 6
        assert data["config"]["observations"]["n_pixels"] == 144

    def test_explicit_observations(self, client):
        rng = np.random.default_rng(0)
        records = []
        for _ in range(150):
            r = float(rng.uniform(0, 0.5))
            theta = float(rng.uniform(0, 2 * math.pi))
            mean = 4.0 if r < 0.25 else 1.0
            records.append({"r": r, "theta": theta, "y": float(rng.normal(mean, 1.0))})
        payload = {"observations": records, "inside_family": "normal",
                   "outside_family": "normal", "n_mcmc": 8, "n_burn": 2,
                   "seed": 3, "num_angles": 8}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 200
        assert len(resp.get_json()["simultaneous"]["theta"]) == 8

    def test_mismatched_families(self, client):
        payload = {"observations": [{"r": 0.1, "theta": 0.5, "y": 1}],
                   "inside_family": "bernoulli", "outside_family": "normal"}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 400
        assert "binary" in resp.get_json()["error"]

    def test_unknown_family(self, client):
        payload = {"observations": [{"r": 0.1, "theta": 0.5, "y": 1}],
                   "inside_family": "gamma", "outside_family": "normal"}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 400

    def test_missing_families(self, client):
        payload = {"observations": [{"r": 0.1, "theta": 0.5, "y": 1}]}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 400

    def test_unknown_scenario(self, client):
        resp = _post(client, "/api/boundary/estimate", {"scenario_id": "nope"})
        assert resp.status_code == 400

    def test_non_object_body(self, client):
        resp = _post(client, "/api/boundary/estimate", [{"scenario_id": "circle_normal"}])
        assert resp.status_code == 400
        assert "JSON object" in resp.get_json()["error"]

    @pytest.mark.parametrize("key,value", [
        ("seed", 1.5),
        ("seed", -3),
        ("seed", "7"),
        ("seed", True),
        ("data_seed", -1),
        ("data_seed", 2.25),
    ])
    def test_bad_seed(self, client, key, value):
        payload = {"scenario_id": "circle_normal", "n_obs": 10,
                   "n_mcmc": 2, "n_burn": 0, key: value}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 400
        assert key in resp.get_json()["error"]

    def test_sweep_cap(self, client):
        payload = {"scenario_id": "circle_normal", "n_mcmc": 50000}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 400

    def test_bad_observation_record(self, client):
        payload = {"observations": [{"r": 0.1}], "inside_family": "normal",
                   "outside_family": "normal"}
        resp = _post(client, "/api/boundary/estimate", payload)
        assert resp.status_code == 400

    def test_empty_body(self, client):
        resp = client.post("/api/boundary/estimate")
        assert resp.status_code == 400


class TestScenariosEndpoint:

    def test_list(self, client):
        resp = client.get("/api/boundary/scenarios")
        assert resp.status_code == 200
        ids = {s["id"] for s in resp.get_json()}
        assert {"circle_normal", "ellipse_bernoulli", "ellipse_poisson"} <= ids


class TestServiceRegistry:

    def test_duplicate_id_rejected(self):
        from boundary.services import ServiceRegistry
        from boundary.services.estimation import EstimationService
        registry = ServiceRegistry()
        registry.register(EstimationService())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(EstimationService())
        assert len(registry) == 1

    def test_service_must_mount_routes(self):
        from boundary.services import BoundaryService

        class NoRoutes(BoundaryService):
            id = "no_routes"

            def validate(self, payload):
                return payload

            def compute(self, config, verbose=False):
                return {}

        with pytest.raises(TypeError):
            NoRoutes()
