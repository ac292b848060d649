"""
Synthetic images with a known boundary, for tests and demos.

An n_obs x n_obs pixel grid covers the unit square. Pixel centers are
converted to polar coordinates about the image center (0.5, 0.5); pixels
with radius <= r_true(theta) are drawn from the inside family, the rest
from the outside family.

BOUNDARY SHAPES:
  circle   r(theta) = r0
  ellipse  r(theta) = a*b / sqrt((b*cos(phi))^2 + (a*sin(phi))^2),
           phi = theta - rotation

INTENSITY FAMILIES:
  bernoulli  {"p": ...}            0/1 labels
  normal     {"mean": ..., "sd": ...}
  poisson    {"lam": ...}

Named scenarios (SCENARIOS) pair a shape with two families; they are the
fixtures used by the test-suite and the demo script.

IMPORTANT: No unicode characters (Windows charmap constraint).
"""

import numpy as np

from boundary.calibration import DensityFamily, select_strategy
from boundary.constants import IMAGE_CENTER
from boundary.errors import ConfigurationError
from boundary.observations import ObservationSet

SHAPES = ("circle", "ellipse")


def circle_radius(theta, r0=0.3):
    return np.full_like(np.asarray(theta, dtype=float), float(r0))


def ellipse_radius(theta, a=0.35, b=0.25, rotation=0.0):
    phi = np.asarray(theta, dtype=float) - rotation
    return a * b / np.sqrt((b * np.cos(phi)) ** 2 + (a * np.sin(phi)) ** 2)


def boundary_function(shape, **params):
    """
    Radial function r(theta) of a named shape.

    Raises
    ------
    ConfigurationError
        For an unsupported shape.
    """
    if shape == "circle":
        return lambda theta: circle_radius(theta, **params)
    if shape == "ellipse":
        return lambda theta: ellipse_radius(theta, **params)
    raise ConfigurationError(
        "Unsupported boundary shape '{}'. Expected one of: {}".format(
            shape, ", ".join(SHAPES))
    )


def _draw(family, params, size, rng):
    if family is DensityFamily.BERNOULLI:
        return (rng.random(size) < params.get("p", 0.5)).astype(float)
    if family is DensityFamily.NORMAL:
        return rng.normal(params.get("mean", 0.0), params.get("sd", 1.0), size)
    return rng.poisson(params.get("lam", 1.0), size).astype(float)


def pixel_grid(n_obs):
    """Pixel-center coordinates (x, y) of an n_obs x n_obs image."""
    if n_obs < 2:
        raise ConfigurationError("n_obs must be at least 2")
    centers = (np.arange(n_obs) + 0.5) / n_obs
    x, y = np.meshgrid(centers, centers)
    return x.ravel(), y.ravel()


def generate_image(n_obs, shape, shape_params, inside, outside, seed=None):
    """
    Draw a synthetic observation set.

    Parameters
    ----------
    n_obs : int
        Pixels per side; the set has n_obs^2 observations.
    shape : str
        'circle' or 'ellipse'.
    shape_params : dict
        Keyword arguments of the shape (r0; or a, b, rotation).
    inside, outside : tuple
        (family, params) of each regime, e.g. ("normal", {"mean": 4, "sd": 1}).
    seed : int, optional

    Returns
    -------
    tuple
        (ObservationSet, r_true) with r_true the true radial function.

    Raises
    ------
    ConfigurationError
        Unknown shape or family, or binary/continuous mismatch.
    """
    r_true = boundary_function(shape, **(shape_params or {}))
    in_family = DensityFamily.parse(inside[0])
    out_family = DensityFamily.parse(outside[0])
    select_strategy(in_family, out_family)

    rng = np.random.default_rng(seed)
    x, y = pixel_grid(int(n_obs))
    obs = ObservationSet.from_cartesian(x, y, np.zeros(len(x)), IMAGE_CENTER)
    is_inside = obs.radius <= r_true(obs.theta)

    intensity = np.empty(len(x))
    intensity[is_inside] = _draw(in_family, inside[1], int(is_inside.sum()), rng)
    intensity[~is_inside] = _draw(out_family, outside[1], int((~is_inside).sum()), rng)
    return ObservationSet(obs.radius, obs.theta, intensity, IMAGE_CENTER), r_true


SCENARIOS = [
    {
        "id": "circle_normal",
        "name": "Circle, Gaussian regimes",
        "shape": "circle",
        "shape_params": {"r0": 0.3},
        "inside": ("normal", {"mean": 4.0, "sd": 1.0}),
        "outside": ("normal", {"mean": 1.0, "sd": 1.0}),
    },
    {
        "id": "ellipse_bernoulli",
        "name": "Ellipse, Bernoulli regimes",
        "shape": "ellipse",
        "shape_params": {"a": 0.35, "b": 0.25, "rotation": 0.0},
        "inside": ("bernoulli", {"p": 0.5}),
        "outside": ("bernoulli", {"p": 0.2}),
    },
    {
        "id": "ellipse_poisson",
        "name": "Rotated ellipse, Poisson regimes",
        "shape": "ellipse",
        "shape_params": {"a": 0.3, "b": 0.2, "rotation": 0.5},
        "inside": ("poisson", {"lam": 6.0}),
        "outside": ("poisson", {"lam": 2.0}),
    },
]


def get_all_scenarios():
    """Return all named scenarios."""
    return [dict(s) for s in SCENARIOS]


def get_scenario_by_id(scenario_id):
    """Return a single scenario by id, or None."""
    for s in SCENARIOS:
        if s["id"] == scenario_id:
            return dict(s)
    return None


def generate_scenario(scenario_id, n_obs=50, seed=None):
    """generate_image() for a named scenario."""
    s = get_scenario_by_id(scenario_id)
    if s is None:
        raise ConfigurationError("Unknown scenario '{}'".format(scenario_id))
    return generate_image(n_obs, s["shape"], s["shape_params"],
                          s["inside"], s["outside"], seed)
