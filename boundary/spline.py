"""
Closed radial boundary curves as cubic B-splines.

A boundary is the radial function r(theta) on [0, 2*pi], written as a
cubic B-spline with knot sequence t (length J) and coefficients c
(length J - 4):

    r(theta) = sum_m c_m * B_m(theta; t)

The knot sequence carries 4 replicated padding knots at each end, placed
just outside [0, 2*pi], and J - 8 interior knots strictly inside (0, 2*pi).
The curve is closed when r(0) = r(2*pi). Only c_0 is used to enforce that:
after any change to the other coefficients or to the knots, c_0 is
re-derived by one-dimensional root finding (resolve_closure).

Functions:
    evaluate        - r(theta), vectorized over theta
    design_matrix   - sparse basis matrix B with r = B @ c
    resolve_closure - c_0 satisfying r(0) = r(2*pi)
    close_curve     - copy of c with c_0 replaced by the closure root
    initial_knots   - fixed starting layout
    validate_knots  - knot sequence invariant check

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import numpy as np
from scipy.interpolate import BSpline
from scipy.optimize import brentq

from boundary.constants import (
    TWO_PI,
    SPLINE_DEGREE,
    N_PAD,
    KNOT_PAD,
    MIN_KNOTS,
    INITIAL_INTERIOR_KNOTS,
    CLOSURE_BRACKET,
    CLOSURE_TOL,
    CLOSURE_MAX_ITER,
)
from boundary.errors import RootFindingFailure

_ENDPOINTS = np.array([0.0, TWO_PI])


def _check(knots, coefficients=None):
    knots = np.asarray(knots, dtype=float)
    if knots.ndim != 1 or len(knots) < 2 * N_PAD:
        raise ValueError("knot sequence too short: {}".format(len(knots)))
    if np.any(np.diff(knots) < 0):
        raise ValueError("knots must be sorted in non-decreasing order")
    if coefficients is None:
        return knots, None
    coefficients = np.asarray(coefficients, dtype=float)
    if len(coefficients) != len(knots) - N_PAD:
        raise ValueError(
            "expected {} coefficients for {} knots, got {}".format(
                len(knots) - N_PAD, len(knots), len(coefficients))
        )
    return knots, coefficients


def _check_domain(theta, knots):
    lo, hi = knots[SPLINE_DEGREE], knots[-SPLINE_DEGREE - 1]
    if np.any(theta < lo) or np.any(theta > hi):
        raise ValueError(
            "theta outside the spline domain [{:.4f}, {:.4f}]".format(lo, hi)
        )


def evaluate(theta, knots, coefficients):
    """
    Evaluate the boundary radius r(theta).

    Parameters
    ----------
    theta : float or array_like
        Angle(s) in radians. Must lie inside the padded spline domain.
    knots : array_like
        Sorted knot sequence of length J.
    coefficients : array_like
        B-spline coefficients of length J - 4.

    Returns
    -------
    float or numpy.ndarray
        Radius at each angle (same shape as theta).

    Raises
    ------
    ValueError
        If the knots are unsorted, the lengths disagree, or theta lies
        outside the domain covered by the knots.
    """
    knots, coefficients = _check(knots, coefficients)
    scalar = np.ndim(theta) == 0
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    _check_domain(theta, knots)
    r = BSpline(knots, coefficients, SPLINE_DEGREE, extrapolate=False)(theta)
    return float(r[0]) if scalar else r


def design_matrix(theta, knots):
    """
    Sparse B-spline basis matrix at the given angles.

    Row i holds B_m(theta_i) for every basis function m, so that the
    boundary radii are design_matrix(theta, t) @ c. Rows have at most 4
    non-zeros.

    Returns
    -------
    scipy.sparse.csr_array
        Shape (len(theta), len(knots) - 4).
    """
    knots, _ = _check(knots)
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    _check_domain(theta, knots)
    return BSpline.design_matrix(theta, knots, SPLINE_DEGREE)


def resolve_closure(knots, coefficients):
    """
    Solve for the first coefficient that closes the curve.

    Finds c_0 such that r(0) = r(2*pi), holding c_1 .. c_{J-5} fixed. The
    value passed in coefficients[0] is ignored.

    Parameters
    ----------
    knots : array_like
        Sorted knot sequence of length J.
    coefficients : array_like
        Coefficient vector of length J - 4.

    Returns
    -------
    float
        The closing value of c_0.

    Raises
    ------
    RootFindingFailure
        If r(0) - r(2*pi) has no sign change on [-1e8, 1e8], or the solver
        exceeds its iteration cap.
    """
    knots, coefficients = _check(knots, coefficients)
    rows = design_matrix(_ENDPOINTS, knots).toarray()
    gap = rows[0] - rows[1]
    rest = float(np.dot(gap[1:], coefficients[1:]))

    def mismatch(c0):
        return gap[0] * c0 + rest

    try:
        return brentq(mismatch, -CLOSURE_BRACKET, CLOSURE_BRACKET,
                      xtol=CLOSURE_TOL, maxiter=CLOSURE_MAX_ITER)
    except (ValueError, RuntimeError) as e:
        raise RootFindingFailure(
            "closure has no root in [-{0:g}, {0:g}]: {1}".format(
                CLOSURE_BRACKET, e)
        ) from e


def close_curve(knots, coefficients):
    """Return a copy of coefficients with c_0 set by resolve_closure()."""
    closed = np.array(coefficients, dtype=float)
    closed[0] = resolve_closure(knots, closed)
    return closed


def closure_gap(knots, coefficients):
    """|r(0) - r(2*pi)| for a knot/coefficient pair."""
    r = evaluate(_ENDPOINTS, knots, coefficients)
    return float(abs(r[0] - r[1]))


def padded_knots(interior):
    """Wrap sorted interior knots with the replicated end padding."""
    interior = np.asarray(interior, dtype=float)
    return np.concatenate([
        np.full(N_PAD, -KNOT_PAD),
        interior,
        np.full(N_PAD, TWO_PI + KNOT_PAD),
    ])


def initial_knots(n_interior=INITIAL_INTERIOR_KNOTS):
    """
    Fixed starting knot layout.

    n_interior equally spaced knots strictly inside (0, 2*pi), padded to
    a sequence of length n_interior + 8 (18 for the default).
    """
    if n_interior < 1:
        raise ValueError("at least one interior knot is required")
    step = TWO_PI / (n_interior + 1)
    return padded_knots(step * np.arange(1, n_interior + 1))


def interior(knots):
    """The interior knots (padding stripped)."""
    return np.asarray(knots, dtype=float)[N_PAD:-N_PAD]


def validate_knots(knots):
    """
    Check the knot sequence invariants.

    Sorted, at least MIN_KNOTS long, padding outside [0, 2*pi], interior
    knots pairwise distinct and strictly inside (0, 2*pi).

    Raises
    ------
    ValueError
        On the first violated invariant.
    """
    knots = np.asarray(knots, dtype=float)
    if len(knots) < MIN_KNOTS:
        raise ValueError("need at least {} knots, got {}".format(
            MIN_KNOTS, len(knots)))
    if np.any(np.diff(knots) < 0):
        raise ValueError("knots must be sorted")
    if np.any(knots[:N_PAD] >= 0.0) or np.any(knots[-N_PAD:] <= TWO_PI):
        raise ValueError("padding knots must lie outside [0, 2*pi]")
    inner = interior(knots)
    if np.any(inner <= 0.0) or np.any(inner >= TWO_PI):
        raise ValueError("interior knots must lie strictly inside (0, 2*pi)")
    if np.any(np.diff(inner) <= 0):
        raise ValueError("interior knots must be pairwise distinct")
