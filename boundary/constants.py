"""
Sampler and calibration defaults for Gibbs posterior boundary detection.

Every tunable number used by the spline layer, the loss calibrator, the
RJ-MCMC sampler and the posterior summarizer lives here, so that a run is
fully described by this module plus a BoundaryConfig.

IMPORTANT: No unicode characters allowed in this file (Windows charmap constraint).
"""

import math

TWO_PI = 2.0 * math.pi

# Cubic B-spline order (degree 3 -> 4 basis functions per knot span)
SPLINE_DEGREE = 3

# Number of replicated padding knots at each end of the knot sequence
N_PAD = SPLINE_DEGREE + 1  # 4

# Padding knots sit this far outside [0, 2*pi]
KNOT_PAD = 0.5

# Smallest valid knot sequence: 4 + 1 interior + 4
MIN_KNOTS = 2 * N_PAD + 1  # 9

# Upper bound on the knot count (explicit, replaces a preallocated trace size)
DEFAULT_MAX_KNOTS = 60

# Starting layout: 4 + 10 interior + 4 = 18 knots
INITIAL_INTERIOR_KNOTS = 10

# Initial interior coefficients ~ U[0.1, 0.4]
INITIAL_COEF_LOW = 0.1
INITIAL_COEF_HIGH = 0.4

# Closure (periodicity) root finder: r(0) = r(2*pi)
CLOSURE_BRACKET = 1.0e8
CLOSURE_TOL = 0.01
CLOSURE_MAX_ITER = 100

# Prior mean of the Poisson prior on the knot count J
DEFAULT_MU = 18.0

# Random-walk proposal scales
COEF_PROPOSAL_SD = 0.1
# Knot proposals use sd = KNOT_PROPOSAL_SCALE / J
KNOT_PROPOSAL_SCALE = 1.0

# Proposed knots are kept this far from 0 and 2*pi
KNOT_EDGE_OFFSET = 1.0e-3

# Exponential(rate) prior on the freely sampled interior coefficients
COEF_PRIOR_RATE = 10.0

# Loss calibration
QUANTILE_GRID = tuple(round(0.05 * i, 2) for i in range(1, 20))  # 0.05 .. 0.95
CALIBRATION_MAX_ITER = 200
CALIBRATION_XTOL = 1.0e-3
CALIBRATION_FTOL = 1.0e-3
# Error rates are clipped into [RATE_FLOOR, 1 - RATE_FLOOR]
RATE_FLOOR = 1.0e-6

# Sweep counts
DEFAULT_N_MCMC = 4000
DEFAULT_N_BURN = 1000

# Credible bands
BAND_LEVEL = 0.95
DEFAULT_NUM_ANGLES = 200

# Image geometry: unit square, boundary centered at (0.5, 0.5)
IMAGE_CENTER = (0.5, 0.5)
