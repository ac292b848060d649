"""
Posterior summaries of a boundary trace: mean curve and credible bands.

For post-burn-in samples r_s(theta), s = 1..S:

    mean(theta) = (1/S) sum_s r_s(theta)
    sd(theta)   = sample standard deviation (ddof = 1)
    D_s(theta)  = |r_s(theta) - mean(theta)| / sd(theta)

Pointwise band at one angle: L0 = 95% quantile of D_s(theta) over s.
Simultaneous band on a grid: L0 = 95% quantile over s of max_theta
D_s(theta), shared by every angle. The band is mean -/+ L0 * sd.

The simultaneous L0 is never smaller than the pointwise L0 at any grid
angle, because each per-sample maximum dominates the per-angle deviation.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

from collections import Counter

import numpy as np

from boundary.constants import BAND_LEVEL, IMAGE_CENTER, TWO_PI


def _post_burn(trace, burn_in):
    if burn_in < 0:
        raise ValueError("burn_in must be non-negative")
    states = list(trace)[burn_in:]
    if not states:
        raise ValueError("no samples left after burn-in")
    return states


def posterior_radii(trace, theta, burn_in=0):
    """
    Radius of every post-burn-in sample at every angle.

    Returns
    -------
    numpy.ndarray
        Shape (n_samples, n_angles).
    """
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    states = _post_burn(trace, burn_in)
    return np.vstack([s.radius(theta) for s in states])


def _studentized(radii):
    mean = radii.mean(axis=0)
    if radii.shape[0] > 1:
        sd = radii.std(axis=0, ddof=1)
    else:
        sd = np.zeros_like(mean)
    dev = np.abs(radii - mean)
    # a constant angle contributes zero deviation
    scaled = np.divide(dev, sd, out=np.zeros_like(dev), where=sd > 0)
    return mean, sd, scaled


class CredibleBand:
    """
    Credible band of the boundary over a set of angles.

    Parameters
    ----------
    theta : numpy.ndarray
        Angles (radians).
    mean, lower, upper : numpy.ndarray
        Posterior mean radius and band limits at each angle.
    sd : numpy.ndarray
        Posterior standard deviation at each angle.
    half_width : float or numpy.ndarray
        Multiplier L0 (one shared value for a simultaneous band, one per
        angle for pointwise bands).
    kind : str
        'pointwise' or 'simultaneous'.
    level : float
        Credible level, 0.95 by default.
    """

    def __init__(self, theta, mean, sd, half_width, kind, level=BAND_LEVEL):
        self.theta = theta
        self.mean = mean
        self.sd = sd
        self.half_width = half_width
        self.lower = mean - half_width * sd
        self.upper = mean + half_width * sd
        self.kind = kind
        self.level = level

    def cartesian(self, center=IMAGE_CENTER):
        """
        Project mean, lower and upper curves to image coordinates.

        Returns
        -------
        dict
            Keys 'mean', 'lower', 'upper', each a (x, y) pair of arrays.
        """
        cx, cy = center
        cos_t = np.cos(self.theta)
        sin_t = np.sin(self.theta)
        out = {}
        for name, r in (("mean", self.mean), ("lower", self.lower),
                        ("upper", self.upper)):
            out[name] = (cx + r * cos_t, cy + r * sin_t)
        return out

    def to_dict(self, center=IMAGE_CENTER):
        xy = self.cartesian(center)
        hw = self.half_width
        return {
            "kind": self.kind,
            "level": self.level,
            "half_width": float(hw) if np.ndim(hw) == 0 else [float(v) for v in hw],
            "theta": [round(float(t), 6) for t in self.theta],
            "mean": [round(float(v), 6) for v in self.mean],
            "lower": [round(float(v), 6) for v in self.lower],
            "upper": [round(float(v), 6) for v in self.upper],
            "cartesian": {
                name: {"x": [round(float(v), 6) for v in x],
                       "y": [round(float(v), 6) for v in y]}
                for name, (x, y) in xy.items()
            },
        }


def pointwise_band(trace, theta, burn_in=0, level=BAND_LEVEL):
    """
    Pointwise credible band at a single angle.

    Parameters
    ----------
    trace : sequence of ChainState
        Full trace (burn-in included).
    theta : float
        Angle in radians.
    burn_in : int, optional
        Leading states to discard.
    level : float, optional
        Credible level (default 0.95).

    Returns
    -------
    CredibleBand
        One-angle band with its own half-width L0.
    """
    radii = posterior_radii(trace, [float(theta)], burn_in)
    mean, sd, scaled = _studentized(radii)
    L0 = float(np.quantile(scaled[:, 0], level))
    return CredibleBand(np.array([float(theta)]), mean, sd, L0,
                        "pointwise", level)


def pointwise_bands(trace, thetas, burn_in=0, level=BAND_LEVEL):
    """Pointwise band at every angle of a grid (one L0 per angle)."""
    thetas = np.asarray(thetas, dtype=float)
    radii = posterior_radii(trace, thetas, burn_in)
    mean, sd, scaled = _studentized(radii)
    L0 = np.quantile(scaled, level, axis=0)
    return CredibleBand(thetas, mean, sd, L0, "pointwise", level)


def simultaneous_band(trace, thetas, burn_in=0, level=BAND_LEVEL):
    """
    Simultaneous (uniform) credible band over a grid of angles.

    L0 is the level quantile of the per-sample sup-norm statistic
    max_theta |r_s(theta) - mean(theta)| / sd(theta), applied to every
    angle.

    Returns
    -------
    CredibleBand
    """
    thetas = np.asarray(thetas, dtype=float)
    radii = posterior_radii(trace, thetas, burn_in)
    mean, sd, scaled = _studentized(radii)
    L0 = float(np.quantile(scaled.max(axis=1), level))
    return CredibleBand(thetas, mean, sd, L0, "simultaneous", level)


def angle_grid(num_angles):
    """num_angles equally spaced angles on [0, 2*pi)."""
    if num_angles < 1:
        raise ValueError("num_angles must be positive")
    return np.linspace(0.0, TWO_PI, int(num_angles), endpoint=False)


def posterior_knot_summary(trace, burn_in=0):
    """Posterior mean knot count and knot-count histogram."""
    counts = np.array([s.J for s in _post_burn(trace, burn_in)], dtype=int)
    hist = Counter(int(j) for j in counts)
    return {
        "mean_J": round(float(counts.mean()), 4),
        "histogram": {str(j): hist[j] for j in sorted(hist)},
    }
