"""
Observation set: the fixed pixel data of one run.

Each pixel is a triple (radius, angle, intensity) in polar coordinates
about the image center. The arrays are made read-only on construction so
the set can be shared by the calibrator, the sampler and any number of
independent chains without copying.

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import math

import numpy as np

from boundary.constants import TWO_PI, IMAGE_CENTER


def _frozen(values):
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


class ObservationSet:
    """
    Immutable collection of N pixel observations.

    Parameters
    ----------
    radius : array_like
        Distance of each pixel from the image center (>= 0).
    theta : array_like
        Polar angle of each pixel in [0, 2*pi).
    intensity : array_like
        Observed intensity (0/1 labels for binary images).
    center : tuple of float, optional
        Image center used for Cartesian projections.
    """

    def __init__(self, radius, theta, intensity, center=IMAGE_CENTER):
        self.radius = _frozen(radius)
        self.theta = _frozen(theta)
        self.intensity = _frozen(intensity)
        self.center = (float(center[0]), float(center[1]))

        n = len(self.radius)
        if n == 0:
            raise ValueError("observation set is empty")
        if len(self.theta) != n or len(self.intensity) != n:
            raise ValueError("radius, theta and intensity must have equal length")
        if not np.all(np.isfinite(self.radius)) or np.any(self.radius < 0):
            raise ValueError("radii must be finite and non-negative")
        if np.any(self.theta < 0) or np.any(self.theta >= TWO_PI):
            raise ValueError("angles must lie in [0, 2*pi)")
        if not np.all(np.isfinite(self.intensity)):
            raise ValueError("intensities must be finite")

    def __len__(self):
        return len(self.radius)

    @property
    def is_binary(self):
        """True when every intensity is 0 or 1."""
        return bool(np.all((self.intensity == 0) | (self.intensity == 1)))

    @classmethod
    def from_records(cls, records, center=IMAGE_CENTER):
        """
        Build from a list of dicts with keys 'r', 'theta' and 'y'.

        Angles are wrapped into [0, 2*pi). This is the API payload form.
        """
        if not records:
            raise ValueError("observations are required")
        try:
            radius = [float(o["r"]) for o in records]
            theta = [float(o["theta"]) % TWO_PI for o in records]
            intensity = [float(o["y"]) for o in records]
        except (KeyError, TypeError) as e:
            raise ValueError("each observation needs numeric r, theta, y") from e
        return cls(radius, theta, intensity, center)

    @classmethod
    def from_cartesian(cls, x, y, intensity, center=IMAGE_CENTER):
        """Build from pixel-center coordinates relative to the image origin."""
        dx = np.asarray(x, dtype=float) - center[0]
        dy = np.asarray(y, dtype=float) - center[1]
        theta = np.mod(np.arctan2(dy, dx), TWO_PI)
        # arctan2 can round up to exactly 2*pi for tiny negative dy
        theta[theta >= TWO_PI] = 0.0
        return cls(np.hypot(dx, dy), theta, intensity, center)

    def to_records(self):
        """Inverse of from_records()."""
        return [
            {"r": float(r), "theta": float(t), "y": float(y)}
            for r, t, y in zip(self.radius, self.theta, self.intensity)
        ]

    def summary(self):
        """Small description for logs and API responses."""
        return {
            "n_pixels": len(self),
            "binary": self.is_binary,
            "r_max": round(float(self.radius.max()), 6),
            "intensity_mean": round(float(self.intensity.mean()), 6),
            "side": int(round(math.sqrt(len(self)))),
        }
