"""
Run one synthetic scenario end to end and plot the posterior boundary.

Left panel: the image with the true boundary, the posterior mean curve and
the simultaneous 95% band (Cartesian projection). Right panel: radius vs
angle with the pointwise and simultaneous bands.

Run from repo root with PYTHONPATH=. (e.g. python scripts/plot_credible_bands.py
--scenario circle_normal --n-obs 100 --sweeps 2000 --burn 500).
No unicode (Windows charmap).
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from boundary.engine import BoundaryConfig, BoundaryEngine
from data.synthetic import generate_scenario, get_scenario_by_id


def plot_result(result, r_true, n_obs, title, out_path):
    obs = result.config.observations
    simultaneous = result.simultaneous
    pointwise = result.pointwise
    theta = simultaneous.theta
    cx, cy = obs.center

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 5.5))

    image = obs.intensity.reshape(n_obs, n_obs)
    ax1.imshow(image, origin='lower', extent=(0, 1, 0, 1), cmap='gray')
    xy = simultaneous.cartesian(obs.center)
    closed = np.append(theta, theta[0])
    truth = r_true(closed)
    ax1.plot(cx + truth * np.cos(closed), cy + truth * np.sin(closed),
             'g--', lw=1.5, label='true boundary')
    for name, style in (("mean", 'r-'), ("lower", 'c:'), ("upper", 'c:')):
        x, y = xy[name]
        ax1.plot(np.append(x, x[0]), np.append(y, y[0]), style, lw=1.2,
                 label=None if name == "upper" else name)
    ax1.set_xlim(0, 1)
    ax1.set_ylim(0, 1)
    ax1.set_aspect('equal')
    ax1.set_title(title)
    ax1.legend(loc='upper right', fontsize=8)

    ax2.fill_between(theta, simultaneous.lower, simultaneous.upper,
                     color='c', alpha=0.25,
                     label='simultaneous (L0=%.2f)' % simultaneous.half_width)
    ax2.fill_between(theta, pointwise.lower, pointwise.upper,
                     color='b', alpha=0.3, label='pointwise')
    ax2.plot(theta, simultaneous.mean, 'r-', lw=1.2, label='posterior mean')
    ax2.plot(theta, r_true(theta), 'g--', lw=1.2, label='truth')
    ax2.set_xlabel('theta (rad)')
    ax2.set_ylabel('r(theta)')
    ax2.legend(fontsize=8)
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(out_path, dpi=150, bbox_inches='tight')
    plt.close()


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument('--scenario', default='circle_normal')
    parser.add_argument('--n-obs', type=int, default=100)
    parser.add_argument('--sweeps', type=int, default=2000)
    parser.add_argument('--burn', type=int, default=500)
    parser.add_argument('--seed', type=int, default=1)
    parser.add_argument('--out', default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    scenario = get_scenario_by_id(args.scenario)
    if scenario is None:
        parser.error("unknown scenario: %s" % args.scenario)
    observations, r_true = generate_scenario(args.scenario, args.n_obs, args.seed)
    config = BoundaryConfig(observations, scenario["inside"][0],
                            scenario["outside"][0], n_mcmc=args.sweeps,
                            n_burn=args.burn, seed=args.seed)
    result = BoundaryEngine(config).run()

    d = result.run.diagnostics
    print("calibration:", result.calibration.params.to_dict())
    print("accepted births=%d deaths=%d relocations=%d" % (
        d.births, d.deaths, d.relocations))
    print("simultaneous L0 = %.3f" % result.simultaneous.half_width)

    out_path = args.out or os.path.join(
        os.path.dirname(__file__), '..', 'bands_%s.png' % args.scenario)
    plot_result(result, r_true, args.n_obs, scenario["name"], out_path)
    print("saved", os.path.abspath(out_path))


if __name__ == '__main__':
    main()
