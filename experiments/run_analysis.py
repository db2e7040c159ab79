# POLYWALK/experiments/run_analysis.py

import os
import sys
import argparse
import logging
import time
import numpy as np
import pandas as pd
import torch
import arviz as az

from typing import Any, Dict

# --- Project Root Setup ---
# Add project root to path to allow running from a checkout without installing.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from polywalk import (
    ColumnSink,
    ConvergenceFailure,
    ExponentialDistribution,
    GaussianDistribution,
    LogConcaveDistribution,
    RandomSource,
    SphericalGaussianDistribution,
    UniformDistribution,
    WALK_CLASSES,
    effective_sample_size,
    generate_cube,
    sample_points,
)

# --- Main Configuration ---
# (walk, distribution) pairs of the demo sweep.
DEMO_PAIRS = [
    ('AcceleratedBilliard', 'uniform'),
    ('Ball', 'uniform'),
    ('CDHR', 'uniform'),
    ('RDHR', 'uniform'),
    ('Dikin', 'uniform'),
    ('John', 'uniform'),
    ('Vaidya', 'uniform'),
    ('Billiard', 'uniform'),
    ('Ball', 'spherical_gaussian'),
    ('CDHR', 'spherical_gaussian'),
    ('RDHR', 'spherical_gaussian'),
    ('GaussianHMCExact', 'spherical_gaussian'),
    ('GaussianAcceleratedBilliard', 'gaussian'),
    ('ExponentialHMCExact', 'exponential'),
    ('HMC', 'logconcave'),
    ('NUTS', 'logconcave'),
    ('NUTS', 'exponential'),
]


def build_distribution(kind: str, dim: int, rng: RandomSource, x0: torch.Tensor):
    """Target distributions used by the sweep, matched to a cube of the given dimension."""
    if kind == 'uniform':
        return UniformDistribution()
    if kind == 'spherical_gaussian':
        return SphericalGaussianDistribution()
    if kind == 'gaussian':
        # a correlated 2x2 block, identity elsewhere
        cov = torch.eye(dim, dtype=torch.float64)
        cov[:2, :2] = torch.tensor([[0.25, 0.75], [0.75, 3.25]], dtype=torch.float64)
        return GaussianDistribution(cov)
    if kind == 'exponential':
        return ExponentialDistribution(rng.random_direction(dim), variance=1.0)
    if kind == 'logconcave':
        return LogConcaveDistribution(
            value_fn=lambda x: 0.5 * torch.sum((x - x0) ** 2),
            grad_fn=lambda x: x - x0,
            L=1.0, m=1.0,
        )
    raise ValueError(f"unknown distribution '{kind}'")


# --- Metric Calculation ---
def calculate_metrics(samples: np.ndarray) -> Dict[str, float]:
    """ESS from polywalk and from arviz for a (dim, n) batch."""
    metrics = {}
    ess = effective_sample_size(samples)
    metrics['ess'] = ess.minimum
    metrics['ess_mean'] = float(ess.per_coordinate.mean())

    try:
        # arviz expects (chain, draw, dim)
        az_dataset = az.convert_to_dataset({'x': samples.T[np.newaxis, :, :]})
        metrics['ess_arviz'] = az.ess(az_dataset)['x'].min().item()
    except Exception as e:
        print(f"  [WARN] arviz ESS calculation failed: {e}")
        metrics['ess_arviz'] = np.nan
    return metrics


def run_pair(walk_name: str, dist_name: str, args: argparse.Namespace) -> Dict[str, Any]:
    rng = RandomSource(args.seed)
    body = generate_cube(args.dim)
    x0, _ = body.inner_ball()
    distribution = build_distribution(dist_name, args.dim, rng, x0)
    walk = WALK_CLASSES[walk_name]()
    sink = ColumnSink(args.dim, args.n_samples)

    start_time = time.time()
    report = sample_points(body, x0, walk, distribution, rng, args.walk_length, args.n_samples, args.n_burns,
                           sink, on_failure='mark', progress=args.progress)
    runtime = time.time() - start_time

    samples = sink.as_array()
    metrics = calculate_metrics(samples)
    metrics.update({
        'walk': walk_name,
        'distribution': dist_name,
        'acceptance': report.acceptance_rate,
        'n_failures': report.n_failures,
        'cpu_time': runtime,
    })
    return metrics


# --- Main Runner ---
def main():
    parser = argparse.ArgumentParser(description="Run every walk/distribution pair on a cube and compare ESS.")
    parser.add_argument('--walks', nargs='+', default=None, help="Restrict the sweep to these walks.")
    parser.add_argument('--dim', type=int, default=10, help="Dimension of the cube [-1, 1]^d.")
    parser.add_argument('--n_samples', type=int, default=1000, help="Number of recorded samples per run.")
    parser.add_argument('--n_burns', type=int, default=100, help="Number of burn-in steps.")
    parser.add_argument('--walk_length', type=int, default=2, help="Steps between recorded samples.")
    parser.add_argument('--output_dir', type=str, default='analysis_results', help="Directory to save reports.")
    parser.add_argument('--seed', type=int, default=1, help="Random seed.")
    parser.add_argument('--progress', action='store_true', help="Show progress bars.")
    parser.add_argument('--verbose', action='store_true', help="Log sampling sessions.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format='%(levelname)s %(message)s')
    os.makedirs(args.output_dir, exist_ok=True)
    all_metrics = []

    for walk_name, dist_name in DEMO_PAIRS:
        if args.walks and walk_name not in args.walks:
            continue
        print(f"  --- Walk: {walk_name} / {dist_name} ---")
        try:
            metrics = run_pair(walk_name, dist_name, args)
        except ConvergenceFailure as e:
            print(f"  [WARN] {walk_name} did not converge: {e}")
            continue
        print(f"    ... ess={metrics['ess']:.1f} (arviz {metrics['ess_arviz']:.1f}) in {metrics['cpu_time']:.2f} seconds.")
        all_metrics.append(metrics)

    if not all_metrics:
        print("\nNo walks were successfully run. Exiting.")
        return

    summary = pd.DataFrame(all_metrics).set_index(['walk', 'distribution'])
    print("\n--- Sampling Summary ---")
    with pd.option_context('display.max_rows', None, 'display.max_columns', None, 'display.width', 120):
        print(summary.to_string(float_format="%.3g"))

    summary.to_csv(os.path.join(args.output_dir, 'report_summary.csv'))
    print(f"\nSaved summary report to {os.path.join(args.output_dir, 'report_summary.csv')}")

    print("\nAnalysis complete.")

if __name__ == '__main__':
    main()
