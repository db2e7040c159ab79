"""
polywalk: random-walk sampling from convex bodies.

A session pairs a convex body, a target distribution and a walk kernel,
runs it through ``sample_points`` into a sink, and checks the result with
``effective_sample_size``.
"""

from .errors import (
    CapacityExceeded,
    ConvergenceFailure,
    IncompatibleConfiguration,
    InfeasibleStart,
    SamplingCancelled,
    SamplingError,
)
from .random_source import RandomSource
from .bodies import (
    ConvexBody,
    HPolytope,
    PolyhedralBody,
    generate_box,
    generate_cross_polytope,
    generate_cube,
    generate_simplex,
)
from .distributions import (
    Distribution,
    ExponentialDistribution,
    GaussianDistribution,
    LogConcaveDistribution,
    SphericalGaussianDistribution,
    UniformDistribution,
)
from .walks import *  # noqa: F401,F403
from .walks import __all__ as _walks_all
from .sinks import ColumnSink, ListSink
from .sampling import SamplingReport, run, sample_matrix, sample_points
from .diagnostics import ESSResult, effective_sample_size, print_diagnostics, split_rhat, summary_table

__version__ = '0.1.0'

__all__ = [
    'SamplingError', 'InfeasibleStart', 'ConvergenceFailure', 'CapacityExceeded',
    'IncompatibleConfiguration', 'SamplingCancelled',
    'RandomSource',
    'ConvexBody', 'PolyhedralBody', 'HPolytope',
    'generate_box', 'generate_cross_polytope', 'generate_cube', 'generate_simplex',
    'Distribution', 'UniformDistribution', 'SphericalGaussianDistribution', 'GaussianDistribution',
    'ExponentialDistribution', 'LogConcaveDistribution',
    'ListSink', 'ColumnSink',
    'SamplingReport', 'sample_points', 'run', 'sample_matrix',
    'ESSResult', 'effective_sample_size', 'split_rhat', 'summary_table', 'print_diagnostics',
] + list(_walks_all)
