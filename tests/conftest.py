"""
Pytest configuration and shared fixtures for polywalk tests.
"""

import math

import pytest
import torch

from polywalk import RandomSource, generate_box, generate_cube
from polywalk.bodies.base import ConvexBody
from polywalk.walks.base_walk import ALL_DISTRIBUTIONS, WalkKernel


class EuclideanBall(ConvexBody):
    """Ball of the given radius around the origin; a body without facets."""

    def __init__(self, dim: int, radius: float = 1.0):
        self.dim = dim
        self.radius = radius

    def dimension(self):
        return self.dim

    def is_feasible(self, x):
        return bool(torch.linalg.vector_norm(torch.as_tensor(x, dtype=torch.float64)) <= self.radius * (1 + 1e-9))

    def inner_ball(self):
        return torch.zeros(self.dim, dtype=torch.float64), self.radius

    def _exit(self, x, u):
        uu = torch.dot(u, u).item()
        xu = torch.dot(x, u).item()
        c = torch.dot(x, x).item() - self.radius ** 2
        disc = max(xu * xu - uu * c, 0.0)
        return (-xu + math.sqrt(disc)) / uu

    def ray_intersection(self, x, u):
        forward = max(self._exit(x, u), 0.0)
        backward = max(self._exit(x, -u), 0.0)
        normal = (x + forward * u) / self.radius
        return forward, backward, normal / torch.linalg.vector_norm(normal)


class CountingWalk(WalkKernel):
    """Deterministic walk that never moves; only counts its steps."""
    name = 'Counting'
    supported_distributions = ALL_DISTRIBUTIONS

    def step(self, body, distribution, rng):
        self._require_initialized()
        self.stats.steps += 1


@pytest.fixture
def rng_seed():
    """Default RNG seed for reproducible tests."""
    return 42


@pytest.fixture
def rng(rng_seed):
    return RandomSource(rng_seed)


@pytest.fixture
def square():
    """The square [-1, 1]^2."""
    return generate_cube(2)


@pytest.fixture
def cube3():
    return generate_cube(3)


@pytest.fixture
def wide_square():
    """The square [-6, 6]^2, wide enough for a standard Gaussian to rarely feel the walls."""
    return generate_cube(2, half_width=6.0)


@pytest.fixture
def corridor():
    """A 200 x 0.002 box: billiard trajectories bounce across it many times."""
    return generate_box([-100.0, -1e-3], [100.0, 1e-3])


@pytest.fixture
def disk():
    return EuclideanBall(2, 1.0)


@pytest.fixture
def counting_walk():
    return CountingWalk()
