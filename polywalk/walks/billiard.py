# POLYWALK/polywalk/walks/billiard.py

import math
import torch
from dataclasses import dataclass
from typing import Optional

from .base_walk import (
    WalkKernel,
    WalkParameters,
    default_max_reflections,
    default_trajectory_length,
    logger,
    reflective_drift,
)
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..errors import ConvergenceFailure
from ..random_source import RandomSource

# Fraction of the distance to a facet travelled before reflecting, which
# keeps the trajectory strictly inside the body.
BOUNDARY_SHRINK = 0.995


@dataclass
class BilliardWalkParameters(WalkParameters):
    # None: 2 sqrt(d) r, the diameter of a cube with inner radius r
    trajectory_length: Optional[float] = None
    # None: 100 d
    max_reflections: Optional[int] = None


class BilliardWalk(WalkKernel):
    """
    Billiard walk for the uniform distribution.

    Each step picks a uniform direction and a path length L * Exp(1), then
    travels in straight segments, reflecting off the boundary with angle of
    incidence equal to angle of reflection. A step that needs more than
    ``max_reflections`` bounces is abandoned: the point is left where the
    step started and ``ConvergenceFailure`` is raised.
    """
    name = 'Billiard'
    Parameters = BilliardWalkParameters
    supported_distributions = ('uniform',)

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        p = self.params
        self.trajectory_length = p.trajectory_length if p.trajectory_length is not None \
            else default_trajectory_length(body)
        self.max_reflections = p.max_reflections if p.max_reflections is not None \
            else default_max_reflections(body)

    def _fail(self) -> None:
        self.stats.failures += 1
        raise ConvergenceFailure(self.name, self.max_reflections,
                                 f"{self.name}: more than {self.max_reflections} reflections in one step")

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        T = rng.exponential() * self.trajectory_length
        v = rng.random_direction(body.dimension()).to(dtype=self.x.dtype, device=self.x.device)
        out = reflective_drift(body, self.x, v, T, self.max_reflections, shrink=BOUNDARY_SHRINK)
        if out is None:
            self._fail()
        self.x = out[0]
        self.stats.accepted += 1


class AcceleratedBilliardWalk(BilliardWalk):
    """
    Billiard walk on an H-polytope with cached facet algebra.

    The products A x and A v are formed once per step; after a bounce off
    facet j the new A v is obtained from column j of the cached Gram matrix
    A A^T, so each further bounce costs O(m) instead of O(m d).
    """
    name = 'AcceleratedBilliard'
    requires_polyhedral = True

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        super()._setup(body, distribution, rng)
        self.A, self.b = body.constraints()
        self.gram = self.A @ self.A.T
        self.row_norms_sq = torch.diagonal(self.gram).clone()

    def _trajectory(self, rng: RandomSource) -> Optional[torch.Tensor]:
        A, b = self.A, self.b
        T = rng.exponential() * self.trajectory_length
        v = rng.random_direction(A.shape[1]).to(dtype=self.x.dtype, device=self.x.device)
        x = self.x
        Ax = A @ x
        Av = A @ v

        for n in range(self.max_reflections + 1):
            slack = torch.clamp(b - Ax, min=0.0)
            mask = Av > 0
            lam = torch.full_like(slack, math.inf)
            lam[mask] = slack[mask] / Av[mask]
            j = int(torch.argmin(lam).item())
            lam_j = lam[j].item()
            if T <= lam_j:
                return x + T * v
            if n == self.max_reflections:
                break
            lam_j *= BOUNDARY_SHRINK
            x = x + lam_j * v
            Ax = Ax + lam_j * Av
            T -= lam_j
            # v <- v - 2 <v, a_j> a_j / |a_j|^2, and A v follows through the Gram column
            coef = 2.0 * Av[j] / self.row_norms_sq[j]
            v = v - coef * A[j]
            Av = Av - coef * self.gram[:, j]
        return None

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        y = self._trajectory(rng)
        if y is None:
            self._fail()
        self.x = y
        self.stats.accepted += 1


class GaussianAcceleratedBilliardWalk(AcceleratedBilliardWalk):
    """
    Accelerated billiard walk with a Metropolis filter, for Gaussian targets.

    The billiard proposal is symmetric, so accepting its endpoint y with
    probability min(1, exp(f(x) - f(y))) leaves the Gaussian invariant.
    """
    name = 'GaussianAcceleratedBilliard'
    supported_distributions = ('spherical_gaussian', 'gaussian')

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        super()._setup(body, distribution, rng)
        if self.params.trajectory_length is None:
            # no longer than the smallest standard deviation of the target
            self.trajectory_length = min(self.trajectory_length, 1.0 / math.sqrt(distribution.smoothness))

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        y = self._trajectory(rng)
        if y is None:
            self._fail()
        log_ratio = distribution.neg_log_density(self.x) - distribution.neg_log_density(y)
        if log_ratio >= 0 or rng.log_uniform() <= log_ratio:
            self.x = y
            self.stats.accepted += 1
        else:
            logger.debug("%s: rejected endpoint (log ratio %.3g)", self.name, log_ratio)
