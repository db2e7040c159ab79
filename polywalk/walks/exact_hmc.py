# POLYWALK/polywalk/walks/exact_hmc.py

import math
import torch
from dataclasses import dataclass
from typing import Optional, Tuple

from .base_walk import (
    WalkKernel,
    WalkParameters,
    default_max_reflections,
    default_trajectory_length,
)
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..errors import ConvergenceFailure
from ..random_source import RandomSource
from ..utils import reflect

# Hitting times below this are the facet the trajectory is leaving.
_ROOT_TOL = 1e-10


@dataclass
class ExactHMCParameters(WalkParameters):
    # None: 100 d
    max_reflections: Optional[int] = None


@dataclass
class ExponentialExactHMCParameters(WalkParameters):
    # None: 2 sqrt(d) r; the duration of a step is U(0, 1) * trajectory_length
    trajectory_length: Optional[float] = None
    max_reflections: Optional[int] = None


class _ExactHMCWalk(WalkKernel):
    """
    Hamiltonian walks whose trajectories are integrated in closed form.

    Between facets the dynamics are solved analytically, so no Metropolis
    correction is needed; at a facet the velocity is reflected and the
    motion continues for the remaining time.
    """
    Parameters = ExactHMCParameters
    requires_polyhedral = True

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self.A, self.b = body.constraints()
        self.unit_normals = self.A / torch.linalg.norm(self.A, dim=1, keepdim=True)
        p = self.params
        self.max_reflections = p.max_reflections if p.max_reflections is not None \
            else default_max_reflections(body)

    def _hitting_times(self, distribution, x, v) -> torch.Tensor:
        """First positive time at which the free trajectory from (x, v) meets each facet."""
        raise NotImplementedError

    def _flow(self, distribution, x, v, t) -> Tuple[torch.Tensor, torch.Tensor]:
        """State of the free trajectory after time t."""
        raise NotImplementedError

    def _duration(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> float:
        raise NotImplementedError

    def evolve(
        self,
        body: ConvexBody,
        distribution: Distribution,
        x: torch.Tensor,
        v: torch.Tensor,
        duration: float,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Follows the exact reflected trajectory for the given time.

        The walk must have been initialized on ``body``.

        Raises:
            ConvergenceFailure: more than ``max_reflections`` facet hits.
        """
        remaining = duration
        for _ in range(self.max_reflections + 1):
            times = self._hitting_times(distribution, x, v)
            j = int(torch.argmin(times).item())
            t = times[j].item()
            if remaining <= t:
                return self._flow(distribution, x, v, remaining)
            x, v = self._flow(distribution, x, v, t)
            v = reflect(v, self.unit_normals[j])
            remaining -= t
        self.stats.failures += 1
        raise ConvergenceFailure(self.name, self.max_reflections,
                                 f"{self.name}: more than {self.max_reflections} reflections in one step")

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        v = rng.normal_vector(body.dimension()).to(dtype=self.x.dtype, device=self.x.device)
        T = self._duration(body, distribution, rng)
        x, _ = self.evolve(body, distribution, self.x, v, T)
        self.x = x
        self.stats.accepted += 1


class GaussianHamiltonianMonteCarloExactWalk(_ExactHMCWalk):
    """
    Exact HMC for a spherical Gaussian N(mu, s^2 I) on an H-polytope.

    With omega = 1 / s the free motion is the harmonic oscillator
        x(t) = mu + (x0 - mu) cos(omega t) + (v0 / omega) sin(omega t),
    and each step runs for a quarter period pi / (2 omega).
    """
    name = 'GaussianHMCExact'
    supported_distributions = ('spherical_gaussian',)

    @staticmethod
    def _mode(distribution, x: torch.Tensor) -> torch.Tensor:
        if distribution.mode is None:
            return torch.zeros_like(x)
        return distribution.mode.to(dtype=x.dtype, device=x.device)

    def _duration(self, body, distribution, rng) -> float:
        return 0.5 * math.pi * math.sqrt(distribution.variance)

    def _flow(self, distribution, x, v, t):
        omega = 1.0 / math.sqrt(distribution.variance)
        mu = self._mode(distribution, x)
        c, s = math.cos(omega * t), math.sin(omega * t)
        y = x - mu
        return mu + y * c + (v / omega) * s, -y * omega * s + v * c

    def _hitting_times(self, distribution, x, v):
        # a.x(t) = b  <=>  P cos(wt) + Q sin(wt) = R cos(wt - phi) = c
        omega = 1.0 / math.sqrt(distribution.variance)
        mu = self._mode(distribution, x)
        P = self.A @ (x - mu)
        Q = (self.A @ v) / omega
        c = P + torch.clamp(self.b - self.A @ x, min=0.0)
        R = torch.sqrt(P ** 2 + Q ** 2)
        reachable = R > c.abs()
        ratio = torch.where(reachable, c / torch.where(R > 0, R, torch.ones_like(R)), torch.ones_like(R))
        theta = torch.acos(torch.clamp(ratio, -1.0, 1.0))
        phi = torch.atan2(Q, P)
        roots = torch.stack([torch.remainder(phi - theta, 2 * math.pi),
                             torch.remainder(phi + theta, 2 * math.pi)])
        roots = torch.where(roots > _ROOT_TOL, roots, torch.full_like(roots, math.inf))
        u = roots.min(dim=0).values
        u = torch.where(reachable, u, torch.full_like(u, math.inf))
        return u / omega


class ExponentialHamiltonianMonteCarloExactWalk(_ExactHMCWalk):
    """
    Exact HMC for an exponential density exp(-c.x / T) on an H-polytope.

    The potential has the constant gradient g = c / T, so the free motion
    is the parabola x(t) = x0 + v0 t - c t^2 / (2 T). Facet hits are the
    roots of a.x(t) - b = -(a.g / 2) t^2 + (a.v0) t + (a.x0 - b).
    """
    name = 'ExponentialHMCExact'
    Parameters = ExponentialExactHMCParameters
    supported_distributions = ('exponential',)

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        super()._setup(body, distribution, rng)
        self.trajectory_length = self.params.trajectory_length if self.params.trajectory_length is not None \
            else default_trajectory_length(body)

    def _duration(self, body, distribution, rng) -> float:
        return rng.uniform_real() * self.trajectory_length

    def _flow(self, distribution, x, v, t):
        g = distribution.grad_neg_log_density(x)
        return x + v * t - 0.5 * g * t * t, v - g * t

    def _hitting_times(self, distribution, x, v):
        g = distribution.grad_neg_log_density(x)
        alpha = -0.5 * (self.A @ g)
        beta = self.A @ v
        gamma = -torch.clamp(self.b - self.A @ x, min=0.0)
        inf = torch.full_like(beta, math.inf)

        linear = alpha.abs() < 1e-14
        t_lin = torch.where(linear & (beta > 0), -gamma / torch.where(beta > 0, beta, torch.ones_like(beta)), inf)

        disc = beta ** 2 - 4.0 * alpha * gamma
        sq = torch.sqrt(torch.clamp(disc, min=0.0))
        denom = torch.where(linear, torch.ones_like(alpha), 2.0 * alpha)
        roots = torch.stack([(-beta - sq) / denom, (-beta + sq) / denom])
        roots = torch.where(roots > _ROOT_TOL, roots, inf.expand_as(roots))
        t_quad = torch.where(~linear & (disc >= 0), roots.min(dim=0).values, inf)
        t_lin = torch.where(t_lin > _ROOT_TOL, t_lin, inf)
        return torch.where(linear, t_lin, t_quad)
