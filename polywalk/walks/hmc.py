# POLYWALK/polywalk/walks/hmc.py

import math
import torch
from dataclasses import dataclass
from typing import Optional, Tuple

from .base_walk import (
    SMOOTH_DISTRIBUTIONS,
    WalkKernel,
    WalkParameters,
    default_max_reflections,
    reflective_drift,
)
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..errors import ConvergenceFailure
from ..random_source import RandomSource


def default_step_size(body: ConvexBody, distribution: Distribution) -> float:
    """min(1 / sqrt(20 L), r) for a gradient-Lipschitz constant L > 0, else r / 10."""
    _, r = body.inner_ball()
    L = distribution.smoothness
    if L > 0:
        return min(1.0 / math.sqrt(20.0 * L), r)
    return 0.1 * r


def reflective_leapfrog(
    body: ConvexBody,
    distribution: Distribution,
    x: torch.Tensor,
    v: torch.Tensor,
    g: torch.Tensor,
    eps: float,
    max_reflections: int,
) -> Optional[Tuple[torch.Tensor, torch.Tensor, torch.Tensor]]:
    """
    One leap-frog step of size eps (negative eps integrates backwards).

    The position drift follows a billiard trajectory: at a facet the
    momentum is reflected and the motion continues for the rest of the step.
    ``g`` is the gradient of the potential at x.

    Returns:
        (x, v, gradient at the new x), or None if the drift exceeded
        ``max_reflections`` bounces.
    """
    v = v - 0.5 * eps * g
    if eps >= 0:
        out = reflective_drift(body, x, v, eps, max_reflections)
        if out is None:
            return None
        x, v, _ = out
    else:
        out = reflective_drift(body, x, -v, -eps, max_reflections)
        if out is None:
            return None
        x, v = out[0], -out[1]
    g = distribution.grad_neg_log_density(x)
    v = v - 0.5 * eps * g
    return x, v, g


def hamiltonian(distribution: Distribution, x: torch.Tensor, v: torch.Tensor) -> float:
    return distribution.neg_log_density(x) + 0.5 * torch.dot(v, v).item()


@dataclass
class HMCParameters(WalkParameters):
    # None: see default_step_size
    step_size: Optional[float] = None
    num_leapfrog_steps: int = 10
    # None: 100 d per leap-frog step
    max_reflections: Optional[int] = None


class HamiltonianMonteCarloWalk(WalkKernel):
    """
    Reflective Hamiltonian Monte Carlo for smooth log-concave targets.

    Each step draws a standard normal momentum, integrates the Hamiltonian
    dynamics of f(x) + |v|^2 / 2 with ``num_leapfrog_steps`` leap-frog
    steps (reflecting the momentum at the boundary), and accepts the end
    point with probability min(1, exp(H_start - H_end)).
    """
    name = 'HMC'
    Parameters = HMCParameters
    supported_distributions = SMOOTH_DISTRIBUTIONS

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        p = self.params
        if p.num_leapfrog_steps < 1:
            raise ValueError("num_leapfrog_steps must be >= 1")
        self.step_size = p.step_size if p.step_size is not None else default_step_size(body, distribution)
        self.max_reflections = p.max_reflections if p.max_reflections is not None \
            else default_max_reflections(body)

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        x = self.x
        v = rng.normal_vector(body.dimension()).to(dtype=x.dtype, device=x.device)
        g = distribution.grad_neg_log_density(x)
        H0 = hamiltonian(distribution, x, v)

        for _ in range(self.params.num_leapfrog_steps):
            out = reflective_leapfrog(body, distribution, x, v, g, self.step_size, self.max_reflections)
            if out is None:
                self.stats.failures += 1
                raise ConvergenceFailure(self.name, self.max_reflections,
                                         f"{self.name}: more than {self.max_reflections} reflections in one leap-frog step")
            x, v, g = out

        log_ratio = H0 - hamiltonian(distribution, x, v)
        if log_ratio >= 0 or rng.log_uniform() <= log_ratio:
            self.x = x
            self.stats.accepted += 1
