# POLYWALK/polywalk/walks/hit_and_run.py

import math
import torch
from dataclasses import dataclass

from .base_walk import QUADRATIC_DISTRIBUTIONS, WalkKernel, WalkParameters
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..random_source import RandomSource
from ..utils import sample_chord


@dataclass
class HitAndRunParameters(WalkParameters):
    pass


class _HitAndRunWalk(WalkKernel):
    """
    Hit-and-run: pick a direction, intersect the line through the current
    point with the body, and draw the next point on that chord from the
    target restricted to it (uniform, truncated normal or truncated
    exponential). Every move is accepted.
    """
    Parameters = HitAndRunParameters
    supported_distributions = QUADRATIC_DISTRIBUTIONS

    def _direction(self, d: int, rng: RandomSource) -> torch.Tensor:
        raise NotImplementedError

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        u = self._direction(body.dimension(), rng)
        forward, backward, _ = body.ray_intersection(self.x, u)
        if not (math.isfinite(forward) and math.isfinite(backward)):
            raise ValueError(f"{self.name}: the chord through the current point is unbounded")
        a, b = distribution.line_restriction(self.x, u)
        t = sample_chord(a, b, -backward, forward, rng)
        self.x = self.x + t * u
        self.stats.steps += 1
        self.stats.accepted += 1


class CDHRWalk(_HitAndRunWalk):
    """Coordinate-directions hit-and-run: the direction is a random coordinate axis."""
    name = 'CDHR'

    def _direction(self, d: int, rng: RandomSource) -> torch.Tensor:
        u = torch.zeros(d, dtype=self.x.dtype, device=self.x.device)
        u[rng.uniform_int(0, d)] = 1.0
        return u


class RDHRWalk(_HitAndRunWalk):
    """Random-directions hit-and-run: the direction is uniform on the sphere."""
    name = 'RDHR'

    def _direction(self, d: int, rng: RandomSource) -> torch.Tensor:
        return rng.random_direction(d).to(dtype=self.x.dtype, device=self.x.device)
