# POLYWALK/polywalk/walks/ball_walk.py

import math
from dataclasses import dataclass
from typing import Optional

from .base_walk import ALL_DISTRIBUTIONS, WalkKernel, WalkParameters, logger
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..random_source import RandomSource


@dataclass
class BallWalkParameters(WalkParameters):
    # None: 4 r / sqrt(d) from the body's inner ball
    radius: Optional[float] = None
    # proposals drawn per step before giving up; values above one retry
    # infeasible proposals, which favours the interior of the body
    max_attempts: int = 1


class BallWalk(WalkKernel):
    """
    Ball walk: propose a point uniformly in a ball around the current point.

    For a uniform target a feasible proposal is always taken. For other
    targets a feasible proposal y is accepted with probability
    min(1, exp(f(x) - f(y))). Infeasible proposals are redrawn at most
    ``max_attempts`` times; if none is feasible the step leaves the point
    unchanged.
    """
    name = 'Ball'
    Parameters = BallWalkParameters
    supported_distributions = ALL_DISTRIBUTIONS

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        if self.params.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.params.radius is not None:
            self.delta = float(self.params.radius)
        else:
            _, r = body.inner_ball()
            self.delta = 4.0 * r / math.sqrt(body.dimension())

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        d = body.dimension()
        self.stats.steps += 1
        for _ in range(self.params.max_attempts):
            y = self.x + rng.uniform_in_ball(d, self.delta).to(dtype=self.x.dtype, device=self.x.device)
            if not body.is_feasible(y):
                continue
            if distribution.kind != 'uniform':
                log_ratio = distribution.neg_log_density(self.x) - distribution.neg_log_density(y)
                if log_ratio < 0 and rng.log_uniform() > log_ratio:
                    return
            self.x = y
            self.stats.accepted += 1
            return
        logger.debug("Ball walk: no feasible proposal in %d attempts", self.params.max_attempts)
