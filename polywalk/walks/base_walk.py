# POLYWALK/polywalk/walks/base_walk.py

import dataclasses
import logging
import math
import torch
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from ..bodies.base import ConvexBody, PolyhedralBody
from ..distributions import Distribution
from ..errors import IncompatibleConfiguration, InfeasibleStart
from ..random_source import RandomSource
from ..utils import as_point, reflect

logger = logging.getLogger('polywalk')

ALL_DISTRIBUTIONS = ('uniform', 'spherical_gaussian', 'gaussian', 'exponential', 'logconcave')
QUADRATIC_DISTRIBUTIONS = ('uniform', 'spherical_gaussian', 'gaussian', 'exponential')
SMOOTH_DISTRIBUTIONS = ('spherical_gaussian', 'gaussian', 'exponential', 'logconcave')


@dataclass
class WalkParameters:
    """Base class of the per-walk parameter blocks."""


@dataclass
class WalkStats:
    steps: int = 0
    accepted: int = 0
    failures: int = 0

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.steps if self.steps else 0.0


class WalkKernel(ABC):
    """
    Abstract base class for all random walks.

    A kernel is configured once from its parameter block, bound to a body,
    a distribution and a starting point by ``initialize``, then advanced
    one elementary move at a time by ``step``. ``supported_distributions``
    lists the distribution kinds the walk can serve; pairing it with any
    other kind raises ``IncompatibleConfiguration`` at initialization.
    """
    name: str = ''
    Parameters = WalkParameters
    supported_distributions: Tuple[str, ...] = ()
    requires_polyhedral: bool = False

    def __init__(self, params: Optional[WalkParameters] = None, **overrides):
        if params is None:
            params = self.Parameters(**overrides)
        elif isinstance(params, WalkParameters):
            params = dataclasses.replace(params, **overrides)
        else:
            # numeric shorthand for the first parameter, e.g. AcceleratedBilliardWalk(10)
            first = dataclasses.fields(self.Parameters)[0].name
            params = self.Parameters(**{first: params, **overrides})
        self.params = params
        self.x: Optional[torch.Tensor] = None
        self.stats = WalkStats()

    @classmethod
    def check_compatibility(cls, body: ConvexBody, distribution: Distribution) -> None:
        if distribution.kind not in cls.supported_distributions:
            raise IncompatibleConfiguration(
                f"{cls.name} cannot sample from {type(distribution).__name__}; "
                f"supported: {', '.join(cls.supported_distributions)}"
            )
        if cls.requires_polyhedral and not isinstance(body, PolyhedralBody):
            raise IncompatibleConfiguration(
                f"{cls.name} needs the facets of the body; {type(body).__name__} is not polyhedral"
            )
        distribution.check_dimension(body.dimension())

    def initialize(
        self,
        body: ConvexBody,
        distribution: Distribution,
        start,
        rng: RandomSource,
    ) -> None:
        """Binds the walk to a session. Fails before any step if the start is infeasible."""
        self.check_compatibility(body, distribution)
        x = as_point(start)
        if x.shape[0] != body.dimension():
            raise InfeasibleStart(f"starting point has dimension {x.shape[0]}, body has {body.dimension()}")
        if not body.is_feasible(x):
            raise InfeasibleStart("starting point violates the body's constraints")
        self.x = x
        self.stats = WalkStats()
        self._setup(body, distribution, rng)

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        """Hook for deriving default parameters and caches from the session."""
        pass

    @abstractmethod
    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        """Advances the walk by exactly one elementary move."""
        pass

    def current_point(self) -> torch.Tensor:
        self._require_initialized()
        return self.x.clone()

    def _require_initialized(self) -> None:
        if self.x is None:
            raise RuntimeError(f"{self.name} must be initialized before stepping")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params})"


def default_trajectory_length(body: ConvexBody) -> float:
    """Diameter heuristic 2 sqrt(d) r from the inner ball; exact for cubes."""
    _, r = body.inner_ball()
    return 2.0 * math.sqrt(body.dimension()) * r


def default_max_reflections(body: ConvexBody) -> int:
    return 100 * body.dimension()


def reflective_drift(
    body: ConvexBody,
    x: torch.Tensor,
    v: torch.Tensor,
    duration: float,
    max_reflections: int,
    shrink: float = 1.0,
) -> Optional[Tuple[torch.Tensor, torch.Tensor, int]]:
    """
    Moves with constant velocity v for the given time, reflecting off facets.

    ``shrink`` < 1 stops each segment slightly before the boundary so that
    the point stays strictly inside.

    Returns:
        (x, v, n_reflections), or None when the trajectory needs more than
        ``max_reflections`` bounces.
    """
    remaining = duration
    for n in range(max_reflections + 1):
        forward, _, normal = body.ray_intersection(x, v)
        if remaining <= forward:
            return x + remaining * v, v, n
        if n == max_reflections:
            break
        t = shrink * forward
        x = x + t * v
        remaining -= t
        v = reflect(v, normal)
    return None
