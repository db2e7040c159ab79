# POLYWALK/polywalk/bodies/base.py

import torch
from abc import ABC, abstractmethod
from typing import Tuple


class ConvexBody(ABC):
    """
    Abstract definition of a bounded convex subset of euclidean space.

    A body is read-only for the duration of a sampling run, so one instance
    may be shared by several chains.
    """
    @abstractmethod
    def dimension(self) -> int:
        pass

    @abstractmethod
    def is_feasible(self, x: torch.Tensor) -> bool:
        """Tells if the point x lies in the body."""
        pass

    @abstractmethod
    def inner_ball(self) -> Tuple[torch.Tensor, float]:
        """Returns a strictly feasible center and the radius of a ball around it contained in the body."""
        pass

    @abstractmethod
    def ray_intersection(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float, torch.Tensor]:
        """
        Intersects the line x + t u with the boundary.

        Returns:
            forward:  distance (in units of t) to the boundary along +u
            backward: distance (in units of t) to the boundary along -u
            normal:   unit outward normal of the facet hit along +u
        """
        pass


class PolyhedralBody(ConvexBody):
    """A convex body given by finitely many linear inequalities A x <= b."""
    @abstractmethod
    def constraints(self) -> Tuple[torch.Tensor, torch.Tensor]:
        pass

    def num_facets(self) -> int:
        return self.constraints()[0].shape[0]
