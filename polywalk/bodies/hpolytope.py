# POLYWALK/polywalk/bodies/hpolytope.py

import math
import numpy as np
import torch
from scipy.optimize import linprog
from typing import Optional, Tuple

from .base import PolyhedralBody
from ..utils import as_point


def _first_exit(slack: torch.Tensor, rate: torch.Tensor) -> Tuple[float, int]:
    """Smallest t >= 0 with slack_i - t * rate_i = 0 over the facets with rate_i > 0."""
    mask = rate > 0
    if not bool(mask.any()):
        return math.inf, -1
    t = torch.full_like(slack, math.inf)
    t[mask] = slack[mask] / rate[mask]
    idx = int(torch.argmin(t).item())
    return t[idx].item(), idx


class HPolytope(PolyhedralBody):
    """
    Polytope in H-representation, P = {x : A x <= b}.

    The inner ball is the Chebyshev ball (largest inscribed ball), computed
    once by linear programming unless supplied with ``set_inner_ball``.
    """
    def __init__(
        self,
        A,
        b,
        tol: float = 1e-9,
        dtype: torch.dtype = torch.float64,
        device: Optional[torch.device] = None,
    ):
        self.dtype = dtype
        self.device = device or torch.device('cpu')
        self.A = torch.as_tensor(np.asarray(A, dtype=np.float64), dtype=dtype, device=self.device)
        self.b = torch.as_tensor(np.asarray(b, dtype=np.float64), dtype=dtype, device=self.device).reshape(-1)
        if self.A.ndim != 2 or self.A.shape[0] != self.b.shape[0]:
            raise ValueError(f"A of shape {tuple(self.A.shape)} does not match b of shape {tuple(self.b.shape)}")
        self.tol = tol
        self.row_norms = torch.linalg.vector_norm(self.A, dim=1)
        if bool((self.row_norms == 0).any()):
            raise ValueError("A has an all-zero row")
        self.unit_normals = self.A / self.row_norms.unsqueeze(1)
        self._inner_ball: Optional[Tuple[torch.Tensor, float]] = None

    def dimension(self) -> int:
        return self.A.shape[1]

    def constraints(self) -> Tuple[torch.Tensor, torch.Tensor]:
        return self.A, self.b

    def slack(self, x: torch.Tensor) -> torch.Tensor:
        return self.b - self.A @ x

    def is_feasible(self, x) -> bool:
        x = as_point(x, dtype=self.dtype, device=self.device)
        if x.shape[0] != self.dimension():
            return False
        return bool((self.slack(x) >= -self.tol * (1.0 + self.b.abs())).all())

    def set_inner_ball(self, center, radius: float) -> None:
        center = as_point(center, dtype=self.dtype, device=self.device)
        if radius <= 0:
            raise ValueError(f"inner ball radius must be positive, got {radius}")
        if not bool((self.slack(center) > 0).all()):
            raise ValueError("inner ball center must be strictly feasible")
        self._inner_ball = (center, float(radius))

    def inner_ball(self) -> Tuple[torch.Tensor, float]:
        if self._inner_ball is None:
            self._inner_ball = self._chebyshev_ball()
        center, radius = self._inner_ball
        return center.clone(), radius

    def _chebyshev_ball(self) -> Tuple[torch.Tensor, float]:
        # maximize r s.t. a_i^T x + ||a_i|| r <= b_i
        A = self.A.cpu().numpy()
        b = self.b.cpu().numpy()
        norms = self.row_norms.cpu().numpy()
        d = A.shape[1]
        cost = np.zeros(d + 1)
        cost[-1] = -1.0
        A_ub = np.hstack([A, norms[:, None]])
        bounds = [(None, None)] * d + [(0.0, None)]
        res = linprog(cost, A_ub=A_ub, b_ub=b, bounds=bounds, method='highs')
        if res.status == 3:
            raise ValueError("the polytope is unbounded: its inscribed ball has no finite radius")
        if res.status != 0:
            raise ValueError(f"inner ball computation failed: {res.message}")
        radius = float(res.x[-1])
        if radius <= 0:
            raise ValueError("the polytope has an empty interior")
        center = torch.as_tensor(res.x[:-1], dtype=self.dtype, device=self.device)
        return center, radius

    def ray_intersection(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float, torch.Tensor]:
        slack = torch.clamp(self.slack(x), min=0.0)
        Au = self.A @ u
        forward, idx = _first_exit(slack, Au)
        backward, _ = _first_exit(slack, -Au)
        if idx < 0:
            normal = torch.zeros_like(u)
        else:
            normal = self.unit_normals[idx]
        return forward, backward, normal

    def __repr__(self) -> str:
        return f"HPolytope(dim={self.dimension()}, facets={self.num_facets()})"
