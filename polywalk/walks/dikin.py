# POLYWALK/polywalk/walks/dikin.py

import math
import torch
from dataclasses import dataclass
from typing import Optional, Tuple

from .base_walk import WalkKernel, WalkParameters
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..random_source import RandomSource


@dataclass
class BarrierWalkParameters(WalkParameters):
    radius: float = 0.5


@dataclass
class JohnWalkParameters(BarrierWalkParameters):
    weight_iters: int = 30
    weight_tol: float = 1e-6


def _leverage_scores(B: torch.Tensor) -> torch.Tensor:
    """Diagonal of B (B^T B)^{-1} B^T."""
    L = torch.linalg.cholesky(B.T @ B)
    Z = torch.linalg.solve_triangular(L, B.T, upper=False)
    return (Z ** 2).sum(dim=0)


class _BarrierWalk(WalkKernel):
    """
    Interior-point walks on an H-polytope.

    At x the walk builds a local metric H(x) = A_s^T diag(w(x)) A_s, where
    A_s is A with row i divided by the slack s_i = b_i - a_i^T x, and
    proposes y ~ N(x, c H(x)^{-1}). The proposal is accepted with the
    Metropolis-Hastings ratio q(y -> x) / q(x -> y), which keeps the
    uniform distribution invariant. Subclasses choose the weights w and
    the scale c.
    """
    Parameters = BarrierWalkParameters
    supported_distributions = ('uniform',)
    requires_polyhedral = True

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self.A, self.b = body.constraints()
        self.m, self.d = self.A.shape
        self.scale = self._proposal_scale()

    def _proposal_scale(self) -> float:
        raise NotImplementedError

    def _weights(self, As: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def _metric(self, x: torch.Tensor) -> Optional[Tuple[torch.Tensor, torch.Tensor]]:
        """Returns (H, chol(H)), or None when x is not strictly interior."""
        s = self.b - self.A @ x
        if not bool((s > 0).all()):
            return None
        As = self.A / s.unsqueeze(1)
        H = As.T @ (self._weights(As).unsqueeze(1) * As)
        L, info = torch.linalg.cholesky_ex(H)
        if int(info) != 0:
            return None
        return H, L

    def _log_proposal(self, H: torch.Tensor, L: torch.Tensor, delta: torch.Tensor) -> float:
        # log N(delta; 0, c H^{-1}) up to a constant shared by both directions
        half_logdet = torch.log(torch.diagonal(L)).sum().item()
        return half_logdet - 0.5 * torch.dot(delta, H @ delta).item() / self.scale

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        current = self._metric(self.x)
        if current is None:
            return
        Hx, Lx = current
        z = rng.normal_vector(self.d).to(dtype=self.x.dtype, device=self.x.device)
        delta = math.sqrt(self.scale) * torch.linalg.solve_triangular(Lx.T, z.unsqueeze(1), upper=True).squeeze(1)
        y = self.x + delta

        proposed = self._metric(y)
        if proposed is None:
            return
        Hy, Ly = proposed
        log_ratio = self._log_proposal(Hy, Ly, -delta) - self._log_proposal(Hx, Lx, delta)
        if log_ratio >= 0 or rng.log_uniform() <= log_ratio:
            self.x = y
            self.stats.accepted += 1


class DikinWalk(_BarrierWalk):
    """Dikin walk: log-barrier metric, unit weights, scale r^2 / d."""
    name = 'Dikin'

    def _proposal_scale(self) -> float:
        return self.params.radius ** 2 / self.d

    def _weights(self, As: torch.Tensor) -> torch.Tensor:
        return torch.ones(As.shape[0], dtype=As.dtype, device=As.device)


class VaidyaWalk(_BarrierWalk):
    """Vaidya walk: volumetric-barrier weights sigma_i + d/m, scale r^2 / sqrt(m d)."""
    name = 'Vaidya'

    def _proposal_scale(self) -> float:
        return self.params.radius ** 2 / math.sqrt(self.m * self.d)

    def _weights(self, As: torch.Tensor) -> torch.Tensor:
        return _leverage_scores(As) + self.d / self.m


class JohnWalk(_BarrierWalk):
    """
    John walk: approximate John-ellipsoid weights, scale r^2 / d^1.5.

    The weights solve w_i = sigma_i(W^{alpha/2} A_s) + beta by the damped
    fixed-point iteration w <- sqrt(w (sigma(w) + beta)), with
    alpha = 1 - 1 / log2(2m / d) and beta = d / (2m).
    """
    name = 'John'
    Parameters = JohnWalkParameters

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        super()._setup(body, distribution, rng)
        self.alpha = 1.0 - 1.0 / math.log2(2.0 * self.m / self.d)
        self.beta = self.d / (2.0 * self.m)

    def _proposal_scale(self) -> float:
        return self.params.radius ** 2 / self.d ** 1.5

    def _weights(self, As: torch.Tensor) -> torch.Tensor:
        w = torch.ones(As.shape[0], dtype=As.dtype, device=As.device)
        for _ in range(self.params.weight_iters):
            sigma = _leverage_scores(w.pow(0.5 * self.alpha).unsqueeze(1) * As)
            w_next = torch.sqrt(w * (sigma + self.beta))
            if torch.max(torch.abs(w_next - w) / w).item() < self.params.weight_tol:
                return w_next
            w = w_next
        return w
