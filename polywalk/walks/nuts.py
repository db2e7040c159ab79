# POLYWALK/polywalk/walks/nuts.py

import math
import torch
from dataclasses import dataclass
from typing import NamedTuple, Optional

from .base_walk import (
    SMOOTH_DISTRIBUTIONS,
    WalkKernel,
    WalkParameters,
    default_max_reflections,
    logger,
)
from .hmc import default_step_size, hamiltonian, reflective_leapfrog
from ..bodies.base import ConvexBody
from ..distributions import Distribution
from ..errors import ConvergenceFailure
from ..random_source import RandomSource


@dataclass
class NutsParameters(WalkParameters):
    # None: see hmc.default_step_size
    step_size: Optional[float] = None
    max_depth: int = 10
    delta_max: float = 1000.0
    max_reflections: Optional[int] = None
    # dual-averaging step size adaptation during the first steps (0 = off)
    adaptation_steps: int = 0
    target_accept: float = 0.8


@dataclass
class DualAveragingState:
    mu: float
    log_eps: float
    log_eps_bar: float = 0.0
    h_bar: float = 0.0
    t: int = 0

    def update(self, accept_stat: float, target: float = 0.8,
               gamma: float = 0.05, t0: float = 10.0, kappa: float = 0.75) -> float:
        self.t += 1
        eta = 1.0 / (self.t + t0)
        self.h_bar = (1.0 - eta) * self.h_bar + eta * (target - accept_stat)
        self.log_eps = self.mu - (math.sqrt(self.t) / gamma) * self.h_bar
        w = self.t ** (-kappa)
        self.log_eps_bar = w * self.log_eps + (1.0 - w) * self.log_eps_bar
        return math.exp(self.log_eps)

    def final(self) -> float:
        return math.exp(self.log_eps_bar)


class _Tree(NamedTuple):
    x_minus: torch.Tensor
    v_minus: torch.Tensor
    g_minus: torch.Tensor
    x_plus: torch.Tensor
    v_plus: torch.Tensor
    g_plus: torch.Tensor
    x_prop: torch.Tensor
    n_valid: int
    s_continue: bool
    alpha_sum: float
    n_alpha: int
    divergent: bool


def _is_uturn(x_minus, x_plus, v_minus, v_plus) -> bool:
    dx = x_plus - x_minus
    return bool(torch.dot(dx, v_minus) < 0) or bool(torch.dot(dx, v_plus) < 0)


class NutsHamiltonianMonteCarloWalk(WalkKernel):
    """
    No-U-Turn sampler with reflective leap-frog dynamics.

    The trajectory is doubled in a random direction until it makes a U-turn,
    diverges (energy error above ``delta_max``) or reaches ``max_depth``
    doublings; the new point is drawn among the trajectory states inside
    the slice. Reflection at facets makes the integrator stay in the body
    while remaining volume preserving and reversible.
    """
    name = 'NUTS'
    Parameters = NutsParameters
    supported_distributions = SMOOTH_DISTRIBUTIONS

    def _setup(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        p = self.params
        self.step_size = p.step_size if p.step_size is not None else default_step_size(body, distribution)
        self.max_reflections = p.max_reflections if p.max_reflections is not None \
            else default_max_reflections(body)
        self.dual_averaging = DualAveragingState(mu=math.log(10.0 * self.step_size),
                                                 log_eps=math.log(self.step_size))
        self.n_divergent = 0

    def _leapfrog(self, body, distribution, x, v, g, eps):
        out = reflective_leapfrog(body, distribution, x, v, g, eps, self.max_reflections)
        if out is None:
            self.stats.failures += 1
            raise ConvergenceFailure(self.name, self.max_reflections,
                                     f"{self.name}: more than {self.max_reflections} reflections in one leap-frog step")
        return out

    def _build_tree(self, body, distribution, rng, x, v, g, log_u, direction, depth, H0) -> _Tree:
        if depth == 0:
            x1, v1, g1 = self._leapfrog(body, distribution, x, v, g, direction * self.step_size)
            H1 = hamiltonian(distribution, x1, v1)
            if not math.isfinite(H1):
                return _Tree(x, v, g, x, v, g, x, 0, False, 0.0, 1, True)
            n_valid = 1 if log_u <= -H1 else 0
            divergent = (H1 - H0) > self.params.delta_max
            s_continue = (log_u < self.params.delta_max - H1) and not divergent
            alpha = math.exp(min(0.0, H0 - H1))
            return _Tree(x1, v1, g1, x1, v1, g1, x1, n_valid, s_continue, alpha, 1, divergent)

        tree = self._build_tree(body, distribution, rng, x, v, g, log_u, direction, depth - 1, H0)
        if not tree.s_continue or tree.divergent:
            return tree

        if direction < 0:
            sub = self._build_tree(body, distribution, rng, tree.x_minus, tree.v_minus, tree.g_minus,
                                   log_u, direction, depth - 1, H0)
            x_minus, v_minus, g_minus = sub.x_minus, sub.v_minus, sub.g_minus
            x_plus, v_plus, g_plus = tree.x_plus, tree.v_plus, tree.g_plus
        else:
            sub = self._build_tree(body, distribution, rng, tree.x_plus, tree.v_plus, tree.g_plus,
                                   log_u, direction, depth - 1, H0)
            x_minus, v_minus, g_minus = tree.x_minus, tree.v_minus, tree.g_minus
            x_plus, v_plus, g_plus = sub.x_plus, sub.v_plus, sub.g_plus

        x_prop = tree.x_prop
        n_total = tree.n_valid + sub.n_valid
        if n_total > 0 and rng.uniform_real() < sub.n_valid / n_total:
            x_prop = sub.x_prop
        s_continue = sub.s_continue and not _is_uturn(x_minus, x_plus, v_minus, v_plus)
        return _Tree(x_minus, v_minus, g_minus, x_plus, v_plus, g_plus, x_prop, n_total, s_continue,
                     tree.alpha_sum + sub.alpha_sum, tree.n_alpha + sub.n_alpha,
                     tree.divergent or sub.divergent)

    def step(self, body: ConvexBody, distribution: Distribution, rng: RandomSource) -> None:
        self._require_initialized()
        self.stats.steps += 1
        x0 = self.x
        v0 = rng.normal_vector(body.dimension()).to(dtype=x0.dtype, device=x0.device)
        g0 = distribution.grad_neg_log_density(x0)
        H0 = hamiltonian(distribution, x0, v0)
        log_u = -H0 + rng.log_uniform()

        x_minus = x_plus = x0
        v_minus = v_plus = v0
        g_minus = g_plus = g0
        x_prop = x0
        n_valid = 1
        s_continue = True
        alpha_sum, n_alpha = 0.0, 0
        divergent = False
        depth = 0

        while s_continue and depth < self.params.max_depth:
            direction = -1 if rng.uniform_real() < 0.5 else 1
            if direction < 0:
                tree = self._build_tree(body, distribution, rng, x_minus, v_minus, g_minus,
                                        log_u, direction, depth, H0)
                x_minus, v_minus, g_minus = tree.x_minus, tree.v_minus, tree.g_minus
            else:
                tree = self._build_tree(body, distribution, rng, x_plus, v_plus, g_plus,
                                        log_u, direction, depth, H0)
                x_plus, v_plus, g_plus = tree.x_plus, tree.v_plus, tree.g_plus

            if tree.s_continue and not tree.divergent and tree.n_valid > 0:
                if rng.uniform_real() < tree.n_valid / n_valid:
                    x_prop = tree.x_prop
            n_valid += tree.n_valid
            s_continue = tree.s_continue and not _is_uturn(x_minus, x_plus, v_minus, v_plus)
            alpha_sum += tree.alpha_sum
            n_alpha += tree.n_alpha
            divergent = divergent or tree.divergent
            depth += 1

        if divergent:
            self.n_divergent += 1
            logger.debug("NUTS: divergent transition at depth %d", depth)
        if not torch.equal(x_prop, x0):
            self.stats.accepted += 1
        self.x = x_prop
        self._adapt(alpha_sum / max(1, n_alpha))

    def _adapt(self, accept_stat: float) -> None:
        n_adapt = self.params.adaptation_steps
        if self.stats.steps > n_adapt:
            return
        if self.stats.steps < n_adapt:
            self.step_size = self.dual_averaging.update(accept_stat, target=self.params.target_accept)
        else:
            self.dual_averaging.update(accept_stat, target=self.params.target_accept)
            self.step_size = self.dual_averaging.final()
            logger.debug("NUTS: adapted step size %.4g", self.step_size)
