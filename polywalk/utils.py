# POLYWALK/polywalk/utils.py

import math
import numpy as np
import torch
from scipy.special import ndtr, ndtri
from typing import Optional

from .random_source import RandomSource


def as_point(x, dtype: torch.dtype = torch.float64, device: Optional[torch.device] = None) -> torch.Tensor:
    """Copies an array-like into a detached 1-D tensor."""
    if isinstance(x, torch.Tensor):
        t = x.detach().to(dtype=dtype, device=device or x.device).clone()
    else:
        t = torch.as_tensor(np.asarray(x, dtype=np.float64), dtype=dtype, device=device or torch.device('cpu'))
    return t.reshape(-1)


def reflect(v: torch.Tensor, normal: torch.Tensor) -> torch.Tensor:
    """
    Reflect a velocity off a facet: v - 2 <v, n> n / <n, n>.

    Args:
        v:      The incoming direction. Shape: (d,)
        normal: Normal vector of the facet that was hit. Shape: (d,)

    Returns:
        The outgoing direction; its norm equals the norm of v.
    """
    return v - (2.0 * torch.dot(v, normal) / torch.dot(normal, normal)) * normal


def sample_truncated_exponential(rate: float, lo: float, hi: float, rng: RandomSource) -> float:
    """Draw t on [lo, hi] with density proportional to exp(-rate * t)."""
    width = hi - lo
    if width <= 0.0:
        return lo
    if rate == 0.0:
        return lo + width * rng.uniform_real()
    if rate < 0.0:
        return -sample_truncated_exponential(-rate, -hi, -lo, rng)
    u = rng.uniform_real()
    # inverse CDF of Exp(rate) restricted to [0, width]
    return lo - math.log1p(u * math.expm1(-rate * width)) / rate


def sample_truncated_normal(mean: float, sd: float, lo: float, hi: float, rng: RandomSource) -> float:
    """
    Draw from N(mean, sd^2) restricted to [lo, hi] by CDF inversion.

    The interval is mirrored to the lower tail where the normal CDF keeps
    its relative precision. When both bounds lie so deep in the tail that
    the CDF difference underflows, the tail is replaced by its exponential
    approximation.
    """
    alpha = (lo - mean) / sd
    beta = (hi - mean) / sd
    sign = 1.0
    if alpha > 0.0:
        alpha, beta, sign = -beta, -alpha, -1.0

    p_lo, p_hi = ndtr(alpha), ndtr(beta)
    if p_hi - p_lo > 1e-300:
        u = p_lo + (p_hi - p_lo) * rng.uniform_real()
        z = float(np.clip(ndtri(u), alpha, beta))
    else:
        # exp(-z^2 / 2) ~ exp(-beta * z) just below beta
        z = sample_truncated_exponential(beta, alpha, beta, rng) if beta < 0.0 else \
            alpha + (beta - alpha) * rng.uniform_real()
    return mean + sd * sign * z


def sample_chord(a: float, b: float, lo: float, hi: float, rng: RandomSource) -> float:
    """
    Draw t on [lo, hi] with density proportional to exp(-(b t + a t^2 / 2)).

    This is the restriction of a Gaussian (a > 0), exponential (a == 0) or
    uniform (a == b == 0) target to a chord of the body.
    """
    if a > 0.0:
        return sample_truncated_normal(-b / a, 1.0 / math.sqrt(a), lo, hi, rng)
    return sample_truncated_exponential(b, lo, hi, rng)
