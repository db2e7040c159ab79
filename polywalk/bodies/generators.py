# POLYWALK/polywalk/bodies/generators.py

import itertools
import math
import numpy as np

from .hpolytope import HPolytope


def generate_cube(dim: int, half_width: float = 1.0) -> HPolytope:
    """Axis-aligned cube [-w, w]^dim centered at the origin."""
    return generate_box(-half_width * np.ones(dim), half_width * np.ones(dim))


def generate_box(lower, upper) -> HPolytope:
    """
    Axis-aligned box lower <= x <= upper.

    Very unequal side lengths give the thin corridors on which billiard
    trajectories bounce many times.
    """
    lower = np.asarray(lower, dtype=np.float64).reshape(-1)
    upper = np.asarray(upper, dtype=np.float64).reshape(-1)
    if lower.shape != upper.shape or np.any(upper <= lower):
        raise ValueError("box needs upper > lower in every coordinate")
    dim = lower.shape[0]
    eye = np.eye(dim)
    P = HPolytope(np.vstack([eye, -eye]), np.concatenate([upper, -lower]))
    P.set_inner_ball(0.5 * (lower + upper), 0.5 * float(np.min(upper - lower)))
    return P


def generate_cross_polytope(dim: int) -> HPolytope:
    """Unit l1-ball {x : |x_1| + ... + |x_d| <= 1}, with 2^dim facets."""
    if dim > 16:
        raise ValueError("the H-representation of the cross-polytope has 2^dim facets; dim must be <= 16")
    A = np.array(list(itertools.product([-1.0, 1.0], repeat=dim)))
    P = HPolytope(A, np.ones(A.shape[0]))
    P.set_inner_ball(np.zeros(dim), 1.0 / math.sqrt(dim))
    return P


def generate_simplex(dim: int) -> HPolytope:
    """Standard simplex {x : x >= 0, x_1 + ... + x_d <= 1}."""
    A = np.vstack([-np.eye(dim), np.ones((1, dim))])
    b = np.concatenate([np.zeros(dim), [1.0]])
    P = HPolytope(A, b)
    r = 1.0 / (dim + math.sqrt(dim))
    P.set_inner_ball(r * np.ones(dim), r)
    return P
