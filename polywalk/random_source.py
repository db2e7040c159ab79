# POLYWALK/polywalk/random_source.py

import math
import numpy as np
import torch
from typing import List, Optional


class RandomSource:
    """
    Seeded random stream owned by a single sampling session.

    Every draw goes through a private ``torch.Generator`` so that chains
    running side by side never share generator state. Two sources built
    from the same seed produce the same values for the same call sequence.
    """
    def __init__(
        self,
        seed: Optional[int] = None,
        dtype: torch.dtype = torch.float64,
        device: Optional[torch.device] = None,
    ):
        self.seed = seed
        self.dtype = dtype
        self.device = device or torch.device('cpu')
        self.generator = torch.Generator(device=self.device)
        if seed is None:
            self.seed = self.generator.seed()
        else:
            self.generator.manual_seed(int(seed))

    def uniform_real(self, lo: float = 0.0, hi: float = 1.0) -> float:
        u = torch.rand((), generator=self.generator, dtype=self.dtype, device=self.device).item()
        return lo + (hi - lo) * u

    def uniform_int(self, lo: int, hi: int) -> int:
        """Uniform integer in the half-open range [lo, hi)."""
        if hi <= lo:
            raise ValueError(f"empty integer range [{lo}, {hi})")
        return int(torch.randint(lo, hi, (), generator=self.generator, device=self.device).item())

    def standard_normal(self) -> float:
        return torch.randn((), generator=self.generator, dtype=self.dtype, device=self.device).item()

    def log_uniform(self) -> float:
        """log U for U uniform on (0, 1]; used by Metropolis tests."""
        return math.log1p(-self.uniform_real())

    def exponential(self, rate: float = 1.0) -> float:
        return -self.log_uniform() / rate

    def normal_vector(self, d: int) -> torch.Tensor:
        return torch.randn(d, generator=self.generator, dtype=self.dtype, device=self.device)

    def random_direction(self, d: int) -> torch.Tensor:
        """Uniformly distributed unit vector in R^d."""
        while True:
            z = self.normal_vector(d)
            norm = torch.linalg.vector_norm(z)
            if norm > 0:
                return z / norm

    def uniform_in_ball(self, d: int, radius: float = 1.0) -> torch.Tensor:
        u = self.random_direction(d)
        return radius * self.uniform_real() ** (1.0 / d) * u

    def spawn(self, n: int) -> List['RandomSource']:
        """
        Derives ``n`` statistically independent child streams.

        Intended for running several chains in parallel, one source per chain.
        """
        children = np.random.SeedSequence(self.seed).spawn(n)
        return [
            RandomSource(int(child.generate_state(1, dtype=np.uint64)[0] >> np.uint64(1)),
                         dtype=self.dtype, device=self.device)
            for child in children
        ]
