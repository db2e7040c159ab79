# POLYWALK/polywalk/distributions.py

import torch
from abc import ABC, abstractmethod
from torch.func import grad
from typing import Callable, Optional, Tuple

from .errors import IncompatibleConfiguration
from .utils import as_point


class Distribution(ABC):
    """
    Target density on a convex body, known up to a normalizing constant.

    Subclasses describe the density through its potential f = -log density.
    ``smoothness`` is a Lipschitz constant of the gradient of f; walks use it
    to pick default step sizes.
    """
    kind: str = ''
    smoothness: float = 0.0

    @abstractmethod
    def neg_log_density(self, x: torch.Tensor) -> float:
        pass

    @abstractmethod
    def grad_neg_log_density(self, x: torch.Tensor) -> torch.Tensor:
        pass

    def line_restriction(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float]:
        """
        Coefficients (a, b) with f(x + t u) = f(x) + b t + a t^2 / 2.

        Only defined for targets whose potential is at most quadratic.
        """
        raise NotImplementedError(f"{type(self).__name__} has no closed-form restriction to a line")

    def check_dimension(self, d: int) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class UniformDistribution(Distribution):
    kind = 'uniform'

    def neg_log_density(self, x: torch.Tensor) -> float:
        return 0.0

    def grad_neg_log_density(self, x: torch.Tensor) -> torch.Tensor:
        return torch.zeros_like(x)

    def line_restriction(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float]:
        return 0.0, 0.0


class SphericalGaussianDistribution(Distribution):
    """Isotropic Gaussian exp(-|x - mode|^2 / (2 variance)); the mode defaults to the origin."""
    kind = 'spherical_gaussian'

    def __init__(self, variance: float = 1.0, mode=None):
        if variance <= 0:
            raise ValueError(f"variance must be positive, got {variance}")
        self.variance = float(variance)
        self.mode = None if mode is None else as_point(mode)
        self.smoothness = 1.0 / self.variance

    def _centered(self, x: torch.Tensor) -> torch.Tensor:
        if self.mode is None:
            return x
        return x - self.mode.to(dtype=x.dtype, device=x.device)

    def neg_log_density(self, x: torch.Tensor) -> float:
        y = self._centered(x)
        return 0.5 * torch.dot(y, y).item() / self.variance

    def grad_neg_log_density(self, x: torch.Tensor) -> torch.Tensor:
        return self._centered(x) / self.variance

    def line_restriction(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float]:
        y = self._centered(x)
        return torch.dot(u, u).item() / self.variance, torch.dot(y, u).item() / self.variance

    def check_dimension(self, d: int) -> None:
        if self.mode is not None and self.mode.shape[0] != d:
            raise IncompatibleConfiguration(f"mode has dimension {self.mode.shape[0]}, body has {d}")

    def __repr__(self) -> str:
        return f"SphericalGaussianDistribution(variance={self.variance})"


class GaussianDistribution(Distribution):
    """
    General Gaussian with an arbitrary (not necessarily axis-aligned)
    covariance: f(x) = (x - mode)^T covariance^{-1} (x - mode) / 2.
    """
    kind = 'gaussian'

    def __init__(self, covariance, mode=None):
        cov = torch.as_tensor(covariance, dtype=torch.float64)
        if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
            raise ValueError("covariance must be a square matrix")
        if not torch.allclose(cov, cov.T):
            raise ValueError("covariance must be symmetric")
        L, info = torch.linalg.cholesky_ex(cov)
        if int(info) != 0:
            raise ValueError("covariance must be positive definite")
        self.covariance = cov
        self.precision = torch.cholesky_inverse(L)
        self.mode = torch.zeros(cov.shape[0], dtype=torch.float64) if mode is None else as_point(mode)
        if self.mode.shape[0] != cov.shape[0]:
            raise ValueError("mode and covariance dimensions differ")
        self.smoothness = torch.linalg.eigvalsh(self.precision).max().item()

    def neg_log_density(self, x: torch.Tensor) -> float:
        y = x - self.mode
        return 0.5 * torch.dot(y, self.precision @ y).item()

    def grad_neg_log_density(self, x: torch.Tensor) -> torch.Tensor:
        return self.precision @ (x - self.mode)

    def line_restriction(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float]:
        Pu = self.precision @ u
        return torch.dot(u, Pu).item(), torch.dot(x - self.mode, Pu).item()

    def check_dimension(self, d: int) -> None:
        if self.mode.shape[0] != d:
            raise IncompatibleConfiguration(f"covariance has dimension {self.mode.shape[0]}, body has {d}")

    def __repr__(self) -> str:
        return f"GaussianDistribution(dim={self.mode.shape[0]})"


class ExponentialDistribution(Distribution):
    """Exponential density exp(-<c, x> / variance) along the direction c."""
    kind = 'exponential'

    def __init__(self, direction, variance: float = 1.0):
        if variance <= 0:
            raise ValueError(f"variance must be positive, got {variance}")
        self.direction = as_point(direction)
        self.variance = float(variance)

    def neg_log_density(self, x: torch.Tensor) -> float:
        return torch.dot(self.direction, x).item() / self.variance

    def grad_neg_log_density(self, x: torch.Tensor) -> torch.Tensor:
        return self.direction / self.variance

    def line_restriction(self, x: torch.Tensor, u: torch.Tensor) -> Tuple[float, float]:
        return 0.0, torch.dot(self.direction, u).item() / self.variance

    def check_dimension(self, d: int) -> None:
        if self.direction.shape[0] != d:
            raise IncompatibleConfiguration(f"direction has dimension {self.direction.shape[0]}, body has {d}")

    def __repr__(self) -> str:
        return f"ExponentialDistribution(variance={self.variance})"


class LogConcaveDistribution(Distribution):
    """
    Arbitrary log-concave density given by oracles.

    ``value_fn`` returns the potential f(x) = -log density(x) (up to a
    constant) as a scalar tensor; ``grad_fn`` returns its gradient. When
    ``grad_fn`` is omitted the gradient is taken with ``torch.func.grad``.
    The oracles must agree (grad_fn is the derivative of value_fn); this is
    not checked.

    Args:
        L: Lipschitz constant of the gradient
        m: strong convexity constant
    """
    kind = 'logconcave'

    def __init__(
        self,
        value_fn: Callable[[torch.Tensor], torch.Tensor],
        grad_fn: Optional[Callable[[torch.Tensor], torch.Tensor]] = None,
        L: float = 1.0,
        m: float = 1.0,
    ):
        if L <= 0 or m <= 0:
            raise ValueError("L and m must be positive")
        self.value_fn = value_fn
        self.grad_fn = grad_fn if grad_fn is not None else grad(value_fn)
        self.L = float(L)
        self.m = float(m)
        self.smoothness = self.L

    @property
    def kappa(self) -> float:
        return self.L / self.m

    def neg_log_density(self, x: torch.Tensor) -> float:
        return float(self.value_fn(x))

    def grad_neg_log_density(self, x: torch.Tensor) -> torch.Tensor:
        return torch.as_tensor(self.grad_fn(x), dtype=x.dtype, device=x.device).reshape(x.shape)

    def __repr__(self) -> str:
        return f"LogConcaveDistribution(L={self.L}, m={self.m})"
