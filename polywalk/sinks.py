# POLYWALK/polywalk/sinks.py

import numpy as np
import torch
from typing import List

from .errors import CapacityExceeded


def _to_numpy(point) -> np.ndarray:
    if isinstance(point, torch.Tensor):
        return point.detach().cpu().numpy().astype(np.float64, copy=True)
    return np.array(point, dtype=np.float64).reshape(-1)


class ListSink:
    """Append-only sequence of points, in generation order."""

    def __init__(self):
        self.points: List[np.ndarray] = []

    def push(self, point) -> None:
        self.points.append(_to_numpy(point))

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, i: int) -> np.ndarray:
        return self.points[i]

    def as_array(self) -> np.ndarray:
        """Samples as a (dim, n) array, one column per point."""
        if not self.points:
            return np.zeros((0, 0))
        return np.stack(self.points, axis=1)


class ColumnSink:
    """
    Fixed-capacity columnar buffer: column i holds the i-th recorded point.

    Writing more than ``capacity`` points raises ``CapacityExceeded``.
    """

    def __init__(self, dim: int, capacity: int):
        if dim < 1 or capacity < 0:
            raise ValueError(f"invalid sink shape ({dim}, {capacity})")
        self.dim = dim
        self.capacity = capacity
        self.data = np.zeros((dim, capacity), dtype=np.float64)
        self._n = 0

    def push(self, point) -> None:
        if self._n >= self.capacity:
            raise CapacityExceeded(f"sink is full ({self.capacity} columns)")
        x = _to_numpy(point)
        if x.shape != (self.dim,):
            raise ValueError(f"point has shape {x.shape}, sink expects ({self.dim},)")
        self.data[:, self._n] = x
        self._n += 1

    def __len__(self) -> int:
        return self._n

    def as_array(self) -> np.ndarray:
        return self.data[:, :self._n]
