# POLYWALK/polywalk/diagnostics.py
"""
Diagnostics for a completed batch of samples.

All functions take a (dim, n) array with one sample per column (a sink is
accepted too) and never raise on degenerate data: a chain that does not
move scores an effective sample size of zero.
"""

import logging
import numpy as np
import pandas as pd
import torch
from typing import NamedTuple, Optional


class ESSResult(NamedTuple):
    per_coordinate: np.ndarray
    minimum: float


def as_sample_matrix(samples) -> np.ndarray:
    """(dim, n) float array from an array, a tensor or a sink."""
    if hasattr(samples, 'as_array'):
        samples = samples.as_array()
    if isinstance(samples, torch.Tensor):
        samples = samples.detach().cpu().numpy()
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr[np.newaxis, :]
    if arr.ndim != 2:
        raise ValueError(f"samples must be a (dim, n) matrix, got shape {arr.shape}")
    return arr


def autocorrelation(x: np.ndarray) -> np.ndarray:
    """
    Normalized autocorrelation function of a 1D series via FFT; acf[0] = 1.

    A series whose variance underflows to zero gets an all-NaN result.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    x = x - x.mean()
    # next power of 2 above 2n - 1 avoids circular wrap-around
    m = 1 << (2 * n - 1).bit_length()
    fx = np.fft.rfft(x, n=m)
    ac = np.fft.irfft(fx * np.conjugate(fx), n=m)[:n]
    if not ac[0] > 0.0:
        # variance below float resolution
        return np.full(n, np.nan)
    return ac / ac[0]


def _ess_1d(x: np.ndarray, max_lag: Optional[int]) -> float:
    n = x.size
    if n < 2 or not np.all(np.isfinite(x)):
        return 0.0
    if np.ptp(x) == 0.0:
        return 0.0
    rho = autocorrelation(x)
    if not np.all(np.isfinite(rho)):
        return 0.0
    last = n - 1 if max_lag is None else max(0, min(int(max_lag), n - 1))

    total = 0.0
    prev = 1.0
    for t in range(1, last + 1):
        # positive, monotone non-increasing prefix of the autocorrelations
        r = min(rho[t], prev)
        if r <= 0.0:
            break
        total += r
        prev = r
    ess = n / (1.0 + 2.0 * total)
    return float(np.clip(ess, 0.0, n))


def effective_sample_size(samples, max_lag: Optional[int] = None) -> ESSResult:
    """
    Effective sample size of each coordinate and the minimum over coordinates.

    For each coordinate, ESS = n / (1 + 2 sum rho_t), where the sum runs
    over lags t >= 1 while the autocorrelation stays positive (and is
    forced non-increasing), up to ``max_lag``. Estimates are clipped to
    [0, n]. Constant coordinates and chains shorter than two samples get 0.
    """
    arr = as_sample_matrix(samples)
    d, n = arr.shape
    if d == 0:
        return ESSResult(np.zeros(0), 0.0)
    per_coordinate = np.array([_ess_1d(arr[i], max_lag) for i in range(d)])
    return ESSResult(per_coordinate, float(per_coordinate.min()))


def split_rhat(samples) -> np.ndarray:
    """
    Split-chain potential scale reduction factor per coordinate.

    The chain is cut into two halves which are compared as independent
    chains (Gelman-Rubin). Values close to 1 indicate the halves agree.
    Coordinates with fewer than four samples or zero within-half variance
    get NaN.
    """
    arr = as_sample_matrix(samples)
    d, n = arr.shape
    half = n // 2
    if half < 2:
        return np.full(d, np.nan)
    chains = np.stack([arr[:, :half], arr[:, half:2 * half]])  # (2, d, half)
    chain_means = chains.mean(axis=2)
    B = half * np.var(chain_means, axis=0, ddof=1)
    W = np.var(chains, axis=2, ddof=1).mean(axis=0)
    var_hat = ((half - 1) / half) * W + B / half
    with np.errstate(divide='ignore', invalid='ignore'):
        rhat = np.sqrt(var_hat / W)
    return np.where(W > 0, rhat, np.nan)


def summary_table(samples, max_lag: Optional[int] = None) -> pd.DataFrame:
    """Per-coordinate mean, std, ESS and split R-hat."""
    arr = as_sample_matrix(samples)
    ess = effective_sample_size(arr, max_lag=max_lag)
    d, n = arr.shape
    return pd.DataFrame(
        {
            'mean': arr.mean(axis=1) if n else np.full(d, np.nan),
            'std': arr.std(axis=1, ddof=1) if n > 1 else np.full(d, np.nan),
            'ess': ess.per_coordinate,
            'r_hat': split_rhat(arr),
        },
        index=pd.Index([f'x{i}' for i in range(d)], name='coordinate'),
    )


def print_diagnostics(samples, logger: Optional[logging.Logger] = None) -> ESSResult:
    """Logs the summary table and the minimum ESS at INFO, to ``logger`` or the package logger."""
    if logger is None:
        logger = logging.getLogger('polywalk')
    arr = as_sample_matrix(samples)
    table = summary_table(arr)
    ess = ESSResult(table['ess'].to_numpy(), float(table['ess'].min()) if len(table) else 0.0)
    n = arr.shape[1]
    lines = [
        f"--- Diagnostics ({n} samples, {arr.shape[0]} coordinates) ---",
        table.to_string(float_format="%.4g"),
        f"min ESS: {ess.minimum:.1f} ({100.0 * ess.minimum / max(n, 1):.1f}% of samples)",
    ]
    if n and ess.minimum < 0.01 * n:
        lines.append("[WARN] ESS is near zero: increase walk_length or burn-in, "
                     "or check the walk/distribution pairing")
    for line in lines:
        logger.info(line)
    return ess
