# POLYWALK/polywalk/sampling.py

import logging
import time
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from tqdm.auto import trange

from .bodies.base import ConvexBody
from .distributions import Distribution
from .errors import ConvergenceFailure, SamplingCancelled, validate_run_arguments
from .random_source import RandomSource
from .sinks import ColumnSink
from .walks.base_walk import WalkKernel

logger = logging.getLogger('polywalk')

FAILURE_MODES = ('raise', 'mark')


@dataclass
class SamplingReport:
    n_steps: int = 0
    n_failures: int = 0
    # indices of recorded samples whose walk segment contained a failed step
    unreliable_samples: List[int] = field(default_factory=list)
    acceptance_rate: float = 0.0
    runtime: float = 0.0


def sample_points(
    body: ConvexBody,
    start,
    walk: WalkKernel,
    distribution: Distribution,
    rng: RandomSource,
    walk_length: int,
    n_samples: int,
    n_burns: int,
    sink,
    *,
    on_failure: str = 'raise',
    cancel: Optional[Callable[[], bool]] = None,
    progress: bool = False,
) -> SamplingReport:
    """
    Runs one sampling session.

    Performs exactly ``n_burns`` unrecorded steps, then for each of the
    ``n_samples`` samples performs ``walk_length`` steps and pushes the
    walk's current point into ``sink``. ``walk_length = 0`` records the
    current state without moving.

    Args:
        start: starting point; None uses the center of the body's inner ball
        on_failure: 'raise' propagates ``ConvergenceFailure``; 'mark' logs it,
            keeps the point the walk held before the failed step and lists
            the affected samples in the report
        cancel: called before every step; returning True stops the run with
            ``SamplingCancelled``
        progress: show a tqdm progress bar over the samples

    Returns:
        SamplingReport with step and failure accounting.
    """
    validate_run_arguments(walk_length, n_samples, n_burns)
    if on_failure not in FAILURE_MODES:
        raise ValueError(f"on_failure must be one of {FAILURE_MODES}, got {on_failure!r}")

    if start is None:
        start, _ = body.inner_ball()
    walk.initialize(body, distribution, start, rng)
    report = SamplingReport()
    logger.info("Sampling %d points with %s from %s (walk_length=%d, burn-in=%d, dim=%d)",
                n_samples, walk.name, type(distribution).__name__, walk_length, n_burns, body.dimension())
    start_time = time.time()

    def advance(sample_index: Optional[int]) -> None:
        if cancel is not None and cancel():
            raise SamplingCancelled(f"sampling cancelled after {report.n_steps} steps")
        try:
            walk.step(body, distribution, rng)
        except ConvergenceFailure as e:
            if on_failure == 'raise':
                raise
            report.n_failures += 1
            logger.warning("Step %d failed: %s", report.n_steps, e)
            if sample_index is not None and (not report.unreliable_samples
                                              or report.unreliable_samples[-1] != sample_index):
                report.unreliable_samples.append(sample_index)
        finally:
            report.n_steps += 1

    for _ in range(n_burns):
        advance(None)

    with trange(n_samples, desc=f"{walk.name} Sampling", leave=False, dynamic_ncols=True,
                disable=not progress) as pbar:
        for i in pbar:
            for _ in range(walk_length):
                advance(i)
            sink.push(walk.current_point())
            if progress:
                pbar.set_postfix({'accept': f'{walk.stats.acceptance_rate:.3f}',
                                  'n_fails': report.n_failures})

    report.acceptance_rate = walk.stats.acceptance_rate
    report.runtime = time.time() - start_time
    logger.info("Finished %d steps in %.2fs (acceptance %.3f, %d failed steps)",
                report.n_steps, report.runtime, report.acceptance_rate, report.n_failures)
    return report


run = sample_points


def sample_matrix(
    body: ConvexBody,
    walk: WalkKernel,
    distribution: Distribution,
    rng: RandomSource,
    walk_length: int,
    n_samples: int,
    n_burns: int = 0,
    start=None,
    **kwargs,
) -> np.ndarray:
    """Runs ``sample_points`` into a ``ColumnSink`` and returns the (dim, n_samples) array."""
    sink = ColumnSink(body.dimension(), n_samples)
    sample_points(body, start, walk, distribution, rng, walk_length, n_samples, n_burns, sink, **kwargs)
    return sink.as_array()
