from typing import Dict, Tuple, Type

from .base_walk import WalkKernel, WalkParameters, WalkStats
from .hit_and_run import CDHRWalk, HitAndRunParameters, RDHRWalk
from .ball_walk import BallWalk, BallWalkParameters
from .billiard import (
    AcceleratedBilliardWalk,
    BilliardWalk,
    BilliardWalkParameters,
    GaussianAcceleratedBilliardWalk,
)
from .dikin import BarrierWalkParameters, DikinWalk, JohnWalk, JohnWalkParameters, VaidyaWalk
from .hmc import HMCParameters, HamiltonianMonteCarloWalk
from .nuts import NutsHamiltonianMonteCarloWalk, NutsParameters
from .exact_hmc import (
    ExactHMCParameters,
    ExponentialExactHMCParameters,
    ExponentialHamiltonianMonteCarloExactWalk,
    GaussianHamiltonianMonteCarloExactWalk,
)

# Maps walk names to their classes for lookup by name.
WALK_CLASSES: Dict[str, Type[WalkKernel]] = {
    cls.name: cls for cls in (
        CDHRWalk,
        RDHRWalk,
        BallWalk,
        BilliardWalk,
        AcceleratedBilliardWalk,
        GaussianAcceleratedBilliardWalk,
        DikinWalk,
        VaidyaWalk,
        JohnWalk,
        GaussianHamiltonianMonteCarloExactWalk,
        ExponentialHamiltonianMonteCarloExactWalk,
        HamiltonianMonteCarloWalk,
        NutsHamiltonianMonteCarloWalk,
    )
}


def compatibility_matrix() -> Dict[str, Tuple[Tuple[str, ...], bool]]:
    """
    Which (walk, distribution) pairs are legal.

    Returns:
        {walk name: (supported distribution kinds, needs a polyhedral body)}
    """
    return {
        name: (tuple(cls.supported_distributions), cls.requires_polyhedral)
        for name, cls in WALK_CLASSES.items()
    }


__all__ = [
    'WalkKernel', 'WalkParameters', 'WalkStats',
    'CDHRWalk', 'RDHRWalk', 'HitAndRunParameters',
    'BallWalk', 'BallWalkParameters',
    'BilliardWalk', 'AcceleratedBilliardWalk', 'GaussianAcceleratedBilliardWalk', 'BilliardWalkParameters',
    'DikinWalk', 'VaidyaWalk', 'JohnWalk', 'BarrierWalkParameters', 'JohnWalkParameters',
    'HamiltonianMonteCarloWalk', 'HMCParameters',
    'NutsHamiltonianMonteCarloWalk', 'NutsParameters',
    'GaussianHamiltonianMonteCarloExactWalk', 'ExponentialHamiltonianMonteCarloExactWalk',
    'ExactHMCParameters', 'ExponentialExactHMCParameters',
    'WALK_CLASSES', 'compatibility_matrix',
]
