# splat_grower.py
"""
Growth of ground footprints.

A particle that has touched the ground keeps spreading by a fixed increment
per step until its footprint passes radius * multiplier, where the multiplier
was drawn once at contact time. It is then SPLATTED and frozen.
"""
import logging

import numpy as np

from constants import LOGGER_NAME
from particle import ParticleState
from particle_store import ParticleStore

logger = logging.getLogger(LOGGER_NAME)


def sample_growth_targets(store: ParticleStore, indices: np.ndarray, multiplier_range, rng: np.random.Generator):
    """Draws each newly grounded particle's final size multiplier."""
    if len(indices) == 0:
        return
    low, high = multiplier_range
    store.growth_targets[indices] = rng.uniform(low, high, len(indices))


def grow_splats(store: ParticleStore, growth_step: float) -> np.ndarray:
    """
    Advances every SPLATTING particle by one growth increment.

    Data Contract:
    - Inputs:
        - store (ParticleStore): modified in place.
        - growth_step (float): radius increment per step, > 0.
    - Outputs: indices of particles that finalised this step. Each particle
      appears here exactly once over its lifetime, because it leaves the
      SPLATTING state at the same moment.
    - Invariants: splat_radius never decreases.
    """
    splatting = store.mask(ParticleState.SPLATTING)
    if not np.any(splatting):
        return np.zeros(0, dtype=np.int64)

    # A particle placed directly into SPLATTING without a target falls back
    # to the smallest meaningful multiplier of 1 (finalise on next growth).
    targets = np.where(np.isnan(store.growth_targets), 1.0, store.growth_targets)

    store.splat_radii[splatting] += growth_step
    finished = splatting & (store.splat_radii > store.radii * targets)
    store.states[finished] = ParticleState.SPLATTED
    return np.flatnonzero(finished)


def max_growth_steps(radius: float, multiplier: float, growth_step: float) -> int:
    """Upper bound on the number of growth steps a single splat can take."""
    return int(np.floor(radius * (multiplier - 1.0) / growth_step)) + 1
