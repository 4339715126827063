from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from noise_field import NoiseField
from particle import ParticleState
from particle_store import ParticleBatch, ParticleStore


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def noise() -> NoiseField:
    return NoiseField(seed=7)


@pytest.fixture
def small_config() -> dict:
    # Impact close to the ground so a full batch settles quickly.
    return {
        'burst_count': 12,
        'satellite_count_range': [2, 4],
        'ground_y': 600.0,
        'iterations': 3000,
        'log_throttle_steps': 50,
    }


def make_batch(positions, radii, state=ParticleState.SPLATTED, splat_radii=None, colors=None,
               noise_offsets=None, velocities=None) -> ParticleBatch:
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    count = positions.shape[0]
    radii = np.broadcast_to(np.asarray(radii, dtype=np.float64), (count,)).copy()
    if splat_radii is None:
        splat_radii = radii.copy() if state != ParticleState.FLYING else np.zeros(count)
    if colors is None:
        colors = np.tile([0.5, 0.02, 0.02, 1.0], (count, 1))
    if noise_offsets is None:
        noise_offsets = np.arange(count, dtype=np.float64) * 10.0
    if velocities is None:
        velocities = np.zeros((count, 2))
    return ParticleBatch(
        positions=positions,
        velocities=velocities,
        radii=radii,
        colors=np.asarray(colors, dtype=np.float64),
        noise_offsets=np.asarray(noise_offsets, dtype=np.float64),
        states=np.full(count, state, dtype=np.int8),
        splat_radii=np.broadcast_to(np.asarray(splat_radii, dtype=np.float64), (count,)).copy(),
    )


@pytest.fixture
def store() -> ParticleStore:
    return ParticleStore()
