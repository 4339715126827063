from __future__ import annotations

import numpy as np

from conftest import make_batch
from particle import ParticleState
from particle_store import ParticleBatch
from satellite_spawner import SatelliteSpawner


def _spawner(count_range=(20, 40), max_generation=1) -> SatelliteSpawner:
    return SatelliteSpawner(
        count_range=count_range,
        radius_factor=0.15,
        speed_factor_range=(5.0, 30.0),
        lift_range=(200.0, 800.0),
        alpha_factor=0.7,
        max_generation=max_generation,
    )


def _parent(store, radius=20.0, alpha=0.9):
    store.append(make_batch(
        [[120.0, 580.0]], radius, state=ParticleState.SPLATTED, splat_radii=radius * 3.0,
        colors=[[0.6, 0.02, 0.02, alpha]],
    ))
    return np.array([0])


def test_satellites_follow_parent(store, rng) -> None:
    parents = _parent(store, radius=20.0, alpha=0.9)
    batch = _spawner().spawn(store, parents, rng)

    count = len(batch.radii)
    assert 20 <= count <= 40
    assert np.allclose(batch.radii, 20.0 * 0.15)
    assert np.allclose(batch.colors[:, 3], 0.9 * 0.7)
    assert np.allclose(batch.colors[:, :3], [0.6, 0.02, 0.02])
    assert np.allclose(batch.positions, [120.0, 580.0])
    assert np.all(batch.generations == 1)
    # Launched upward (screen y grows down), horizontal speed scaled by parent radius.
    assert np.all(batch.velocities[:, 1] <= -200.0)
    assert np.all(batch.velocities[:, 1] >= -800.0)
    assert np.all(np.abs(batch.velocities[:, 0]) <= 30.0 * 20.0)
    assert batch.states is None


def test_counts_cover_configured_range(store, rng) -> None:
    parents = _parent(store)
    spawner = _spawner(count_range=(2, 4))
    counts = {len(spawner.spawn(store, parents, rng).radii) for _ in range(200)}
    assert counts == {2, 3, 4}


def test_satellites_join_store_as_flying(store, rng) -> None:
    parents = _parent(store)
    batch = _spawner(count_range=(3, 3)).spawn(store, parents, rng)
    ids = store.append(batch)
    assert len(ids) == 3
    for particle_id in ids:
        particle = store.get(int(particle_id))
        assert particle.state == ParticleState.FLYING
        assert particle.splat_radius == 0.0
        assert particle.generation == 1


def test_no_parents_no_satellites(store, rng) -> None:
    batch = _spawner().spawn(store, np.zeros(0, dtype=np.int64), rng)
    assert isinstance(batch, ParticleBatch)
    assert len(batch.radii) == 0


def test_zero_count_range(store, rng) -> None:
    parents = _parent(store)
    assert len(_spawner(count_range=(0, 0)).spawn(store, parents, rng).radii) == 0


def test_satellites_of_satellites_are_capped(store, rng) -> None:
    parents = _parent(store)
    store.generations[0] = 1
    assert len(_spawner(max_generation=1).spawn(store, parents, rng).radii) == 0
    assert len(_spawner(max_generation=2).spawn(store, parents, rng).radii) > 0
