from __future__ import annotations

import numpy as np

from conftest import make_batch
from integrator import integrate_flying, steps_to_ground
from particle import ParticleState

GRAVITY = (0.0, 1400.0)
DRAG = (0.92, 0.92)
DT = 1.0 / 200.0
GROUND = 600.0


def _steps_until_contact(store, max_steps=10_000) -> int:
    for step in range(1, max_steps + 1):
        landed = integrate_flying(store, GRAVITY, DRAG, DT, GROUND)
        if len(landed):
            return step
    raise AssertionError("particle never landed")


def test_drop_from_100_units_lands_in_241_steps(store) -> None:
    # Bottom of the droplet starts exactly 100 units above the ground.
    store.append(make_batch([[200.0, 490.0]], 10.0, state=ParticleState.FLYING))

    assert _steps_until_contact(store) == 241
    assert steps_to_ground(490.0, 10.0, 0.0, GRAVITY[1], DRAG[1], DT, GROUND) == 241

    particle = store.snapshot()[0]
    assert particle.state == ParticleState.SPLATTING
    assert particle.position[1] == GROUND - 10.0
    assert particle.position[0] == 200.0
    assert particle.splat_radius == particle.radius == 10.0


def test_kernel_matches_closed_loop_count(store, rng) -> None:
    heights = rng.uniform(50.0, 500.0, 8)
    radii = rng.uniform(1.0, 30.0, 8)
    vys = rng.uniform(-800.0, 800.0, 8)
    positions = np.column_stack([np.full(8, 100.0), GROUND - radii - heights])
    velocities = np.column_stack([np.zeros(8), vys])
    store.append(make_batch(positions, radii, state=ParticleState.FLYING, velocities=velocities))

    expected = [
        steps_to_ground(positions[i, 1], radii[i], vys[i], GRAVITY[1], DRAG[1], DT, GROUND)
        for i in range(8)
    ]
    landed_at = {}
    step = 0
    while len(landed_at) < 8 and step < 20_000:
        step += 1
        for index in integrate_flying(store, GRAVITY, DRAG, DT, GROUND):
            landed_at[int(store.ids[index])] = step

    assert [landed_at[i] for i in range(8)] == expected
    assert all(s is not None and s > 0 for s in expected)


def test_drag_and_gravity_per_step(store) -> None:
    store.append(make_batch([[0.0, 0.0]], 5.0, state=ParticleState.FLYING, velocities=[[100.0, -50.0]]))
    integrate_flying(store, GRAVITY, DRAG, DT, GROUND)

    vx, vy = store.velocities[0]
    assert np.isclose(vx, 100.0 * 0.92)
    assert np.isclose(vy, -50.0 * 0.92 + 1400.0 * DT)
    assert np.allclose(store.positions[0], [vx * DT, vy * DT])


def test_only_flying_particles_move(store) -> None:
    store.append(make_batch([[10.0, 590.0]], 10.0, state=ParticleState.SPLATTED, velocities=[[5.0, 5.0]]))
    store.append(make_batch([[40.0, 100.0]], 10.0, state=ParticleState.FLYING))
    before = store.positions.copy()

    integrate_flying(store, GRAVITY, DRAG, DT, GROUND)

    assert np.array_equal(store.positions[0], before[0])
    assert not np.array_equal(store.positions[1], before[1])
    assert store.states[0] == ParticleState.SPLATTED


def test_empty_store_is_a_no_op(store) -> None:
    landed = integrate_flying(store, GRAVITY, DRAG, DT, GROUND)
    assert landed.size == 0


def test_no_landing_without_downward_motion() -> None:
    assert steps_to_ground(100.0, 5.0, 0.0, 0.0, 0.92, DT, GROUND) is None
    assert steps_to_ground(100.0, 5.0, -10.0, -1400.0, 0.92, DT, GROUND) is None


def test_upward_launch_still_lands() -> None:
    steps = steps_to_ground(500.0, 5.0, -800.0, GRAVITY[1], DRAG[1], DT, GROUND)
    straight_drop = steps_to_ground(500.0, 5.0, 0.0, GRAVITY[1], DRAG[1], DT, GROUND)
    assert steps is not None
    assert steps > straight_drop
