# integrator.py

import logging

import numba
import numpy as np

from constants import LOGGER_NAME, STATE_FLYING, STATE_SPLATTING
from particle_store import ParticleStore

logger = logging.getLogger(LOGGER_NAME)

# --- JIT-Compiled Physics Functions ---
# Kept outside any class and operating only on NumPy arrays and scalars, as
# required by Numba's nopython mode. fastmath stays off so that the kernel and
# the pure-Python steps_to_ground() produce bit-identical trajectories.

@numba.jit(nopython=True)
def _integrate_flying_jit(positions, velocities, radii, states, splat_radii,
                          gravity_x, gravity_y, drag_x, drag_y, dt, ground_y, contacts):
    """
    Advances every FLYING particle by one explicit Euler step with per-axis
    drag, then resolves ground contact. Writes True into contacts[i] for each
    particle that touched down this step. Returns the number of contacts.
    """
    num_contacts = 0
    for i in range(positions.shape[0]):
        if states[i] != STATE_FLYING:
            continue

        velocities[i, 0] = velocities[i, 0] * drag_x + gravity_x * dt
        velocities[i, 1] = velocities[i, 1] * drag_y + gravity_y * dt
        positions[i, 0] += velocities[i, 0] * dt
        positions[i, 1] += velocities[i, 1] * dt

        if positions[i, 1] + radii[i] >= ground_y:
            positions[i, 1] = ground_y - radii[i]
            states[i] = STATE_SPLATTING
            splat_radii[i] = radii[i]
            contacts[i] = True
            num_contacts += 1
    return num_contacts


def integrate_flying(store: ParticleStore, gravity, drag, dt: float, ground_y: float) -> np.ndarray:
    """
    Runs one integration step over the FLYING population of a store.

    Data Contract:
    - Inputs:
        - store (ParticleStore): modified in place.
        - gravity (sequence of 2 floats): acceleration, +y is down.
        - drag (sequence of 2 floats): per-step velocity factors (x, y).
        - dt (float): timestep in seconds.
        - ground_y (float): height of the ground line.
    - Outputs: indices (into the store arrays) of particles that touched down.
    - Invariants: touched-down particles rest exactly on the ground with
      splat_radius == radius and state SPLATTING.
    """
    if len(store) == 0:
        return np.zeros(0, dtype=np.int64)

    contacts = np.zeros(len(store), dtype=np.bool_)
    _integrate_flying_jit(
        store.positions,
        store.velocities,
        store.radii,
        store.states,
        store.splat_radii,
        float(gravity[0]), float(gravity[1]),
        float(drag[0]), float(drag[1]),
        float(dt), float(ground_y),
        contacts
    )
    return np.flatnonzero(contacts)


def steps_to_ground(y: float, radius: float, vy: float, gravity_y: float, drag_y: float,
                    dt: float, ground_y: float, max_steps: int = 1_000_000):
    """
    Number of integration steps until a particle first touches the ground.

    Replays the vertical half of the integrator's recurrence exactly, so the
    count matches integrate_flying() step for step. Returns None when the
    particle can never land (non-positive gravity with no downward velocity)
    or has not landed within max_steps.
    """
    if gravity_y <= 0 and vy <= 0:
        return None
    for step in range(1, max_steps + 1):
        vy = vy * drag_y + gravity_y * dt
        y += vy * dt
        if y + radius >= ground_y:
            return step
    logger.warning(f"Particle did not land within {max_steps} steps.")
    return None
