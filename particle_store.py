# particle_store.py
"""
Owns the live particle population.

The store keeps every per-particle field in its own NumPy array (Structure of
Arrays) so the physics phases can run vectorised or JIT-compiled loops over
the whole population. It owns identity only; behaviour lives in the phase
modules (integrator, splat_grower, satellite_spawner, cluster_merger), which
receive the store explicitly.
"""
import logging
from collections import namedtuple

import numpy as np

from constants import LOGGER_NAME
from particle import Particle, ParticleState

logger = logging.getLogger(LOGGER_NAME)

# A group of particles not yet in the store, e.g. queued satellites or merge
# aggregates. states, splat_radii and generations may be None for fresh
# primary FLYING particles.
ParticleBatch = namedtuple(
    'ParticleBatch',
    ['positions', 'velocities', 'radii', 'colors', 'noise_offsets', 'states', 'splat_radii', 'generations'],
    defaults=(None, None, None)
)


def empty_batch() -> ParticleBatch:
    return ParticleBatch(
        positions=np.zeros((0, 2)),
        velocities=np.zeros((0, 2)),
        radii=np.zeros(0),
        colors=np.zeros((0, 4)),
        noise_offsets=np.zeros(0),
        generations=np.zeros(0, dtype=np.int64),
    )


def _generations_of(batch: ParticleBatch) -> np.ndarray:
    if batch.generations is None:
        return np.zeros(len(batch.radii), dtype=np.int64)
    return np.asarray(batch.generations, dtype=np.int64).reshape(-1)


def concat_batches(batches) -> ParticleBatch:
    """Joins FLYING batches (satellite queues) into one."""
    batches = [b for b in batches if len(b.radii) > 0]
    if not batches:
        return empty_batch()
    if len(batches) == 1:
        return batches[0]
    return ParticleBatch(
        positions=np.concatenate([b.positions for b in batches]),
        velocities=np.concatenate([b.velocities for b in batches]),
        radii=np.concatenate([b.radii for b in batches]),
        colors=np.concatenate([b.colors for b in batches]),
        noise_offsets=np.concatenate([b.noise_offsets for b in batches]),
        generations=np.concatenate([_generations_of(b) for b in batches]),
    )


class ParticleStore:
    """
    Structure-of-Arrays container for all live particles.

    Data Contract:
    - Inputs: None at construction; particles arrive via append().
    - Outputs: snapshot() returns immutable Particle tuples.
    - Side Effects: Issues integer ids from a private counter.
    - Invariants:
        - All arrays share the same length.
        - Ids are unique and never reused, even after clear().
        - radii > 0; splat_radii >= radii for non-FLYING particles.
        - growth_targets is NaN until a particle touches the ground.
        - generations is 0 for burst particles, parent + 1 for satellites.
    """
    def __init__(self):
        self._next_id = 0
        self._allocate_empty()

    def _allocate_empty(self):
        self.ids = np.zeros(0, dtype=np.int64)
        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.velocities = np.zeros((0, 2), dtype=np.float64)
        self.radii = np.zeros(0, dtype=np.float64)
        self.states = np.zeros(0, dtype=np.int8)
        self.splat_radii = np.zeros(0, dtype=np.float64)
        self.growth_targets = np.zeros(0, dtype=np.float64)
        self.colors = np.zeros((0, 4), dtype=np.float64)
        self.noise_offsets = np.zeros(0, dtype=np.float64)
        self.generations = np.zeros(0, dtype=np.int64)

    def __len__(self):
        return self.ids.shape[0]

    def append(self, batch: ParticleBatch) -> np.ndarray:
        """
        Adds a batch of particles and returns their newly issued ids.

        Raises:
            ValueError: if any radius is not strictly positive or the batch
            arrays disagree in length.
        """
        radii = np.asarray(batch.radii, dtype=np.float64).reshape(-1)
        count = radii.shape[0]
        if count == 0:
            return np.zeros(0, dtype=np.int64)
        if np.any(radii <= 0):
            raise ValueError("Particle radii must be greater than zero.")

        positions = np.asarray(batch.positions, dtype=np.float64).reshape(count, 2)
        velocities = np.asarray(batch.velocities, dtype=np.float64).reshape(count, 2)
        colors = np.asarray(batch.colors, dtype=np.float64).reshape(count, 4)
        noise_offsets = np.asarray(batch.noise_offsets, dtype=np.float64).reshape(count)
        generations = _generations_of(batch).reshape(count)

        if batch.states is None:
            states = np.full(count, ParticleState.FLYING, dtype=np.int8)
        else:
            states = np.asarray(batch.states, dtype=np.int8).reshape(count)
        if batch.splat_radii is None:
            splat_radii = np.zeros(count, dtype=np.float64)
        else:
            splat_radii = np.asarray(batch.splat_radii, dtype=np.float64).reshape(count)

        new_ids = np.arange(self._next_id, self._next_id + count, dtype=np.int64)
        self._next_id += count

        self.ids = np.concatenate([self.ids, new_ids])
        self.positions = np.concatenate([self.positions, positions])
        self.velocities = np.concatenate([self.velocities, velocities])
        self.radii = np.concatenate([self.radii, radii])
        self.states = np.concatenate([self.states, states])
        self.splat_radii = np.concatenate([self.splat_radii, splat_radii])
        self.growth_targets = np.concatenate([self.growth_targets, np.full(count, np.nan)])
        self.colors = np.concatenate([self.colors, colors])
        self.noise_offsets = np.concatenate([self.noise_offsets, noise_offsets])
        self.generations = np.concatenate([self.generations, generations])
        return new_ids

    def retire(self, retired_mask: np.ndarray):
        """Removes every particle flagged in retired_mask (order of the rest is kept)."""
        survival_mask = ~np.asarray(retired_mask, dtype=bool)
        self.ids = self.ids[survival_mask]
        self.positions = self.positions[survival_mask]
        self.velocities = self.velocities[survival_mask]
        self.radii = self.radii[survival_mask]
        self.states = self.states[survival_mask]
        self.splat_radii = self.splat_radii[survival_mask]
        self.growth_targets = self.growth_targets[survival_mask]
        self.colors = self.colors[survival_mask]
        self.noise_offsets = self.noise_offsets[survival_mask]
        self.generations = self.generations[survival_mask]

    def replace(self, retired_mask: np.ndarray, batch: ParticleBatch) -> np.ndarray:
        """Retires a group of particles and appends their replacements in one step."""
        self.retire(retired_mask)
        return self.append(batch)

    def clear(self):
        old_count = len(self)
        self._allocate_empty()
        logger.debug(f"ParticleStore cleared ({old_count} particles retired).")

    def mask(self, state: ParticleState) -> np.ndarray:
        return self.states == state

    def indices(self, state: ParticleState) -> np.ndarray:
        return np.flatnonzero(self.states == state)

    def count(self, state: ParticleState = None) -> int:
        if state is None:
            return len(self)
        return int(np.count_nonzero(self.states == state))

    def all_settled(self) -> bool:
        """True when nothing is still in flight or growing. An empty store counts as settled."""
        return bool(np.all(self.states == ParticleState.SPLATTED))

    def _particle_at(self, i: int) -> Particle:
        return Particle(
            id=int(self.ids[i]),
            position=(float(self.positions[i, 0]), float(self.positions[i, 1])),
            velocity=(float(self.velocities[i, 0]), float(self.velocities[i, 1])),
            radius=float(self.radii[i]),
            state=ParticleState(int(self.states[i])),
            splat_radius=float(self.splat_radii[i]),
            color=tuple(float(c) for c in self.colors[i]),
            noise_offset=float(self.noise_offsets[i]),
            generation=int(self.generations[i]),
        )

    def snapshot(self) -> tuple:
        """Immutable copy of the current population, safe to hand across threads."""
        return tuple(self._particle_at(i) for i in range(len(self)))

    def index_of(self, particle_id: int) -> int:
        hits = np.flatnonzero(self.ids == particle_id)
        if hits.size == 0:
            raise KeyError(f"No live particle with id {particle_id}.")
        return int(hits[0])

    def get(self, particle_id: int) -> Particle:
        return self._particle_at(self.index_of(particle_id))
