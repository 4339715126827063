# satellite_spawner.py

import logging

import numpy as np

from constants import LOGGER_NAME
from particle_store import ParticleBatch, ParticleStore, concat_batches, empty_batch

logger = logging.getLogger(LOGGER_NAME)


class SatelliteSpawner:
    """
    Emits the small secondary droplets thrown off when a splat finalises.

    Satellites start at the parent's position as ordinary FLYING particles,
    so they still fall, collide and splat like the primary burst.

    Data Contract:
    - Inputs:
        - count_range ([int, int]): satellites per parent, inclusive.
        - radius_factor (float): satellite radius as a fraction of the parent radius.
        - speed_factor_range ([float, float]): horizontal speed in multiples of parent radius.
        - lift_range ([float, float]): magnitude of the upward launch velocity.
        - alpha_factor (float): parent alpha multiplier.
        - max_generation (int): parents of this generation or later emit nothing,
          which bounds the cascade of satellites spawning satellites.
    - Outputs: spawn() returns a ParticleBatch; nothing is written to any store.
    - Invariants: every satellite radius is parent.radius * radius_factor.
    """
    def __init__(self, count_range, radius_factor: float, speed_factor_range, lift_range, alpha_factor: float,
                 max_generation: int = 1):
        self.count_min, self.count_max = int(count_range[0]), int(count_range[1])
        self.radius_factor = radius_factor
        self.speed_factor_range = tuple(speed_factor_range)
        self.lift_range = tuple(lift_range)
        self.alpha_factor = alpha_factor
        self.max_generation = max_generation

    @classmethod
    def from_config(cls, config: dict) -> "SatelliteSpawner":
        return cls(
            count_range=config['satellite_count_range'],
            radius_factor=config['satellite_radius_factor'],
            speed_factor_range=config['satellite_speed_factor_range'],
            lift_range=config['satellite_lift_range'],
            alpha_factor=config['satellite_alpha_factor'],
            max_generation=config['satellite_max_generation'],
        )

    def spawn_one(self, position, radius: float, color, rng: np.random.Generator, noise_offset_range,
                  generation: int = 0) -> ParticleBatch:
        """Satellites for a single parent."""
        count = int(rng.integers(self.count_min, self.count_max, endpoint=True))
        if count == 0:
            return empty_batch()

        angles = rng.uniform(0.0, 2.0 * np.pi, count)
        speeds = radius * rng.uniform(self.speed_factor_range[0], self.speed_factor_range[1], count)
        lifts = rng.uniform(self.lift_range[0], self.lift_range[1], count)

        velocities = np.empty((count, 2))
        velocities[:, 0] = np.cos(angles) * speeds
        # Screen y grows downward: negative vy throws the droplet up so it
        # arcs briefly before gravity brings it back to the ground.
        velocities[:, 1] = -lifts

        colors = np.tile(np.asarray(color, dtype=np.float64), (count, 1))
        colors[:, 3] *= self.alpha_factor

        return ParticleBatch(
            positions=np.tile(np.asarray(position, dtype=np.float64), (count, 1)),
            velocities=velocities,
            radii=np.full(count, radius * self.radius_factor),
            colors=colors,
            noise_offsets=rng.uniform(noise_offset_range[0], noise_offset_range[1], count),
            generations=np.full(count, generation + 1, dtype=np.int64),
        )

    def spawn(self, store: ParticleStore, parent_indices: np.ndarray, rng: np.random.Generator,
              noise_offset_range=(0.0, 1000.0)) -> ParticleBatch:
        """
        Satellites for every finalised parent, in parent order.

        The returned batch is meant to be queued and appended after the
        current step completes.
        """
        parent_indices = np.asarray(parent_indices, dtype=np.int64)
        parent_indices = parent_indices[store.generations[parent_indices] < self.max_generation]
        if len(parent_indices) == 0:
            return empty_batch()
        batches = [
            self.spawn_one(
                store.positions[i], float(store.radii[i]), store.colors[i], rng, noise_offset_range,
                generation=int(store.generations[i])
            )
            for i in parent_indices
        ]
        batch = concat_batches(batches)
        logger.debug(f"{len(parent_indices)} splat(s) finalised, {len(batch.radii)} satellite(s) queued.")
        return batch
