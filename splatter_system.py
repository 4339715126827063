# splatter_system.py

import logging
import time
from collections import namedtuple

import numpy as np

from cluster_merger import merge_settled
from config_loader import build_simulation_config
from constants import DEFAULT_DIRECTION, LOGGER_NAME
from contour import ContourSynthesizer
from integrator import integrate_flying
from noise_field import NoiseField
from particle import ParticleState
from particle_store import ParticleBatch, ParticleStore, concat_batches, empty_batch
from satellite_spawner import SatelliteSpawner
from splat_grower import grow_splats, sample_growth_targets

logger = logging.getLogger(LOGGER_NAME)

StepReport = namedtuple('StepReport', ['landed', 'finalised', 'satellites', 'merged_groups', 'particles_retired'])
BatchReport = namedtuple('BatchReport', ['steps', 'settled', 'timed_out', 'particle_count'])


def normalize_vectors(vectors, default=DEFAULT_DIRECTION) -> np.ndarray:
    """
    Scales each row of an (N, 2) array to unit length.

    Rows of zero length have no direction and are replaced by `default`
    instead of producing NaNs.
    """
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 2)
    lengths = np.linalg.norm(vectors, axis=1)
    unit = np.empty_like(vectors)
    nonzero = lengths > 0
    unit[nonzero] = vectors[nonzero] / lengths[nonzero, np.newaxis]
    unit[~nonzero] = default
    return unit


class SplatterSystem:
    """
    Runs the splatter simulation for one impact at a time.

    Each step executes the phases in a fixed order: integrate every FLYING
    particle, grow every SPLATTING particle (queueing satellites for those
    that finalise), merge the SPLATTED population, and only then fold the
    queued satellites into the store. A satellite is therefore never visited
    by the step that created it.

    Data Contract:
    - Inputs:
        - config (dict): The 'simulation' section of the config file. Missing
          keys fall back to the defaults in config_loader.
        - rng (np.random.Generator): The master seeded random number generator.
        - noise_field (NoiseField | None): shared with the contour synthesizer.
    - Outputs: current_particles() / render_hints() snapshots.
    - Side Effects: Owns and mutates the particle store.
    - Invariants: The config is validated before any particle exists; all
      randomness is drawn from the injected generator.
    """
    def __init__(self, config: dict, rng: np.random.Generator, noise_field: NoiseField = None,
                 synthesizer: ContourSynthesizer = None):
        self.config = build_simulation_config(config)
        self.rng = rng
        self.store = ParticleStore()
        self.noise_field = noise_field if noise_field is not None else NoiseField()
        self.synthesizer = synthesizer if synthesizer is not None else ContourSynthesizer(self.noise_field)
        self.spawner = SatelliteSpawner.from_config(self.config)

        self.gravity = tuple(self.config['gravity'])
        self.drag = tuple(self.config['drag'])
        self.dt = self.config['dt']
        self.ground_y = self.config['ground_y']

        self.step_count = 0
        self._pending = empty_batch()

        logger.info(
            f"SplatterSystem created: burst of {self.config['burst_count']}, "
            f"gravity {self.gravity}, drag {self.drag}, dt {self.dt:.4f}, ground at {self.ground_y}."
        )

    # --- Seeding ---

    def _burst(self, point, direction) -> ParticleBatch:
        cfg = self.config
        count = cfg['burst_count']
        rng = self.rng

        axis = normalize_vectors(direction)[0]
        axis_angle = np.arctan2(axis[1], axis[0])
        half = cfg['burst_cone_half_angle']
        angles = axis_angle + rng.uniform(-half, half, count)
        speeds = rng.uniform(cfg['burst_speed_range'][0], cfg['burst_speed_range'][1], count)

        velocities = np.column_stack([np.cos(angles) * speeds, np.sin(angles) * speeds])
        velocities[:, 1] -= cfg['burst_upward_kick']

        colors = np.empty((count, 4))
        colors[:, 0] = rng.uniform(cfg['color_red_range'][0], cfg['color_red_range'][1], count)
        colors[:, 1] = cfg['color_green']
        colors[:, 2] = cfg['color_blue']
        colors[:, 3] = rng.uniform(cfg['color_alpha_range'][0], cfg['color_alpha_range'][1], count)

        return ParticleBatch(
            positions=np.tile(np.asarray(point, dtype=np.float64), (count, 1)),
            velocities=velocities,
            radii=rng.uniform(cfg['burst_radius_range'][0], cfg['burst_radius_range'][1], count),
            colors=colors,
            noise_offsets=rng.uniform(cfg['noise_offset_range'][0], cfg['noise_offset_range'][1], count),
        )

    def seed(self, point, direction=DEFAULT_DIRECTION) -> np.ndarray:
        """
        Replaces the population with a fresh burst of FLYING particles at point.

        The burst fans out in a cone around `direction` (default straight
        down); a zero-length direction falls back to the default.
        """
        self.clear()
        return self.store.append(self._burst(point, direction))

    def on_impact(self, point, direction=DEFAULT_DIRECTION) -> BatchReport:
        """Handles a tap: one splat at a time, simulated to completion before returning."""
        logger.info(f"Impact at ({point[0]:.1f}, {point[1]:.1f}).")
        self.seed(point, direction)
        return self.run_batch()

    def clear(self):
        self.store.clear()
        self._pending = empty_batch()
        self.step_count = 0
        logger.info("Particles cleared.")

    # --- Simulation ---

    def step(self) -> StepReport:
        """Advances the whole system by one fixed timestep."""
        cfg = self.config

        # 1. Flight and ground contact
        landed = integrate_flying(self.store, self.gravity, self.drag, self.dt, self.ground_y)
        sample_growth_targets(self.store, landed, cfg['growth_multiplier_range'], self.rng)

        # 2. Footprint growth, satellites queued for anything that finalised
        finalised = grow_splats(self.store, cfg['growth_step'])
        satellites = self.spawner.spawn(self.store, finalised, self.rng, cfg['noise_offset_range'])
        self._pending = concat_batches([self._pending, satellites])

        # 3. Coalesce settled footprints
        merge = merge_settled(self.store, cfg['proximity_factor'])

        # 4. Satellites join from the next step on
        num_satellites = len(self._pending.radii)
        if num_satellites:
            self.store.append(self._pending)
            self._pending = empty_batch()

        self.step_count += 1
        return StepReport(
            landed=len(landed),
            finalised=len(finalised),
            satellites=num_satellites,
            merged_groups=merge.groups_merged,
            particles_retired=merge.particles_retired,
        )

    def run_batch(self, iterations: int = None, time_limit: float = None) -> BatchReport:
        """
        Runs a synchronous batch of steps.

        Stops at the iteration budget, as soon as everything has settled (when
        'stop_when_settled' is on), or when the optional wall-clock limit
        expires. Stopping on the time limit leaves particles mid-flight; they
        are simply drawn where they are.
        """
        cfg = self.config
        if iterations is None:
            iterations = cfg['iterations']
        if time_limit is None:
            time_limit = cfg['batch_time_limit']
        log_throttle = cfg['log_throttle_steps']

        started = time.perf_counter()
        steps = 0
        timed_out = False
        while steps < iterations:
            if cfg['stop_when_settled'] and self.settled():
                break
            if time_limit is not None and time.perf_counter() - started >= time_limit:
                timed_out = True
                logger.warning(
                    f"Batch time limit of {time_limit:.3f}s reached after {steps} steps; "
                    f"{self.store.count() - self.store.count(ParticleState.SPLATTED)} particle(s) unresolved."
                )
                break

            report = self.step()
            steps += 1

            # Hot loops must throttle logs
            if steps % log_throttle == 0:
                logger.debug(
                    f"Step={self.step_count}, "
                    f"Flying={self.store.count(ParticleState.FLYING)}, "
                    f"Splatting={self.store.count(ParticleState.SPLATTING)}, "
                    f"Splatted={self.store.count(ParticleState.SPLATTED)}, "
                    f"Satellites={report.satellites}, "
                    f"Merged={report.merged_groups}"
                )

        settled = self.settled()
        logger.info(
            f"Batch finished after {steps} step(s): {len(self.store)} particle(s), "
            f"{'settled' if settled else 'not settled'}."
        )
        return BatchReport(steps=steps, settled=settled, timed_out=timed_out, particle_count=len(self.store))

    def settled(self) -> bool:
        return self.store.all_settled() and len(self._pending.radii) == 0

    # --- Read-only views ---

    def current_particles(self) -> tuple:
        return self.store.snapshot()

    def render_hints(self, time: float = 0.0) -> tuple:
        return tuple(self.synthesizer.render_hints(p, time) for p in self.current_particles())
