# config_loader.py
"""
Configuration loading and validation.

The simulation is driven by a plain dictionary (the 'simulation' section of
config.json). Missing keys fall back to DEFAULT_SIMULATION_CONFIG, and every
randomised range is checked once, at construction, so that a bad value is a
startup error rather than a failure halfway through a batch.
"""
import copy
import json
import logging
import math

import numpy as np

from constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# --- Data Contracts ---
#
# load_config(path: str) -> dict:
#   - Inputs: path to a JSON file.
#   - Outputs: the parsed dictionary.
#   - Side Effects: logs; re-raises FileNotFoundError / JSONDecodeError.
#
# build_simulation_config(overrides: dict | None) -> dict:
#   - Outputs: a fresh copy of the defaults with overrides applied.
#   - Invariants: the result has passed validate_simulation_config.

DEFAULT_SIMULATION_CONFIG = {
    # Burst generator
    'burst_count': 200,
    'burst_cone_half_angle': math.pi / 3,  # Radians either side of straight down
    'burst_speed_range': [800.0, 2200.0],  # Units per second
    'burst_upward_kick': 200.0,  # Subtracted from the vertical component
    'burst_radius_range': [10.0, 30.0],
    'color_red_range': [0.3, 0.7],
    'color_green': 0.02,
    'color_blue': 0.02,
    'color_alpha_range': [0.6, 1.0],
    'noise_offset_range': [0.0, 1000.0],

    # Integrator
    'gravity': [0.0, 1400.0],  # Units per second squared, +y is down
    'drag': [0.92, 0.92],  # Per-step velocity factor (horizontal, vertical)
    'dt': 1.0 / 200.0,  # Seconds per step
    'ground_y': 600.0,

    # Splat growth
    'growth_step': 2.0,  # Radius increment per step
    'growth_multiplier_range': [2.5, 5.0],

    # Satellites
    'satellite_count_range': [20, 40],
    'satellite_radius_factor': 0.15,
    'satellite_speed_factor_range': [5.0, 30.0],  # Multiples of parent radius
    'satellite_lift_range': [200.0, 800.0],
    'satellite_alpha_factor': 0.7,
    'satellite_max_generation': 1,  # Only particles below this generation emit satellites

    # Merging
    'proximity_factor': 0.7,

    # Batch control
    'iterations': 3000,  # Upper bound; batches normally stop once settled
    'stop_when_settled': True,
    'batch_time_limit': None,  # Seconds, None disables the cap
    'log_throttle_steps': 100,
}

_RANGE_KEYS = (
    'burst_speed_range', 'burst_radius_range', 'color_red_range',
    'color_alpha_range', 'noise_offset_range', 'growth_multiplier_range',
    'satellite_count_range', 'satellite_speed_factor_range',
    'satellite_lift_range',
)

_POSITIVE_KEYS = (
    'burst_count', 'dt', 'growth_step', 'satellite_radius_factor',
    'iterations', 'proximity_factor', 'log_throttle_steps',
)


class ConfigError(ValueError):
    """Raised when the simulation configuration is unusable."""


def load_config(path: str) -> dict:
    """Loads a JSON configuration file."""
    logger.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
        logger.info("Configuration loaded successfully.")
        return config
    except FileNotFoundError:
        logger.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logger.error(f"Error decoding JSON from {path}.")
        raise


def _fail(msg: str):
    logger.critical(msg)
    raise ConfigError(msg)


def validate_simulation_config(config: dict) -> None:
    """
    Checks every range and strictly positive quantity in a simulation config.

    Raises:
        ConfigError: on the first invalid entry found.
    """
    missing = [key for key in DEFAULT_SIMULATION_CONFIG if key not in config]
    if missing:
        _fail(f"Configuration error: missing simulation keys {missing}.")

    for key in _RANGE_KEYS:
        value = config[key]
        if len(value) != 2:
            _fail(f"Configuration error: '{key}' must be a [min, max] pair, got {value}.")
        low, high = value
        if not (np.isfinite(low) and np.isfinite(high)) or low > high:
            _fail(f"Configuration error: '{key}' is an empty or inverted range {value}.")

    for key in _POSITIVE_KEYS:
        if not config[key] > 0:
            _fail(f"Configuration error: '{key}' must be greater than zero, got {config[key]}.")

    # Growth must terminate, so the smallest multiplier has to exceed 1.
    if config['growth_multiplier_range'][0] <= 1.0:
        _fail(
            "Configuration error: 'growth_multiplier_range' must start above 1.0, "
            f"got {config['growth_multiplier_range']}."
        )
    if config['burst_radius_range'][0] <= 0:
        _fail(f"Configuration error: 'burst_radius_range' must be positive, got {config['burst_radius_range']}.")
    if config['satellite_count_range'][0] < 0:
        _fail(f"Configuration error: 'satellite_count_range' cannot be negative, got {config['satellite_count_range']}.")
    if config['satellite_max_generation'] < 0:
        _fail(f"Configuration error: 'satellite_max_generation' cannot be negative, got {config['satellite_max_generation']}.")

    for key in ('gravity', 'drag'):
        if len(config[key]) != 2:
            _fail(f"Configuration error: '{key}' must be a 2-vector, got {config[key]}.")
    if not all(0.0 < d <= 1.0 for d in config['drag']):
        _fail(f"Configuration error: 'drag' factors must lie in (0, 1], got {config['drag']}.")

    time_limit = config['batch_time_limit']
    if time_limit is not None and not time_limit > 0:
        _fail(f"Configuration error: 'batch_time_limit' must be positive or null, got {time_limit}.")


def build_simulation_config(overrides: dict = None) -> dict:
    """
    Returns a validated simulation config built from the defaults.

    Unknown override keys are rejected so that typos in config.json surface
    immediately instead of being silently ignored.
    """
    config = copy.deepcopy(DEFAULT_SIMULATION_CONFIG)
    if overrides:
        unknown = sorted(set(overrides) - set(DEFAULT_SIMULATION_CONFIG))
        if unknown:
            _fail(f"Configuration error: unknown simulation keys {unknown}.")
        config.update(copy.deepcopy(overrides))
    validate_simulation_config(config)
    return config


def make_rng(config: dict) -> np.random.Generator:
    """
    Creates the master random number generator from the top-level config.

    All randomness in a run flows from this one generator.
    """
    if config.get('use_seeded_rng', True) and config.get('master_seed') is not None:
        logger.info(f"Master RNG initialized with seed: {config['master_seed']}")
        return np.random.default_rng(config['master_seed'])
    logger.info("Master RNG initialized without a seed.")
    return np.random.default_rng()
