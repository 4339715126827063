# noise_field.py

import logging

import numba
import numpy as np

from constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

PERMUTATION_SIZE = 256

# --- JIT-Compiled Noise Kernels ---
# 1-D gradient (Perlin) noise. The lattice gradient at integer i is read from a
# seeded permutation table and mapped to [-1, 1]. The quintic fade keeps the
# first and second derivatives continuous across lattice points.

@numba.jit(nopython=True, fastmath=False)
def _fade_jit(t):
    """Quintic smoothstep 6t^5 - 15t^4 + 10t^3."""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)

@numba.jit(nopython=True, fastmath=False)
def _gradient_jit(perm, i):
    return perm[i & 255] / 127.5 - 1.0

@numba.jit(nopython=True, fastmath=False)
def _perlin_1d_jit(x, perm):
    """Single noise sample in [-1, 1]. Zero at every integer lattice point."""
    x0 = np.floor(x)
    xi = int(x0)
    xf = x - x0
    a = _gradient_jit(perm, xi) * xf
    b = _gradient_jit(perm, xi + 1) * (xf - 1.0)
    value = 2.0 * (a + _fade_jit(xf) * (b - a))
    if value > 1.0:
        return 1.0
    if value < -1.0:
        return -1.0
    return value

@numba.jit(nopython=True, fastmath=False)
def _perlin_1d_many_jit(xs, perm, out):
    for k in range(xs.shape[0]):
        out[k] = _perlin_1d_jit(xs[k], perm)


class NoiseField:
    """
    Deterministic 1-D pseudo-Perlin noise.

    Data Contract:
    - Inputs: seed (int) - selects the permutation table.
    - Outputs: value(offset) -> float in [-1, 1].
    - Invariants: a pure function of (seed, offset); continuous in offset.
    """
    def __init__(self, seed: int = 0):
        self.seed = seed
        # The table gets its own generator so that the noise pattern does not
        # depend on how much of the master RNG the simulation has consumed.
        table_rng = np.random.default_rng(seed)
        self.permutation = table_rng.permutation(PERMUTATION_SIZE).astype(np.int64)
        logger.debug(f"NoiseField created with seed {seed}.")

    def value(self, offset: float) -> float:
        return float(_perlin_1d_jit(float(offset), self.permutation))

    def values(self, offsets: np.ndarray) -> np.ndarray:
        """Vectorised form of value() for an array of offsets."""
        xs = np.ascontiguousarray(offsets, dtype=np.float64).ravel()
        out = np.empty_like(xs)
        _perlin_1d_many_jit(xs, self.permutation, out)
        return out.reshape(np.shape(offsets))

    def __call__(self, offset: float) -> float:
        return self.value(offset)
