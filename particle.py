# particle.py

from collections import namedtuple
from enum import IntEnum

from constants import STATE_FLYING, STATE_SPLATTING, STATE_SPLATTED


class ParticleState(IntEnum):
    """
    Lifecycle of a droplet. Values only ever increase for a given particle:
    FLYING -> SPLATTING -> SPLATTED. Merge results are born SPLATTED.
    """
    FLYING = STATE_FLYING
    SPLATTING = STATE_SPLATTING
    SPLATTED = STATE_SPLATTED


_ParticleFields = namedtuple(
    '_ParticleFields',
    ['id', 'position', 'velocity', 'radius', 'state', 'splat_radius', 'color', 'noise_offset', 'generation']
)


class Particle(_ParticleFields):
    """
    Immutable snapshot of a single particle, handed to the renderer.

    The live state is held by ParticleStore as NumPy arrays; this is the
    read-only view produced once per batch or frame.

    Data Contract:
    - id (int): stable store-issued identifier.
    - position, velocity (tuple[float, float]): world units, +y is down.
    - radius (float): physical radius, fixed at creation, > 0.
    - state (ParticleState)
    - splat_radius (float): footprint radius, 0.0 while FLYING.
    - color (tuple[float, float, float, float]): RGBA in [0, 1].
    - noise_offset (float): seeds the particle's personal noise signal.
    - generation (int): 0 for burst droplets, parent generation + 1 for satellites.
    """
    __slots__ = ()

    @property
    def is_settled(self) -> bool:
        return self.state == ParticleState.SPLATTED

    @property
    def alpha(self) -> float:
        return self.color[3]

    @property
    def footprint_radius(self) -> float:
        """Radius to draw with: the splat once grounded, the droplet while airborne."""
        if self.state == ParticleState.FLYING:
            return self.radius
        return self.splat_radius
