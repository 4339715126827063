# constants.py

"""
Application Constants

This module defines static configuration values for the application's framework.
These are not expected to change between simulation runs. Tunable simulation
parameters live in config.json instead.

Data Contract:
- All values are immutable constants.
- Units are specified in comments where applicable.
"""

# Screen dimensions
WIDTH = 400  # Pixels
HEIGHT = 700  # Pixels

# Framerate
FPS = 60  # Frames per second

# Window Title
TITLE = "Splatter Simulator"

# Colors (RGB)
WHITE = (255, 255, 255)
BACKGROUND_COLOR = WHITE

# Logger name shared by every module
LOGGER_NAME = "splatter_sim"

# Particle states (see particle.ParticleState)
STATE_FLYING = 0
STATE_SPLATTING = 1
STATE_SPLATTED = 2

# Fallback unit direction for zero-length vectors (screen y grows downward).
DEFAULT_DIRECTION = (0.0, 1.0)

# Blend modes handed to the renderer.
# Airborne droplets glow additively; anything touching the ground darkens.
BLEND_LIGHTER = "lighter"
BLEND_MULTIPLY = "multiply"

# Opacity applied on top of each particle's own alpha.
FLYING_FILL_ALPHA = 0.5
SETTLED_FILL_ALPHA = 0.85
SPIKE_STROKE_ALPHA = 0.6
SPIKE_LINE_WIDTH = 1  # Pixels

# Contour defaults
CONTOUR_MIN_VERTICES = 12
CONTOUR_SMOOTHING = 0.4
SETTLED_JITTER_FACTOR = 0.7
FLYING_JITTER_FACTOR = 0.5
SPIKE_DENSITY = 2.0  # Spikes per unit of radius
SPIKE_LENGTH = 0.2  # Fraction of radius
SPIKE_NOISE_STEP = 0.05  # Noise-space distance between neighbouring spikes

# Bezier flattening resolution used when rasterising outlines.
CURVE_SAMPLES_PER_SEGMENT = 6
