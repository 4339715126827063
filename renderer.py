# renderer.py
"""
Pygame rendering of synthesized frames.

Each particle is rasterised onto a small layer covering its bounding box and
composited with the blend mode chosen by the synthesizer: additive for
airborne droplets, multiplicative for anything on the ground, so overlapping
settled blobs darken each other the way ink does on paper.
"""
import logging

import numpy as np
import pygame

import constants
from constants import LOGGER_NAME
from contour import RenderHints
from frame_worker import Frame

logger = logging.getLogger(LOGGER_NAME)

# Layer background that leaves the destination unchanged for each blend.
_NEUTRAL = {
    constants.BLEND_LIGHTER: (0, 0, 0),
    constants.BLEND_MULTIPLY: (255, 255, 255),
}
_FLAGS = {
    constants.BLEND_LIGHTER: pygame.BLEND_RGB_ADD,
    constants.BLEND_MULTIPLY: pygame.BLEND_RGB_MULT,
}


def blend_color(color, alpha: float, blend_mode: str) -> tuple:
    """
    Pre-multiplies an RGBA color in [0, 1] against the blend's neutral value.

    pygame's ADD and MULT blits ignore per-pixel alpha, so opacity is baked
    into the RGB channels instead.
    """
    opacity = float(np.clip(color[3] * alpha, 0.0, 1.0))
    rgb = np.asarray(color[:3], dtype=np.float64) * 255.0
    neutral = np.asarray(_NEUTRAL[blend_mode], dtype=np.float64)
    mixed = neutral + (rgb - neutral) * opacity
    return tuple(int(round(c)) for c in np.clip(mixed, 0, 255))


class Renderer:
    """
    Draws Frames onto a pygame surface.

    Data Contract:
    - Inputs: surface (pygame.Surface) to draw on.
    - Side Effects: draw() repaints the whole surface.
    """
    def __init__(self, surface: pygame.Surface, background=constants.BACKGROUND_COLOR,
                 samples_per_segment: int = constants.CURVE_SAMPLES_PER_SEGMENT):
        self.surface = surface
        self.background = background
        self.samples_per_segment = samples_per_segment

    def draw(self, frame: Frame):
        self.surface.fill(self.background)
        for hints in frame.hints:
            self.draw_particle(hints)

    def draw_particle(self, hints: RenderHints):
        polygon = hints.outline.points(self.samples_per_segment)
        if polygon.shape[0] < 3:
            return

        all_points = polygon
        if hints.spikes.shape[0]:
            all_points = np.vstack([polygon, hints.spikes.reshape(-1, 2)])
        left, top = (int(v) - 1 for v in np.floor(all_points.min(axis=0)))
        right, bottom = (int(v) + 1 for v in np.ceil(all_points.max(axis=0)))
        width, height = right - left, bottom - top
        if width <= 0 or height <= 0:
            return

        layer = pygame.Surface((width, height))
        layer.fill(_NEUTRAL[hints.blend_mode])
        offset = np.array([left, top], dtype=np.float64)

        fill = blend_color(hints.color, hints.fill_alpha, hints.blend_mode)
        pygame.draw.polygon(layer, fill, [tuple(p) for p in polygon - offset])

        if hints.stroke_alpha > 0:
            stroke = blend_color(hints.color, hints.stroke_alpha, hints.blend_mode)
            for start, end in hints.spikes - offset:
                pygame.draw.line(layer, stroke, tuple(start), tuple(end), constants.SPIKE_LINE_WIDTH)

        self.surface.blit(layer, (left, top), special_flags=_FLAGS[hints.blend_mode])
