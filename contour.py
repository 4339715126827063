# contour.py
"""
Procedural outlines for rendering particles as organic ink blobs.

Given a centre, a radius and a particle's personal noise offset, the
synthesizer samples a noise-perturbed ring of vertices, smooths it into a
closed chain of cubic Bezier segments, and scatters short radiating spike
strokes around its edge. Everything here is a pure function of its inputs
and the NoiseField, so the same particle yields the same geometry every
frame and the drawing never flickers.
"""
import logging
from collections import namedtuple

import numpy as np

import constants
from constants import LOGGER_NAME
from noise_field import NoiseField
from particle import Particle, ParticleState

logger = logging.getLogger(LOGGER_NAME)

RenderHints = namedtuple(
    'RenderHints',
    ['particle_id', 'state', 'blend_mode', 'color', 'outline', 'spikes', 'fill_alpha', 'stroke_alpha']
)


class Contour:
    """
    A closed path of cubic Bezier segments.

    - start: (2,) first on-curve point.
    - segments: (n, 3, 2) rows of (control1, control2, end). The last end
      point equals start, closing the path.
    - vertices: (n, 2) the perturbed ring the curve passes through.
    """
    def __init__(self, start: np.ndarray, segments: np.ndarray, vertices: np.ndarray):
        self.start = start
        self.segments = segments
        self.vertices = vertices

    def __len__(self):
        return self.segments.shape[0]

    @property
    def closed(self) -> bool:
        return len(self) > 0 and np.allclose(self.segments[-1, 2], self.start)

    def points(self, samples_per_segment: int = constants.CURVE_SAMPLES_PER_SEGMENT) -> np.ndarray:
        """Flattens the curve into a polygon of (n * samples_per_segment, 2) points."""
        if len(self) == 0:
            return np.zeros((0, 2))
        t = np.linspace(0.0, 1.0, samples_per_segment, endpoint=False)[:, np.newaxis]
        p0 = np.vstack([self.start[np.newaxis, :], self.segments[:-1, 2]])
        c1, c2, p3 = self.segments[:, 0], self.segments[:, 1], self.segments[:, 2]
        mt = 1.0 - t
        # Broadcast (samples, 1) against (segments, 1, 2) then flatten in path order.
        curve = (
            (mt ** 3) * p0[:, np.newaxis, :]
            + 3.0 * (mt ** 2) * t * c1[:, np.newaxis, :]
            + 3.0 * mt * (t ** 2) * c2[:, np.newaxis, :]
            + (t ** 3) * p3[:, np.newaxis, :]
        )
        return curve.reshape(-1, 2)


def smooth_closed(vertices: np.ndarray, smoothing: float = constants.CONTOUR_SMOOTHING) -> Contour:
    """
    Catmull-Rom style smoothing of a closed polygon.

    For every vertex p1 with neighbours p0 and p2 the tangent is the chord
    p2 - p0, split in proportion to the adjacent edge lengths d01 and d12:

        control1 = p1 - smoothing * d01 / (d01 + d12) * (p2 - p0)
        control2 = p1 + smoothing * d12 / (d01 + d12) * (p2 - p0)

    Segment i runs from vertex i-1 to vertex i, leaving along the outgoing
    tangent of i-1 and arriving along the incoming tangent of i, which gives a
    tangent-continuous closed curve.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    n = vertices.shape[0]
    if n < 3:
        return Contour(np.zeros(2), np.zeros((0, 3, 2)), vertices)

    prev_pts = np.roll(vertices, 1, axis=0)
    next_pts = np.roll(vertices, -1, axis=0)
    d01 = np.linalg.norm(vertices - prev_pts, axis=1)
    d12 = np.linalg.norm(next_pts - vertices, axis=1)
    total = d01 + d12
    # Coincident neighbours have no tangent; fall back to a symmetric split.
    safe_total = np.where(total > 0, total, 1.0)
    w_in = np.where(total > 0, d01 / safe_total, 0.5)[:, np.newaxis]
    w_out = np.where(total > 0, d12 / safe_total, 0.5)[:, np.newaxis]
    chord = next_pts - prev_pts

    incoming = vertices - smoothing * w_in * chord
    outgoing = vertices + smoothing * w_out * chord

    segments = np.empty((n, 3, 2))
    segments[:, 0] = np.roll(outgoing, 1, axis=0)
    segments[:, 1] = incoming
    segments[:, 2] = vertices
    # Rotate so the path starts and ends on vertex 0.
    segments = np.roll(segments, -1, axis=0)
    return Contour(vertices[0].copy(), segments, vertices)


class ContourSynthesizer:
    """
    Turns particle fields into drawable geometry.

    Data Contract:
    - Inputs: a NoiseField plus shape tunables.
    - Outputs: Contour outlines, (s, 2, 2) spike segment arrays and
      RenderHints bundles.
    - Invariants: outputs depend only on the arguments and the noise field.
    """
    def __init__(self, noise_field: NoiseField,
                 jitter_factor: float = constants.SETTLED_JITTER_FACTOR,
                 flying_jitter_factor: float = constants.FLYING_JITTER_FACTOR,
                 smoothing: float = constants.CONTOUR_SMOOTHING,
                 spike_density: float = constants.SPIKE_DENSITY,
                 spike_length: float = constants.SPIKE_LENGTH,
                 min_vertices: int = constants.CONTOUR_MIN_VERTICES,
                 wobble_rate: float = 0.0):
        if min_vertices < 3:
            raise ValueError(f"A closed contour needs at least 3 vertices, got {min_vertices}.")
        self.noise = noise_field
        self.jitter_factor = jitter_factor
        self.flying_jitter_factor = flying_jitter_factor
        self.smoothing = smoothing
        self.spike_density = spike_density
        self.spike_length = spike_length
        self.min_vertices = min_vertices
        # Noise-space drift per unit of time; 0 keeps shapes perfectly still.
        self.wobble_rate = wobble_rate

    def vertex_count(self, radius: float) -> int:
        return max(self.min_vertices, int(radius / 2))

    def edge_radius(self, radius: float, noise_offset: float, index_positions: np.ndarray,
                    jitter: float, time: float = 0.0) -> np.ndarray:
        """
        Perturbed radius at fractional vertex positions.

        Vertex i samples noise at noise_offset + i, so evaluating between
        integers gives the continuous edge the vertices were cut from.
        """
        samples = self.noise.values(noise_offset + index_positions + time * self.wobble_rate)
        return radius + samples * radius * jitter

    def outline(self, center, radius: float, noise_offset: float, jitter: float = None,
                time: float = 0.0) -> Contour:
        if radius <= 0:
            raise ValueError(f"Contour radius must be positive, got {radius}.")
        if jitter is None:
            jitter = self.jitter_factor
        center = np.asarray(center, dtype=np.float64)

        n = self.vertex_count(radius)
        index_positions = np.arange(n, dtype=np.float64)
        angles = index_positions / n * 2.0 * np.pi
        radii = self.edge_radius(radius, noise_offset, index_positions, jitter, time)
        vertices = center + np.column_stack([np.cos(angles), np.sin(angles)]) * radii[:, np.newaxis]
        return smooth_closed(vertices, self.smoothing)

    def spikes(self, center, radius: float, noise_offset: float, jitter: float = None,
               time: float = 0.0) -> np.ndarray:
        """
        Short strokes radiating outward from the blob edge.

        Returns an (s, 2, 2) array of (start, end) points where
        s = max(1, int(radius * spike_density)). Each spike starts on the
        perturbed edge and extends outward by a non-negative, noise-driven
        fraction of the radius.
        """
        if radius <= 0:
            raise ValueError(f"Spike radius must be positive, got {radius}.")
        if jitter is None:
            jitter = self.jitter_factor
        center = np.asarray(center, dtype=np.float64)

        count = max(1, int(radius * self.spike_density))
        fractions = np.arange(count, dtype=np.float64) / count
        angles = fractions * 2.0 * np.pi
        directions = np.column_stack([np.cos(angles), np.sin(angles)])

        n = self.vertex_count(radius)
        edge = self.edge_radius(radius, noise_offset, fractions * n, jitter, time)
        spike_noise = self.noise.values(
            noise_offset + np.arange(count) * constants.SPIKE_NOISE_STEP + time * self.wobble_rate
        )
        extra = radius * self.spike_length * (1.0 + spike_noise) / 2.0

        segments = np.empty((count, 2, 2))
        segments[:, 0] = center + directions * edge[:, np.newaxis]
        segments[:, 1] = center + directions * (edge + extra)[:, np.newaxis]
        return segments

    def render_hints(self, particle: Particle, time: float = 0.0) -> RenderHints:
        """
        Everything the renderer needs for one particle.

        Airborne droplets are drawn small and additive; anything on the ground
        is drawn at its footprint with the multiply blend plus spikes.
        """
        if particle.state == ParticleState.FLYING:
            outline = self.outline(
                particle.position, particle.radius, particle.noise_offset,
                jitter=self.flying_jitter_factor, time=time
            )
            return RenderHints(
                particle_id=particle.id,
                state=particle.state,
                blend_mode=constants.BLEND_LIGHTER,
                color=particle.color,
                outline=outline,
                spikes=np.zeros((0, 2, 2)),
                fill_alpha=constants.FLYING_FILL_ALPHA,
                stroke_alpha=0.0,
            )

        radius = particle.footprint_radius
        return RenderHints(
            particle_id=particle.id,
            state=particle.state,
            blend_mode=constants.BLEND_MULTIPLY,
            color=particle.color,
            outline=self.outline(particle.position, radius, particle.noise_offset, time=time),
            spikes=self.spikes(particle.position, radius, particle.noise_offset, time=time),
            fill_alpha=constants.SETTLED_FILL_ALPHA,
            stroke_alpha=constants.SPIKE_STROKE_ALPHA,
        )
