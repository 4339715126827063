from __future__ import annotations

import numpy as np
import pytest

import constants
from contour import ContourSynthesizer, smooth_closed
from particle import Particle, ParticleState


def _particle(state, radius=10.0, splat_radius=0.0, particle_id=3) -> Particle:
    return Particle(
        id=particle_id, position=(200.0, 300.0), velocity=(0.0, 0.0), radius=radius,
        state=state, splat_radius=splat_radius, color=(0.5, 0.02, 0.02, 0.9),
        noise_offset=42.5, generation=0,
    )


@pytest.fixture
def synth(noise) -> ContourSynthesizer:
    return ContourSynthesizer(noise)


def test_outline_is_deterministic(noise, synth) -> None:
    twin = ContourSynthesizer(type(noise)(seed=7))
    a = synth.outline((50.0, 60.0), 25.0, 17.3)
    b = twin.outline((50.0, 60.0), 25.0, 17.3)
    assert np.array_equal(a.segments, b.segments)
    assert np.array_equal(synth.spikes((50.0, 60.0), 25.0, 17.3), twin.spikes((50.0, 60.0), 25.0, 17.3))


@pytest.mark.parametrize("radius,expected", [(1.0, 12), (10.0, 12), (24.0, 12), (26.0, 13), (60.0, 30)])
def test_vertex_count(synth, radius, expected) -> None:
    assert synth.vertex_count(radius) == expected
    assert len(synth.outline((0.0, 0.0), radius, 0.0)) == expected


def test_outline_is_closed_and_bounded(synth) -> None:
    center = np.array([120.0, 80.0])
    contour = synth.outline(center, 30.0, 5.0)
    assert contour.closed
    assert np.allclose(contour.start, contour.vertices[0])
    distances = np.linalg.norm(contour.vertices - center, axis=1)
    jitter = constants.SETTLED_JITTER_FACTOR
    assert np.all(distances >= 30.0 * (1.0 - jitter) - 1e-9)
    assert np.all(distances <= 30.0 * (1.0 + jitter) + 1e-9)


def test_zero_jitter_gives_a_circle(synth) -> None:
    contour = synth.outline((0.0, 0.0), 40.0, 9.9, jitter=0.0)
    assert np.allclose(np.linalg.norm(contour.vertices, axis=1), 40.0)


def test_points_start_on_the_curve(synth) -> None:
    contour = synth.outline((10.0, 10.0), 30.0, 1.0)
    points = contour.points(4)
    assert points.shape == (len(contour) * 4, 2)
    assert np.allclose(points[0], contour.start)
    # Every sample at t=0 sits on a vertex.
    assert np.allclose(points[::4], contour.vertices)


def test_smoothing_degenerate_input() -> None:
    contour = smooth_closed(np.array([[0.0, 0.0], [1.0, 1.0]]))
    assert len(contour) == 0
    assert not contour.closed
    assert contour.points().shape == (0, 2)


def test_square_smoothing_controls() -> None:
    square = np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, -1.0]])
    contour = smooth_closed(square, 0.4)
    # First segment leaves vertex 0 along its outgoing tangent towards vertex 1.
    chord = square[1] - square[3]
    assert np.allclose(contour.segments[0, 0], square[0] + 0.4 * 0.5 * chord)
    assert np.allclose(contour.segments[0, 2], square[1])
    assert np.allclose(contour.segments[-1, 2], square[0])


def test_spikes_radiate_outward(synth) -> None:
    center = np.array([0.0, 0.0])
    spikes = synth.spikes(center, 10.0, 3.0)
    assert spikes.shape == (int(10.0 * constants.SPIKE_DENSITY), 2, 2)
    inner = np.linalg.norm(spikes[:, 0], axis=1)
    outer = np.linalg.norm(spikes[:, 1], axis=1)
    assert np.all(outer >= inner - 1e-9)
    assert np.all(outer - inner <= 10.0 * constants.SPIKE_LENGTH + 1e-9)


def test_tiny_blob_still_gets_one_spike(synth) -> None:
    assert synth.spikes((0.0, 0.0), 0.1, 0.0).shape == (1, 2, 2)


@pytest.mark.parametrize("radius", [0.0, -3.0])
def test_non_positive_radius_is_rejected(synth, radius) -> None:
    with pytest.raises(ValueError):
        synth.outline((0.0, 0.0), radius, 0.0)
    with pytest.raises(ValueError):
        synth.spikes((0.0, 0.0), radius, 0.0)


def test_too_few_vertices_is_rejected(noise) -> None:
    with pytest.raises(ValueError):
        ContourSynthesizer(noise, min_vertices=2)


def test_render_hints_for_flying(synth) -> None:
    hints = synth.render_hints(_particle(ParticleState.FLYING))
    assert hints.particle_id == 3
    assert hints.blend_mode == constants.BLEND_LIGHTER
    assert hints.spikes.shape == (0, 2, 2)
    assert hints.fill_alpha == constants.FLYING_FILL_ALPHA
    assert hints.stroke_alpha == 0.0
    assert len(hints.outline) == synth.vertex_count(10.0)


@pytest.mark.parametrize("state", [ParticleState.SPLATTING, ParticleState.SPLATTED])
def test_render_hints_on_the_ground(synth, state) -> None:
    hints = synth.render_hints(_particle(state, radius=10.0, splat_radius=60.0))
    assert hints.blend_mode == constants.BLEND_MULTIPLY
    assert hints.fill_alpha == constants.SETTLED_FILL_ALPHA
    assert hints.stroke_alpha == constants.SPIKE_STROKE_ALPHA
    # Drawn at the footprint, not the droplet radius.
    assert len(hints.outline) == 30
    assert hints.spikes.shape[0] == int(60.0 * constants.SPIKE_DENSITY)


def test_wobble_moves_the_outline(noise) -> None:
    still = ContourSynthesizer(noise)
    wobbly = ContourSynthesizer(noise, wobble_rate=0.5)
    assert np.array_equal(still.outline((0.0, 0.0), 20.0, 4.2, time=3.0).vertices,
                          still.outline((0.0, 0.0), 20.0, 4.2).vertices)
    assert not np.allclose(wobbly.outline((0.0, 0.0), 20.0, 4.2, time=3.3).vertices,
                           wobbly.outline((0.0, 0.0), 20.0, 4.2).vertices)
