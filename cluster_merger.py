# cluster_merger.py

import logging
from collections import namedtuple

import numba
import numpy as np

from constants import LOGGER_NAME
from particle import ParticleState
from particle_store import ParticleBatch, ParticleStore

logger = logging.getLogger(LOGGER_NAME)

MergeReport = namedtuple('MergeReport', ['passes', 'groups_merged', 'particles_retired'])

# Upper bound on grid cells along one axis. Cells only ever get larger than
# the adjacency distance, never smaller, so capping stays exact.
MAX_GRID_DIM = 1024

# --- JIT-Compiled Clustering Functions ---

@numba.jit(nopython=True)
def _find_root_jit(parent, i):
    """Union-find root lookup with path halving."""
    while parent[i] != i:
        parent[i] = parent[parent[i]]
        i = parent[i]
    return i

@numba.jit(nopython=True)
def _fill_grid_jit(particle_cell_indices, grid_offsets, grid_indices):
    """Places particle indices into the flat grid, grouped by cell."""
    current_placement_indices = grid_offsets[:-1].copy()
    for i in range(particle_cell_indices.shape[0]):
        cell_idx = particle_cell_indices[i]
        grid_indices[current_placement_indices[cell_idx]] = i
        current_placement_indices[cell_idx] += 1

@numba.jit(nopython=True)
def _label_components_jit(grid_indices, grid_offsets, grid_width, grid_height, cell_xs, cell_ys,
                          positions, splat_radii, proximity_factor, labels):
    """
    Connected components of the "footprints overlap" relation.

    Two particles are joined when their centres are closer than
    proximity_factor * (r_a + r_b). Only the 3x3 block of cells around a
    particle is searched, which is sufficient because a cell is at least as
    wide as the largest possible joining distance. On return labels[i] holds
    the root index of particle i's component.
    """
    n = positions.shape[0]
    for i in range(n):
        labels[i] = i

    for p in range(n):
        for dy in range(-1, 2):
            for dx in range(-1, 2):
                nx, ny = cell_xs[p] + dx, cell_ys[p] + dy
                if nx < 0 or ny < 0 or nx >= grid_width or ny >= grid_height:
                    continue
                cell_idx = ny * grid_width + nx
                for k in range(grid_offsets[cell_idx], grid_offsets[cell_idx + 1]):
                    q = grid_indices[k]
                    if q <= p:
                        continue
                    diff_x = positions[q, 0] - positions[p, 0]
                    diff_y = positions[q, 1] - positions[p, 1]
                    reach = proximity_factor * (splat_radii[p] + splat_radii[q])
                    if diff_x * diff_x + diff_y * diff_y < reach * reach:
                        root_p = _find_root_jit(labels, p)
                        root_q = _find_root_jit(labels, q)
                        if root_p != root_q:
                            # Lower index becomes the root so labels are order-stable.
                            if root_p < root_q:
                                labels[root_q] = root_p
                            else:
                                labels[root_p] = root_q

    for i in range(n):
        labels[i] = _find_root_jit(labels, i)


def label_components(positions: np.ndarray, splat_radii: np.ndarray, proximity_factor: float) -> np.ndarray:
    """
    Groups settled footprints into overlapping clusters.

    Builds a flattened uniform grid (counts, cumulative offsets, then indices
    sorted by cell) and runs union-find over neighbouring cells.

    Returns:
        np.ndarray: per-particle root index; equal values share a component.
    """
    n = positions.shape[0]
    if n == 0:
        return np.zeros(0, dtype=np.int64)

    # --- Spatial Grid ---
    # Cell size covers the largest joining distance between any two members.
    origin = positions.min(axis=0)
    extent = positions.max(axis=0) - origin
    cell_size = 2.0 * proximity_factor * float(splat_radii.max())
    cell_size = max(cell_size, float(extent.max()) / MAX_GRID_DIM, 1e-9)

    cell_xs = (np.floor((positions[:, 0] - origin[0]) / cell_size)).astype(np.int64)
    cell_ys = (np.floor((positions[:, 1] - origin[1]) / cell_size)).astype(np.int64)
    grid_width = int(cell_xs.max()) + 1
    grid_height = int(cell_ys.max()) + 1
    num_cells = grid_width * grid_height

    particle_cell_indices = cell_ys * grid_width + cell_xs
    counts = np.bincount(particle_cell_indices, minlength=num_cells)
    # grid_offsets[i] is the start of cell i in grid_indices.
    grid_offsets = np.zeros(num_cells + 1, dtype=np.int64)
    grid_offsets[1:] = np.cumsum(counts)
    grid_indices = np.zeros(n, dtype=np.int64)
    _fill_grid_jit(particle_cell_indices, grid_offsets, grid_indices)

    labels = np.empty(n, dtype=np.int64)
    _label_components_jit(
        grid_indices, grid_offsets, grid_width, grid_height, cell_xs, cell_ys,
        np.ascontiguousarray(positions, dtype=np.float64),
        np.ascontiguousarray(splat_radii, dtype=np.float64),
        float(proximity_factor), labels
    )
    return labels


def _merge_once(store: ParticleStore, proximity_factor: float):
    """One collapse of every multi-member cluster. Returns (groups, retired)."""
    settled = store.indices(ParticleState.SPLATTED)
    if settled.size < 2:
        return 0, 0

    labels = label_components(store.positions[settled], store.splat_radii[settled], proximity_factor)
    roots, inverse, sizes = np.unique(labels, return_inverse=True, return_counts=True)
    groups = np.flatnonzero(sizes > 1)
    if groups.size == 0:
        return 0, 0

    retired_mask = np.zeros(len(store), dtype=bool)
    positions, radii, colors, noise_offsets = [], [], [], []
    for g in groups:
        members = settled[inverse == g]
        retired_mask[members] = True
        # Lowest id is the representative, independent of array order.
        representative = members[np.argmin(store.ids[members])]
        radius = float(store.splat_radii[members].max())
        positions.append(store.positions[members].mean(axis=0))
        radii.append(radius)
        colors.append(store.colors[representative])
        noise_offsets.append(store.noise_offsets[representative])

    count = len(radii)
    radii = np.array(radii)
    store.replace(retired_mask, ParticleBatch(
        positions=np.array(positions),
        velocities=np.zeros((count, 2)),
        radii=radii,
        colors=np.array(colors),
        noise_offsets=np.array(noise_offsets),
        states=np.full(count, ParticleState.SPLATTED, dtype=np.int8),
        splat_radii=radii.copy(),
    ))
    return count, int(retired_mask.sum())


def merge_settled(store: ParticleStore, proximity_factor: float, max_passes: int = 64) -> MergeReport:
    """
    Coalesces overlapping SPLATTED particles into aggregate blobs.

    Data Contract:
    - Inputs:
        - store (ParticleStore): modified in place.
        - proximity_factor (float): fraction of the summed radii below which
          two footprints count as overlapping.
        - max_passes (int): safety cap on collapse rounds.
    - Outputs: MergeReport with the number of rounds run, groups collapsed
      and particles retired.
    - Side Effects: members of every multi-member cluster are retired and
      replaced by one aggregate at their centroid with the largest member
      splat radius, the lowest-id member's color and noise offset, state
      SPLATTED and zero velocity. FLYING / SPLATTING particles and isolated
      settled particles are untouched.
    - Invariants: collapse rounds repeat until no two settled footprints
      overlap, so calling merge_settled() again on the result is a no-op.
      Every round strictly reduces the particle count, so the loop ends.
    """
    passes = 0
    total_groups = 0
    total_retired = 0
    while passes < max_passes:
        groups, retired = _merge_once(store, proximity_factor)
        if groups == 0:
            break
        passes += 1
        total_groups += groups
        total_retired += retired
    else:
        logger.warning(f"Merge stopped after {max_passes} rounds with overlaps remaining.")

    if total_groups:
        logger.debug(
            f"Merged {total_retired} settled particle(s) into {total_groups} blob(s) over {passes} round(s)."
        )
    return MergeReport(passes=passes, groups_merged=total_groups, particles_retired=total_retired)
