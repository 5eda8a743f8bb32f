"""Noise functions used to seed an initial coastal terrain."""

from __future__ import annotations

import numpy as np

from terrasculpt.config import TerrainConfig


def _smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def value_noise_at(
    xs: np.ndarray,
    zs: np.ndarray,
    rng: np.random.Generator,
    *,
    frequency: float,
) -> np.ndarray:
    """Sample lattice value noise in [-1, 1] at world coordinates ``(xs, zs)``.

    The lattice spacing is ``1 / frequency`` world units and covers exactly the
    sampled extent, so the result does not depend on grid resolution beyond
    where the samples fall.
    """

    if frequency <= 0:
        raise ValueError("frequency must be positive")

    u = xs * frequency
    v = zs * frequency
    u0_min = int(np.floor(np.min(u)))
    v0_min = int(np.floor(np.min(v)))
    res_u = int(np.floor(np.max(u))) - u0_min + 2
    res_v = int(np.floor(np.max(v))) - v0_min + 2
    lattice = rng.uniform(-1.0, 1.0, size=(res_v, res_u)).astype(np.float32)

    fu = u - u0_min
    fv = v - v0_min
    i0 = np.floor(fu).astype(np.int32)
    j0 = np.floor(fv).astype(np.int32)
    i1 = np.minimum(i0 + 1, res_u - 1)
    j1 = np.minimum(j0 + 1, res_v - 1)
    tu = _smoothstep(fu - i0)
    tv = _smoothstep(fv - j0)

    top = lattice[j0, i0] * (1.0 - tu) + lattice[j0, i1] * tu
    bottom = lattice[j1, i0] * (1.0 - tu) + lattice[j1, i1] * tu
    return (top * (1.0 - tv) + bottom * tv).astype(np.float32)


def coastal_heights(config: TerrainConfig, rng: np.random.Generator) -> np.ndarray:
    """Multi-octave noise terrain that slopes down toward the +z shore."""

    config.validate()
    n = config.grid_size
    half = config.size / 2.0
    coords = -half + np.arange(n, dtype=np.float64) * config.cell_size
    zs, xs = np.meshgrid(coords, coords, indexing="ij")

    height = np.zeros((n, n), dtype=np.float64)
    amplitude = 1.0
    frequency = config.noise_scale
    total_amplitude = 0.0
    for _ in range(config.noise_octaves):
        height += value_noise_at(xs, zs, rng, frequency=frequency) * amplitude
        total_amplitude += amplitude
        amplitude *= 0.5
        frequency *= 2.0

    height = (height / total_amplitude) * 0.5 + 0.5
    height = config.min_height + height * (config.max_height - config.min_height)

    # Land is higher inland and falls off toward the ocean side.
    ocean_side = zs / half
    coastal = _smoothstep(np.clip((ocean_side + 0.8) / 1.6, 0.0, 1.0))
    height = height * (1.0 - coastal * 0.6) + coastal * config.min_height
    return np.clip(height, config.min_height, config.max_height).astype(np.float32)
