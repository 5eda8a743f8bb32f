"""Derived raster products from height fields."""

from __future__ import annotations

import numpy as np


def vertex_normals(heights: np.ndarray, *, cell_size: float) -> np.ndarray:
    """Unit surface normals ``(N, N, 3)`` as (x, y, z) with y up."""

    if heights.ndim != 2:
        raise ValueError("heights must be a 2D array")
    if cell_size <= 0:
        raise ValueError("cell_size must be positive")

    dh_dz, dh_dx = np.gradient(heights.astype(np.float32), cell_size, cell_size)
    normals = np.stack((-dh_dx, np.ones_like(dh_dx), -dh_dz), axis=-1)
    length = np.linalg.norm(normals, axis=-1, keepdims=True)
    return (normals / length).astype(np.float32)


def hillshade(
    heights: np.ndarray,
    *,
    cell_size: float,
    azimuth_deg: float = 315.0,
    altitude_deg: float = 45.0,
    vertical_exaggeration: float = 1.0,
) -> np.ndarray:
    """Compute an 8-bit grayscale hillshade from a height field."""

    if heights.ndim != 2:
        raise ValueError("heights must be a 2D array")
    if cell_size <= 0:
        raise ValueError("cell_size must be positive")

    dz_dy, dz_dx = np.gradient(heights.astype(np.float32), cell_size, cell_size)
    dz_dx = dz_dx * float(vertical_exaggeration)
    dz_dy = dz_dy * float(vertical_exaggeration)

    slope = np.pi / 2.0 - np.arctan(np.hypot(dz_dx, dz_dy))
    aspect = np.arctan2(-dz_dx, dz_dy)

    azimuth = np.deg2rad(azimuth_deg)
    altitude = np.deg2rad(altitude_deg)

    shaded = (
        np.sin(altitude) * np.sin(slope)
        + np.cos(altitude) * np.cos(slope) * np.cos(azimuth - aspect)
    )
    shaded = np.clip(shaded, 0.0, 1.0)
    return np.round(shaded * 255.0).astype(np.uint8)


def height_preview_u16(
    heights: np.ndarray,
    *,
    bounds: tuple[float, float] | None = None,
) -> np.ndarray:
    """Map heights to 16-bit grayscale, either over fixed bounds or the data range."""

    if bounds is None:
        lo, hi = float(np.min(heights)), float(np.max(heights))
    else:
        lo, hi = bounds
    scale = max(hi - lo, 1e-6)
    norm = np.clip((heights - lo) / scale, 0.0, 1.0)
    return np.round(norm * 65535.0).astype(np.uint16)
