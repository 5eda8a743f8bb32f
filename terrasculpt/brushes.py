"""Direct sculpting brushes: raise, lower, smooth, flatten, erosion."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Protocol, runtime_checkable

import numpy as np
from scipy.ndimage import correlate

from terrasculpt.config import BrushConfig
from terrasculpt.falloff import cosine, gaussian
from terrasculpt.grid import disc_offsets, shift
from terrasculpt.heightfield import HeightField, HeightRegion
from terrasculpt.shapes import brush_footprint, footprint_extent, shape_distance


logger = logging.getLogger(__name__)

SMOOTH_NEIGHBOR_FRACTION = 0.3
FLATTEN_CENTER_FRACTION = 0.2
EROSION_NEIGHBOR_FRACTION = 0.15
EROSION_PASSES = 3
EROSION_STRENGTH_SCALE = 0.3
EROSION_MIN_SLOPE = 0.1


@runtime_checkable
class ErosionCapability(Protocol):
    """Anything that can erode a circular patch of terrain on request."""

    def apply_erosion_at(self, x: float, z: float, radius: float, strength: float) -> Any:
        ...


@dataclass(frozen=True)
class BrushResult:
    type: str
    cells_changed: int
    min_delta: float
    max_delta: float
    target_height: float | None = None
    delegated: bool = False


def apply_brush(
    terrain: HeightField,
    x: float,
    z: float,
    config: BrushConfig,
    eroder: ErosionCapability | None = None,
) -> BrushResult:
    """Apply one brush sample centred at world ``(x, z)``.

    The config is validated before anything is written; an invalid stroke
    leaves the terrain untouched.
    """

    config.validate()
    if config.type == "raise":
        result = _apply_offset(terrain, x, z, config, sign=1.0)
    elif config.type == "lower":
        result = _apply_offset(terrain, x, z, config, sign=-1.0)
    elif config.type == "smooth":
        result = _apply_smooth(terrain, x, z, config)
    elif config.type == "flatten":
        result = _apply_flatten(terrain, x, z, config)
    elif eroder is not None:
        eroder.apply_erosion_at(x, z, config.radius, config.strength)
        result = BrushResult(config.type, 0, 0.0, 0.0, delegated=True)
    else:
        result = _apply_erosion_fallback(terrain, x, z, config)

    logger.debug(
        "brush %s/%s at (%.2f, %.2f) r=%.2f: %d cells, delta [%.4f, %.4f]",
        config.type,
        config.shape,
        x,
        z,
        config.radius,
        result.cells_changed,
        result.min_delta,
        result.max_delta,
    )
    return result


def _apply_offset(terrain: HeightField, x: float, z: float, config: BrushConfig, *, sign: float) -> BrushResult:
    footprint = brush_footprint(terrain, x, z, config)
    if footprint.indices.size == 0:
        return BrushResult(config.type, 0, 0.0, 0.0)
    weight = cosine(footprint.distance * config.radius, config.radius)
    old = footprint.heights.astype(np.float64)
    new = terrain.clamp(old + sign * weight * config.strength)
    return _commit(terrain, config.type, footprint.indices, old, new)


def _brush_block(
    terrain: HeightField,
    x: float,
    z: float,
    config: BrushConfig,
) -> tuple[HeightRegion, np.ndarray, np.ndarray]:
    block = terrain.region(x, z, footprint_extent(config))
    dist = shape_distance(
        block.world_x - x,
        block.world_z - z,
        config.shape,
        config.radius,
        config.aspect_ratio,
        config.rotation,
    )
    return block, dist, dist <= 1.0


def _blend_factor(dist: np.ndarray, config: BrushConfig) -> np.ndarray:
    return np.clip(cosine(dist * config.radius, config.radius) * config.strength, 0.0, 1.0)


def _apply_smooth(terrain: HeightField, x: float, z: float, config: BrushConfig) -> BrushResult:
    block, dist, inside = _brush_block(terrain, x, z, config)
    if not np.any(inside):
        return BrushResult(config.type, 0, 0.0, 0.0)

    heights = block.heights.astype(np.float64)
    neighbor_radius = config.radius * SMOOTH_NEIGHBOR_FRACTION
    offsets = disc_offsets(neighbor_radius, terrain.cell_size)
    reach = max(abs(di) for di, _, _ in offsets)
    kernel = np.zeros((2 * reach + 1, 2 * reach + 1), dtype=np.float64)
    for di, dj, d in offsets:
        kernel[di + reach, dj + reach] = gaussian(d, neighbor_radius)

    # Normalized convolution restricted to the region's own cells.
    weighted = correlate(heights, kernel, mode="constant", cval=0.0)
    weight_sum = correlate(np.ones_like(heights), kernel, mode="constant", cval=0.0)
    average = weighted / weight_sum

    new = heights + (average - heights) * _blend_factor(dist, config)
    new = terrain.clamp(new)
    return _commit(terrain, config.type, block.indices[inside], heights[inside], new[inside])


def _apply_flatten(terrain: HeightField, x: float, z: float, config: BrushConfig) -> BrushResult:
    block, dist, inside = _brush_block(terrain, x, z, config)
    heights = block.heights.astype(np.float64)
    center = inside & (dist <= FLATTEN_CENTER_FRACTION)
    if np.any(center):
        target = float(np.mean(heights[center]))
    else:
        # Degenerate footprint (brush smaller than a cell): level toward zero.
        target = 0.0
        logger.warning(
            "flatten at (%.2f, %.2f) r=%.2f has no cells in its centre; using target height 0",
            x,
            z,
            config.radius,
        )
    if not np.any(inside):
        return BrushResult(config.type, 0, 0.0, 0.0, target_height=target)

    new = heights + (target - heights) * _blend_factor(dist, config)
    new = terrain.clamp(new)
    result = _commit(terrain, config.type, block.indices[inside], heights[inside], new[inside])
    return BrushResult(result.type, result.cells_changed, result.min_delta, result.max_delta, target_height=target)


def _apply_erosion_fallback(terrain: HeightField, x: float, z: float, config: BrushConfig) -> BrushResult:
    """Stateless slope-driven lowering; a visual stand-in with no sediment transport."""

    block, dist, inside = _brush_block(terrain, x, z, config)
    if not np.any(inside):
        return BrushResult(config.type, 0, 0.0, 0.0)

    original = block.heights.astype(np.float64)
    neighbor_radius = config.radius * EROSION_NEIGHBOR_FRACTION
    offsets = [(di, dj, d) for di, dj, d in disc_offsets(neighbor_radius, terrain.cell_size) if d > 0.0]
    factor = cosine(dist * config.radius, config.radius) * max(config.strength, 0.0) * EROSION_STRENGTH_SCALE

    current = original.copy()
    for _ in range(EROSION_PASSES):
        max_slope = np.zeros_like(current)
        lowest = current.copy()
        for di, dj, d in offsets:
            neighbor = shift(current, di, dj, fill=np.nan)
            with np.errstate(invalid="ignore"):
                slope = (current - neighbor) / d
                steeper = slope > max_slope
            max_slope = np.where(steeper, slope, max_slope)
            lowest = np.where(steeper, neighbor, lowest)
        eroding = inside & (max_slope > EROSION_MIN_SLOPE)
        amount = np.minimum(max_slope * factor, current - lowest)
        current = np.where(eroding, current - amount, current)

    new = terrain.clamp(current)
    return _commit(terrain, config.type, block.indices[inside], original[inside], new[inside])


def _commit(
    terrain: HeightField,
    brush_type: str,
    indices: np.ndarray,
    old: np.ndarray,
    new: np.ndarray,
) -> BrushResult:
    written = terrain.apply_changes((indices, new))
    delta = new - old
    return BrushResult(
        type=brush_type,
        cells_changed=written,
        min_delta=float(np.min(delta)) if delta.size else 0.0,
        max_delta=float(np.max(delta)) if delta.size else 0.0,
    )
