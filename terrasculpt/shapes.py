"""Brush footprint geometry.

A shape maps an offset from the brush centre to a normalized distance where
values ``<= 1`` lie inside the footprint. The same pose (radius, aspect ratio,
rotation) drives the cursor outline used by indicator overlays.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from terrasculpt.config import BRUSH_SHAPES, BrushConfig, ConfigError
from terrasculpt.heightfield import HeightField


STAR_POINTS = 5
LINE_HALF_WIDTH = 0.1


@dataclass(frozen=True)
class BrushFootprint:
    """Cells covered by one brush sample, flattened in row-major order."""

    indices: np.ndarray
    world_x: np.ndarray
    world_z: np.ndarray
    heights: np.ndarray
    distance: np.ndarray


def shape_distance(
    dx,
    dz,
    shape: str,
    radius: float,
    aspect_ratio: float = 1.0,
    rotation: float = 0.0,
):
    """Normalized footprint distance of offset ``(dx, dz)`` from the brush centre."""

    if shape not in BRUSH_SHAPES:
        raise ConfigError(f"unknown brush shape {shape!r}")
    if radius <= 0:
        raise ConfigError(f"brush radius must be positive, got {radius}")
    if aspect_ratio <= 0:
        raise ConfigError(f"brush aspect_ratio must be positive, got {aspect_ratio}")

    scalar = np.ndim(dx) == 0 and np.ndim(dz) == 0
    px = np.asarray(dx, dtype=np.float64)
    pz = np.asarray(dz, dtype=np.float64)
    if rotation != 0.0:
        c = np.cos(-rotation)
        s = np.sin(-rotation)
        px, pz = px * c - pz * s, px * s + pz * c

    if shape == "circle":
        dist = np.hypot(px, pz) / radius
    elif shape == "square":
        dist = np.maximum(np.abs(px), np.abs(pz)) / radius
    elif shape == "diamond":
        dist = (np.abs(px) + np.abs(pz)) / radius
    elif shape == "star":
        dist = _star_distance(px, pz, radius)
    elif shape == "line":
        dist = np.abs(pz) / (LINE_HALF_WIDTH * radius)
    else:
        rx = radius * max(1.0, aspect_ratio)
        rz = radius * max(1.0, 1.0 / aspect_ratio)
        dist = np.sqrt((px / rx) ** 2 + (pz / rz) ** 2)

    if scalar:
        return float(dist)
    return dist


def _star_distance(px: np.ndarray, pz: np.ndarray, radius: float) -> np.ndarray:
    length = np.hypot(px, pz)
    angle = np.arctan2(pz, px)
    star_radius = radius * (0.5 + 0.5 * np.cos(STAR_POINTS * (angle + np.pi)))
    with np.errstate(divide="ignore", invalid="ignore"):
        dist = length / star_radius
    # Zero star radius only happens on the notch rays: outside unless at the centre.
    dist = np.where(star_radius > 0.0, dist, np.inf)
    return np.where(length == 0.0, 0.0, dist)


def footprint_extent(config: BrushConfig) -> float:
    """Half-width of the axis-aligned box that contains the footprint."""

    if config.shape == "ellipse":
        return config.radius * max(config.aspect_ratio, 1.0 / config.aspect_ratio)
    if config.shape == "square" and config.rotation != 0.0:
        return config.radius * float(np.sqrt(2.0))
    return config.radius


def brush_footprint(terrain: HeightField, x: float, z: float, config: BrushConfig) -> BrushFootprint:
    """Cells whose shape distance from ``(x, z)`` is within the brush."""

    config.validate()
    block = terrain.region(x, z, footprint_extent(config))
    dist = shape_distance(
        block.world_x - x,
        block.world_z - z,
        config.shape,
        config.radius,
        config.aspect_ratio,
        config.rotation,
    )
    inside = dist <= 1.0
    return BrushFootprint(
        indices=block.indices[inside],
        world_x=block.world_x[inside],
        world_z=block.world_z[inside],
        heights=block.heights[inside],
        distance=dist[inside],
    )


def brush_outline(
    shape: str,
    radius: float,
    aspect_ratio: float = 1.0,
    rotation: float = 0.0,
    *,
    segments: int = 32,
) -> np.ndarray:
    """Closed outline polygon ``(M, 2)`` of ``(x, z)`` points for cursor overlays."""

    if shape not in BRUSH_SHAPES:
        raise ConfigError(f"unknown brush shape {shape!r}")
    if radius <= 0:
        raise ConfigError(f"brush radius must be positive, got {radius}")

    if shape == "square":
        points = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]]) * radius
    elif shape == "diamond":
        points = np.array([[0.0, -1.0], [1.0, 0.0], [0.0, 1.0], [-1.0, 0.0]]) * radius
    elif shape == "star":
        k = np.arange(STAR_POINTS * 2)
        angle = k * np.pi / STAR_POINTS - np.pi / 2.0
        r = np.where(k % 2 == 0, radius, radius * 0.5)
        points = np.stack((np.cos(angle) * r, np.sin(angle) * r), axis=-1)
    elif shape == "line":
        half_w = radius * LINE_HALF_WIDTH
        points = np.array([[-radius, -half_w], [radius, -half_w], [radius, half_w], [-radius, half_w]])
    else:
        if shape == "ellipse":
            rx = radius * max(1.0, aspect_ratio)
            rz = radius * max(1.0, 1.0 / aspect_ratio)
        else:
            rx = rz = radius
        angle = np.linspace(0.0, 2.0 * np.pi, num=segments, endpoint=False)
        points = np.stack((np.cos(angle) * rx, np.sin(angle) * rz), axis=-1)

    if rotation != 0.0:
        c = np.cos(rotation)
        s = np.sin(rotation)
        points = np.stack(
            (points[:, 0] * c - points[:, 1] * s, points[:, 0] * s + points[:, 1] * c),
            axis=-1,
        )
    return np.vstack((points, points[:1])).astype(np.float64)
