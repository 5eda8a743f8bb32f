"""RGBA debug overlays for the erosion simulation fields.

Colour convention:

- water: blue intensity
- flow: red intensity
- sediment: yellow (equal red and green)
- height_delta: red for erosion, green for deposition
- cumulative: red for erosion, green for deposition, gray where stable, with
  a blue overlay proportional to persistent flow
"""

from __future__ import annotations

import numpy as np

from terrasculpt.config import DEBUG_MODES, ConfigError
from terrasculpt.erosion import ErosionSimulator


STABLE_GRAY = 96
STABLE_EPSILON = 1e-6


def _intensity_u8(values: np.ndarray) -> np.ndarray:
    v = np.clip(values.astype(np.float64), 0.0, None)
    peak = float(np.max(v)) if v.size else 0.0
    if peak <= 0.0:
        return np.zeros(v.shape, dtype=np.uint8)
    return np.round(v / peak * 255.0).astype(np.uint8)


def _signed_channels(values: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    v = values.astype(np.float64)
    peak = float(np.max(np.abs(v))) if v.size else 0.0
    if peak <= 0.0:
        zeros = np.zeros(v.shape, dtype=np.uint8)
        return zeros, zeros.copy()
    red = np.round(np.clip(-v / peak, 0.0, 1.0) * 255.0).astype(np.uint8)
    green = np.round(np.clip(v / peak, 0.0, 1.0) * 255.0).astype(np.uint8)
    return red, green


def debug_rgba(simulator: ErosionSimulator, mode: str) -> np.ndarray:
    """Render one simulation field as a ``(N, N, 4)`` uint8 image."""

    if mode not in DEBUG_MODES:
        raise ConfigError(f"unknown debug mode {mode!r}; expected one of {', '.join(DEBUG_MODES)}")

    n = simulator.terrain.grid_size
    rgba = np.zeros((n, n, 4), dtype=np.uint8)
    rgba[..., 3] = 255

    if mode == "water":
        rgba[..., 2] = _intensity_u8(simulator.water)
    elif mode == "flow":
        rgba[..., 0] = _intensity_u8(simulator.flow)
    elif mode == "sediment":
        level = _intensity_u8(simulator.sediment)
        rgba[..., 0] = level
        rgba[..., 1] = level
    elif mode == "height_delta":
        rgba[..., 0], rgba[..., 1] = _signed_channels(simulator.height_delta)
    else:
        cumulative = simulator.cumulative_erosion
        red, green = _signed_channels(cumulative)
        stable = np.abs(cumulative) <= STABLE_EPSILON
        red[stable] = STABLE_GRAY
        green[stable] = STABLE_GRAY
        blue = np.where(stable, STABLE_GRAY, 0).astype(np.float64)
        overlay = np.clip(simulator.persistent_flow.astype(np.float64), 0.0, 1.0) * 255.0
        rgba[..., 0] = red
        rgba[..., 1] = green
        rgba[..., 2] = np.round(np.maximum(blue, overlay)).astype(np.uint8)
    return rgba


def debug_buffers(simulator: ErosionSimulator) -> dict[str, np.ndarray]:
    return {mode: debug_rgba(simulator, mode) for mode in DEBUG_MODES}
