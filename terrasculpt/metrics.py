"""Summary statistics of a height field."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class HeightStats:
    """Range and distribution summary of heights in world units."""

    min_height: float
    max_height: float
    mean_height: float
    std_height: float
    hypsometric_integral: float


def height_stats(heights: np.ndarray) -> HeightStats:
    if heights.ndim != 2:
        raise ValueError("heights must be 2D")
    values = heights.astype(np.float64)
    return HeightStats(
        min_height=float(np.min(values)),
        max_height=float(np.max(values)),
        mean_height=float(np.mean(values)),
        std_height=float(np.std(values)),
        hypsometric_integral=_hypsometric_integral(values),
    )


def volume(heights: np.ndarray, *, cell_size: float, datum: float = 0.0) -> float:
    """Signed volume above ``datum``, one cell area per sample."""

    if cell_size <= 0:
        raise ValueError("cell_size must be positive")
    return float(np.sum(heights.astype(np.float64) - datum) * cell_size * cell_size)


def _hypsometric_integral(values: np.ndarray) -> float:
    h_min = float(np.min(values))
    h_max = float(np.max(values))
    if h_max <= h_min + 1e-6:
        return 0.0
    norm = np.clip((values - h_min) / (h_max - h_min), 0.0, 1.0)
    return float(np.mean(norm))
