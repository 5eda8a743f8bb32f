"""Radial attenuation curves for brush edges and smoothing kernels.

Every falloff maps ``(distance, radius)`` to a weight in ``[0, 1]``. Distances
are clamped to ``[0, radius]`` first, so callers may pass raw distances.
Scalars return a Python float; arrays return a float64 array of the same shape.
"""

from __future__ import annotations

from typing import Callable

import numpy as np


Falloff = Callable[..., "float | np.ndarray"]


def _normalized(distance, radius: float) -> np.ndarray:
    d = np.asarray(distance, dtype=np.float64)
    if radius <= 0:
        return np.full(d.shape, np.nan)
    return np.clip(d, 0.0, radius) / float(radius)


def _finish(weight: np.ndarray, distance):
    weight = np.nan_to_num(weight, nan=0.0)
    if np.ndim(distance) == 0:
        return float(weight)
    return weight


def quadratic(distance, radius: float):
    """``(1 - d/r)^2``."""

    t = 1.0 - _normalized(distance, radius)
    return _finish(t * t, distance)


def cosine(distance, radius: float):
    """``(cos(pi * d/r) + 1) / 2``; zero slope at both the centre and the edge."""

    t = _normalized(distance, radius)
    return _finish((np.cos(t * np.pi) + 1.0) * 0.5, distance)


def gaussian(distance, radius: float):
    """``exp(-d^2 / (2 sigma^2))`` with ``sigma = r/3``."""

    if radius <= 0:
        return _finish(np.full(np.shape(distance), np.nan), distance)
    d = np.clip(np.asarray(distance, dtype=np.float64), 0.0, radius)
    sigma = radius / 3.0
    return _finish(np.exp(-(d * d) / (2.0 * sigma * sigma)), distance)


FALLOFFS: dict[str, Falloff] = {
    "quadratic": quadratic,
    "cosine": cosine,
    "gaussian": gaussian,
}
