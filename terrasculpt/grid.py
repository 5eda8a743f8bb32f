"""Neighbourhood helpers shared by the brush and erosion passes."""

from __future__ import annotations

import numpy as np


# (row offset, col offset): up, down, left, right.
DIRECTIONS_4 = [
    (-1, 0),
    (1, 0),
    (0, -1),
    (0, 1),
]


def shift(arr: np.ndarray, dy: int, dx: int, *, fill: float) -> np.ndarray:
    """``out[y, x] = arr[y + dy, x + dx]``, with ``fill`` where that falls off the grid."""

    out = np.full(arr.shape, fill, dtype=arr.dtype)
    h, w = arr.shape[:2]
    src_y0 = max(0, -dy)
    src_y1 = min(h, h - dy)
    src_x0 = max(0, -dx)
    src_x1 = min(w, w - dx)
    if src_y0 >= src_y1 or src_x0 >= src_x1:
        return out
    out[src_y0:src_y1, src_x0:src_x1] = arr[src_y0 + dy:src_y1 + dy, src_x0 + dx:src_x1 + dx]
    return out


def disc_offsets(radius: float, cell_size: float) -> list[tuple[int, int, float]]:
    """Grid offsets ``(di, dj, world_distance)`` within ``radius``, centre included."""

    reach = int(np.floor(radius / cell_size))
    offsets: list[tuple[int, int, float]] = []
    for di in range(-reach, reach + 1):
        for dj in range(-reach, reach + 1):
            dist = float(np.hypot(di, dj)) * cell_size
            if dist <= radius:
                offsets.append((di, dj, dist))
    return offsets
