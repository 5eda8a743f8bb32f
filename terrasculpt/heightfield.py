"""Height field storage, coordinate mapping, and batched mutation."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Callable, Mapping

import numpy as np

from terrasculpt.config import ConfigError, TerrainConfig
from terrasculpt.derive import vertex_normals
from terrasculpt.noise import coastal_heights


def _storable_bounds(min_height: float, max_height: float) -> tuple[float, float]:
    lo = np.float32(min_height)
    if float(lo) < min_height:
        lo = np.nextafter(lo, np.float32(np.inf))
    hi = np.float32(max_height)
    if float(hi) > max_height:
        hi = np.nextafter(hi, np.float32(-np.inf))
    if lo > hi:
        raise ConfigError(f"height bounds [{min_height}, {max_height}] are too close for float32 storage")
    return float(lo), float(hi)


@dataclass(frozen=True)
class HeightRegion:
    """Rectangular block of cells around a point, in row-major order.

    All arrays share the block's ``(rows, cols)`` shape; ``ravel()`` on any of
    them yields cells in row-major order. ``heights`` is a copy.
    """

    indices: np.ndarray
    heights: np.ndarray
    world_x: np.ndarray
    world_z: np.ndarray
    row_slice: slice
    col_slice: slice

    @property
    def shape(self) -> tuple[int, int]:
        return self.indices.shape

    @property
    def size(self) -> int:
        return int(self.indices.size)


class HeightField:
    """Square grid of ``segments + 1`` height samples per axis.

    Rows run along world z and columns along world x; cell ``(i, j)`` sits at
    ``(-size/2 + j*cell_size, -size/2 + i*cell_size)``. Every mutation bumps
    ``revision``, drops the cached normals and texture mirror, and notifies
    registered listeners.
    """

    def __init__(self, config: TerrainConfig | None = None, heights: np.ndarray | None = None) -> None:
        cfg = config or TerrainConfig()
        cfg.validate()
        self._config = cfg
        self._bounds = _storable_bounds(cfg.min_height, cfg.max_height)
        n = cfg.grid_size
        if heights is None:
            self._heights = np.zeros((n, n), dtype=np.float32)
        else:
            self._heights = self._coerce(heights)
        self._revision = 0
        self._normals: np.ndarray | None = None
        self._texture: np.ndarray | None = None
        self._listeners: list[Callable[["HeightField"], None]] = []

    @classmethod
    def flat(cls, config: TerrainConfig | None = None, height: float = 0.0) -> "HeightField":
        cfg = config or TerrainConfig()
        cfg.validate()
        n = cfg.grid_size
        return cls(cfg, np.full((n, n), height, dtype=np.float32))

    @classmethod
    def generate(cls, config: TerrainConfig | None = None, *, seed: int = 0) -> "HeightField":
        """Noise-based coastal terrain, deterministic for a given seed."""

        cfg = config or TerrainConfig()
        rng = np.random.default_rng(seed)
        return cls(cfg, coastal_heights(cfg, rng))

    @property
    def config(self) -> TerrainConfig:
        return self._config

    @property
    def size(self) -> float:
        return float(self._config.size)

    @property
    def segments(self) -> int:
        return int(self._config.segments)

    @property
    def grid_size(self) -> int:
        return self._config.grid_size

    @property
    def cell_size(self) -> float:
        return self._config.cell_size

    @property
    def min_height(self) -> float:
        return float(self._config.min_height)

    @property
    def max_height(self) -> float:
        return float(self._config.max_height)

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def heights(self) -> np.ndarray:
        """Read-only ``(N, N)`` view of the live heights."""

        view = self._heights.view()
        view.flags.writeable = False
        return view

    @property
    def flat_heights(self) -> np.ndarray:
        """Read-only flat view, index ``row * N + col``."""

        view = self._heights.reshape(-1)
        view.flags.writeable = False
        return view

    def world_to_grid(self, x: float, z: float) -> tuple[float, float]:
        """Clamped fractional grid coordinates ``(col, row)`` for a world point."""

        half = self.size / 2.0
        gx = (x + half) / self.size * self.segments
        gz = (z + half) / self.size * self.segments
        return (
            min(max(gx, 0.0), float(self.segments)),
            min(max(gz, 0.0), float(self.segments)),
        )

    def cell_world_position(self, row: int, col: int) -> tuple[float, float]:
        half = self.size / 2.0
        return (-half + col * self.cell_size, -half + row * self.cell_size)

    def index_of(self, row: int, col: int) -> int:
        return int(row) * self.grid_size + int(col)

    def height_at(self, x: float, z: float) -> float:
        """Nearest-cell height; points outside the patch read the edge."""

        gx, gz = self.world_to_grid(x, z)
        return float(self._heights[int(math.floor(gz)), int(math.floor(gx))])

    def region(self, center_x: float, center_z: float, radius: float) -> HeightRegion:
        """All cells in the axis-aligned box of half-width ``radius`` around a point.

        The box is a superset of any footprint of that radius; callers refine
        by true distance.
        """

        rows, cols = self._window(center_x, center_z, radius)
        row_ids = np.arange(rows.start, rows.stop, dtype=np.int64)
        col_ids = np.arange(cols.start, cols.stop, dtype=np.int64)
        rr, cc = np.meshgrid(row_ids, col_ids, indexing="ij")
        half = self.size / 2.0
        return HeightRegion(
            indices=rr * self.grid_size + cc,
            heights=self._heights[rows, cols].copy(),
            world_x=(-half + cc * self.cell_size).astype(np.float64),
            world_z=(-half + rr * self.cell_size).astype(np.float64),
            row_slice=rows,
            col_slice=cols,
        )

    def modify(
        self,
        center_x: float,
        center_z: float,
        radius: float,
        strength: float,
        falloff: Callable[..., float | np.ndarray],
    ) -> None:
        """Add ``strength * falloff(d, radius)`` to every cell within ``radius``."""

        block = self.region(center_x, center_z, radius)
        if block.size == 0:
            return
        distance = np.hypot(block.world_x - center_x, block.world_z - center_z)
        inside = distance <= radius
        if not np.any(inside):
            return
        delta = np.asarray(strength * falloff(distance, radius), dtype=np.float64)
        target = self._heights[block.row_slice, block.col_slice]
        updated = np.where(inside, target + delta, target).astype(np.float32)
        if not np.isfinite(updated).all():
            raise ValueError("modify produced non-finite heights")
        target[...] = updated
        self._invalidate()

    def apply_changes(
        self,
        changes: Mapping[int, float] | tuple[np.ndarray, np.ndarray],
    ) -> int:
        """Set absolute heights for a batch of flat indices; returns cells written."""

        if isinstance(changes, Mapping):
            indices = np.fromiter(changes.keys(), dtype=np.int64, count=len(changes))
            values = np.fromiter(changes.values(), dtype=np.float64, count=len(changes))
        else:
            idx, vals = changes
            indices = np.asarray(idx, dtype=np.int64).reshape(-1)
            values = np.asarray(vals, dtype=np.float64).reshape(-1)
        if indices.shape != values.shape:
            raise ValueError("indices and values must have the same length")
        if indices.size == 0:
            return 0
        total = self.grid_size * self.grid_size
        if int(indices.min()) < 0 or int(indices.max()) >= total:
            raise ValueError(f"cell index out of range [0, {total})")
        if not np.isfinite(values).all():
            raise ValueError("heights must be finite")
        self._heights.reshape(-1)[indices] = values.astype(np.float32)
        self._invalidate()
        return int(indices.size)

    def set_heights(self, heights: np.ndarray) -> None:
        self._heights[...] = self._coerce(heights)
        self._invalidate()

    @property
    def storable_bounds(self) -> tuple[float, float]:
        """Height bounds rounded inward to values float32 storage holds exactly."""

        return self._bounds

    def clamp(self, values: np.ndarray) -> np.ndarray:
        """Clip values to the height bounds; the result stays in bounds after the float32 cast."""

        lo, hi = self._bounds
        return np.clip(values, lo, hi)

    def normals(self) -> np.ndarray:
        if self._normals is None:
            self._normals = vertex_normals(self._heights, cell_size=self.cell_size)
        return self._normals

    def texture(self) -> np.ndarray:
        """Float32 mirror of the heights, as uploaded to a renderer."""

        if self._texture is None:
            self._texture = self._heights.copy()
            self._texture.flags.writeable = False
        return self._texture

    def add_listener(self, callback: Callable[["HeightField"], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[["HeightField"], None]) -> None:
        self._listeners.remove(callback)

    def _window(self, center_x: float, center_z: float, radius: float) -> tuple[slice, slice]:
        if radius < 0 or not math.isfinite(radius):
            raise ValueError(f"radius must be a finite non-negative number, got {radius}")
        half = self.size / 2.0
        grid_radius = radius / self.size * self.segments
        gx = (center_x + half) / self.size * self.segments
        gz = (center_z + half) / self.size * self.segments
        min_i = max(0, math.floor(gz - grid_radius))
        max_i = min(self.segments, math.ceil(gz + grid_radius))
        min_j = max(0, math.floor(gx - grid_radius))
        max_j = min(self.segments, math.ceil(gx + grid_radius))
        return slice(min_i, max(min_i, max_i + 1)), slice(min_j, max(min_j, max_j + 1))

    def _coerce(self, heights: np.ndarray) -> np.ndarray:
        n = self.grid_size
        arr = np.asarray(heights, dtype=np.float32)
        if arr.shape == (n * n,):
            arr = arr.reshape(n, n)
        if arr.shape != (n, n):
            raise ValueError(f"heights must have shape ({n}, {n}), got {arr.shape}")
        if not np.isfinite(arr).all():
            raise ValueError("heights must be finite")
        return arr.copy()

    def _invalidate(self) -> None:
        self._revision += 1
        self._normals = None
        self._texture = None
        for callback in list(self._listeners):
            callback(self)
