"""Cellular hydraulic erosion over a height field.

One ``step()`` is one discrete time unit over the whole grid:

1. rainfall adds water to every cell;
2. water and its suspended sediment route to lower 4-neighbours, split by
   slope with an inertia bonus for continuing the previous flow direction;
3. each cell erodes toward, or deposits down to, its sediment capacity;
4. water evaporates;
5. signed height change accumulates into the cumulative-erosion map and flow
   magnitude decays into the persistent-flow trace;
6. height changes are committed to the terrain in one batch and the
   double-buffered water, sediment, and flow-direction maps swap.

This model carries sediment between steps. The erosion brush fallback in
``terrasculpt.brushes`` is a separate, stateless approximation.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import time
from typing import Any, Mapping

import numpy as np

from terrasculpt.config import ConfigError, ErosionConfig
from terrasculpt.falloff import cosine
from terrasculpt.grid import DIRECTIONS_4, shift
from terrasculpt.heightfield import HeightField


logger = logging.getLogger(__name__)

PERSISTENT_FLOW_DECAY = 0.95
PERSISTENT_FLOW_GAIN = 0.1
PERSISTENT_FLOW_CAP = 1.0


@dataclass(frozen=True)
class StepStats:
    step_index: int
    eroded_cells: int
    deposited_cells: int
    min_delta: float
    max_delta: float
    total_eroded: float
    total_deposited: float
    total_water: float
    total_sediment: float
    step_seconds: float

    @property
    def net_height_change(self) -> float:
        return self.total_deposited - self.total_eroded


def _readonly(arr: np.ndarray) -> np.ndarray:
    view = arr.view()
    view.flags.writeable = False
    return view


class ErosionSimulator:
    """Stateful water/sediment simulation bound to one height field."""

    def __init__(self, terrain: HeightField, config: ErosionConfig | None = None) -> None:
        cfg = config or ErosionConfig()
        cfg.validate()
        self._terrain = terrain
        self._config = cfg
        self.cell_size = terrain.cell_size

        n = terrain.grid_size
        shape = (n, n)
        self._water = np.zeros(shape, dtype=np.float32)
        self._water_next = np.zeros(shape, dtype=np.float32)
        self._sediment = np.zeros(shape, dtype=np.float32)
        self._sediment_next = np.zeros(shape, dtype=np.float32)
        self._flow_direction = np.zeros(shape + (2,), dtype=np.float32)
        self._flow_direction_next = np.zeros(shape + (2,), dtype=np.float32)
        self._flow = np.zeros(shape, dtype=np.float32)
        self._height_delta = np.zeros(shape, dtype=np.float32)
        self._cumulative = np.zeros(shape, dtype=np.float32)
        self._persistent_flow = np.zeros(shape, dtype=np.float32)
        self._step_count = 0

    @property
    def terrain(self) -> HeightField:
        return self._terrain

    @property
    def config(self) -> ErosionConfig:
        return self._config

    @property
    def step_count(self) -> int:
        return self._step_count

    @property
    def water(self) -> np.ndarray:
        return _readonly(self._water)

    @property
    def sediment(self) -> np.ndarray:
        return _readonly(self._sediment)

    @property
    def flow(self) -> np.ndarray:
        return _readonly(self._flow)

    @property
    def flow_direction(self) -> np.ndarray:
        """Per-cell ``(x, z)`` outflow direction, shape ``(N, N, 2)``."""

        return _readonly(self._flow_direction)

    @property
    def height_delta(self) -> np.ndarray:
        return _readonly(self._height_delta)

    @property
    def cumulative_erosion(self) -> np.ndarray:
        return _readonly(self._cumulative)

    @property
    def persistent_flow(self) -> np.ndarray:
        return _readonly(self._persistent_flow)

    def update_config(self, partial: Mapping[str, Any] | None = None, **changes: Any) -> ErosionConfig:
        merged = dict(partial or {})
        merged.update(changes)
        self._config = self._config.merged(merged)
        return self._config

    def reset(self) -> None:
        """Clear all simulation state; terrain heights are left as they are."""

        for arr in (
            self._water,
            self._water_next,
            self._sediment,
            self._sediment_next,
            self._flow_direction,
            self._flow_direction_next,
            self._flow,
            self._height_delta,
            self._cumulative,
            self._persistent_flow,
        ):
            arr.fill(0.0)
        self._step_count = 0

    def run(self, steps: int) -> list[StepStats]:
        if steps < 0:
            raise ValueError("steps must be non-negative")
        return [self.step() for _ in range(steps)]

    def apply_erosion_at(self, x: float, z: float, radius: float, strength: float) -> StepStats:
        """Drop a rain burst of ``strength`` water units on a disc, then advance one step."""

        for name, value in (("x", x), ("z", z), ("radius", radius), ("strength", strength)):
            if not math.isfinite(value):
                raise ConfigError(f"erosion {name} must be finite, got {value!r}")
        if radius <= 0:
            raise ConfigError(f"erosion radius must be positive, got {radius}")
        block = self._terrain.region(x, z, radius)
        if block.size:
            distance = np.hypot(block.world_x - x, block.world_z - z)
            burst = np.where(distance <= radius, cosine(distance, radius) * max(strength, 0.0), 0.0)
            target = self._water[block.row_slice, block.col_slice]
            target += burst.astype(np.float32)
        return self.step()

    def step(self) -> StepStats:
        t0 = time.perf_counter()
        cfg = self._config.effective()
        cell = float(self.cell_size)
        terrain = self._terrain
        lo, hi = terrain.storable_bounds

        height = terrain.heights.astype(np.float64)
        water = self._water.astype(np.float64) + cfg.rainfall_rate
        sediment = self._sediment.astype(np.float64)
        prev_x = self._flow_direction[..., 0].astype(np.float64)
        prev_z = self._flow_direction[..., 1].astype(np.float64)

        # Flow routing.
        adjusted: list[np.ndarray] = []
        downhill_sum = np.zeros_like(height)
        downhill_count = np.zeros_like(height)
        with np.errstate(invalid="ignore"):
            for dy, dx in DIRECTIONS_4:
                neighbor = shift(height, dy, dx, fill=np.nan)
                slope = (height - neighbor) / cell
                alignment = prev_x * dx + prev_z * dy
                boosted = slope + cfg.flow_inertia * slope * alignment
                qualifies = slope > cfg.min_slope_for_flow
                adjusted.append(np.where(qualifies, np.maximum(boosted, 0.0), 0.0))
                downhill = slope > 0.0
                downhill_sum += np.where(downhill, slope, 0.0)
                downhill_count += downhill

        total_adjusted = np.sum(adjusted, axis=0)
        routable = total_adjusted > 0.0
        safe_total = np.where(routable, total_adjusted, 1.0)

        water_next = water.copy()
        sediment_next = sediment.copy()
        outflow = np.zeros_like(height)
        dir_x = np.zeros_like(height)
        dir_z = np.zeros_like(height)
        for (dy, dx), weight in zip(DIRECTIONS_4, adjusted):
            fraction = np.where(routable, weight / safe_total, 0.0)
            water_out = water * fraction
            sediment_out = sediment * fraction
            water_next -= water_out
            sediment_next -= sediment_out
            water_next += shift(water_out, -dy, -dx, fill=0.0)
            sediment_next += shift(sediment_out, -dy, -dx, fill=0.0)
            outflow += water_out
            dir_x += water_out * dx
            dir_z += water_out * dy

        moving = outflow > 0.0
        safe_outflow = np.where(moving, outflow, 1.0)
        new_dir_x = np.where(moving, dir_x / safe_outflow, 0.0)
        new_dir_z = np.where(moving, dir_z / safe_outflow, 0.0)
        velocity = np.sqrt(water) * (outflow / 4.0)
        water_next = np.maximum(water_next, 0.0)
        sediment_next = np.maximum(sediment_next, 0.0)

        # Erosion and deposition against carrying capacity.
        avg_slope = np.where(downhill_count > 0, downhill_sum / np.maximum(downhill_count, 1.0), 0.0)
        capacity = np.minimum(
            velocity * water_next * avg_slope * cfg.capacity_constant,
            cfg.max_sediment_capacity,
        )

        deficit = capacity - sediment_next
        eroding = deficit > 0.0
        erode = np.minimum(
            np.minimum(deficit * cfg.erosion_rate, cfg.max_erosion),
            water_next * velocity * avg_slope * cfg.erosion_rate,
        )
        erode = np.minimum(erode, np.maximum(height - lo, 0.0))
        erode = np.where(eroding, np.maximum(erode, 0.0), 0.0)

        excess = sediment_next - capacity
        depositing = (excess > 0.0) & (excess > cfg.deposition_threshold * capacity)
        deposit = np.minimum(excess * cfg.deposition_rate, np.maximum(hi - height, 0.0))
        deposit = np.minimum(deposit, sediment_next)
        deposit = np.where(depositing, np.maximum(deposit, 0.0), 0.0)

        delta = deposit - erode
        sediment_next = np.maximum(sediment_next + erode - deposit, 0.0)

        # Evaporation.
        water_next = np.maximum(water_next * (1.0 - cfg.evaporation_rate), 0.0)

        # Bookkeeping.
        self._height_delta[...] = delta
        self._cumulative += self._height_delta
        self._flow[...] = velocity
        np.minimum(
            self._persistent_flow * PERSISTENT_FLOW_DECAY + self._flow * PERSISTENT_FLOW_GAIN,
            PERSISTENT_FLOW_CAP,
            out=self._persistent_flow,
        )

        # Commit heights in one batch, then swap the double buffers.
        changed = np.flatnonzero(delta != 0.0)
        if changed.size:
            terrain.apply_changes((changed, terrain.clamp(height + delta).reshape(-1)[changed]))

        self._water_next[...] = water_next
        self._sediment_next[...] = sediment_next
        self._flow_direction_next[..., 0] = new_dir_x
        self._flow_direction_next[..., 1] = new_dir_z
        self._water, self._water_next = self._water_next, self._water
        self._sediment, self._sediment_next = self._sediment_next, self._sediment
        self._flow_direction, self._flow_direction_next = self._flow_direction_next, self._flow_direction
        self._step_count += 1

        stats = StepStats(
            step_index=self._step_count,
            eroded_cells=int(np.count_nonzero(erode > 0.0)),
            deposited_cells=int(np.count_nonzero(deposit > 0.0)),
            min_delta=float(np.min(delta)),
            max_delta=float(np.max(delta)),
            total_eroded=float(np.sum(erode)),
            total_deposited=float(np.sum(deposit)),
            total_water=float(np.sum(self._water, dtype=np.float64)),
            total_sediment=float(np.sum(self._sediment, dtype=np.float64)),
            step_seconds=time.perf_counter() - t0,
        )
        logger.debug(
            "erosion step %d: eroded=%d deposited=%d delta=[%.5f, %.5f] water=%.4f sediment=%.4f",
            stats.step_index,
            stats.eroded_cells,
            stats.deposited_cells,
            stats.min_delta,
            stats.max_delta,
            stats.total_water,
            stats.total_sediment,
        )
        return stats
