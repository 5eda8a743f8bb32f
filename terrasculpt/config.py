"""Configuration models for terrain sculpting and erosion."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
import math
from typing import Any, Mapping


BRUSH_TYPES = ("raise", "lower", "smooth", "flatten", "erosion")
BRUSH_SHAPES = ("circle", "square", "diamond", "star", "line", "ellipse")
DEBUG_MODES = ("water", "flow", "sediment", "height_delta", "cumulative")

DEFAULT_SIZE = 256.0
DEFAULT_SEGMENTS = 256


class ConfigError(ValueError):
    """Raised when a configuration value is outside its accepted range."""


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(float(value)):
        raise ConfigError(f"{name} must be finite, got {value!r}")


@dataclass(frozen=True)
class TerrainConfig:
    """Physical extent, resolution, and height bounds of a terrain patch."""

    size: float = DEFAULT_SIZE
    segments: int = DEFAULT_SEGMENTS
    min_height: float = -5.0
    max_height: float = 15.0
    noise_scale: float = 0.02
    noise_octaves: int = 4

    def validate(self) -> None:
        for name in ("size", "min_height", "max_height", "noise_scale"):
            _require_finite(name, getattr(self, name))
        if self.size <= 0:
            raise ConfigError(f"size must be positive, got {self.size}")
        if int(self.segments) != self.segments or self.segments < 1:
            raise ConfigError(f"segments must be a positive integer, got {self.segments}")
        if self.min_height >= self.max_height:
            raise ConfigError(
                f"min_height ({self.min_height}) must be below max_height ({self.max_height})"
            )
        if self.noise_octaves < 1:
            raise ConfigError(f"noise_octaves must be >= 1, got {self.noise_octaves}")

    @property
    def grid_size(self) -> int:
        return int(self.segments) + 1

    @property
    def cell_size(self) -> float:
        return float(self.size) / float(self.segments)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BrushConfig:
    """One brush sample: footprint pose plus behaviour."""

    radius: float = 10.0
    strength: float = 0.5
    type: str = "raise"
    shape: str = "circle"
    aspect_ratio: float = 1.0
    rotation: float = 0.0

    def validate(self) -> None:
        for name in ("radius", "strength", "aspect_ratio", "rotation"):
            _require_finite(name, getattr(self, name))
        if self.radius <= 0:
            raise ConfigError(f"brush radius must be positive, got {self.radius}")
        if self.aspect_ratio <= 0:
            raise ConfigError(f"brush aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.type not in BRUSH_TYPES:
            raise ConfigError(f"unknown brush type {self.type!r}; expected one of {', '.join(BRUSH_TYPES)}")
        if self.shape not in BRUSH_SHAPES:
            raise ConfigError(f"unknown brush shape {self.shape!r}; expected one of {', '.join(BRUSH_SHAPES)}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ErosionConfig:
    """Rates and thresholds of the cellular hydraulic erosion step."""

    rainfall_rate: float = 0.01
    erosion_rate: float = 0.3
    deposition_rate: float = 0.3
    evaporation_rate: float = 0.01
    max_erosion: float = 0.1
    min_slope_for_flow: float = 0.001
    deposition_threshold: float = 0.1
    capacity_constant: float = 10.0
    max_sediment_capacity: float = 1.0
    flow_inertia: float = 0.3
    debug_aggressive: bool = False

    def validate(self) -> None:
        for f in fields(self):
            if f.name == "debug_aggressive":
                continue
            value = getattr(self, f.name)
            _require_finite(f.name, value)
            if value < 0:
                raise ConfigError(f"{f.name} must be non-negative, got {value}")
        if not 0.0 <= self.flow_inertia <= 1.0:
            raise ConfigError(f"flow_inertia must be in [0, 1], got {self.flow_inertia}")
        if self.evaporation_rate > 1.0:
            raise ConfigError(f"evaporation_rate must be <= 1, got {self.evaporation_rate}")

    def merged(self, partial: Mapping[str, Any]) -> "ErosionConfig":
        """Return a copy with `partial` merged over the current values."""

        known = {f.name for f in fields(self)}
        unknown = sorted(set(partial) - known)
        if unknown:
            raise ConfigError(f"unknown erosion config keys: {', '.join(unknown)}")
        updated = replace(self, **dict(partial))
        updated.validate()
        return updated

    def effective(self) -> "ErosionConfig":
        """Rates actually applied by a step, with debug-aggressive scaling folded in."""

        if not self.debug_aggressive:
            return self
        return replace(
            self,
            rainfall_rate=self.rainfall_rate * 10.0,
            evaporation_rate=0.0,
            erosion_rate=min(self.erosion_rate * 5.0, 1.0),
            deposition_rate=min(self.deposition_rate * 5.0, 1.0),
            max_erosion=self.max_erosion * 5.0,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RenderConfig:
    """Derived raster rendering configuration."""

    hillshade_azimuth_deg: float = 315.0
    hillshade_altitude_deg: float = 45.0
    hillshade_vertical_exaggeration: float = 2.0


@dataclass(frozen=True)
class SessionConfig:
    """Everything a sculpting session needs to be reproduced."""

    terrain: TerrainConfig = field(default_factory=TerrainConfig)
    brush: BrushConfig = field(default_factory=BrushConfig)
    erosion: ErosionConfig = field(default_factory=ErosionConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def validate(self) -> None:
        self.terrain.validate()
        self.brush.validate()
        self.erosion.validate()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
