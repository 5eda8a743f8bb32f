"""Terrain sculpting and hydraulic erosion package."""

from .brushes import BrushResult, ErosionCapability, apply_brush
from .config import BrushConfig, ConfigError, ErosionConfig, SessionConfig, TerrainConfig
from .erosion import ErosionSimulator, StepStats
from .heightfield import HeightField, HeightRegion

__all__ = [
    "BrushConfig",
    "BrushResult",
    "ConfigError",
    "ErosionCapability",
    "ErosionConfig",
    "ErosionSimulator",
    "HeightField",
    "HeightRegion",
    "SessionConfig",
    "StepStats",
    "TerrainConfig",
    "apply_brush",
]
