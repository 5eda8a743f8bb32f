"""Serialization of terrain state and raster artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image

from terrasculpt.config import TerrainConfig
from terrasculpt.heightfield import HeightField


HEIGHTS_FILE = "heights.npy"
TERRAIN_FILE = "terrain.json"


def resolve_output_dir(out_root: str | Path, name: str, *, overwrite: bool) -> Path:
    """Create and return the output directory for one run."""

    target = Path(out_root) / name
    if target.exists() and any(target.iterdir()) and not overwrite:
        raise FileExistsError(
            f"Output directory already exists and is not empty: {target}. Use --overwrite to replace files."
        )
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_height_npy(path: str | Path, heights: np.ndarray) -> None:
    np.save(Path(path), heights.astype(np.float32), allow_pickle=False)


def read_height_npy(path: str | Path) -> np.ndarray:
    return np.load(Path(path), allow_pickle=False).astype(np.float32)


def write_png_u16(path: str | Path, raster_u16: np.ndarray) -> None:
    Image.fromarray(raster_u16.astype(np.uint16)).save(Path(path))


def write_png_u8(path: str | Path, raster_u8: np.ndarray) -> None:
    Image.fromarray(raster_u8.astype(np.uint8)).save(Path(path))


def write_png_rgba(path: str | Path, rgba: np.ndarray) -> None:
    if rgba.ndim != 3 or rgba.shape[2] != 4:
        raise ValueError("rgba raster must have shape (H, W, 4)")
    Image.fromarray(rgba.astype(np.uint8)).save(Path(path))


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    Path(path).write_text(text + "\n", encoding="utf-8")


def read_json(path: str | Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def save_terrain(directory: str | Path, terrain: HeightField) -> Path:
    """Write heights and terrain config so the field can be rebuilt exactly."""

    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    write_height_npy(target / HEIGHTS_FILE, terrain.heights)
    write_json(target / TERRAIN_FILE, terrain.config.to_dict())
    return target


def load_terrain(directory: str | Path) -> HeightField:
    source = Path(directory)
    config = TerrainConfig(**read_json(source / TERRAIN_FILE))
    return HeightField(config, read_height_npy(source / HEIGHTS_FILE))
