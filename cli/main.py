"""CLI entry point for scripted sculpting and erosion runs."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
import logging
import platform
import time

import numpy as np
from terrasculpt.brushes import apply_brush
from terrasculpt.config import (
    BRUSH_SHAPES,
    BRUSH_TYPES,
    DEBUG_MODES,
    BrushConfig,
    ConfigError,
    ErosionConfig,
    RenderConfig,
    SessionConfig,
    TerrainConfig,
)
from terrasculpt.debugviz import debug_rgba
from terrasculpt.derive import height_preview_u16, hillshade
from terrasculpt.erosion import ErosionSimulator, StepStats
from terrasculpt.heightfield import HeightField
from terrasculpt.io import (
    load_terrain,
    resolve_output_dir,
    save_terrain,
    write_json,
    write_png_rgba,
    write_png_u16,
    write_png_u8,
)
from terrasculpt.metrics import height_stats, volume


logger = logging.getLogger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sculpt and erode a terrain height field")
    parser.add_argument("--out", default="out", help="Output root directory")
    parser.add_argument("--name", default="session", help="Run name; outputs go to OUT/NAME")
    parser.add_argument("--overwrite", action="store_true", help="Overwrite files in existing output directory")
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write metadata JSON",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")

    terrain = parser.add_argument_group("terrain")
    terrain.add_argument("--load", help="Load a terrain previously written by this tool")
    terrain.add_argument("--init", choices=("flat", "ramp", "noise"), default="noise", help="Initial terrain")
    terrain.add_argument("--seed", type=int, default=0, help="Seed for noise terrain")
    terrain.add_argument("--size", type=float, default=TerrainConfig.size, help="Side length in world units")
    terrain.add_argument("--segments", type=int, default=TerrainConfig.segments, help="Cells per side")
    terrain.add_argument("--min-height", type=float, default=TerrainConfig.min_height)
    terrain.add_argument("--max-height", type=float, default=TerrainConfig.max_height)
    terrain.add_argument("--base-height", type=float, default=0.0, help="Height of a flat terrain")

    brush = parser.add_argument_group("brush")
    brush.add_argument("--brush", choices=BRUSH_TYPES, default=BrushConfig.type)
    brush.add_argument("--shape", choices=BRUSH_SHAPES, default=BrushConfig.shape)
    brush.add_argument("--radius", type=float, default=BrushConfig.radius)
    brush.add_argument("--strength", type=float, default=BrushConfig.strength)
    brush.add_argument("--aspect-ratio", type=float, default=BrushConfig.aspect_ratio)
    brush.add_argument("--rotation", type=float, default=BrushConfig.rotation, help="Brush rotation in radians")
    brush.add_argument(
        "--stroke",
        action="append",
        default=[],
        metavar="X,Z",
        help="World position of one brush sample; repeat for a stroke",
    )
    brush.add_argument(
        "--erosion-brush-simulated",
        action="store_true",
        help="Route erosion brush samples through the erosion simulator",
    )

    erosion = parser.add_argument_group("erosion")
    erosion.add_argument("--erosion-steps", type=int, default=0, help="Simulation steps after brushing")
    erosion.add_argument("--rainfall-rate", type=float, default=ErosionConfig.rainfall_rate)
    erosion.add_argument("--erosion-rate", type=float, default=ErosionConfig.erosion_rate)
    erosion.add_argument("--deposition-rate", type=float, default=ErosionConfig.deposition_rate)
    erosion.add_argument("--evaporation-rate", type=float, default=ErosionConfig.evaporation_rate)
    erosion.add_argument("--flow-inertia", type=float, default=ErosionConfig.flow_inertia)
    erosion.add_argument("--debug-aggressive", action="store_true", help="Exaggerate rates for visual testing")
    return parser


def _parse_point(text: str) -> tuple[float, float]:
    parts = text.split(",")
    if len(parts) != 2:
        raise ValueError(f"stroke point must be X,Z, got {text!r}")
    return float(parts[0]), float(parts[1])


def _initial_terrain(args: argparse.Namespace, config: TerrainConfig) -> HeightField:
    if args.load:
        return load_terrain(args.load)
    if args.init == "flat":
        return HeightField.flat(config, args.base_height)
    if args.init == "ramp":
        n = config.grid_size
        rows = np.linspace(config.min_height, config.max_height, num=n, dtype=np.float32)
        return HeightField(config, np.repeat(rows[:, None], n, axis=1))
    return HeightField.generate(config, seed=args.seed)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        session = SessionConfig(
            terrain=TerrainConfig(
                size=args.size,
                segments=args.segments,
                min_height=args.min_height,
                max_height=args.max_height,
            ),
            brush=BrushConfig(
                radius=args.radius,
                strength=args.strength,
                type=args.brush,
                shape=args.shape,
                aspect_ratio=args.aspect_ratio,
                rotation=args.rotation,
            ),
            erosion=ErosionConfig(
                rainfall_rate=args.rainfall_rate,
                erosion_rate=args.erosion_rate,
                deposition_rate=args.deposition_rate,
                evaporation_rate=args.evaporation_rate,
                flow_inertia=args.flow_inertia,
                debug_aggressive=args.debug_aggressive,
            ),
            render=RenderConfig(),
        )
        session.validate()
        strokes = [_parse_point(text) for text in args.stroke]
    except (ConfigError, ValueError) as exc:
        parser.error(str(exc))

    if args.erosion_steps < 0:
        parser.error("--erosion-steps must be non-negative")

    terrain = _initial_terrain(args, session.terrain)
    simulator = ErosionSimulator(terrain, session.erosion)

    sculpt_start = time.perf_counter()
    eroder = simulator if args.erosion_brush_simulated else None
    for x, z in strokes:
        apply_brush(terrain, x, z, session.brush, eroder)
    sculpt_seconds = time.perf_counter() - sculpt_start

    erosion_start = time.perf_counter()
    step_stats: list[StepStats] = simulator.run(args.erosion_steps)
    erosion_seconds = time.perf_counter() - erosion_start
    logger.info("applied %d brush samples and %d erosion steps", len(strokes), len(step_stats))

    out_dir = resolve_output_dir(args.out, args.name, overwrite=args.overwrite)
    save_terrain(out_dir, terrain)
    heights = np.asarray(terrain.heights)
    write_png_u16(
        out_dir / "height_16.png",
        height_preview_u16(heights, bounds=(terrain.min_height, terrain.max_height)),
    )
    write_png_u8(
        out_dir / "hillshade.png",
        hillshade(
            heights,
            cell_size=terrain.cell_size,
            azimuth_deg=session.render.hillshade_azimuth_deg,
            altitude_deg=session.render.hillshade_altitude_deg,
            vertical_exaggeration=session.render.hillshade_vertical_exaggeration,
        ),
    )
    for mode in DEBUG_MODES:
        write_png_rgba(out_dir / f"debug_{mode}.png", debug_rgba(simulator, mode))

    stats = height_stats(heights)
    if args.json:
        meta = {
            "config": {**session.to_dict(), "terrain": terrain.config.to_dict()},
            "strokes": [list(point) for point in strokes],
            "erosion_steps": len(step_stats),
            "height": {
                "min": stats.min_height,
                "max": stats.max_height,
                "mean": stats.mean_height,
                "std": stats.std_height,
                "hypsometric_integral": stats.hypsometric_integral,
                "volume": volume(heights, cell_size=terrain.cell_size),
            },
            "erosion": {
                "total_eroded": sum(s.total_eroded for s in step_stats),
                "total_deposited": sum(s.total_deposited for s in step_stats),
                "final_water": step_stats[-1].total_water if step_stats else 0.0,
                "final_sediment": step_stats[-1].total_sediment if step_stats else 0.0,
            },
            "sculpt_seconds": sculpt_seconds,
            "erosion_seconds": erosion_seconds,
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "python_version": platform.python_version(),
            "numpy_version": np.__version__,
        }
        write_json(out_dir / "meta.json", meta)

    print(f"Wrote terrain: {out_dir}")
    print(
        "Heights: "
        f"min={stats.min_height:.3f}, max={stats.max_height:.3f}, "
        f"mean={stats.mean_height:.3f}, hypsometric={stats.hypsometric_integral:.3f}"
    )
    print(f"Brush samples: {len(strokes)} ({session.brush.type}/{session.brush.shape}) in {sculpt_seconds:.3f} s")
    if step_stats:
        print(
            "Erosion: "
            f"steps={len(step_stats)}, "
            f"eroded={sum(s.total_eroded for s in step_stats):.4f}, "
            f"deposited={sum(s.total_deposited for s in step_stats):.4f}, "
            f"runtime={erosion_seconds:.3f}s"
        )
    file_count = sum(1 for child in out_dir.iterdir() if child.is_file())
    print(f"Output files: {file_count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
