from __future__ import annotations

import numpy as np
import pytest

from terrasculpt.config import DEBUG_MODES, ConfigError, ErosionConfig, TerrainConfig
from terrasculpt.debugviz import STABLE_GRAY, debug_buffers, debug_rgba
from terrasculpt.erosion import ErosionSimulator
from terrasculpt.heightfield import HeightField


def _ramp_sim(steps: int) -> ErosionSimulator:
    cfg = TerrainConfig(size=8.0, segments=8)
    n = cfg.grid_size
    heights = np.repeat(np.arange(n, dtype=np.float32)[:, None], n, axis=1)
    sim = ErosionSimulator(HeightField(cfg, heights), ErosionConfig(rainfall_rate=0.05))
    sim.run(steps)
    return sim


def test_fresh_simulation_renders_opaque_black_or_gray() -> None:
    sim = _ramp_sim(0)
    buffers = debug_buffers(sim)
    assert set(buffers) == set(DEBUG_MODES)
    for mode, rgba in buffers.items():
        assert rgba.shape == (9, 9, 4), mode
        assert rgba.dtype == np.uint8, mode
        assert np.all(rgba[..., 3] == 255), mode
    assert not np.any(buffers["water"][..., :3])
    assert np.all(buffers["cumulative"][..., :3] == STABLE_GRAY)


def test_water_and_flow_use_their_channels() -> None:
    sim = _ramp_sim(3)
    water = debug_rgba(sim, "water")
    assert int(water[..., 2].max()) == 255
    assert not np.any(water[..., :2])

    flow = debug_rgba(sim, "flow")
    assert int(flow[..., 0].max()) == 255
    assert not np.any(flow[0, :, 0])


def test_cumulative_colours_erosion_red_and_deposition_green() -> None:
    sim = _ramp_sim(6)
    rgba = debug_rgba(sim, "cumulative")
    cumulative = sim.cumulative_erosion
    eroded = cumulative < -1e-6
    deposited = cumulative > 1e-6
    assert eroded.any() and deposited.any()
    assert np.all(rgba[eroded][:, 1] == 0)
    assert np.all(rgba[deposited][:, 0] == 0)
    assert int(rgba[..., 0].max()) == 255 or int(rgba[..., 1].max()) == 255


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ConfigError):
        debug_rgba(_ramp_sim(0), "velocity")
