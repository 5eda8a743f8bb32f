from __future__ import annotations

import numpy as np
import pytest

from terrasculpt.brushes import apply_brush
from terrasculpt.config import BrushConfig, ConfigError, ErosionConfig, TerrainConfig
from terrasculpt.erosion import ErosionSimulator
from terrasculpt.heightfield import HeightField


def _flat_5x5(height: float = 2.0) -> HeightField:
    return HeightField.flat(TerrainConfig(size=4.0, segments=4, min_height=-5.0, max_height=15.0), height)


def _ramp(segments: int = 8) -> HeightField:
    cfg = TerrainConfig(size=float(segments), segments=segments, min_height=-5.0, max_height=15.0)
    n = cfg.grid_size
    rows = np.arange(n, dtype=np.float32)
    return HeightField(cfg, np.repeat(rows[:, None], n, axis=1))


def _hills(seed: int = 5, segments: int = 24) -> HeightField:
    return HeightField.generate(TerrainConfig(size=48.0, segments=segments, noise_scale=0.08), seed=seed)


def test_flat_terrain_only_rains_and_evaporates() -> None:
    terrain = _flat_5x5()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.01))
    stats = sim.step()

    expected = 0.01 * (1.0 - sim.config.evaporation_rate)
    np.testing.assert_allclose(sim.water, expected, rtol=1e-6)
    assert np.all(sim.sediment == 0.0)
    assert np.all(sim.flow == 0.0)
    assert np.all(sim.height_delta == 0.0)
    assert np.all(terrain.heights == 2.0)
    assert stats.eroded_cells == 0
    assert stats.deposited_cells == 0


def test_cell_size_comes_from_terrain() -> None:
    terrain = HeightField(TerrainConfig(size=30.0, segments=10))
    assert ErosionSimulator(terrain).cell_size == pytest.approx(3.0)


def test_ramp_flows_only_downhill_between_rows() -> None:
    terrain = _ramp()
    sim = ErosionSimulator(terrain)
    sim.step()

    flow = sim.flow
    direction = sim.flow_direction
    assert np.all(flow[1:] > 0.0)
    assert np.all(flow[0] == 0.0)
    np.testing.assert_allclose(direction[1:, :, 0], 0.0)
    np.testing.assert_allclose(direction[1:, :, 1], -1.0)
    np.testing.assert_allclose(direction[0], 0.0)
    # Top row drains completely; the bottom row collects.
    assert np.all(sim.water[-1] == 0.0)
    assert float(sim.water[0].sum()) > float(sim.water[1].sum())


def test_ramp_erodes_crest_side_and_fills_base() -> None:
    terrain = _ramp()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.05, erosion_rate=0.5, deposition_rate=0.5))
    sim.run(12)

    cumulative = sim.cumulative_erosion
    assert np.all(cumulative[-1] <= 0.0)
    assert np.all(cumulative[0] >= 0.0)
    assert float(cumulative[1:-1].min()) < 0.0
    assert float(cumulative[0].max()) > 0.0


def test_step_keeps_water_and_sediment_non_negative_and_heights_bounded() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain, ErosionConfig(debug_aggressive=True))
    for _ in range(15):
        sim.step()
        assert float(sim.water.min()) >= 0.0
        assert float(sim.sediment.min()) >= 0.0
        assert np.isfinite(terrain.heights).all()
        assert float(terrain.heights.min()) >= terrain.min_height
        assert float(terrain.heights.max()) <= terrain.max_height


def test_step_conserves_mass_between_terrain_and_sediment() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.05))
    sim.run(3)
    sediment_before = float(np.sum(sim.sediment, dtype=np.float64))
    stats = sim.step()
    sediment_after = float(np.sum(sim.sediment, dtype=np.float64))
    delta_sum = float(np.sum(sim.height_delta, dtype=np.float64))

    assert stats.total_eroded > 0.0
    assert delta_sum == pytest.approx(stats.net_height_change, abs=1e-5)
    assert delta_sum == pytest.approx(-(sediment_after - sediment_before), abs=1e-5)


def test_water_routing_conserves_water_without_evaporation() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.02, evaporation_rate=0.0))
    cells = terrain.grid_size**2
    sim.run(4)
    assert float(np.sum(sim.water, dtype=np.float64)) == pytest.approx(0.02 * 4 * cells, rel=1e-4)


def test_step_delta_range_brackets_zero() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.05))
    for _ in range(5):
        stats = sim.step()
        assert stats.min_delta <= 0.0 <= stats.max_delta


def test_erosion_respects_min_height() -> None:
    cfg = TerrainConfig(size=8.0, segments=8, min_height=0.0, max_height=15.0)
    n = cfg.grid_size
    heights = np.repeat((np.arange(n, dtype=np.float32) * 0.01)[:, None], n, axis=1)
    terrain = HeightField(cfg, heights)
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.5, max_erosion=1.0, debug_aggressive=True))
    sim.run(10)
    assert float(terrain.heights.min()) >= 0.0


def test_persistent_flow_is_capped() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.5, debug_aggressive=True))
    sim.run(20)
    assert float(sim.persistent_flow.max()) <= 1.0
    assert float(sim.persistent_flow.max()) > 0.0


def test_reset_clears_fields_but_keeps_heights() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain)
    sim.run(5)
    heights = terrain.heights.copy()
    sim.reset()
    for field in (
        sim.water,
        sim.sediment,
        sim.flow,
        sim.flow_direction,
        sim.height_delta,
        sim.cumulative_erosion,
        sim.persistent_flow,
    ):
        assert not np.any(field)
    assert np.array_equal(terrain.heights, heights)
    assert sim.step_count == 0


def test_fields_are_read_only() -> None:
    sim = ErosionSimulator(_flat_5x5())
    with pytest.raises(ValueError):
        sim.water[0, 0] = 1.0
    with pytest.raises(ValueError):
        sim.flow_direction[0, 0, 0] = 1.0


def test_update_config_merges_and_validates() -> None:
    sim = ErosionSimulator(_flat_5x5())
    cfg = sim.update_config({"rainfall_rate": 0.2}, flow_inertia=0.9)
    assert cfg.rainfall_rate == 0.2
    assert cfg.flow_inertia == 0.9
    assert cfg.erosion_rate == ErosionConfig().erosion_rate
    with pytest.raises(ConfigError):
        sim.update_config(flow_inertia=1.5)
    with pytest.raises(ConfigError):
        sim.update_config(gravity=9.8)
    assert sim.config.flow_inertia == 0.9


def test_debug_aggressive_scales_rain_and_disables_evaporation() -> None:
    terrain = _flat_5x5()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.01, debug_aggressive=True))
    sim.step()
    np.testing.assert_allclose(sim.water, 0.1, rtol=1e-6)


def test_flow_inertia_biases_split_toward_previous_direction() -> None:
    cfg = TerrainConfig(size=4.0, segments=4, min_height=-5.0, max_height=15.0)
    heights = np.full((5, 5), 5.0, dtype=np.float32)
    heights[2, 2] = 6.0
    terrain_a = HeightField(cfg, heights)
    terrain_b = HeightField(cfg, heights)

    sim_a = ErosionSimulator(terrain_a, ErosionConfig(flow_inertia=1.0, erosion_rate=0.0, deposition_rate=0.0))
    sim_b = ErosionSimulator(terrain_b, ErosionConfig(flow_inertia=0.0, erosion_rate=0.0, deposition_rate=0.0))
    # Seed a previous +x flow direction on the peak.
    for sim in (sim_a, sim_b):
        sim._flow_direction[2, 2] = (1.0, 0.0)
    sim_a.step()
    sim_b.step()

    assert sim_a.water[2, 3] > sim_a.water[2, 1]
    assert sim_b.water[2, 3] == pytest.approx(sim_b.water[2, 1])
    assert sim_a.flow_direction[2, 2, 0] > 0.0


def test_apply_erosion_at_adds_rain_burst_and_steps() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.0, evaporation_rate=0.0))
    stats = sim.apply_erosion_at(0.0, 0.0, 6.0, 1.0)
    assert stats.step_index == 1
    assert stats.total_water > 0.0
    with pytest.raises(ConfigError):
        sim.apply_erosion_at(0.0, 0.0, 0.0, 1.0)


def test_erosion_brush_routes_through_simulator() -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain)
    result = apply_brush(terrain, 0.0, 0.0, BrushConfig(radius=6.0, strength=1.0, type="erosion"), sim)
    assert result.delegated
    assert sim.step_count == 1


def test_erosion_stays_within_bounds_not_exact_in_float32() -> None:
    cfg = TerrainConfig(size=8.0, segments=8, min_height=-0.3, max_height=0.3)
    n = cfg.grid_size
    heights = np.repeat(np.linspace(-0.3, 0.3, n, dtype=np.float32)[:, None], n, axis=1)
    terrain = HeightField(cfg, np.clip(heights, -0.29, 0.29))
    sim = ErosionSimulator(terrain, ErosionConfig(rainfall_rate=0.5, max_erosion=1.0, debug_aggressive=True))
    sim.run(10)
    assert float(terrain.heights.min()) >= -0.3
    assert float(terrain.heights.max()) <= 0.3


@pytest.mark.parametrize(
    ("x", "z", "strength"),
    [(0.0, 0.0, float("nan")), (float("inf"), 0.0, 1.0), (0.0, float("nan"), 1.0)],
)
def test_apply_erosion_at_rejects_non_finite_input_before_mutation(x: float, z: float, strength: float) -> None:
    terrain = _hills()
    sim = ErosionSimulator(terrain)
    sim.run(2)
    water = sim.water.copy()
    heights = terrain.heights.copy()
    with pytest.raises(ConfigError):
        sim.apply_erosion_at(x, z, 6.0, strength)
    assert np.array_equal(sim.water, water)
    assert np.array_equal(terrain.heights, heights)
    assert sim.step_count == 2
