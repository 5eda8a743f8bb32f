from __future__ import annotations

import pytest

from terrasculpt.config import BrushConfig, ConfigError, ErosionConfig, SessionConfig, TerrainConfig


def test_defaults_validate() -> None:
    SessionConfig().validate()
    cfg = TerrainConfig()
    assert cfg.grid_size == 257
    assert cfg.cell_size == pytest.approx(1.0)


def test_erosion_config_rejects_out_of_range_values() -> None:
    for bad in (
        ErosionConfig(rainfall_rate=-0.1),
        ErosionConfig(flow_inertia=1.2),
        ErosionConfig(evaporation_rate=1.5),
        ErosionConfig(erosion_rate=float("inf")),
    ):
        with pytest.raises(ConfigError):
            bad.validate()


def test_effective_config_only_scales_in_debug_mode() -> None:
    base = ErosionConfig(rainfall_rate=0.02, erosion_rate=0.3, max_erosion=0.1)
    assert base.effective() is base

    boosted = ErosionConfig(rainfall_rate=0.02, erosion_rate=0.3, max_erosion=0.1, debug_aggressive=True).effective()
    assert boosted.rainfall_rate == pytest.approx(0.2)
    assert boosted.evaporation_rate == 0.0
    assert boosted.erosion_rate == pytest.approx(1.0)
    assert boosted.max_erosion == pytest.approx(0.5)


def test_config_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        BrushConfig(shape="blob").validate()


def test_session_to_dict_nests_sections() -> None:
    payload = SessionConfig().to_dict()
    assert set(payload) == {"terrain", "brush", "erosion", "render"}
    assert payload["brush"]["shape"] == "circle"
    assert payload["erosion"]["capacity_constant"] == 10.0
