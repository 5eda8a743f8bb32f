from __future__ import annotations

import numpy as np
import pytest

from terrasculpt.metrics import height_stats, volume


def test_height_stats_on_linear_ramp() -> None:
    heights = np.repeat(np.linspace(0.0, 10.0, 11)[:, None], 4, axis=1)
    stats = height_stats(heights)
    assert stats.min_height == 0.0
    assert stats.max_height == 10.0
    assert stats.mean_height == pytest.approx(5.0)
    assert stats.hypsometric_integral == pytest.approx(0.5)


def test_flat_field_has_zero_hypsometric_integral() -> None:
    assert height_stats(np.full((5, 5), 3.0)).hypsometric_integral == 0.0


def test_volume_scales_with_cell_area() -> None:
    heights = np.full((4, 4), 2.0, dtype=np.float32)
    assert volume(heights, cell_size=0.5) == pytest.approx(16 * 2.0 * 0.25)
    assert volume(heights, cell_size=0.5, datum=2.0) == 0.0
    with pytest.raises(ValueError):
        volume(heights, cell_size=0.0)
