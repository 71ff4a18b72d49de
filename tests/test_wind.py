"""Tests for aeolia.wind — rose sampling and wind-field synthesis."""

from __future__ import annotations

import numpy as np
import pytest

from aeolia.simulation.config import WindConfig, WindRoseEntry
from aeolia.terrain.grid import Grid
from aeolia.wind.field import shadowing, synthesize_wind
from aeolia.wind.rose import WindRose, WindSample

_EAST = WindSample(direction=90.0, magnitude=10.0)


def _hill(size: int = 32, height: float = 30.0) -> Grid:
    rr, cc = np.indices((size, size), dtype=np.float64)
    centre = size / 2.0
    heights = height * np.exp(-((rr - centre) ** 2 + (cc - centre) ** 2) / 40.0)
    return Grid.from_elevation(heights, cell_size=1.0)


def _wall() -> Grid:
    heights = np.zeros((20, 20))
    heights[:, 5] = 10.0
    return Grid.from_elevation(heights, cell_size=1.0)


class TestWindRose:
    """Tests for the discrete wind distribution."""

    def test_vector_components(self) -> None:
        east = WindSample(direction=90.0, magnitude=10.0).vector
        north = WindSample(direction=0.0, magnitude=10.0).vector
        assert east == pytest.approx((0.0, 10.0), abs=1e-9)
        assert north == pytest.approx((-10.0, 0.0), abs=1e-9)

    def test_single_entry_always_sampled(self, rng: np.random.Generator) -> None:
        rose = WindRose(entries=[WindRoseEntry(direction=45.0, magnitude=7.0)])
        for _ in range(10):
            assert rose.sample(rng) == WindSample(45.0, 7.0)

    def test_frequencies_follow_weights(self, rng: np.random.Generator) -> None:
        rose = WindRose(
            entries=[
                WindRoseEntry(direction=90.0, magnitude=8.0, weight=3.0),
                WindRoseEntry(direction=270.0, magnitude=8.0, weight=1.0),
            ],
        )
        draws = [rose.sample(rng).direction for _ in range(4000)]
        share = draws.count(90.0) / len(draws)
        assert share == pytest.approx(0.75, abs=0.03)

    def test_mean_vector(self) -> None:
        rose = WindRose(
            entries=[
                WindRoseEntry(direction=90.0, magnitude=8.0),
                WindRoseEntry(direction=270.0, magnitude=8.0),
            ],
        )
        assert rose.mean_vector() == pytest.approx((0.0, 0.0), abs=1e-9)


class TestWindField:
    """Tests for the three synthesis layers."""

    def test_flat_terrain_is_pure_rose(self, flat_grid: Grid) -> None:
        field = synthesize_wind(flat_grid, _EAST, WindConfig(), step=3)
        assert field.step == 3
        assert np.allclose(field.vectors[..., 0], 0.0, atol=1e-9)
        assert np.allclose(field.vectors[..., 1], 10.0)
        assert np.all(field.shadow == 0.0)

    def test_rose_model_ignores_terrain(self) -> None:
        field = synthesize_wind(_hill(), _EAST, WindConfig(model="rose"), step=1)
        assert np.allclose(field.magnitudes, 10.0)

    def test_warp_deflects_around_landforms(self) -> None:
        field = synthesize_wind(_hill(), _EAST, WindConfig(model="rose+warp"), step=1)
        assert np.all(np.isfinite(field.vectors))
        assert np.abs(field.vectors[..., 0]).max() > 0.1
        assert np.all(field.shadow == 0.0)

    def test_lee_of_a_wall_is_sheltered(self) -> None:
        grid = _wall()
        shadow = shadowing(grid.heights(), _EAST, WindConfig(), grid.cell_size)
        assert np.all(shadow[:, 6] == 1.0)
        assert np.all(shadow[:, 3] == 0.0)

    def test_shadow_attenuates_wind(self) -> None:
        field = synthesize_wind(_wall(), _EAST, WindConfig(), step=1)
        assert field.speed_at(10, 6) == pytest.approx(0.0)
        assert field.speed_at(10, 3) > 0.0

    def test_shadow_ramp(self) -> None:
        heights = np.zeros((1, 4))
        # A 12.5 degree horizon sits halfway along the 10-15 degree ramp.
        heights[0, 0] = np.tan(np.radians(12.5))
        grid = Grid.from_elevation(heights, cell_size=1.0)
        shadow = shadowing(grid.heights(), _EAST, WindConfig(shadow_distance=1), 1.0)
        assert shadow[0, 1] == pytest.approx(0.5)
        assert shadow[0, 0] == 0.0

    def test_at_returns_components(self, flat_grid: Grid) -> None:
        field = synthesize_wind(flat_grid, _EAST, WindConfig(), step=1)
        d_row, d_col = field.at(0, 0)
        assert d_row == pytest.approx(0.0, abs=1e-9)
        assert d_col == pytest.approx(10.0)
