"""Tests for aeolia.ecology — climate forcing and sun exposure."""

from __future__ import annotations

import numpy as np
import pytest

from aeolia.ecology.climate import seasonal_offset, temperature_field, update_climate
from aeolia.ecology.illumination import horizon_angles, sun_exposure
from aeolia.simulation.config import ClimateConfig
from aeolia.simulation.context import SimulationContext
from aeolia.terrain.grid import Grid


class TestClimate:
    """Tests for temperature and moisture forcing."""

    def test_colder_with_elevation(self) -> None:
        cfg = ClimateConfig(seasonal_amplitude=0.0)
        temps = temperature_field(np.array([[100.0, 1100.0]]), step=0, config=cfg)
        assert temps[0, 0] == pytest.approx(cfg.base_temperature)
        assert temps[0, 1] == pytest.approx(cfg.base_temperature - 6.5)

    def test_season_is_periodic(self) -> None:
        cfg = ClimateConfig()
        next_year = seasonal_offset(3 + cfg.season_length, cfg)
        assert seasonal_offset(3, cfg) == pytest.approx(next_year)
        assert seasonal_offset(3, cfg) == pytest.approx(cfg.seasonal_amplitude)
        assert seasonal_offset(0, cfg) == pytest.approx(0.0)

    def test_update_evaporates_and_sets_temperature(
        self, flat_grid: Grid, context: SimulationContext,
    ) -> None:
        flat_grid.moisture[:] = 1.0
        update_climate(flat_grid, context)
        rate = context.config.climate.evaporation_rate
        assert np.allclose(flat_grid.moisture, 1.0 - rate)
        assert np.all(np.isfinite(flat_grid.temperature))
        assert np.ptp(flat_grid.temperature) == pytest.approx(0.0)


class TestIllumination:
    """Tests for the horizon-occlusion pass."""

    def test_flat_ground_sees_everything(self) -> None:
        exposure = sun_exposure(np.zeros((6, 6)), 1.0, [20.0, 45.0], 8, 5)
        assert np.allclose(exposure, 1.0)

    def test_pit_is_shaded(self) -> None:
        heights = np.full((9, 9), 10.0)
        heights[4, 4] = 0.0
        exposure = sun_exposure(heights, 1.0, [20.0, 45.0, 70.0], 8, 4)
        assert exposure[4, 4] < 0.5
        assert exposure[0, 0] == pytest.approx(1.0)

    def test_wall_blocks_low_sun_only(self) -> None:
        heights = np.zeros((1, 4))
        heights[0, 3] = 1.0
        horizon = horizon_angles(heights, 1.0, azimuth=90.0, distance=3)
        assert horizon[0, 2] == pytest.approx(45.0)
        # Four azimuths x two elevations; only the low eastern sun is hidden.
        exposure = sun_exposure(heights, 1.0, [30.0, 60.0], 4, 3)
        assert exposure[0, 2] == pytest.approx(7.0 / 8.0)
        assert exposure[0, 0] == pytest.approx(1.0)
