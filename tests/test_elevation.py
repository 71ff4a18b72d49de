"""Tests for aeolia.terrain.elevation — ingestion, synthesis and seeding."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from numpy.random import Generator

from aeolia.errors import ConfigurationError
from aeolia.simulation.config import InitialConfig, SimulationConfig, VegetationConfig
from aeolia.terrain.elevation import (
    SYNTHETIC_KINDS,
    load_elevation,
    seed_grid,
    synthetic_elevation,
)
from aeolia.terrain.grid import Grid
from aeolia.terrain.materials import Material

_SAMPLE = np.arange(12, dtype=np.float64).reshape(3, 4)


class TestLoadElevation:
    """Tests for reading elevation samples from disk."""

    def test_npy(self, tmp_path: Path) -> None:
        path = tmp_path / "dem.npy"
        np.save(path, _SAMPLE)
        assert np.array_equal(load_elevation(path), _SAMPLE)

    def test_npz_prefers_elevation_key(self, tmp_path: Path) -> None:
        path = tmp_path / "dem.npz"
        np.savez(path, other=np.zeros((2, 2)), elevation=_SAMPLE)
        assert np.array_equal(load_elevation(path), _SAMPLE)

    def test_text(self, tmp_path: Path) -> None:
        path = tmp_path / "dem.txt"
        np.savetxt(path, _SAMPLE)
        assert np.allclose(load_elevation(path), _SAMPLE)

    def test_rejects_1d(self, tmp_path: Path) -> None:
        path = tmp_path / "line.npy"
        np.save(path, np.zeros(5))
        with pytest.raises(ConfigurationError):
            load_elevation(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_elevation(tmp_path / "nothing.npy")


class TestSyntheticElevation:
    """Tests for the generated starting terrains."""

    @pytest.mark.parametrize("kind", SYNTHETIC_KINDS)
    def test_shape_and_finite(self, kind: str, rng: Generator) -> None:
        heights = synthetic_elevation(kind, 10, 14, rng)
        assert heights.shape == (10, 14)
        assert np.all(np.isfinite(heights))

    def test_flat_is_flat(self, rng: Generator) -> None:
        assert np.ptp(synthetic_elevation("flat", 5, 5, rng)) == 0.0

    def test_unknown_kind(self, rng: Generator) -> None:
        with pytest.raises(ConfigurationError):
            synthetic_elevation("volcano", 5, 5, rng)


class TestSeedGrid:
    """Tests for the authored starting state."""

    def test_uniform_layers(
        self, flat_grid: Grid, default_config: SimulationConfig
    ) -> None:
        seed_grid(flat_grid, default_config)
        initial = default_config.initial
        assert np.allclose(flat_grid.layers[Material.SAND], initial.sand_depth)
        assert np.allclose(flat_grid.layers[Material.ROCK], initial.rock_depth)
        assert np.allclose(flat_grid.layers[Material.HUMUS], initial.humus_depth)
        assert np.allclose(flat_grid.moisture, initial.moisture)

    def test_humus_thins_on_slopes(self, default_config: SimulationConfig) -> None:
        heights = np.zeros((6, 6))
        heights[:, 3:] = np.arange(3) * 2.0 + 2.0
        grid = Grid.from_elevation(heights, cell_size=1.0)
        seed_grid(grid, default_config)
        depth = default_config.initial.humus_depth
        assert grid.thickness(Material.HUMUS, 2, 0) == pytest.approx(depth)
        assert grid.thickness(Material.HUMUS, 2, 4) < depth

    def test_vegetation_clipped_to_cap(self, flat_grid: Grid) -> None:
        config = SimulationConfig(
            vegetation=VegetationConfig(occupancy_cap=0.5),
            initial=InitialConfig(vegetation={"trees": 0.5, "bushes": 0.5}),
        )
        seed_grid(flat_grid, config)
        assert np.allclose(flat_grid.density.sum(axis=0), 0.5)
        assert flat_grid.density.max() <= 0.25 + 1e-12
