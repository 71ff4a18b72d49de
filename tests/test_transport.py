"""Tests for aeolia.events.transport — saltation, reptation, avalanching."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.random import Generator

from aeolia.errors import StaleWindFieldError
from aeolia.events.registry import EventType, dispatch
from aeolia.events.transport import (
    apply_saltation,
    deposit_probability,
    hop_target,
    reptate,
)
from aeolia.simulation.config import SimulationConfig, TransportConfig
from aeolia.simulation.context import SimulationContext
from aeolia.terrain.grid import Grid
from aeolia.terrain.materials import Material
from aeolia.wind.field import WindField
from aeolia.wind.rose import WindSample


def _uniform_wind(grid: Grid, sample: WindSample, step: int) -> WindField:
    vectors = np.broadcast_to(np.array(sample.vector), (*grid.shape, 2)).copy()
    shadow = np.zeros(grid.shape)
    return WindField(step=step, base=sample, vectors=vectors, shadow=shadow)


def _sandy(rows: int, cols: int, depth: float = 0.5) -> Grid:
    grid = Grid.from_elevation(np.zeros((rows, cols)), cell_size=1.0)
    grid.layers[Material.SAND] = depth
    return grid


def _context(rng: Generator, **transport: float) -> SimulationContext:
    config = SimulationConfig(transport=TransportConfig(**transport))
    return SimulationContext(config=config, rng=rng, step=1)


class TestStaleWindGuard:
    """A transport handler must never read another step's wind field."""

    def test_missing_wind_raises(self, context: SimulationContext) -> None:
        grid = _sandy(4, 4)
        with pytest.raises(StaleWindFieldError):
            apply_saltation(grid, 1, 1, context)

    def test_previous_step_wind_raises(self, context: SimulationContext) -> None:
        grid = _sandy(4, 4)
        context.wind = _uniform_wind(grid, WindSample(90.0, 10.0), step=context.step)
        context.step += 1
        with pytest.raises(StaleWindFieldError):
            apply_saltation(grid, 1, 1, context)

    def test_dispatch_does_not_swallow_stale_wind(
        self, context: SimulationContext
    ) -> None:
        grid = _sandy(4, 4)
        with pytest.raises(StaleWindFieldError):
            dispatch(EventType.SALTATION, grid, 1, 1, context)
        assert context.skipped_events == 0


class TestSaltation:
    """Tests for the lift / hop / settle cycle."""

    def test_calm_wind_moves_nothing(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(1, 10)
        ctx.wind = _uniform_wind(grid, WindSample(90.0, 2.0), step=1)
        apply_saltation(grid, 0, 0, ctx)
        assert np.allclose(grid.layers[Material.SAND], 0.5)

    def test_hop_length_scales_with_speed(self) -> None:
        assert hop_target((0, 0), 0.0, 8.0, 8.0, 0.5) == (0, 4)
        assert hop_target((0, 0), 0.0, 1.0, 1.0, 0.5) == (0, 1)
        assert hop_target((5, 5), -6.0, 0.0, 6.0, 0.5) == (2, 5)

    def test_parcel_lands_and_splashes(self, rng: Generator) -> None:
        ctx = _context(rng, deposit_sand=1.0)
        grid = _sandy(1, 10)
        ctx.wind = _uniform_wind(grid, WindSample(90.0, 8.0), step=1)
        apply_saltation(grid, 0, 0, ctx)
        assert grid.thickness(Material.SAND, 0, 0) == pytest.approx(0.4)
        assert grid.thickness(Material.SAND, 0, 4) == pytest.approx(0.55)
        assert grid.thickness(Material.SAND, 0, 5) == pytest.approx(0.55)
        assert grid.total_material() == pytest.approx(5.0)

    def test_parcel_leaving_domain_goes_to_outflow(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(1, 3)
        ctx.wind = _uniform_wind(grid, WindSample(90.0, 20.0), step=1)
        apply_saltation(grid, 0, 1, ctx)
        assert grid.outflow[Material.SAND] == pytest.approx(0.1)
        assert grid.thickness(Material.SAND, 0, 1) == pytest.approx(0.4)
        assert grid.total_material() == pytest.approx(1.5)

    def test_slab_limited_by_available_sand(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(1, 3, depth=0.02)
        ctx.wind = _uniform_wind(grid, WindSample(90.0, 20.0), step=1)
        apply_saltation(grid, 0, 1, ctx)
        assert grid.outflow[Material.SAND] == pytest.approx(0.02)
        assert grid.layers.min() >= 0.0

    def test_mass_conserved_with_outflow(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(10, 10)
        grid.density[:, :5, :] = 0.2
        ctx.wind = _uniform_wind(grid, WindSample(60.0, 9.0), step=1)
        before = grid.total_material()
        for _ in range(3):
            for index in rng.permutation(grid.size):
                row, col = grid.position(index)
                apply_saltation(grid, row, col, ctx)
        assert grid.total_material() == pytest.approx(before)
        assert grid.outflow[Material.SAND] > 0.0
        assert grid.layers.min() >= 0.0

    def test_slip_faces_stay_at_repose(self, rng: Generator) -> None:
        ctx = _context(rng, deposit_sand=1.0, deposit_bare=1.0)
        grid = _sandy(1, 12, depth=0.0)
        grid.add(Material.SAND, 0, 0, 3.0)
        ctx.wind = _uniform_wind(grid, WindSample(90.0, 4.0), step=1)
        for _ in range(40):
            apply_saltation(grid, 0, 0, ctx)
        tan_sand = math.tan(math.radians(34.0))
        landing = grid.thickness(Material.SAND, 0, 2)
        assert landing > 0.0
        assert grid.drop((0, 2), (0, 3)) <= tan_sand + 0.5


class TestDepositAndReptation:
    """Tests for the settle probability and splash."""

    def test_sand_and_shadow_raise_deposition(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(3, 3, depth=0.0)
        wind = _uniform_wind(grid, WindSample(90.0, 8.0), step=1)
        bare = deposit_probability(grid, 1, 1, wind, ctx)
        grid.add(Material.SAND, 1, 1, 0.1)
        sandy = deposit_probability(grid, 1, 1, wind, ctx)
        wind.shadow[1, 1] = 0.1
        sheltered = deposit_probability(grid, 1, 1, wind, ctx)
        assert bare == pytest.approx(0.4)
        assert sandy == pytest.approx(0.6)
        assert sheltered == pytest.approx(0.7)

    def test_vegetation_traps(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(3, 3, depth=0.0)
        wind = _uniform_wind(grid, WindSample(90.0, 8.0), step=1)
        grid.density[:, 1, 1] = 0.1
        assert deposit_probability(grid, 1, 1, wind, ctx) == pytest.approx(0.4 * 1.6)

    def test_reptation_splits_by_alignment(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(5, 5)
        moved = reptate(grid, 2, 2, (0.0, 1.0), ctx)
        assert moved == pytest.approx(0.05)
        share_east = 0.05 / (1.0 + math.sqrt(0.5))
        assert grid.thickness(Material.SAND, 2, 3) == pytest.approx(0.5 + share_east)
        assert grid.thickness(Material.SAND, 2, 1) == pytest.approx(0.5)
        assert grid.total_material() == pytest.approx(0.5 * 25)

    def test_reptation_reduced_by_vegetation(self, rng: Generator) -> None:
        ctx = _context(rng)
        grid = _sandy(5, 5)
        grid.density[:, 2, 2] = 1.0 / 3.0
        moved = reptate(grid, 2, 2, (0.0, 1.0), ctx)
        assert moved == pytest.approx(0.05 / 3.0)
