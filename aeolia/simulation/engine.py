"""SimulationEngine — the simulation clock.

Owns the grid and the run context and advances them one step at a time
in a fixed order:

1. Apply climate forcing (temperature, evaporation; sun exposure every
   ``illumination_interval`` steps)
2. Sample the wind rose and synthesize this step's wind field
3. Build the step's event schedule and run every work item in order
4. Expire the wind field
5. Publish a read-only snapshot for viewers

A halt request is honoured only between steps, so a step always completes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from numpy.random import Generator
from numpy.typing import ArrayLike

from aeolia.ecology.climate import update_climate
from aeolia.ecology.illumination import sun_exposure
from aeolia.events.registry import dispatch
from aeolia.simulation.config import SimulationConfig
from aeolia.simulation.context import SimulationContext
from aeolia.simulation.export import GridSnapshot, SnapshotBuffer
from aeolia.simulation.scheduler import EventScheduler
from aeolia.terrain.elevation import seed_grid, synthetic_elevation
from aeolia.terrain.grid import Grid
from aeolia.terrain.materials import Material
from aeolia.wind.field import synthesize_wind
from aeolia.wind.rose import WindRose

logger = logging.getLogger(__name__)


@dataclass
class SimulationEngine:
    """Drives the simulation forward step by step.

    Attributes:
        config: Loaded simulation configuration.
        elevation: Optional starting bedrock sample; a ``ridge`` terrain of
            ``config.height x config.width`` is generated when omitted.
        grid: The layered terrain grid.
        context: Generator, step counter and wind shared with handlers.
        scheduler: Builds each step's work items.
        rose: The wind-rose distribution.
        snapshots: Double-buffered published state.
        rng: Master seeded random generator.
    """

    config: SimulationConfig
    elevation: ArrayLike | None = field(default=None, repr=False)
    grid: Grid = field(init=False)
    context: SimulationContext = field(init=False)
    scheduler: EventScheduler = field(init=False)
    rose: WindRose = field(init=False)
    snapshots: SnapshotBuffer = field(init=False, repr=False)
    rng: Generator = field(init=False)
    _halt_requested: bool = field(init=False, default=False, repr=False)

    def __post_init__(self) -> None:
        """Validate config, then build grid, context and scheduler."""
        self.config.validate()
        self.rng = np.random.default_rng(self.config.seed)
        if self.elevation is None:
            heights = synthetic_elevation(
                "ridge", self.config.height, self.config.width, self.rng
            )
        else:
            heights = np.asarray(self.elevation, dtype=np.float64)
        self.grid = Grid.from_elevation(heights, cell_size=self.config.cell_size)
        seed_grid(self.grid, self.config)

        self.context = SimulationContext(config=self.config, rng=self.rng)
        self.scheduler = EventScheduler.from_names(self.config.events)
        self.rose = WindRose.from_config(self.config.wind)
        self.snapshots = SnapshotBuffer()
        self._refresh_sun_exposure()
        self.snapshots.publish(self.grid, step=0)

        logger.info(
            "engine ready: %dx%d grid, %.1f m cells, events=%s, wind=%s",
            self.grid.rows,
            self.grid.cols,
            self.grid.cell_size,
            ",".join(e.value for e in self.scheduler.event_types),
            self.config.wind.model,
        )

    @property
    def tick(self) -> int:
        """Number of completed steps."""
        return self.context.step

    def step(self) -> GridSnapshot:
        """Advance the simulation by one step.

        Returns:
            The snapshot published at the end of the step.
        """
        context = self.context
        grid = self.grid
        context.step += 1
        skipped_before = context.skipped_events

        # 1. Climate forcing
        update_climate(grid, context)
        if context.step % self.config.climate.illumination_interval == 0:
            self._refresh_sun_exposure()

        # 2. Wind
        sample = self.rose.sample(self.rng)
        context.wind = synthesize_wind(grid, sample, self.config.wind, context.step)

        # 3. Events
        schedule = self.scheduler.build(grid.size, self.rng)
        cols = grid.cols
        for cell, event in schedule:
            row, col = divmod(cell, cols)
            dispatch(event, grid, row, col, context)

        # 4. Expire wind, 5. publish
        wind_vectors = context.wind.vectors
        context.wind = None
        snapshot = self.snapshots.publish(grid, context.step, wind_vectors)

        skipped = context.skipped_events - skipped_before
        if skipped:
            logger.warning(
                "step %d: skipped %d degenerate event(s)", context.step, skipped
            )
        interval = self.config.log_interval
        if interval and context.step % interval == 0:
            self._log_summary()
        return snapshot

    def run(self, steps: int) -> int:
        """Run up to ``steps`` steps, stopping early on a halt request.

        Args:
            steps: Maximum number of steps to advance.

        Returns:
            Number of steps actually completed.
        """
        done = 0
        for _ in range(steps):
            if self._halt_requested:
                self._halt_requested = False
                logger.info("halted after %d step(s)", done)
                break
            self.step()
            done += 1
        return done

    def request_halt(self) -> None:
        """Ask ``run`` to stop before the next step begins."""
        self._halt_requested = True

    def _refresh_sun_exposure(self) -> None:
        climate = self.config.climate
        self.grid.sun_exposure[...] = sun_exposure(
            self.grid.heights(),
            self.grid.cell_size,
            climate.sun_elevations,
            climate.sun_azimuths,
            climate.horizon_distance,
        )

    def _log_summary(self) -> None:
        grid = self.grid
        context = self.context
        logger.info(
            "step %d: sand=%.2f humus=%.2f rock=%.2f outflow=%.3f "
            "vegetation=%.3f strikes=%d skipped=%d capped=%d",
            context.step,
            float(grid.layers[Material.SAND].sum()),
            float(grid.layers[Material.HUMUS].sum()),
            float(grid.layers[Material.ROCK].sum()),
            float(grid.outflow.sum()),
            float(grid.density.sum(axis=0).mean()),
            context.lightning_strikes,
            context.skipped_events,
            context.capped_walks,
        )
