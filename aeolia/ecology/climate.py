"""Climate forcing — per-step temperature and soil-moisture bookkeeping.

Temperature is not simulated, it is imposed: a base value at a reference
elevation, cooled with height by a constant lapse rate and modulated by a
sinusoidal seasonal cycle.  Soil moisture evaporates by a fixed fraction
every step before the step's rainfall events add to it.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from aeolia.simulation.config import ClimateConfig
    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid


def seasonal_offset(step: int, config: ClimateConfig) -> float:
    """Seasonal temperature anomaly (deg C) at a step."""
    phase = 2.0 * math.pi * (step % config.season_length) / config.season_length
    return config.seasonal_amplitude * math.sin(phase)


def temperature_field(
    heights: NDArray[np.float64],
    step: int,
    config: ClimateConfig,
) -> NDArray[np.float64]:
    """Temperature per cell from elevation and season."""
    lapse = config.lapse_rate * (heights - config.reference_elevation)
    return config.base_temperature - lapse + seasonal_offset(step, config)


def update_climate(grid: Grid, context: SimulationContext) -> None:
    """Apply this step's forcing to the grid in place."""
    config = context.config.climate
    grid.moisture *= 1.0 - config.evaporation_rate
    np.maximum(grid.moisture, 0.0, out=grid.moisture)
    grid.temperature[...] = temperature_field(grid.heights(), context.step, config)
