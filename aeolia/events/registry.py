"""Event registry — the closed set of phenomena and their handler table.

Every handler shares one invocation contract::

    handler(grid, row, col, context) -> None

``dispatch`` is the single boundary where a degenerate invocation is
contained: a ``NumericDegeneracyError`` (raised by the grid before any
mutation) or a floating-point trap skips just that invocation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from aeolia.errors import NumericDegeneracyError
from aeolia.events import lightning, rainfall, slides, transport, vegetation
from aeolia.terrain.materials import Material

if TYPE_CHECKING:
    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid

logger = logging.getLogger(__name__)

Handler = Callable[["Grid", int, int, "SimulationContext"], None]


class EventType(Enum):
    """One tagged variant per phenomenon."""

    RAINFALL = "rainfall"
    THERMAL_EROSION = "thermal_erosion"
    ROCK_SLIDE = "rock_slide"
    SAND_SLIDE = "sand_slide"
    HUMUS_SLIDE = "humus_slide"
    LIGHTNING = "lightning"
    VEGETATION = "vegetation"
    SALTATION = "saltation"

    @property
    def uses_wind(self) -> bool:
        """True for handlers that read the step's wind field."""
        return self is EventType.SALTATION


def _gravity(material: Material) -> Handler:
    def handler(grid: Grid, row: int, col: int, context: SimulationContext) -> None:
        slides.apply_gravity_fall(grid, row, col, context, material)

    handler.__name__ = f"apply_{material.name.lower()}_slide"
    return handler


HANDLERS: dict[EventType, Handler] = {
    EventType.RAINFALL: rainfall.apply_rainfall,
    EventType.THERMAL_EROSION: slides.apply_thermal_erosion,
    EventType.ROCK_SLIDE: _gravity(Material.ROCK),
    EventType.SAND_SLIDE: _gravity(Material.SAND),
    EventType.HUMUS_SLIDE: _gravity(Material.HUMUS),
    EventType.LIGHTNING: lightning.apply_lightning,
    EventType.VEGETATION: vegetation.apply_vegetation,
    EventType.SALTATION: transport.apply_saltation,
}


def dispatch(
    event: EventType,
    grid: Grid,
    row: int,
    col: int,
    context: SimulationContext,
) -> bool:
    """Run one handler invocation, containing numeric degeneracy.

    Returns:
        True if the invocation ran, False if it was skipped.
    """
    try:
        with np.errstate(invalid="raise", divide="raise"):
            HANDLERS[event](grid, row, col, context)
    except (NumericDegeneracyError, FloatingPointError, ZeroDivisionError) as exc:
        context.skipped_events += 1
        logger.debug("skipped %s at (%d, %d): %s", event.value, row, col, exc)
        return False
    return True
