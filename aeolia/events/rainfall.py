"""Rainfall and runoff.

A rainfall event wets the target cell, then sends the runoff share of the
water down the steepest-descent path.  Along the way the flow picks up
loose material while its load is below capacity (``K_c * water * slope``)
and drops material when it is above capacity or the ground flattens out.
Whatever is still carried when the walk ends settles at the final cell.

Cells are visited in scheduler order rather than as a converged wavefront,
so each walk is a cheap approximation of the flow, not a steady state.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from aeolia.errors import NumericDegeneracyError
from aeolia.events.vegetation import trapping_at
from aeolia.terrain.materials import TOP_DOWN, Material

if TYPE_CHECKING:
    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid, Position

logger = logging.getLogger(__name__)


def steepest_descent(grid: Grid, row: int, col: int) -> tuple[Position, float] | None:
    """Return the neighbour with the largest positive drop, if any."""
    src = (row, col)
    best: Position | None = None
    best_drop = 0.0
    for nb in grid.neighbours(row, col):
        drop = grid.drop(src, nb)
        if drop > best_drop:
            best, best_drop = nb, drop
    if best is None:
        return None
    return best, best_drop


def erode_top(
    grid: Grid, row: int, col: int, amount: float, load: list[float]
) -> float:
    """Strip up to ``amount`` of loose material, topmost layer first.

    The stripped thickness is added to ``load`` per material.

    Returns:
        Total thickness stripped.
    """
    taken = 0.0
    for material in TOP_DOWN:
        if taken >= amount:
            break
        removed = grid.remove(material, row, col, amount - taken)
        load[material] += removed
        taken += removed
    return taken


def settle(grid: Grid, row: int, col: int, load: list[float], fraction: float) -> float:
    """Deposit ``fraction`` of every material in ``load`` on a cell.

    Returns:
        Total thickness deposited.
    """
    fraction = min(max(fraction, 0.0), 1.0)
    dropped = 0.0
    for material in Material:
        amount = load[material] * fraction
        grid.add(material, row, col, amount)
        load[material] -= amount
        dropped += amount
    return dropped


def runoff(
    grid: Grid,
    row: int,
    col: int,
    water: float,
    context: SimulationContext,
) -> Position:
    """Route ``water`` downhill from ``(row, col)``, eroding and depositing.

    Returns:
        The cell where the walk ended.
    """
    cfg = context.config.rainfall
    load = [0.0] * len(Material)
    pos: Position = (row, col)
    # The load is off the grid while walking; it lands wherever the walk stops.
    try:
        for _ in range(cfg.max_steps):
            descent = steepest_descent(grid, *pos)
            if descent is None:
                break
            target, slope = descent
            carried = sum(load)
            trapping = trapping_at(grid, pos[0], pos[1], context)
            retention = cfg.deposition_rate * trapping
            if slope > cfg.min_slope:
                capacity = cfg.capacity_constant * water * slope
                if carried < capacity:
                    wanted = cfg.erosion_rate * (capacity - carried)
                    erode_top(grid, pos[0], pos[1], wanted, load)
                elif carried > 0.0:
                    excess = (carried - capacity) / carried
                    settle(grid, pos[0], pos[1], load, retention * excess)
            elif carried > 0.0:
                settle(grid, pos[0], pos[1], load, retention)

            soaked = water * cfg.infiltration_rate
            grid.moisture[target] += soaked
            water -= soaked
            pos = target
        else:
            context.capped_walks += 1
            logger.debug(
                "runoff from (%d, %d) hit the %d-cell cap", row, col, cfg.max_steps
            )
    finally:
        settle(grid, pos[0], pos[1], load, 1.0)
    grid.moisture[pos] += water
    return pos


def apply_rainfall(grid: Grid, row: int, col: int, context: SimulationContext) -> None:
    """Rainfall handler: wet the cell, then run the runoff share downhill."""
    cfg = context.config.rainfall
    amount = float(context.rng.uniform(cfg.amount_min, cfg.amount_max))
    if not math.isfinite(amount) or not math.isfinite(grid.height_at(row, col)):
        msg = f"degenerate rainfall at ({row}, {col})"
        raise NumericDegeneracyError(msg)
    grid.moisture[row, col] += amount * (1.0 - cfg.runoff_fraction)
    runoff(grid, row, col, amount * cfg.runoff_fraction, context)
