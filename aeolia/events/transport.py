"""Aeolian sediment transport: saltation, reptation and avalanching.

A saltation event lifts a slab of sand from a cell where the wind exceeds
the entrainment threshold and carries it downwind in hops whose length
grows with wind speed.  At each landing the parcel splashes resident sand
onto the nearest downwind cells (reptation) and then either settles or
bounces on.  Bouncing is capped at ``max_bounces`` hops; a parcel still in
flight at the cap settles where it last landed.  Parcels carried past the
edge of the domain go to the grid's outflow sink.

The slab stays at the source until the flight is resolved and is then
moved in a single transfer, so an aborted flight never loses sand.
Both disturbed cells finish with a bounded sand avalanche, which keeps
slip faces at or below the sand repose angle.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from aeolia.errors import NumericDegeneracyError
from aeolia.events.slides import avalanche
from aeolia.events.vegetation import trapping_at
from aeolia.terrain.materials import Material

if TYPE_CHECKING:
    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid, Position
    from aeolia.wind.field import WindField

logger = logging.getLogger(__name__)


def _local_wind(wind: WindField, pos: Position) -> tuple[float, float, float]:
    """``(d_row, d_col, speed)`` at a cell.

    Raises:
        NumericDegeneracyError: If the wind vector is not finite.
    """
    d_row, d_col = wind.at(*pos)
    speed = math.hypot(d_row, d_col)
    if not math.isfinite(speed):
        msg = f"non-finite wind at {pos}"
        raise NumericDegeneracyError(msg)
    return d_row, d_col, speed


def hop_target(
    pos: Position, d_row: float, d_col: float, speed: float, hop_factor: float
) -> Position:
    """Landing cell of one hop; always at least one cell away."""
    length = max(1.0, hop_factor * speed)
    return (
        pos[0] + round(d_row / speed * length),
        pos[1] + round(d_col / speed * length),
    )


def deposit_probability(
    grid: Grid, row: int, col: int, wind: WindField, context: SimulationContext
) -> float:
    """Chance a landing parcel settles at ``(row, col)`` instead of bouncing.

    Sand sticks better to sand than to bare ground, lee shelter raises the
    chance further, and the result is scaled by vegetation trapping.
    """
    cfg = context.config.transport
    on_sand = grid.thickness(Material.SAND, row, col) > 0.0
    base = cfg.deposit_sand if on_sand else cfg.deposit_bare
    base += cfg.shadow_deposit_weight * float(wind.shadow[row, col])
    return min(1.0, base * trapping_at(grid, row, col, context))


def reptate(
    grid: Grid,
    row: int,
    col: int,
    direction: tuple[float, float],
    context: SimulationContext,
) -> float:
    """Splash resident sand at an impact cell onto its downwind neighbours.

    The two neighbours best aligned with ``direction`` share the displaced
    sand in proportion to their alignment.  Vegetation holds sand in place,
    dividing the displaced thickness by the trapping modifier.

    Returns:
        Thickness of sand moved.
    """
    d_row, d_col = direction
    norm = math.hypot(d_row, d_col)
    if norm == 0.0:
        return 0.0
    aligned: list[tuple[float, Position]] = []
    for nb in grid.neighbours(row, col):
        dr, dc = nb[0] - row, nb[1] - col
        alignment = (dr * d_row + dc * d_col) / (norm * math.hypot(dr, dc))
        if alignment > 0.0:
            aligned.append((alignment, nb))
    if not aligned:
        return 0.0

    aligned.sort(reverse=True)
    targets = aligned[:2]
    splash = context.config.transport.reptation_height
    amount = min(
        splash / trapping_at(grid, row, col, context),
        grid.thickness(Material.SAND, row, col),
    )
    total = sum(a for a, _ in targets)
    return sum(
        grid.transfer(Material.SAND, (row, col), nb, amount * a / total)
        for a, nb in targets
    )


def apply_saltation(grid: Grid, row: int, col: int, context: SimulationContext) -> None:
    """Saltation handler: lift, hop, splash, settle, avalanche.

    Raises:
        StaleWindFieldError: If the context holds no wind for this step.
    """
    wind = context.current_wind()
    cfg = context.config.transport
    src: Position = (row, col)
    d_row, d_col, speed = _local_wind(wind, src)
    if speed == 0.0 or speed < cfg.threshold:
        return
    slab = min(cfg.slab_height, grid.thickness(Material.SAND, row, col))
    if slab <= 0.0:
        return

    pos = src
    for _ in range(cfg.max_bounces):
        target = hop_target(pos, d_row, d_col, speed, cfg.hop_factor)
        if not grid.in_bounds(*target):
            grid.discharge(Material.SAND, row, col, slab)
            logger.debug("sand parcel from (%d, %d) left the domain", row, col)
            avalanche(grid, row, col, context)
            return
        pos = target
        reptate(grid, pos[0], pos[1], (d_row, d_col), context)
        chance = deposit_probability(grid, pos[0], pos[1], wind, context)
        if context.rng.random() < chance:
            break
        d_row, d_col, speed = _local_wind(wind, pos)
        if speed == 0.0:
            break

    grid.transfer(Material.SAND, src, pos, slab)
    avalanche(grid, row, col, context)
    avalanche(grid, pos[0], pos[1], context)
