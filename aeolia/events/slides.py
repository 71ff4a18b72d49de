"""Repose-angle mechanics: thermal erosion, gravity fall and avalanching.

All three phenomena share one piece of geometry.  Material resting on a
cell at horizontal distance ``d`` from a lower neighbour is stable while
the cell stands no higher than ``h_neighbour + d * tan(repose)``.  The
height above that line is the *excess*; a transfer moves a bounded
fraction of it, clamped to the thickness of the sliding layer.

- **Thermal erosion** fires with a weathering probability and spreads the
  topmost layer over every over-steep neighbour in proportion to excess.
- **Gravity fall** collapses one named material towards a single
  critical neighbour chosen at random, weighted by slope.
- **Avalanche** is a sand gravity fall reused by the wind-transport
  handler on cells its parcels disturbed.

Every transfer is cell-to-cell, so total material is conserved exactly.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from aeolia.terrain.materials import Material

if TYPE_CHECKING:
    from numpy.random import Generator

    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid, Position

logger = logging.getLogger(__name__)


def equilibrium_height(grid: Grid, src: Position, dst: Position, angle: float) -> float:
    """Highest stable surface at ``src`` relative to ``dst`` for a repose angle.

    Args:
        grid: The terrain grid.
        src: The (higher) cell whose stability is tested.
        dst: The neighbour it would slide towards.
        angle: Repose angle in degrees.
    """
    rise = grid.distance(src, dst) * math.tan(math.radians(angle))
    return grid.height_at(*dst) + rise


def slide_amount(
    grid: Grid,
    material: Material,
    src: Position,
    dst: Position,
    angle: float,
    mobilization: float,
) -> float:
    """Thickness of ``material`` that slides from ``src`` to ``dst``.

    With ``mobilization = 0.5`` the pair ends exactly at the repose angle,
    unless the layer runs out first.
    """
    thickness = grid.thickness(material, *src)
    if thickness <= 0.0:
        return 0.0
    excess = grid.height_at(*src) - equilibrium_height(grid, src, dst, angle)
    if excess <= 0.0:
        return 0.0
    return mobilization * min(thickness, excess)


def critical_neighbours(
    grid: Grid,
    row: int,
    col: int,
    angle: float,
) -> list[tuple[Position, float]]:
    """Neighbours whose drop from ``(row, col)`` reaches the repose angle.

    Returns:
        ``(position, drop)`` pairs, drop in metres per metre.
    """
    critical_slope = math.tan(math.radians(angle))
    src = (row, col)
    result: list[tuple[Position, float]] = []
    for nb in grid.neighbours(row, col):
        drop = grid.drop(src, nb)
        if drop >= critical_slope:
            result.append((nb, drop))
    return result


def _weighted_pick(weights: list[float], rng: Generator) -> int:
    """Pick an index with probability proportional to its weight."""
    total = sum(weights)
    target = rng.random() * total
    for i, w in enumerate(weights):
        target -= w
        if target < 0.0:
            return i
    return len(weights) - 1


def slide(
    grid: Grid,
    row: int,
    col: int,
    material: Material,
    *,
    angle: float,
    mobilization: float,
    rng: Generator,
    max_cascade: int = 1,
) -> int:
    """Run one bounded collapse of ``material`` starting at ``(row, col)``.

    Each hop picks one critical neighbour (weighted by slope) and moves
    the slide amount there.  The slide may continue from the receiving
    cell, but never for more than ``max_cascade`` hops.

    Returns:
        Number of hops that moved material.
    """
    pos = (row, col)
    hops = 0
    for _ in range(max_cascade):
        if grid.thickness(material, *pos) <= 0.0:
            break
        critical = critical_neighbours(grid, pos[0], pos[1], angle)
        if not critical:
            break
        target, _ = critical[_weighted_pick([drop for _, drop in critical], rng)]
        amount = slide_amount(grid, material, pos, target, angle, mobilization)
        if amount <= 0.0:
            break
        grid.transfer(material, pos, target, amount)
        hops += 1
        pos = target
    return hops


def apply_gravity_fall(
    grid: Grid,
    row: int,
    col: int,
    context: SimulationContext,
    material: Material,
) -> None:
    """Gravity-fall handler for one material."""
    cfg = context.config.gravity
    hops = slide(
        grid,
        row,
        col,
        material,
        angle=context.config.repose_angle(material),
        mobilization=cfg.mobilization,
        rng=context.rng,
        max_cascade=cfg.max_cascade,
    )
    if cfg.max_cascade > 1 and hops == cfg.max_cascade:
        context.capped_walks += 1
        logger.debug(
            "%s slide from (%d, %d) hit the cascade cap", material.name, row, col
        )


def avalanche(grid: Grid, row: int, col: int, context: SimulationContext) -> int:
    """Relax a sand slip face disturbed by wind transport.

    Returns:
        Number of hops that moved sand.
    """
    return slide(
        grid,
        row,
        col,
        Material.SAND,
        angle=context.config.repose_angle(Material.SAND),
        mobilization=context.config.gravity.mobilization,
        rng=context.rng,
        max_cascade=context.config.transport.avalanche_cascade,
    )


# -- Thermal erosion ----------------------------------------------------------


def weathering_probability(
    grid: Grid, row: int, col: int, context: SimulationContext
) -> float:
    """Chance that thermal cycling mobilizes material at a cell this step.

    ``k * dT * s_max / (1 + kG * G + kV * V)``: steep, bare, unvegetated
    ground weathers fastest; granular cover and plants insulate it.
    """
    cfg = context.config.thermal
    src = (row, col)
    max_slope = 0.0
    for nb in grid.neighbours(row, col):
        max_slope = max(max_slope, abs(grid.drop(src, nb)))
    granular = grid.thickness(Material.SAND, row, col) + grid.thickness(
        Material.HUMUS, row, col
    )
    vegetation = grid.vegetation_total(row, col)
    insulation = (
        1.0 + cfg.granular_dampening * granular + cfg.vegetation_dampening * vegetation
    )
    p = (
        cfg.weathering_constant
        * context.config.climate.diurnal_range
        * max_slope
        / insulation
    )
    return min(1.0, p)


def thermal_transfer(
    grid: Grid,
    row: int,
    col: int,
    *,
    angles: dict[Material, float],
    mobilization: float,
) -> float:
    """Spread the exposed layer over every over-steep neighbour.

    The moved thickness is ``mobilization`` times the largest excess,
    clamped to the layer, and is shared in proportion to each
    neighbour's excess.

    Returns:
        Total thickness moved.
    """
    material = grid.exposed_material(row, col)
    if material is None:
        return 0.0
    src = (row, col)
    angle = angles[material]
    excesses: list[tuple[Position, float]] = []
    for nb in grid.neighbours(row, col):
        excess = grid.height_at(row, col) - equilibrium_height(grid, src, nb, angle)
        if excess > 0.0:
            excesses.append((nb, excess))
    if not excesses:
        return 0.0

    total = sum(e for _, e in excesses)
    largest = max(e for _, e in excesses)
    amount = min(grid.thickness(material, row, col), mobilization * largest)
    shares = [(nb, amount * e / total) for nb, e in excesses]
    return sum(grid.transfer(material, src, nb, share) for nb, share in shares)


def apply_thermal_erosion(
    grid: Grid, row: int, col: int, context: SimulationContext
) -> None:
    """Thermal-erosion handler."""
    if context.rng.random() >= weathering_probability(grid, row, col, context):
        return
    angles = {m: context.config.repose_angle(m, thermal=True) for m in Material}
    thermal_transfer(
        grid,
        row,
        col,
        angles=angles,
        mobilization=context.config.thermal.mobilization,
    )
