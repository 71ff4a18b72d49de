"""Lightning — the rare, instantaneous disturbance event.

A strike is a Bernoulli trial per cell per step.  Exposed convex ground
(peaks, ridges) is struck most often: the configured probability is the
maximum and is attenuated exponentially below ``min_convexity``.

A strike blasts up to ``strip_depth`` of the exposed layer onto the
surrounding cells, then burns off vegetation at the struck cell and, with
decreasing severity, within ``radius`` cells.  Burnt density becomes
``litter_depth`` of humus per unit density, recorded in ``Grid.litter``.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid

logger = logging.getLogger(__name__)


def convexity(grid: Grid, row: int, col: int) -> float:
    """Negative discrete Laplacian of surface height (1/m); > 0 on peaks."""
    height = grid.height_at(row, col)
    neighbours = grid.neighbours(row, col, include_diagonals=False)
    if not neighbours:
        return 0.0
    excess = sum(height - grid.height_at(*nb) for nb in neighbours)
    return excess / (grid.cell_size * grid.cell_size)


def strike_probability(
    grid: Grid, row: int, col: int, context: SimulationContext
) -> float:
    """``p_max * min(1, exp(k * (convexity - c_min)))``."""
    cfg = context.config.lightning
    exponent = cfg.curvature_scale * (convexity(grid, row, col) - cfg.min_convexity)
    return cfg.probability * math.exp(min(exponent, 0.0))


def strike(grid: Grid, row: int, col: int, context: SimulationContext) -> float:
    """Apply strike damage centred on ``(row, col)``.

    Returns:
        Thickness of material blasted onto neighbouring cells.
    """
    cfg = context.config.lightning
    blasted = 0.0
    material = grid.exposed_material(row, col)
    neighbours = grid.neighbours(row, col)
    if material is not None and neighbours:
        amount = min(cfg.strip_depth, grid.thickness(material, row, col))
        share = amount / len(neighbours)
        for nb in neighbours:
            blasted += grid.transfer(material, (row, col), nb, share)

    # Burnt plants stay where they fell, as a thin humus layer over the blast.
    radius = cfg.radius
    for dr in range(-radius, radius + 1):
        for dc in range(-radius, radius + 1):
            r, c = row + dr, col + dc
            if not grid.in_bounds(r, c):
                continue
            dist = math.hypot(dr, dc)
            if dist <= radius:
                burnt = grid.clear_vegetation(r, c, keep=dist / (radius + 1))
                grid.deposit_litter(r, c, cfg.litter_depth * burnt)

    context.lightning_strikes += 1
    logger.debug("lightning at (%d, %d), %.3f m blasted", row, col, blasted)
    return blasted


def apply_lightning(grid: Grid, row: int, col: int, context: SimulationContext) -> None:
    """Lightning handler."""
    if context.rng.random() < strike_probability(grid, row, col, context):
        strike(grid, row, col, context)
