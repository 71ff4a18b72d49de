"""Vegetation dynamics — vigor, stress and competing species.

For each species at a cell the handler derives two independent scalars:

- **vigor**: how well local temperature, moisture and sun exposure sit
  inside the species' ideal ranges (Liebig's law of the minimum over three
  piecewise-linear response curves);
- **stress**: how far the worst factor falls outside its tolerance, plus
  crowding from the same and competing species at the cell.

Density then moves by a saturating function of ``vigor - stress``, rate
limited per step, with growth sharing the cell's occupancy headroom.

Vegetation feeds back into sediment transport through
``trapping_modifier``: a single multiplicative deposition boost read by
both rainfall runoff and wind transport.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from aeolia.errors import NumericDegeneracyError
from aeolia.terrain.materials import Species

if TYPE_CHECKING:
    from aeolia.simulation.config import Range, SimulationConfig, SpeciesProfile
    from aeolia.simulation.context import SimulationContext
    from aeolia.terrain.grid import Grid


def viability(value: float, bounds: Range) -> float:
    """Piecewise-linear response of one environmental factor.

    Returns +1 inside the ideal band, -1 at or beyond either limit, and
    interpolates linearly across the two transition bands.

    Args:
        value: Observed factor value.
        bounds: ``(limit_min, ideal_min, ideal_max, limit_max)``.
    """
    limit_lo, ideal_lo, ideal_hi, limit_hi = bounds
    if value <= limit_lo or value >= limit_hi:
        return -1.0
    if value < ideal_lo:
        return -1.0 + 2.0 * (value - limit_lo) / (ideal_lo - limit_lo)
    if value <= ideal_hi:
        return 1.0
    return 1.0 - 2.0 * (value - ideal_hi) / (limit_hi - ideal_hi)


def vigor_and_stress(
    grid: Grid,
    row: int,
    col: int,
    species: Species,
    config: SimulationConfig,
) -> tuple[float, float]:
    """Derive vigor and stress for one species at one cell.

    Returns:
        ``(vigor, stress)``; vigor in [0, 1], stress >= 0.
    """
    profile = config.profile(species)
    worst = min(
        viability(float(grid.temperature[row, col]), profile.temperature),
        viability(float(grid.moisture[row, col]), profile.moisture),
        viability(float(grid.sun_exposure[row, col]), profile.sun),
    )
    crowding = sum(
        profile.competition.get(other.name.lower(), 0.0)
        * float(grid.density[other, row, col])
        for other in Species
    )
    vigor = max(0.0, worst)
    stress = max(0.0, -worst) + profile.crowding_weight * crowding
    return vigor, stress


def density_change(vigor: float, stress: float, profile: SpeciesProfile) -> float:
    """Saturating, rate-limited density change for one step."""
    delta = profile.growth_rate * math.tanh(profile.gain * (vigor - stress))
    return max(-profile.max_change, min(profile.max_change, delta))


def trapping_modifier(vegetation_density: float, strength: float) -> float:
    """Deposition multiplier from roots and canopy.

    ``1 + strength * min(V, 1)``: exactly 1 on bare ground, monotonically
    increasing with cover, saturating at ``1 + strength``.
    """
    return 1.0 + strength * min(max(vegetation_density, 0.0), 1.0)


def trapping_at(grid: Grid, row: int, col: int, context: SimulationContext) -> float:
    """The trapping modifier for the vegetation currently at a cell."""
    return trapping_modifier(
        grid.vegetation_total(row, col),
        context.config.vegetation.trapping_strength,
    )


def apply_vegetation(
    grid: Grid, row: int, col: int, context: SimulationContext
) -> None:
    """Vegetation handler: update vigor, stress and density of every species.

    Species are visited in a random order so none gets first claim on the
    cell's occupancy headroom.
    """
    config = context.config
    cap = config.vegetation.occupancy_cap
    forcing = (
        grid.temperature[row, col],
        grid.moisture[row, col],
        grid.sun_exposure[row, col],
    )
    if not all(math.isfinite(v) for v in forcing):
        msg = f"non-finite climate forcing at ({row}, {col})"
        raise NumericDegeneracyError(msg)
    for index in context.rng.permutation(len(Species)):
        species = Species(int(index))
        vigor, stress = vigor_and_stress(grid, row, col, species, config)
        grid.vigor[species, row, col] = vigor
        grid.stress[species, row, col] = stress

        delta = density_change(vigor, stress, config.profile(species))
        current = float(grid.density[species, row, col])
        others = grid.vegetation_total(row, col) - current
        headroom = max(0.0, cap - others)
        if delta > 0.0:
            delta *= max(0.0, 1.0 - (others + current) / cap)
        new = min(max(current + delta, 0.0), min(1.0, headroom))
        grid.density[species, row, col] = new
