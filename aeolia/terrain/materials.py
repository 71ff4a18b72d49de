"""Materials and species — the closed sets indexing the per-cell arrays.

Both enumerations are ``IntEnum`` so a member can index the leading axis
of the grid's layer and vegetation arrays directly.
"""

from __future__ import annotations

from enum import IntEnum


class Material(IntEnum):
    """Granular layers stacked on top of bedrock, bottom to top."""

    ROCK = 0
    SAND = 1
    HUMUS = 2


class Species(IntEnum):
    """Vegetation species tracked per cell."""

    TREES = 0
    BUSHES = 1
    GRASSES = 2


# Layers from the surface downwards, used to find the exposed material.
TOP_DOWN: tuple[Material, ...] = (Material.HUMUS, Material.SAND, Material.ROCK)

# Angles of repose in degrees (wind-tunnel / field measurements).
REPOSE_ANGLES: dict[Material, float] = {
    Material.ROCK: 40.0,
    Material.SAND: 34.0,
    Material.HUMUS: 40.0,
}


def material_from_name(name: str) -> Material:
    """Look up a material by its lower-case name.

    Raises:
        KeyError: If ``name`` is not a material.
    """
    return Material[name.upper()]


def species_from_name(name: str) -> Species:
    """Look up a species by its lower-case name.

    Raises:
        KeyError: If ``name`` is not a species.
    """
    return Species[name.upper()]
