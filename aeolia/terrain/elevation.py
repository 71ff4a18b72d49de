"""Elevation ingestion, synthetic starting terrains and initial seeding.

The simulator starts from a ``rows x cols`` array of bedrock heights.  It
can come from a NumPy ``.npy`` / ``.npz`` file, a whitespace-delimited
text file, or one of a few synthetic generators used when no sample is
provided.  ``seed_grid`` then lays the authored starting state on top:
thin scree, a uniform sand sheet, humus that thins on steep ground, soil
moisture and an initial vegetation mix.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import gaussian_filter

from aeolia.errors import ConfigurationError
from aeolia.terrain.materials import Material, species_from_name

if TYPE_CHECKING:
    from numpy.random import Generator

    from aeolia.simulation.config import SimulationConfig
    from aeolia.terrain.grid import Grid

logger = logging.getLogger(__name__)

SYNTHETIC_KINDS: tuple[str, ...] = ("flat", "ridge", "piles", "dunes")

# Decay constant of the humus-versus-slope curve.
_HUMUS_SLOPE_SCALE = 1.0 / 3.0


def load_elevation(path: str | Path) -> NDArray[np.float64]:
    """Read a 2D elevation sample from disk.

    ``.npz`` archives use their ``elevation`` array if present, otherwise
    the first array stored.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file does not hold a 2D array.
    """
    path = Path(path)
    if not path.exists():
        msg = f"elevation file not found: {path}"
        raise FileNotFoundError(msg)
    suffix = path.suffix.lower()
    if suffix == ".npy":
        heights = np.load(path)
    elif suffix == ".npz":
        with np.load(path) as archive:
            if not archive.files:
                msg = f"{path}: empty archive"
                raise ConfigurationError(msg)
            key = "elevation" if "elevation" in archive.files else archive.files[0]
            heights = archive[key]
    else:
        heights = np.loadtxt(path, ndmin=2)
    heights = np.asarray(heights, dtype=np.float64)
    if heights.ndim != 2:
        msg = f"{path}: expected a 2D array, got shape {heights.shape}"
        raise ConfigurationError(msg)
    logger.info("loaded %dx%d elevation sample from %s", *heights.shape, path)
    return heights


def synthetic_elevation(
    kind: str, rows: int, cols: int, rng: Generator
) -> NDArray[np.float64]:
    """Generate a starting height field.

    Args:
        kind: One of ``SYNTHETIC_KINDS``.
        rows: Number of rows.
        cols: Number of columns.
        rng: Generator for the noise overlay.

    Raises:
        ConfigurationError: For an unknown ``kind``.
    """
    rr, cc = np.indices((rows, cols), dtype=np.float64)
    if kind == "flat":
        return np.zeros((rows, cols))
    if kind == "ridge":
        # Logistic escarpment along the diagonal with a smoothed noise overlay.
        x = np.abs(2.5 * (rr + cc) - 2.5 * (rows + cols) / 2.0) - 0.3 * (rows + cols)
        base = 30.0 / (1.0 + np.power(1.03, -x))
        noise = rng.standard_normal((rows, cols))
        return base + 4.0 * gaussian_filter(noise, sigma=2.0, mode="nearest")
    if kind == "piles":
        heights = np.zeros((rows, cols))
        for _ in range(max(1, (rows * cols) // 256)):
            r0, c0 = rng.uniform(0, rows), rng.uniform(0, cols)
            radius = rng.uniform(2.0, 5.0)
            heights += rng.uniform(5.0, 15.0) * np.exp(
                -((rr - r0) ** 2 + (cc - c0) ** 2) / (2.0 * radius**2),
            )
        return heights
    if kind == "dunes":
        # Transverse ridges facing the prevailing easterly wind.
        meander = 0.5 * np.sin(2.0 * np.pi * rr / 24.0)
        crest = 3.0 * np.sin(2.0 * np.pi * cc / 12.0 + meander)
        return crest + 0.5 * rng.standard_normal((rows, cols))
    msg = f"unknown synthetic terrain '{kind}', expected one of {SYNTHETIC_KINDS}"
    raise ConfigurationError(msg)


def slope_magnitude(
    heights: NDArray[np.float64], cell_size: float
) -> NDArray[np.float64]:
    """Gradient magnitude (m/m) of a height field."""
    if min(heights.shape) < 2:
        return np.zeros_like(heights)
    g_row, g_col = np.gradient(heights, cell_size)
    return np.hypot(g_row, g_col)


def seed_grid(grid: Grid, config: SimulationConfig) -> None:
    """Lay the initial scree, sand, humus, moisture and vegetation on a bare grid."""
    initial = config.initial
    grid.layers[Material.ROCK] = initial.rock_depth
    grid.layers[Material.SAND] = initial.sand_depth
    slope = slope_magnitude(np.asarray(grid.bedrock), grid.cell_size)
    thinning = np.exp(-(slope**2) / _HUMUS_SLOPE_SCALE)
    grid.layers[Material.HUMUS] = initial.humus_depth * thinning
    grid.moisture[...] = initial.moisture

    for name, value in initial.vegetation.items():
        grid.density[species_from_name(name)] = value
    cap = config.vegetation.occupancy_cap
    total = grid.density.sum(axis=0)
    over = total > cap
    if np.any(over):
        grid.density[:, over] *= cap / total[over]
