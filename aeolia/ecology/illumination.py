"""Sun exposure — how much of the sky's sun track a cell can see.

The pass samples a fixed set of sun positions (evenly spaced azimuths at a
few elevations).  For each azimuth it marches a ray across the height
field and records the steepest terrain horizon; a sun position is visible
from a cell when it stands higher than that horizon.  Exposure is the
visible fraction of all sampled positions.

The pass is global and comparatively expensive, so the engine runs it only
every ``illumination_interval`` steps.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray


def horizon_angles(
    heights: NDArray[np.float64],
    cell_size: float,
    azimuth: float,
    distance: int,
) -> NDArray[np.float64]:
    """Steepest terrain horizon (deg) towards ``azimuth`` for every cell.

    Rays stop at the domain edge; cells beyond it never occlude.
    """
    rows, cols = heights.shape
    theta = math.radians(azimuth)
    d_row, d_col = -math.cos(theta), math.sin(theta)
    steepest = np.zeros_like(heights)
    rr, cc = np.indices(heights.shape)
    for i in range(1, distance + 1):
        off_r = int(round(d_row * i))
        off_c = int(round(d_col * i))
        if off_r == 0 and off_c == 0:
            continue
        tr = rr + off_r
        tc = cc + off_c
        valid = (tr >= 0) & (tr < rows) & (tc >= 0) & (tc < cols)
        ahead = heights[np.clip(tr, 0, rows - 1), np.clip(tc, 0, cols - 1)]
        slope = (ahead - heights) / (cell_size * math.hypot(off_r, off_c))
        steepest = np.maximum(steepest, np.where(valid, slope, 0.0))
    return np.degrees(np.arctan(steepest))


def sun_exposure(
    heights: NDArray[np.float64],
    cell_size: float,
    elevations: Sequence[float],
    azimuths: int,
    distance: int,
) -> NDArray[np.float64]:
    """Fraction of sampled sun positions visible from each cell.

    Args:
        heights: Surface height per cell.
        cell_size: Cell spacing in metres.
        elevations: Sun elevation angles (deg) to sample.
        azimuths: Number of evenly spaced azimuths to sample.
        distance: Cells marched along each ray.

    Returns:
        Exposure in [0, 1]; exactly 1 everywhere on flat ground.
    """
    visible = np.zeros_like(heights)
    for k in range(azimuths):
        horizon = horizon_angles(heights, cell_size, 360.0 * k / azimuths, distance)
        for elevation in elevations:
            visible += horizon < elevation
    return visible / (azimuths * len(elevations))
