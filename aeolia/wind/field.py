"""Wind-field synthesis — one 2D wind vector per cell per step.

Three composable layers, selected by ``WindModel``:

1. **Rose**: the step's wind-rose sample, applied uniformly.
2. **Warp**: the height field is smoothed at a fine and a coarse scale
   (Gaussian); the difference of their gradients deflects the wind
   sideways along the contours of large landforms, scaled by wind speed.
3. **Shadow**: each cell marches ``shadow_distance`` cells upwind along
   the base bearing; the steepest horizon angle found is ramped between
   ``shadow_angle_min`` and ``shadow_angle_max`` into a shelter fraction
   that attenuates the wind on lee slopes.

A perfectly flat field leaves the rose sample untouched everywhere.

The resulting ``WindField`` is stamped with the step it was built for;
transport handlers fetch it through ``SimulationContext.current_wind`` so
a field from a previous step can never be read.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import gaussian_filter

if TYPE_CHECKING:
    from aeolia.simulation.config import WindConfig
    from aeolia.terrain.grid import Grid
    from aeolia.wind.rose import WindSample


@dataclass
class WindField:
    """Per-cell wind valid for exactly one step.

    Attributes:
        step: The step this field was synthesized for.
        base: The wind-rose sample it was built from.
        vectors: ``(rows, cols, 2)`` array of ``(d_row, d_col)`` in m/s.
        shadow: ``(rows, cols)`` lee-shelter fraction in [0, 1].
    """

    step: int
    base: WindSample
    vectors: NDArray[np.float64] = field(repr=False)
    shadow: NDArray[np.float64] = field(repr=False)

    @property
    def magnitudes(self) -> NDArray[np.float64]:
        """Wind speed per cell."""
        return np.hypot(self.vectors[..., 0], self.vectors[..., 1])

    def at(self, row: int, col: int) -> tuple[float, float]:
        """``(d_row, d_col)`` wind vector at a cell."""
        v = self.vectors[row, col]
        return float(v[0]), float(v[1])

    def speed_at(self, row: int, col: int) -> float:
        """Wind speed at a cell."""
        d_row, d_col = self.at(row, col)
        return math.hypot(d_row, d_col)


def smooth(heights: NDArray[np.float64], sigma: float) -> NDArray[np.float64]:
    """Gaussian-weighted average of the height field."""
    return gaussian_filter(heights, sigma=sigma, mode="nearest")


def warp(
    heights: NDArray[np.float64],
    base: WindSample,
    config: WindConfig,
    cell_size: float,
) -> NDArray[np.float64]:
    """Deflect the base wind along contours of large landforms.

    Returns:
        ``(rows, cols, 2)`` warped wind vectors.
    """
    base_vec = np.array(base.vector, dtype=np.float64)
    vectors = np.broadcast_to(base_vec, (*heights.shape, 2)).copy()
    if min(heights.shape) < 2 or base.magnitude == 0.0:
        return vectors

    fine_r, fine_c = np.gradient(smooth(heights, config.fine_sigma), cell_size)
    coarse_r, coarse_c = np.gradient(smooth(heights, config.coarse_sigma), cell_size)
    g_row = fine_r - coarse_r
    g_col = fine_c - coarse_c

    # Contour direction, oriented to keep the wind's downwind sense.
    perp_r = -g_col
    perp_c = g_row
    sign = np.where(base_vec[0] * perp_r + base_vec[1] * perp_c < 0.0, -1.0, 1.0)
    scale = config.warp_strength * base.magnitude * sign
    vectors[..., 0] += scale * perp_r
    vectors[..., 1] += scale * perp_c
    return vectors


def shadowing(
    heights: NDArray[np.float64],
    base: WindSample,
    config: WindConfig,
    cell_size: float,
) -> NDArray[np.float64]:
    """Lee-shelter fraction per cell from the steepest upwind horizon."""
    rows, cols = heights.shape
    steepest = np.zeros_like(heights)
    if base.magnitude == 0.0:
        return steepest

    d_row, d_col = base.unit
    rr, cc = np.indices(heights.shape)
    for i in range(1, config.shadow_distance + 1):
        off_r = int(round(-d_row * i))
        off_c = int(round(-d_col * i))
        if off_r == 0 and off_c == 0:
            continue
        ur = rr + off_r
        uc = cc + off_c
        valid = (ur >= 0) & (ur < rows) & (uc >= 0) & (uc < cols)
        upwind = heights[np.clip(ur, 0, rows - 1), np.clip(uc, 0, cols - 1)]
        slope = (upwind - heights) / (cell_size * math.hypot(off_r, off_c))
        steepest = np.maximum(steepest, np.where(valid, slope, 0.0))

    angle = np.degrees(np.arctan(steepest))
    span = config.shadow_angle_max - config.shadow_angle_min
    return np.clip((angle - config.shadow_angle_min) / span, 0.0, 1.0)


def synthesize_wind(
    grid: Grid, sample: WindSample, config: WindConfig, step: int
) -> WindField:
    """Build the wind field for one step.

    Args:
        grid: The terrain grid (only heights are read).
        sample: This step's wind-rose draw.
        config: The ``wind`` config section.
        step: Step index to stamp on the field.
    """
    model = config.wind_model
    heights = grid.heights()
    vectors = np.broadcast_to(
        np.array(sample.vector, dtype=np.float64),
        (*heights.shape, 2),
    ).copy()
    shadow = np.zeros(heights.shape, dtype=np.float64)

    if np.ptp(heights) > 0.0:
        if model.warps:
            vectors = warp(heights, sample, config, grid.cell_size)
        if model.shadows:
            shadow = shadowing(heights, sample, config, grid.cell_size)
            vectors *= (1.0 - shadow)[..., np.newaxis]

    return WindField(step=step, base=sample, vectors=vectors, shadow=shadow)
