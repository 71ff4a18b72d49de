"""Export — read-only snapshots of the grid for viewers and files.

The engine publishes a snapshot after every completed step.  Snapshots
are deep copies with every array marked read-only, so a viewer holding
one can never observe (or cause) a partial mutation from the step in
progress.  ``SnapshotBuffer`` keeps a front and a back slot and swaps
them on publish.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from aeolia.terrain.materials import TOP_DOWN, Material

if TYPE_CHECKING:
    from aeolia.terrain.grid import Grid

_MATERIAL_COLOURS: dict[Material, tuple[int, int, int]] = {
    Material.ROCK: (128, 118, 108),
    Material.SAND: (222, 196, 138),
    Material.HUMUS: (104, 78, 52),
}
_BEDROCK_COLOUR = (90, 86, 84)
_VEGETATION_COLOUR = np.array([46, 112, 42], dtype=np.float64)


def _frozen(array: NDArray) -> NDArray:
    copy = np.array(array, copy=True)
    copy.flags.writeable = False
    return copy


def hillshade(heights: NDArray[np.float64], cell_size: float) -> NDArray[np.float64]:
    """Simple north-west lit shading factor in [0.5, 1]."""
    if min(heights.shape) < 2:
        return np.ones_like(heights)
    g_row, g_col = np.gradient(heights, cell_size)
    lit = -(g_row + g_col) / np.sqrt(2.0)
    return np.clip(0.8 + 0.4 * np.tanh(lit), 0.5, 1.0)


def surface_colours(grid: Grid) -> NDArray[np.uint8]:
    """Derive an RGB image ``(rows, cols, 3)`` from layers and vegetation.

    The exposed material sets the base colour, vegetation cover blends it
    towards green, and a hillshade brings out relief.
    """
    rgb = np.empty((*grid.shape, 3), dtype=np.float64)
    rgb[...] = _BEDROCK_COLOUR
    for material in reversed(TOP_DOWN):
        rgb[grid.layers[material] > 0.0] = _MATERIAL_COLOURS[material]
    cover = np.clip(grid.density.sum(axis=0), 0.0, 1.0)[..., np.newaxis] * 0.8
    rgb = rgb * (1.0 - cover) + _VEGETATION_COLOUR * cover
    rgb *= hillshade(grid.heights(), grid.cell_size)[..., np.newaxis]
    return np.clip(rgb, 0, 255).astype(np.uint8)


@dataclass(frozen=True)
class GridSnapshot:
    """Immutable copy of the grid state after one step.

    Attributes:
        step: Step index the snapshot was taken after.
        height: Total surface height per cell.
        layers: Layer thickness, ``(len(Material), rows, cols)``.
        density: Vegetation density, ``(len(Species), rows, cols)``.
        moisture: Soil moisture per cell.
        temperature: Temperature per cell.
        sun_exposure: Sun exposure per cell.
        wind: Wind vectors ``(rows, cols, 2)`` of the step, if synthesized.
        colours: Derived RGB image, ``(rows, cols, 3)`` ``uint8``.
        outflow: Material per ``Material`` that has left the domain.
    """

    step: int
    height: NDArray[np.float64] = field(repr=False)
    layers: NDArray[np.float64] = field(repr=False)
    density: NDArray[np.float64] = field(repr=False)
    moisture: NDArray[np.float64] = field(repr=False)
    temperature: NDArray[np.float64] = field(repr=False)
    sun_exposure: NDArray[np.float64] = field(repr=False)
    wind: NDArray[np.float64] | None = field(repr=False)
    colours: NDArray[np.uint8] = field(repr=False)
    outflow: NDArray[np.float64] = field(repr=False)

    @classmethod
    def capture(
        cls,
        grid: Grid,
        step: int,
        wind: NDArray[np.float64] | None = None,
    ) -> GridSnapshot:
        """Copy the current grid state."""
        return cls(
            step=step,
            height=_frozen(grid.heights()),
            layers=_frozen(grid.layers),
            density=_frozen(grid.density),
            moisture=_frozen(grid.moisture),
            temperature=_frozen(grid.temperature),
            sun_exposure=_frozen(grid.sun_exposure),
            wind=None if wind is None else _frozen(wind),
            colours=_frozen(surface_colours(grid)),
            outflow=_frozen(grid.outflow),
        )

    @property
    def shape(self) -> tuple[int, int]:
        """``(rows, cols)``."""
        return int(self.height.shape[0]), int(self.height.shape[1])


class SnapshotBuffer:
    """Double buffer of published snapshots.

    The engine writes into the back slot and then swaps; readers only
    ever see the front slot.
    """

    def __init__(self) -> None:
        self._slots: list[GridSnapshot | None] = [None, None]
        self._front = 0

    def publish(
        self,
        grid: Grid,
        step: int,
        wind: NDArray[np.float64] | None = None,
    ) -> GridSnapshot:
        """Capture the grid into the back slot and make it current."""
        back = 1 - self._front
        snapshot = GridSnapshot.capture(grid, step, wind)
        self._slots[back] = snapshot
        self._front = back
        return snapshot

    def latest(self) -> GridSnapshot | None:
        """The most recently published snapshot, if any."""
        return self._slots[self._front]


def save_npz(path: str | Path, snapshot: GridSnapshot) -> Path:
    """Write a snapshot to a compressed ``.npz`` archive.

    Returns:
        The path written.
    """
    path = Path(path)
    if path.suffix != ".npz":
        path = path.with_name(path.name + ".npz")
    path.parent.mkdir(parents=True, exist_ok=True)
    arrays: dict[str, NDArray] = {
        "step": np.array(snapshot.step),
        "height": snapshot.height,
        "layers": snapshot.layers,
        "density": snapshot.density,
        "moisture": snapshot.moisture,
        "temperature": snapshot.temperature,
        "sun_exposure": snapshot.sun_exposure,
        "colours": snapshot.colours,
        "outflow": snapshot.outflow,
    }
    if snapshot.wind is not None:
        arrays["wind"] = snapshot.wind
    np.savez_compressed(path, **arrays)
    return path
