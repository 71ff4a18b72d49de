"""Grid — the fixed-resolution columnar terrain store.

Every per-cell quantity lives in a NumPy array whose trailing two axes are
``(row, col)``.  Layered quantities (granular material, vegetation) carry a
small leading axis indexed by the ``Material`` / ``Species`` enumerations.

The grid owns no behaviour beyond bookkeeping: event handlers mutate it
through ``add`` / ``remove`` / ``transfer`` / ``discharge`` so that every
thickness stays non-negative and every removed unit of material has an
explicit destination (another cell, or the out-of-domain sink).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray

from aeolia.errors import ConfigurationError, NumericDegeneracyError
from aeolia.terrain.materials import TOP_DOWN, Material, Species

Position = tuple[int, int]

_CARDINAL: tuple[Position, ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))
_DIAGONAL: tuple[Position, ...] = ((-1, -1), (-1, 1), (1, -1), (1, 1))


def _checked(amount: float) -> float:
    """Validate a transfer amount, clamping negatives to zero.

    Raises:
        NumericDegeneracyError: If ``amount`` is NaN or infinite.
    """
    amount = float(amount)
    if not math.isfinite(amount):
        msg = f"non-finite transfer amount {amount!r}"
        raise NumericDegeneracyError(msg)
    return max(0.0, amount)


@dataclass(frozen=True)
class CellState:
    """Read-only view of one grid column.

    Attributes:
        row: Row index.
        col: Column index.
        bedrock_height: Immutable base elevation in metres.
        layers: Thickness per ``Material`` (bottom to top).
        total_height: Bedrock plus all layer thicknesses.
        moisture: Transient soil-water index.
        temperature: Local temperature in degrees Celsius.
        sun_exposure: Fraction of sun positions that reach the cell (0-1).
        density: Vegetation density per ``Species`` (0-1).
        vigor: Vigor per ``Species``.
        stress: Stress per ``Species``.
    """

    row: int
    col: int
    bedrock_height: float
    layers: tuple[float, ...]
    total_height: float
    moisture: float
    temperature: float
    sun_exposure: float
    density: tuple[float, ...]
    vigor: tuple[float, ...]
    stress: tuple[float, ...]


@dataclass
class Grid:
    """A uniform 2D grid of layered terrain columns.

    Attributes:
        bedrock: Base elevation per cell in metres (read-only after
            construction).
        cell_size: Horizontal spacing between cell centres in metres.
        layers: Granular thickness, shape ``(len(Material), rows, cols)``.
        moisture: Soil-water index per cell (>= 0).
        temperature: Temperature per cell in degrees Celsius.
        sun_exposure: Sun visibility per cell (0-1).
        density: Vegetation density, shape ``(len(Species), rows, cols)``.
        vigor: Vegetation vigor, same shape as ``density``.
        stress: Vegetation stress, same shape as ``density``.
        outflow: Material per ``Material`` that has left the domain.
        litter: Humus formed in place from burnt vegetation; the one
            source of new granular material.
    """

    bedrock: NDArray[np.float64]
    cell_size: float = 10.0
    layers: NDArray[np.float64] = field(init=False, repr=False)
    moisture: NDArray[np.float64] = field(init=False, repr=False)
    temperature: NDArray[np.float64] = field(init=False, repr=False)
    sun_exposure: NDArray[np.float64] = field(init=False, repr=False)
    density: NDArray[np.float64] = field(init=False, repr=False)
    vigor: NDArray[np.float64] = field(init=False, repr=False)
    stress: NDArray[np.float64] = field(init=False, repr=False)
    outflow: NDArray[np.float64] = field(init=False, repr=False)
    litter: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        """Freeze bedrock and allocate zeroed per-cell state."""
        bedrock = np.array(self.bedrock, dtype=np.float64)
        if bedrock.ndim != 2 or 0 in bedrock.shape:
            msg = f"elevation must be a non-empty 2D array, got shape {bedrock.shape}"
            raise ConfigurationError(msg)
        if not np.all(np.isfinite(bedrock)):
            msg = "elevation contains non-finite samples"
            raise ConfigurationError(msg)
        if not self.cell_size > 0:
            msg = f"cell_size must be positive, got {self.cell_size}"
            raise ConfigurationError(msg)

        bedrock.flags.writeable = False
        self.bedrock = bedrock
        shape = bedrock.shape
        self.layers = np.zeros((len(Material), *shape), dtype=np.float64)
        self.moisture = np.zeros(shape, dtype=np.float64)
        self.temperature = np.zeros(shape, dtype=np.float64)
        self.sun_exposure = np.ones(shape, dtype=np.float64)
        self.density = np.zeros((len(Species), *shape), dtype=np.float64)
        self.vigor = np.zeros_like(self.density)
        self.stress = np.zeros_like(self.density)
        self.outflow = np.zeros(len(Material), dtype=np.float64)
        self.litter = 0.0

    @classmethod
    def from_elevation(cls, heights: ArrayLike, cell_size: float = 10.0) -> Grid:
        """Build a bare grid from an elevation sample array.

        Args:
            heights: ``rows x cols`` array of bedrock heights in metres.
            cell_size: Physical spacing between samples in metres.
        """
        return cls(bedrock=np.asarray(heights, dtype=np.float64), cell_size=cell_size)

    # -- Geometry -------------------------------------------------------------

    @property
    def rows(self) -> int:
        """Number of grid rows."""
        return int(self.bedrock.shape[0])

    @property
    def cols(self) -> int:
        """Number of grid columns."""
        return int(self.bedrock.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        """``(rows, cols)``."""
        return self.rows, self.cols

    @property
    def size(self) -> int:
        """Total number of cells."""
        return self.rows * self.cols

    def in_bounds(self, row: int, col: int) -> bool:
        """Return True if ``(row, col)`` lies inside the grid."""
        return 0 <= row < self.rows and 0 <= col < self.cols

    def position(self, index: int) -> Position:
        """Convert a flat (row-major) cell index to ``(row, col)``."""
        return divmod(int(index), self.cols)

    def neighbours(
        self,
        row: int,
        col: int,
        *,
        include_diagonals: bool = True,
    ) -> list[Position]:
        """Return in-domain neighbour positions.

        Boundary cells simply have fewer neighbours; nothing wraps.

        Args:
            row: Row index.
            col: Column index.
            include_diagonals: If True, return up to 8 neighbours; otherwise 4.
        """
        offsets = _CARDINAL + _DIAGONAL if include_diagonals else _CARDINAL
        result: list[Position] = []
        for dr, dc in offsets:
            nr, nc = row + dr, col + dc
            if 0 <= nr < self.rows and 0 <= nc < self.cols:
                result.append((nr, nc))
        return result

    def distance(self, a: Position, b: Position) -> float:
        """Horizontal distance in metres between two cell centres."""
        return self.cell_size * math.hypot(a[0] - b[0], a[1] - b[1])

    # -- Heights --------------------------------------------------------------

    def heights(self) -> NDArray[np.float64]:
        """Total surface height of every cell (bedrock plus layers)."""
        return self.bedrock + self.layers.sum(axis=0)

    def height_at(self, row: int, col: int) -> float:
        """Total surface height of one cell."""
        layers = self.layers
        return float(
            self.bedrock[row, col]
            + layers[0, row, col]
            + layers[1, row, col]
            + layers[2, row, col],
        )

    def drop(self, src: Position, dst: Position) -> float:
        """Height loss per metre going from ``src`` to ``dst``.

        Positive when ``dst`` is lower than ``src``.
        """
        rise = self.height_at(*src) - self.height_at(*dst)
        return rise / self.distance(src, dst)

    # -- Layers ---------------------------------------------------------------

    def thickness(self, material: Material, row: int, col: int) -> float:
        """Thickness of one layer at a cell."""
        return float(self.layers[material, row, col])

    def granular_thickness(self, row: int, col: int) -> float:
        """Summed thickness of all granular layers at a cell."""
        return float(self.layers[:, row, col].sum())

    def exposed_material(self, row: int, col: int) -> Material | None:
        """Return the topmost non-empty layer, or None on bare bedrock."""
        for material in TOP_DOWN:
            if self.layers[material, row, col] > 0.0:
                return material
        return None

    def add(self, material: Material, row: int, col: int, amount: float) -> float:
        """Deposit material on a cell and return the amount added."""
        amount = _checked(amount)
        self.layers[material, row, col] += amount
        return amount

    def remove(self, material: Material, row: int, col: int, amount: float) -> float:
        """Take up to ``amount`` of a layer and return what was taken.

        The caller is responsible for giving the returned amount a
        destination.
        """
        amount = min(_checked(amount), float(self.layers[material, row, col]))
        self.layers[material, row, col] -= amount
        return amount

    def transfer(
        self,
        material: Material,
        src: Position,
        dst: Position,
        amount: float,
    ) -> float:
        """Move material between two cells, clamped to what ``src`` holds.

        Returns:
            The amount actually moved.
        """
        moved = self.remove(material, src[0], src[1], amount)
        self.layers[material, dst[0], dst[1]] += moved
        return moved

    def discharge(self, material: Material, row: int, col: int, amount: float) -> float:
        """Move material from a cell into the out-of-domain sink."""
        moved = self.remove(material, row, col, amount)
        self.outflow[material] += moved
        return moved

    def total_material(self) -> float:
        """All granular material in the domain plus everything in the sink.

        Only lightning adds to it, by the amount recorded in ``litter``.
        """
        return float(self.layers.sum() + self.outflow.sum())

    # -- Vegetation -----------------------------------------------------------

    def vegetation_total(self, row: int, col: int) -> float:
        """Summed density of all species at a cell."""
        return float(self.density[:, row, col].sum())

    def clear_vegetation(self, row: int, col: int, keep: float = 0.0) -> float:
        """Scale every species at a cell down to ``keep`` of its density.

        Used only by instantaneous disturbance events; regular growth and
        die-off go through the vigor / stress derivation.

        Returns:
            Total density removed.
        """
        keep = min(max(_checked(keep), 0.0), 1.0)
        before = float(self.density[:, row, col].sum())
        self.density[:, row, col] *= keep
        return before * (1.0 - keep)

    def deposit_litter(self, row: int, col: int, amount: float) -> float:
        """Turn dead biomass into humus at a cell and record it as a source."""
        added = self.add(Material.HUMUS, row, col, amount)
        self.litter += added
        return added

    # -- Views ----------------------------------------------------------------

    def cell(self, row: int, col: int) -> CellState:
        """Return a read-only snapshot of one cell.

        Raises:
            IndexError: If coordinates are out of bounds.
        """
        if not self.in_bounds(row, col):
            msg = f"({row}, {col}) out of bounds for {self.rows}x{self.cols}"
            raise IndexError(msg)
        return CellState(
            row=row,
            col=col,
            bedrock_height=float(self.bedrock[row, col]),
            layers=tuple(float(v) for v in self.layers[:, row, col]),
            total_height=self.height_at(row, col),
            moisture=float(self.moisture[row, col]),
            temperature=float(self.temperature[row, col]),
            sun_exposure=float(self.sun_exposure[row, col]),
            density=tuple(float(v) for v in self.density[:, row, col]),
            vigor=tuple(float(v) for v in self.vigor[:, row, col]),
            stress=tuple(float(v) for v in self.stress[:, row, col]),
        )
