"""Wind rose — the discrete high-altitude wind distribution.

Bearings are the direction the wind blows *towards*, in degrees clockwise
from north, where north is decreasing row and east is increasing column.
Vectors are expressed as ``(d_row, d_col)`` components in m/s.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from numpy.random import Generator

    from aeolia.simulation.config import WindConfig, WindRoseEntry


@dataclass(frozen=True)
class WindSample:
    """One draw from the wind rose.

    Attributes:
        direction: Bearing in degrees.
        magnitude: Speed in m/s.
    """

    direction: float
    magnitude: float

    @property
    def unit(self) -> tuple[float, float]:
        """Unit ``(d_row, d_col)`` vector of the bearing."""
        theta = math.radians(self.direction)
        return -math.cos(theta), math.sin(theta)

    @property
    def vector(self) -> tuple[float, float]:
        """``(d_row, d_col)`` wind vector in m/s."""
        d_row, d_col = self.unit
        return d_row * self.magnitude, d_col * self.magnitude


@dataclass
class WindRose:
    """A weighted set of direction / magnitude outcomes.

    Attributes:
        entries: The configured outcomes.
        probabilities: Normalised weights, one per entry.
    """

    entries: list[WindRoseEntry]
    probabilities: NDArray[np.float64] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Normalise the entry weights."""
        weights = np.array([e.weight for e in self.entries], dtype=np.float64)
        self.probabilities = weights / weights.sum()

    @classmethod
    def from_config(cls, config: WindConfig) -> WindRose:
        """Build the rose from the ``wind`` config section."""
        return cls(entries=list(config.rose))

    def sample(self, rng: Generator) -> WindSample:
        """Draw this step's base wind."""
        index = int(rng.choice(len(self.entries), p=self.probabilities))
        entry = self.entries[index]
        return WindSample(
            direction=float(entry.direction),
            magnitude=float(entry.magnitude),
        )

    def mean_vector(self) -> tuple[float, float]:
        """Probability-weighted mean ``(d_row, d_col)`` wind vector."""
        d_row = d_col = 0.0
        for entry, p in zip(self.entries, self.probabilities, strict=True):
            vr, vc = WindSample(entry.direction, entry.magnitude).vector
            d_row += p * vr
            d_col += p * vc
        return d_row, d_col
