"""EventScheduler — builds each step's randomized work-item sequence.

Every registered event type visits every cell exactly once per step.  Each
type's cell order is an independent permutation, and the concatenated
per-type blocks are then shuffled globally, so neither an event type nor a
region of the grid systematically runs first or last, and the events of a
single cell are not clustered together.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from aeolia.errors import ConfigurationError

if TYPE_CHECKING:
    from numpy.random import Generator
    from numpy.typing import NDArray

    from aeolia.events.registry import EventType


class WorkItem(NamedTuple):
    """One scheduled event invocation."""

    cell: int
    event: EventType


@dataclass
class Schedule:
    """The ordered work items of one step.

    Attributes:
        event_types: Registered event types, indexed by ``codes``.
        cells: Flat cell index per item.
        codes: Index into ``event_types`` per item.
    """

    event_types: tuple[EventType, ...]
    cells: NDArray[np.int64] = field(repr=False)
    codes: NDArray[np.int64] = field(repr=False)

    def __len__(self) -> int:
        return int(self.cells.shape[0])

    def __iter__(self) -> Iterator[WorkItem]:
        types = self.event_types
        for cell, code in zip(self.cells.tolist(), self.codes.tolist(), strict=True):
            yield WorkItem(cell, types[code])


@dataclass
class EventScheduler:
    """Produces a coverage-guaranteed, randomly interleaved schedule.

    Attributes:
        event_types: The registered event types (no duplicates).
    """

    event_types: tuple[EventType, ...]

    def __post_init__(self) -> None:
        """Reject empty or duplicate registrations.

        Raises:
            ConfigurationError: On a duplicate or empty registration.
        """
        self.event_types = tuple(self.event_types)
        if not self.event_types:
            msg = "at least one event type must be registered"
            raise ConfigurationError(msg)
        seen: set[EventType] = set()
        for event in self.event_types:
            if event in seen:
                msg = f"event type '{event.value}' registered twice"
                raise ConfigurationError(msg)
            seen.add(event)

    @classmethod
    def from_names(cls, names: Sequence[str]) -> EventScheduler:
        """Build a scheduler from configured event names.

        Raises:
            ConfigurationError: On unknown or duplicate names.
        """
        from aeolia.events.registry import EventType

        try:
            types = tuple(EventType(name) for name in names)
        except ValueError as exc:
            msg = f"unknown event type in {list(names)}"
            raise ConfigurationError(msg) from exc
        return cls(event_types=types)

    def build(self, num_cells: int, rng: Generator) -> Schedule:
        """Produce this step's schedule of ``num_cells x len(event_types)`` items.

        A child generator is drawn from ``rng`` for each step, so the
        schedule is reproducible whenever ``rng`` is seeded.

        Args:
            num_cells: Number of cells in the grid.
            rng: The process-wide generator.
        """
        step_rng = np.random.default_rng(rng.integers(0, 2**63 - 1))
        num_types = len(self.event_types)

        cells = np.concatenate(
            [step_rng.permutation(num_cells) for _ in range(num_types)],
        ).astype(np.int64)
        codes = np.repeat(np.arange(num_types, dtype=np.int64), num_cells)

        order = step_rng.permutation(cells.shape[0])
        return Schedule(
            event_types=self.event_types,
            cells=cells[order],
            codes=codes[order],
        )
