"""SimulationContext — the explicit, passed-by-reference run state.

Handlers never reach for module-level globals: the seeded generator, the
rate constants and the current step's wind field all travel through this
object, which the engine owns and threads into the scheduler and every
handler invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from aeolia.errors import StaleWindFieldError

if TYPE_CHECKING:
    from numpy.random import Generator

    from aeolia.simulation.config import SimulationConfig
    from aeolia.wind.field import WindField


@dataclass
class SimulationContext:
    """State shared by every handler during a run.

    Attributes:
        config: Validated simulation configuration.
        rng: Process-wide random generator (seeded from ``config.seed``).
        step: Index of the step currently executing (1-based once running).
        wind: Wind field synthesized for ``step``; ``None`` between steps.
        skipped_events: Invocations dropped because of numeric degeneracy.
        lightning_strikes: Strikes recorded since the run began.
        capped_walks: Runoff walks or cascades cut short by their caps.
    """

    config: SimulationConfig
    rng: Generator
    step: int = 0
    wind: WindField | None = field(default=None, repr=False)
    skipped_events: int = 0
    lightning_strikes: int = 0
    capped_walks: int = 0

    def current_wind(self) -> WindField:
        """Return this step's wind field.

        Raises:
            StaleWindFieldError: If no field exists or it belongs to another
                step.
        """
        if self.wind is None:
            msg = f"no wind field synthesized for step {self.step}"
            raise StaleWindFieldError(msg)
        if self.wind.step != self.step:
            msg = f"wind field from step {self.wind.step} read during step {self.step}"
            raise StaleWindFieldError(msg)
        return self.wind
