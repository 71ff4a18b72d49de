"""Pygame 2D visualization for the terrain simulation.

Draws the most recently published grid snapshot in a window.  The viewer
never touches the live grid: it only reads ``engine.snapshots.latest()``,
which is replaced between steps.  The simulation steps at a configurable
rate while the display refreshes at the Pygame frame rate.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import numpy as np
import pygame
from numpy.typing import NDArray

from aeolia.terrain.materials import Material

if TYPE_CHECKING:
    from aeolia.simulation.engine import SimulationEngine
    from aeolia.simulation.export import GridSnapshot

_BG = (20, 18, 16)
_TEXT = (200, 200, 200)
_WIND_COLOUR = (40, 120, 255)


class View(Enum):
    """What the map area shows."""

    SURFACE = "surface"
    HEIGHT = "height"
    SAND = "sand"
    VEGETATION = "vegetation"
    MOISTURE = "moisture"


def _ramp(
    values: NDArray[np.float64],
    lo: tuple[int, int, int],
    hi: tuple[int, int, int],
) -> NDArray[np.uint8]:
    """Map values onto a linear colour ramp, normalised to their range."""
    span = float(np.ptp(values))
    t = (values - values.min()) / span if span > 0 else np.zeros_like(values)
    lo_arr = np.array(lo, dtype=np.float64)
    hi_arr = np.array(hi, dtype=np.float64)
    rgb = lo_arr + t[..., np.newaxis] * (hi_arr - lo_arr)
    return rgb.astype(np.uint8)


def view_image(snapshot: GridSnapshot, view: View) -> NDArray[np.uint8]:
    """RGB image ``(rows, cols, 3)`` of a snapshot for one view."""
    if view is View.HEIGHT:
        return _ramp(snapshot.height, (10, 10, 10), (245, 245, 245))
    if view is View.SAND:
        return _ramp(snapshot.layers[Material.SAND], (40, 30, 20), (240, 210, 140))
    if view is View.VEGETATION:
        return _ramp(snapshot.density.sum(axis=0), (50, 40, 30), (40, 200, 40))
    if view is View.MOISTURE:
        return _ramp(snapshot.moisture, (60, 40, 20), (40, 120, 255))
    return np.asarray(snapshot.colours)


class PygameRenderer:
    """Renders a SimulationEngine's published snapshots into a Pygame window.

    Attributes:
        engine: The simulation engine to visualise.
        cell_size: Pixel size of each grid cell.
        screen: The Pygame display surface.
    """

    # Speed presets: steps per second
    _SPEED_STEPS: ClassVar[list[float]] = [0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 60.0]
    _VIEW_KEYS: ClassVar[dict[int, View]] = {
        pygame.K_1: View.SURFACE,
        pygame.K_2: View.HEIGHT,
        pygame.K_3: View.SAND,
        pygame.K_4: View.VEGETATION,
        pygame.K_5: View.MOISTURE,
    }

    def __init__(
        self,
        engine: SimulationEngine,
        cell_size: int = 8,
        steps_per_second: float = 2.0,
    ) -> None:
        """Initialise the renderer.

        Args:
            engine: The simulation engine to render.
            cell_size: Pixel width/height per grid cell.
            steps_per_second: Simulation steps per real-time second.
        """
        self.engine = engine
        self.cell_size = cell_size
        self.steps_per_second = steps_per_second
        self._speed_index = self._nearest_speed(steps_per_second)
        self._step_accumulator = 0.0
        self.view = View.SURFACE
        self.show_wind = False

        rows, cols = engine.grid.shape
        self._map_w = cols * cell_size
        self._map_h = rows * cell_size
        self._panel_width = 240
        self._win_w = self._map_w + self._panel_width
        self._win_h = max(self._map_h, 360)

        pygame.init()
        self.screen = pygame.display.set_mode((self._win_w, self._win_h))
        pygame.display.set_caption("Aeolia")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True
        self.paused = False

    def _nearest_speed(self, sps: float) -> int:
        """Return the index of the closest speed preset."""
        diffs = [abs(s - sps) for s in self._SPEED_STEPS]
        return diffs.index(min(diffs))

    def run(self, fps: int = 30) -> None:
        """Main loop: handle events, step sim, render.

        Args:
            fps: Target frames per second.
        """
        while self.running:
            dt = self.clock.tick(fps) / 1000.0
            self._handle_events()
            if not self.paused:
                self._step_accumulator += self.steps_per_second * dt
                steps = int(self._step_accumulator)
                self._step_accumulator -= steps
                self.engine.run(steps)
            self._draw()

        pygame.quit()

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                elif event.key in (pygame.K_PLUS, pygame.K_EQUALS):
                    self._speed_index = min(
                        len(self._SPEED_STEPS) - 1,
                        self._speed_index + 1,
                    )
                    self.steps_per_second = self._SPEED_STEPS[self._speed_index]
                elif event.key == pygame.K_MINUS:
                    self._speed_index = max(0, self._speed_index - 1)
                    self.steps_per_second = self._SPEED_STEPS[self._speed_index]
                elif event.key == pygame.K_w:
                    self.show_wind = not self.show_wind
                elif event.key in self._VIEW_KEYS:
                    self.view = self._VIEW_KEYS[event.key]

    def _draw(self) -> None:
        """Render one frame."""
        self.screen.fill(_BG)
        snapshot = self.engine.snapshots.latest()
        if snapshot is not None:
            self._draw_map(snapshot)
            if self.show_wind and snapshot.wind is not None:
                self._draw_wind(snapshot)
            self._draw_info_panel(snapshot)
        pygame.display.flip()

    def _draw_map(self, snapshot: GridSnapshot) -> None:
        """Blit the selected view, one cell per ``cell_size`` square."""
        image = view_image(snapshot, self.view)
        pixels = np.ascontiguousarray(image.swapaxes(0, 1))
        surface = pygame.surfarray.make_surface(pixels)
        surface = pygame.transform.scale(surface, (self._map_w, self._map_h))
        self.screen.blit(surface, (0, 0))

    def _draw_wind(self, snapshot: GridSnapshot) -> None:
        """Draw a sparse lattice of wind arrows."""
        cs = self.cell_size
        wind = snapshot.wind
        rows, cols = snapshot.shape
        stride = max(1, 32 // cs)
        peak = float(np.hypot(wind[..., 0], wind[..., 1]).max()) or 1.0
        for r in range(stride // 2, rows, stride):
            for c in range(stride // 2, cols, stride):
                d_row, d_col = wind[r, c]
                length = 0.9 * stride * cs / peak
                x0 = c * cs + cs // 2
                y0 = r * cs + cs // 2
                end = (int(x0 + d_col * length), int(y0 + d_row * length))
                pygame.draw.line(self.screen, _WIND_COLOUR, (x0, y0), end, 1)
                pygame.draw.circle(self.screen, _WIND_COLOUR, end, 2)

    def _draw_info_panel(self, snapshot: GridSnapshot) -> None:
        """Draw a stats panel on the right side of the window."""
        panel_x = self._map_w + 10
        y = 10
        context = self.engine.context

        lines = [
            f"Step: {snapshot.step}",
            f"Speed: {self.steps_per_second:.2f} steps/s",
            f"{'PAUSED' if self.paused else 'RUNNING'}",
            f"View: {self.view.value}",
            "",
            "--- Terrain ---",
            f"Height: {snapshot.height.min():.1f}..{snapshot.height.max():.1f} m",
        ]
        for material in Material:
            total = snapshot.layers[material].sum()
            lines.append(f"{material.name.title()}: {total:.2f} m")
        lines += [
            f"Outflow: {snapshot.outflow.sum():.3f} m",
            f"Vegetation: {snapshot.density.sum(axis=0).mean():.3f}",
            f"Strikes: {context.lightning_strikes}",
            f"Skipped: {context.skipped_events}",
            "",
            "--- Controls ---",
            "SPACE: pause",
            "+/-: speed",
            "1-5: view",
            "W: wind arrows",
            "ESC: quit",
        ]

        for line in lines:
            surf = self.font.render(line, True, _TEXT)
            self.screen.blit(surf, (panel_x, y))
            y += 18
