"""Entry point for ``python -m aeolia``.

Loads a YAML config, builds a simulation engine on an elevation sample
(or a synthetic terrain), and either opens a Pygame window to watch the
landscape evolve or, with ``--steps``, runs headless and optionally
exports the final state.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import signal

import numpy as np

from aeolia.simulation.config import SimulationConfig
from aeolia.simulation.engine import SimulationEngine
from aeolia.simulation.export import save_npz
from aeolia.terrain.elevation import (
    SYNTHETIC_KINDS,
    load_elevation,
    synthetic_elevation,
)

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = (
    pathlib.Path(__file__).resolve().parent.parent / "config" / "default.yaml"
)


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="aeolia",
        description="Aeolia - event-driven terrain, ecology and sand simulator",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=_DEFAULT_CONFIG,
        help="Path to YAML config file (default: config/default.yaml)",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "-e",
        "--elevation",
        type=pathlib.Path,
        help="Elevation sample (.npy, .npz or whitespace-delimited text)",
    )
    source.add_argument(
        "-t",
        "--terrain",
        choices=SYNTHETIC_KINDS,
        default="ridge",
        help="Synthetic terrain used without --elevation (default: ridge)",
    )
    parser.add_argument(
        "-n",
        "--steps",
        type=int,
        help="Run this many steps headless instead of opening a window",
    )
    parser.add_argument(
        "-o",
        "--export",
        type=pathlib.Path,
        help="Write the final snapshot to this .npz file (headless runs)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--cell-size",
        type=int,
        default=8,
        help="Pixel size per grid cell (default: 8)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=30,
        help="Target frames per second (default: 30)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=2.0,
        help="Simulation steps per second (default: 2)",
    )
    return parser


def make_engine(args: argparse.Namespace) -> SimulationEngine:
    """Build the engine described by parsed arguments."""
    config = SimulationConfig.from_yaml(args.config)
    if args.elevation is not None:
        heights = load_elevation(args.elevation)
    else:
        rng = np.random.default_rng(config.seed)
        heights = synthetic_elevation(args.terrain, config.height, config.width, rng)
    return SimulationEngine(config=config, elevation=heights)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, create engine, then run headless or launch renderer."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.export is not None and args.steps is None:
        parser.error("--export requires --steps")

    engine = make_engine(args)

    if args.steps is not None:
        # Ctrl-C requests a halt; the running step still completes.
        previous = signal.signal(signal.SIGINT, lambda *_: engine.request_halt())
        try:
            engine.run(args.steps)
        finally:
            signal.signal(signal.SIGINT, previous)
        if args.export is not None:
            snapshot = engine.snapshots.latest()
            if snapshot is not None:
                path = save_npz(args.export, snapshot)
                logger.info("wrote step %d to %s", snapshot.step, path)
        return

    from aeolia.ui.pygame_client import PygameRenderer

    renderer = PygameRenderer(
        engine=engine,
        cell_size=args.cell_size,
        steps_per_second=args.speed,
    )
    renderer.run(fps=args.fps)


if __name__ == "__main__":
    main()
