"""Shared fixtures for the Aeolia test suite."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.random import Generator

from aeolia.simulation.config import SimulationConfig
from aeolia.simulation.context import SimulationContext
from aeolia.terrain.grid import Grid


@pytest.fixture
def rng() -> Generator:
    """A deterministic random generator for reproducible tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def default_config() -> SimulationConfig:
    """Default simulation config (no YAML file needed)."""
    return SimulationConfig()


@pytest.fixture
def small_config() -> SimulationConfig:
    """A 12x12 configuration with periodic summaries switched off."""
    return SimulationConfig(width=12, height=12, log_interval=0)


@pytest.fixture
def flat_grid() -> Grid:
    """A bare, flat 8x8 grid with 1 m cells."""
    return Grid.from_elevation(np.zeros((8, 8)), cell_size=1.0)


@pytest.fixture
def context(default_config: SimulationConfig, rng: Generator) -> SimulationContext:
    """A run context over the default config, at step 1."""
    return SimulationContext(config=default_config, rng=rng, step=1)
