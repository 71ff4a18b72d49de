"""Tests for aeolia.simulation.config — YAML loading and validation."""

from __future__ import annotations

import math
from pathlib import Path

import pytest

from aeolia.errors import ConfigurationError
from aeolia.simulation.config import (
    DEFAULT_EVENTS,
    GravityConfig,
    SimulationConfig,
    WindConfig,
    WindModel,
    WindRoseEntry,
)
from aeolia.terrain.materials import Material, Species

_REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_defaults_are_valid(self, default_config: SimulationConfig) -> None:
        default_config.validate()
        assert default_config.seed == 42
        assert default_config.width == 64
        assert tuple(default_config.events) == DEFAULT_EVENTS

    def test_repose_lookup(self, default_config: SimulationConfig) -> None:
        assert default_config.repose_angle(Material.SAND) == 34.0
        angle = default_config.repose_angle(Material.SAND, thermal=True)
        assert angle == pytest.approx(34.0 * 0.85)

    def test_wind_model(self, default_config: SimulationConfig) -> None:
        model = default_config.wind.wind_model
        assert model is WindModel.ROSE_WARP_SHADOW
        assert model.warps and model.shadows
        assert not WindModel.ROSE.warps
        assert WindModel.ROSE_WARP.warps and not WindModel.ROSE_WARP.shadows


class TestYamlLoading:
    """Tests for reading configuration files."""

    def test_repository_default(self) -> None:
        cfg = SimulationConfig.from_yaml(_REPO_CONFIG)
        cfg.validate()
        assert cfg.profile(Species.TREES).growth_rate == 0.01
        assert cfg.profile(Species.TREES).temperature == (-10.0, 0.0, 35.0, 38.0)
        expected = WindRoseEntry(direction=90.0, magnitude=8.0, weight=4.0)
        assert cfg.wind.rose[0] == expected

    def test_partial_file(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "test.yaml"
        yaml_file.write_text(
            "seed: 99\nwidth: 16\nheight: 8\n"
            "wind:\n  model: rose\n"
            "vegetation:\n  species:\n    grasses:\n      growth_rate: 0.2\n",
        )
        cfg = SimulationConfig.from_yaml(yaml_file)
        cfg.validate()
        assert cfg.seed == 99
        assert (cfg.height, cfg.width) == (8, 16)
        assert cfg.wind.wind_model is WindModel.ROSE
        assert cfg.profile(Species.GRASSES).growth_rate == 0.2
        assert cfg.profile(Species.TREES).growth_rate == 0.01

    def test_null_seed(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "test.yaml"
        yaml_file.write_text("seed: null\n")
        assert SimulationConfig.from_yaml(yaml_file).seed is None

    def test_empty_file(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")
        assert SimulationConfig.from_yaml(yaml_file).width == 64

    def test_unknown_top_level_key(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("world_width: 16\n")
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_yaml(yaml_file)

    def test_unknown_section_key(self) -> None:
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_dict({"transport": {"bounces": 3}})

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SimulationConfig.from_yaml(tmp_path / "missing.yaml")


class TestValidation:
    """Tests for startup validation."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"width": 0},
            {"cell_size": -1.0},
            {"events": ["rainfall", "rainfall"]},
            {"events": ["rainfall", "earthquake"]},
            {"lightning": {"probability": 1.5}},
            {"gravity": {"mobilization": 0.8}},
            {"thermal": {"repose_angles": {"rock": 95.0, "sand": 30.0, "humus": 30.0}}},
            {"transport": {"max_bounces": 0}},
            {"wind": {"model": "hurricane"}},
            {"wind": {"rose": []}},
            {"wind": {"rose": [{"direction": 0.0, "magnitude": 5.0, "weight": 0.0}]}},
            {"vegetation": {"occupancy_cap": 0.0}},
            {"vegetation": {"species": {"trees": {"moisture": [0.5, 0.2, 0.4, 0.8]}}}},
        ],
    )
    def test_invalid_values_rejected(self, overrides: dict) -> None:
        cfg = SimulationConfig.from_dict(overrides)
        with pytest.raises(ConfigurationError):
            cfg.validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"cell_size": math.inf},
            {"transport": {"hop_factor": math.inf}},
            {"transport": {"slab_height": math.inf}},
            {"rainfall": {"amount_max": math.nan}},
            {"climate": {"base_temperature": -math.inf}},
            {"wind": {"rose": [
                {"direction": math.nan, "magnitude": 8.0, "weight": 1.0},
            ]}},
            {"wind": {"rose": [
                {"direction": 0.0, "magnitude": math.inf, "weight": 1.0},
            ]}},
            {"wind": {"coarse_sigma": math.inf}},
            {"vegetation": {"species": {"bushes": {"sun": [0.0, 0.2, 0.8, math.inf]}}}},
            {"initial": {"vegetation": {"grasses": math.nan}}},
        ],
    )
    def test_non_finite_values_rejected(self, overrides: dict) -> None:
        cfg = SimulationConfig.from_dict(overrides)
        with pytest.raises(ConfigurationError, match="finite"):
            cfg.validate()

    def test_direct_construction_validated(self) -> None:
        cfg = SimulationConfig(gravity=GravityConfig(max_cascade=0))
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_shadow_ramp_must_be_increasing(self) -> None:
        wind = WindConfig(shadow_angle_min=15.0, shadow_angle_max=10.0)
        cfg = SimulationConfig(wind=wind)
        with pytest.raises(ConfigurationError):
            cfg.validate()
