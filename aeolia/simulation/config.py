"""Config — load simulation parameters from YAML files.

Every rate constant, threshold and response curve lives in YAML and is
parsed into typed dataclasses here.  Each phenomenon owns one section so
that handlers only ever look at their own knobs.  All fields have
defaults, so ``SimulationConfig()`` is a complete, valid configuration.

Validation happens once, at engine construction: an invalid configuration
raises ``ConfigurationError`` and the simulation never starts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from aeolia.errors import ConfigurationError
from aeolia.terrain.materials import REPOSE_ANGLES, Material, Species

Range = tuple[float, float, float, float]

DEFAULT_EVENTS: tuple[str, ...] = (
    "rainfall",
    "thermal_erosion",
    "rock_slide",
    "sand_slide",
    "humus_slide",
    "lightning",
    "vegetation",
    "saltation",
)


class WindModel(Enum):
    """Which wind-field layers are active."""

    ROSE = "rose"
    ROSE_WARP = "rose+warp"
    ROSE_WARP_SHADOW = "rose+warp+shadow"

    @property
    def warps(self) -> bool:
        """True if terrain warping is applied."""
        return self is not WindModel.ROSE

    @property
    def shadows(self) -> bool:
        """True if lee-side shadowing is applied."""
        return self is WindModel.ROSE_WARP_SHADOW


def _default_repose(scale: float = 1.0) -> dict[str, float]:
    return {m.name.lower(): angle * scale for m, angle in REPOSE_ANGLES.items()}


@dataclass
class ClimateConfig:
    """Slowly varying forcing applied once per step before events run.

    Attributes:
        base_temperature: Mean temperature (deg C) at ``reference_elevation``.
        reference_elevation: Elevation (m) where ``base_temperature`` holds.
        lapse_rate: Temperature drop per metre of elevation.
        seasonal_amplitude: Half the seasonal temperature swing (deg C).
        season_length: Steps per full seasonal cycle.
        diurnal_range: Day/night temperature difference driving thermal
            weathering (deg C).
        evaporation_rate: Fraction of soil moisture lost per step.
        illumination_interval: Steps between sun-exposure passes.
        sun_elevations: Sun elevation angles (deg) sampled by the pass.
        sun_azimuths: Number of evenly spaced azimuths sampled by the pass.
        horizon_distance: Cells marched along each sun ray.
    """

    base_temperature: float = 12.0
    reference_elevation: float = 100.0
    lapse_rate: float = 0.0065
    seasonal_amplitude: float = 8.0
    season_length: int = 12
    diurnal_range: float = 10.0
    evaporation_rate: float = 0.05
    illumination_interval: int = 10
    sun_elevations: list[float] = field(default_factory=lambda: [20.0, 45.0, 70.0])
    sun_azimuths: int = 8
    horizon_distance: int = 10


@dataclass
class RainfallConfig:
    """Rainfall and steepest-descent runoff.

    Attributes:
        amount_min: Lower bound of the uniform rainfall draw per event.
        amount_max: Upper bound of the uniform rainfall draw per event.
        runoff_fraction: Share of rainfall that runs off instead of soaking in.
        infiltration_rate: Share of the running water absorbed per cell.
        capacity_constant: Sediment capacity per unit water per unit slope.
        erosion_rate: Fraction of spare capacity eroded per cell.
        deposition_rate: Fraction of excess load dropped per cell.
        min_slope: Drop per metre below which the flow deposits.
        max_steps: Hard cap on cells visited by one runoff walk.
    """

    amount_min: float = 0.0
    amount_max: float = 0.02
    runoff_fraction: float = 0.5
    infiltration_rate: float = 0.2
    capacity_constant: float = 1.0
    erosion_rate: float = 0.3
    deposition_rate: float = 0.3
    min_slope: float = 0.02
    max_steps: int = 50


@dataclass
class ThermalConfig:
    """Thermal weathering followed by a repose-angle transfer.

    Attributes:
        repose_angles: Talus angle (deg) per material name.
        mobilization: Fraction of the excess height moved per event.
        weathering_constant: Scales the firing probability.
        granular_dampening: How strongly sand + humus cover suppresses it.
        vegetation_dampening: How strongly vegetation suppresses it.
    """

    repose_angles: dict[str, float] = field(
        default_factory=lambda: _default_repose(0.85)
    )
    mobilization: float = 0.1
    weathering_constant: float = 0.1
    granular_dampening: float = 0.5
    vegetation_dampening: float = 5.0


@dataclass
class GravityConfig:
    """Discrete rock / sand / humus collapse events.

    Attributes:
        repose_angles: Critical angle (deg) per material name.
        mobilization: Fraction of the excess moved per slide (0.5 restores
            the repose angle for the pair in one slide).
        max_cascade: Cells one invocation may slide through (1 = no cascade).
    """

    repose_angles: dict[str, float] = field(default_factory=_default_repose)
    mobilization: float = 0.5
    max_cascade: int = 1


@dataclass
class LightningConfig:
    """Rare strike events.

    Attributes:
        probability: Maximum strike probability per cell per step.
        curvature_scale: Exponential sensitivity to terrain convexity.
        min_convexity: Convexity (1/m) at which the full probability applies.
        radius: Cells around the strike whose vegetation is damaged.
        strip_depth: Maximum thickness (m) stripped from the exposed layer.
        litter_depth: Humus (m) left per unit of burnt vegetation density.
    """

    probability: float = 0.002
    curvature_scale: float = 1.0
    min_convexity: float = 0.0
    radius: int = 1
    strip_depth: float = 0.04
    litter_depth: float = 0.01


@dataclass
class SpeciesProfile:
    """Response curves and rates for one vegetation species.

    Each range is ``(limit_min, ideal_min, ideal_max, limit_max)``.

    Attributes:
        temperature: Temperature response range (deg C).
        moisture: Soil-moisture response range.
        sun: Sun-exposure response range.
        growth_rate: Density change per step at saturated vigor.
        gain: Steepness of the saturating response to vigor - stress.
        max_change: Hard cap on density change per step.
        crowding_weight: Stress per unit of weighted neighbour occupancy.
        competition: Weight of each species' density in this species'
            crowding (keyed by species name).
    """

    temperature: Range = (-10.0, 0.0, 30.0, 38.0)
    moisture: Range = (0.05, 0.15, 0.35, 0.8)
    sun: Range = (0.2, 0.4, 0.9, 1.01)
    growth_rate: float = 0.02
    gain: float = 2.0
    max_change: float = 0.05
    crowding_weight: float = 0.5
    competition: dict[str, float] = field(
        default_factory=lambda: {"trees": 1.0, "bushes": 0.5, "grasses": 0.2},
    )


def _default_species() -> dict[str, SpeciesProfile]:
    return {
        "trees": SpeciesProfile(
            temperature=(-10.0, 0.0, 35.0, 38.0),
            moisture=(0.1, 0.2, 0.4, 0.8),
            sun=(0.3, 0.5, 0.9, 1.01),
            growth_rate=0.01,
            max_change=0.02,
            competition={"trees": 1.0, "bushes": 0.4, "grasses": 0.1},
        ),
        "bushes": SpeciesProfile(
            temperature=(-15.0, -5.0, 30.0, 40.0),
            moisture=(0.05, 0.15, 0.35, 0.7),
            sun=(0.2, 0.4, 0.85, 1.01),
            growth_rate=0.02,
            max_change=0.04,
            competition={"trees": 0.8, "bushes": 1.0, "grasses": 0.2},
        ),
        "grasses": SpeciesProfile(
            temperature=(-20.0, 5.0, 30.0, 45.0),
            moisture=(0.02, 0.1, 0.3, 0.6),
            sun=(0.1, 0.3, 1.0, 1.01),
            growth_rate=0.05,
            max_change=0.08,
            competition={"trees": 0.9, "bushes": 0.6, "grasses": 1.0},
        ),
    }


@dataclass
class VegetationConfig:
    """Vegetation dynamics and its coupling to sediment transport.

    Attributes:
        species: Profile per species name.
        occupancy_cap: Maximum summed density of all species at a cell.
        trapping_strength: Extra deposition multiplier at full cover.
    """

    species: dict[str, SpeciesProfile] = field(default_factory=_default_species)
    occupancy_cap: float = 1.0
    trapping_strength: float = 2.0


@dataclass
class WindRoseEntry:
    """One outcome of the wind rose.

    Attributes:
        direction: Bearing the wind blows towards (deg, 0 = north / up,
            90 = east / increasing column).
        magnitude: Wind speed in m/s.
        weight: Relative probability.
    """

    direction: float
    magnitude: float
    weight: float = 1.0


def _default_rose() -> list[WindRoseEntry]:
    return [
        WindRoseEntry(direction=90.0, magnitude=8.0, weight=4.0),
        WindRoseEntry(direction=90.0, magnitude=12.0, weight=2.0),
        WindRoseEntry(direction=45.0, magnitude=6.0, weight=1.5),
        WindRoseEntry(direction=135.0, magnitude=6.0, weight=1.5),
        WindRoseEntry(direction=270.0, magnitude=4.0, weight=1.0),
    ]


@dataclass
class WindConfig:
    """Wind-field synthesis.

    Attributes:
        model: Active layers: ``rose``, ``rose+warp`` or ``rose+warp+shadow``.
        rose: Discrete direction / magnitude distribution.
        coarse_sigma: Gaussian sigma (cells) of the coarse smoothing.
        fine_sigma: Gaussian sigma (cells) of the fine smoothing.
        warp_strength: Deflection per unit of gradient difference.
        shadow_distance: Cells marched upwind when testing for shelter.
        shadow_angle_min: Horizon angle (deg) where shadowing starts.
        shadow_angle_max: Horizon angle (deg) of full shadow.
    """

    model: str = WindModel.ROSE_WARP_SHADOW.value
    rose: list[WindRoseEntry] = field(default_factory=_default_rose)
    coarse_sigma: float = 8.0
    fine_sigma: float = 2.0
    warp_strength: float = 2.0
    shadow_distance: int = 10
    shadow_angle_min: float = 10.0
    shadow_angle_max: float = 15.0

    @property
    def wind_model(self) -> WindModel:
        """The parsed ``model`` toggle."""
        return WindModel(self.model)


@dataclass
class TransportConfig:
    """Saltation, reptation and avalanching of sand.

    Attributes:
        threshold: Wind speed (m/s) needed to lift sand.
        hop_factor: Hop length in cells per m/s of wind.
        slab_height: Thickness (m) of sand lifted per event.
        max_bounces: Hard cap on hops of one parcel.
        deposit_sand: Base deposit probability on a sandy landing cell.
        deposit_bare: Base deposit probability on a sand-free landing cell.
        shadow_deposit_weight: Extra deposit probability at full lee shadow.
        reptation_height: Maximum thickness (m) splashed per impact.
        avalanche_cascade: Cells an avalanche may slide through.
    """

    threshold: float = 4.0
    hop_factor: float = 0.5
    slab_height: float = 0.1
    max_bounces: int = 8
    deposit_sand: float = 0.6
    deposit_bare: float = 0.4
    shadow_deposit_weight: float = 1.0
    reptation_height: float = 0.05
    avalanche_cascade: int = 3


@dataclass
class InitialConfig:
    """Authored starting state seeded on top of the elevation sample.

    Attributes:
        rock_depth: Uniform starting scree (loose rock) thickness (m).
        sand_depth: Uniform starting sand thickness (m).
        humus_depth: Humus thickness (m) on flat ground; thins with slope.
        moisture: Starting soil-moisture index.
        vegetation: Starting density per species name.
    """

    rock_depth: float = 0.1
    sand_depth: float = 0.5
    humus_depth: float = 0.3
    moisture: float = 0.2
    vegetation: dict[str, float] = field(
        default_factory=lambda: {"trees": 0.2, "bushes": 0.2, "grasses": 0.3},
    )


_SECTIONS: dict[str, type] = {
    "climate": ClimateConfig,
    "rainfall": RainfallConfig,
    "thermal": ThermalConfig,
    "gravity": GravityConfig,
    "lightning": LightningConfig,
    "vegetation": VegetationConfig,
    "wind": WindConfig,
    "transport": TransportConfig,
    "initial": InitialConfig,
}


def _build(cls: type, data: dict[str, Any] | None, where: str) -> Any:
    """Instantiate a flat config dataclass, rejecting unknown keys."""
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        msg = f"unknown key(s) in '{where}': {', '.join(unknown)}"
        raise ConfigurationError(msg)
    for name in ("temperature", "moisture", "sun"):
        if name in data and isinstance(data[name], list):
            data[name] = tuple(data[name])
    try:
        return cls(**data)
    except TypeError as exc:
        msg = f"invalid '{where}' section: {exc}"
        raise ConfigurationError(msg) from exc


@dataclass
class SimulationConfig:
    """Top-level simulation configuration.

    Attributes:
        seed: RNG seed; ``None`` draws fresh entropy (non-reproducible).
        width: Number of grid columns.
        height: Number of grid rows.
        cell_size: Cell spacing in metres.
        events: Enabled event types, by name.
        log_interval: Steps between INFO summaries (0 disables them).
        climate: Temperature / moisture / sun forcing.
        rainfall: Rainfall and runoff.
        thermal: Thermal erosion.
        gravity: Rock / sand / humus slides.
        lightning: Lightning strikes.
        vegetation: Species response curves and competition.
        wind: Wind-field synthesis.
        transport: Saltation, reptation and avalanching.
        initial: Starting sand / humus / vegetation seed.
    """

    seed: int | None = 42
    width: int = 64
    height: int = 64
    cell_size: float = 10.0
    events: list[str] = field(default_factory=lambda: list(DEFAULT_EVENTS))
    log_interval: int = 10

    climate: ClimateConfig = field(default_factory=ClimateConfig)
    rainfall: RainfallConfig = field(default_factory=RainfallConfig)
    thermal: ThermalConfig = field(default_factory=ThermalConfig)
    gravity: GravityConfig = field(default_factory=GravityConfig)
    lightning: LightningConfig = field(default_factory=LightningConfig)
    vegetation: VegetationConfig = field(default_factory=VegetationConfig)
    wind: WindConfig = field(default_factory=WindConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    initial: InitialConfig = field(default_factory=InitialConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated SimulationConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
            ConfigurationError: If the file holds unknown keys or bad sections.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            msg = f"{path}: top level must be a mapping"
            raise ConfigurationError(msg)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        """Build a configuration from plain nested mappings."""
        data = dict(data)
        sections: dict[str, Any] = {}

        vegetation = dict(data.pop("vegetation", None) or {})
        species = _default_species()
        for name, overrides in (vegetation.pop("species", None) or {}).items():
            base = species.get(name, SpeciesProfile())
            merged = {f.name: getattr(base, f.name) for f in fields(SpeciesProfile)}
            merged.update(overrides or {})
            species[name] = _build(SpeciesProfile, merged, f"vegetation.species.{name}")
        vegetation["species"] = species
        sections["vegetation"] = _build(VegetationConfig, vegetation, "vegetation")

        wind = dict(data.pop("wind", None) or {})
        if "rose" in wind:
            wind["rose"] = [
                _build(WindRoseEntry, entry, "wind.rose")
                for entry in wind["rose"] or []
            ]
        sections["wind"] = _build(WindConfig, wind, "wind")

        for name, section_cls in _SECTIONS.items():
            if name not in sections:
                sections[name] = _build(section_cls, data.pop(name, None), name)

        top = _build(_TopLevel, data, "top level")
        return cls(**vars(top), **sections)

    # -- Validation -----------------------------------------------------------

    def validate(self) -> None:
        """Check every constant; raise on the first problem found.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        from aeolia.events.registry import EventType

        _check_finite(self, "")
        _require(self.width > 0 and self.height > 0, "grid dimensions must be positive")
        _require(self.cell_size > 0, "cell_size must be positive")
        _require(self.log_interval >= 0, "log_interval must be >= 0")

        names = [e.value for e in EventType]
        for name in self.events:
            _require(name in names, f"unknown event type '{name}'")
        _require(
            len(set(self.events)) == len(self.events),
            f"duplicate event registration in {self.events}",
        )

        c = self.climate
        _require(c.season_length > 0, "climate.season_length must be positive")
        _probability(c.evaporation_rate, "climate.evaporation_rate")
        _require(
            c.illumination_interval > 0,
            "climate.illumination_interval must be positive",
        )
        _require(c.sun_azimuths > 0, "climate.sun_azimuths must be positive")
        _require(c.horizon_distance > 0, "climate.horizon_distance must be positive")
        _require(len(c.sun_elevations) > 0, "climate.sun_elevations must not be empty")
        for angle in c.sun_elevations:
            _require(0.0 < angle < 90.0, "climate.sun_elevations must lie in (0, 90)")

        r = self.rainfall
        _require(
            0.0 <= r.amount_min <= r.amount_max,
            "rainfall amounts must satisfy 0 <= min <= max",
        )
        for name in (
            "runoff_fraction",
            "infiltration_rate",
            "erosion_rate",
            "deposition_rate",
        ):
            _probability(getattr(r, name), f"rainfall.{name}")
        _require(r.capacity_constant >= 0, "rainfall.capacity_constant must be >= 0")
        _require(r.min_slope >= 0, "rainfall.min_slope must be >= 0")
        _require(r.max_steps > 0, "rainfall.max_steps must be positive")

        _repose(self.thermal.repose_angles, "thermal.repose_angles")
        _mobilization(self.thermal.mobilization, "thermal.mobilization")
        for name in (
            "weathering_constant",
            "granular_dampening",
            "vegetation_dampening",
        ):
            _require(getattr(self.thermal, name) >= 0, f"thermal.{name} must be >= 0")

        _repose(self.gravity.repose_angles, "gravity.repose_angles")
        _mobilization(self.gravity.mobilization, "gravity.mobilization")
        _require(self.gravity.max_cascade > 0, "gravity.max_cascade must be positive")

        lt = self.lightning
        _probability(lt.probability, "lightning.probability")
        _require(lt.radius >= 0, "lightning.radius must be >= 0")
        _require(lt.strip_depth >= 0, "lightning.strip_depth must be >= 0")
        _require(lt.litter_depth >= 0, "lightning.litter_depth must be >= 0")

        v = self.vegetation
        _require(
            0.0 < v.occupancy_cap <= 1.0,
            "vegetation.occupancy_cap must lie in (0, 1]",
        )
        _require(v.trapping_strength >= 0, "vegetation.trapping_strength must be >= 0")
        species_names = {s.name.lower() for s in Species}
        _require(
            set(v.species) == species_names,
            f"vegetation.species must define exactly {sorted(species_names)}",
        )
        for name, profile in v.species.items():
            for curve in ("temperature", "moisture", "sun"):
                bounds = getattr(profile, curve)
                increasing = list(bounds) == sorted(bounds)
                _require(
                    len(bounds) == 4 and increasing and bounds[0] < bounds[3],
                    f"vegetation.species.{name}.{curve} must be an increasing 4-tuple",
                )
            _require(profile.growth_rate >= 0, f"{name}.growth_rate must be >= 0")
            _require(profile.max_change > 0, f"{name}.max_change must be positive")
            _require(
                profile.crowding_weight >= 0,
                f"{name}.crowding_weight must be >= 0",
            )
            _require(
                set(profile.competition) <= species_names,
                f"{name}.competition has unknown species",
            )

        w = self.wind
        try:
            WindModel(w.model)
        except ValueError as exc:
            msg = f"unknown wind.model '{w.model}'"
            raise ConfigurationError(msg) from exc
        _require(len(w.rose) > 0, "wind.rose must not be empty")
        for entry in w.rose:
            _require(
                entry.weight >= 0 and entry.magnitude >= 0,
                "wind.rose values must be >= 0",
            )
        _require(
            sum(e.weight for e in w.rose) > 0,
            "wind.rose weights must not all be zero",
        )
        _require(
            0 < w.fine_sigma < w.coarse_sigma,
            "wind sigmas must satisfy 0 < fine < coarse",
        )
        _require(w.shadow_distance > 0, "wind.shadow_distance must be positive")
        _require(
            w.shadow_angle_min < w.shadow_angle_max,
            "wind.shadow_angle_min must be below shadow_angle_max",
        )

        t = self.transport
        _require(t.threshold >= 0, "transport.threshold must be >= 0")
        _require(t.hop_factor > 0, "transport.hop_factor must be positive")
        _require(t.slab_height > 0, "transport.slab_height must be positive")
        _require(t.max_bounces > 0, "transport.max_bounces must be positive")
        for name in ("deposit_sand", "deposit_bare", "shadow_deposit_weight"):
            _probability(getattr(t, name), f"transport.{name}")
        _require(t.reptation_height >= 0, "transport.reptation_height must be >= 0")
        _require(
            t.avalanche_cascade > 0,
            "transport.avalanche_cascade must be positive",
        )

        i = self.initial
        _require(
            min(i.rock_depth, i.sand_depth, i.humus_depth) >= 0,
            "initial depths must be >= 0",
        )
        _require(i.moisture >= 0, "initial.moisture must be >= 0")
        _require(
            set(i.vegetation) <= species_names,
            "initial.vegetation has unknown species",
        )
        for value in i.vegetation.values():
            _probability(value, "initial.vegetation density")

    def repose_angle(self, material: Material, *, thermal: bool = False) -> float:
        """Return the configured repose angle (deg) for a material."""
        angles = self.thermal.repose_angles if thermal else self.gravity.repose_angles
        return float(angles[material.name.lower()])

    def profile(self, species: Species) -> SpeciesProfile:
        """Return the response profile for a species."""
        return self.vegetation.species[species.name.lower()]


@dataclass
class _TopLevel:
    seed: int | None = 42
    width: int = 64
    height: int = 64
    cell_size: float = 10.0
    events: list[str] = field(default_factory=lambda: list(DEFAULT_EVENTS))
    log_interval: int = 10


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigurationError(message)


def _finite(value: float, name: str) -> None:
    _require(math.isfinite(value), f"{name} must be finite, got {value}")


def _check_finite(node: Any, name: str) -> None:
    """Reject NaN or infinity anywhere in a config tree."""
    if isinstance(node, float):
        _finite(node, name)
    elif is_dataclass(node):
        for f in fields(node):
            _check_finite(getattr(node, f.name), f"{name}.{f.name}" if name else f.name)
    elif isinstance(node, dict):
        for key, value in node.items():
            _check_finite(value, f"{name}.{key}")
    elif isinstance(node, (list, tuple)):
        for index, value in enumerate(node):
            _check_finite(value, f"{name}[{index}]")


def _probability(value: float, name: str) -> None:
    _require(0.0 <= value <= 1.0, f"{name} must lie in [0, 1], got {value}")


def _mobilization(value: float, name: str) -> None:
    _require(0.0 < value <= 0.5, f"{name} must lie in (0, 0.5], got {value}")


def _repose(angles: dict[str, float], name: str) -> None:
    expected = {m.name.lower() for m in Material}
    _require(set(angles) == expected, f"{name} must define exactly {sorted(expected)}")
    for material, angle in angles.items():
        _require(
            0.0 < angle < 90.0,
            f"{name}.{material} must lie in (0, 90), got {angle}",
        )
