"""
Heated Bed Simulator - Configuration Management
===============================================
Configuration data structures, parameter clamping and JSON serialization.

The simulation core trusts its inputs. Everything that keeps those inputs
sane (positive sizes, heater no larger than the plate, parameters inside
their slider ranges) lives here.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
"""

import json
from typing import List, Dict, Optional, Tuple, Any
from dataclasses import dataclass, field, asdict
from pathlib import Path
from datetime import datetime

from .constants import PhysicalConstants, MaterialsDatabase, SimulationDefaults, Layer
from ..utils.logger import get_logger


PROBE_HEATER = "heater"
PROBE_PLATE = "plate"
PROBES = (PROBE_HEATER, PROBE_PLATE)


class ConfigurationError(ValueError):
    """Raised when a bed configuration cannot be simulated."""


@dataclass
class PlateConfig:
    """Build plate geometry and conductivity."""
    width_mm: float = 250.0
    height_mm: float = 250.0
    thickness_mm: float = 8.0
    conductivity: float = MaterialsDatabase.BUILD_PLATE.conductivity


@dataclass
class HeaterConfig:
    """Heater film footprint and rating."""
    width_mm: float = 200.0
    height_mm: float = 200.0
    conductivity: float = MaterialsDatabase.HEATER.conductivity
    power_density_w_cm2: float = 0.8


@dataclass
class SurfaceConfig:
    """Build surface layers on top of the plate."""
    has_magnetic_sticker: bool = True
    sticker_conductivity: float = MaterialsDatabase.MAGNETIC_STICKER.conductivity
    pei_conductivity: float = MaterialsDatabase.PEI_SPRING_STEEL.conductivity


@dataclass
class EnvironmentConfig:
    """Surroundings of the bed."""
    ambient_temp_c: float = 22.0
    convection_top: float = 8.0  # W/(m²·K)
    convection_bottom: float = 4.0  # W/(m²·K)


@dataclass
class ControlConfig:
    """Temperature control loop settings."""
    target_temp_c: float = 110.0
    probe: str = PROBE_HEATER  # heater, plate


@dataclass
class SimulationConfig:
    """Simulation parameters."""
    resolution_xy_m: float = SimulationDefaults.RESOLUTION_XY_M
    iterations_per_timestep: int = SimulationDefaults.ITERATIONS_PER_TIMESTEP
    duration_s: int = SimulationDefaults.DEFAULT_DURATION_S
    overheat_temp_c: float = SimulationDefaults.OVERHEAT_TEMP_C


def _filter_kwargs(dc_type, d: Dict[str, Any]) -> Dict[str, Any]:
    """Filter dict keys to those accepted by the dataclass constructor."""
    allowed = getattr(dc_type, '__dataclass_fields__', {}).keys()
    return {k: v for k, v in (d or {}).items() if k in allowed}


@dataclass
class BedConfig:
    """Complete heated bed configuration."""
    version: str = "1.0.0"
    created: str = ""
    modified: str = ""

    plate: PlateConfig = field(default_factory=PlateConfig)
    heater: HeaterConfig = field(default_factory=HeaterConfig)
    surface: SurfaceConfig = field(default_factory=SurfaceConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    control: ControlConfig = field(default_factory=ControlConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    def __post_init__(self):
        if not self.created:
            self.created = datetime.now().isoformat()
        self.modified = datetime.now().isoformat()

    # Geometry in metres
    @property
    def plate_size_m(self) -> Tuple[float, float]:
        return (self.plate.width_mm / PhysicalConstants.MM_PER_M,
                self.plate.height_mm / PhysicalConstants.MM_PER_M)

    @property
    def heater_size_m(self) -> Tuple[float, float]:
        return (self.heater.width_mm / PhysicalConstants.MM_PER_M,
                self.heater.height_mm / PhysicalConstants.MM_PER_M)

    @property
    def probe_embedded_in_bed(self) -> bool:
        return self.control.probe == PROBE_PLATE

    def build_layers(self) -> List[Layer]:
        """Bed stack from bottom (heater) to top (build surface)."""
        layers = [
            Layer(MaterialsDatabase.HEATER.with_conductivity(self.heater.conductivity),
                  SimulationDefaults.HEATER_THICKNESS_M),
            Layer(MaterialsDatabase.BUILD_PLATE.with_conductivity(self.plate.conductivity),
                  self.plate.thickness_mm / PhysicalConstants.MM_PER_M),
        ]
        if self.surface.has_magnetic_sticker:
            layers.append(Layer(
                MaterialsDatabase.MAGNETIC_STICKER.with_conductivity(self.surface.sticker_conductivity),
                SimulationDefaults.MAGNETIC_STICKER_THICKNESS_M))
        layers.append(Layer(
            MaterialsDatabase.PEI_SPRING_STEEL.with_conductivity(self.surface.pei_conductivity),
            SimulationDefaults.PEI_SHEET_THICKNESS_M))
        return layers

    def stack_height_m(self) -> float:
        return sum(layer.thickness for layer in self.build_layers())

    def probe_locations(self) -> Dict[str, Tuple[float, float, float]]:
        """World-space probe positions in metres."""
        width, height = self.plate_size_m
        return {
            PROBE_HEATER: (width / 2, height / 2, 0.0),
            PROBE_PLATE: (width / 2,
                          height - SimulationDefaults.PLATE_PROBE_EDGE_OFFSET_M,
                          self.stack_height_m() / 2),
        }

    def control_probe_location(self) -> Tuple[float, float, float]:
        return self.probe_locations()[self.control.probe]

    def clamp(self) -> List[str]:
        """
        Bring every parameter into its allowed range and shrink the heater
        to fit the plate. Returns a description of each adjustment.
        """
        logger = get_logger()
        adjustments = []

        for key, (low, high) in SimulationDefaults.PARAMETER_RANGES.items():
            section_name, attr = key.split('.')
            section = getattr(self, section_name)
            value = getattr(section, attr)
            clamped = min(max(value, low), high)
            if clamped != value:
                setattr(section, attr, clamped)
                adjustments.append(f"{key}: {value} -> {clamped}")

        if self.heater.width_mm > self.plate.width_mm:
            adjustments.append(f"heater.width_mm: {self.heater.width_mm} -> {self.plate.width_mm}")
            self.heater.width_mm = self.plate.width_mm
        if self.heater.height_mm > self.plate.height_mm:
            adjustments.append(f"heater.height_mm: {self.heater.height_mm} -> {self.plate.height_mm}")
            self.heater.height_mm = self.plate.height_mm

        for message in adjustments:
            logger.warning(f"Configuration clamped {message}")

        return adjustments

    def validate(self):
        """Raise ConfigurationError if the configuration cannot be simulated."""
        positive = {
            'plate.width_mm': self.plate.width_mm,
            'plate.height_mm': self.plate.height_mm,
            'plate.thickness_mm': self.plate.thickness_mm,
            'heater.width_mm': self.heater.width_mm,
            'heater.height_mm': self.heater.height_mm,
            'simulation.resolution_xy_m': self.simulation.resolution_xy_m,
            'simulation.iterations_per_timestep': self.simulation.iterations_per_timestep,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

        if self.heater.width_mm > self.plate.width_mm or self.heater.height_mm > self.plate.height_mm:
            raise ConfigurationError(
                f"Heater {self.heater.width_mm}x{self.heater.height_mm} mm is larger than "
                f"plate {self.plate.width_mm}x{self.plate.height_mm} mm"
            )

        if self.control.probe not in PROBES:
            raise ConfigurationError(f"Unknown probe '{self.control.probe}', expected one of {PROBES}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        self.modified = datetime.now().isoformat()
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BedConfig':
        """Create from dictionary, ignoring unknown keys."""
        config = cls()

        if 'version' in data:
            config.version = data['version']
        if 'created' in data:
            config.created = data['created']

        if 'plate' in data:
            config.plate = PlateConfig(**_filter_kwargs(PlateConfig, data['plate']))
        if 'heater' in data:
            config.heater = HeaterConfig(**_filter_kwargs(HeaterConfig, data['heater']))
        if 'surface' in data:
            config.surface = SurfaceConfig(**_filter_kwargs(SurfaceConfig, data['surface']))
        if 'environment' in data:
            config.environment = EnvironmentConfig(**_filter_kwargs(EnvironmentConfig, data['environment']))
        if 'control' in data:
            config.control = ControlConfig(**_filter_kwargs(ControlConfig, data['control']))
        if 'simulation' in data:
            config.simulation = SimulationConfig(**_filter_kwargs(SimulationConfig, data['simulation']))

        return config


class ConfigManager:
    """Manages loading and saving a bed configuration file."""

    def __init__(self, config_path: str = ""):
        self._config_path: Optional[Path] = Path(config_path) if config_path else None
        self.config: Optional[BedConfig] = None
        self.logger = get_logger()

    def get_config(self) -> BedConfig:
        """Get configuration, loading from file if it exists."""
        if self.config:
            return self.config

        if self._config_path and self._config_path.exists():
            try:
                with open(self._config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                self.config = BedConfig.from_dict(data)
            except (OSError, ValueError, TypeError) as e:
                self.logger.error(f"Failed to load config {self._config_path}: {e}")
                self.config = BedConfig()
        else:
            self.config = BedConfig()

        return self.config

    def save(self) -> bool:
        """Save configuration to its file."""
        if not self.config or not self._config_path:
            return False
        return self.export(str(self._config_path))

    def export(self, path: str) -> bool:
        """Export configuration to the given path."""
        if not self.config:
            return False

        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.config.to_dict(), f, indent=2)
            return True
        except (OSError, TypeError) as e:
            self.logger.error(f"Failed to save config {path}: {e}")
            return False

    def import_config(self, path: str) -> bool:
        """Import configuration from file."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self.config = BedConfig.from_dict(data)
            return True
        except (OSError, ValueError, TypeError) as e:
            self.logger.error(f"Failed to import config {path}: {e}")
            return False


__all__ = [
    'BedConfig', 'ConfigManager', 'ConfigurationError',
    'PlateConfig', 'HeaterConfig', 'SurfaceConfig',
    'EnvironmentConfig', 'ControlConfig', 'SimulationConfig',
    'PROBE_HEATER', 'PROBE_PLATE', 'PROBES',
]
