"""
Heated Bed Simulator - Core Module
==================================
Constants, materials and configuration.
"""

from .config import (
    BedConfig, ConfigManager, ConfigurationError,
    PlateConfig, HeaterConfig, SurfaceConfig,
    EnvironmentConfig, ControlConfig, SimulationConfig,
    PROBE_HEATER, PROBE_PLATE, PROBES,
)

from .constants import (
    PhysicalConstants, BedMaterial, Layer, MaterialsDatabase,
    SimulationDefaults, TuningConstants,
)

__all__ = [
    # Configuration
    'BedConfig', 'ConfigManager', 'ConfigurationError',
    'PlateConfig', 'HeaterConfig', 'SurfaceConfig',
    'EnvironmentConfig', 'ControlConfig', 'SimulationConfig',
    'PROBE_HEATER', 'PROBE_PLATE', 'PROBES',

    # Constants & Materials
    'PhysicalConstants', 'BedMaterial', 'Layer', 'MaterialsDatabase',
    'SimulationDefaults', 'TuningConstants',
]
