"""
Heated Bed Simulator
====================
Transient thermal simulation of a 3D printer heated bed with closed-loop
PID temperature control.

Features:
- Layered voxel model of heater, plate, magnetic sticker and PEI sheet
- Conduction, convection and radiation heat transfer
- PID control with analytic gain tuning from bed geometry
- Heater or bed-embedded control probe

Usage:
    from heatbed_sim import BedConfig, run_simulation

    config = BedConfig()
    config.clamp()
    results = run_simulation(config, duration_s=600)

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"

from .core import (
    BedConfig,
    ConfigManager,
    ConfigurationError,
    BedMaterial,
    Layer,
    MaterialsDatabase,
)

from .solvers import (
    BedSimulation,
    ThermalGrid,
    ThermalStepper,
    PIDController,
    ControllerTuner,
    SimulationNotReadyError,
    SimulationResults,
    run_simulation,
)

from .utils import get_logger, initialize_logger

__all__ = [
    'BedConfig',
    'ConfigManager',
    'ConfigurationError',
    'BedMaterial',
    'Layer',
    'MaterialsDatabase',
    'BedSimulation',
    'ThermalGrid',
    'ThermalStepper',
    'PIDController',
    'ControllerTuner',
    'SimulationNotReadyError',
    'SimulationResults',
    'run_simulation',
    'get_logger',
    'initialize_logger',
]
