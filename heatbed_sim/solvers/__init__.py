"""
Heated Bed Simulator - Solvers Module
=====================================
Grid model, PID control and the thermal stepper.
"""

from .grid import (
    ThermalGrid,
    in_plane_conductance,
    cross_layer_conductance,
    round_half_up,
    truncate_cells,
)

from .pid_controller import PIDController

from .tuner import (
    ControllerTuner,
    TuningResult,
    surface_heat_loss,
    equilibrium_temperature,
    thermal_mass,
)

from .thermal_solver import (
    SimulationNotReadyError,
    ThermalStepper,
    BedSimulation,
    TickRecord,
    SimulationResults,
    run_simulation,
)

__all__ = [
    # Grid
    'ThermalGrid',
    'in_plane_conductance',
    'cross_layer_conductance',
    'round_half_up',
    'truncate_cells',
    # Control
    'PIDController',
    'ControllerTuner',
    'TuningResult',
    'surface_heat_loss',
    'equilibrium_temperature',
    'thermal_mass',
    # Thermal
    'SimulationNotReadyError',
    'ThermalStepper',
    'BedSimulation',
    'TickRecord',
    'SimulationResults',
    'run_simulation',
]
