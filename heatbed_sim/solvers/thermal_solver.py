"""
Heated Bed Simulator - Thermal Solver
=====================================
Explicit finite difference stepper and closed-loop simulation session.

Each tick (one simulated second) is split into ``iterations_per_timestep``
sub-steps. A sub-step:

1. clears the heat delta buffer,
2. reads the probe and asks the PID controller for power,
3. clamps the power to the heater rating and spreads it over the heater
   footprint on the bottom layer,
4. adds conduction between neighbouring cells,
5. subtracts convection and radiation at every outer face,
6. integrates temperatures from the summed heat deltas.

All heat flows of a sub-step are summed before any temperature changes.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
"""

import time
from datetime import datetime
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from ..core.config import BedConfig, PROBE_HEATER, PROBE_PLATE
from ..core.constants import Layer, PhysicalConstants, SimulationDefaults
from ..utils.logger import get_logger, timed_function, log_section
from .grid import ThermalGrid
from .pid_controller import PIDController
from .tuner import ControllerTuner


class SimulationNotReadyError(RuntimeError):
    """Raised when a session is used before reset or tuning."""


class ThermalStepper:
    """Advances a ThermalGrid under PID control, one tick at a time."""

    def __init__(self, grid: ThermalGrid, controller: Optional[PIDController] = None,
                 iterations_per_timestep: int = SimulationDefaults.ITERATIONS_PER_TIMESTEP,
                 step_size: float = SimulationDefaults.STEP_SIZE_S,
                 emissivity_compensation: float = SimulationDefaults.EMISSIVITY_COMPENSATION):
        self.grid = grid
        self.controller = controller
        self.iterations_per_timestep = iterations_per_timestep
        self.step_size = step_size
        self.emissivity_compensation = emissivity_compensation

        self._radiation_coeff = None
        self._radiation_source = None

    @property
    def radiation_coefficient(self) -> np.ndarray:
        """
        Per-cell ε·A·σ·compensation [W/K⁴].

        Rebuilt whenever the grid has been re-allocated by ThermalGrid.reset.
        """
        grid = self.grid
        if self._radiation_source is not grid.area_top:
            self._radiation_coeff = (grid.emissivity * (grid.area_top + grid.area_bottom) *
                                     PhysicalConstants.STEFAN_BOLTZMANN * self.emissivity_compensation)
            self._radiation_source = grid.area_top
        return self._radiation_coeff

    @property
    def dt(self) -> float:
        return self.step_size / self.iterations_per_timestep

    def heater_power_limit(self, power_density: float) -> float:
        """Maximum heater power [W] for a rating in W/cm²."""
        cm2 = self.grid.heater_area * PhysicalConstants.CM_PER_M * PhysicalConstants.CM_PER_M
        return power_density * cm2

    def iterate(self, target_temp: float, power_density: float, ambient_temp: float,
                convection_top: float, convection_bottom: float,
                probe_location: Sequence[float]) -> float:
        """
        Run one tick.

        Args:
            target_temp: Setpoint [°C]
            power_density: Heater rating [W/cm²]
            ambient_temp: Ambient air temperature [°C]
            convection_top: Coefficient for the top face and side edges [W/(m²·K)]
            convection_bottom: Coefficient for the bottom face [W/(m²·K)]
            probe_location: (x, y, z) of the control probe [m]

        Returns:
            Controlled heater wattage of the last sub-step
        """
        if self.controller is None:
            raise SimulationNotReadyError("No PID controller, tune before iterating")

        dt = self.dt
        power_limit = self.heater_power_limit(power_density)
        px, py, pz = probe_location

        controlled_wattage = 0.0
        for _ in range(self.iterations_per_timestep):
            control_temp = self.grid.temperature_at(px, py, pz)
            controlled_wattage = self._sub_step(
                target_temp, control_temp, power_limit, ambient_temp,
                convection_top, convection_bottom, dt
            )
        return controlled_wattage

    def _sub_step(self, target_temp: float, control_temp: float, power_limit: float,
                  ambient_temp: float, convection_top: float, convection_bottom: float,
                  dt: float) -> float:
        grid = self.grid
        T = grid.temperatures
        dq = grid.dq

        dq.fill(0.0)

        k = self.controller.update(target_temp, control_temp, dt)
        controlled_wattage = min(max(k, 0.0), power_limit)

        # Heater
        heater_cells = grid.heater_indices.size
        if heater_cells:
            dq[grid.heater_indices] = controlled_wattage * dt / heater_cells

        # Conduction
        dq -= grid.conduction_matrix.dot(T) * dt

        # Convection / radiation on all outer faces
        kelvin = PhysicalConstants.CELSIUS_TO_KELVIN
        ambient_k4 = (ambient_temp + kelvin) ** 4
        dq -= (convection_top * grid.area_top + convection_bottom * grid.area_bottom) * dt * (T - ambient_temp)
        dq -= self.radiation_coefficient * dt * ((T + kelvin) ** 4 - ambient_k4)

        # Integrate
        T += dq / grid.capacity

        return controlled_wattage

    def heat_loss(self, ambient_temp: float, convection_top: float, convection_bottom: float) -> float:
        """Total boundary heat loss rate [W] of the current temperature field."""
        grid = self.grid
        T = grid.temperatures
        kelvin = PhysicalConstants.CELSIUS_TO_KELVIN
        q_conv = (convection_top * grid.area_top + convection_bottom * grid.area_bottom) * (T - ambient_temp)
        q_rad = self.radiation_coefficient * ((T + kelvin) ** 4 - (ambient_temp + kelvin) ** 4)
        return float(np.sum(q_conv + q_rad))


class BedSimulation:
    """
    One simulation session: a grid, its controller and its stepper.

    ``reset`` and ``tune`` replace the grid and controller wholesale;
    references to the previous grid go stale.
    """

    def __init__(self, iterations_per_timestep: int = SimulationDefaults.ITERATIONS_PER_TIMESTEP,
                 step_size: float = SimulationDefaults.STEP_SIZE_S):
        self.iterations_per_timestep = iterations_per_timestep
        self.step_size = step_size
        self.logger = get_logger()

        self.grid: Optional[ThermalGrid] = None
        self.controller: Optional[PIDController] = None
        self.stepper: Optional[ThermalStepper] = None

        self.ticks = 0
        self.elapsed_s = 0.0

    @classmethod
    def from_config(cls, config: BedConfig) -> 'BedSimulation':
        """Session reset and tuned for a configuration."""
        sim = cls(iterations_per_timestep=config.simulation.iterations_per_timestep)
        width, height = config.plate_size_m
        heater_width, heater_height = config.heater_size_m
        sim.reset(width, height, heater_width, heater_height,
                  config.simulation.resolution_xy_m, config.build_layers(),
                  config.environment.ambient_temp_c)
        sim.tune(config.probe_embedded_in_bed)
        return sim

    def reset(self, plate_width: float, plate_height: float,
              heater_width: float, heater_height: float,
              resolution_xy: float, layers: Sequence[Layer],
              ambient_temperature: float):
        """Allocate a new grid at ambient temperature. Call tune() afterwards."""
        self.grid = ThermalGrid(plate_width, plate_height, heater_width, heater_height,
                                resolution_xy, layers, ambient_temperature)
        self.controller = None
        self.stepper = ThermalStepper(self.grid,
                                      iterations_per_timestep=self.iterations_per_timestep,
                                      step_size=self.step_size)
        self.ticks = 0
        self.elapsed_s = 0.0
        self.logger.info(f"Simulation reset: plate {plate_width * 1000:.0f}x{plate_height * 1000:.0f} mm, "
                         f"heater {heater_width * 1000:.0f}x{heater_height * 1000:.0f} mm, "
                         f"{len(self.grid.layers)} layers, ambient {ambient_temperature:.1f}°C")

    def tune(self, probe_embedded_in_bed: bool) -> PIDController:
        """Replace the PID controller with one tuned for the current grid."""
        grid = self._require_grid()
        tuner = ControllerTuner(grid.size_x, grid.size_y, grid.layers)
        self.controller = tuner.create_controller(probe_embedded_in_bed)
        self.stepper.controller = self.controller
        return self.controller

    def iterate(self, target_temp: float, power_density: float, ambient_temp: float,
                convection_top: float, convection_bottom: float,
                probe_location: Sequence[float]) -> float:
        """Advance one tick and return the controlled wattage."""
        self._require_grid()
        wattage = self.stepper.iterate(target_temp, power_density, ambient_temp,
                                       convection_top, convection_bottom, probe_location)
        self.ticks += 1
        self.elapsed_s += self.step_size
        return wattage

    def temperature_at(self, x: float, y: float, z: float) -> float:
        return self._require_grid().temperature_at(x, y, z)

    def temperature_at_grid(self, x: int, y: int, layer: int) -> float:
        return self._require_grid().temperature_at_grid(x, y, layer)

    def heater_power_limit(self, power_density: float) -> float:
        self._require_grid()
        return self.stepper.heater_power_limit(power_density)

    def heat_loss(self, ambient_temp: float, convection_top: float, convection_bottom: float) -> float:
        self._require_grid()
        return self.stepper.heat_loss(ambient_temp, convection_top, convection_bottom)

    def total_energy(self) -> float:
        return self._require_grid().total_energy()

    def surface_readouts(self) -> Dict[str, float]:
        """Surface centre, edge, corner and plate core temperatures."""
        grid = self._require_grid()
        w, h, d = grid.size_x, grid.size_y, grid.stack_height
        offset = SimulationDefaults.READOUT_EDGE_OFFSET_M
        return {
            'surface_center': grid.temperature_at(w / 2, h / 2, d),
            'surface_edge': grid.temperature_at(w / 2, h - offset, d),
            'surface_corner': grid.temperature_at(offset, offset, d),
            'plate_core': grid.temperature_at(w / 2, h / 2, d / 2),
        }

    def _require_grid(self) -> ThermalGrid:
        if self.grid is None:
            raise SimulationNotReadyError("Simulation has not been reset")
        return self.grid


@dataclass
class TickRecord:
    """State after one tick."""
    time_s: float
    control_temp: float
    wattage: float
    min_temp: float
    max_temp: float
    avg_temp: float


@dataclass
class SimulationResults:
    """Complete closed-loop run results."""
    records: List[TickRecord] = field(default_factory=list)

    final_temperature: Optional[np.ndarray] = None  # shaped (layer, y, x)
    final_readouts: Dict[str, float] = field(default_factory=dict)
    probe_temps: Dict[str, float] = field(default_factory=dict)

    steady_state_reached: bool = False
    steady_state_time: float = 0.0

    overheated: bool = False
    overheat_time: Optional[float] = None

    total_simulation_time: float = 0.0
    total_compute_time: float = 0.0
    warnings: List[str] = field(default_factory=list)

    @property
    def time_points(self) -> List[float]:
        return [r.time_s for r in self.records]

    @property
    def control_temp_history(self) -> List[float]:
        return [r.control_temp for r in self.records]

    @property
    def wattage_history(self) -> List[float]:
        return [r.wattage for r in self.records]

    @property
    def final_wattage(self) -> float:
        return self.records[-1].wattage if self.records else 0.0


def _check_steady_state(records: List[TickRecord]) -> bool:
    """Steady once the control temperature stops moving over the last window."""
    window = SimulationDefaults.STEADY_STATE_WINDOW
    if len(records) < window:
        return False
    recent = records[-window:]
    span = recent[-1].time_s - recent[0].time_s
    if span <= 0:
        return False
    rate = abs(recent[-1].control_temp - recent[0].control_temp) / span
    return rate < SimulationDefaults.STEADY_STATE_TOLERANCE


def run_simulation(config: BedConfig, duration_s: Optional[int] = None,
                   progress_callback: Optional[Callable[[float, str], None]] = None) -> SimulationResults:
    """
    Run a closed-loop heat-up for a configuration.

    Args:
        config: Validated bed configuration
        duration_s: Number of one-second ticks, defaults to config.simulation.duration_s
        progress_callback: Optional callback(progress 0..1, message)

    Returns:
        SimulationResults with per-tick history and final state
    """
    config.validate()
    ticks = config.simulation.duration_s if duration_s is None else duration_s

    results = _run_closed_loop(config, ticks, progress_callback)

    # Summary goes out after the timed run so its own timing is included
    get_logger().end_simulation(
        True, f"final control temperature {results.probe_temps[config.control.probe]:.1f}°C")
    return results


@timed_function("bed_simulation_run")
def _run_closed_loop(config: BedConfig, ticks: int,
                     progress_callback: Optional[Callable[[float, str], None]]) -> SimulationResults:
    logger = get_logger()
    env = config.environment
    ctl = config.control
    start_time = time.time()

    results = SimulationResults()

    with log_section("Heated Bed Simulation"):
        sim = BedSimulation.from_config(config)
        probes = config.probe_locations()
        control_location = probes[ctl.probe]
        overheat_limit = config.simulation.overheat_temp_c

        logger.start_simulation(f"bed_{datetime.now():%Y%m%d_%H%M%S}", {
            "ticks": ticks,
            "plate": f"{config.plate.width_mm:.0f}x{config.plate.height_mm:.0f} mm",
            "layers": len(sim.grid.layers),
            "target": f"{ctl.target_temp_c:.1f}°C",
            "probe": ctl.probe,
            "power limit": f"{sim.heater_power_limit(config.heater.power_density_w_cm2):.0f}W",
        })

        for tick in range(ticks):
            wattage = sim.iterate(ctl.target_temp_c, config.heater.power_density_w_cm2,
                                  env.ambient_temp_c, env.convection_top, env.convection_bottom,
                                  control_location)

            T = sim.grid.temperatures
            record = TickRecord(
                time_s=sim.elapsed_s,
                control_temp=sim.temperature_at(*control_location),
                wattage=wattage,
                min_temp=float(np.min(T)),
                max_temp=float(np.max(T)),
                avg_temp=float(np.mean(T)),
            )
            results.records.append(record)

            if not results.overheated:
                hottest_probe = max(sim.temperature_at(*p) for p in probes.values())
                if hottest_probe > overheat_limit:
                    results.overheated = True
                    results.overheat_time = record.time_s
                    message = f"Probe above {overheat_limit:.0f}°C at t={record.time_s:.0f}s"
                    results.warnings.append(message)
                    logger.warning(message)

            if not results.steady_state_reached and _check_steady_state(results.records) \
                    and abs(record.control_temp - ctl.target_temp_c) < 1.0:
                results.steady_state_reached = True
                results.steady_state_time = record.time_s
                logger.info(f"Steady state reached at t={record.time_s:.0f}s")

            if tick % 60 == 0:
                logger.log_tick(tick, record.control_temp, wattage, record.min_temp, record.max_temp)

            if progress_callback:
                progress_callback((tick + 1) / ticks,
                                  f"t={record.time_s:.0f}s, T={record.control_temp:.1f}°C, P={wattage:.0f}W")

        results.final_temperature = sim.grid.temperature_field()
        results.final_readouts = sim.surface_readouts()
        results.probe_temps = {
            PROBE_HEATER: sim.temperature_at(*probes[PROBE_HEATER]),
            PROBE_PLATE: sim.temperature_at(*probes[PROBE_PLATE]),
        }
        results.total_simulation_time = sim.elapsed_s
        results.total_compute_time = time.time() - start_time

    return results


__all__ = [
    'SimulationNotReadyError',
    'ThermalStepper',
    'BedSimulation',
    'TickRecord',
    'SimulationResults',
    'run_simulation',
]
