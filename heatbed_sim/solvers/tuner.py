"""
Heated Bed Simulator - Controller Tuner
=======================================
Analytic PID tuning from plate geometry and thermal mass.

The plant is approximated as a first-order lag with dead time:

- Steady-state gain K [°C/W] from the slope of the total surface loss
  (convection + radiation of a flat plate) between two operating points.
- Time constant T1 [s] from the stack's thermal mass and the loss rate at
  the upper operating point.
- Dead time L [s], a fixed estimate scaled up when the probe is embedded
  in the bed instead of sitting in the heater.

The gains then follow the usual Ziegler-Nichols style mapping
``Kp = 0.9 / K * T1 / L`` with integral and derivative times from an
internal-model-control style formula. No relay test is involved.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
"""

from dataclasses import dataclass, asdict
from typing import Dict, Sequence

from scipy.optimize import brentq

from ..core.constants import Layer, PhysicalConstants, TuningConstants
from ..utils.logger import get_logger
from .pid_controller import PIDController


def surface_heat_loss(temp: float, ambient: float, area: float, convection: float,
                      emissivity: float, compensation: float = 1.0) -> float:
    """
    Heat loss rate [W] of a surface by convection and radiation.

    Q = h * A * (T - Ta) + c * e * sigma * A * ((T + 273)^4 - (Ta + 273)^4)
    """
    kelvin = PhysicalConstants.CELSIUS_TO_KELVIN
    q_conv = convection * area * (temp - ambient)
    q_rad = (emissivity * PhysicalConstants.STEFAN_BOLTZMANN * area *
             ((temp + kelvin) ** 4 - (ambient + kelvin) ** 4) * compensation)
    return q_conv + q_rad


def equilibrium_temperature(power: float, area: float, ambient: float, convection: float,
                            emissivity: float, compensation: float = 1.0) -> float:
    """
    Temperature [°C] at which a uniform surface loses exactly ``power`` watts.

    Solved with Brent's method; the bracket is widened until it contains
    the root. Non-positive power settles at ambient.
    """
    if power <= 0:
        return ambient

    def residual(temp: float) -> float:
        return surface_heat_loss(temp, ambient, area, convection, emissivity, compensation) - power

    span = 10.0
    while residual(ambient + span) < 0:
        span *= 2
    return brentq(residual, ambient, ambient + span)


def thermal_mass(plate_width: float, plate_height: float, layers: Sequence[Layer]) -> float:
    """Total heat capacity [J/K] of the layer stack."""
    return sum(
        l.material.density * l.material.capacity * plate_width * plate_height * l.thickness
        for l in layers
    )


@dataclass
class TuningResult:
    """Plant estimate and the derived PID gains."""
    K: float  # steady-state gain [°C/W]
    T1: float  # time constant [s]
    L: float  # dead time [s]
    Ti: float  # integral time [s]
    Td: float  # derivative time [s]
    Kp: float
    Ki: float
    Kd: float
    embedded_factor: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class ControllerTuner:
    """Derives PID gains for a bed of the given geometry and layer stack."""

    def __init__(self, plate_width: float, plate_height: float, layers: Sequence[Layer]):
        self.plate_width = plate_width
        self.plate_height = plate_height
        self.layers = list(layers)
        self.logger = get_logger()

    def compute(self, probe_embedded_in_bed: bool) -> TuningResult:
        """Estimate the plant and compute gains."""
        tc = TuningConstants
        factor = tc.EMBEDDED_PROBE_FACTOR if probe_embedded_in_bed else 1.0

        t_a = tc.AMBIENT_C
        t_0 = tc.OPERATING_POINT_LOW_C
        t_1 = tc.OPERATING_POINT_HIGH_C

        # Top and bottom faces, edges neglected
        area = 2 * self.plate_width * self.plate_height

        q_0 = surface_heat_loss(t_0, t_a, area, tc.CONVECTION, tc.EMISSIVITY)
        q_1 = surface_heat_loss(t_1, t_a, area, tc.CONVECTION, tc.EMISSIVITY)

        K = (t_1 - t_0) / (q_1 - q_0) / factor

        c = thermal_mass(self.plate_width, self.plate_height, self.layers)
        T1 = 1.5 * (2 / 3 * c * (t_1 - t_a)) / q_1

        L = tc.DEAD_TIME_S * factor

        Ti = L * (3.33 * T1 + L) / (T1 + 0.1 * L)
        Td = L * T1 / (3.33 * T1 + L)

        Kp = 0.9 / K * T1 / L
        Ki = Kp / Ti
        Kd = Kp * Td

        result = TuningResult(K=K, T1=T1, L=L, Ti=Ti, Td=Td, Kp=Kp, Ki=Ki, Kd=Kd,
                              embedded_factor=factor)

        self.logger.info(
            f"PID tuned ({'bed' if probe_embedded_in_bed else 'heater'} probe): "
            f"K={K:.4f}°C/W, T1={T1:.1f}s, L={L:.0f}s -> "
            f"Kp={Kp:.3f}, Ki={Ki:.4f}, Kd={Kd:.3f}"
        )
        return result

    def create_controller(self, probe_embedded_in_bed: bool) -> PIDController:
        """A fresh PID controller with tuned gains."""
        result = self.compute(probe_embedded_in_bed)
        return PIDController(result.Kp, result.Ki, result.Kd)


__all__ = [
    'ControllerTuner',
    'TuningResult',
    'surface_heat_loss',
    'equilibrium_temperature',
    'thermal_mass',
]
