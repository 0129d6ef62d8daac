"""
Heated Bed Simulator - PID Controller
=====================================
PID regulator with a decaying integral and a smoothed output.

The integral leaks with time constant ``integral_tau`` instead of growing
without bound and is additionally clamped to ``±integral_limit``. The raw
P + I + D sum is passed through a first-order low-pass with time constant
``smooth_tau`` and the filtered value is what the heater receives. Both
filters trade responsiveness for stability when the probe lags the heater.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
"""

import math

from ..core.constants import TuningConstants


class PIDController:
    """PID regulator producing a heater power command [W]."""

    def __init__(self, kp: float, ki: float, kd: float,
                 integral_tau: float = TuningConstants.INTEGRAL_DECAY_TAU_S,
                 smooth_tau: float = TuningConstants.OUTPUT_SMOOTHING_TAU_S,
                 integral_limit: float = TuningConstants.INTEGRAL_LIMIT):
        self.kp = kp
        self.ki = ki
        self.kd = kd

        self.integral_tau = integral_tau
        self.smooth_tau = smooth_tau
        self.integral_limit = integral_limit

        self.integral = 0.0
        self.previous_error = 0.0
        self.smoothed_value = 0.0

    def update(self, setpoint: float, measured_value: float, dt: float) -> float:
        """
        Advance the regulator by dt seconds.

        Args:
            setpoint: Desired temperature
            measured_value: Current probe temperature
            dt: Time since the last update in seconds

        Returns:
            The smoothed controller output
        """
        error = setpoint - measured_value

        decay = math.exp(-dt / self.integral_tau)
        self.integral = decay * self.integral + error * dt
        self.integral = min(max(self.integral, -self.integral_limit), self.integral_limit)

        derivative = (error - self.previous_error) / dt if dt > 0 else 0.0
        self.previous_error = error

        raw = self.kp * error + self.ki * self.integral + self.kd * derivative

        blend = math.exp(-dt / self.smooth_tau)
        self.smoothed_value = blend * self.smoothed_value + (1 - blend) * raw

        return self.smoothed_value

    def reset(self):
        """Clear the integral, derivative history and output filter."""
        self.integral = 0.0
        self.previous_error = 0.0
        self.smoothed_value = 0.0

    def __repr__(self) -> str:
        return f"PIDController(kp={self.kp:.4g}, ki={self.ki:.4g}, kd={self.kd:.4g})"


__all__ = ['PIDController']
