"""
Heated Bed Simulator - Physical Constants and Materials Database
================================================================
Physical constants, bed stack material properties and simulation defaults.

Material units follow the bed stack convention used throughout the
simulator: density in g/m³ and specific heat capacity in J/(g·K), so that
density × capacity × volume gives J/K directly.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
License: MIT
"""

from dataclasses import dataclass, replace
from typing import Dict, Tuple


# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

class PhysicalConstants:
    """Physical constants for the heat transfer calculations."""

    # Stefan-Boltzmann constant [W/(m²·K⁴)]
    STEFAN_BOLTZMANN = 5.67e-8

    # Absolute zero offset used by the radiation terms [K]
    CELSIUS_TO_KELVIN = 273.0

    # Centimetres per metre (heater power density is rated per cm²)
    CM_PER_M = 100.0

    # Millimetres per metre
    MM_PER_M = 1000.0


# =============================================================================
# MATERIAL PROPERTIES
# =============================================================================

@dataclass(frozen=True)
class BedMaterial:
    """Thermal properties of one bed stack material."""
    name: str
    density: float  # g/m³
    capacity: float  # J/(g·K)
    conductivity: float  # W/(m·K)
    emissivity: float  # dimensionless (0-1)

    @property
    def volumetric_capacity(self) -> float:
        """Heat capacity per unit volume [J/(m³·K)]."""
        return self.density * self.capacity

    def with_conductivity(self, conductivity: float) -> 'BedMaterial':
        """Return a copy with a different thermal conductivity."""
        return replace(self, conductivity=conductivity)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'density': self.density,
            'capacity': self.capacity,
            'conductivity': self.conductivity,
            'emissivity': self.emissivity,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'BedMaterial':
        return cls(**data)


@dataclass(frozen=True)
class Layer:
    """One horizontal slab of the bed stack, spanning the whole plate."""
    material: BedMaterial
    thickness: float  # m

    def to_dict(self) -> Dict:
        return {'material': self.material.to_dict(), 'thickness': self.thickness}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Layer':
        return cls(material=BedMaterial.from_dict(data['material']), thickness=data['thickness'])


class MaterialsDatabase:
    """Approximate properties of the materials found in a printer bed."""

    HEATER = BedMaterial(
        name='Silicone rubber heater (glass fibre reinforced)',
        density=1100000,
        capacity=0.9,
        conductivity=0.3,
        emissivity=0.9
    )

    BUILD_PLATE = BedMaterial(
        name='Aluminium 5083',
        density=2650000,
        capacity=0.9,
        conductivity=120.0,
        emissivity=0.2
    )

    CAST_ALUMINUM = BedMaterial(
        name='Cast aluminium',
        density=2710000,
        capacity=0.9,
        conductivity=273.0,
        emissivity=0.2
    )

    # No reference data found for magnetic sheets, best estimate
    MAGNETIC_STICKER = BedMaterial(
        name='Magnetic silicone rubber sheet',
        density=1100000,
        capacity=0.9,
        conductivity=0.3,
        emissivity=0.9
    )

    # Two PEI skins (0.125 mm) on a 0.5 mm spring steel core, lumped:
    # density (0.125*0.9*2 + 0.5*7.8) / 0.75 = 5.5 g/cm³
    # capacity (2*0.9*0.125 + 0.42*0.5) / 0.75 = 0.58 J/gK
    # conductivity 0.75 / (0.25/0.20 + 0.5/50) = 0.59 W/mK
    PEI_SPRING_STEEL = BedMaterial(
        name='PEI spring steel sheet',
        density=5500000,
        capacity=0.58,
        conductivity=0.6,
        emissivity=0.9
    )

    @classmethod
    def all(cls) -> Dict[str, BedMaterial]:
        return {
            'HEATER': cls.HEATER,
            'BUILD_PLATE': cls.BUILD_PLATE,
            'CAST_ALUMINUM': cls.CAST_ALUMINUM,
            'MAGNETIC_STICKER': cls.MAGNETIC_STICKER,
            'PEI_SPRING_STEEL': cls.PEI_SPRING_STEEL,
        }

    @classmethod
    def get(cls, key: str) -> BedMaterial:
        """Look up a material by key, case-insensitive."""
        materials = cls.all()
        try:
            return materials[key.upper()]
        except KeyError:
            raise KeyError(f"Unknown material '{key}', expected one of {sorted(materials)}") from None


# =============================================================================
# SIMULATION DEFAULTS
# =============================================================================

class SimulationDefaults:
    """Default simulation parameters."""

    # Outer tick length and sub-step count
    STEP_SIZE_S = 1.0
    ITERATIONS_PER_TIMESTEP = 25

    # X/Y grid resolution [m]
    RESOLUTION_XY_M = 0.005

    # Empirical radiation correction for the hot air film on the surface
    EMISSIVITY_COMPENSATION = 0.85

    # Fixed layer thicknesses of the standard stack [m]
    HEATER_THICKNESS_M = 0.0015
    MAGNETIC_STICKER_THICKNESS_M = 0.0012
    PEI_SHEET_THICKNESS_M = 0.00075

    # Plate probe sits this far in from the back edge [m]
    PLATE_PROBE_EDGE_OFFSET_M = 0.01

    # Surface readouts are taken this far in from the edges [m]
    READOUT_EDGE_OFFSET_M = 0.0175

    OVERHEAT_TEMP_C = 116.0
    DEFAULT_DURATION_S = 900

    # Steady state detection: °C/s rate of change over the last window
    STEADY_STATE_TOLERANCE = 0.01
    STEADY_STATE_WINDOW = 10

    # Allowed range of each user-adjustable parameter (min, max)
    PARAMETER_RANGES: Dict[str, Tuple[float, float]] = {
        'plate.width_mm': (100.0, 400.0),
        'plate.height_mm': (100.0, 400.0),
        'plate.thickness_mm': (3.0, 12.0),
        'plate.conductivity': (50.0, 300.0),
        'heater.width_mm': (80.0, 400.0),
        'heater.height_mm': (80.0, 400.0),
        'heater.conductivity': (0.2, 2.0),
        'heater.power_density_w_cm2': (0.1, 2.0),
        'surface.sticker_conductivity': (0.2, 1.0),
        'surface.pei_conductivity': (0.2, 2.0),
        'environment.convection_top': (0.0, 25.0),
        'environment.convection_bottom': (0.0, 25.0),
        'environment.ambient_temp_c': (0.0, 80.0),
        'control.target_temp_c': (30.0, 115.0),
    }


class TuningConstants:
    """Operating points and assumptions of the analytic PID tuning."""

    AMBIENT_C = 20.0
    OPERATING_POINT_LOW_C = 85.0
    OPERATING_POINT_HIGH_C = 95.0
    CONVECTION = 5.0  # W/(m²·K)
    EMISSIVITY = 0.9

    # Gain penalty when the probe sits in the bed rather than the heater
    EMBEDDED_PROBE_FACTOR = 5.0
    DEAD_TIME_S = 10.0

    # PID filter time constants [s]
    INTEGRAL_DECAY_TAU_S = 500.0
    OUTPUT_SMOOTHING_TAU_S = 10.0
    INTEGRAL_LIMIT = 100.0


__all__ = [
    'PhysicalConstants',
    'BedMaterial',
    'Layer',
    'MaterialsDatabase',
    'SimulationDefaults',
    'TuningConstants',
]
