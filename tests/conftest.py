import pytest

from heatbed_sim.core.constants import BedMaterial, Layer, MaterialsDatabase
from heatbed_sim.solvers.thermal_solver import BedSimulation


# Materials that do not radiate, for energy bookkeeping tests
DARK_ALUMINUM = BedMaterial(name='Non-radiating aluminium', density=2710000, capacity=0.9,
                            conductivity=273.0, emissivity=0.0)
DARK_SILICONE = BedMaterial(name='Non-radiating silicone', density=1100000, capacity=0.9,
                            conductivity=0.3, emissivity=0.0)


class ConstantController:
    """Stands in for a PID controller and always asks for the same power."""

    def __init__(self, output):
        self.output = output
        self.calls = 0

    def update(self, setpoint, measured_value, dt):
        self.calls += 1
        return self.output


@pytest.fixture
def aluminum_layer():
    return Layer(MaterialsDatabase.CAST_ALUMINUM, 0.003)


@pytest.fixture
def dark_stack():
    return [Layer(DARK_SILICONE, 0.0015), Layer(DARK_ALUMINUM, 0.004)]


@pytest.fixture
def small_dark_sim(dark_stack):
    """A 5 x 5 cell, two-layer bed that cannot radiate."""
    sim = BedSimulation()
    sim.reset(0.05, 0.05, 0.03, 0.03, 0.01, dark_stack, 20.0)
    sim.tune(False)
    return sim


@pytest.fixture
def scenario_sim(aluminum_layer):
    """250 x 250 mm single-layer aluminium plate with a 100 x 100 mm heater."""
    sim = BedSimulation()
    sim.reset(0.25, 0.25, 0.1, 0.1, 0.005, [aluminum_layer], 22.0)
    sim.tune(False)
    return sim
