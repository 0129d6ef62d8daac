import pytest

from heatbed_sim.core.constants import Layer, MaterialsDatabase
from heatbed_sim.solvers.pid_controller import PIDController
from heatbed_sim.solvers.tuner import (
    ControllerTuner,
    equilibrium_temperature,
    surface_heat_loss,
    thermal_mass,
)


SIGMA = 5.67e-8


@pytest.fixture
def stack():
    return [Layer(MaterialsDatabase.HEATER, 0.0015), Layer(MaterialsDatabase.BUILD_PLATE, 0.008)]


def _expected_gains(width, height, layers, factor):
    area = 2 * width * height
    q0 = 5 * area * 65 + 0.9 * SIGMA * area * ((85 + 273) ** 4 - (20 + 273) ** 4)
    q1 = 5 * area * 75 + 0.9 * SIGMA * area * ((95 + 273) ** 4 - (20 + 273) ** 4)
    K = 10 / (q1 - q0) / factor
    c = sum(l.material.density * l.material.capacity * width * height * l.thickness for l in layers)
    T1 = 1.5 * (2 / 3 * c * 75) / q1
    L = 10 * factor
    Ti = L * (3.33 * T1 + L) / (T1 + 0.1 * L)
    Td = L * T1 / (3.33 * T1 + L)
    Kp = 0.9 / K * T1 / L
    return dict(K=K, T1=T1, L=L, Ti=Ti, Td=Td, Kp=Kp, Ki=Kp / Ti, Kd=Kp * Td)


class TestSurfaceHeatLoss:
    def test_zero_at_ambient(self):
        assert surface_heat_loss(20.0, 20.0, 0.1, 8.0, 0.9) == 0.0

    def test_convection_only(self):
        assert surface_heat_loss(60.0, 20.0, 0.5, 4.0, 0.0) == pytest.approx(80.0)

    def test_radiation_with_compensation(self):
        full = surface_heat_loss(100.0, 20.0, 1.0, 0.0, 1.0)
        assert full == pytest.approx(SIGMA * (373.0 ** 4 - 293.0 ** 4))
        assert surface_heat_loss(100.0, 20.0, 1.0, 0.0, 1.0, 0.85) == pytest.approx(0.85 * full)


class TestEquilibriumTemperature:
    def test_inverts_heat_loss(self):
        temp = equilibrium_temperature(80.0, 0.125, 22.0, 8.0, 0.2, 0.85)
        assert surface_heat_loss(temp, 22.0, 0.125, 8.0, 0.2, 0.85) == pytest.approx(80.0)
        assert temp > 22.0

    def test_widens_bracket_for_large_power(self):
        temp = equilibrium_temperature(5000.0, 0.01, 20.0, 5.0, 0.0)
        assert temp == pytest.approx(20.0 + 5000.0 / 0.05)

    @pytest.mark.parametrize("power", [0.0, -10.0])
    def test_no_power_stays_at_ambient(self, power):
        assert equilibrium_temperature(power, 0.1, 18.0, 8.0, 0.9) == 18.0


def test_thermal_mass(stack):
    expected = (1100000 * 0.9 * 0.0015 + 2650000 * 0.9 * 0.008) * 0.2 * 0.1
    assert thermal_mass(0.2, 0.1, stack) == pytest.approx(expected)


class TestControllerTuner:
    @pytest.mark.parametrize("embedded, factor", [(False, 1.0), (True, 5.0)])
    def test_gains_match_plant_model(self, stack, embedded, factor):
        result = ControllerTuner(0.25, 0.2, stack).compute(embedded)
        expected = _expected_gains(0.25, 0.2, stack, factor)

        assert result.embedded_factor == factor
        for name, value in expected.items():
            assert getattr(result, name) == pytest.approx(value), name

    def test_embedded_probe_lengthens_dead_time_and_lowers_gain(self, stack):
        tuner = ControllerTuner(0.25, 0.25, stack)
        heater = tuner.compute(False)
        bed = tuner.compute(True)

        assert heater.L == 10.0
        assert bed.L == 50.0
        assert bed.K == pytest.approx(heater.K / 5)
        assert bed.T1 == pytest.approx(heater.T1)

    def test_create_controller_uses_tuned_gains(self, stack):
        tuner = ControllerTuner(0.25, 0.25, stack)
        result = tuner.compute(False)
        controller = tuner.create_controller(False)

        assert isinstance(controller, PIDController)
        assert controller.kp == pytest.approx(result.Kp)
        assert controller.ki == pytest.approx(result.Ki)
        assert controller.kd == pytest.approx(result.Kd)
        assert controller.integral == 0.0

    def test_gains_are_positive(self, stack):
        result = ControllerTuner(0.1, 0.1, stack).compute(False)
        assert result.Kp > 0
        assert result.Ki > 0
        assert result.Kd > 0

    def test_to_dict(self, stack):
        data = ControllerTuner(0.1, 0.1, stack).compute(True).to_dict()
        assert set(data) == {'K', 'T1', 'L', 'Ti', 'Td', 'Kp', 'Ki', 'Kd', 'embedded_factor'}
