import json

import pytest

from heatbed_sim.core.config import (
    BedConfig,
    ConfigManager,
    ConfigurationError,
    PROBE_HEATER,
    PROBE_PLATE,
)
from heatbed_sim.core.constants import BedMaterial, Layer, MaterialsDatabase


class TestLayerStack:
    def test_standard_stack(self):
        config = BedConfig()
        config.plate.conductivity = 200.0
        layers = config.build_layers()

        assert [l.material.name for l in layers] == [
            MaterialsDatabase.HEATER.name,
            MaterialsDatabase.BUILD_PLATE.name,
            MaterialsDatabase.MAGNETIC_STICKER.name,
            MaterialsDatabase.PEI_SPRING_STEEL.name,
        ]
        assert [l.thickness for l in layers] == pytest.approx([0.0015, 0.008, 0.0012, 0.00075])
        assert layers[1].material.conductivity == 200.0
        # The database entry itself is untouched
        assert MaterialsDatabase.BUILD_PLATE.conductivity == 120.0

    def test_without_sticker(self):
        config = BedConfig()
        config.surface.has_magnetic_sticker = False
        layers = config.build_layers()
        assert len(layers) == 3
        assert layers[-1].material.name == MaterialsDatabase.PEI_SPRING_STEEL.name

    def test_stack_height(self):
        assert BedConfig().stack_height_m() == pytest.approx(0.01145)


class TestProbes:
    def test_probe_locations(self):
        config = BedConfig()
        probes = config.probe_locations()
        assert probes[PROBE_HEATER] == pytest.approx((0.125, 0.125, 0.0))
        assert probes[PROBE_PLATE] == pytest.approx((0.125, 0.24, 0.01145 / 2))

    def test_control_probe(self):
        config = BedConfig()
        assert not config.probe_embedded_in_bed
        config.control.probe = PROBE_PLATE
        assert config.probe_embedded_in_bed
        assert config.control_probe_location() == config.probe_locations()[PROBE_PLATE]


class TestClampAndValidate:
    def test_defaults_are_valid(self):
        config = BedConfig()
        assert config.clamp() == []
        config.validate()

    def test_clamp_to_ranges(self):
        config = BedConfig()
        config.plate.width_mm = 50.0
        config.control.target_temp_c = 150.0
        config.environment.convection_top = -3.0

        adjustments = config.clamp()

        assert config.plate.width_mm == 100.0
        assert config.control.target_temp_c == 115.0
        assert config.environment.convection_top == 0.0
        assert len(adjustments) >= 3

    def test_clamp_shrinks_heater_to_plate(self):
        config = BedConfig()
        config.plate.height_mm = 150.0
        config.heater.height_mm = 300.0
        config.clamp()
        assert config.heater.height_mm == 150.0
        config.validate()

    @pytest.mark.parametrize("section, attr, value", [
        ('plate', 'width_mm', 0.0),
        ('plate', 'thickness_mm', -1.0),
        ('heater', 'height_mm', 0.0),
        ('simulation', 'resolution_xy_m', 0.0),
        ('simulation', 'iterations_per_timestep', 0),
    ])
    def test_non_positive_rejected(self, section, attr, value):
        config = BedConfig()
        setattr(getattr(config, section), attr, value)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_heater_larger_than_plate_rejected(self):
        config = BedConfig()
        config.heater.width_mm = 260.0
        with pytest.raises(ConfigurationError, match="larger than"):
            config.validate()

    def test_unknown_probe_rejected(self):
        config = BedConfig()
        config.control.probe = "nozzle"
        with pytest.raises(ConfigurationError):
            config.validate()


class TestSerialization:
    def test_from_dict_ignores_unknown_keys(self):
        data = {
            'version': '1.0.0',
            'plate': {'width_mm': 300.0, 'colour': 'black'},
            'control': {'probe': PROBE_PLATE},
            'unknown_section': {'a': 1},
        }
        config = BedConfig.from_dict(data)
        assert config.plate.width_mm == 300.0
        assert config.plate.height_mm == 250.0
        assert config.control.probe == PROBE_PLATE

    def test_dict_round_trip(self):
        config = BedConfig()
        config.heater.power_density_w_cm2 = 1.2
        config.surface.has_magnetic_sticker = False
        restored = BedConfig.from_dict(config.to_dict())
        assert restored.heater.power_density_w_cm2 == 1.2
        assert restored.surface.has_magnetic_sticker is False
        assert restored.created == config.created

    def test_material_round_trip(self):
        layer = Layer(MaterialsDatabase.CAST_ALUMINUM, 0.003)
        assert Layer.from_dict(layer.to_dict()) == layer


class TestConfigManager:
    def test_missing_file_gives_defaults(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "bed.json"))
        assert manager.get_config().plate.width_mm == 250.0

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "bed.json"
        manager = ConfigManager(str(path))
        manager.get_config().control.target_temp_c = 85.0
        assert manager.save()

        saved = json.loads(path.read_text(encoding='utf-8'))
        assert saved['control']['target_temp_c'] == 85.0

        reloaded = ConfigManager(str(path)).get_config()
        assert reloaded.control.target_temp_c == 85.0

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "bed.json"
        path.write_text("{not json", encoding='utf-8')
        assert ConfigManager(str(path)).get_config().control.target_temp_c == 110.0

    def test_import_and_export(self, tmp_path):
        source = ConfigManager()
        source.get_config().plate.thickness_mm = 5.0
        target = tmp_path / "export.json"
        assert source.export(str(target))

        manager = ConfigManager()
        assert manager.import_config(str(target))
        assert manager.config.plate.thickness_mm == 5.0
        assert not manager.import_config(str(tmp_path / "missing.json"))

    def test_save_without_path(self):
        manager = ConfigManager()
        manager.get_config()
        assert not manager.save()


class TestMaterialsDatabase:
    def test_lookup_is_case_insensitive(self):
        assert MaterialsDatabase.get('cast_aluminum') is MaterialsDatabase.CAST_ALUMINUM

    def test_unknown_material(self):
        with pytest.raises(KeyError):
            MaterialsDatabase.get('unobtainium')

    def test_volumetric_capacity(self):
        material = BedMaterial('x', density=2000000, capacity=0.5, conductivity=1.0, emissivity=0.1)
        assert material.volumetric_capacity == 1000000.0
