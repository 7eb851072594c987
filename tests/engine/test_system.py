import json

import pytest

from pvstring.cli_utils import system_to_dict
from pvstring.core.debug import ListDebugCollector
from pvstring.core.models import PanelOverrides, ValidationError
from pvstring.engine.compliance import CompliancePolicy
from pvstring.engine.system import dc_capacity_kw, design_system, unit_count
from pvstring.inverter.selection import InverterSelection, resolve_custom

PINNED = PanelOverrides(voc=49.5, vmp=41.5, isc=14.0, imp=13.25, temp_coeff_voc=-0.27, temp_coeff_pmax=-0.35)


def _custom(**kw):
    return InverterSelection(mode="custom", custom=kw)


def test_dc_capacity():
    assert dc_capacity_kw(20, 550) == pytest.approx(11.0)


def test_unit_count():
    inverter = resolve_custom({"rated_power_kw": 100, "mppt_count": 1, "strings_per_mppt": 2})
    assert unit_count(6, 55.0, inverter) == 3
    assert unit_count(2, 250.0, inverter) == 3
    assert unit_count(2, 250.0, inverter, dc_ac_oversize=1.25) == 2
    assert unit_count(0, 0.0, inverter) == 1
    # exact multiples do not round up
    assert unit_count(1, 300.0, inverter) == 3


def test_single_unit_design():
    system = design_system(20, 550, selection=_custom(rated_power_kw=15), overrides=PINNED)
    assert system.is_valid
    assert system.unit_count == 1
    group = system.inverters[0]
    assert group.panels_per_unit == 20
    sc = group.string_config
    assert sc.recommended_panels_per_string == 18
    assert sc.total_strings == 2
    assert sc.string_voc_max == pytest.approx(951.1425)
    assert any(w.startswith("WARNING: Low voltage safety margin") for w in sc.warnings)
    assert system.dc_capacity_kw == pytest.approx(11.0)
    assert system.ac_capacity_kw == 15
    assert system.dc_ac_ratio == pytest.approx(11 / 15)
    assert system.warnings == ()


def test_600v_inverter_design():
    system = design_system(20, 550, selection=_custom(max_input_voltage=600, mppt_voltage_max=550), overrides=PINNED)
    sc = system.inverters[0].string_config
    assert sc.recommended_panels_per_string == 11
    assert sc.string_voc_max <= 600


def test_no_panels_returns_none():
    assert design_system(0, 550) is None


def test_invalid_inputs_raise():
    with pytest.raises(ValidationError):
        design_system(-1, 550)
    with pytest.raises(ValidationError):
        design_system(10, 0)
    with pytest.raises(ValidationError):
        design_system(10, 550, ambient_min=30, ambient_max=10)
    with pytest.raises(ValidationError):
        design_system(10, 550, selection=InverterSelection(mode="select", catalog_id="nope"))


def test_strings_drive_unit_count():
    selection = _custom(rated_power_kw=100, mppt_count=1, strings_per_mppt=2)
    system = design_system(100, 550, selection=selection, overrides=PINNED)
    group = system.inverters[0]
    assert group.count == 3
    assert group.panels_per_unit == 34
    sc = group.string_config
    assert sc.total_strings == 2
    assert sc.total_strings <= group.model.string_capacity
    assert not sc.exceeds_unit_capacity
    assert system.ac_capacity_kw == 300
    assert system.dc_ac_ratio == pytest.approx(55 / 300)


def test_power_drives_unit_count():
    selection = InverterSelection(mode="select", catalog_id="growatt-10kw")
    system = design_system(100, 550, selection=selection, overrides=PINNED)
    group = system.inverters[0]
    assert group.count == 6
    assert group.panels_per_unit == 17
    assert group.string_config.total_strings == 1
    assert system.dc_ac_ratio == pytest.approx(55 / 60)


def test_auto_selection_uses_estimated_electricals():
    system = design_system(20, 550)
    group = system.inverters[0]
    assert group.model.id == "growatt-15kw"
    assert group.count == 1
    assert group.string_config.recommended_panels_per_string == 18
    assert system.is_valid


def test_dc_ac_oversize_allows_loading_above_one():
    policy = CompliancePolicy(dc_ac_oversize=1.5)
    system = design_system(20, 550, selection=_custom(rated_power_kw=7.5), overrides=PINNED, policy=policy)
    assert system.unit_count == 1
    assert system.dc_ac_ratio == pytest.approx(11 / 7.5)
    assert system.warnings == ("INFO: DC:AC ratio 1.47 is above 1.4; expect clipping at peak irradiance.",)
    assert system.is_valid


def test_unsizable_design_is_invalid():
    selection = _custom(max_input_voltage=300, mppt_voltage_max=280, rated_power_kw=15)
    system = design_system(20, 550, selection=selection, overrides=PINNED)
    group = system.inverters[0]
    assert group.count == 1
    assert group.panels_per_unit == 20
    assert group.string_config.recommended_panels_per_string == 0
    assert not system.is_valid


def test_unsizable_design_still_counts_units_by_power():
    selection = _custom(max_input_voltage=300, mppt_voltage_max=280, rated_power_kw=10)
    system = design_system(100, 550, selection=selection, overrides=PINNED)
    group = system.inverters[0]
    assert group.count == 6
    assert group.panels_per_unit == 17
    assert group.string_config.recommended_panels_per_string == 0
    assert system.dc_ac_ratio == pytest.approx(55 / 60)
    assert system.warnings == ()
    assert not system.is_valid


def test_design_debug_stages():
    collector = ListDebugCollector()
    design_system(20, 550, selection=_custom(rated_power_kw=15), overrides=PINNED, debug=collector)
    assert collector.stages() == [
        "panel.electricals",
        "inverter.resolve",
        "sizing.temperature",
        "sizing.bounds",
        "sizing.strings",
        "compliance.summary",
        "system.units",
        "system.summary",
    ]
    assert collector.events[-1]["payload"]["unit_count"] == 1


def test_design_is_deterministic():
    first = design_system(137, 455, ambient_min=-12, ambient_max=38)
    second = design_system(137, 455, ambient_min=-12, ambient_max=38)
    assert first == second
    assert json.dumps(system_to_dict(first)) == json.dumps(system_to_dict(second))
