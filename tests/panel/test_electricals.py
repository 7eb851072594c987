import pytest

from pvstring.core.debug import ListDebugCollector
from pvstring.core.models import PanelOverrides, ValidationError
from pvstring.panel.electricals import (
    DEFAULT_ESTIMATOR,
    EstimatorParams,
    WattageBand,
    estimate_electricals,
    resolve_electricals,
)


def test_estimate_550w_panel():
    e = estimate_electricals(550)
    assert e.voc == 49.8
    assert e.vmp == pytest.approx(49.8 * 0.82, abs=1e-3)
    assert e.vmp * e.imp == pytest.approx(550, rel=1e-3)
    assert e.imp / e.isc == pytest.approx(0.94, rel=1e-3)
    assert e.temp_coeff_voc == -0.27
    assert e.temp_coeff_pmax == -0.34


@pytest.mark.parametrize(
    "watts,voc",
    [(100, 40.2), (399.9, 40.2), (400, 44.5), (450, 49.0), (539, 49.0), (540, 49.8), (599.9, 49.8), (600, 51.5), (720, 51.5)],
)
def test_wattage_bands(watts, voc):
    assert estimate_electricals(watts).voc == voc


def test_estimate_is_deterministic():
    assert estimate_electricals(415) == estimate_electricals(415)


def test_estimate_rejects_non_positive_wattage():
    with pytest.raises(ValidationError):
        estimate_electricals(0)
    with pytest.raises(ValidationError):
        estimate_electricals(-100)


def test_custom_estimator_params():
    params = EstimatorParams(vmp_voc_ratio=0.8, bands=(WattageBand(0, 50.0, -0.3, -0.4, 0.05),))
    e = estimate_electricals(500, params)
    assert e.voc == 50.0
    assert e.vmp == 40.0
    assert e.imp == 12.5


def test_estimator_params_validation():
    with pytest.raises(ValidationError):
        EstimatorParams(vmp_voc_ratio=1.2)
    with pytest.raises(ValidationError):
        EstimatorParams(bands=(WattageBand(100, 40.0, -0.3, -0.4, 0.05),))
    with pytest.raises(ValidationError):
        EstimatorParams(bands=(WattageBand(0, 40.0, -0.3, -0.4, 0.05), WattageBand(500, 49.0, -0.3, -0.4, 0.05)))


def test_pinned_values_survive_wattage_change():
    overrides = PanelOverrides().pin(voc=52.0)
    at_550 = resolve_electricals(550, overrides)
    at_620 = resolve_electricals(620, overrides)
    assert at_550.voc == at_620.voc == 52.0
    # unpinned fields follow the new wattage
    assert at_550.vmp == estimate_electricals(550).vmp
    assert at_620.vmp == estimate_electricals(620).vmp
    assert at_620.temp_coeff_voc == -0.25


def test_unpin_restores_estimate():
    overrides = PanelOverrides().pin(voc=52.0).unpin("voc")
    assert resolve_electricals(620, overrides) == estimate_electricals(620)


def test_pinned_values_must_stay_consistent():
    with pytest.raises(ValidationError):
        resolve_electricals(550, PanelOverrides(vmp=60.0))


def test_wattage_change_names_conflicting_pin():
    overrides = PanelOverrides(vmp=45.0)
    assert resolve_electricals(550, overrides).vmp == 45.0
    # the 300 W band estimates voc at 40.2 V, below the pinned vmp
    with pytest.raises(ValidationError, match=r"Pinned vmp conflict with the 300 W estimate"):
        resolve_electricals(300, overrides)


def test_resolve_emits_debug_event():
    collector = ListDebugCollector()
    resolve_electricals(550, PanelOverrides(voc=50.0), DEFAULT_ESTIMATOR, debug=collector)
    assert collector.stages() == ["panel.electricals"]
    payload = collector.events[0]["payload"]
    assert payload["pinned"] == ["voc"]
    assert payload["voc"] == 50.0
