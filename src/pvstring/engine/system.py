"""System aggregation and the end-to-end design pipeline."""
from __future__ import annotations

import math

from pvstring.core.debug import DebugCollector, NullDebugCollector, ScopedDebugCollector
from pvstring.core.models import (
    InverterGroup,
    InverterModel,
    PanelElectricalData,
    PanelOverrides,
    SystemConfig,
    ValidationError,
)
from pvstring.engine.compliance import DEFAULT_POLICY, CompliancePolicy, evaluate_string, evaluate_system
from pvstring.engine.sizing import size_strings
from pvstring.inverter.catalog import InverterCatalog
from pvstring.inverter.selection import InverterSelection, resolve_inverter
from pvstring.panel.electricals import DEFAULT_ESTIMATOR, EstimatorParams, resolve_electricals


def dc_capacity_kw(total_panels: int, panel_wattage: float) -> float:
    return total_panels * panel_wattage / 1000.0


def unit_count(
    total_strings: int,
    capacity_kw: float,
    inverter: InverterModel,
    dc_ac_oversize: float = 1.0,
) -> int:
    """Units needed to take every string and the array's DC capacity.

    ``dc_ac_oversize`` is the DC:AC loading allowed per unit before another
    unit is added.
    """

    by_strings = math.ceil(total_strings / inverter.string_capacity) if total_strings else 0
    by_power = math.ceil(round(capacity_kw / (inverter.rated_power_kw * dc_ac_oversize), 9))
    return max(by_strings, by_power, 1)


def aggregate_system(
    total_panels: int,
    panel_wattage: float,
    electricals: PanelElectricalData,
    inverter: InverterModel,
    ambient_min: float,
    ambient_max: float,
    policy: CompliancePolicy = DEFAULT_POLICY,
    debug: DebugCollector | None = None,
) -> SystemConfig:
    """Spread the array over as many identical ``inverter`` units as it needs.

    Panels are split evenly (rounded up) across units and every unit is sized
    and checked on its share, so no unit carries more strings than it has
    inputs for.
    """

    debug = debug or NullDebugCollector()
    scoped = ScopedDebugCollector(debug, inverter=inverter.id)

    capacity_kw = dc_capacity_kw(total_panels, panel_wattage)
    whole = size_strings(total_panels, electricals, inverter, ambient_min, ambient_max, debug=scoped)

    # With no valid string length only the power term can count units.
    count = unit_count(whole.total_strings, capacity_kw, inverter, policy.dc_ac_oversize)
    panels_per_unit = -(-total_panels // count)
    unit_sizing = whole if count == 1 else size_strings(
        panels_per_unit, electricals, inverter, ambient_min, ambient_max, debug=scoped
    )
    string_config = evaluate_string(unit_sizing, inverter, policy, debug=scoped)

    ac_capacity_kw = count * inverter.rated_power_kw
    ratio = capacity_kw / ac_capacity_kw
    debug.emit(
        "system.units",
        {
            "unit_count": count,
            "panels_per_unit": panels_per_unit,
            "total_strings": whole.total_strings,
            "dc_capacity_kw": capacity_kw,
            "ac_capacity_kw": ac_capacity_kw,
            "dc_ac_ratio": ratio,
        },
        inverter=inverter.id,
    )

    return SystemConfig(
        inverters=(
            InverterGroup(
                model=inverter,
                count=count,
                string_config=string_config,
                panels_per_unit=panels_per_unit,
            ),
        ),
        dc_ac_ratio=ratio,
        total_panels=total_panels,
        panel_wattage=float(panel_wattage),
        dc_capacity_kw=capacity_kw,
        ac_capacity_kw=ac_capacity_kw,
        diagnostics=evaluate_system(ratio, policy),
    )


def design_system(
    panel_count: int,
    panel_wattage: float,
    ambient_min: float = 0.0,
    ambient_max: float = 45.0,
    selection: InverterSelection | None = None,
    overrides: PanelOverrides | None = None,
    catalog: InverterCatalog | None = None,
    policy: CompliancePolicy = DEFAULT_POLICY,
    estimator: EstimatorParams = DEFAULT_ESTIMATOR,
    debug: DebugCollector | None = None,
) -> SystemConfig | None:
    """Run the full pipeline: electricals, inverter, sizing, units, compliance.

    Returns ``None`` when there are no panels to wire; nothing is computed in
    that case. Every call recomputes from scratch and returns a new result.
    """

    debug = debug or NullDebugCollector()
    selection = selection or InverterSelection()

    if int(panel_count) != panel_count or panel_count < 0:
        raise ValidationError("panel_count must be a non-negative integer")
    if panel_wattage <= 0:
        raise ValidationError("panel_wattage must be positive")
    if ambient_min > ambient_max:
        raise ValidationError("ambient_min must not exceed ambient_max")
    if panel_count == 0:
        return None

    panel_count = int(panel_count)
    electricals = resolve_electricals(panel_wattage, overrides, estimator, debug=debug)
    capacity_kw = dc_capacity_kw(panel_count, panel_wattage)
    inverter = resolve_inverter(selection, capacity_kw, catalog, debug=debug)

    system = aggregate_system(
        panel_count,
        panel_wattage,
        electricals,
        inverter,
        ambient_min,
        ambient_max,
        policy=policy,
        debug=debug,
    )
    debug.emit(
        "system.summary",
        {
            "is_valid": system.is_valid,
            "unit_count": system.unit_count,
            "dc_ac_ratio": system.dc_ac_ratio,
            "warnings": list(system.warnings),
        },
        inverter=inverter.id,
    )
    return system


__all__ = [
    "dc_capacity_kw",
    "unit_count",
    "aggregate_system",
    "design_system",
]
