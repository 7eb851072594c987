"""Inverter resolution: auto-selected, picked from the catalog, or custom."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from pvstring.core.debug import DebugCollector, NullDebugCollector
from pvstring.core.models import InverterModel, ValidationError
from pvstring.inverter.catalog import InverterCatalog, auto_select, coerce_inverter_fields, default_catalog

MODES = ("auto", "select", "custom")

# Conservative values for fields a custom inverter leaves unset.
CUSTOM_DEFAULTS: Dict[str, Any] = {
    "id": "custom",
    "brand": "Custom",
    "model": "Custom Inverter",
    "type": "string",
    "rated_power_kw": 10.0,
    "mppt_count": 2,
    "strings_per_mppt": 2,
    "mppt_voltage_min": 200.0,
    "mppt_voltage_max": 850.0,
    "max_input_voltage": 1000.0,
    "max_input_current": 15.0,
    "max_short_circuit_current": 20.0,
    "output_voltage": 400.0,
    "efficiency": 98.0,
}


@dataclass(frozen=True)
class InverterSelection:
    mode: str = "auto"
    catalog_id: str | None = None
    custom: Mapping[str, Any] = field(default_factory=dict)
    min_load_ratio: float = 1.0

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValidationError(f"Inverter mode must be one of {MODES}, got {self.mode!r}")
        if self.mode == "select" and not self.catalog_id:
            raise ValidationError("catalog_id is required when mode is 'select'")
        if self.min_load_ratio <= 0:
            raise ValidationError("min_load_ratio must be positive")
        object.__setattr__(self, "custom", dict(self.custom))


def resolve_custom(partial: Mapping[str, Any] | None = None) -> InverterModel:
    """Fill unset fields with :data:`CUSTOM_DEFAULTS`.

    Values the caller provides are kept exactly as given, however
    implausible; compliance reports on them later.
    """

    provided = coerce_inverter_fields(partial or {}, "custom inverter")
    merged = dict(CUSTOM_DEFAULTS)
    merged.update(provided)
    return InverterModel(**merged)


def resolve_inverter(
    selection: InverterSelection,
    target_capacity_kw: float,
    catalog: InverterCatalog | None = None,
    debug: DebugCollector | None = None,
) -> InverterModel:
    debug = debug or NullDebugCollector()
    catalog = catalog if catalog is not None else default_catalog()

    if selection.mode == "auto":
        model = auto_select(target_capacity_kw, catalog, min_load_ratio=selection.min_load_ratio)
    elif selection.mode == "select":
        try:
            model = catalog.get(selection.catalog_id)
        except KeyError as exc:
            raise ValidationError(str(exc.args[0])) from exc
    else:
        model = resolve_custom(selection.custom)

    debug.emit(
        "inverter.resolve",
        {
            "mode": selection.mode,
            "target_capacity_kw": float(target_capacity_kw),
            "id": model.id,
            "rated_power_kw": model.rated_power_kw,
        },
        inverter=model.id,
    )
    return model


__all__ = [
    "MODES",
    "CUSTOM_DEFAULTS",
    "InverterSelection",
    "resolve_custom",
    "resolve_inverter",
]
