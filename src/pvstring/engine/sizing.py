"""String sizing: series length and string counts for one inverter unit.

Cold mornings drive the open-circuit voltage ceiling, hot afternoons drive
the max-power voltage floor. The longest string that respects both wins
because it minimises string count and wiring.
"""
from __future__ import annotations

import math

from pvstring.core.debug import DebugCollector, NullDebugCollector
from pvstring.core.models import InverterModel, PanelElectricalData, StringSizing, ValidationError

STC_TEMP_C = 25.0


def temperature_corrected(coeff_pct_per_c: float, value_stc: float, temp_c: float) -> float:
    """``value_stc * (1 + coeff/100 * (temp_c - 25))`` with coeff in %/°C."""
    return value_stc * (1.0 + (coeff_pct_per_c / 100.0) * (temp_c - STC_TEMP_C))


def voc_cold(electricals: PanelElectricalData, ambient_min: float) -> float:
    return temperature_corrected(electricals.temp_coeff_voc, electricals.voc, ambient_min)


def vmp_hot(electricals: PanelElectricalData, ambient_max: float) -> float:
    # Pmax coefficient stands in for a Vmp coefficient, as most datasheets omit the latter.
    return temperature_corrected(electricals.temp_coeff_pmax, electricals.vmp, ambient_max)


def max_series_panels(max_input_voltage: float, panel_voc_cold: float) -> int:
    """Largest n with ``n * panel_voc_cold <= max_input_voltage``."""
    if panel_voc_cold <= 0:
        return 0
    n = int(math.floor(max_input_voltage / panel_voc_cold))
    # Settle float rounding on the product actually reported downstream.
    while n > 0 and n * panel_voc_cold > max_input_voltage:
        n -= 1
    while (n + 1) * panel_voc_cold <= max_input_voltage:
        n += 1
    return max(n, 0)


def min_series_panels(mppt_voltage_min: float, panel_vmp_hot: float) -> int:
    """Smallest n with ``n * panel_vmp_hot >= mppt_voltage_min``; 0 if unreachable."""
    if panel_vmp_hot <= 0:
        return 0
    n = max(1, int(math.ceil(mppt_voltage_min / panel_vmp_hot)))
    while n > 1 and (n - 1) * panel_vmp_hot >= mppt_voltage_min:
        n -= 1
    while n * panel_vmp_hot < mppt_voltage_min:
        n += 1
    return n


def size_strings(
    total_panels: int,
    electricals: PanelElectricalData,
    inverter: InverterModel,
    ambient_min: float,
    ambient_max: float,
    debug: DebugCollector | None = None,
) -> StringSizing:
    """Size series strings for ``total_panels`` on one ``inverter`` unit.

    Raises :class:`ValidationError` for inputs the sizing cannot run on. An
    array that no series length fits is not an error: the result has
    ``panels_per_string == 0`` and no string quantities.
    """

    debug = debug or NullDebugCollector()

    if int(total_panels) != total_panels or total_panels < 1:
        raise ValidationError("total_panels must be a positive integer")
    if ambient_min > ambient_max:
        raise ValidationError("ambient_min must not exceed ambient_max")
    total_panels = int(total_panels)

    panel_voc_cold = voc_cold(electricals, ambient_min)
    panel_vmp_hot = vmp_hot(electricals, ambient_max)
    debug.emit(
        "sizing.temperature",
        {
            "ambient_min": float(ambient_min),
            "ambient_max": float(ambient_max),
            "voc_cold": panel_voc_cold,
            "vmp_hot": panel_vmp_hot,
        },
        inverter=inverter.id,
    )

    n_max = max_series_panels(inverter.max_input_voltage, panel_voc_cold)
    n_min = min_series_panels(inverter.mppt_voltage_min, panel_vmp_hot)
    sizable = n_max >= 1 and n_min >= 1 and n_max >= n_min
    n = n_max if sizable else 0
    debug.emit(
        "sizing.bounds",
        {"n_max": n_max, "n_min": n_min, "panels_per_string": n},
        inverter=inverter.id,
    )

    if not sizable:
        return StringSizing(
            total_panels=total_panels,
            voc_cold=panel_voc_cold,
            vmp_hot=panel_vmp_hot,
            max_panels_per_string=n_max,
            min_panels_per_string=n_min,
            panels_per_string=0,
            total_strings=0,
            strings_per_mppt=0,
            exceeds_unit_capacity=False,
            last_string_panels=0,
            string_voc_max=None,
            string_vmp_min=None,
            string_vmp_nominal=None,
            string_isc=None,
        )

    total_strings = -(-total_panels // n)
    last_string_panels = total_panels - (total_strings - 1) * n
    required_per_mppt = -(-total_strings // inverter.mppt_count)
    strings_per_mppt = min(required_per_mppt, inverter.strings_per_mppt)
    exceeds = required_per_mppt > inverter.strings_per_mppt

    debug.emit(
        "sizing.strings",
        {
            "total_panels": total_panels,
            "total_strings": total_strings,
            "strings_per_mppt": strings_per_mppt,
            "required_per_mppt": required_per_mppt,
            "exceeds_unit_capacity": exceeds,
            "last_string_panels": last_string_panels,
        },
        inverter=inverter.id,
    )

    return StringSizing(
        total_panels=total_panels,
        voc_cold=panel_voc_cold,
        vmp_hot=panel_vmp_hot,
        max_panels_per_string=n_max,
        min_panels_per_string=n_min,
        panels_per_string=n,
        total_strings=total_strings,
        strings_per_mppt=strings_per_mppt,
        exceeds_unit_capacity=exceeds,
        last_string_panels=last_string_panels,
        string_voc_max=n * panel_voc_cold,
        string_vmp_min=n * panel_vmp_hot,
        string_vmp_nominal=n * electricals.vmp,
        string_isc=electricals.isc,
    )


__all__ = [
    "STC_TEMP_C",
    "temperature_corrected",
    "voc_cold",
    "vmp_hot",
    "max_series_panels",
    "min_series_panels",
    "size_strings",
]
