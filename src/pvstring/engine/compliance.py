"""Compliance checks and human-readable diagnostics for sized strings.

Hard limits (absolute DC voltage, short-circuit current, an unsizable
string) produce ``ERROR`` diagnostics and invalidate the design. Thin
margins and other concerns produce ``WARNING``/``INFO`` diagnostics only.
Nothing is clamped or auto-corrected here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from pvstring.core.debug import DebugCollector, NullDebugCollector
from pvstring.core.models import (
    Diagnostic,
    InverterModel,
    Severity,
    StringConfig,
    StringSizing,
    ValidationError,
)


@dataclass(frozen=True)
class CompliancePolicy:
    margin_warn_pct: float = 5.0
    dc_ac_warn_ratio: float = 1.4
    # Allowed DC:AC loading per unit when counting inverters; 1.0 never oversizes.
    dc_ac_oversize: float = 1.0

    def __post_init__(self):
        if self.margin_warn_pct < 0:
            raise ValidationError("margin_warn_pct must be non-negative")
        if self.dc_ac_warn_ratio <= 0:
            raise ValidationError("dc_ac_warn_ratio must be positive")
        if self.dc_ac_oversize <= 0:
            raise ValidationError("dc_ac_oversize must be positive")


DEFAULT_POLICY = CompliancePolicy()


def _pct(numerator: float, denominator: float) -> float:
    return numerator / denominator * 100.0


def voltage_margin_high(string_voc_max: float, inverter: InverterModel) -> float:
    return _pct(inverter.max_input_voltage - string_voc_max, inverter.max_input_voltage)


def voltage_margin_mppt(string_vmp_min: float, inverter: InverterModel) -> float:
    return _pct(string_vmp_min - inverter.mppt_voltage_min, inverter.mppt_voltage_min)


def current_margin(string_isc: float, inverter: InverterModel) -> float:
    return _pct(inverter.max_input_current - string_isc, inverter.max_input_current)


def _inverter_diagnostics(inverter: InverterModel) -> List[Diagnostic]:
    out: List[Diagnostic] = []
    if inverter.mppt_voltage_min >= inverter.mppt_voltage_max:
        out.append(
            Diagnostic(
                Severity.ERROR,
                "inverter.mppt_window",
                f"Inverter MPPT window is empty: min {inverter.mppt_voltage_min:g}V "
                f">= max {inverter.mppt_voltage_max:g}V.",
            )
        )
    if inverter.mppt_voltage_max > inverter.max_input_voltage:
        out.append(
            Diagnostic(
                Severity.WARNING,
                "inverter.mppt_above_max_input",
                f"Inverter MPPT max ({inverter.mppt_voltage_max:g}V) is above its max input voltage "
                f"({inverter.max_input_voltage:g}V); check the datasheet values.",
            )
        )
    if not (0 < inverter.efficiency <= 100):
        out.append(
            Diagnostic(
                Severity.WARNING,
                "inverter.efficiency",
                f"Inverter efficiency ({inverter.efficiency:g}%) is outside 0-100%; check the datasheet values.",
            )
        )
    if inverter.max_input_current > inverter.max_short_circuit_current:
        out.append(
            Diagnostic(
                Severity.INFO,
                "inverter.current_limits",
                f"Inverter max input current ({inverter.max_input_current:g}A) exceeds its max "
                f"short-circuit current ({inverter.max_short_circuit_current:g}A).",
            )
        )
    return out


def _unsizable_diagnostic(sizing: StringSizing, inverter: InverterModel) -> Diagnostic:
    if sizing.max_panels_per_string < 1:
        reason = (
            f"a single panel's cold Voc ({sizing.voc_cold:.1f}V) exceeds the max input voltage "
            f"({inverter.max_input_voltage:g}V)"
        )
    elif sizing.min_panels_per_string < 1:
        reason = f"hot Vmp per panel ({sizing.vmp_hot:.1f}V) is not positive at the maximum ambient"
    else:
        reason = (
            f"at least {sizing.min_panels_per_string} panels are needed to reach MPPT min "
            f"({inverter.mppt_voltage_min:g}V) when hot, but at most {sizing.max_panels_per_string} "
            f"fit under {inverter.max_input_voltage:g}V when cold"
        )
    return Diagnostic(
        Severity.ERROR,
        "string.unsizable",
        f"No valid string length: {reason}. Use a different inverter or a wider MPPT window.",
    )


def _string_diagnostics(sizing: StringSizing, inverter: InverterModel, policy: CompliancePolicy) -> List[Diagnostic]:
    out: List[Diagnostic] = []
    n = sizing.panels_per_string
    v_high = voltage_margin_high(sizing.string_voc_max, inverter)
    v_mppt = voltage_margin_mppt(sizing.string_vmp_min, inverter)
    i_margin = current_margin(sizing.string_isc, inverter)

    if sizing.string_voc_max > inverter.max_input_voltage:
        out.append(
            Diagnostic(
                Severity.ERROR,
                "string.voc_over_limit",
                f"String Voc ({sizing.string_voc_max:.1f}V) exceeds max input voltage "
                f"({inverter.max_input_voltage:g}V)!",
            )
        )
    if sizing.string_vmp_min < inverter.mppt_voltage_min:
        out.append(
            Diagnostic(
                Severity.ERROR,
                "string.vmp_below_mppt",
                f"String Vmp at high temp ({sizing.string_vmp_min:.1f}V) is below MPPT min "
                f"({inverter.mppt_voltage_min:g}V)!",
            )
        )
    if sizing.string_isc > inverter.max_short_circuit_current:
        out.append(
            Diagnostic(
                Severity.ERROR,
                "string.isc_over_limit",
                f"String Isc ({sizing.string_isc:.1f}A) exceeds max short-circuit current "
                f"({inverter.max_short_circuit_current:g}A)!",
            )
        )

    if v_high < policy.margin_warn_pct:
        out.append(
            Diagnostic(
                Severity.WARNING,
                "margin.voltage_high",
                f"Low voltage safety margin ({v_high:.1f}%). Consider reducing panels per string.",
            )
        )
    if v_mppt < policy.margin_warn_pct:
        out.append(
            Diagnostic(
                Severity.WARNING,
                "margin.mppt",
                f"Low MPPT margin ({v_mppt:.1f}%). String may drop out of tracking on hot days.",
            )
        )
    if i_margin < policy.margin_warn_pct:
        out.append(
            Diagnostic(
                Severity.WARNING,
                "margin.current",
                f"Low current margin ({i_margin:.1f}%) against max input current "
                f"({inverter.max_input_current:g}A).",
            )
        )
    if sizing.string_vmp_nominal > inverter.mppt_voltage_max:
        out.append(
            Diagnostic(
                Severity.WARNING,
                "string.vmp_above_mppt",
                f"String Vmp at STC ({sizing.string_vmp_nominal:.1f}V) is above MPPT max "
                f"({inverter.mppt_voltage_max:g}V); the inverter will not track at full power.",
            )
        )

    parallel_isc = sizing.strings_per_mppt * sizing.string_isc
    if sizing.strings_per_mppt > 1 and parallel_isc > inverter.max_short_circuit_current:
        out.append(
            Diagnostic(
                Severity.WARNING,
                "mppt.parallel_current",
                f"{sizing.strings_per_mppt} parallel strings draw {parallel_isc:.1f}A on one MPPT, above "
                f"its {inverter.max_short_circuit_current:g}A short-circuit rating.",
            )
        )

    if sizing.last_string_panels < n:
        short_vmp = sizing.last_string_panels * sizing.vmp_hot
        if short_vmp < inverter.mppt_voltage_min:
            out.append(
                Diagnostic(
                    Severity.WARNING,
                    "string.short_last",
                    f"Last string has only {sizing.last_string_panels} panel(s); its hot Vmp "
                    f"({short_vmp:.1f}V) is below MPPT min ({inverter.mppt_voltage_min:g}V).",
                )
            )
        else:
            out.append(
                Diagnostic(
                    Severity.INFO,
                    "string.uneven",
                    f"Uneven strings: last string has {sizing.last_string_panels} of {n} panels. "
                    "Put it on its own MPPT input.",
                )
            )

    if sizing.exceeds_unit_capacity:
        out.append(
            Diagnostic(
                Severity.INFO,
                "unit.capacity",
                f"{sizing.total_strings} strings exceed one inverter's {inverter.string_capacity} inputs "
                f"({inverter.mppt_count} MPPT x {inverter.strings_per_mppt}); more units are required.",
            )
        )
    return out


def evaluate_string(
    sizing: StringSizing,
    inverter: InverterModel,
    policy: CompliancePolicy = DEFAULT_POLICY,
    debug: DebugCollector | None = None,
) -> StringConfig:
    """Annotate a sizing result with margins, diagnostics and validity."""

    debug = debug or NullDebugCollector()
    diagnostics = _inverter_diagnostics(inverter)

    if sizing.sizable:
        diagnostics.extend(_string_diagnostics(sizing, inverter, policy))
        margins = (
            voltage_margin_high(sizing.string_voc_max, inverter),
            voltage_margin_mppt(sizing.string_vmp_min, inverter),
            current_margin(sizing.string_isc, inverter),
        )
    else:
        diagnostics.append(_unsizable_diagnostic(sizing, inverter))
        margins = (None, None, None)

    diagnostics_t: Tuple[Diagnostic, ...] = tuple(diagnostics)
    is_valid = sizing.sizable and not any(d.severity is Severity.ERROR for d in diagnostics_t)

    debug.emit(
        "compliance.summary",
        {
            "is_valid": is_valid,
            "voltage_margin_high": margins[0],
            "voltage_margin_mppt": margins[1],
            "current_margin": margins[2],
            "codes": [d.code for d in diagnostics_t],
        },
        inverter=inverter.id,
    )

    return StringConfig(
        recommended_panels_per_string=sizing.panels_per_string,
        total_strings=sizing.total_strings,
        strings_per_mppt=sizing.strings_per_mppt,
        string_voc_max=sizing.string_voc_max,
        string_vmp_min=sizing.string_vmp_min,
        string_vmp_nominal=sizing.string_vmp_nominal,
        string_isc=sizing.string_isc,
        voltage_margin_high=margins[0],
        voltage_margin_mppt=margins[1],
        current_margin=margins[2],
        warnings=tuple(d.render() for d in diagnostics_t),
        is_valid=is_valid,
        diagnostics=diagnostics_t,
        total_panels=sizing.total_panels,
        max_panels_per_string=sizing.max_panels_per_string,
        min_panels_per_string=sizing.min_panels_per_string,
        last_string_panels=sizing.last_string_panels,
        exceeds_unit_capacity=sizing.exceeds_unit_capacity,
    )


def evaluate_system(dc_ac_ratio: float, policy: CompliancePolicy = DEFAULT_POLICY) -> Tuple[Diagnostic, ...]:
    if dc_ac_ratio > policy.dc_ac_warn_ratio:
        return (
            Diagnostic(
                Severity.INFO,
                "system.dc_ac_ratio",
                f"DC:AC ratio {dc_ac_ratio:.2f} is above {policy.dc_ac_warn_ratio:g}; expect clipping "
                "at peak irradiance.",
            ),
        )
    return ()


__all__ = [
    "CompliancePolicy",
    "DEFAULT_POLICY",
    "voltage_margin_high",
    "voltage_margin_mppt",
    "current_margin",
    "evaluate_string",
    "evaluate_system",
]
