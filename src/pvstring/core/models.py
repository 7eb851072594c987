"""Domain models for the string sizing engine.

Provides immutable value objects with validation for panel electricals,
inverter specifications, sizing results and whole-system designs.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields, replace
from typing import Optional, Tuple


class ValidationError(ValueError):
    """Raised when model inputs violate constraints."""


@dataclass(frozen=True)
class PanelElectricalData:
    """Per-panel characteristics at STC (25 °C)."""

    voc: float
    vmp: float
    isc: float
    imp: float
    temp_coeff_voc: float
    temp_coeff_pmax: float
    temp_coeff_isc: float = 0.05

    def __post_init__(self):
        for name in ("voc", "vmp", "isc", "imp"):
            if getattr(self, name) <= 0:
                raise ValidationError(f"{name} must be positive")
        if self.vmp >= self.voc:
            raise ValidationError("vmp must be lower than voc")
        if self.imp >= self.isc:
            raise ValidationError("imp must be lower than isc")
        if self.temp_coeff_voc > 0:
            raise ValidationError("temp_coeff_voc should be negative (voltage falls with heat)")
        if self.temp_coeff_pmax > 0:
            raise ValidationError("temp_coeff_pmax should be negative (power falls with heat)")
        if self.temp_coeff_isc < 0:
            raise ValidationError("temp_coeff_isc should be non-negative")


PANEL_FIELDS = tuple(f.name for f in fields(PanelElectricalData))


@dataclass(frozen=True)
class PanelOverrides:
    """User-pinned electrical values layered over wattage-derived defaults.

    ``None`` means the field tracks the estimate for the current wattage.
    """

    voc: Optional[float] = None
    vmp: Optional[float] = None
    isc: Optional[float] = None
    imp: Optional[float] = None
    temp_coeff_voc: Optional[float] = None
    temp_coeff_pmax: Optional[float] = None
    temp_coeff_isc: Optional[float] = None

    @property
    def pinned(self) -> Tuple[str, ...]:
        return tuple(name for name in PANEL_FIELDS if getattr(self, name) is not None)

    def pin(self, **values: float) -> "PanelOverrides":
        unknown = set(values) - set(PANEL_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown panel fields: {sorted(unknown)}")
        return replace(self, **{k: float(v) for k, v in values.items()})

    def unpin(self, *names: str) -> "PanelOverrides":
        unknown = set(names) - set(PANEL_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown panel fields: {sorted(unknown)}")
        return replace(self, **{name: None for name in names})

    def apply(self, base: PanelElectricalData) -> PanelElectricalData:
        pinned = {name: getattr(self, name) for name in self.pinned}
        if not pinned:
            return base
        return replace(base, **pinned)


@dataclass(frozen=True)
class InverterModel:
    id: str
    brand: str
    model: str
    rated_power_kw: float
    mppt_count: int
    strings_per_mppt: int
    mppt_voltage_min: float
    mppt_voltage_max: float
    max_input_voltage: float
    max_input_current: float
    max_short_circuit_current: float
    output_voltage: float = 230.0
    efficiency: float = 97.0
    type: str = "string"

    def __post_init__(self):
        # Only what the sizing arithmetic divides by is enforced here; window
        # ordering and current limits are reported by compliance instead.
        if not self.id:
            raise ValidationError("Inverter id is required")
        if self.rated_power_kw <= 0:
            raise ValidationError("rated_power_kw must be positive")
        if int(self.mppt_count) != self.mppt_count or self.mppt_count < 1:
            raise ValidationError("mppt_count must be a positive integer")
        if int(self.strings_per_mppt) != self.strings_per_mppt or self.strings_per_mppt < 1:
            raise ValidationError("strings_per_mppt must be a positive integer")
        object.__setattr__(self, "mppt_count", int(self.mppt_count))
        object.__setattr__(self, "strings_per_mppt", int(self.strings_per_mppt))
        for name in (
            "mppt_voltage_min",
            "mppt_voltage_max",
            "max_input_voltage",
            "max_input_current",
            "max_short_circuit_current",
        ):
            if getattr(self, name) <= 0:
                raise ValidationError(f"{name} must be positive")

    @property
    def string_capacity(self) -> int:
        """Strings one unit can take across all of its MPPT inputs."""
        return self.mppt_count * self.strings_per_mppt

    @property
    def label(self) -> str:
        return f"{self.brand} {self.model}"


class Severity(str, enum.Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    code: str
    message: str

    def render(self) -> str:
        return f"{self.severity.value}: {self.message}"


@dataclass(frozen=True)
class StringSizing:
    """Raw numeric outcome of string sizing for one inverter unit.

    ``panels_per_string`` is 0 and the string quantities are ``None`` when no
    series length satisfies both voltage limits.
    """

    total_panels: int
    voc_cold: float
    vmp_hot: float
    max_panels_per_string: int
    min_panels_per_string: int
    panels_per_string: int
    total_strings: int
    strings_per_mppt: int
    exceeds_unit_capacity: bool
    last_string_panels: int
    string_voc_max: Optional[float]
    string_vmp_min: Optional[float]
    string_vmp_nominal: Optional[float]
    string_isc: Optional[float]

    @property
    def sizable(self) -> bool:
        return self.panels_per_string >= 1


@dataclass(frozen=True)
class StringConfig:
    recommended_panels_per_string: int
    total_strings: int
    strings_per_mppt: int
    string_voc_max: Optional[float]
    string_vmp_min: Optional[float]
    string_vmp_nominal: Optional[float]
    string_isc: Optional[float]
    voltage_margin_high: Optional[float]
    voltage_margin_mppt: Optional[float]
    current_margin: Optional[float]
    warnings: Tuple[str, ...]
    is_valid: bool
    diagnostics: Tuple[Diagnostic, ...] = ()
    total_panels: int = 0
    max_panels_per_string: int = 0
    min_panels_per_string: int = 0
    last_string_panels: int = 0
    exceeds_unit_capacity: bool = False


@dataclass(frozen=True)
class InverterGroup:
    model: InverterModel
    count: int
    string_config: StringConfig
    panels_per_unit: int

    def __post_init__(self):
        if self.count < 1:
            raise ValidationError("Inverter group count must be at least 1")


@dataclass(frozen=True)
class SystemConfig:
    inverters: Tuple[InverterGroup, ...]
    dc_ac_ratio: float
    total_panels: int
    panel_wattage: float
    dc_capacity_kw: float
    ac_capacity_kw: float
    diagnostics: Tuple[Diagnostic, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.inverters:
            raise ValidationError("SystemConfig must include at least one inverter group")

    @property
    def warnings(self) -> Tuple[str, ...]:
        return tuple(d.render() for d in self.diagnostics)

    @property
    def unit_count(self) -> int:
        return sum(group.count for group in self.inverters)

    @property
    def is_valid(self) -> bool:
        if any(d.severity is Severity.ERROR for d in self.diagnostics):
            return False
        return all(group.string_config.is_valid for group in self.inverters)


__all__ = [
    "ValidationError",
    "PanelElectricalData",
    "PanelOverrides",
    "PANEL_FIELDS",
    "InverterModel",
    "Severity",
    "Diagnostic",
    "StringSizing",
    "StringConfig",
    "InverterGroup",
    "SystemConfig",
]
