"""Configuration loader for design requests.

Supports YAML and JSON files describing the panel array, site temperatures,
inverter choice, pinned panel electricals and compliance policy.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pvstring.core.keys import normalize_keys
from pvstring.core.models import PANEL_FIELDS, PanelOverrides, ValidationError
from pvstring.engine.compliance import DEFAULT_POLICY, CompliancePolicy
from pvstring.inverter.selection import InverterSelection


class ConfigError(ValueError):
    """Raised when configuration cannot be parsed into domain models."""


_DEF_REQUIRED_SECTIONS = {"panels"}
_PANEL_KEYS = {"count", "wattage"}
_AMBIENT_KEYS = {"min_c", "max_c"}
_INVERTER_KEYS = {"mode", "catalog_id", "custom", "min_load_ratio"}
_POLICY_KEYS = {f.name for f in fields(CompliancePolicy)}


@dataclass(frozen=True)
class DesignRequest:
    panel_count: int
    panel_wattage: float
    ambient_min: float = 0.0
    ambient_max: float = 45.0
    selection: InverterSelection = field(default_factory=InverterSelection)
    overrides: PanelOverrides = field(default_factory=PanelOverrides)
    policy: CompliancePolicy = DEFAULT_POLICY
    catalog_path: Optional[Path] = None

    def __post_init__(self):
        if int(self.panel_count) != self.panel_count or self.panel_count < 0:
            raise ValidationError("panel count must be a non-negative integer")
        if self.panel_wattage <= 0:
            raise ValidationError("panel wattage must be positive")
        if self.ambient_min > self.ambient_max:
            raise ValidationError("ambient min must not exceed ambient max")
        object.__setattr__(self, "panel_count", int(self.panel_count))


def _load_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    # No suffix reads as YAML, matching write_design_request.
    if path.suffix.lower() in {".yaml", ".yml", ""}:
        return yaml.safe_load(text) or {}
    if path.suffix.lower() == ".json":
        return json.loads(text)
    raise ConfigError(f"Unsupported config extension: {path.suffix}")


def _section(raw: Dict[str, Any], name: str, allowed: set) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    try:
        return normalize_keys(value, allowed, name)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def _number(section: Dict[str, Any], key: str, ctx: str, default: Any = None) -> Any:
    if section.get(key) is None:
        return default
    try:
        return float(section[key])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{ctx}.{key} must be numeric, got {section[key]!r}") from exc


def _parse_selection(raw: Dict[str, Any]) -> InverterSelection:
    section = _section(raw, "inverter", _INVERTER_KEYS)
    custom = section.get("custom") or {}
    if not isinstance(custom, dict):
        raise ConfigError("inverter.custom must be a mapping")
    try:
        return InverterSelection(
            mode=str(section.get("mode", "auto")).lower(),
            catalog_id=section.get("catalog_id"),
            custom=custom,
            min_load_ratio=_number(section, "min_load_ratio", "inverter", 1.0),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid inverter: {exc}") from exc


def _parse_overrides(raw: Dict[str, Any]) -> PanelOverrides:
    section = _section(raw, "electricals", set(PANEL_FIELDS))
    pins = {key: _number(section, key, "electricals") for key in section if section[key] is not None}
    return PanelOverrides().pin(**pins)


def _parse_policy(raw: Dict[str, Any]) -> CompliancePolicy:
    section = _section(raw, "policy", _POLICY_KEYS)
    values = {key: _number(section, key, "policy") for key in section if section[key] is not None}
    try:
        return CompliancePolicy(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid policy: {exc}") from exc


def parse_design(raw: Dict[str, Any], base_dir: Path | None = None) -> DesignRequest:
    if not isinstance(raw, dict):
        raise ConfigError("Config must be a mapping")
    missing = _DEF_REQUIRED_SECTIONS - raw.keys()
    if missing:
        raise ConfigError(f"Missing config sections: {sorted(missing)}")

    panels = _section(raw, "panels", _PANEL_KEYS)
    if "count" not in panels or "wattage" not in panels:
        raise ConfigError("panels.count and panels.wattage are required")
    count = _number(panels, "count", "panels")
    if count != int(count):
        raise ConfigError("panels.count must be a whole number")
    ambient = _section(raw, "ambient", _AMBIENT_KEYS)

    catalog_path = None
    if raw.get("catalog"):
        catalog_path = Path(str(raw["catalog"]))
        if base_dir is not None and not catalog_path.is_absolute():
            catalog_path = base_dir / catalog_path

    try:
        return DesignRequest(
            panel_count=int(count),
            panel_wattage=_number(panels, "wattage", "panels"),
            ambient_min=_number(ambient, "min_c", "ambient", 0.0),
            ambient_max=_number(ambient, "max_c", "ambient", 45.0),
            selection=_parse_selection(raw),
            overrides=_parse_overrides(raw),
            policy=_parse_policy(raw),
            catalog_path=catalog_path,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid design: {exc}") from exc


def load_design(path: str | Path) -> DesignRequest:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    return parse_design(_load_raw(path), base_dir=path.parent)


__all__ = [
    "ConfigError",
    "DesignRequest",
    "parse_design",
    "load_design",
]
