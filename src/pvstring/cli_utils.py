"""Shared CLI helpers: serialisation of designs and requests."""
from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pandas as pd
import yaml

from pvstring.core.config import ConfigError, DesignRequest, _load_raw
from pvstring.core.models import Diagnostic, InverterModel, PanelElectricalData, StringConfig, SystemConfig


def _diagnostic_dict(diag: Diagnostic) -> dict:
    return {"severity": diag.severity.value, "code": diag.code, "message": diag.message}


def string_config_to_dict(cfg: StringConfig) -> dict:
    data = asdict(cfg)
    data["warnings"] = list(cfg.warnings)
    data["diagnostics"] = [_diagnostic_dict(d) for d in cfg.diagnostics]
    return data


def system_to_dict(system: SystemConfig) -> dict:
    """JSON-ready view of a design; key order is stable across runs."""

    return {
        "is_valid": system.is_valid,
        "total_panels": system.total_panels,
        "panel_wattage": system.panel_wattage,
        "dc_capacity_kw": system.dc_capacity_kw,
        "ac_capacity_kw": system.ac_capacity_kw,
        "dc_ac_ratio": system.dc_ac_ratio,
        "inverters": [
            {
                "model": asdict(group.model),
                "count": group.count,
                "panels_per_unit": group.panels_per_unit,
                "string_config": string_config_to_dict(group.string_config),
            }
            for group in system.inverters
        ],
        "warnings": list(system.warnings),
        "diagnostics": [_diagnostic_dict(d) for d in system.diagnostics],
    }


def system_frame(system: SystemConfig) -> pd.DataFrame:
    """One row per inverter group, flat columns for CSV export."""

    rows = []
    for group in system.inverters:
        sc = group.string_config
        rows.append(
            {
                "inverter_id": group.model.id,
                "inverter": group.model.label,
                "units": group.count,
                "panels_per_unit": group.panels_per_unit,
                "panels_per_string": sc.recommended_panels_per_string,
                "strings_per_unit": sc.total_strings,
                "strings_per_mppt": sc.strings_per_mppt,
                "string_voc_max_v": sc.string_voc_max,
                "string_vmp_min_v": sc.string_vmp_min,
                "string_vmp_nominal_v": sc.string_vmp_nominal,
                "string_isc_a": sc.string_isc,
                "voltage_margin_high_pct": sc.voltage_margin_high,
                "voltage_margin_mppt_pct": sc.voltage_margin_mppt,
                "current_margin_pct": sc.current_margin,
                "dc_ac_ratio": system.dc_ac_ratio,
                "is_valid": sc.is_valid,
                "warnings": " | ".join(sc.warnings + system.warnings),
            }
        )
    return pd.DataFrame(rows)


def catalog_frame(models: Iterable[InverterModel]) -> pd.DataFrame:
    columns = [
        "id",
        "brand",
        "model",
        "rated_power_kw",
        "mppt_count",
        "strings_per_mppt",
        "mppt_voltage_min",
        "mppt_voltage_max",
        "max_input_voltage",
        "max_input_current",
        "max_short_circuit_current",
    ]
    rows: List[Dict[str, Any]] = [{col: getattr(m, col) for col in columns} for m in models]
    return pd.DataFrame(rows, columns=columns)


def electricals_frame(electricals: PanelElectricalData) -> pd.DataFrame:
    return pd.DataFrame([asdict(electricals)])


def design_request_to_dict(request: DesignRequest) -> dict:
    data: Dict[str, Any] = {
        "panels": {"count": request.panel_count, "wattage": request.panel_wattage},
        "ambient": {"min_c": request.ambient_min, "max_c": request.ambient_max},
        "inverter": {"mode": request.selection.mode},
    }
    if request.selection.catalog_id is not None:
        data["inverter"]["catalog_id"] = request.selection.catalog_id
    if request.selection.custom:
        data["inverter"]["custom"] = dict(request.selection.custom)
    if request.selection.min_load_ratio != 1.0:
        data["inverter"]["min_load_ratio"] = request.selection.min_load_ratio
    pins = {name: getattr(request.overrides, name) for name in request.overrides.pinned}
    if pins:
        data["electricals"] = pins
    data["policy"] = asdict(request.policy)
    if request.catalog_path is not None:
        data["catalog"] = str(request.catalog_path)
    return data


def write_design_request(path: Path, request: DesignRequest) -> None:
    """Persist a request while preserving unrelated keys already in the file."""

    base: dict[str, Any] = {}
    if path.exists():
        try:
            raw = _load_raw(path)
            if isinstance(raw, dict):
                base = raw
        except (ConfigError, ValueError, yaml.YAMLError):
            base = {}
    base.update(design_request_to_dict(request))

    if path.suffix.lower() in {".yaml", ".yml", ""}:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(base, sort_keys=False))
    elif path.suffix.lower() == ".json":
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(base, indent=2, sort_keys=False))
    else:
        raise ConfigError(f"Unsupported config extension: {path.suffix}")


__all__ = [
    "string_config_to_dict",
    "system_to_dict",
    "system_frame",
    "catalog_frame",
    "electricals_frame",
    "design_request_to_dict",
    "write_design_request",
]
