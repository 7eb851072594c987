"""Static inverter catalog and auto-selection.

The built-in table ships as package data (``data/inverters.yaml``) and is
loaded once per process. Catalogs are immutable; :meth:`InverterCatalog.extend`
returns a new, longer catalog and never replaces an existing entry.
"""
from __future__ import annotations

import functools
import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Tuple

import yaml

from pvstring.core.keys import normalize_keys
from pvstring.core.models import InverterModel, ValidationError

BUILTIN_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "inverters.yaml"

INVERTER_FIELDS = tuple(f.name for f in fields(InverterModel))
_REQUIRED_FIELDS = {
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
}
_INT_FIELDS = {"mppt_count", "strings_per_mppt"}
_STR_FIELDS = {"id", "brand", "model", "type"}


def coerce_inverter_fields(raw: Mapping[str, Any], ctx: str) -> Dict[str, Any]:
    """Normalise keys and cast values for :class:`InverterModel` construction."""

    data = normalize_keys(raw, INVERTER_FIELDS, ctx)
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if key in _STR_FIELDS:
            out[key] = str(value)
            continue
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{ctx}: '{key}' must be numeric, got {value!r}") from exc
        if key in _INT_FIELDS:
            if number != int(number):
                raise ValidationError(f"{ctx}: '{key}' must be a whole number, got {value!r}")
            number = int(number)
        out[key] = number
    return out


def inverter_from_dict(raw: Mapping[str, Any], ctx: str = "inverter") -> InverterModel:
    data = coerce_inverter_fields(raw, ctx)
    missing = _REQUIRED_FIELDS - data.keys()
    if missing:
        raise ValidationError(f"{ctx}: missing field(s) {sorted(missing)}")
    try:
        return InverterModel(**data)
    except ValidationError as exc:
        raise ValidationError(f"{ctx}: {exc}") from exc


class InverterCatalog:
    """Read-only, ordered table of inverter models keyed by id."""

    def __init__(self, models: Iterable[InverterModel] = ()):
        entries = tuple(models)
        seen = set()
        for model in entries:
            if model.id in seen:
                raise ValidationError(f"Duplicate inverter id in catalog: {model.id}")
            seen.add(model.id)
        self._entries: Tuple[InverterModel, ...] = entries
        self._by_id = {model.id: model for model in entries}

    def __iter__(self) -> Iterator[InverterModel]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, inverter_id: object) -> bool:
        return inverter_id in self._by_id

    def get(self, inverter_id: str) -> InverterModel:
        try:
            return self._by_id[inverter_id]
        except KeyError:
            raise KeyError(f"Unknown inverter id: {inverter_id}") from None

    def ids(self) -> Tuple[str, ...]:
        return tuple(model.id for model in self._entries)

    def largest(self) -> InverterModel:
        if not self._entries:
            raise ValidationError("Inverter catalog is empty")
        # max() keeps the first of equal ratings, i.e. catalog order.
        return max(self._entries, key=lambda m: m.rated_power_kw)

    def extend(self, models: Iterable[InverterModel]) -> "InverterCatalog":
        """Return a new catalog with ``models`` appended."""
        return InverterCatalog(self._entries + tuple(models))


def _read_entries(path: Path) -> list:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text) or {}
    elif path.suffix.lower() == ".json":
        raw = json.loads(text)
    else:
        raise ValidationError(f"Unsupported catalog extension: {path.suffix}")
    if isinstance(raw, dict):
        raw = raw.get("inverters", [])
    if not isinstance(raw, list):
        raise ValidationError(f"{path}: expected a list of inverters")
    return raw


def _parse_entries(path: Path) -> Tuple[InverterModel, ...]:
    entries = []
    for idx, raw in enumerate(_read_entries(path)):
        if not isinstance(raw, dict):
            raise ValidationError(f"{path}: inverters[{idx}] must be a mapping")
        entries.append(inverter_from_dict(raw, ctx=f"{path.name}: inverters[{idx}]"))
    return tuple(entries)


@functools.lru_cache(maxsize=1)
def default_catalog() -> InverterCatalog:
    """Built-in catalog, parsed once and shared."""
    return InverterCatalog(_parse_entries(BUILTIN_CATALOG_PATH))


def load_catalog(path: str | Path, base: InverterCatalog | None = None) -> InverterCatalog:
    """Append the models in ``path`` (YAML or JSON) to ``base``."""

    path = Path(path)
    if not path.exists():
        raise ValidationError(f"Catalog file not found: {path}")
    base = base if base is not None else default_catalog()
    return base.extend(_parse_entries(path))


def auto_select(
    target_capacity_kw: float,
    catalog: InverterCatalog | None = None,
    min_load_ratio: float = 1.0,
) -> InverterModel:
    """Pick the smallest model rated for ``target_capacity_kw``.

    A model qualifies when ``rated_power_kw >= target * min_load_ratio``;
    equal ratings resolve to the earlier catalog entry. When nothing
    qualifies the largest model is returned and the system aggregator adds
    units to cover the rest.
    """

    if target_capacity_kw < 0:
        raise ValidationError("target_capacity_kw must be non-negative")
    if min_load_ratio <= 0:
        raise ValidationError("min_load_ratio must be positive")
    catalog = catalog if catalog is not None else default_catalog()
    if not len(catalog):
        raise ValidationError("Inverter catalog is empty")

    threshold = target_capacity_kw * min_load_ratio
    ordered = sorted(catalog, key=lambda m: m.rated_power_kw)
    for model in ordered:
        if model.rated_power_kw >= threshold:
            return model
    return catalog.largest()


__all__ = [
    "InverterCatalog",
    "BUILTIN_CATALOG_PATH",
    "INVERTER_FIELDS",
    "coerce_inverter_fields",
    "inverter_from_dict",
    "default_catalog",
    "load_catalog",
    "auto_select",
]
