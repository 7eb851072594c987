"""Inverter catalog, auto-selection and custom inverters."""

from .catalog import InverterCatalog, auto_select, default_catalog, load_catalog
from .selection import InverterSelection, resolve_custom, resolve_inverter

__all__ = [
    "InverterCatalog",
    "InverterSelection",
    "auto_select",
    "default_catalog",
    "load_catalog",
    "resolve_custom",
    "resolve_inverter",
]
