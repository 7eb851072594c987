"""Key normalisation shared by the catalog and design-file loaders.

Design files and catalog extensions may use either snake_case or the
camelCase names used by the web front end (``mpptVoltageMin``,
``tempCoeffVoc``); everything is normalised to the dataclass field names.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping

from pvstring.core.models import ValidationError

# Runs of capitals stay together: ratedPowerKW -> rated_power_kw.
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def normalize_keys(raw: Mapping[str, Any], allowed: Iterable[str], ctx: str) -> Dict[str, Any]:
    """Return ``raw`` with snake_case keys, rejecting anything not in ``allowed``."""

    allowed = set(allowed)
    out: Dict[str, Any] = {}
    unknown = []
    for key, value in raw.items():
        name = snake_case(str(key))
        if name not in allowed:
            unknown.append(str(key))
            continue
        out[name] = value
    if unknown:
        raise ValidationError(f"{ctx}: unknown field(s) {sorted(unknown)}")
    return out


__all__ = ["snake_case", "normalize_keys"]
