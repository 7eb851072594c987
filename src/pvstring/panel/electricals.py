"""Panel electrical model.

Estimates STC electrical characteristics from a panel's wattage rating so a
design can be sized before datasheet values are known, and layers
user-pinned values on top of the estimate.
"""
from __future__ import annotations

from dataclasses import dataclass

from pvstring.core.debug import DebugCollector, NullDebugCollector
from pvstring.core.models import PanelElectricalData, PanelOverrides, ValidationError


@dataclass(frozen=True)
class WattageBand:
    """Typical crystalline-silicon values for panels rated at or above ``min_watts``."""

    min_watts: float
    voc: float
    temp_coeff_voc: float
    temp_coeff_pmax: float
    temp_coeff_isc: float


@dataclass(frozen=True)
class EstimatorParams:
    vmp_voc_ratio: float = 0.82
    imp_isc_ratio: float = 0.94
    # Highest band first; the last band must start at 0 W.
    bands: tuple[WattageBand, ...] = (
        WattageBand(600.0, 51.5, -0.25, -0.30, 0.048),
        WattageBand(540.0, 49.8, -0.27, -0.34, 0.050),
        WattageBand(450.0, 49.0, -0.28, -0.35, 0.050),
        WattageBand(400.0, 44.5, -0.29, -0.37, 0.050),
        WattageBand(0.0, 40.2, -0.30, -0.38, 0.048),
    )

    def __post_init__(self):
        if not (0 < self.vmp_voc_ratio < 1):
            raise ValidationError("vmp_voc_ratio must be in (0, 1)")
        if not (0 < self.imp_isc_ratio < 1):
            raise ValidationError("imp_isc_ratio must be in (0, 1)")
        if not self.bands or self.bands[-1].min_watts != 0:
            raise ValidationError("bands must end with a 0 W catch-all band")
        thresholds = [band.min_watts for band in self.bands]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValidationError("bands must be ordered from highest to lowest wattage")

    def band_for(self, panel_wattage: float) -> WattageBand:
        for band in self.bands:
            if panel_wattage >= band.min_watts:
                return band
        return self.bands[-1]  # pragma: no cover - guarded by the 0 W band


DEFAULT_ESTIMATOR = EstimatorParams()


def estimate_electricals(panel_wattage: float, params: EstimatorParams = DEFAULT_ESTIMATOR) -> PanelElectricalData:
    """Derive plausible STC electricals from wattage alone.

    Voc and the temperature coefficients come from the wattage band. Vmp is a
    fixed fraction of Voc, Imp is chosen so ``Vmp * Imp`` equals the rating,
    and Isc follows from the Imp/Isc ratio.
    """

    if panel_wattage <= 0:
        raise ValidationError("panel_wattage must be positive")

    band = params.band_for(panel_wattage)
    vmp = band.voc * params.vmp_voc_ratio
    imp = panel_wattage / vmp
    isc = imp / params.imp_isc_ratio
    return PanelElectricalData(
        voc=round(band.voc, 3),
        vmp=round(vmp, 3),
        isc=round(isc, 3),
        imp=round(imp, 3),
        temp_coeff_voc=band.temp_coeff_voc,
        temp_coeff_pmax=band.temp_coeff_pmax,
        temp_coeff_isc=band.temp_coeff_isc,
    )


def resolve_electricals(
    panel_wattage: float,
    overrides: PanelOverrides | None = None,
    params: EstimatorParams = DEFAULT_ESTIMATOR,
    debug: DebugCollector | None = None,
) -> PanelElectricalData:
    """Estimate electricals for ``panel_wattage`` and apply pinned overrides.

    Unpinned fields always follow the current wattage, so changing the
    wattage re-estimates them while pinned values survive.
    """

    debug = debug or NullDebugCollector()
    overrides = overrides or PanelOverrides()

    estimate = estimate_electricals(panel_wattage, params)
    try:
        resolved = overrides.apply(estimate)
    except ValidationError as exc:
        raise ValidationError(
            f"Pinned {', '.join(overrides.pinned)} conflict with the {panel_wattage:g} W estimate "
            f"({exc}); update or unpin them"
        ) from exc

    debug.emit(
        "panel.electricals",
        {
            "panel_wattage": float(panel_wattage),
            "pinned": list(overrides.pinned),
            "voc": resolved.voc,
            "vmp": resolved.vmp,
            "isc": resolved.isc,
            "imp": resolved.imp,
            "temp_coeff_voc": resolved.temp_coeff_voc,
            "temp_coeff_pmax": resolved.temp_coeff_pmax,
        },
    )
    return resolved


__all__ = [
    "WattageBand",
    "EstimatorParams",
    "DEFAULT_ESTIMATOR",
    "estimate_electricals",
    "resolve_electricals",
]
