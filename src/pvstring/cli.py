"""Command line entrypoint for pvstring.

Implements the primary commands:

* ``design``: size strings and inverters for a panel array.
* ``catalog``: list the inverter catalog.
* ``estimate``: show estimated electricals for a panel wattage.
* ``init``: write a design file from options.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer
import yaml

from pvstring.cli_utils import (
    catalog_frame,
    electricals_frame,
    system_frame,
    system_to_dict,
    write_design_request,
)
from pvstring.core.config import ConfigError, DesignRequest, load_design
from pvstring.core.debug import NullDebugCollector, build_debug_collector
from pvstring.core.models import PanelOverrides, SystemConfig, ValidationError
from pvstring.engine.compliance import DEFAULT_POLICY
from pvstring.engine.system import design_system
from pvstring.inverter.catalog import InverterCatalog, default_catalog, load_catalog
from pvstring.inverter.selection import InverterSelection
from pvstring.panel.electricals import estimate_electricals

__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="PV string sizing and inverter matching CLI")


def _exit_with_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


def _load_catalog(path: Optional[Path]) -> InverterCatalog:
    if path is None:
        return default_catalog()
    try:
        return load_catalog(path)
    except (ValueError, yaml.YAMLError) as exc:
        _exit_with_error(f"Could not load catalog {path}: {exc}")


def _request_from_options(
    config: Optional[Path],
    panels: Optional[int],
    wattage: Optional[float],
    ambient_min: Optional[float],
    ambient_max: Optional[float],
    inverter: Optional[str],
    pins: List[str],
) -> DesignRequest:
    """Merge CLI options over the design file (options win)."""

    base = None
    if config is not None:
        try:
            base = load_design(config)
        except ConfigError as exc:
            _exit_with_error(str(exc))

    count = panels if panels is not None else (base.panel_count if base else None)
    watts = wattage if wattage is not None else (base.panel_wattage if base else None)
    if count is None or watts is None:
        _exit_with_error("panel count and wattage are required (--panels/--wattage or --config)")

    selection = base.selection if base else InverterSelection()
    if inverter:
        selection = InverterSelection(mode="auto") if inverter == "auto" else InverterSelection(
            mode="select", catalog_id=inverter
        )

    overrides = base.overrides if base else PanelOverrides()
    if pins:
        values = {}
        for pin in pins:
            name, sep, raw = pin.partition("=")
            if not sep:
                _exit_with_error(f"--pin expects name=value, got {pin!r}")
            try:
                values[name.strip()] = float(raw)
            except ValueError:
                _exit_with_error(f"--pin value for {name} must be numeric")
        try:
            overrides = overrides.pin(**values)
        except ValidationError as exc:
            _exit_with_error(str(exc))

    try:
        return DesignRequest(
            panel_count=count,
            panel_wattage=watts,
            ambient_min=ambient_min if ambient_min is not None else (base.ambient_min if base else 0.0),
            ambient_max=ambient_max if ambient_max is not None else (base.ambient_max if base else 45.0),
            selection=selection,
            overrides=overrides,
            policy=base.policy if base else DEFAULT_POLICY,
            catalog_path=base.catalog_path if base else None,
        )
    except ValidationError as exc:
        _exit_with_error(str(exc))


def _print_summary(system: SystemConfig) -> None:
    group = system.inverters[0]
    sc = group.string_config
    typer.echo(f"Inverter: {group.count} x {group.model.label} ({group.model.rated_power_kw:g} kW)")
    typer.echo(
        f"Array: {system.total_panels} x {system.panel_wattage:g} W = {system.dc_capacity_kw:.2f} kWp, "
        f"DC:AC {system.dc_ac_ratio:.2f}"
    )
    frame = system_frame(system).drop(columns=["warnings"])
    typer.echo(frame.to_string(index=False))
    for warning in sc.warnings + system.warnings:
        typer.echo(f"  {warning}")
    typer.echo("Design is VALID" if system.is_valid else "Design is INVALID")


@app.command()
def design(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="Design YAML/JSON file"),
    panels: Optional[int] = typer.Option(None, help="Number of panels"),
    wattage: Optional[float] = typer.Option(None, help="Panel rating (W)"),
    ambient_min: Optional[float] = typer.Option(None, help="Minimum site ambient temperature (°C)"),
    ambient_max: Optional[float] = typer.Option(None, help="Maximum site ambient temperature (°C)"),
    inverter: Optional[str] = typer.Option(None, help="Catalog inverter id, or 'auto'"),
    pin: List[str] = typer.Option([], "--pin", help="Pin a panel value, e.g. --pin voc=49.5 (repeatable)"),
    catalog: Optional[Path] = typer.Option(None, help="Extra inverter catalog to append (YAML/JSON)"),
    debug: Optional[Path] = typer.Option(None, help="Write debug events (.jsonl, or .json for one array)"),
    format: str = typer.Option("json", "--format", "-f", help="Output format: json or csv"),
    output: Optional[Path] = typer.Option(None, help="Output file path; defaults to design.<format>"),
    strict: bool = typer.Option(False, "--strict", help="Exit with code 2 when the design is invalid"),
):
    """Size strings and inverter units for a panel array."""

    fmt = format.lower()
    if fmt not in {"json", "csv"}:
        _exit_with_error("format must be json or csv")

    request = _request_from_options(config, panels, wattage, ambient_min, ambient_max, inverter, pin)
    inv_catalog = _load_catalog(catalog or request.catalog_path)

    collector = build_debug_collector(debug) if debug else NullDebugCollector()
    try:
        system = design_system(
            request.panel_count,
            request.panel_wattage,
            ambient_min=request.ambient_min,
            ambient_max=request.ambient_max,
            selection=request.selection,
            overrides=request.overrides,
            catalog=inv_catalog,
            policy=request.policy,
            debug=collector,
        )
    except ValidationError as exc:
        _exit_with_error(str(exc))
    finally:
        if hasattr(collector, "close"):
            collector.close()

    if system is None:
        typer.echo("No panels to wire; nothing to design.")
        raise typer.Exit(code=0)

    output_path = output or Path(f"design.{fmt}")
    if fmt == "json":
        output_path.write_text(json.dumps(system_to_dict(system), indent=2))
    else:
        system_frame(system).to_csv(output_path, index=False)

    _print_summary(system)
    typer.echo(f"Wrote design to {output_path}")
    if debug:
        typer.echo(f"Debug events -> {debug}")
    if strict and not system.is_valid:
        raise typer.Exit(code=2)


@app.command("catalog")
def catalog_cmd(
    catalog: Optional[Path] = typer.Option(None, help="Extra inverter catalog to append (YAML/JSON)"),
    min_kw: float = typer.Option(0.0, help="Only list models rated at or above this power (kW)"),
):
    """List the inverter catalog."""

    models = [m for m in _load_catalog(catalog) if m.rated_power_kw >= min_kw]
    if not models:
        typer.echo("No inverters match")
        return
    typer.echo(catalog_frame(models).to_string(index=False))


@app.command()
def estimate(wattage: float = typer.Argument(..., help="Panel rating (W)")):
    """Show estimated STC electricals for a panel wattage."""

    try:
        electricals = estimate_electricals(wattage)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo(electricals_frame(electricals).to_string(index=False))


@app.command()
def init(
    path: Path = typer.Argument(..., help="Design file to write (YAML/JSON)"),
    panels: int = typer.Option(..., help="Number of panels"),
    wattage: float = typer.Option(..., help="Panel rating (W)"),
    ambient_min: float = typer.Option(0.0, help="Minimum site ambient temperature (°C)"),
    ambient_max: float = typer.Option(45.0, help="Maximum site ambient temperature (°C)"),
    inverter: str = typer.Option("auto", help="Catalog inverter id, or 'auto'"),
):
    """Write a design file that ``design --config`` can read back."""

    if inverter != "auto" and inverter not in default_catalog():
        _exit_with_error(f"Unknown inverter id: {inverter}")
    try:
        request = DesignRequest(
            panel_count=panels,
            panel_wattage=wattage,
            ambient_min=ambient_min,
            ambient_max=ambient_max,
            selection=InverterSelection() if inverter == "auto" else InverterSelection(
                mode="select", catalog_id=inverter
            ),
        )
        write_design_request(path, request)
    except (ValidationError, ConfigError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Saved design to {path}")


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def version_callback(
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit"
    ),
):
    """PV string sizing and inverter matching."""


def main() -> None:  # pragma: no cover - thin wrapper for console_script
    app()


__all__ = ["app", "main"]


if __name__ == "__main__":  # pragma: no cover
    main()
