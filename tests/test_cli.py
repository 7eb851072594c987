from pathlib import Path
import json

import pandas as pd
from typer.testing import CliRunner

from pvstring import cli
from pvstring.core.config import load_design


runner = CliRunner()


def _write_config(tmp_path: Path, extra: str = "") -> Path:
    cfg = tmp_path / "design.yaml"
    cfg.write_text(
        "panels:\n"
        "  count: 20\n"
        "  wattage: 550\n"
        "ambient:\n"
        "  min_c: 0\n"
        "  max_c: 45\n" + extra
    )
    return cfg


def test_help_exits_zero():
    res = runner.invoke(cli.app, ["--help"])
    assert res.exit_code == 0
    for command in ("design", "catalog", "estimate", "init"):
        assert command in res.stdout


def test_version():
    res = runner.invoke(cli.app, ["--version"])
    assert res.exit_code == 0
    assert cli.__version__ in res.stdout


def test_design_from_options_writes_json(tmp_path):
    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--panels", "20", "--wattage", "550", "--output", str(out)])
    assert res.exit_code == 0, res.output
    assert "Design is VALID" in res.stdout
    assert "Growatt MOD 15KTL3-X" in res.stdout
    data = json.loads(out.read_text())
    assert data["is_valid"] is True
    assert data["total_panels"] == 20
    group = data["inverters"][0]
    assert group["model"]["id"] == "growatt-15kw"
    assert group["count"] == 1
    assert group["string_config"]["recommended_panels_per_string"] == 18
    assert group["string_config"]["diagnostics"][0]["severity"] in {"ERROR", "WARNING", "INFO"}


def test_design_csv(tmp_path):
    out = tmp_path / "out.csv"
    res = runner.invoke(
        cli.app,
        ["design", "--panels", "100", "--wattage", "550", "--inverter", "growatt-10kw", "-f", "csv", "--output", str(out)],
    )
    assert res.exit_code == 0, res.output
    df = pd.read_csv(out)
    assert list(df["inverter_id"]) == ["growatt-10kw"]
    assert int(df["units"].iloc[0]) == 6
    assert {"panels_per_string", "strings_per_mppt", "voltage_margin_high_pct", "warnings"} <= set(df.columns)


def test_design_from_config_with_overrides(tmp_path):
    cfg = _write_config(tmp_path, "inverter:\n  mode: select\n  catalog_id: huawei-10kw\n")
    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--config", str(cfg), "--panels", "10", "--output", str(out)])
    assert res.exit_code == 0, res.output
    data = json.loads(out.read_text())
    assert data["total_panels"] == 10
    assert data["inverters"][0]["model"]["id"] == "huawei-10kw"


def test_design_strict_exit_code(tmp_path):
    cfg = _write_config(
        tmp_path,
        "inverter:\n  mode: custom\n  custom:\n    maxInputVoltage: 300\n    mpptVoltageMax: 280\n",
    )
    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--config", str(cfg), "--output", str(out)])
    assert res.exit_code == 0, res.output
    assert "Design is INVALID" in res.stdout
    assert "ERROR: No valid string length" in res.stdout
    assert json.loads(out.read_text())["is_valid"] is False

    res = runner.invoke(cli.app, ["design", "--config", str(cfg), "--output", str(out), "--strict"])
    assert res.exit_code == 2


def test_design_no_panels(tmp_path):
    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--panels", "0", "--wattage", "550", "--output", str(out)])
    assert res.exit_code == 0
    assert "No panels to wire" in res.stdout
    assert not out.exists()


def test_design_pin_and_debug(tmp_path):
    out = tmp_path / "out.json"
    debug = tmp_path / "debug.jsonl"
    res = runner.invoke(
        cli.app,
        [
            "design",
            "--panels",
            "20",
            "--wattage",
            "550",
            "--pin",
            "voc=49.5",
            "--pin",
            "temp_coeff_voc=-0.27",
            "--debug",
            str(debug),
            "--output",
            str(out),
        ],
    )
    assert res.exit_code == 0, res.output
    events = [json.loads(line) for line in debug.read_text().splitlines()]
    assert events[0]["stage"] == "panel.electricals"
    assert events[0]["payload"]["voc"] == 49.5
    assert events[0]["payload"]["pinned"] == ["voc", "temp_coeff_voc"]
    assert events[-1]["stage"] == "system.summary"


def test_design_errors(tmp_path):
    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--panels", "20", "--wattage", "550", "--inverter", "nope", "--output", str(out)])
    assert res.exit_code == 1
    assert "Unknown inverter id" in res.output

    res = runner.invoke(cli.app, ["design", "--panels", "20", "--wattage", "550", "--pin", "voc", "--output", str(out)])
    assert res.exit_code == 1

    res = runner.invoke(cli.app, ["design", "--panels", "20", "--wattage", "550", "--pin", "vmpp=40", "--output", str(out)])
    assert res.exit_code == 1

    res = runner.invoke(cli.app, ["design", "--panels", "20", "--wattage", "300", "--pin", "vmp=45", "--output", str(out)])
    assert res.exit_code == 1
    assert "Pinned vmp conflict" in res.output

    res = runner.invoke(cli.app, ["design", "--panels", "20"])
    assert res.exit_code == 1
    assert "required" in res.output

    res = runner.invoke(cli.app, ["design", "--panels", "20", "--wattage", "550", "-f", "xml"])
    assert res.exit_code == 1


def test_catalog_listing():
    res = runner.invoke(cli.app, ["catalog"])
    assert res.exit_code == 0
    assert "growatt-10kw" in res.stdout
    assert "abb-5kw" in res.stdout

    res = runner.invoke(cli.app, ["catalog", "--min-kw", "50"])
    assert "growatt-50kw" in res.stdout
    assert "growatt-10kw" not in res.stdout

    res = runner.invoke(cli.app, ["catalog", "--min-kw", "500"])
    assert res.exit_code == 0
    assert "No inverters match" in res.stdout


def test_catalog_with_extension(tmp_path):
    extra = tmp_path / "extra.yaml"
    extra.write_text(
        "- {id: sma-6kw, brand: SMA, model: STP 6.0, ratedPowerKw: 6, mpptCount: 2, stringsPerMppt: 1,"
        " mpptVoltageMin: 140, mpptVoltageMax: 800, maxInputVoltage: 1000, maxInputCurrent: 12,"
        " maxShortCircuitCurrent: 18}\n"
    )
    res = runner.invoke(cli.app, ["catalog", "--catalog", str(extra)])
    assert res.exit_code == 0, res.output
    assert "sma-6kw" in res.stdout

    bad = tmp_path / "bad.yaml"
    bad.write_text("- {id: broken}\n")
    res = runner.invoke(cli.app, ["catalog", "--catalog", str(bad)])
    assert res.exit_code == 1


def test_estimate():
    res = runner.invoke(cli.app, ["estimate", "550"])
    assert res.exit_code == 0
    assert "49.8" in res.stdout
    assert "temp_coeff_voc" in res.stdout

    res = runner.invoke(cli.app, ["estimate", "0"])
    assert res.exit_code == 1


def test_init_round_trip(tmp_path):
    cfg = tmp_path / "site" / "design.yaml"
    res = runner.invoke(
        cli.app,
        ["init", str(cfg), "--panels", "24", "--wattage", "450", "--ambient-min", "-10", "--inverter", "sungrow-10kw"],
    )
    assert res.exit_code == 0, res.output
    assert "Saved design" in res.stdout
    request = load_design(cfg)
    assert request.panel_count == 24
    assert request.ambient_min == -10.0
    assert request.selection.catalog_id == "sungrow-10kw"

    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--config", str(cfg), "--output", str(out)])
    assert res.exit_code == 0, res.output
    assert json.loads(out.read_text())["inverters"][0]["model"]["id"] == "sungrow-10kw"


def test_init_without_suffix_round_trips(tmp_path):
    cfg = tmp_path / "design"
    res = runner.invoke(cli.app, ["init", str(cfg), "--panels", "20", "--wattage", "550"])
    assert res.exit_code == 0, res.output

    out = tmp_path / "out.json"
    res = runner.invoke(cli.app, ["design", "--config", str(cfg), "--output", str(out)])
    assert res.exit_code == 0, res.output
    assert json.loads(out.read_text())["total_panels"] == 20


def test_init_preserves_unrelated_keys(tmp_path):
    cfg = tmp_path / "design.yaml"
    cfg.write_text("notes: east roof\npanels:\n  count: 1\n  wattage: 100\n")
    res = runner.invoke(cli.app, ["init", str(cfg), "--panels", "12", "--wattage", "400"])
    assert res.exit_code == 0, res.output
    text = cfg.read_text()
    assert "notes: east roof" in text
    assert load_design(cfg).panel_count == 12


def test_init_rejects_unknown_inverter(tmp_path):
    res = runner.invoke(cli.app, ["init", str(tmp_path / "d.yaml"), "--panels", "1", "--wattage", "400", "--inverter", "nope"])
    assert res.exit_code == 1
