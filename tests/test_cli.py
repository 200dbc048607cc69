from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from valsim import __version__
from valsim.cli import app, main

runner = CliRunner()

SIM_ARGS = [
    "simulate",
    "--price",
    "100",
    "--eps",
    "5",
    "--mean-growth",
    "0.1",
    "--sigma-growth",
    "0.1",
    "--mean-pe",
    "20",
    "--sigma-pe",
    "4",
    "-n",
    "500",
    "--seed",
    "42",
]


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_health() -> None:
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 0
    assert '"status": "ok"' in result.output


def test_simulate_prints_summary() -> None:
    result = runner.invoke(app, SIM_ARGS)
    assert result.exit_code == 0, result.output
    assert "Monte Carlo Summary" in result.output
    assert "P(beat FD)" in result.output


def test_simulate_writes_csv_into_directory(tmp_path: Path) -> None:
    result = runner.invoke(app, [*SIM_ARGS, "--csv", str(tmp_path)])
    assert result.exit_code == 0, result.output

    lines = (tmp_path / "monte_carlo_simulation.csv").read_text().strip().split("\n")
    assert lines[0].startswith("SimulationIndex,GrowthRate")
    assert len(lines) == 501


def test_simulate_json_out_is_reproducible(tmp_path: Path) -> None:
    first, second = tmp_path / "a.json", tmp_path / "b.json"
    assert runner.invoke(app, [*SIM_ARGS, "--json-out", str(first)]).exit_code == 0
    assert runner.invoke(app, [*SIM_ARGS, "--json-out", str(second)]).exit_code == 0

    payload = json.loads(first.read_text())
    assert payload == json.loads(second.read_text())
    assert payload["inputParams"]["pe0"] == 20.0
    assert payload["summary"]["numSimulations"] == 500


def test_simulate_reads_params_file(tmp_path: Path) -> None:
    params = tmp_path / "params.json"
    params.write_text(
        json.dumps({"price0": 100, "eps0": 5, "meanGrowth": 0.1, "sigmaGrowth": 0.1, "meanPE": 20, "sigmaPE": 4})
    )
    out = tmp_path / "out.json"
    result = runner.invoke(app, ["simulate", "--params", str(params), "-n", "200", "--json-out", str(out)])
    assert result.exit_code == 0, result.output
    assert json.loads(out.read_text())["summary"]["numSimulations"] == 200


def test_simulate_missing_params_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["simulate", "--params", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "File not found" in result.output


@pytest.mark.integration
def test_stock_live() -> None:
    result = runner.invoke(app, ["stock", "RELIANCE.NS", "--json"])
    assert result.exit_code == 0, result.output
    assert '"currentPrice"' in result.output


def _run_main(monkeypatch: pytest.MonkeyPatch, *args: str) -> int:
    monkeypatch.setattr("sys.argv", ["valsim", *args])
    with pytest.raises(SystemExit) as excinfo:
        main()
    return excinfo.value.code


def test_main_exits_zero_on_success(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _run_main(monkeypatch, "health") == 0


def test_main_propagates_missing_params_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    assert _run_main(monkeypatch, "simulate", "--params", str(tmp_path / "missing.json")) == 1


def test_main_rejects_malformed_params_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    params = tmp_path / "params.json"
    params.write_text("{not json")
    assert _run_main(monkeypatch, "simulate", "--params", str(params)) == 1
    assert "is not valid JSON" in " ".join(capsys.readouterr().out.split())


def test_main_reports_usage_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _run_main(monkeypatch, *SIM_ARGS, "--years", "abc") == 2


def test_main_maps_request_errors_to_exit_one(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run_main(monkeypatch, "simulate", "--price", "100", "--eps", "5") == 1
    assert "meanGrowth is required" in " ".join(capsys.readouterr().out.split())


def test_simulate_json_out_with_loss_making_eps(tmp_path: Path) -> None:
    out = tmp_path / "loss.json"
    args = [arg if arg != "5" else "-5" for arg in SIM_ARGS]
    result = runner.invoke(app, [*args, "--json-out", str(out)])
    assert result.exit_code == 0, result.output

    payload = json.loads(out.read_text())
    assert payload["summary"]["cagr"]["p50"] is None
    assert payload["summary"]["probLoss"] == 1.0
