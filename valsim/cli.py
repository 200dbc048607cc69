from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from valsim import __version__
from valsim.api import ValuationService
from valsim.config import config
from valsim.core.base import RuntimeConfig
from valsim.errors import ValsimError
from valsim.models.simulation import SimulationResult
from valsim.models.stock import StockData
from valsim.sims.export import csv_filename, simulation_to_csv
from valsim.utils.logging import setup as setup_logging

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)
console = Console()

_DEFAULT_HTTP_TIMEOUT = config.general.http_timeout
_DEFAULT_LOOKBACK = config.general.lookback_years


def _fmt_pct(value: float) -> str:
    return f"{value:.2%}"


def _build_stock_table(data: StockData) -> Table:
    table = Table(title=f"{data.company_name} ({data.ticker})")
    table.add_column("Metric")
    table.add_column("Value")

    table.add_row("Source", data.source)
    table.add_row("Price", f"{data.current_price:,.2f} {data.currency or ''}".strip())
    table.add_row("Trailing EPS", f"{data.trailing_eps:,.2f}")
    table.add_row("Trailing P/E", f"{data.trailing_pe:.2f}" if data.trailing_pe else "-")
    table.add_row("Forward P/E", f"{data.forward_pe:.2f}" if data.forward_pe else "-")
    table.add_row("EPS history points", str(len(data.eps_history)))
    table.add_row("P/E history points", str(len(data.pe_history)))

    growth = data.growth_distribution
    pe = data.pe_distribution
    table.add_row("Growth (median ± sigma)", f"{_fmt_pct(growth.mean_growth)} ± {_fmt_pct(growth.sigma_growth)}")
    table.add_row("P/E (median ± sigma)", f"{pe.mean_pe:.2f} ± {pe.sigma_pe:.2f}")
    return table


def _build_summary_table(result: SimulationResult) -> Table:
    summary = result.summary
    table = Table(title=f"Monte Carlo Summary ({summary.num_simulations:,} trials, {summary.years}y)")
    table.add_column("Percentile")
    table.add_column("Price", justify="right")
    table.add_column("CAGR", justify="right")

    for label in ("p10", "p25", "p50", "p75", "p90", "mean"):
        table.add_row(
            label.upper(),
            f"{getattr(summary.price, label):,.2f}",
            _fmt_pct(getattr(summary.cagr, label)),
        )
    return table


def _build_scenario_table(result: SimulationResult) -> Table:
    table = Table(title="Scenario Matrix (terminal price)")
    table.add_column("Growth \\ P/E")
    pe_labels = list(dict.fromkeys(s.pe_label for s in result.scenarios))
    for label in pe_labels:
        value = next(s.pe_value for s in result.scenarios if s.pe_label == label)
        table.add_column(f"{label.upper()} ({value:.1f}x)", justify="right")

    for g_label in dict.fromkeys(s.growth_label for s in result.scenarios):
        row = [s for s in result.scenarios if s.growth_label == g_label]
        table.add_row(
            f"{g_label.upper()} ({_fmt_pct(row[0].growth_value)})",
            *[f"{s.price_t:,.2f} ({_fmt_pct(s.cagr)})" for s in row],
        )
    return table


def _print_simulation(result: SimulationResult) -> None:
    summary = result.summary
    console.print(_build_summary_table(result))
    console.print(_build_scenario_table(result))
    console.print(
        f"FD target {summary.fd_target:,.2f} @ {_fmt_pct(summary.fd_rate)}: "
        f"P(beat FD) = {_fmt_pct(summary.prob_beats_fd)}, P(loss) = {_fmt_pct(summary.prob_loss)}"
    )
    console.print(
        f"Variance split: growth {_fmt_pct(result.sensitivity.growth_contribution)}, "
        f"P/E {_fmt_pct(result.sensitivity.pe_contribution)}"
    )


def _print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        console.print(f"[yellow]! {warning}[/yellow]")


def _load_params_file(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: {path} is not valid JSON: {e}[/red]")
        raise typer.Exit(1) from None
    if not isinstance(data, dict):
        console.print(f"[red]Error: {path} must contain a JSON object[/red]")
        raise typer.Exit(1)
    return data


def _make_service(ctx: typer.Context, seed: int | None = None) -> ValuationService:
    runtime_config: RuntimeConfig = ctx.obj or RuntimeConfig()
    if seed is not None:
        runtime_config.seed = seed
    return ValuationService(config=config, runtime_config=runtime_config)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"valsim v{__version__}")
        raise typer.Exit()


@app.callback()
def init(
    ctx: typer.Context,
    _version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging",
    ),
    http_timeout: int = typer.Option(
        _DEFAULT_HTTP_TIMEOUT,
        "--http-timeout",
        help="HTTP timeout in seconds (overrides TOML config for this command)",
    ),
) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level)

    ctx.obj = RuntimeConfig(
        http_timeout=http_timeout if http_timeout != _DEFAULT_HTTP_TIMEOUT else None,
    )


@app.command(help="Fetch price, EPS and P/E history for a ticker and fit distributions")
def stock(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. RELIANCE.NS"),
    lookback_years: int = typer.Option(_DEFAULT_LOOKBACK, "--lookback-years", "-l", help="Years of price history"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON payload"),
) -> None:
    service = _make_service(ctx)

    async def _run() -> StockData:
        try:
            return await service.stock(ticker, lookback_years)
        finally:
            await service.close()

    data = asyncio.run(_run())

    if as_json:
        console.print_json(data.to_json())
        return
    console.print(_build_stock_table(data))
    _print_warnings(data.warnings)


@app.command(help="Run the EPS x P/E Monte Carlo valuation")
def simulate(
    ctx: typer.Context,
    ticker: str | None = typer.Option(None, "--ticker", "-t", help="Fetch inputs for this ticker"),
    params_file: Path | None = typer.Option(None, "--params", "-p", help="JSON file with a simulation payload"),
    price0: float | None = typer.Option(None, "--price", help="Current price"),
    eps0: float | None = typer.Option(None, "--eps", help="Current (trailing) EPS"),
    pe0: float | None = typer.Option(None, "--pe", help="Current P/E (defaults to price / EPS)"),
    years: int | None = typer.Option(None, "--years", "-y", help="Horizon in years"),
    num_simulations: int | None = typer.Option(None, "--num-simulations", "-n", help="Number of trials"),
    fd_rate: float | None = typer.Option(None, "--fd-rate", help="Fixed deposit hurdle rate, e.g. 0.07"),
    mean_growth: float | None = typer.Option(None, "--mean-growth", help="Median EPS growth"),
    sigma_growth: float | None = typer.Option(None, "--sigma-growth", help="EPS growth volatility"),
    mean_pe: float | None = typer.Option(None, "--mean-pe", help="Median terminal P/E"),
    sigma_pe: float | None = typer.Option(None, "--sigma-pe", help="Terminal P/E volatility"),
    growth_min: float | None = typer.Option(None, "--growth-min", help="Lower growth bound"),
    growth_max: float | None = typer.Option(None, "--growth-max", help="Upper growth bound"),
    pe_min: float | None = typer.Option(None, "--pe-min", help="Lower P/E bound"),
    pe_max: float | None = typer.Option(None, "--pe-max", help="Upper P/E bound"),
    seed: int | None = typer.Option(None, "--seed", help="Seed for a reproducible run"),
    csv_out: Path | None = typer.Option(None, "--csv", help="Write every trial to this CSV file (or directory)"),
    json_out: Path | None = typer.Option(None, "--json-out", help="Write the JSON result to this file"),
) -> None:
    service = _make_service(ctx, seed)
    payload = _load_params_file(params_file)

    if ticker:
        async def _fetch() -> StockData:
            try:
                return await service.stock(ticker)
            finally:
                await service.close()

        data = asyncio.run(_fetch())
        _print_warnings(data.warnings)
        payload = {
            "ticker": data.ticker,
            "price0": data.current_price,
            "eps0": data.trailing_eps,
            "pe0": data.trailing_pe,
            "meanGrowth": data.growth_distribution.mean_growth,
            "sigmaGrowth": data.growth_distribution.sigma_growth,
            "meanPE": data.pe_distribution.mean_pe,
            "sigmaPE": data.pe_distribution.sigma_pe,
            **payload,
        }

    overrides = {
        "price0": price0,
        "eps0": eps0,
        "pe0": pe0,
        "years": years,
        "numSimulations": num_simulations,
        "fdRate": fd_rate,
        "meanGrowth": mean_growth,
        "sigmaGrowth": sigma_growth,
        "meanPE": mean_pe,
        "sigmaPE": sigma_pe,
        "growthMin": growth_min,
        "growthMax": growth_max,
        "peMin": pe_min,
        "peMax": pe_max,
    }
    payload.update({k: v for k, v in overrides.items() if v is not None})

    result = service.run(payload)
    _print_simulation(result)

    if csv_out is not None:
        path = csv_out / csv_filename(payload.get("ticker")) if csv_out.is_dir() else csv_out
        path.write_text(simulation_to_csv(result))
        console.print(f"Wrote {len(result.trials):,} trials to {path}")
    if json_out is not None:
        json_out.write_text(result.to_json(indent=2))
        console.print(f"Wrote result to {json_out}")


@app.command(help="Print a health payload")
def health() -> None:
    console.print_json(json.dumps(ValuationService.health()))


def main() -> None:
    # Standalone mode lets click report usage errors and exit codes itself
    try:
        app()
    except ValsimError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
