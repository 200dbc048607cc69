from __future__ import annotations

import math

import numpy as np
import polars as pl

from valsim.models.simulation import SimulationResult

CSV_COLUMNS = (
    "SimulationIndex",
    "GrowthRate",
    "TerminalPE",
    "TerminalEPS",
    "TerminalPrice",
    "CAGR",
    "BeatsFD",
    "IsLoss",
)

# Decimal places written for each numeric CSV column
CSV_PRECISION = {
    "GrowthRate": 6,
    "TerminalPE": 2,
    "TerminalEPS": 4,
    "TerminalPrice": 2,
    "CAGR": 6,
}


def trials_frame(result: SimulationResult) -> pl.DataFrame:
    """Every trial of the run (not the downsampled subset) as a dataframe."""
    trials = result.trials
    return pl.DataFrame(
        {
            "SimulationIndex": np.arange(1, len(trials) + 1),
            "GrowthRate": trials.growth,
            "TerminalPE": trials.pe,
            "TerminalEPS": trials.eps,
            "TerminalPrice": trials.price,
            "CAGR": trials.cagr,
            "BeatsFD": trials.beats_fd,
            "IsLoss": trials.is_loss,
        }
    )


def _fixed(values: pl.Series, decimals: int) -> list[str]:
    return ["NaN" if math.isnan(v) else f"{v:.{decimals}f}" for v in values.to_list()]


def simulation_to_csv(result: SimulationResult) -> str:
    df = trials_frame(result)
    formatted = df.with_columns(
        [pl.Series(name, _fixed(df[name], decimals), dtype=pl.Utf8) for name, decimals in CSV_PRECISION.items()]
    )
    text = formatted.select(CSV_COLUMNS).write_csv(include_header=True, line_terminator="\n", quote_style="never")
    return text.rstrip("\n")


def csv_filename(ticker: str | None = None) -> str:
    return f"monte_carlo_{ticker or 'simulation'}.csv"
