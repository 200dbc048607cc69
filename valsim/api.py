"""Request handlers shared by every front end.

This is the only layer that parses raw request payloads: it applies defaults,
enforces the simulation cap and turns bad input into ``BadRequestError``
before anything reaches the engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from valsim.config import Config
from valsim.config import config as base_config
from valsim.core.base import RuntimeConfig, ValuationContext
from valsim.core.cache import TTLCache
from valsim.errors import BadRequestError, InvalidParametersError
from valsim.models.simulation import SimulationParams, SimulationResult
from valsim.models.stock import StockData
from valsim.sims.export import csv_filename, simulation_to_csv
from valsim.sims.monte_carlo import MonteCarloSimulator
from valsim.sims.sampler import NumpyUniformSource, UniformSource
from valsim.sources.stock_data import StockDataFetcher
from valsim.utils.logging import get_logger
from valsim.utils.time import utc_iso

logger = get_logger(__name__)

_NUMERIC_FIELDS = (
    "price0",
    "eps0",
    "pe0",
    "years",
    "numSimulations",
    "fdRate",
    "meanGrowth",
    "sigmaGrowth",
    "meanPE",
    "sigmaPE",
    "growthMin",
    "growthMax",
    "peMin",
    "peMax",
)
_INTEGER_FIELDS = frozenset(("years", "numSimulations"))


def _to_number(name: str, value: Any) -> float | int:
    if isinstance(value, bool):
        raise BadRequestError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"{name} must be a number, got {value!r}") from None
    if name in _INTEGER_FIELDS:
        if not number.is_integer():
            raise BadRequestError(f"{name} must be a whole number, got {value!r}")
        return int(number)
    return number


class ValuationService:
    def __init__(
        self,
        config: Config = base_config,
        runtime_config: RuntimeConfig | None = None,
        fetcher: StockDataFetcher | None = None,
        source: UniformSource | None = None,
    ):
        self.config = config
        self.context = ValuationContext(
            config=config,
            run_timestamp=datetime.now(timezone.utc),
            runtime_config=runtime_config or RuntimeConfig(),
        )
        self._fetcher = fetcher
        self._stock_cache: TTLCache[StockData] = TTLCache(config.general.stock_cache_ttl_seconds)
        seed = self.context.resolved.seed
        self.simulator = MonteCarloSimulator(
            source=source or (NumpyUniformSource(seed) if seed is not None else None),
            sample_target=config.simulation.sample_target,
        )

    @property
    def fetcher(self) -> StockDataFetcher:
        if self._fetcher is None:
            self._fetcher = StockDataFetcher(self.context)
        return self._fetcher

    async def close(self) -> None:
        if self._fetcher is not None:
            await self._fetcher.close()

    async def stock(self, ticker: str, lookback_years: int | None = None) -> StockData:
        ticker = ticker.strip().upper()
        if not ticker:
            raise BadRequestError("ticker is required.")
        lookback = lookback_years or self.context.lookback_years
        key = f"{ticker}_{lookback}"

        cached = self._stock_cache.get(key)
        if cached is not None:
            logger.debug(f"Stock cache hit for {key}")
            return cached

        data = await self.fetcher.fetch(ticker, lookback)
        self._stock_cache.set(key, data)
        return data

    def build_params(self, payload: Mapping[str, Any]) -> SimulationParams:
        """Apply request defaults and validate a camelCase simulation payload."""
        if not payload.get("price0") or not payload.get("eps0"):
            raise BadRequestError("price0 and eps0 are required.")

        defaults = self.config.simulation
        data: dict[str, Any] = {
            "years": defaults.years,
            "numSimulations": self.context.resolved.num_simulations,
            "fdRate": defaults.fd_rate,
            "growthMin": defaults.growth_min,
            "growthMax": defaults.growth_max,
            "peMin": defaults.pe_min,
            "peMax": defaults.pe_max,
        }
        for name in _NUMERIC_FIELDS:
            if payload.get(name) is not None:
                data[name] = _to_number(name, payload[name])

        for name in ("meanGrowth", "sigmaGrowth", "meanPE", "sigmaPE"):
            if name not in data:
                raise BadRequestError(f"{name} is required.")

        cap = self.context.resolved.max_simulations
        if data["numSimulations"] > cap:
            logger.info(f"Capping numSimulations {data['numSimulations']} -> {cap}")
            data["numSimulations"] = cap

        try:
            return SimulationParams.parse(data)
        except InvalidParametersError as e:
            raise BadRequestError(str(e)) from e

    def run(self, payload: Mapping[str, Any]) -> SimulationResult:
        return self.simulator.simulate(self.build_params(payload))

    def simulate(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.run(payload).to_payload()

    def simulate_csv(self, payload: Mapping[str, Any]) -> tuple[str, str]:
        result = self.run(payload)
        ticker = payload.get("ticker")
        return csv_filename(str(ticker) if ticker else None), simulation_to_csv(result)

    @staticmethod
    def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": utc_iso()}
