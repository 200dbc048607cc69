from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from valsim.config import Config
from valsim.core.cache import SessionCache


@dataclass
class ResolvedConfig:
    http_timeout: int
    lookback_years: int
    num_simulations: int
    max_simulations: int
    seed: int | None


@dataclass
class RuntimeConfig:
    http_timeout: int | None = None
    lookback_years: int | None = None
    num_simulations: int | None = None
    max_simulations: int | None = None
    seed: int | None = None

    def resolve(self, base: Config) -> ResolvedConfig:
        return ResolvedConfig(
            http_timeout=self.http_timeout if self.http_timeout is not None else base.general.http_timeout,
            lookback_years=self.lookback_years if self.lookback_years is not None else base.general.lookback_years,
            num_simulations=(
                self.num_simulations if self.num_simulations is not None else base.simulation.num_simulations
            ),
            max_simulations=(
                self.max_simulations if self.max_simulations is not None else base.simulation.max_simulations
            ),
            seed=self.seed if self.seed is not None else base.simulation.seed,
        )


@dataclass
class ValuationContext:
    config: Config
    run_timestamp: datetime
    runtime_config: RuntimeConfig = field(default_factory=RuntimeConfig)
    session_cache: SessionCache = field(init=False)
    _resolved: ResolvedConfig | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.session_cache = SessionCache(ttl_seconds=self.config.general.session_ttl_seconds)

    @property
    def resolved(self) -> ResolvedConfig:
        if self._resolved is None:
            self._resolved = self.runtime_config.resolve(self.config)
        return self._resolved

    @property
    def http_timeout(self) -> int:
        return self.resolved.http_timeout

    @property
    def lookback_years(self) -> int:
        return self.resolved.lookback_years
