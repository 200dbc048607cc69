from typing import Tuple

from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, TomlConfigSettingsSource


class GeneralSettings(BaseModel):
    http_timeout: int = 30
    lookback_years: int = 8
    stock_cache_ttl_seconds: float = 300.0
    session_ttl_seconds: float = 1500.0


class SimulationSettings(BaseModel):
    years: int = 5
    num_simulations: int = 20_000
    max_simulations: int = 50_000
    fd_rate: float = 0.07
    growth_min: float = -0.20
    growth_max: float = 0.40
    pe_min: float = 5.0
    pe_max: float = 60.0
    sample_target: int = 2000
    seed: int | None = None


class Config(BaseSettings):
    general: GeneralSettings = GeneralSettings()
    simulation: SimulationSettings = SimulationSettings()

    model_config = SettingsConfigDict(
        toml_file="valsim.toml",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        _ = (env_settings, dotenv_settings, file_secret_settings)

        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
        )


config = Config()
