"""
Configuration management for BTC Levels system.

Pydantic settings for the detection policy, the historical data source,
the HTTP surface and logging. Every tuning constant of the pipeline lives
in ``LevelPolicy`` so it can be audited and overridden in one place.
"""

from typing import Optional, Union, Literal
from pathlib import Path
from enum import Enum

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic.types import PositiveInt, PositiveFloat, confloat
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DetectionMode(str, Enum):
    """Which price series the extrema detector scans"""
    HIGH_LOW = "high_low"  # highs for resistances, lows for supports
    CLOSE = "close"  # closes for both sides


class LevelPolicy(BaseSettings):
    """
    Tuning constants of the level-detection pipeline
    """

    # === Extrema detection ===
    window_size: PositiveInt = Field(
        default=20,
        description="Half-width of the local extremum window in bars"
    )

    min_distance: PositiveInt = Field(
        default=30,
        description="Bars scanned for the opposing extreme when measuring prominence"
    )

    prominence_floor: confloat(gt=0, lt=1) = Field(
        default=0.02,
        description="Default and minimum prominence fraction"
    )

    detection_mode: DetectionMode = Field(
        default=DetectionMode.HIGH_LOW,
        description="Series used for detection"
    )

    recent_only: bool = Field(
        default=False,
        description="Keep only extrema from the most recent half of the series"
    )

    min_bars: PositiveInt = Field(
        default=100,
        description="Minimum series length for windowed detection"
    )

    # === Predefined level validation ===
    touch_tolerance: confloat(ge=0, lt=1) = Field(
        default=0.01,
        description="Envelope widening used to count touches"
    )

    min_touches: PositiveInt = Field(default=2, description="Touches required to keep a level")
    min_reversals: PositiveInt = Field(default=2, description="Reversals required to keep a level")

    calibration_proximity: confloat(gt=0, lt=1) = Field(
        default=0.02,
        description="Distance of a bar low/high from a level for calibration swings"
    )

    # === Post-processing ===
    range_min_multiplier: PositiveFloat = Field(default=0.3, description="Lower range bound x price")
    range_max_multiplier: PositiveFloat = Field(default=2.5, description="Upper range bound x price")

    use_predefined_blend: bool = Field(
        default=True,
        description="Inject predefined levels with no detected neighbour"
    )

    blend_tolerance: confloat(gt=0, lt=1) = Field(
        default=0.05,
        description="Neighbourhood for the predefined blend"
    )

    use_volume_weighting: bool = Field(
        default=False,
        description="Drop levels without realized trading volume"
    )

    volume_proximity: confloat(gt=0, lt=1) = Field(
        default=0.01,
        description="Distance of a bar low/high from a level for volume sums"
    )

    volume_multiplier: PositiveFloat = Field(
        default=2.0,
        description="Required level volume as a multiple of average daily volume"
    )

    cluster_tolerance: confloat(gt=0, lt=1) = Field(
        default=0.01,
        description="Relative distance merging a level into the current cluster"
    )

    max_levels: PositiveInt = Field(default=20, description="Maximum number of output levels")

    # === Similarity ===
    similarity_tolerance: confloat(gt=0, lt=1) = Field(
        default=0.02,
        description="Relative distance counting a detected level as corroborated"
    )

    @model_validator(mode="after")
    def validate_range(self):
        if self.range_min_multiplier >= self.range_max_multiplier:
            raise ValueError("range_min_multiplier must be below range_max_multiplier")
        return self

    model_config = SettingsConfigDict(env_prefix="BTC_LEVELS_POLICY_", case_sensitive=False)


class DataConfig(BaseSettings):
    """
    Historical data source and cache settings
    """

    api_base_url: str = Field(
        default="https://min-api.cryptocompare.com/data",
        description="CryptoCompare REST base URL"
    )

    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BTC_LEVELS_DATA_API_KEY", "CRYPTOCOMPARE_API_KEY"),
        description="CryptoCompare API key"
    )

    symbol: str = Field(default="BTC", description="Instrument symbol")
    currency: str = Field(default="USD", description="Quote currency")

    cache_max_age_ms: PositiveInt = Field(
        default=24 * 60 * 60 * 1000,
        description="Age after which the cached series is refreshed"
    )

    lookback_days: PositiveInt = Field(
        default=730,
        ge=30,
        le=2000,
        description="Days of history requested on refresh"
    )

    request_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Timeout of a single HTTP request"
    )

    levels_file: Path = Field(
        default=Path("data/levels.json"),
        description="JSON file with predefined levels"
    )

    @field_validator("symbol", "currency")
    @classmethod
    def upper_case(cls, v: str) -> str:
        if not v or not v.isalnum():
            raise ValueError("must be a non-empty alphanumeric code")
        return v.upper()

    model_config = SettingsConfigDict(
        env_prefix="BTC_LEVELS_DATA_",
        case_sensitive=False,
        populate_by_name=True
    )


class APIConfig(BaseSettings):
    """
    HTTP server settings
    """

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: PositiveInt = Field(default=3000, le=65535, description="Bind port")
    debug: bool = Field(default=False, description="Debug mode")

    model_config = SettingsConfigDict(env_prefix="BTC_LEVELS_API_", case_sensitive=False)


class MonitoringConfig(BaseSettings):
    """
    Logging settings
    """

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: Literal["json", "text", "colored"] = Field(default="json", description="Log format")
    log_file: Optional[str] = Field(default=None, description="Log file")

    model_config = SettingsConfigDict(env_prefix="BTC_LEVELS_MONITORING_", case_sensitive=False)


class LevelsConfig(BaseSettings):
    """
    Root configuration of the BTC Levels service
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Runtime environment"
    )

    service_name: str = Field(default="btc-levels", description="Service name")
    version: str = Field(default="1.0.0", description="Service version")

    policy: LevelPolicy = Field(default_factory=LevelPolicy)
    data: DataConfig = Field(default_factory=DataConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    def is_production(self) -> bool:
        return self.environment == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


_config: Optional[LevelsConfig] = None


def get_config() -> LevelsConfig:
    """
    Process-wide configuration (created on first use)

    Returns:
        LevelsConfig instance
    """
    global _config
    if _config is None:
        _config = LevelsConfig()
    return _config


def reload_config() -> LevelsConfig:
    """Re-read configuration from the environment"""
    global _config
    _config = LevelsConfig()
    return _config


def load_config_from_file(config_path: Union[str, Path]) -> LevelsConfig:
    """
    Load configuration from a YAML file

    Args:
        config_path: Path to the YAML file

    Returns:
        LevelsConfig instance
    """
    import yaml

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_data = yaml.safe_load(f) or {}

    return LevelsConfig(**config_data)
