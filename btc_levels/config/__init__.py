from .levels_config import (
    LevelsConfig,
    LevelPolicy,
    DataConfig,
    APIConfig,
    MonitoringConfig,
    DetectionMode,
    LogLevel,
    get_config,
    reload_config,
    load_config_from_file
)

__all__ = [
    "LevelsConfig",
    "LevelPolicy",
    "DataConfig",
    "APIConfig",
    "MonitoringConfig",
    "DetectionMode",
    "LogLevel",
    "get_config",
    "reload_config",
    "load_config_from_file"
]
