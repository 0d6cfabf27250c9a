"""Configuration package for DanceSage."""
from configs.config import (
    DanceSageConfig,
    DeviceConfig,
    LandmarkConfig,
    NormalizerConfig,
    DisplayConfig,
    TrackerConfig,
    VideoConfig,
    LiveConfig,
    BeatConfig,
    OutputConfig,
    LANDMARK_BACKENDS,
    get_fast_config,
    get_accurate_config,
    get_live_config,
)
