"""Configuration management with YAML support and validation."""

from neutralturf.config.loader import load_config, load_config_dict, save_config
from neutralturf.config.schema import (
    AggregationSettings,
    CorpusConfig,
    FieldDataConfig,
    OutputConfig,
    PipelineConfig,
)

__all__ = [
    "PipelineConfig",
    "FieldDataConfig",
    "CorpusConfig",
    "AggregationSettings",
    "OutputConfig",
    "load_config",
    "load_config_dict",
    "save_config",
]
