"""Core infrastructure.

This module provides foundational utilities shared by the pipeline:
- Metric variant type for trait distances
- Shared constants (control codes, flush threshold, column layouts)
- Colored logging setup
"""

from neutralturf.core.constants import (
    COMPOSITION_KEY,
    CONTROL_TREATMENTS,
    DEFAULT_FLUSH_EVERY,
    DEFAULT_SIGNIFICANT_DIGITS,
    RECORD_COLUMNS,
    RECORD_KEY,
    SIMULATION_ID_COLUMNS,
    SUMMARY_COLUMNS,
    TURF_YEAR,
)
from neutralturf.core.logging_utils import ColoredFormatter, setup_logging
from neutralturf.core.metric_type import (
    DistanceMetric,
    TraitSpec,
    resolve_trait,
    resolve_traits,
)

__all__ = [
    # Constants
    "COMPOSITION_KEY",
    "CONTROL_TREATMENTS",
    "DEFAULT_FLUSH_EVERY",
    "DEFAULT_SIGNIFICANT_DIGITS",
    "RECORD_COLUMNS",
    "RECORD_KEY",
    "SIMULATION_ID_COLUMNS",
    "SUMMARY_COLUMNS",
    "TURF_YEAR",
    # Logging
    "ColoredFormatter",
    "setup_logging",
    # Metric type
    "DistanceMetric",
    "TraitSpec",
    "resolve_trait",
    "resolve_traits",
]
