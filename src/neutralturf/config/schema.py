"""
Configuration schema for neutralturf pipeline runs.

This module defines Pydantic models for all configuration sections,
providing validation, type safety, and YAML/JSON serialization support.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from neutralturf.core.constants import (
    COMPOSITION_KEY,
    CONTROL_TREATMENTS,
    DEFAULT_FLUSH_EVERY,
    DEFAULT_SIGNIFICANT_DIGITS,
)
from neutralturf.core.metric_type import TraitSpec, resolve_traits


# =============================================================================
# Input Configuration
# =============================================================================


class FieldDataConfig(BaseModel):
    """Locations of the observed field tables.

    Attributes:
        cover: Community table CSV, first column ``turf.year``
        metadata: Turf metadata CSV
        traits: Species trait CSV, first column species code
    """

    cover: Path = Field(..., description="Community cover table (CSV)")
    metadata: Path = Field(..., description="Turf metadata table (CSV)")
    traits: Optional[Path] = Field(None, description="Species trait table (CSV)")


class CorpusConfig(BaseModel):
    """Location of the simulation corpus.

    Attributes:
        directory: Directory holding one CSV per simulation batch
        pattern: Glob pattern selecting corpus files
        seed_summary: Optional earlier summary to start the accumulator from
    """

    directory: Path = Field(..., description="Directory of simulation batch files")
    pattern: str = Field("*.csv", description="Glob pattern for corpus files")
    seed_summary: Optional[Path] = Field(None, description="Earlier summary to merge into")


# =============================================================================
# Aggregation Settings
# =============================================================================


class AggregationSettings(BaseModel):
    """Settings of the streaming aggregation.

    Attributes:
        flush_every: (file, trait) units between merges of the record buffer
        significant_digits: Precision applied to m before comparisons
        control_treatments: Treatment codes marking control turfs
        composition_key: Trait name that selects Bray-Curtis distance
        baseline_year: Year label of baseline rows (default: earliest observed)
    """

    flush_every: int = Field(DEFAULT_FLUSH_EVERY, ge=1, description="Units between merges")
    significant_digits: int = Field(
        DEFAULT_SIGNIFICANT_DIGITS, ge=1, le=15, description="Significant digits of m"
    )
    control_treatments: List[str] = Field(
        default_factory=lambda: list(CONTROL_TREATMENTS),
        description="Treatment codes of control turfs",
    )
    composition_key: str = Field(COMPOSITION_KEY, description="Trait name for composition")
    baseline_year: Optional[int] = Field(None, description="Year label of baseline rows")

    @field_validator("control_treatments")
    @classmethod
    def validate_control_treatments(cls, v: List[str]) -> List[str]:
        """Require at least one control treatment code."""
        if not v:
            raise ValueError("At least one control treatment code is required")
        return v


# =============================================================================
# Output Configuration
# =============================================================================


class OutputConfig(BaseModel):
    """Where pipeline results are written.

    Attributes:
        summary: Finalized summary CSV
        extended: Summary CSV with baseline-year rows
        observed: Observed distance-to-control CSV
        report: JSON run report
        checkpoint: Summary CSV with reps, rewritten after each merge
    """

    summary: Path = Field(Path("results/simSummary_traits.csv"))
    extended: Optional[Path] = Field(Path("results/simSummary_traits_baseline.csv"))
    observed: Optional[Path] = Field(None)
    report: Optional[Path] = Field(None)
    checkpoint: Optional[Path] = Field(None)


# =============================================================================
# Main Pipeline Configuration
# =============================================================================


class PipelineConfig(BaseModel):
    """Complete configuration of a distance aggregation run.

    Example:
        >>> config = PipelineConfig.from_yaml("pipeline.yaml")
        >>> config.trait_specs()[0].metric
        <DistanceMetric.COMPOSITION: 'composition'>
    """

    name: str = Field("neutralturf", description="Run name")
    description: Optional[str] = Field(None, description="Optional description")
    field: FieldDataConfig
    parameters: Path = Field(..., description="Target parameter table (site, d, m)")
    corpus: CorpusConfig
    traits: List[str] = Field(default_factory=lambda: [COMPOSITION_KEY])
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("traits")
    @classmethod
    def validate_traits(cls, v: List[str]) -> List[str]:
        """Require at least one trait and no repeats."""
        if not v:
            raise ValueError("At least one trait is required")
        if len(set(v)) != len(v):
            raise ValueError(f"Traits must be unique, got {v}")
        return v

    def trait_specs(self) -> list[TraitSpec]:
        """Resolve configured trait names to their distance metrics."""
        return resolve_traits(self.traits, self.aggregation.composition_key)

    @property
    def needs_trait_table(self) -> bool:
        return any(not trait.is_composition for trait in self.trait_specs())

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            PipelineConfig instance

        Raises:
            FileNotFoundError: If file doesn't exist
            ValidationError: If configuration is invalid
        """
        from neutralturf.config.loader import load_config

        return load_config(path)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        from neutralturf.config.loader import save_config

        save_config(self, path)
