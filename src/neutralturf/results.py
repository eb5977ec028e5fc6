"""Run report for a streaming aggregation.

The report records what a pipeline run consumed and produced, so a summary
table can be traced back to the corpus and settings that made it. Reports
are saved as JSON next to the summary tables.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from neutralturf.config.schema import PipelineConfig


def get_neutralturf_version() -> str:
    """Get current neutralturf version."""
    try:
        from importlib.metadata import version

        return version("neutralturf")
    except Exception:
        return "unknown"


def compute_config_hash(config: "PipelineConfig") -> str:
    """Hash the settings that determine the summary table.

    Includes input locations, traits and aggregation settings. Excludes output
    paths, which do not change the result.

    Returns
    -------
    str
        First 16 characters of the SHA-256 hex digest.
    """
    hash_data = {
        "field": config.field.model_dump(mode="json"),
        "parameters": str(config.parameters),
        "corpus": config.corpus.model_dump(mode="json"),
        "traits": list(config.traits),
        "aggregation": config.aggregation.model_dump(mode="json"),
    }
    json_str = json.dumps(hash_data, sort_keys=True, default=str)
    return hashlib.sha256(json_str.encode()).hexdigest()[:16]


class RunReport(BaseModel):
    """Counts and settings of one aggregation run.

    Attributes
    ----------
    name : str
        Run name from the configuration.
    config_hash : str
        Hash of the result-relevant configuration.
    traits : list[str]
        Traits analysed, in processing order.
    flush_every : int
        Units between accumulator merges.
    n_files_found : int
        Corpus files matched by the file pattern.
    n_files_selected : int
        Files that passed the file-level parameter filter.
    n_files_processed : int
        Selected files read and scored.
    malformed_files : list[str]
        Files skipped because their name encodes no parameters.
    failed_files : list[str]
        Selected files skipped because they could not be read.
    n_units : int
        (file, trait) units scored.
    n_flushes : int
        Accumulator merges, the final one included.
    n_simulated_rows : int
        Simulated runs that passed the row-level filter, summed over files.
    n_seed_records : int
        Records taken over from a seed summary.
    n_summary_records : int
        Records in the finalized summary.
    n_extended_records : int
        Records in the baseline-extended summary.
    """

    name: str = "neutralturf"
    config_hash: str = Field(default="unknown", description="Hash of result-relevant config")
    created_at: datetime = Field(default_factory=datetime.now)
    neutralturf_version: str = Field(default_factory=get_neutralturf_version)

    traits: list[str] = Field(default_factory=list)
    flush_every: int = 0
    n_files_found: int = 0
    n_files_selected: int = 0
    n_files_processed: int = 0
    malformed_files: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    n_units: int = 0
    n_flushes: int = 0
    n_simulated_rows: int = 0
    n_seed_records: int = 0
    n_summary_records: int = 0
    n_extended_records: int = 0

    model_config = {"extra": "forbid"}

    def summary(self) -> str:
        """Return a human-readable summary of the run."""
        lines = [
            f"Run '{self.name}' (config {self.config_hash})",
            f"  Corpus files: {self.n_files_found} found, {self.n_files_selected} selected, "
            f"{self.n_files_processed} processed",
            f"  Skipped: {len(self.malformed_files)} malformed names, "
            f"{len(self.failed_files)} unreadable files",
            f"  Units: {self.n_units} (file x trait) in {self.n_flushes} merges",
            f"  Simulated runs scored: {self.n_simulated_rows}",
            f"  Summary records: {self.n_summary_records} "
            f"({self.n_extended_records} with baseline rows)",
        ]
        return "\n".join(lines)

    def save(self, filepath: str | Path) -> Path:
        """Save the report to JSON, creating parent directories."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

        return filepath

    @classmethod
    def load(cls, filepath: str | Path) -> Self:
        """Load a report from JSON."""
        with open(Path(filepath)) as f:
            data = json.load(f)

        return cls.model_validate(data)
