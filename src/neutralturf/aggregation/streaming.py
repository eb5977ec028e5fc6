"""Streaming distance aggregation over a simulation corpus.

The aggregator walks the corpus one file at a time:

1. file names are checked against the target ``(d, m)`` pairs, and files that
   cannot contribute are never opened;
2. each selected file is read and its runs are filtered to the target
   ``(site, d, m)`` triples;
3. for every trait, each remaining run is scored against the field controls
   and the records are added to a :class:`DistanceAccumulator`;
4. the accumulator is merged every ``flush_every`` (file, trait) units and at
   the end of the stream, so only the collapsed summary and one buffer of
   records are held in memory.

A file that cannot be read is skipped with a warning. Records already
merged stay valid, and the run continues with the next file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence, Union

import pandas as pd

from neutralturf.aggregation.baseline import add_baseline_rows
from neutralturf.aggregation.summary import (
    DistanceAccumulator,
    finalize_summary,
    write_summary,
)
from neutralturf.core.constants import (
    CONTROL_TREATMENTS,
    DEFAULT_FLUSH_EVERY,
    DEFAULT_SIGNIFICANT_DIGITS,
)
from neutralturf.core.metric_type import TraitSpec
from neutralturf.corpus.filters import (
    filter_simulated_rows,
    normalize_targets,
    select_corpus_files,
)
from neutralturf.corpus.reader import CorpusFormatError, read_corpus_file
from neutralturf.distances.evaluator import score_observed, score_simulated
from neutralturf.field import FieldData
from neutralturf.results import RunReport

LOGGER = logging.getLogger(__name__)


@dataclass
class AggregationOutcome:
    """Tables and report produced by :meth:`StreamingAggregator.run`.

    Attributes
    ----------
    summary : pd.DataFrame
        Finalized summary (``trait, turfID, year, m, d, dissimilarity``).
    extended : pd.DataFrame
        Summary with baseline-year rows prepended.
    observed : pd.DataFrame
        Observed distance-to-control records used for the baseline rows.
    records : pd.DataFrame
        Summary with the ``reps`` weight kept, usable as a seed.
    report : RunReport
        Counts of what the run consumed and produced.
    """

    summary: pd.DataFrame
    extended: pd.DataFrame
    observed: pd.DataFrame
    records: pd.DataFrame
    report: RunReport = field(default_factory=RunReport)


class StreamingAggregator:
    """Score a simulation corpus against field controls under bounded memory.

    Parameters
    ----------
    field_data : FieldData
        Observed communities, metadata and traits.
    targets : pd.DataFrame
        Target parameter table (``site, d, m``).
    traits : sequence of TraitSpec
        Traits to score, in processing order.
    flush_every : int, optional
        (file, trait) units between accumulator merges.
    significant_digits : int, optional
        Precision applied to ``m`` before parameter comparisons.
    control_treatments : sequence of str, optional
        Treatment codes that mark a control.
    seed : pd.DataFrame, optional
        Records from an earlier summary. They are filtered to the target
        triples and merged with the new records.
    checkpoint_path : str or Path, optional
        When set, the merged summary (with ``reps``) is written here after
        every merge.

    Examples
    --------
    >>> aggregator = StreamingAggregator(field_data, targets, resolve_traits(["veg", "height"]))
    >>> outcome = aggregator.run(discover_corpus("sims/"))
    >>> print(outcome.report.summary())
    """

    def __init__(
        self,
        field_data: FieldData,
        targets: pd.DataFrame,
        traits: Sequence[TraitSpec],
        flush_every: int = DEFAULT_FLUSH_EVERY,
        significant_digits: int = DEFAULT_SIGNIFICANT_DIGITS,
        control_treatments: Sequence[str] = CONTROL_TREATMENTS,
        seed: pd.DataFrame | None = None,
        checkpoint_path: Union[str, Path, None] = None,
    ):
        self.field = field_data
        self.digits = significant_digits
        self.targets = normalize_targets(targets, significant_digits)
        self.traits = list(traits)
        self.control_treatments = tuple(control_treatments)
        self.checkpoint_path = Path(checkpoint_path) if checkpoint_path is not None else None

        # Fail before touching the corpus if a CWM trait has no trait column
        for trait in self.traits:
            if not trait.is_composition:
                self.field.trait_values(trait)

        initial = None
        self.n_seed_records = 0
        if seed is not None and not seed.empty:
            initial = filter_simulated_rows(
                seed, self.targets, self.field.site_lookup, self.digits
            )
            self.n_seed_records = len(initial)
            LOGGER.info(f"Seeded accumulator with {len(initial)} of {len(seed)} records")

        self.accumulator = DistanceAccumulator(flush_every=flush_every, initial=initial)

    def load_file(self, path: Union[str, Path]) -> pd.DataFrame:
        """Read one corpus file and keep the runs matching a target triple."""
        sim = read_corpus_file(path, species=self.field.species)
        return filter_simulated_rows(sim, self.targets, self.field.site_lookup, self.digits)

    def score_file(self, sim: pd.DataFrame) -> Iterator[tuple[TraitSpec, pd.DataFrame]]:
        """Score filtered runs for each trait, yielding one batch per trait."""
        for trait in self.traits:
            yield trait, score_simulated(sim, self.field, trait, self.control_treatments)

    def process_file(self, path: Union[str, Path]) -> list[pd.DataFrame]:
        """Read, row-filter and score one corpus file.

        Returns one record batch per trait, each with one row per retained
        simulated run.
        """
        sim = self.load_file(path)
        LOGGER.debug(f"{Path(path).name}: {len(sim)} runs match a target triple")
        return [batch for _, batch in self.score_file(sim)]

    def _flush(self, total_units: int) -> None:
        summary = self.accumulator.flush()
        LOGGER.info(f"{self.accumulator.n_units} of {total_units} units processed")
        if self.checkpoint_path is not None:
            write_summary(summary, self.checkpoint_path, include_reps=True)

    def run(
        self,
        paths: Sequence[Union[str, Path]],
        observed: pd.DataFrame | None = None,
        baseline_year: int | None = None,
        report: RunReport | None = None,
    ) -> AggregationOutcome:
        """Process a corpus and return the finalized tables.

        Parameters
        ----------
        paths : sequence of str or Path
            Corpus files, in processing order. Order does not affect the
            result.
        observed : pd.DataFrame, optional
            Observed distance-to-control records. Computed from the field
            data when not given.
        baseline_year : int, optional
            Year label of baseline rows. Defaults to the earliest observed year.
        report : RunReport, optional
            Report to fill in; a new one is created when not given.

        Returns
        -------
        AggregationOutcome
        """
        report = report if report is not None else RunReport()
        report.traits = [t.name for t in self.traits]
        report.flush_every = self.accumulator.flush_every
        report.n_seed_records = self.n_seed_records

        selection = select_corpus_files(paths, self.targets, self.digits)
        report.n_files_found = len(paths)
        report.n_files_selected = len(selection.selected)
        report.malformed_files = [p.name for p in selection.malformed]

        total_units = len(selection.selected) * len(self.traits)
        for path in selection.selected:
            try:
                batches = self.process_file(path)
            except (CorpusFormatError, OSError) as e:
                LOGGER.warning(f"Skipping corpus file {path.name}: {e}")
                report.failed_files.append(path.name)
                self.accumulator.add(None, units=len(self.traits))
                if self.accumulator.should_flush:
                    self._flush(total_units)
                continue

            report.n_files_processed += 1
            report.n_simulated_rows += len(batches[0]) if batches else 0
            for batch in batches:
                self.accumulator.add(batch)
                if self.accumulator.should_flush:
                    self._flush(total_units)

        self._flush(total_units)
        records = self.accumulator.summary
        summary = finalize_summary(records)

        if observed is None:
            observed = score_observed(self.field, self.traits, self.control_treatments)
        extended = add_baseline_rows(
            summary,
            observed,
            baseline_year=baseline_year,
            targets=self.targets,
            metadata=self.field.metadata,
            control_treatments=self.control_treatments,
        )

        report.n_units = self.accumulator.n_units
        report.n_flushes = self.accumulator.n_flushes
        report.n_summary_records = len(summary)
        report.n_extended_records = len(extended)
        LOGGER.info(
            f"Aggregated {report.n_simulated_rows} simulated runs into "
            f"{len(summary)} summary records"
        )

        return AggregationOutcome(
            summary=summary,
            extended=extended,
            observed=observed,
            records=records,
            report=report,
        )
