"""Weighted merging of distance-to-control records.

A record ``(trait, turfID, year, m, d, dissimilarity, reps)`` stands for
``reps`` underlying simulated runs. Collapsing groups records by key and
replaces each group with one record whose dissimilarity is the
``reps``-weighted mean of the group. The reduce is associative and
commutative, so collapsing in any batches gives the same result as
collapsing everything at once (up to floating-point rounding). That is what
lets :class:`DistanceAccumulator` bound memory without changing the answer.

Missing dissimilarities
-----------------------
Records with a missing dissimilarity carry no weight. A group's ``reps`` is
the summed ``reps`` of its non-missing records; a group with only missing
records keeps ``NaN`` with the summed ``reps`` of all of them. Both cases
survive repeated collapsing unchanged.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

import numpy as np
import pandas as pd

from neutralturf.core.constants import (
    DEFAULT_FLUSH_EVERY,
    RECORD_COLUMNS,
    RECORD_KEY,
    SUMMARY_COLUMNS,
)

LOGGER = logging.getLogger(__name__)

# Column name used by the original R summaries for the dissimilarity
_LEGACY_DISSIMILARITY = "dist.tt1"


def empty_records() -> pd.DataFrame:
    """An empty record table with the standard columns."""
    return pd.DataFrame(
        {
            "trait": pd.Series(dtype=object),
            "turfID": pd.Series(dtype=object),
            "year": pd.Series(dtype="int64"),
            "m": pd.Series(dtype="float64"),
            "d": pd.Series(dtype="int64"),
            "dissimilarity": pd.Series(dtype="float64"),
            "reps": pd.Series(dtype="float64"),
        }
    )


def collapse_records(records: Union[pd.DataFrame, Iterable[pd.DataFrame]]) -> pd.DataFrame:
    """Merge records sharing ``(trait, turfID, year, m, d)``.

    Parameters
    ----------
    records : pd.DataFrame or iterable of pd.DataFrame
        Records with the columns of :data:`RECORD_COLUMNS`. Several frames
        are concatenated first.

    Returns
    -------
    pd.DataFrame
        One record per key, sorted by key, with the ``reps``-weighted mean
        dissimilarity and the summed ``reps``.

    Notes
    -----
    Records whose dissimilarity is ``NaN`` are left out of both the mean and
    the summed ``reps`` (unless every record of the key is ``NaN``). A merged
    record then weighs exactly as much as the records it replaced, so merging
    in one pass or in any sequence of batches gives the same result.

    Examples
    --------
    >>> records = pd.DataFrame({
    ...     "trait": ["veg", "veg"], "turfID": ["t1", "t1"], "year": [2011, 2011],
    ...     "m": [0.1, 0.1], "d": [5, 5], "dissimilarity": [0.25, 0.5], "reps": [3, 1],
    ... })
    >>> collapse_records(records)[["dissimilarity", "reps"]].values.tolist()
    [[0.3125, 4.0]]
    """
    if not isinstance(records, pd.DataFrame):
        frames = [f for f in records if f is not None and len(f) > 0]
        if not frames:
            return empty_records()
        records = pd.concat(frames, ignore_index=True)

    if records.empty:
        return empty_records()

    missing = [c for c in RECORD_COLUMNS if c not in records.columns]
    if missing:
        raise ValueError(f"Records are missing columns: {missing}")

    frame = records.loc[:, list(RECORD_COLUMNS)].copy()
    reps = frame["reps"].astype(float).to_numpy()
    values = frame["dissimilarity"].astype(float).to_numpy()
    valid = ~np.isnan(values)

    frame["_weight"] = np.where(valid, reps, 0.0)
    frame["_weighted"] = np.where(valid, reps * np.where(valid, values, 0.0), 0.0)
    frame["_reps"] = reps

    grouped = (
        frame.groupby(list(RECORD_KEY), sort=True, dropna=False)[["_weight", "_weighted", "_reps"]]
        .sum()
        .reset_index()
    )

    weight = grouped["_weight"].to_numpy()
    has_weight = weight > 0
    with np.errstate(invalid="ignore", divide="ignore"):
        grouped["dissimilarity"] = np.where(has_weight, grouped["_weighted"] / weight, np.nan)
    grouped["reps"] = np.where(has_weight, weight, grouped["_reps"].to_numpy())

    out = grouped.loc[:, list(RECORD_COLUMNS)].copy()
    out["year"] = out["year"].astype("int64")
    out["d"] = out["d"].astype("int64")
    return out.reset_index(drop=True)


def finalize_summary(records: pd.DataFrame) -> pd.DataFrame:
    """Drop the ``reps`` weight and order the summary columns."""
    if records.empty:
        return empty_records().loc[:, list(SUMMARY_COLUMNS)]
    return records.loc[:, list(SUMMARY_COLUMNS)].reset_index(drop=True)


class DistanceAccumulator:
    """Running summary of distance-to-control records with a bounded buffer.

    Batches are appended to a buffer and merged into the summary with
    :func:`collapse_records` whenever :meth:`flush` is called. Callers flush
    when :attr:`should_flush` turns true, after ``flush_every`` units of work,
    and once at the end of the stream.

    The summary plus the buffer is a complete, valid state at any time, so a
    snapshot can be written out and used later as a seed.

    Parameters
    ----------
    flush_every : int, optional
        Units of work (one file and one trait) between merges.
    initial : pd.DataFrame, optional
        Records to start from, such as a previously written summary.

    Examples
    --------
    >>> acc = DistanceAccumulator(flush_every=2)
    >>> acc.add(batch)
    >>> if acc.should_flush:
    ...     acc.flush()
    >>> summary = acc.finalize()
    """

    def __init__(self, flush_every: int = DEFAULT_FLUSH_EVERY, initial: pd.DataFrame | None = None):
        if flush_every < 1:
            raise ValueError(f"flush_every must be >= 1, got {flush_every}")
        self.flush_every = flush_every
        self._summary = collapse_records(initial) if initial is not None else empty_records()
        self._buffer: list[pd.DataFrame] = []
        self._pending_units = 0
        self.n_units = 0
        self.n_flushes = 0
        self.n_records_added = 0

    @property
    def should_flush(self) -> bool:
        return self._pending_units >= self.flush_every

    @property
    def n_buffered(self) -> int:
        """Records waiting in the buffer."""
        return sum(len(b) for b in self._buffer)

    @property
    def summary(self) -> pd.DataFrame:
        """The merged summary, excluding anything still buffered."""
        return self._summary.copy()

    def add(self, batch: pd.DataFrame, units: int = 1) -> None:
        """Append a batch of records and count the work that produced it."""
        if batch is not None and len(batch) > 0:
            self._buffer.append(batch)
            self.n_records_added += len(batch)
        self._pending_units += units
        self.n_units += units

    def flush(self) -> pd.DataFrame:
        """Merge the buffer into the summary and return the new summary."""
        if self._buffer:
            self._summary = collapse_records([self._summary, *self._buffer])
            self._buffer = []
        self._pending_units = 0
        self.n_flushes += 1
        LOGGER.debug(f"Flushed accumulator: {len(self._summary)} summary records")
        return self.summary

    def snapshot(self) -> pd.DataFrame:
        """Summary including buffered records, without flushing."""
        return collapse_records([self._summary, *self._buffer])

    def finalize(self) -> pd.DataFrame:
        """Flush and return the summary without ``reps``."""
        self.flush()
        return finalize_summary(self._summary)


def read_summary(path: Union[str, Path]) -> pd.DataFrame:
    """Read a summary table written by :func:`write_summary` or the R scripts.

    The legacy ``dist.tt1`` column is read as ``dissimilarity``, and a
    missing ``reps`` column counts every record once.
    """
    frame = pd.read_csv(path)
    frame = frame.loc[:, ~frame.columns.astype(str).str.startswith("Unnamed")]
    if "dissimilarity" not in frame.columns and _LEGACY_DISSIMILARITY in frame.columns:
        frame = frame.rename(columns={_LEGACY_DISSIMILARITY: "dissimilarity"})
    if "reps" not in frame.columns:
        frame["reps"] = 1.0

    missing = [c for c in RECORD_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"Summary table {path} is missing columns: {missing}")

    frame["turfID"] = frame["turfID"].astype(str)
    frame["trait"] = frame["trait"].astype(str)
    frame["year"] = frame["year"].astype("int64")
    frame["d"] = frame["d"].astype("int64")
    return frame.loc[:, list(RECORD_COLUMNS)]


def write_summary(
    records: pd.DataFrame, path: Union[str, Path], include_reps: bool = False
) -> Path:
    """Write a summary table as CSV, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    columns = list(RECORD_COLUMNS) if include_reps else list(SUMMARY_COLUMNS)
    records.loc[:, [c for c in columns if c in records.columns]].to_csv(path, index=False)
    LOGGER.info(f"Wrote {len(records)} records to {path}")
    return path
