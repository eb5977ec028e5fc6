"""Selection of simulation runs matching a target parameter table.

The target table names one ``(d, m)`` pair per site, produced by an external
calibration. Selection happens at two granularities:

1. **File level**: corpus file names encode ``(m, d)``, so files whose pair is
   not wanted by any site are never opened.
2. **Row level**: a file may still mix sites, so each run is kept only if
   ``(destination site of its turf, d, m)`` is one of the target
   ``(site, d, m)`` triples.

``m`` is always rounded to a fixed number of significant digits before
comparison, on both sides. Both filters are plain set-membership tests and
are idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike

from neutralturf.core.constants import DEFAULT_SIGNIFICANT_DIGITS
from neutralturf.corpus.reader import CorpusFormatError, parse_corpus_filename

LOGGER = logging.getLogger(__name__)

TARGET_COLUMNS = ("site", "d", "m")


def round_significant(values: ArrayLike, digits: int = DEFAULT_SIGNIFICANT_DIGITS):
    """Round to a number of significant digits.

    Returns a float for scalar input and an array otherwise. Zero and
    ``NaN`` pass through unchanged.

    Examples
    --------
    >>> round_significant(0.123456)
    0.123
    >>> round_significant([0.30000000000000004, 12345.0])
    array([3.00e-01, 1.23e+04])
    """
    if digits < 1:
        raise ValueError(f"digits must be >= 1, got {digits}")
    arr = np.asarray(values, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        magnitude = np.where(arr == 0, 0.0, np.floor(np.log10(np.abs(arr))))
    magnitude = np.nan_to_num(magnitude, nan=0.0, posinf=0.0, neginf=0.0)
    scale = 10.0 ** (digits - 1 - magnitude)
    rounded = np.round(arr * scale) / scale
    if rounded.ndim == 0:
        return float(rounded)
    return rounded


def normalize_targets(
    targets: pd.DataFrame, digits: int = DEFAULT_SIGNIFICANT_DIGITS
) -> pd.DataFrame:
    """Validate a target parameter table and round its ``m`` column.

    Raises
    ------
    ValueError
        If a required column is missing or ``m`` lies outside [0, 1].
    """
    missing = [c for c in TARGET_COLUMNS if c not in targets.columns]
    if missing:
        raise ValueError(f"Target parameter table is missing columns: {missing}")

    out = targets.loc[:, list(TARGET_COLUMNS)].copy()
    out["site"] = out["site"].astype(str)
    out["d"] = out["d"].astype(int)
    out["m"] = round_significant(out["m"].astype(float).to_numpy(), digits)
    if ((out["m"] < 0) | (out["m"] > 1)).any():
        raise ValueError("Immigration probability m must lie in [0, 1]")
    return out.drop_duplicates().reset_index(drop=True)


def load_targets(
    path: Union[str, Path], digits: int = DEFAULT_SIGNIFICANT_DIGITS
) -> pd.DataFrame:
    """Load and normalize a target parameter CSV (``site, d, m``)."""
    return normalize_targets(pd.read_csv(path), digits)


def parameter_pairs(
    targets: pd.DataFrame, digits: int = DEFAULT_SIGNIFICANT_DIGITS
) -> set[tuple[int, float]]:
    """Set of wanted ``(d, m)`` pairs, regardless of site."""
    d = targets["d"].astype(int).to_numpy()
    m = np.atleast_1d(round_significant(targets["m"].to_numpy(dtype=np.float64), digits))
    return {(int(di), float(mi)) for di, mi in zip(d, m)}


def site_parameter_keys(
    targets: pd.DataFrame, digits: int = DEFAULT_SIGNIFICANT_DIGITS
) -> set[tuple[str, int, float]]:
    """Set of wanted ``(site, d, m)`` triples."""
    sites = targets["site"].astype(str).to_numpy()
    d = targets["d"].astype(int).to_numpy()
    m = np.atleast_1d(round_significant(targets["m"].to_numpy(dtype=np.float64), digits))
    return {(str(s), int(di), float(mi)) for s, di, mi in zip(sites, d, m)}


@dataclass
class CorpusSelection:
    """Outcome of the file-level filter.

    Attributes
    ----------
    selected : list[Path]
        Files whose ``(d, m)`` pair is wanted.
    excluded : list[Path]
        Well-formed files with an unwanted pair.
    malformed : list[Path]
        Files whose name does not encode parameters.
    """

    selected: list[Path] = field(default_factory=list)
    excluded: list[Path] = field(default_factory=list)
    malformed: list[Path] = field(default_factory=list)


def select_corpus_files(
    paths: Sequence[Union[str, Path]],
    targets: pd.DataFrame,
    digits: int = DEFAULT_SIGNIFICANT_DIGITS,
) -> CorpusSelection:
    """Sort corpus files into selected, excluded and malformed.

    Input order is kept within each group.
    """
    wanted = parameter_pairs(targets, digits)
    selection = CorpusSelection()
    for path in paths:
        path = Path(path)
        try:
            tag = parse_corpus_filename(path)
        except CorpusFormatError as e:
            LOGGER.warning(f"Skipping corpus file: {e}")
            selection.malformed.append(path)
            continue
        if (tag.d, round_significant(tag.m, digits)) in wanted:
            selection.selected.append(path)
        else:
            selection.excluded.append(path)

    LOGGER.info(
        f"Parameter filter kept {len(selection.selected)} of {len(paths)} corpus files"
    )
    return selection


def filter_corpus_files(
    paths: Sequence[Union[str, Path]],
    targets: pd.DataFrame,
    digits: int = DEFAULT_SIGNIFICANT_DIGITS,
) -> list[Path]:
    """Keep the corpus files whose encoded ``(d, m)`` pair is a target pair."""
    return select_corpus_files(paths, targets, digits).selected


def filter_simulated_rows(
    frame: pd.DataFrame,
    targets: pd.DataFrame,
    site_lookup: Mapping[str, str],
    digits: int = DEFAULT_SIGNIFICANT_DIGITS,
) -> pd.DataFrame:
    """Keep runs whose ``(destination site, d, m)`` is a target triple.

    Parameters
    ----------
    frame : pd.DataFrame
        Simulated runs or summary records with ``turfID``, ``d`` and ``m``.
    targets : pd.DataFrame
        Target parameter table (``site, d, m``).
    site_lookup : mapping
        Destination site of each turfID. Turfs missing from it never match.
    digits : int, optional
        Significant digits applied to ``m``.

    Returns
    -------
    pd.DataFrame
        Matching rows, with ``m`` rounded and a fresh index.
    """
    out = frame.copy()
    if out.empty:
        return out.reset_index(drop=True)

    out["m"] = round_significant(out["m"].to_numpy(dtype=np.float64), digits)
    out["d"] = out["d"].astype(int)
    wanted = site_parameter_keys(targets, digits)
    sites = out["turfID"].astype(str).map(site_lookup)

    keep = np.fromiter(
        (
            (str(s), int(d), float(m)) in wanted if isinstance(s, str) else False
            for s, d, m in zip(sites, out["d"], out["m"])
        ),
        dtype=bool,
        count=len(out),
    )
    return out.loc[keep].reset_index(drop=True)
