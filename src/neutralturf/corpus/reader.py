"""Discovery and reading of simulation corpus files.

A corpus is a directory of CSV files, one per simulation batch. Each file
holds many runs, one row per (turf, year, parameter pair, replicate), with
``turfID``, ``year``, ``m``, ``d`` and one abundance column per species.

File names encode the parameters of the batch so that files can be rejected
before they are opened::

    <prefix>_<m>_<label>_<d>_<label>_<replicate>.csv
    sim_0.1_d_5_rep_3.csv   ->  m=0.1, d=5, replicate=3
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union

import pandas as pd

from neutralturf.core.constants import SIMULATION_ID_COLUMNS

LOGGER = logging.getLogger(__name__)


class CorpusFormatError(ValueError):
    """Raised when a corpus file name or its contents cannot be interpreted."""

    pass


@dataclass(frozen=True)
class CorpusFileTag:
    """Simulation parameters encoded in a corpus file name.

    Attributes
    ----------
    m : float
        Immigration probability, as written in the name (not yet rounded).
    d : int
        Replacement rate.
    replicate : int
        Replicate number of the batch.
    """

    m: float
    d: int
    replicate: int


def parse_corpus_filename(path: Union[str, Path]) -> CorpusFileTag:
    """Read ``(m, d, replicate)`` from a corpus file name.

    The stem is split on underscores; fields 1, 3 and 5 hold ``m``, ``d`` and
    the replicate.

    Raises
    ------
    CorpusFormatError
        If the name has too few fields or they are not numeric.

    Examples
    --------
    >>> parse_corpus_filename("sim_0.1_d_5_rep_3.csv")
    CorpusFileTag(m=0.1, d=5, replicate=3)
    """
    parts = Path(path).stem.split("_")
    if len(parts) < 6:
        raise CorpusFormatError(
            f"Cannot read parameters from '{Path(path).name}': expected "
            "'<prefix>_<m>_<label>_<d>_<label>_<replicate>'"
        )
    try:
        return CorpusFileTag(m=float(parts[1]), d=int(parts[3]), replicate=int(parts[5]))
    except ValueError as e:
        raise CorpusFormatError(f"Cannot read parameters from '{Path(path).name}': {e}") from e


def discover_corpus(directory: Union[str, Path], pattern: str = "*.csv") -> list[Path]:
    """List corpus files in a directory, sorted by name.

    Raises
    ------
    FileNotFoundError
        If the directory does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Corpus directory not found: {directory}")
    files = sorted(p for p in directory.glob(pattern) if p.is_file())
    LOGGER.info(f"Found {len(files)} corpus files in {directory}")
    return files


def read_corpus_file(path: Union[str, Path], species: Sequence[str] | None = None) -> pd.DataFrame:
    """Read one simulation batch file.

    Parameters
    ----------
    path : str or Path
        CSV file of simulated runs.
    species : sequence of str, optional
        Species columns that must be present. They are checked to hold
        non-negative numbers; missing cells are read as zero cover.

    Returns
    -------
    pd.DataFrame
        Runs with ``turfID`` as str, ``year`` and ``d`` as int, ``m`` as float.
        Row-name columns written by R (``Unnamed: 0``) are dropped.

    Raises
    ------
    CorpusFormatError
        If the file cannot be parsed, lacks required columns or holds
        non-numeric or negative abundances.
    OSError
        If the file cannot be opened.
    """
    path = Path(path)
    try:
        frame = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise CorpusFormatError(f"Cannot parse corpus file {path.name}: {e}") from e

    frame = frame.loc[:, ~frame.columns.astype(str).str.startswith("Unnamed")]
    frame.columns = frame.columns.astype(str)

    missing = [c for c in SIMULATION_ID_COLUMNS if c not in frame.columns]
    if species is not None:
        missing += [s for s in species if s not in frame.columns]
    if missing:
        raise CorpusFormatError(f"Corpus file {path.name} is missing columns: {missing[:5]}")

    try:
        frame["turfID"] = frame["turfID"].astype(str)
        frame["year"] = frame["year"].astype(int)
        frame["d"] = frame["d"].astype(int)
        frame["m"] = frame["m"].astype(float)
    except (TypeError, ValueError) as e:
        raise CorpusFormatError(f"Corpus file {path.name} has invalid identifiers: {e}") from e

    if species is not None:
        columns = list(species)
        try:
            values = frame[columns].apply(pd.to_numeric)
        except (TypeError, ValueError) as e:
            raise CorpusFormatError(
                f"Corpus file {path.name} has non-numeric abundances: {e}"
            ) from e
        values = values.fillna(0.0).astype(float)
        if (values.to_numpy() < 0).any():
            raise CorpusFormatError(f"Corpus file {path.name} has negative abundances")
        frame[columns] = values

    LOGGER.debug(f"Read {len(frame)} simulated runs from {path.name}")
    return frame
