"""Simulation corpus access and parameter filtering."""

from neutralturf.corpus.filters import (
    CorpusSelection,
    filter_corpus_files,
    filter_simulated_rows,
    load_targets,
    normalize_targets,
    parameter_pairs,
    round_significant,
    select_corpus_files,
    site_parameter_keys,
)
from neutralturf.corpus.reader import (
    CorpusFileTag,
    CorpusFormatError,
    discover_corpus,
    parse_corpus_filename,
    read_corpus_file,
)

__all__ = [
    # reader.py
    "CorpusFileTag",
    "CorpusFormatError",
    "discover_corpus",
    "parse_corpus_filename",
    "read_corpus_file",
    # filters.py
    "CorpusSelection",
    "filter_corpus_files",
    "filter_simulated_rows",
    "load_targets",
    "normalize_targets",
    "parameter_pairs",
    "round_significant",
    "select_corpus_files",
    "site_parameter_keys",
]
