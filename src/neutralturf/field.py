"""Field observation data: community cover, turf metadata and species traits.

The three field tables are read once per pipeline run and shared read-only by
every distance computation. :class:`FieldData` keeps them aligned:

- ``cover`` rows and ``metadata`` rows are indexed by the same ``turf.year``
  key and appear in the same order;
- ``traits`` is reindexed to the species columns of ``cover``, so species
  without trait data carry ``NaN`` for every trait.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from neutralturf.core.constants import TURF_YEAR
from neutralturf.core.metric_type import TraitSpec

LOGGER = logging.getLogger(__name__)

METADATA_COLUMNS = ("turfID", "siteID", "destSiteID", "year", "treatment")

# Column names used by the original field data exports
_METADATA_ALIASES = {"Year": "year", "TTtreat": "treatment"}


class FieldDataError(ValueError):
    """Raised when field tables are missing columns or disagree with each other."""

    pass


def make_turf_year(turf_ids, years) -> pd.Series:
    """Build ``turf.year`` keys as ``"<turfID>_<year>"``."""
    turf_ids = pd.Series(turf_ids).astype(str).reset_index(drop=True)
    years = pd.Series(years).astype(int).astype(str).reset_index(drop=True)
    return turf_ids + "_" + years


def normalize_metadata(metadata: pd.DataFrame) -> pd.DataFrame:
    """Validate turf metadata and index it by ``turf.year``.

    Accepts the ``Year`` and ``TTtreat`` column names as aliases and builds the
    ``turf.year`` key when the table does not carry one.

    Raises
    ------
    FieldDataError
        If required columns are missing or ``turf.year`` keys repeat.
    """
    meta = metadata.rename(
        columns={k: v for k, v in _METADATA_ALIASES.items() if v not in metadata.columns}
    ).copy()

    missing = [c for c in METADATA_COLUMNS if c not in meta.columns]
    if missing:
        raise FieldDataError(f"Turf metadata is missing required columns: {missing}")

    meta["turfID"] = meta["turfID"].astype(str)
    meta["destSiteID"] = meta["destSiteID"].astype(str)
    meta["treatment"] = meta["treatment"].astype(str)
    meta["year"] = meta["year"].astype(int)
    if TURF_YEAR not in meta.columns:
        meta[TURF_YEAR] = make_turf_year(meta["turfID"], meta["year"]).to_numpy()
    meta[TURF_YEAR] = meta[TURF_YEAR].astype(str)

    duplicated = meta[TURF_YEAR].duplicated()
    if duplicated.any():
        dupes = meta.loc[duplicated, TURF_YEAR].unique().tolist()
        raise FieldDataError(f"Duplicate turf.year keys in metadata: {dupes[:5]}")

    meta.index = pd.Index(meta[TURF_YEAR].to_numpy(), name=None)
    return meta


def validate_cover(cover: pd.DataFrame) -> pd.DataFrame:
    """Check a community table holds non-negative numeric abundances.

    Missing cells are read as zero cover.
    """
    try:
        values = cover.apply(pd.to_numeric)
    except (TypeError, ValueError) as e:
        raise FieldDataError(f"Community table has non-numeric abundances: {e}") from e
    values = values.fillna(0.0).astype(float)
    if (values.to_numpy() < 0).any():
        raise FieldDataError("Community table has negative abundances")
    values.index = values.index.astype(str)
    values.columns = values.columns.astype(str)
    return values


@dataclass
class FieldData:
    """Observed communities with their metadata and species traits.

    Attributes
    ----------
    cover : pd.DataFrame
        Community table, index ``turf.year``, one column per species.
    metadata : pd.DataFrame
        Turf metadata aligned row-for-row with ``cover``.
    traits : pd.DataFrame
        Trait table indexed by species, aligned to ``cover.columns``.
    """

    cover: pd.DataFrame
    metadata: pd.DataFrame
    traits: pd.DataFrame = field(default_factory=pd.DataFrame)

    def __post_init__(self) -> None:
        self.cover = validate_cover(self.cover)
        meta = normalize_metadata(self.metadata)

        unknown = self.cover.index.difference(meta.index)
        if len(unknown) > 0:
            raise FieldDataError(
                f"{len(unknown)} community rows have no metadata, e.g. {list(unknown[:5])}"
            )
        dropped = len(meta) - len(self.cover)
        if dropped:
            LOGGER.debug(f"Ignoring {dropped} metadata rows without a community record")
        self.metadata = meta.loc[self.cover.index]

        traits = self.traits.copy()
        traits.index = traits.index.astype(str)
        self.traits = traits.reindex(self.cover.columns)

        self._dest_sites = (
            self.metadata.drop_duplicates("turfID").set_index("turfID")["destSiteID"].to_dict()
        )

    @property
    def species(self) -> list[str]:
        """Species universe shared by every compared community."""
        return list(self.cover.columns)

    @property
    def site_lookup(self) -> dict[str, str]:
        """Mapping from turfID to destination site."""
        return dict(self._dest_sites)

    def dest_site(self, turf_id: str) -> str | None:
        """Destination site of a turf, or None for an unknown turf."""
        return self._dest_sites.get(str(turf_id))

    def trait_values(self, trait: TraitSpec) -> NDArray[np.float64]:
        """Per-species values of a CWM trait, aligned to ``species``.

        Raises
        ------
        FieldDataError
            If the trait table has no column for this trait.
        """
        if trait.name not in self.traits.columns:
            raise FieldDataError(f"Trait '{trait.name}' not found in trait table")
        return pd.to_numeric(self.traits[trait.name], errors="coerce").to_numpy(dtype=np.float64)


def load_field_data(
    cover_path: Union[str, Path],
    metadata_path: Union[str, Path],
    traits_path: Union[str, Path, None] = None,
) -> FieldData:
    """Load field tables from CSV.

    Parameters
    ----------
    cover_path : str or Path
        Community table; first column is the ``turf.year`` key.
    metadata_path : str or Path
        Turf metadata table.
    traits_path : str or Path, optional
        Trait table; first column is the species code. Required only when a
        CWM trait is analysed.

    Returns
    -------
    FieldData
    """
    cover = pd.read_csv(cover_path, index_col=0)
    metadata = pd.read_csv(metadata_path)
    traits = pd.read_csv(traits_path, index_col=0) if traits_path is not None else pd.DataFrame()

    LOGGER.info(
        f"Loaded field data: {len(cover)} communities, {cover.shape[1]} species, "
        f"{traits.shape[1]} traits"
    )
    return FieldData(cover=cover, metadata=metadata, traits=traits)
