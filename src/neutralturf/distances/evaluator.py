"""Distance-to-control scoring for observed and simulated communities.

The score of a community is the mean dissimilarity between it and its local
field controls (see :mod:`neutralturf.distances.controls`). Observed turfs are
scored from one distance matrix over the whole field table. Simulated
communities are scored one row at a time: the simulated abundances take the
place of the observed turf they were seeded from, and are compared against
the real field controls only.

Missing values
--------------
- Control distances that are undefined (``NaN``) are skipped in the mean.
- A turf with no controls, or with only undefined control distances, gets a
  ``NaN`` score rather than an exception.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from neutralturf.core.constants import (
    CONTROL_TREATMENTS,
    RECORD_COLUMNS,
    SIMULATION_ID_COLUMNS,
)
from neutralturf.core.metric_type import TraitSpec
from neutralturf.distances.controls import controls_for_key, find_controls
from neutralturf.distances.engine import distance_matrix, distances_to
from neutralturf.field import FieldData, FieldDataError, make_turf_year

LOGGER = logging.getLogger(__name__)


def _mean_or_nan(values) -> float:
    arr = np.asarray(values, dtype=np.float64)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return float("nan")
    return float(arr.mean())


def score_distance_matrix(
    dmat: pd.DataFrame,
    metadata: pd.DataFrame,
    trait: TraitSpec | str,
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> pd.DataFrame:
    """Mean distance from every matrix row to its local controls.

    Parameters
    ----------
    dmat : pd.DataFrame
        Square distance matrix labelled by ``turf.year`` keys.
    metadata : pd.DataFrame
        Turf metadata indexed by ``turf.year``.
    trait : TraitSpec or str
        Trait the matrix was computed for; copied into the ``trait`` column.
    control_treatments : sequence of str, optional
        Treatment codes that mark a control.

    Returns
    -------
    pd.DataFrame
        One record per row of ``dmat`` with columns ``trait``, ``turfID``,
        ``year``, ``dissimilarity``.

    Raises
    ------
    FieldDataError
        If a row of ``dmat`` has no entry in ``metadata``.
    """
    trait_name = str(trait)
    available = set(dmat.columns)
    records = []
    for key in dmat.index:
        if key not in metadata.index:
            raise FieldDataError(f"Distance matrix row '{key}' has no turf metadata")
        controls = [c for c in controls_for_key(metadata, key, control_treatments) if c in available]
        score = _mean_or_nan(dmat.loc[key, controls].to_numpy()) if controls else float("nan")
        meta = metadata.loc[key]
        records.append(
            {
                "trait": trait_name,
                "turfID": meta["turfID"],
                "year": int(meta["year"]),
                "dissimilarity": score,
            }
        )
    return pd.DataFrame.from_records(
        records, columns=["trait", "turfID", "year", "dissimilarity"]
    )


def score_observed(
    field: FieldData,
    traits: Sequence[TraitSpec],
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> pd.DataFrame:
    """Score every observed field turf against its controls, for each trait.

    Returns
    -------
    pd.DataFrame
        Columns ``trait``, ``turfID``, ``year``, ``dissimilarity``.
    """
    frames = []
    for trait in traits:
        trait_values = None if trait.is_composition else field.trait_values(trait)
        dmat = distance_matrix(field.cover, trait, trait_values)
        frames.append(score_distance_matrix(dmat, field.metadata, trait, control_treatments))
        LOGGER.debug(f"Scored {len(dmat)} observed communities for trait '{trait}'")
    if not frames:
        return pd.DataFrame(columns=["trait", "turfID", "year", "dissimilarity"])
    return pd.concat(frames, ignore_index=True)


def score_simulated(
    sim: pd.DataFrame,
    field: FieldData,
    trait: TraitSpec,
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> pd.DataFrame:
    """Score simulated communities against the real field controls.

    Each row of ``sim`` is handled independently: it stands in for the
    observed turf with the same ``turfID`` and ``year``, and its distance to
    that turf's controls is averaged. Field controls are never replaced, and
    replicates sharing a turf/year do not see each other.

    Parameters
    ----------
    sim : pd.DataFrame
        Simulated runs with ``turfID``, ``year``, ``m``, ``d`` and one column
        per species of ``field``.
    field : FieldData
        Observed communities and metadata.
    trait : TraitSpec
        Trait being analysed.
    control_treatments : sequence of str, optional
        Treatment codes that mark a control.

    Returns
    -------
    pd.DataFrame
        One record per simulated row with columns ``trait``, ``turfID``,
        ``year``, ``m``, ``d``, ``dissimilarity``, ``reps`` (always 1).

    Raises
    ------
    ValueError
        If ``sim`` lacks identifier or species columns.
    """
    missing_ids = [c for c in SIMULATION_ID_COLUMNS if c not in sim.columns]
    if missing_ids:
        raise ValueError(f"Simulated communities are missing columns: {missing_ids}")
    missing_species = [s for s in field.species if s not in sim.columns]
    if missing_species:
        raise ValueError(
            f"Simulated communities are missing {len(missing_species)} species columns, "
            f"e.g. {missing_species[:5]}"
        )

    if sim.empty:
        return pd.DataFrame(columns=list(RECORD_COLUMNS))

    trait_values = None if trait.is_composition else field.trait_values(trait)
    sim_cover = sim[field.species].to_numpy(dtype=np.float64)
    field_cover = field.cover
    turf_ids = sim["turfID"].astype(str).to_numpy()
    years = sim["year"].astype(int).to_numpy()
    keys = make_turf_year(turf_ids, years).to_numpy()

    control_cache: dict[tuple[str, int], list[str]] = {}
    scores = np.full(len(sim), np.nan, dtype=np.float64)

    for i, (turf_id, year, key) in enumerate(zip(turf_ids, years, keys)):
        cache_key = (turf_id, int(year))
        if cache_key not in control_cache:
            if key in field.metadata.index:
                dest_site = field.metadata.at[key, "destSiteID"]
            else:
                dest_site = field.dest_site(turf_id)
            if dest_site is None:
                LOGGER.debug(f"Simulated turf {turf_id} is not in the field metadata")
                control_cache[cache_key] = []
            else:
                control_cache[cache_key] = find_controls(
                    field.metadata, dest_site, year, turf_id, control_treatments
                )
        controls = control_cache[cache_key]
        if not controls:
            continue
        others = field_cover.loc[controls].to_numpy(dtype=np.float64)
        scores[i] = _mean_or_nan(distances_to(sim_cover[i], others, trait, trait_values))

    return pd.DataFrame(
        {
            "trait": trait.name,
            "turfID": turf_ids,
            "year": years,
            "m": sim["m"].to_numpy(dtype=np.float64),
            "d": sim["d"].to_numpy(),
            "dissimilarity": scores,
            "reps": 1,
        },
        columns=list(RECORD_COLUMNS),
    )
