"""Baseline-year rows for the extended summary.

At the baseline (pre-treatment) year no simulated drift has happened yet, so
the simulated distance of a turf to its controls equals the observed one.
Rather than recomputing it from simulations, each ``(trait, turfID, m, d)``
group receives a row at the baseline year carrying the observed
distance-to-control of that turf at its first survey after the baseline
year.
"""

from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from neutralturf.core.constants import CONTROL_TREATMENTS, SUMMARY_COLUMNS

LOGGER = logging.getLogger(__name__)

GROUP_COLUMNS = ["trait", "turfID", "m", "d"]


def earliest_observed(observed: pd.DataFrame, after_year: int | None = None) -> pd.DataFrame:
    """Observed distance of each ``(trait, turfID)`` at its earliest year.

    With ``after_year``, only years strictly later than it are considered.
    """
    if after_year is not None:
        observed = observed.loc[observed["year"] > int(after_year)]
    if observed.empty:
        return pd.DataFrame(columns=["trait", "turfID", "dissimilarity"])
    ordered = observed.sort_values(["trait", "turfID", "year"], kind="mergesort")
    first = ordered.drop_duplicates(["trait", "turfID"], keep="first")
    return first.loc[:, ["trait", "turfID", "dissimilarity"]].reset_index(drop=True)


def target_groups(
    targets: pd.DataFrame,
    metadata: pd.DataFrame,
    traits: Sequence[str],
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> pd.DataFrame:
    """Groups implied by the target table: every treated turf at a target site.

    Each target ``(site, d, m)`` is paired with the non-control turfs whose
    destination is ``site``, for every trait.
    """
    turfs = metadata.loc[
        ~metadata["treatment"].isin(list(control_treatments)), ["turfID", "destSiteID"]
    ].drop_duplicates("turfID")
    pairs = targets.merge(turfs, left_on="site", right_on="destSiteID", how="inner")
    if pairs.empty or not traits:
        return pd.DataFrame(columns=GROUP_COLUMNS)
    trait_frame = pd.DataFrame({"trait": list(traits)})
    groups = trait_frame.merge(pairs[["turfID", "m", "d"]], how="cross")
    return groups.loc[:, GROUP_COLUMNS]


def add_baseline_rows(
    summary: pd.DataFrame,
    observed: pd.DataFrame,
    baseline_year: int | None = None,
    targets: pd.DataFrame | None = None,
    metadata: pd.DataFrame | None = None,
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> pd.DataFrame:
    """Prepend baseline-year rows to a finalized summary.

    Parameters
    ----------
    summary : pd.DataFrame
        Finalized summary (``trait, turfID, year, m, d, dissimilarity``).
    observed : pd.DataFrame
        Observed distance-to-control records (``trait, turfID, year,
        dissimilarity``).
    baseline_year : int, optional
        Year label of the baseline rows. Defaults to the earliest observed
        year.
    targets : pd.DataFrame, optional
        Target parameter table. When given together with ``metadata``, every
        treated turf at a target site gets baseline rows even if no simulated
        record for it survived the filters.
    metadata : pd.DataFrame, optional
        Turf metadata used with ``targets``.
    control_treatments : sequence of str, optional
        Treatment codes excluded from target-derived groups.

    Returns
    -------
    pd.DataFrame
        Baseline rows followed by the summary rows of all other years.
        Each baseline row carries the turf's observed distance at its
        earliest year after ``baseline_year``; turfs never observed after it
        get no baseline row. Simulated rows already at the baseline year are
        replaced.
    """
    if baseline_year is None:
        if observed.empty:
            LOGGER.warning("No observed distances; extended summary has no baseline rows")
            return summary.loc[:, list(SUMMARY_COLUMNS)].reset_index(drop=True)
        baseline_year = int(observed["year"].min())

    group_frames = [summary.loc[:, GROUP_COLUMNS]]
    if targets is not None and metadata is not None:
        traits = sorted(observed["trait"].astype(str).unique()) if not observed.empty else []
        group_frames.append(target_groups(targets, metadata, traits, control_treatments))
    groups = pd.concat(group_frames, ignore_index=True).drop_duplicates()

    post_treatment = earliest_observed(observed, after_year=baseline_year)
    baseline = groups.merge(post_treatment, on=["trait", "turfID"], how="inner")
    baseline["year"] = int(baseline_year)
    baseline = baseline.sort_values(GROUP_COLUMNS, kind="mergesort").loc[:, list(SUMMARY_COLUMNS)]

    rest = summary.loc[summary["year"] != int(baseline_year), list(SUMMARY_COLUMNS)]
    LOGGER.info(f"Added {len(baseline)} baseline rows for year {baseline_year}")
    return pd.concat([baseline, rest], ignore_index=True)
