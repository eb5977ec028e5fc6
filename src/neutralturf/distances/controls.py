"""Matching a turf observation to its local field controls.

A turf is compared against the untransplanted controls that share its
destination site and survey year. The focal turf never counts as its own
control, even when it is itself a control.
"""

from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from neutralturf.core.constants import CONTROL_TREATMENTS, TURF_YEAR

LOGGER = logging.getLogger(__name__)


def find_controls(
    metadata: pd.DataFrame,
    dest_site: str,
    year: int,
    turf_id: str,
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> list[str]:
    """Return the ``turf.year`` keys of the controls for one focal turf.

    Parameters
    ----------
    metadata : pd.DataFrame
        Turf metadata with ``destSiteID``, ``year``, ``treatment``, ``turfID``
        and ``turf.year`` columns.
    dest_site : str
        Destination site of the focal turf.
    year : int
        Survey year of the focal observation.
    turf_id : str
        Focal turf, excluded from its own controls.
    control_treatments : sequence of str, optional
        Treatment codes that mark a control. Default ``("TTC", "TT1")``.

    Returns
    -------
    list[str]
        Control keys in metadata order. Empty when the site/year has no other
        control, which callers treat as a missing comparison.
    """
    mask = (
        (metadata["destSiteID"] == str(dest_site))
        & (metadata["year"] == int(year))
        & metadata["treatment"].isin(list(control_treatments))
        & (metadata["turfID"] != str(turf_id))
    )
    return metadata.loc[mask, TURF_YEAR].tolist()


def controls_for_key(
    metadata: pd.DataFrame,
    key: str,
    control_treatments: Sequence[str] = CONTROL_TREATMENTS,
) -> list[str]:
    """Return the controls of the observation identified by a ``turf.year`` key.

    Unknown keys have no controls.
    """
    if key not in metadata.index:
        LOGGER.debug(f"No metadata for {key}; no controls")
        return []
    row = metadata.loc[key]
    return find_controls(
        metadata,
        dest_site=row["destSiteID"],
        year=row["year"],
        turf_id=row["turfID"],
        control_treatments=control_treatments,
    )
