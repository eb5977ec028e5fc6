"""Dissimilarity matrices among plant communities.

Two distance semantics are supported, selected by the trait's
:class:`~neutralturf.core.metric_type.DistanceMetric`:

Composition
    Bray-Curtis dissimilarity, ``sum|u - v| / sum(u + v)``. Suited to
    abundance data with many shared zero columns: it ignores joint absences,
    is 0 for identical communities and 1 for communities with no species in
    common. Two empty communities have no defined dissimilarity (``NaN``).

Community weighted mean (CWM)
    Each community is reduced to the abundance-weighted mean of a species
    trait, using only species with a known trait value (weights renormalized
    over those species). Communities are then compared by the absolute
    difference of their CWMs. A community with no cover on any species with a
    known trait value has an undefined CWM, and every distance involving it
    is ``NaN``.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray
from scipy.spatial.distance import cdist, pdist, squareform

from neutralturf.core.metric_type import TraitSpec


def community_weighted_mean(abundances: ArrayLike, trait_values: ArrayLike) -> float:
    """Compute the community weighted mean of one trait for one community.

    Parameters
    ----------
    abundances : array_like
        Cover of each species in the community.
    trait_values : array_like
        Trait value of each species, ``NaN`` where unknown.

    Returns
    -------
    float
        Weighted mean, or ``NaN`` when the species with known trait values
        have zero total cover.

    Examples
    --------
    >>> community_weighted_mean([1, 1, 0], [2.0, 4.0, 6.0])
    3.0
    >>> community_weighted_mean([0, 0, 5], [2.0, 4.0, np.nan])
    nan
    """
    return float(community_weighted_means(np.atleast_2d(abundances), trait_values)[0])


def community_weighted_means(cover: ArrayLike, trait_values: ArrayLike) -> NDArray[np.float64]:
    """Compute the community weighted mean of one trait for every row of ``cover``.

    Parameters
    ----------
    cover : array_like, shape (n_communities, n_species)
        Abundance table.
    trait_values : array_like, shape (n_species,)
        Trait value of each species, ``NaN`` where unknown.

    Returns
    -------
    NDArray[np.float64], shape (n_communities,)
    """
    weights = np.asarray(cover, dtype=np.float64)
    values = np.asarray(trait_values, dtype=np.float64)
    if weights.ndim != 2 or weights.shape[1] != values.shape[0]:
        raise ValueError(
            f"Trait vector of length {values.shape[0]} does not match "
            f"community table of shape {weights.shape}"
        )

    known = ~np.isnan(values)
    weights = weights[:, known]
    totals = weights.sum(axis=1)

    with np.errstate(invalid="ignore", divide="ignore"):
        means = weights @ values[known] / totals
    means[~(totals > 0)] = np.nan
    return means


def bray_curtis_matrix(cover: ArrayLike) -> NDArray[np.float64]:
    """Square Bray-Curtis dissimilarity matrix among the rows of ``cover``."""
    arr = np.asarray(cover, dtype=np.float64)
    n = arr.shape[0]
    if n < 2:
        return np.zeros((n, n), dtype=np.float64)
    with np.errstate(invalid="ignore", divide="ignore"):
        dmat = squareform(pdist(arr, metric="braycurtis"))
    np.fill_diagonal(dmat, 0.0)
    return dmat


def scalar_distance_matrix(values: ArrayLike) -> NDArray[np.float64]:
    """Square matrix of absolute differences between scalars.

    ``NaN`` scalars propagate to every off-diagonal entry in their row and
    column.
    """
    arr = np.asarray(values, dtype=np.float64)
    dmat = np.abs(arr[:, None] - arr[None, :])
    np.fill_diagonal(dmat, 0.0)
    return dmat


def distances_to(
    focal: ArrayLike,
    others: ArrayLike,
    trait: TraitSpec,
    trait_values: ArrayLike | None = None,
) -> NDArray[np.float64]:
    """Distances from one community to each row of ``others``.

    Equivalent to the first row of :func:`distance_matrix` over
    ``[focal, *others]`` without computing the other pairs.
    """
    focal_arr = np.atleast_2d(np.asarray(focal, dtype=np.float64))
    others_arr = np.atleast_2d(np.asarray(others, dtype=np.float64))
    if others_arr.shape[0] == 0:
        return np.empty(0, dtype=np.float64)
    if (focal_arr < 0).any() or (others_arr < 0).any():
        raise ValueError("Abundances must be non-negative")

    if trait.is_composition:
        with np.errstate(invalid="ignore", divide="ignore"):
            return cdist(focal_arr, others_arr, metric="braycurtis")[0]

    if trait_values is None:
        raise ValueError(f"Trait values are required for CWM trait '{trait.name}'")
    focal_cwm = community_weighted_means(focal_arr, trait_values)[0]
    return np.abs(focal_cwm - community_weighted_means(others_arr, trait_values))


def distance_matrix(
    cover: pd.DataFrame,
    trait: TraitSpec,
    trait_values: ArrayLike | None = None,
) -> pd.DataFrame:
    """Compute the dissimilarity matrix among communities for one trait.

    Parameters
    ----------
    cover : pd.DataFrame
        Communities as rows, species as columns.
    trait : TraitSpec
        Trait being analysed; its metric selects the distance semantics.
    trait_values : array_like, optional
        Per-species trait values aligned to ``cover.columns``. Required for
        CWM traits, ignored for composition.

    Returns
    -------
    pd.DataFrame
        Symmetric matrix with zero diagonal, labelled by ``cover.index`` on
        both axes.

    Raises
    ------
    ValueError
        If a CWM trait is requested without trait values, or abundances are
        negative.
    """
    values = cover.to_numpy(dtype=np.float64)
    if (values < 0).any():
        raise ValueError("Abundances must be non-negative")

    if trait.is_composition:
        dmat = bray_curtis_matrix(values)
    else:
        if trait_values is None:
            raise ValueError(f"Trait values are required for CWM trait '{trait.name}'")
        dmat = scalar_distance_matrix(community_weighted_means(values, trait_values))

    return pd.DataFrame(dmat, index=cover.index, columns=cover.index)
