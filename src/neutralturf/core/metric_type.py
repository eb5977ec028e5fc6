"""Distance metric classification for trait analyses.

Every trait analysed by the pipeline is compared between communities in one
of two ways:

- **Composition** (the ``veg`` trait): whole-community Bray-Curtis
  dissimilarity over the species abundance vectors. Bounded in [0, 1] and
  insensitive to species absent from both communities.

- **Community weighted mean** (every other trait): each community is first
  reduced to the abundance-weighted mean of a per-species trait value, then
  communities are compared by the absolute difference of those scalars.

The metric is resolved once per trait name into a :class:`TraitSpec`, so the
distance code dispatches on the enum rather than on raw strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from neutralturf.core.constants import COMPOSITION_KEY


class DistanceMetric(str, Enum):
    """How two communities are compared for a given trait.

    Attributes
    ----------
    COMPOSITION : str
        Bray-Curtis dissimilarity over species abundances.
    CWM : str
        Absolute difference of community weighted means of one trait.
    """

    COMPOSITION = "composition"
    CWM = "cwm"


@dataclass(frozen=True)
class TraitSpec:
    """A trait of interest together with the metric used to compare it.

    Attributes
    ----------
    name : str
        Trait label written to the ``trait`` column of output records. For CWM
        traits this is also the column name in the trait table.
    metric : DistanceMetric
        Distance semantics for this trait.
    """

    name: str
    metric: DistanceMetric

    @property
    def is_composition(self) -> bool:
        return self.metric is DistanceMetric.COMPOSITION

    def __str__(self) -> str:
        return self.name


def resolve_trait(name: str, composition_key: str = COMPOSITION_KEY) -> TraitSpec:
    """Build the TraitSpec for a trait name.

    Parameters
    ----------
    name : str
        Trait name from the configuration.
    composition_key : str, optional
        Name that selects composition distance. Default ``"veg"``.

    Returns
    -------
    TraitSpec

    Examples
    --------
    >>> resolve_trait("veg").metric
    <DistanceMetric.COMPOSITION: 'composition'>
    >>> resolve_trait("height").metric
    <DistanceMetric.CWM: 'cwm'>
    """
    if name == composition_key:
        return TraitSpec(name=name, metric=DistanceMetric.COMPOSITION)
    return TraitSpec(name=name, metric=DistanceMetric.CWM)


def resolve_traits(names, composition_key: str = COMPOSITION_KEY) -> list[TraitSpec]:
    """Resolve a sequence of trait names, keeping order and dropping repeats."""
    seen: set[str] = set()
    specs: list[TraitSpec] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        specs.append(resolve_trait(name, composition_key))
    return specs
