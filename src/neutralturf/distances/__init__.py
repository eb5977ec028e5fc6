"""Community dissimilarity and distance-to-control scoring."""

from neutralturf.distances.controls import controls_for_key, find_controls
from neutralturf.distances.engine import (
    bray_curtis_matrix,
    community_weighted_mean,
    community_weighted_means,
    distance_matrix,
    distances_to,
    scalar_distance_matrix,
)
from neutralturf.distances.evaluator import (
    score_distance_matrix,
    score_observed,
    score_simulated,
)

__all__ = [
    # engine.py
    "bray_curtis_matrix",
    "community_weighted_mean",
    "community_weighted_means",
    "distance_matrix",
    "distances_to",
    "scalar_distance_matrix",
    # controls.py
    "controls_for_key",
    "find_controls",
    # evaluator.py
    "score_distance_matrix",
    "score_observed",
    "score_simulated",
]
