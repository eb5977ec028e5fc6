"""Unit tests for the distance engine (distances/engine.py).

Tests cover:
- Bray-Curtis matrix properties: symmetry, zero diagonal, bounds
- Community weighted means with missing trait values
- CWM distance matrices and single-row distances
- Input validation (negative cover, missing trait values)
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from neutralturf.core.metric_type import DistanceMetric, TraitSpec, resolve_trait, resolve_traits
from neutralturf.distances.engine import (
    bray_curtis_matrix,
    community_weighted_mean,
    community_weighted_means,
    distance_matrix,
    distances_to,
    scalar_distance_matrix,
)

VEG = TraitSpec("veg", DistanceMetric.COMPOSITION)
HEIGHT = TraitSpec("height", DistanceMetric.CWM)


def _make_cover(rows=None) -> pd.DataFrame:
    if rows is None:
        rows = [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0], [2.0, 1.0, 1.0]]
    index = [f"t{i}_2011" for i in range(len(rows))]
    return pd.DataFrame(rows, index=index, columns=["s1", "s2", "s3"])


class TestMetricResolution:
    def test_composition_key(self):
        assert resolve_trait("veg").is_composition
        assert not resolve_trait("height").is_composition

    def test_custom_composition_key(self):
        assert resolve_trait("community", composition_key="community").is_composition
        assert resolve_trait("veg", composition_key="community").metric is DistanceMetric.CWM

    def test_resolve_traits_keeps_order_and_drops_repeats(self):
        specs = resolve_traits(["height", "veg", "height", "SLA"])
        assert [s.name for s in specs] == ["height", "veg", "SLA"]

    def test_str_is_name(self):
        assert str(HEIGHT) == "height"


class TestBrayCurtis:
    def test_disjoint_communities(self):
        dmat = bray_curtis_matrix([[1, 0, 0], [0, 0, 1]])
        assert dmat[0, 1] == pytest.approx(1.0)

    def test_identical_communities(self):
        dmat = bray_curtis_matrix([[3, 1, 0], [3, 1, 0]])
        assert dmat[0, 1] == pytest.approx(0.0)

    def test_known_value(self):
        # |1-1| + |1-0| + 0 = 1 over a total cover of 3
        dmat = bray_curtis_matrix([[1, 1, 0], [1, 0, 0]])
        assert dmat[0, 1] == pytest.approx(1 / 3)

    def test_matrix_properties(self):
        rng = np.random.default_rng(42)
        cover = rng.uniform(0, 5, size=(6, 8))
        dmat = bray_curtis_matrix(cover)

        assert dmat.shape == (6, 6)
        np.testing.assert_allclose(dmat, dmat.T)
        np.testing.assert_array_equal(np.diag(dmat), 0.0)
        assert (dmat >= 0).all() and (dmat <= 1).all()

    def test_empty_communities_have_no_distance(self):
        dmat = bray_curtis_matrix([[0, 0, 0], [0, 0, 0], [1, 0, 0]])
        assert np.isnan(dmat[0, 1])
        assert dmat[0, 0] == 0.0
        assert dmat[0, 2] == pytest.approx(1.0)

    def test_single_community(self):
        dmat = bray_curtis_matrix([[1, 2, 3]])
        assert dmat.shape == (1, 1)
        assert dmat[0, 0] == 0.0


class TestCommunityWeightedMean:
    def test_plain_weighted_mean(self):
        assert community_weighted_mean([1, 3, 0], [2.0, 4.0, 6.0]) == pytest.approx(3.5)

    def test_missing_traits_renormalize_weights(self):
        # s3 has no trait value; its cover does not count
        assert community_weighted_mean([1, 1, 10], [2.0, 4.0, np.nan]) == pytest.approx(3.0)

    def test_no_cover_with_known_traits_is_nan(self):
        assert np.isnan(community_weighted_mean([0, 0, 5], [2.0, 4.0, np.nan]))
        assert np.isnan(community_weighted_mean([0, 0, 0], [2.0, 4.0, 6.0]))

    def test_equal_weights_give_plain_mean(self):
        assert community_weighted_mean([1, 1, 1], [2.0, 4.0, 6.0]) == pytest.approx(4.0)
        assert community_weighted_mean([5, 5, 5], [2.0, 4.0, 6.0]) == pytest.approx(4.0)

    def test_vectorized_matches_scalar(self):
        cover = _make_cover().to_numpy()
        traits = [2.0, 4.0, 6.0]
        expected = [community_weighted_mean(row, traits) for row in cover]
        np.testing.assert_allclose(community_weighted_means(cover, traits), expected)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="does not match"):
            community_weighted_means([[1, 2, 3]], [1.0, 2.0])


class TestDistanceMatrix:
    def test_composition_labels(self):
        cover = _make_cover()
        dmat = distance_matrix(cover, VEG)

        assert list(dmat.index) == list(cover.index)
        assert list(dmat.columns) == list(cover.index)
        assert dmat.loc["t0_2011", "t1_2011"] == pytest.approx(1.0)

    def test_cwm_is_absolute_difference(self):
        cover = _make_cover()
        dmat = distance_matrix(cover, HEIGHT, trait_values=[2.0, 4.0, 6.0])

        # CWMs: 2, 4, 6, (2*2 + 4 + 6) / 4 = 3.5
        assert dmat.loc["t0_2011", "t2_2011"] == pytest.approx(4.0)
        assert dmat.loc["t3_2011", "t1_2011"] == pytest.approx(0.5)
        np.testing.assert_array_equal(np.diag(dmat.to_numpy()), 0.0)

    def test_cwm_requires_trait_values(self):
        with pytest.raises(ValueError, match="Trait values are required"):
            distance_matrix(_make_cover(), HEIGHT)

    def test_negative_cover_rejected(self):
        cover = _make_cover([[1.0, -1.0, 0.0], [0.0, 1.0, 0.0]])
        with pytest.raises(ValueError, match="non-negative"):
            distance_matrix(cover, VEG)

    def test_scalar_matrix_propagates_nan(self):
        dmat = scalar_distance_matrix([1.0, np.nan, 4.0])
        assert dmat[0, 2] == pytest.approx(3.0)
        assert np.isnan(dmat[0, 1])
        assert dmat[1, 1] == 0.0


class TestDistancesTo:
    @pytest.mark.parametrize("trait", [VEG, HEIGHT])
    def test_matches_matrix_row(self, trait):
        cover = _make_cover()
        traits = [2.0, 4.0, 6.0]
        full = distance_matrix(cover, trait, traits).to_numpy()

        values = cover.to_numpy()
        row = distances_to(values[0], values[1:], trait, traits)
        np.testing.assert_allclose(row, full[0, 1:])

    def test_no_others(self):
        out = distances_to([1, 0, 0], np.empty((0, 3)), VEG)
        assert out.shape == (0,)

    def test_negative_focal_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            distances_to([-1, 0, 0], [[1, 0, 0]], VEG)
