"""Unit tests for pair search and lag-bin accumulation.

Tests:
- estimalgo option validation and ball-search fallback
- full and ball search equivalence
- accumulation edge cases (zero lags, missing values, bin limits)
"""

from __future__ import annotations

import warnings

import numpy as np
import pytest

from VarioTransioFit.accumulate import accumulate, candidate_pairs
from VarioTransioFit.empirical import empirical_transiogram, empirical_variogram
from VarioTransioFit.search import BallSearchAccum, FullSearchAccum, estimalgo

# =============================================================================
# Test option resolution
# =============================================================================


class TestEstimalgo:
    """Tests for estimalgo."""

    def test_defaults(self, triangle_coords: np.ndarray) -> None:
        """Float coordinates with a Minkowski metric use the ball search."""
        estim, algo = estimalgo(triangle_coords, 2, 2.0)
        assert estim.name == "matheron"
        assert isinstance(algo, BallSearchAccum)
        assert algo.nlags == 2 and algo.maxlag == 2.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"nlags": 0, "maxlag": 1.0},
            {"nlags": 2.5, "maxlag": 1.0},
            {"nlags": 2, "maxlag": 0.0},
            {"nlags": 2, "maxlag": 1.0, "estimator": "carle"},
            {"nlags": 2, "maxlag": 1.0, "algorithm": "kdtree"},
        ],
    )
    def test_invalid_options(self, triangle_coords: np.ndarray, kwargs: dict) -> None:
        """Invalid options raise before any work."""
        with pytest.raises(ValueError):
            estimalgo(triangle_coords, **kwargs)

    def test_transiogram_estimator(self, triangle_coords: np.ndarray) -> None:
        """Transiograms only accept Carle's estimator."""
        with pytest.raises(ValueError):
            estimalgo(triangle_coords, 2, 1.0, estimator="matheron", kind="transiogram")
        estim, _ = estimalgo(triangle_coords, 2, 1.0, estimator="carle", kind="transiogram")
        assert estim.name == "carle"

    def test_too_few_points(self) -> None:
        """A single location cannot form pairs."""
        with pytest.raises(ValueError):
            estimalgo(np.zeros((1, 2)), 2, 1.0)

    def test_integer_coordinates_fall_back(self) -> None:
        """Integer coordinates trigger a warning and the full search."""
        coords = np.array([[0, 0], [1, 0], [0, 1]])
        with pytest.warns(UserWarning, match="floating point"):
            _, algo = estimalgo(coords, 2, 2.0)
        assert isinstance(algo, FullSearchAccum)

    def test_non_minkowski_falls_back(self) -> None:
        """Great-circle distances cannot use the kd-tree."""
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        with pytest.warns(UserWarning, match="Minkowski"):
            _, algo = estimalgo(coords, 2, 200.0, distance="haversine")
        assert isinstance(algo, FullSearchAccum)


# =============================================================================
# Test search strategies
# =============================================================================


class TestSearchEquivalence:
    """Full and ball search must produce identical bins."""

    @pytest.mark.parametrize("distance", ["euclidean", "cityblock", "chebyshev"])
    @pytest.mark.parametrize("estimator", ["matheron", "cressie"])
    def test_identical_results(self, field_2d, distance: str, estimator: str) -> None:
        """Counts, abscissas and ordinates are exactly equal."""
        coords, data = field_2d
        kwargs = dict(nlags=15, maxlag=3.0, distance=distance, estimator=estimator)
        full = empirical_variogram(coords, data, "z", algorithm="full", **kwargs)
        ball = empirical_variogram(coords, data, "z", algorithm="ball", **kwargs)
        np.testing.assert_array_equal(full.counts, ball.counts)
        np.testing.assert_array_equal(full.abscissas, ball.abscissas)
        np.testing.assert_array_equal(full.ordinates, ball.ordinates)

    @pytest.mark.parametrize("distance", ["euclidean", "cityblock"])
    def test_identical_transiograms(self, facies_2d, distance: str) -> None:
        """The Carle estimator gives the same transition bins under both searches."""
        coords, data = facies_2d
        kwargs = dict(nlags=10, maxlag=4.0, distance=distance)
        full = empirical_transiogram(coords, data, "facies", algorithm="full", **kwargs)
        ball = empirical_transiogram(coords, data, "facies", algorithm="ball", **kwargs)
        assert full.levels == ball.levels
        np.testing.assert_array_equal(full.counts, ball.counts)
        np.testing.assert_array_equal(full.abscissas, ball.abscissas)
        np.testing.assert_array_equal(full.ordinates, ball.ordinates)

    def test_candidate_pairs_order(self, triangle_coords: np.ndarray) -> None:
        """Pairs are listed by j, then by increasing i > j."""
        _, algo = estimalgo(triangle_coords, 2, 2.0, algorithm="full")
        ii, jj, hh = candidate_pairs(triangle_coords, algo)
        np.testing.assert_array_equal(jj, [0, 0, 1])
        np.testing.assert_array_equal(ii, [1, 2, 2])
        np.testing.assert_allclose(hh, np.sqrt(2.0))


# =============================================================================
# Test accumulation
# =============================================================================


class TestAccumulate:
    """Tests for the accumulate function."""

    def test_three_point_scenario(self, triangle_coords: np.ndarray) -> None:
        """Constant field on three equidistant points."""
        g = empirical_variogram(triangle_coords, np.ones(3), nlags=2, maxlag=2.0)
        np.testing.assert_allclose(g.abscissas, [0.5, np.sqrt(2.0)])
        np.testing.assert_array_equal(g.counts, [0, 3])
        assert g.ordinates[1] == 0.0

    def test_lengths_match(self, field_2d) -> None:
        """Counts, abscissas and ordinates have one entry per bin."""
        coords, data = field_2d
        g = empirical_variogram(coords, data, "z", nlags=7, maxlag=2.0)
        assert len(g.counts) == len(g.abscissas) == len(g.ordinates) == 7

    def test_homogeneous_field(self, field_2d) -> None:
        """A constant field has zero ordinates for both variogram estimators."""
        coords, _ = field_2d
        for estimator in ("matheron", "cressie"):
            g = empirical_variogram(coords, np.full(len(coords), 3.0), nlags=5, maxlag=2.0, estimator=estimator)
            np.testing.assert_allclose(g.ordinates, 0.0)
            assert g.npairs > 0

    def test_all_missing_column(self, field_2d) -> None:
        """An all-NaN column gives zero counts, zero ordinates and nominal abscissas."""
        coords, _ = field_2d
        g = empirical_variogram(coords, np.full(len(coords), np.nan), nlags=4, maxlag=2.0)
        np.testing.assert_array_equal(g.counts, 0)
        np.testing.assert_array_equal(g.ordinates, 0.0)
        np.testing.assert_allclose(g.abscissas, [0.25, 0.75, 1.25, 1.75])
        assert not np.any(np.isnan(g.ordinates))

    def test_missing_values_skip_pairs(self) -> None:
        """Pairs touching a missing value are not counted."""
        coords = np.array([[0.0], [1.0], [2.0]])
        g = empirical_variogram(coords, np.array([0.0, np.nan, 2.0]), nlags=2, maxlag=2.0, algorithm="full")
        np.testing.assert_array_equal(g.counts, [0, 1])
        np.testing.assert_allclose(g.ordinates, [0.0, 2.0])

    def test_duplicate_coordinates_warn(self) -> None:
        """Zero lags are discarded with a warning."""
        coords = np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 0.0]])
        with pytest.warns(UserWarning, match="duplicate coordinates"):
            g = empirical_variogram(coords, np.array([1.0, 2.0, 3.0]), nlags=2, maxlag=2.0)
        np.testing.assert_array_equal(g.counts, [2, 0])

    def test_pairs_beyond_maxlag_ignored(self) -> None:
        """Only pairs within maxlag are binned."""
        coords = np.array([[0.0], [1.0], [5.0]])
        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            g = empirical_variogram(coords, np.array([0.0, 1.0, 2.0]), nlags=2, maxlag=2.0)
        assert g.npairs == 1

    def test_cross_variogram(self) -> None:
        """Cross terms use the product of increments."""
        coords = np.array([[0.0], [1.0]])
        values = np.array([[0.0, 0.0], [1.0, 3.0]])
        estim, algo = estimalgo(coords.astype(float), 1, 1.5)
        acc = accumulate(coords, values, [(0, 1)], estim, algo)[0]
        np.testing.assert_allclose(acc.ordinates, [1.5])
        np.testing.assert_array_equal(acc.counts, [1])

    def test_pair_index_validation(self, triangle_coords: np.ndarray) -> None:
        """Variable pair indices must refer to existing columns."""
        estim, algo = estimalgo(triangle_coords, 2, 2.0)
        with pytest.raises(ValueError):
            accumulate(triangle_coords, np.ones((3, 1)), [(0, 1)], estim, algo)
