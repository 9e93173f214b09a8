"""Unit tests for distances, bin layout, units, weights and thread helpers."""

from __future__ import annotations

import numpy as np
import pytest

from VarioTransioFit.utils import (
    Chebyshev,
    CustomDistance,
    Euclidean,
    Haversine,
    Manhattan,
    Minkowski,
    bin_centers,
    compute_distance_weights,
    convert_length,
    default_maxlag,
    get_distance,
    householder_basis,
    parallel_map,
)


class TestDistances:
    """Tests for the distance metrics."""

    def test_minkowski_family(self) -> None:
        """Metrics agree with their closed forms."""
        x = np.array([0.0, 0.0])
        Y = np.array([[3.0, 4.0]])
        np.testing.assert_allclose(Euclidean()(x, Y), [5.0])
        np.testing.assert_allclose(Manhattan()(x, Y), [7.0])
        np.testing.assert_allclose(Chebyshev()(x, Y), [4.0])
        np.testing.assert_allclose(Minkowski(p=1.0)(x, Y), [7.0])

    def test_haversine_quarter_meridian(self) -> None:
        """Equator to pole is a quarter of the circumference."""
        d = Haversine()(np.array([0.0, 0.0]), np.array([[90.0, 0.0]]))
        np.testing.assert_allclose(d, [np.pi / 2 * 6371.227])

    def test_get_distance(self) -> None:
        """Names, instances and callables resolve to metrics."""
        assert get_distance("cartesian") == Euclidean()
        assert isinstance(get_distance(lambda x, Y: np.zeros(len(Y))), CustomDistance)
        with pytest.raises(ValueError):
            get_distance("angular")

    def test_minkowski_rejects_small_p(self) -> None:
        """p below one is not a metric."""
        with pytest.raises(ValueError):
            Minkowski(p=0.5)


class TestUtils:
    """Tests for bin layout, units, weights and helpers."""

    def test_bin_centers(self) -> None:
        """Centres at half steps."""
        np.testing.assert_allclose(bin_centers(4, 2.0), [0.25, 0.75, 1.25, 1.75])

    def test_default_maxlag(self) -> None:
        """Fraction of the smallest positive side."""
        coords = np.array([[0.0, 0.0], [10.0, 4.0]])
        assert default_maxlag(coords, 0.5) == pytest.approx(2.0)
        with pytest.raises(ValueError):
            default_maxlag(np.zeros((3, 2)))

    def test_convert_length(self) -> None:
        """Kilometres to metres."""
        assert convert_length(1.5, "km", "m") == pytest.approx(1500.0)
        with pytest.raises(ValueError):
            convert_length(1.0, "km", "parsec")

    def test_weights(self) -> None:
        """Decay schemes scale the counts."""
        h = np.array([0.0, 1.0])
        n = np.array([2.0, 2.0])
        np.testing.assert_allclose(compute_distance_weights(h, n, "linear weighting"), [2.0, 2.0])
        np.testing.assert_allclose(compute_distance_weights(h, n, "ols"), [1.0, 1.0])
        np.testing.assert_allclose(compute_distance_weights(h, n, "inverse-linear weighting", [1.0]), [2.0, 1.0])
        with pytest.raises(ValueError):
            compute_distance_weights(h, n, "quadratic")

    def test_householder_basis(self) -> None:
        """Basis vectors are orthonormal and orthogonal to the normal."""
        normal = np.array([1.0, 2.0, 2.0])
        u, v = householder_basis(normal)
        np.testing.assert_allclose([u @ normal, v @ normal, u @ v], [0.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose([u @ u, v @ v], [1.0, 1.0])

    def test_parallel_map_keeps_order(self) -> None:
        """Threaded map returns results in input order."""
        assert parallel_map(lambda k: k * k, range(8), n_jobs=3) == [k * k for k in range(8)]
        with pytest.raises(ValueError):
            parallel_map(abs, [1, 2], n_jobs=0)
