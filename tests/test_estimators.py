"""Unit tests for the estimators."""

from __future__ import annotations

import numpy as np
import pytest

from VarioTransioFit.estimators import (
    CarleEstimator,
    CressieEstimator,
    MatheronEstimator,
    cressie_correction,
    get_estimator,
)


class TestMatheronEstimator:
    """Tests for the classical estimator."""

    def test_term(self) -> None:
        """Product of increments."""
        est = MatheronEstimator()
        assert est.accumulate_term(3.0, 1.0, 3.0, 1.0) == pytest.approx(4.0)

    def test_normalize(self) -> None:
        """Sum over twice the count, zero for empty bins."""
        est = MatheronEstimator()
        sums = np.array([[8.0, 0.0], [0.0, 0.0]])
        np.testing.assert_allclose(est.normalize(sums, np.array([2, 0])), [2.0, 0.0])

    def test_combine_is_count_weighted(self) -> None:
        """Combination is the count-weighted mean."""
        est = MatheronEstimator()
        y = est.combine(np.array([1.0]), np.array([1.0]), np.array([4.0]), np.array([3.0]))
        np.testing.assert_allclose(y, [3.25])


class TestCressieEstimator:
    """Tests for the robust estimator."""

    def test_correction(self) -> None:
        """Bias correction constants."""
        assert cressie_correction(1) == pytest.approx(0.457 + 0.494 + 0.045)

    def test_combine_matches_single_pass(self, rng: np.random.Generator) -> None:
        """Combining two halves equals normalizing the union."""
        est = CressieEstimator()
        terms = np.abs(rng.standard_normal(10))
        a, b = terms[:4], terms[4:]
        ya = est.normalize(np.array([[a.sum(), 0.0]]), np.array([a.size]))
        yb = est.normalize(np.array([[b.sum(), 0.0]]), np.array([b.size]))
        y = est.normalize(np.array([[terms.sum(), 0.0]]), np.array([terms.size]))
        merged = est.combine(ya, np.array([4.0]), yb, np.array([6.0]))
        np.testing.assert_allclose(merged, y, rtol=1e-12)


class TestCarleEstimator:
    """Tests for the transiogram estimator."""

    def test_ratio(self) -> None:
        """Ratio of sums; zero without head counts."""
        est = CarleEstimator()
        sums = np.array([[1.0, 4.0], [0.0, 0.0]])
        np.testing.assert_allclose(est.normalize(sums, np.array([4, 0])), [0.25, 0.0])
        np.testing.assert_allclose(est.merge_weight(sums, np.array([4, 0])), [4.0, 0.0])


class TestGetEstimator:
    """Tests for estimator lookup."""

    def test_aliases(self) -> None:
        """Names are case-insensitive and accept the long Cressie name."""
        assert get_estimator("Matheron") == MatheronEstimator()
        assert get_estimator("Cressie-Hawkins") == CressieEstimator()

    def test_unknown(self) -> None:
        """Unknown name raises."""
        with pytest.raises(ValueError):
            get_estimator("dowd")
