"""Unit tests for theoretical models."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.linalg import expm

from VarioTransioFit.models import (
    COVARIANCE_MODELS,
    STATIONARY_VARIOGRAMS,
    TRANSIOGRAM_MODELS,
    VARIOGRAM_MODELS,
    CarleTransiogram,
    CompositeFunction,
    ExponentialTransiogram,
    ExponentialVariogram,
    GaussianCovariance,
    GaussianTransiogram,
    GaussianVariogram,
    LinearTransiogram,
    MaternVariogram,
    MatrixExponentialTransiogram,
    MetricBall,
    NuggetEffect,
    PiecewiseLinearTransiogram,
    PowerVariogram,
    SphericalTransiogram,
    SphericalVariogram,
    baseratematrix,
    structures,
)

# =============================================================================
# Test variograms
# =============================================================================


class TestVariograms:
    """Tests for stationary variogram families."""

    @pytest.mark.parametrize("cls", STATIONARY_VARIOGRAMS)
    def test_nugget_and_sill(self, cls) -> None:
        """Zero at the origin, nugget just after, close to the sill far away."""
        g = cls(range=2.0, sill=3.0, nugget=0.5)
        assert g(0.0) == 0.0
        assert g(1e-12) == pytest.approx(0.5, abs=1e-6)
        assert g(1e3) == pytest.approx(3.0, abs=1e-2)

    @pytest.mark.parametrize("cls", STATIONARY_VARIOGRAMS)
    def test_vectorized(self, cls) -> None:
        """Arrays in, arrays of the same shape out."""
        h = np.linspace(0.0, 5.0, 11)
        assert cls(range=2.0)(h).shape == h.shape

    def test_closed_forms(self) -> None:
        """Reference values of a few families."""
        assert GaussianVariogram(range=1.0)(1.0) == pytest.approx(1 - np.exp(-3.0))
        assert ExponentialVariogram(range=3.0)(1.0) == pytest.approx(1 - np.exp(-1.0))
        assert SphericalVariogram(range=2.0)(1.0) == pytest.approx(0.75 - 0.0625)
        assert SphericalVariogram(range=2.0)(5.0) == pytest.approx(1.0)

    def test_matern_order(self) -> None:
        """Half-integer Matérn is finite and increasing."""
        g = MaternVariogram(range=2.0, order=0.5)
        values = g(np.linspace(0.1, 6.0, 20))
        assert np.all(np.isfinite(values))
        assert np.all(np.diff(values) > 0)
        assert g.order == 0.5

    def test_power(self) -> None:
        """Unbounded power model."""
        g = PowerVariogram(scaling=2.0, nugget=0.1, exponent=1.5)
        assert g(0.0) == 0.0
        assert g(4.0) == pytest.approx(2.0 * 8.0 + 0.1)
        assert np.isinf(g.sill)

    def test_nugget_effect(self) -> None:
        """Pure nugget."""
        g = NuggetEffect(nugget=0.3)
        np.testing.assert_allclose(g(np.array([0.0, 1.0, 10.0])), [0.0, 0.3, 0.3])

    def test_frozen(self) -> None:
        """Models are immutable and comparable."""
        g = GaussianVariogram(range=2.0)
        with pytest.raises(AttributeError):
            g.range = 3.0
        assert g == GaussianVariogram(range=2.0)

    def test_registries(self) -> None:
        """Registries are keyed by family name."""
        assert VARIOGRAM_MODELS["gaussian"] is GaussianVariogram
        assert VARIOGRAM_MODELS["power"] is PowerVariogram
        assert TRANSIOGRAM_MODELS["matrixexponential"] is MatrixExponentialTransiogram
        assert COVARIANCE_MODELS["gaussian"] is GaussianCovariance


class TestMetricBall:
    """Tests for anisotropic metric balls."""

    def test_ball_sets_range(self) -> None:
        """The first radius is the range of the model."""
        g = GaussianVariogram(ball=MetricBall((4.0, 2.0)))
        assert g.range == 4.0

    def test_anisotropic_lag(self) -> None:
        """Offsets along the short axis are stretched."""
        ball = MetricBall((4.0, 2.0))
        np.testing.assert_allclose(ball.lag([0.0, 0.0], [0.0, 1.0]), 2.0)
        np.testing.assert_allclose(ball.lag([0.0, 0.0], [1.0, 0.0]), 1.0)

    def test_pairwise(self) -> None:
        """Point evaluation goes through the ball."""
        g = GaussianVariogram(range=2.0)
        assert g.pairwise([0.0, 0.0], [0.0, 1.0]) == pytest.approx(g(1.0))

    def test_invalid_radii(self) -> None:
        """Radii must be positive."""
        with pytest.raises(ValueError):
            MetricBall((1.0, 0.0))


class TestCovariance:
    """Tests for covariance wrappers."""

    def test_sill_minus_variogram(self) -> None:
        """C(h) = sill - gamma(h)."""
        cov = GaussianCovariance(range=2.0, sill=3.0)
        h = np.array([0.0, 1.0, 4.0])
        np.testing.assert_allclose(cov(h), 3.0 - GaussianVariogram(range=2.0, sill=3.0)(h))
        assert cov.sill == 3.0

    def test_from_variogram(self) -> None:
        """Wrap an existing variogram."""
        g = GaussianVariogram(range=2.0)
        assert GaussianCovariance(g).variogram is g
        with pytest.raises(ValueError):
            GaussianCovariance(g, range=3.0)


class TestComposite:
    """Tests for linear combinations of models."""

    def test_sum_and_scale(self) -> None:
        """Nested structures add up."""
        a = GaussianVariogram(range=1.0)
        b = SphericalVariogram(range=3.0)
        c = 2.0 * a + b
        assert isinstance(c, CompositeFunction)
        h = np.linspace(0.0, 4.0, 9)
        np.testing.assert_allclose(c(h), 2.0 * a(h) + b(h))
        assert c.sill == pytest.approx(3.0)
        assert len(c.models) == 2

    def test_mixed_kinds_rejected(self) -> None:
        """Variograms and transiograms do not mix."""
        with pytest.raises(ValueError):
            GaussianVariogram() + LinearTransiogram()


# =============================================================================
# Test transiograms
# =============================================================================


class TestTransiograms:
    """Tests for transiogram families."""

    @pytest.mark.parametrize("cls", [LinearTransiogram, SphericalTransiogram, GaussianTransiogram,
                                     ExponentialTransiogram])
    def test_rows_sum_to_one(self, cls) -> None:
        """Transition matrices are stochastic."""
        t = cls(range=2.0, proportions=(0.2, 0.3, 0.5))
        T = t(np.array([0.5, 1.0, 10.0]))
        assert T.shape == (3, 3, 3)
        np.testing.assert_allclose(T.sum(axis=-1), 1.0, atol=1e-12)

    def test_linear_limits(self) -> None:
        """Identity at the origin, proportions beyond the range."""
        t = LinearTransiogram(range=2.0, proportions=(0.25, 0.75))
        np.testing.assert_allclose(t(0.0), np.eye(2))
        np.testing.assert_allclose(t(3.0), [[0.25, 0.75], [0.25, 0.75]])
        np.testing.assert_allclose(t(1.0), 0.5 * np.eye(2) + 0.5 * np.array([[0.25, 0.75], [0.25, 0.75]]))

    def test_baseratematrix(self) -> None:
        """Rates from mean lengths and proportions."""
        R = baseratematrix((1.0, 2.0), (0.5, 0.5))
        np.testing.assert_allclose(R, [[-1.0, 1.0], [0.5, -0.5]])
        with pytest.raises(ValueError):
            baseratematrix((1.0,), (0.5, 0.5))
        with pytest.raises(ValueError):
            baseratematrix((1.0, 1.0), (0.2, 0.2))

    def test_matrix_exponential(self) -> None:
        """expm of the scaled rate matrix; long-range rows approach the proportions."""
        t = MatrixExponentialTransiogram.from_lengths((1.0, 3.0), (0.4, 0.6))
        R = baseratematrix((1.0, 3.0), (0.4, 0.6))
        np.testing.assert_allclose(t(0.7), expm(0.7 * R))
        np.testing.assert_allclose(t.meanlengths, (1.0, 3.0))
        assert t.range == pytest.approx(3.0)
        assert sum(t.proportions) == pytest.approx(1.0)
        assert t(np.array([0.1, 0.2])).shape == (2, 2, 2)

    def test_piecewise_linear(self) -> None:
        """Interpolates bins, starts at the identity and ends at the diagonal proportions."""
        x = np.array([1.0, 2.0])
        Y = np.stack([np.array([[0.8, 0.2], [0.1, 0.9]]), np.array([[0.6, 0.4], [0.2, 0.8]])], axis=-1)
        t = PiecewiseLinearTransiogram(x, Y)
        np.testing.assert_allclose(t(0.0), np.eye(2))
        np.testing.assert_allclose(t(1.0), Y[..., 0])
        np.testing.assert_allclose(t(1.5), 0.5 * (Y[..., 0] + Y[..., 1]))
        np.testing.assert_allclose(t(0.5), 0.5 * np.eye(2) + 0.5 * Y[..., 0])
        p = np.array([0.6, 0.8]) / 1.4
        np.testing.assert_allclose(t(5.0), [p, p])
        assert t(np.array([0.5, 1.5, 5.0])).shape == (3, 2, 2)


class TestCarleTransiogram:
    """Tests for transiograms with one rate matrix per axis."""

    def test_axis_lags(self) -> None:
        """Lags along an axis follow that axis' rate matrix in both directions."""
        Rx = baseratematrix((1.0, 2.0), (0.5, 0.5))
        Ry = baseratematrix((0.5, 1.0), (0.5, 0.5))
        t = CarleTransiogram(Rx, Ry)
        np.testing.assert_allclose(t.proportions, (1 / 3, 2 / 3), atol=1e-10)
        np.testing.assert_allclose(t.meanlengths, (1.0, 2.0))
        assert t.range == pytest.approx(2.0)
        np.testing.assert_allclose(t.pairwise([0.0, 0.0], [0.7, 0.0]), expm(0.7 * Rx), atol=1e-10)
        np.testing.assert_allclose(t.pairwise([0.7, 0.0], [0.0, 0.0]), expm(0.7 * Rx), atol=1e-10)
        np.testing.assert_allclose(t.pairwise([0.0, 0.0], [0.0, 0.7]), expm(0.7 * Ry), atol=1e-10)

    def test_scalar_lag_uses_longest_axis(self) -> None:
        """Scalar lags run along the axis with the longest mean lengths."""
        Rx = baseratematrix((1.0, 2.0), (0.5, 0.5))
        t = CarleTransiogram(0.5 * Rx, Rx)
        np.testing.assert_allclose(t(1.5), expm(0.75 * Rx), atol=1e-10)
        np.testing.assert_allclose(t(0.0), np.eye(2))
        assert t(np.array([0.5, 1.0, 2.0])).shape == (3, 2, 2)

    def test_oblique_rows_sum_to_one(self) -> None:
        """Blended rates still give stochastic matrices."""
        R = baseratematrix((1.0, 2.0, 3.0), (0.2, 0.3, 0.5))
        t = CarleTransiogram(R, 0.5 * R, 0.1 * R)
        T = t.pairwise([0.0, 0.0, 0.0], np.array([[1.0, -2.0, 0.5], [-0.3, 0.4, -2.0]]))
        assert T.shape == (2, 3, 3)
        np.testing.assert_allclose(T.sum(axis=-1), 1.0, atol=1e-10)
        assert not t.isotropic
        assert CarleTransiogram().isotropic

    def test_invalid_rates(self) -> None:
        """Rate matrices must be square, of equal size, and match the lag dimension."""
        with pytest.raises(ValueError):
            CarleTransiogram(np.ones((2, 3)))
        with pytest.raises(ValueError):
            CarleTransiogram(baseratematrix((1.0, 1.0), (0.5, 0.5)), baseratematrix((1.0, 1.0, 1.0), (0.2, 0.3, 0.5)))
        t = CarleTransiogram(baseratematrix((1.0, 1.0), (0.5, 0.5)))
        with pytest.raises(ValueError):
            t.pairwise([0.0, 0.0], [1.0, 0.0])


class TestStructures:
    """Tests for decomposing models into nugget and normalized structures."""

    def test_single_variogram(self) -> None:
        """Nugget and partial sill of one structure."""
        c0, c, g = structures(GaussianVariogram(range=2.0, sill=3.0, nugget=0.5))
        assert c0 == pytest.approx(0.5)
        assert c == pytest.approx((2.5,))
        assert g == (GaussianVariogram(range=2.0),)

    def test_composite(self) -> None:
        """Nugget effects are folded into the total nugget."""
        f = 0.1 * NuggetEffect() + 2.0 * GaussianVariogram(range=3.0, nugget=0.2) + SphericalVariogram(range=5.0)
        c0, c, g = structures(f)
        assert c0 == pytest.approx(0.5)
        assert c == pytest.approx((1.6, 1.0))
        assert g == (GaussianVariogram(range=3.0), SphericalVariogram(range=5.0))

    def test_covariance(self) -> None:
        """Covariances keep their wrapper."""
        c0, c, g = structures(GaussianCovariance(range=2.0, sill=3.0))
        assert c0 == 0.0
        assert c == pytest.approx((3.0,))
        assert g == (GaussianCovariance(range=2.0),)

    def test_unbounded_rejected(self) -> None:
        """Power variograms and transiograms have no sill to split."""
        with pytest.raises(ValueError):
            structures(PowerVariogram())
        with pytest.raises(ValueError):
            structures(LinearTransiogram())
